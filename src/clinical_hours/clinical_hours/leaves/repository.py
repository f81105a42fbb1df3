from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional, Protocol, Sequence

from ..common.pagination import PageRequest
from ..core.enums import LeaveStatus, LeaveType
from .model import LeaveRequest, SupportingDocument


class LeaveRepository(Protocol):
    def get_by_id(self, request_id: int) -> Optional[LeaveRequest]:
        raise NotImplementedError

    def list_active_for_student(
        self,
        student_id: int,
        *,
        exclude_request_id: Optional[int] = None,
    ) -> Sequence[LeaveRequest]:
        """The student's Pending and Approved requests."""

        raise NotImplementedError

    def list_requests(
        self,
        *,
        student_id: Optional[int] = None,
        status: Optional[LeaveStatus] = None,
        window: Optional[PageRequest] = None,
    ) -> Sequence[LeaveRequest]:
        """Newest first."""

        raise NotImplementedError

    def count_requests(self, *, student_id: Optional[int] = None, status: Optional[LeaveStatus] = None) -> int:
        raise NotImplementedError

    def create(
        self,
        *,
        student_id: int,
        leave_type: LeaveType,
        start_date: date,
        end_date: date,
        reason: str,
        is_emergency: bool,
        supporting_documents: Sequence[SupportingDocument],
        created_by: int,
        created_at: datetime,
    ) -> int:
        raise NotImplementedError

    def update_fields(self, request_id: int, *, changes: dict, expected: Optional[LeaveStatus] = None) -> bool:
        """Apply already validated field changes (keys are LeaveRequest attribute names).

        With ``expected`` the write only lands while the stored status still equals it.
        """

        raise NotImplementedError

    def set_status(
        self,
        request_id: int,
        *,
        status: LeaveStatus,
        expected: Iterable[LeaveStatus],
        reviewed_by: Optional[int] = None,
        reviewed_at: Optional[datetime] = None,
        review_comments: Optional[str] = None,
    ) -> bool:
        """Move to ``status`` only if the stored status is one of ``expected``.

        Returns False when the guard did not match, so a concurrent transition
        is never overwritten.
        """

        raise NotImplementedError
