from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..common.pagination import PageRequest
from ..core.enums import AgeGroup, ApprovalStatus, TestType
from ..core.exceptions import ConflictError
from .model import ClinicalCase


class CaseNumberTaken(ConflictError):
    """The generated case number already exists in the store."""


class CaseNumberCounter(Protocol):
    def next_sequence(self, period: str) -> int:
        """Atomically increment and return the counter for ``period`` (YYMM), starting at 1."""

        raise NotImplementedError


class CaseRepository(Protocol):
    def get_by_id(self, case_id: int) -> Optional[ClinicalCase]:
        raise NotImplementedError

    def list_cases(
        self,
        *,
        student_id: Optional[int] = None,
        status: Optional[ApprovalStatus] = None,
        age_group: Optional[AgeGroup] = None,
        test_type: Optional[TestType] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        window: Optional[PageRequest] = None,
    ) -> Sequence[ClinicalCase]:
        """Newest session date first."""

        raise NotImplementedError

    def count_cases(
        self,
        *,
        student_id: Optional[int] = None,
        status: Optional[ApprovalStatus] = None,
        age_group: Optional[AgeGroup] = None,
        test_type: Optional[TestType] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> int:
        raise NotImplementedError

    def create(self, draft: ClinicalCase) -> int:
        """Insert ``draft`` (its case_id is ignored). Raises CaseNumberTaken on a duplicate number."""

        raise NotImplementedError

    def update_fields(self, case_id: int, *, changes: dict, unless_status: Optional[ApprovalStatus] = None) -> bool:
        """Apply validated changes keyed by ClinicalCase attribute names.

        With ``unless_status`` nothing is written once the stored status equals it.
        """

        raise NotImplementedError

    def apply_review(
        self,
        case_id: int,
        *,
        expected: ApprovalStatus,
        status: ApprovalStatus,
        reviewed_at: datetime,
        comments: Optional[str],
        supervisor_id: Optional[int],
        is_completed: bool,
    ) -> bool:
        """Write a review only if the stored status still equals ``expected``."""

        raise NotImplementedError

    def delete(self, case_id: int) -> bool:
        raise NotImplementedError
