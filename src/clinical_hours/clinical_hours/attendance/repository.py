from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..common.pagination import PageRequest
from ..core.enums import Location
from .model import AttendanceSession, SessionClose


class AttendanceRepository(Protocol):
    def get_by_id(self, session_id: int) -> Optional[AttendanceSession]:
        raise NotImplementedError

    def get_open_for_student(self, student_id: int) -> Optional[AttendanceSession]:
        """The student's open session on any date, if one exists."""

        raise NotImplementedError

    def get_for_student_and_date(self, student_id: int, day: date) -> Optional[AttendanceSession]:
        raise NotImplementedError

    def create_checkin(
        self,
        *,
        student_id: int,
        day: date,
        time_in: datetime,
        location: Location,
        supervisor_id: Optional[int] = None,
    ) -> int:
        """Insert an open session.

        Must raise ConflictError when (student_id, day) already exists; that
        uniqueness guarantee is what settles concurrent check-ins.
        """

        raise NotImplementedError

    def close_session_and_accrue(self, close: SessionClose, *, accrued_at: datetime) -> bool:
        """Close the session and append its hours accrual as one atomic unit.

        Idempotent per session id: a session that is already closed keeps its
        stored close values, and its accrual is only appended if missing, so a
        retry never counts hours twice. Returns False when the session does
        not exist. Raises PersistenceError on storage failure, leaving nothing
        applied.
        """

        raise NotImplementedError

    def mark_verified(self, *, session_id: int, supervisor_id: int, verified_at: datetime) -> bool:
        raise NotImplementedError

    def list_for_student(
        self,
        *,
        student_id: Optional[int],
        start: Optional[date] = None,
        end: Optional[date] = None,
        closed_only: bool = False,
        window: Optional[PageRequest] = None,
    ) -> Sequence[AttendanceSession]:
        """Sessions newest first; student_id=None means all students."""

        raise NotImplementedError

    def count_for_student(
        self,
        *,
        student_id: Optional[int],
        start: Optional[date] = None,
        end: Optional[date] = None,
        closed_only: bool = False,
    ) -> int:
        raise NotImplementedError
