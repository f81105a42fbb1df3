from __future__ import annotations

from datetime import date
from typing import List, Optional

from ..core.exceptions import ConflictError
from .model import LeaveRequest
from .repository import LeaveRepository


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Inclusive date ranges: sharing a single day counts."""
    return a_start <= b_end and a_end >= b_start


class LeaveConflictValidator:
    def __init__(self, leaves: LeaveRepository):
        self._leaves = leaves

    def find_conflicts(
        self,
        student_id: int,
        start_date: date,
        end_date: date,
        exclude_request_id: Optional[int] = None,
    ) -> List[LeaveRequest]:
        existing = self._leaves.list_active_for_student(int(student_id), exclude_request_id=exclude_request_id)
        return [
            r
            for r in existing
            if r.request_id != exclude_request_id and ranges_overlap(r.start_date, r.end_date, start_date, end_date)
        ]

    def has_overlap(
        self,
        student_id: int,
        start_date: date,
        end_date: date,
        exclude_request_id: Optional[int] = None,
    ) -> bool:
        return bool(self.find_conflicts(student_id, start_date, end_date, exclude_request_id))

    def ensure_no_overlap(
        self,
        student_id: int,
        start_date: date,
        end_date: date,
        exclude_request_id: Optional[int] = None,
    ) -> None:
        conflicts = self.find_conflicts(student_id, start_date, end_date, exclude_request_id)
        if conflicts:
            first = conflicts[0]
            raise ConflictError(
                "You already have a leave request for some of these dates "
                f"({first.start_date.isoformat()} to {first.end_date.isoformat()})"
            )
