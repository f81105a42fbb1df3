from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.constants import DEFAULT_ALLOTTED_HOURS
from ..core.enums import Role


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of an operation (issued by the auth layer)."""

    user_id: int
    role: Role

    @property
    def is_student(self) -> bool:
        return self.role == Role.STUDENT


@dataclass(frozen=True)
class User:
    """Domain entity: a student, supervisor or administrator.

    ``completed_hours`` is the materialized sum of the student's hours ledger.
    """

    user_id: int
    name: str
    email: str
    role: Role
    total_allotted_hours: float = DEFAULT_ALLOTTED_HOURS
    completed_hours: float = 0.0
    supervisor_id: Optional[int] = None
    batch: Optional[str] = None
    semester: Optional[int] = None
    registration_number: Optional[str] = None
    is_active: bool = True

    @property
    def hours_completion_percentage(self) -> int:
        if not self.total_allotted_hours:
            return 0
        return min(100, round(self.completed_hours / self.total_allotted_hours * 100))

    @property
    def remaining_hours(self) -> float:
        return max(0.0, self.total_allotted_hours - self.completed_hours)
