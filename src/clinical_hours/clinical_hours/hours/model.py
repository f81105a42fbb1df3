from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import AccrualKind


@dataclass(frozen=True)
class HourAccrual:
    """One append-only entry of a student's hours ledger.

    Session entries are unique per session id; adjustments carry no session.
    """

    accrual_id: int
    student_id: int
    hours: float
    kind: AccrualKind
    created_at: datetime
    session_id: Optional[int] = None
    created_by: Optional[int] = None
    note: Optional[str] = None


@dataclass(frozen=True)
class HoursProgress:
    student_id: int
    completed_hours: float
    total_allotted_hours: float
    percentage: int
    remaining_hours: float
