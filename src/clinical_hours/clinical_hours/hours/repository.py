from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import HourAccrual


class HoursLedgerRepository(Protocol):
    """Read/adjust side of the hours ledger.

    Session accruals are written by AttendanceRepository.close_session_and_accrue
    so the session close and its credit share one transaction.
    """

    def list_for_student(self, student_id: int) -> Sequence[HourAccrual]:
        """Entries newest first."""

        raise NotImplementedError

    def append_adjustment(
        self,
        *,
        student_id: int,
        hours: float,
        created_by: int,
        created_at: datetime,
        note: Optional[str] = None,
    ) -> int:
        """Append an adjustment and move the materialized total by ``hours`` atomically."""

        raise NotImplementedError

    def rematerialize(self, student_id: int) -> float:
        """Reset users.completed_hours to the ledger sum and return it."""

        raise NotImplementedError
