from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..common.datetime_utils import hours_between
from ..core.constants import REGULAR_HOURS_PER_DAY
from ..core.enums import Location


def net_hours(time_in: datetime, time_out: Optional[datetime], break_minutes: float) -> float:
    """Worked hours of a session: (out - in) - break, never below 0. Open sessions count 0."""
    if time_out is None:
        return 0.0
    return max(0.0, hours_between(time_in, time_out) - (break_minutes or 0) / 60)


@dataclass(frozen=True)
class AttendanceSession:
    """Domain entity: one check-in/check-out session of a student on a calendar day."""

    session_id: int
    student_id: int
    date: date
    time_in: datetime
    time_out: Optional[datetime] = None
    break_minutes: int = 0
    location: Location = Location.MAIN_CLINIC
    supervisor_id: Optional[int] = None
    supervisor_verified: bool = False
    verified_at: Optional[datetime] = None
    notes: Optional[str] = None
    is_manual_entry: bool = False

    @property
    def is_open(self) -> bool:
        return self.time_out is None

    @property
    def net_hours(self) -> float:
        return net_hours(self.time_in, self.time_out, self.break_minutes)

    @property
    def regular_hours(self) -> float:
        return min(float(REGULAR_HOURS_PER_DAY), self.net_hours)

    @property
    def extra_hours(self) -> float:
        return max(0.0, self.net_hours - REGULAR_HOURS_PER_DAY)

    @property
    def formatted_duration(self) -> str:
        total = self.net_hours
        hours = int(total)
        minutes = round((total - hours) * 60)
        if minutes == 60:
            hours, minutes = hours + 1, 0
        return f"{hours}h {minutes}m"


@dataclass(frozen=True)
class SessionClose:
    """Everything needed to close a session and credit its hours in one step."""

    session_id: int
    student_id: int
    time_out: datetime
    break_minutes: int
    net_hours: float
    notes: Optional[str] = None
    is_manual_entry: bool = False


@dataclass(frozen=True)
class TodayStatus:
    is_checked_in: bool
    is_checked_out: bool
    session: Optional[AttendanceSession] = None


@dataclass(frozen=True)
class MonthlySummary:
    year: int
    month: int
    total_days: int = 0
    total_hours: float = 0.0
