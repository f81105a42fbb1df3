from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def to_local_naive(value: datetime) -> datetime:
    """Offset-aware datetimes are shifted to local wall time; naive ones pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def parse_iso_datetime(value: str) -> datetime:
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return to_local_naive(datetime.fromisoformat(text))


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of a month."""
    if not 1 <= int(month) <= 12:
        raise ValueError(f"Invalid month: {month!r}")
    last_day = calendar.monthrange(int(year), int(month))[1]
    return date(int(year), int(month), 1), date(int(year), int(month), last_day)


def week_bounds(day: date) -> tuple[date, date]:
    """Sunday-to-Saturday week containing ``day``."""
    # date.weekday(): Monday=0 .. Sunday=6
    start = day - timedelta(days=(day.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def week_of_year(day: date) -> int:
    """Sunday-based week number (00-53), days before the first Sunday are week 0."""
    return int(day.strftime("%U"))


def shift_months(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) + int(months)
    year, month = divmod(month_index, 12)
    last_day = calendar.monthrange(year, month + 1)[1]
    return date(year, month + 1, min(day.day, last_day))


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600
