"""Pure aggregation over already loaded snapshots.

Every function accepts any iterable (possibly empty) and returns plain
dicts/lists ready for JSON; empty input yields zero-valued results.
"""

from __future__ import annotations

from collections import Counter
from datetime import date
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple, Type

from ..attendance.model import AttendanceSession
from ..cases.model import ClinicalCase
from ..common.datetime_utils import week_of_year
from ..core.enums import AgeGroup, ApprovalStatus
from ..leaves.model import LeaveRequest
from ..users.model import User

# (label, lower bound inclusive, upper bound exclusive); None means unbounded.
PROGRESS_BUCKETS: Tuple[Tuple[str, float, Optional[float]], ...] = (
    ("0-25%", 0, 25),
    ("25-50%", 25, 50),
    ("50-75%", 50, 75),
    ("75-100%", 75, 100),
    ("100%+", 100, None),
)


def _approved(case: ClinicalCase) -> bool:
    return case.status == ApprovalStatus.APPROVED


def case_summary(cases: Iterable[ClinicalCase]) -> dict:
    cases = list(cases)
    durations = [c.session_duration for c in cases if c.session_duration is not None]
    return {
        "total_cases": len(cases),
        "unique_patients": len({c.patient_info.initials for c in cases}),
        "approved_cases": sum(1 for c in cases if _approved(c)),
        "pending_cases": sum(1 for c in cases if c.status == ApprovalStatus.PENDING),
        "avg_session_duration": round(sum(durations) / len(durations), 1) if durations else 0,
    }


def by_age_group(cases: Iterable[ClinicalCase]) -> List[dict]:
    """Only age groups that occur, in their natural youngest-first order."""
    totals: Counter = Counter()
    approved: Counter = Counter()
    for c in cases:
        totals[c.patient_info.age_group] += 1
        if _approved(c):
            approved[c.patient_info.age_group] += 1
    return [
        {"age_group": group.value, "total_cases": totals[group], "approved_cases": approved[group]}
        for group in AgeGroup
        if totals[group]
    ]


def by_test_type(cases: Iterable[ClinicalCase]) -> List[dict]:
    rows: dict = {}
    for c in cases:
        for t in c.tests_performed:
            row = rows.setdefault(
                t.test_type, {"test_type": t.test_type.value, "total_count": 0, "completed_count": 0, "total_duration": 0}
            )
            row["total_count"] += 1
            row["completed_count"] += 1 if t.completed else 0
            row["total_duration"] += t.duration or 0
    return sorted(rows.values(), key=lambda r: (-r["total_count"], r["test_type"]))


def top_test_types(cases: Iterable[ClinicalCase], *, limit: Optional[int] = None) -> List[dict]:
    counts = Counter(t.test_type.value for c in cases for t in c.tests_performed)
    ordered = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    if limit is not None:
        ordered = ordered[:limit]
    return [{"test_type": name, "count": count} for name, count in ordered]


def daily_distribution(cases: Iterable[ClinicalCase]) -> List[dict]:
    counts = Counter(c.session_date for c in cases)
    return [{"date": day.isoformat(), "case_count": counts[day]} for day in sorted(counts)]


def weekly_distribution(cases: Iterable[ClinicalCase]) -> List[dict]:
    counts = Counter(week_of_year(c.session_date) for c in cases)
    return [{"week": week, "count": counts[week]} for week in sorted(counts)]


def status_counts(items: Iterable, status_enum: Type[Enum], *, attr: str = "status") -> dict:
    """Zero-filled ``{status value: count}`` over every member of ``status_enum``."""
    counts = Counter(getattr(item, attr) for item in items)
    return {member.value: counts[member] for member in status_enum}


def status_totals(items: Iterable, status_enum: Type[Enum]) -> dict:
    """``{"total": n}`` plus one snake_case key per status, e.g. ``revision_required``."""
    items = list(items)
    counts = status_counts(items, status_enum)
    totals = {"total": len(items)}
    totals.update((member.name.lower(), counts[member.value]) for member in status_enum)
    return totals


def by_status(cases: Iterable[ClinicalCase]) -> List[dict]:
    return [{"status": status, "count": count} for status, count in status_counts(cases, ApprovalStatus).items()]


def by_leave_type(leaves: Iterable[LeaveRequest]) -> List[dict]:
    counts: Counter = Counter()
    days: Counter = Counter()
    for leave in leaves:
        counts[leave.leave_type.value] += 1
        days[leave.leave_type.value] += leave.number_of_days
    return [
        {"leave_type": name, "count": counts[name], "total_days": days[name]}
        for name in sorted(counts, key=lambda n: (-counts[n], n))
    ]


def attendance_summary(sessions: Iterable[AttendanceSession]) -> dict:
    closed = [s for s in sessions if not s.is_open]
    total = sum(s.net_hours for s in closed)
    return {
        "total_sessions": len(closed),
        "total_hours": round(total, 2),
        "avg_session_hours": round(total / len(closed), 2) if closed else 0,
    }


def count_between(cases: Iterable[ClinicalCase], start: date, end: date) -> int:
    return sum(1 for c in cases if start <= c.session_date <= end)


def progress_buckets(students: Iterable[User]) -> List[dict]:
    """Students with a non-zero target, bucketed by completion percentage (uncapped)."""
    counts = Counter()
    for s in students:
        if not s.total_allotted_hours:
            continue
        pct = s.completed_hours / s.total_allotted_hours * 100
        for label, low, high in PROGRESS_BUCKETS:
            if pct >= low and (high is None or pct < high):
                counts[label] += 1
                break
    return [{"range": label, "count": counts[label]} for label, _, _ in PROGRESS_BUCKETS]


def average_progress(students: Iterable[User]) -> dict:
    tracked = [s for s in students if s.total_allotted_hours > 0]
    if not tracked:
        return {"percentage": 0, "total_completed_hours": 0, "total_allotted_hours": 0}
    avg = sum(s.completed_hours / s.total_allotted_hours * 100 for s in tracked) / len(tracked)
    return {
        "percentage": round(avg),
        "total_completed_hours": round(sum(s.completed_hours for s in tracked), 2),
        "total_allotted_hours": round(sum(s.total_allotted_hours for s in tracked), 2),
    }


def monthly_counts(cases: Iterable[ClinicalCase], months: Sequence[Tuple[int, int]]) -> List[dict]:
    """Case submissions per (year, month), keyed by creation time, zero-filled for ``months``."""
    counts: Counter = Counter()
    for c in cases:
        created = c.created_at.date() if c.created_at else c.session_date
        counts[(created.year, created.month)] += 1
    return [{"year": y, "month": m, "count": counts[(y, m)]} for y, m in months]
