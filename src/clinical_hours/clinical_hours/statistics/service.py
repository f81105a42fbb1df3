from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional

from ..attendance.model import AttendanceSession
from ..attendance.repository import AttendanceRepository
from ..attendance.service import summarize_month
from ..cases.model import ClinicalCase
from ..cases.repository import CaseRepository
from ..common.datetime_utils import month_bounds, now_local, shift_months, week_bounds
from ..common.pagination import Page, PageRequest, page_of
from ..common.validators import optional_date, require_date_range, require_int_range
from ..core.constants import (
    DASHBOARD_RECENT_LIMIT,
    PENDING_PAGE_SIZE,
    PENDING_PREVIEW_LIMIT,
    PROGRESS_MONTHS,
    STUDENT_DETAIL_CASES,
    STUDENT_DETAIL_LEAVES,
    STUDENT_DETAIL_SESSIONS,
    TOP_TEST_TYPES,
)
from ..core.enums import ApprovalStatus, LeaveStatus, Role
from ..core.exceptions import NotFoundError, ValidationError
from ..leaves.model import LeaveRequest
from ..leaves.repository import LeaveRepository
from ..users.access import require_reviewer, resolve_student_scope
from ..users.model import Actor, User
from ..users.repository import UserRepository
from . import aggregation


def _student_brief(user: User) -> dict:
    return {
        "user_id": user.user_id,
        "name": user.name,
        "email": user.email,
        "batch": user.batch,
        "semester": user.semester,
        "completed_hours": user.completed_hours,
        "total_allotted_hours": user.total_allotted_hours,
        "hours_completion_percentage": user.hours_completion_percentage,
    }


def _case_brief(case: ClinicalCase) -> dict:
    return {
        "case_id": case.case_id,
        "case_number": case.case_number,
        "student_id": case.student_id,
        "patient_initials": case.patient_info.initials,
        "age_group": case.patient_info.age_group.value,
        "session_date": case.session_date.isoformat(),
        "tests": [t.test_type.value for t in case.tests_performed],
        "created_at": case.created_at.isoformat() if case.created_at else None,
    }


def _leave_brief(leave: LeaveRequest) -> dict:
    return {
        "request_id": leave.request_id,
        "student_id": leave.student_id,
        "leave_type": leave.leave_type.value,
        "start_date": leave.start_date.isoformat(),
        "end_date": leave.end_date.isoformat(),
        "number_of_days": leave.number_of_days,
        "reason": leave.reason,
        "created_at": leave.created_at.isoformat(),
    }


def _session_brief(session: AttendanceSession) -> dict:
    return {
        "session_id": session.session_id,
        "date": session.date.isoformat(),
        "time_in": session.time_in.isoformat(),
        "time_out": session.time_out.isoformat() if session.time_out else None,
        "location": session.location.value,
        "net_hours": round(session.net_hours, 2),
        "supervisor_verified": session.supervisor_verified,
    }


def _hours_progress(user: User) -> dict:
    return {
        "completed_hours": user.completed_hours,
        "total_allotted_hours": user.total_allotted_hours,
        "percentage": user.hours_completion_percentage,
        "remaining_hours": user.remaining_hours,
    }


def _created_on(case: ClinicalCase, day: date) -> bool:
    return (case.created_at.date() if case.created_at else case.session_date) == day


class StatisticsService:
    """Read-only reports over cases, attendance, leaves and students."""

    def __init__(
        self,
        cases: CaseRepository,
        attendance: AttendanceRepository,
        leaves: LeaveRepository,
        users: UserRepository,
    ):
        self._cases = cases
        self._attendance = attendance
        self._leaves = leaves
        self._users = users

    def weekly_report(
        self,
        actor: Actor,
        *,
        start_date=None,
        end_date=None,
        student_id: Optional[int] = None,
        now: datetime | None = None,
    ) -> dict:
        now = now or now_local()
        start = optional_date(start_date, "Start date") or week_bounds(now.date())[0]
        end = optional_date(end_date, "End date") or start + timedelta(days=6)
        require_date_range(start, end)
        scoped = resolve_student_scope(actor, student_id)

        cases = self._cases.list_cases(student_id=scoped, start=start, end=end)
        sessions = self._attendance.list_for_student(student_id=scoped, start=start, end=end, closed_only=True)

        return {
            "period": {"start_date": start.isoformat(), "end_date": end.isoformat()},
            "summary": aggregation.case_summary(cases),
            "by_age_group": aggregation.by_age_group(cases),
            "by_test_type": aggregation.by_test_type(cases),
            "daily_distribution": aggregation.daily_distribution(cases),
            "attendance": aggregation.attendance_summary(sessions),
        }

    def monthly_report(
        self,
        actor: Actor,
        *,
        year=None,
        month=None,
        student_id: Optional[int] = None,
        now: datetime | None = None,
    ) -> dict:
        now = now or now_local()
        year = require_int_range(year, "Year", 1900, 9999) if year else now.year
        month = require_int_range(month, "Month", 1, 12) if month else now.month
        start, end = month_bounds(year, month)
        scoped = resolve_student_scope(actor, student_id)

        cases = self._cases.list_cases(student_id=scoped, start=start, end=end)
        leaves = [
            r
            for r in self._leaves.list_requests(student_id=scoped)
            if start <= r.start_date <= end
        ]
        durations = [c.session_duration for c in cases if c.session_duration is not None]

        return {
            "period": {"year": year, "month": month, "start_date": start.isoformat(), "end_date": end.isoformat()},
            "summary": {
                "total_cases": len(cases),
                "approved_cases": sum(1 for c in cases if c.status == ApprovalStatus.APPROVED),
                "total_session_hours": round(sum(durations) / 60, 2),
            },
            "by_age_group": aggregation.by_age_group(cases),
            "by_test_type": aggregation.by_test_type(cases),
            "by_leave_type": aggregation.by_leave_type(leaves),
            "by_status": aggregation.by_status(cases),
            "weekly_distribution": aggregation.weekly_distribution(cases),
        }

    def dashboard(self, actor: Actor, *, student_id: Optional[int] = None, now: datetime | None = None) -> dict:
        now = now or now_local()
        today = now.date()
        scoped = resolve_student_scope(actor, student_id)
        if scoped is None and actor.role == Role.SUPERVISOR:
            raise ValidationError("Student ID is required")

        stats: dict = {}
        if scoped is not None:
            student = self._users.get_by_id(scoped)
            if not student or student.role != Role.STUDENT:
                raise NotFoundError("Student not found")

            cases = self._cases.list_cases(student_id=scoped)
            month_start, month_end = month_bounds(today.year, today.month)
            week_start, week_end = week_bounds(today)
            sessions = self._attendance.list_for_student(
                student_id=scoped, start=month_start, end=month_end, closed_only=True
            )
            month = summarize_month(sessions, year=today.year, month=today.month)

            stats = {
                "clinical_cases": {
                    "total": len(cases),
                    "this_month": aggregation.count_between(cases, month_start, month_end),
                    "this_week": aggregation.count_between(cases, week_start, week_end),
                    "pending": sum(1 for c in cases if c.status == ApprovalStatus.PENDING),
                },
                "test_distribution": aggregation.top_test_types(cases, limit=TOP_TEST_TYPES),
                "attendance": {
                    "days_this_month": month.total_days,
                    "hours_this_month": round(month.total_hours, 2),
                },
                "hours": _hours_progress(student),
            }

        if not actor.is_student:
            stats["global_stats"] = {
                "pending_reviews": self._cases.count_cases(status=ApprovalStatus.PENDING),
                "today_cases": self._cases.count_cases(start=today, end=today),
            }
        return stats

    def supervisor_overview(self, actor: Actor, *, now: datetime | None = None) -> dict:
        require_reviewer(actor)
        now = now or now_local()
        today = now.date()
        month_start, month_end = month_bounds(today.year, today.month)

        students = list(self._users.list_students(active_only=True))
        cases = self._cases.list_cases()
        leaves = self._leaves.list_requests()

        case_counts = aggregation.status_counts(cases, ApprovalStatus)
        leave_counts = aggregation.status_counts(leaves, LeaveStatus)

        pending_cases = sorted(
            (c for c in cases if c.status == ApprovalStatus.PENDING),
            key=lambda c: (c.created_at or datetime.min, c.case_id),
            reverse=True,
        )
        pending_leaves = [r for r in leaves if r.status == LeaveStatus.PENDING]
        top = sorted(students, key=lambda s: (-s.completed_hours, s.user_id))[:DASHBOARD_RECENT_LIMIT]

        return {
            "students": {
                "total": len(students),
                "by_batch": _grouped(students, lambda s: s.batch, reverse=True),
                "by_semester": _grouped(students, lambda s: s.semester),
            },
            "clinical_cases": {
                "total": len(cases),
                "pending": case_counts[ApprovalStatus.PENDING.value],
                "approved": case_counts[ApprovalStatus.APPROVED.value],
                "rejected": case_counts[ApprovalStatus.REJECTED.value],
                "revision_required": case_counts[ApprovalStatus.REVISION_REQUIRED.value],
                "this_month": aggregation.count_between(cases, month_start, month_end),
                "today": sum(1 for c in cases if _created_on(c, today)),
            },
            "leave_requests": {
                "total": len(leaves),
                "pending": leave_counts[LeaveStatus.PENDING.value],
                "approved": leave_counts[LeaveStatus.APPROVED.value],
                "rejected": leave_counts[LeaveStatus.REJECTED.value],
                "cancelled": leave_counts[LeaveStatus.CANCELLED.value],
            },
            "top_students": [_student_brief(s) for s in top],
            "recent_pending_cases": [_case_brief(c) for c in pending_cases[:DASHBOARD_RECENT_LIMIT]],
            "recent_pending_leaves": [_leave_brief(r) for r in pending_leaves[:DASHBOARD_RECENT_LIMIT]],
            "average_progress": aggregation.average_progress(students),
        }

    def progress_analytics(
        self,
        actor: Actor,
        *,
        batch: Optional[str] = None,
        semester=None,
        now: datetime | None = None,
    ) -> dict:
        require_reviewer(actor)
        now = now or now_local()
        semester = require_int_range(semester, "Semester", 1, 8) if semester else None

        students = list(self._users.list_students(batch=batch or None, semester=semester, active_only=True))
        student_ids = {s.user_id for s in students}

        first_month = shift_months(now.date().replace(day=1), -(PROGRESS_MONTHS - 1))
        months = [
            (d.year, d.month) for d in (shift_months(first_month, i) for i in range(PROGRESS_MONTHS))
        ]
        recent_cases = [
            c
            for c in self._cases.list_cases()
            if c.student_id in student_ids
            and (c.created_at.date() if c.created_at else c.session_date) >= first_month
        ]

        return {
            "progress_distribution": aggregation.progress_buckets(students),
            "monthly_cases": aggregation.monthly_counts(recent_cases, months),
        }

    def student_details(
        self,
        actor: Actor,
        student_id: int,
        *,
        cases_limit=None,
        sessions_limit=None,
        now: datetime | None = None,
    ) -> dict:
        """Everything a reviewer needs on one student's page."""
        require_reviewer(actor)
        now = now or now_local()
        student = self._users.get_by_id(int(student_id))
        if not student or student.role != Role.STUDENT:
            raise NotFoundError("Student not found")

        recent_cases = PageRequest.of(1, cases_limit, default_limit=STUDENT_DETAIL_CASES)
        recent_sessions = PageRequest.of(1, sessions_limit, default_limit=STUDENT_DETAIL_SESSIONS)

        cases = self._cases.list_cases(student_id=student.user_id)
        leaves = self._leaves.list_requests(student_id=student.user_id)
        sessions = self._attendance.list_for_student(student_id=student.user_id, window=recent_sessions)
        month_start, month_end = month_bounds(now.year, now.month)
        month = summarize_month(
            self._attendance.list_for_student(
                student_id=student.user_id, start=month_start, end=month_end, closed_only=True
            ),
            year=now.year,
            month=now.month,
        )

        return {
            "student": {**_student_brief(student), "supervisor_id": student.supervisor_id},
            "clinical_cases": {
                "recent": [_case_brief(c) for c in cases[: recent_cases.limit]],
                "stats": aggregation.status_totals(cases, ApprovalStatus),
            },
            "attendance": {
                "recent": [_session_brief(s) for s in sessions],
                "summary": {
                    "year": month.year,
                    "month": month.month,
                    "total_days": month.total_days,
                    "total_hours": round(month.total_hours, 2),
                },
            },
            "leave_requests": {
                "recent": [_leave_brief(r) for r in leaves[:STUDENT_DETAIL_LEAVES]],
                "stats": aggregation.status_totals(leaves, LeaveStatus),
            },
            "test_distribution": aggregation.top_test_types(cases),
        }

    def pending_items(self, actor: Actor, *, kind: Optional[str] = None, page=None, limit=None) -> dict:
        """Review queue of Pending cases and leaves.

        Without ``kind`` both queues are previewed; with it that queue alone is paged.
        """
        require_reviewer(actor)
        kind = (kind or "").strip().lower() or None
        if kind not in (None, "cases", "leaves"):
            raise ValidationError("type must be 'cases' or 'leaves'")

        request = PageRequest.of(page, limit, default_limit=PENDING_PAGE_SIZE)
        window = request if kind else PageRequest(page=1, limit=PENDING_PREVIEW_LIMIT)
        queues: dict = {}

        if kind in (None, "cases"):
            cases = self._cases.list_cases(status=ApprovalStatus.PENDING, window=window)
            total = self._cases.count_cases(status=ApprovalStatus.PENDING)
            queues["cases"] = self._queue(page_of(cases, total=total, request=window), _case_brief)
        if kind in (None, "leaves"):
            leaves = self._leaves.list_requests(status=LeaveStatus.PENDING, window=window)
            total = self._leaves.count_requests(status=LeaveStatus.PENDING)
            queues["leaves"] = self._queue(page_of(leaves, total=total, request=window), _leave_brief)
        return queues

    def _queue(self, page: Page, brief) -> dict:
        names: dict = {}
        items = []
        for item in page.items:
            if item.student_id not in names:
                student = self._users.get_by_id(item.student_id)
                names[item.student_id] = student.name if student else None
            items.append({**brief(item), "student_name": names[item.student_id]})
        return {"items": items, "total": page.total, "page": page.page, "pages": page.pages}


def _grouped(students, key, *, reverse: bool = False) -> list[dict]:
    counts: dict = {}
    for s in students:
        counts[key(s)] = counts.get(key(s), 0) + 1
    ordered = sorted((k for k in counts if k is not None), reverse=reverse)
    if None in counts:
        ordered.append(None)
    return [{"value": k, "count": counts[k]} for k in ordered]
