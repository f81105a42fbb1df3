from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional

from ..common.datetime_utils import month_bounds, now_local, to_local_naive
from ..common.pagination import Page, PageRequest, page_of
from ..common.validators import optional_text, require_enum, require_int_range
from ..core.constants import DEFAULT_ATTENDANCE_PAGE_SIZE, HOURS_RETRY_ATTEMPTS, SESSION_NOTES_MAX
from ..core.enums import Location, Role
from ..core.exceptions import ConflictError, NotFoundError, PersistenceError, ValidationError
from ..users.access import ensure_can_view, require_reviewer, require_role, resolve_student_scope
from ..users.model import Actor
from ..users.repository import UserRepository
from .hours import HoursCalculator, StandardHoursCalculator
from .model import AttendanceSession, MonthlySummary, SessionClose, TodayStatus
from .repository import AttendanceRepository

MAX_BREAK_MINUTES = 24 * 60


def summarize_month(sessions: Iterable[AttendanceSession], *, year: int, month: int) -> MonthlySummary:
    """Closed sessions dated inside the month: day count and summed net hours."""
    start, end = month_bounds(year, month)
    closed = [s for s in sessions if not s.is_open and start <= s.date <= end]
    return MonthlySummary(
        year=int(year),
        month=int(month),
        total_days=len(closed),
        total_hours=sum(s.net_hours for s in closed),
    )


class AttendanceService:
    """Time session ledger: check-in/check-out and the hours they accrue."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        users: UserRepository,
        *,
        calculator: HoursCalculator | None = None,
        retry_attempts: int = HOURS_RETRY_ATTEMPTS,
    ):
        self._attendance = attendance
        self._users = users
        self._calculator = calculator or StandardHoursCalculator()
        self._retry_attempts = max(1, int(retry_attempts))

    def check_in(self, actor: Actor, *, location: Location | str | None = None, now: datetime | None = None) -> AttendanceSession:
        require_role(actor, Role.STUDENT, message="Only students can check in")
        now = now or now_local()
        today = now.date()
        location = require_enum(Location, location or Location.MAIN_CLINIC, "location")

        student = self._users.get_by_id(actor.user_id)
        if not student:
            raise NotFoundError("Student not found")

        if self._attendance.get_open_for_student(student.user_id):
            raise ConflictError("You are already checked in. Please check out first.")
        if self._attendance.get_for_student_and_date(student.user_id, today):
            raise ConflictError("You have already checked in today")

        session_id = self._attendance.create_checkin(
            student_id=student.user_id,
            day=today,
            time_in=now,
            location=location,
            supervisor_id=student.supervisor_id,
        )
        return AttendanceSession(
            session_id=session_id,
            student_id=student.user_id,
            date=today,
            time_in=now,
            location=location,
            supervisor_id=student.supervisor_id,
        )

    def check_out(
        self,
        actor: Actor,
        *,
        break_minutes: int | str | None = 0,
        notes: Optional[str] = None,
        now: datetime | None = None,
    ) -> AttendanceSession:
        require_role(actor, Role.STUDENT, message="Only students can check out")
        now = now or now_local()
        breaks = self._parse_break(break_minutes)
        notes = optional_text(notes, "Notes", SESSION_NOTES_MAX)

        session = self._attendance.get_for_student_and_date(actor.user_id, now.date())
        if not session or not session.is_open:
            raise NotFoundError("No active check-in record found for today")

        return self._close(session, time_out=now, break_minutes=breaks, notes=notes, manual=False)

    def close_stale_session(
        self,
        actor: Actor,
        *,
        session_id: int,
        time_out: datetime,
        break_minutes: int | str | None = 0,
        notes: Optional[str] = None,
        now: datetime | None = None,
    ) -> AttendanceSession:
        """Admin correction for a session that was never checked out."""
        require_role(actor, Role.ADMIN)
        now = now or now_local()
        breaks = self._parse_break(break_minutes)
        notes = optional_text(notes, "Notes", SESSION_NOTES_MAX)

        session = self._attendance.get_by_id(int(session_id))
        if not session:
            raise NotFoundError("Attendance record not found")
        if not session.is_open:
            raise ConflictError("This session is already checked out")
        time_out = to_local_naive(time_out)
        if time_out > now:
            raise ValidationError("Check-out time cannot be in the future")

        return self._close(session, time_out=time_out, break_minutes=breaks, notes=notes, manual=True)

    def _close(
        self,
        session: AttendanceSession,
        *,
        time_out: datetime,
        break_minutes: int,
        notes: Optional[str],
        manual: bool,
    ) -> AttendanceSession:
        if time_out <= session.time_in:
            raise ValidationError("Check-out time must be after check-in time")

        hours = self._calculator.session_hours(time_in=session.time_in, time_out=time_out, break_minutes=break_minutes)
        close = SessionClose(
            session_id=session.session_id,
            student_id=session.student_id,
            time_out=time_out,
            break_minutes=break_minutes,
            net_hours=hours,
            notes=notes,
            is_manual_entry=manual,
        )
        self._close_with_retry(close, accrued_at=time_out)

        closed = self._attendance.get_by_id(session.session_id)
        if not closed:
            raise NotFoundError("Attendance record not found")
        return closed

    def _close_with_retry(self, close: SessionClose, *, accrued_at: datetime) -> None:
        # Safe to repeat: the repository call is atomic and keyed by session id.
        last_error: PersistenceError | None = None
        for _ in range(self._retry_attempts):
            try:
                applied = self._attendance.close_session_and_accrue(close, accrued_at=accrued_at)
            except PersistenceError as exc:
                last_error = exc
                continue
            if not applied:
                raise NotFoundError("Attendance record not found")
            return
        raise PersistenceError("Could not record the session hours, please try again") from last_error

    @staticmethod
    def _parse_break(value) -> int:
        if value in (None, ""):
            return 0
        return require_int_range(value, "Break duration", 0, MAX_BREAK_MINUTES)

    def today_status(self, actor: Actor, *, now: datetime | None = None) -> TodayStatus:
        now = now or now_local()
        open_session = self._attendance.get_open_for_student(actor.user_id)
        today_session = self._attendance.get_for_student_and_date(actor.user_id, now.date())

        return TodayStatus(
            is_checked_in=open_session is not None,
            is_checked_out=bool(today_session and not today_session.is_open),
            session=open_session or today_session,
        )

    def monthly_summary(
        self,
        actor: Actor,
        *,
        year: int,
        month: int,
        student_id: Optional[int] = None,
    ) -> MonthlySummary:
        scoped = resolve_student_scope(actor, student_id)
        if scoped is None:
            raise ValidationError("Student ID is required")
        try:
            start, end = month_bounds(year, month)
        except ValueError as exc:
            raise ValidationError(str(exc))

        sessions = self._attendance.list_for_student(student_id=scoped, start=start, end=end, closed_only=True)
        return summarize_month(sessions, year=year, month=month)

    def list_sessions(
        self,
        actor: Actor,
        *,
        student_id: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        page=None,
        limit=None,
    ) -> Page[AttendanceSession]:
        scoped = resolve_student_scope(actor, student_id)
        if start and end and end < start:
            raise ValidationError("End date must be after or equal to start date")

        request = PageRequest.of(page, limit, default_limit=DEFAULT_ATTENDANCE_PAGE_SIZE)
        sessions = self._attendance.list_for_student(student_id=scoped, start=start, end=end, window=request)
        total = self._attendance.count_for_student(student_id=scoped, start=start, end=end)
        return page_of(sessions, total=total, request=request)

    def get(self, actor: Actor, session_id: int) -> AttendanceSession:
        session = self._attendance.get_by_id(int(session_id))
        if not session:
            raise NotFoundError("Attendance record not found")
        ensure_can_view(actor, session.student_id, "attendance record")
        return session

    def verify(self, actor: Actor, *, session_id: int, now: datetime | None = None) -> AttendanceSession:
        require_reviewer(actor)
        now = now or now_local()

        session = self._attendance.get_by_id(int(session_id))
        if not session:
            raise NotFoundError("Attendance record not found")
        if session.is_open:
            raise ConflictError("An open session cannot be verified")

        self._attendance.mark_verified(session_id=session.session_id, supervisor_id=int(actor.user_id), verified_at=now)
        return self._attendance.get_by_id(session.session_id) or session
