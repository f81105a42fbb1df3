from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from typing import Optional

import pytest

from src.clinical_hours.clinical_hours.attendance.model import AttendanceSession, SessionClose
from src.clinical_hours.clinical_hours.cases.model import ClinicalCase
from src.clinical_hours.clinical_hours.cases.repository import CaseNumberTaken
from src.clinical_hours.clinical_hours.container import build_services
from src.clinical_hours.clinical_hours.core.enums import AccrualKind, ACTIVE_LEAVE_STATUSES, Location, LeaveStatus, Role
from src.clinical_hours.clinical_hours.core.exceptions import ConflictError, PersistenceError
from src.clinical_hours.clinical_hours.hours.model import HourAccrual
from src.clinical_hours.clinical_hours.leaves.model import LeaveRequest
from src.clinical_hours.clinical_hours.users.model import Actor, User

def _window(rows, window):
    rows = list(rows)
    if window is None:
        return rows
    return rows[window.offset : window.offset + window.limit]


STUDENT_ID = 1
OTHER_STUDENT_ID = 2
SUPERVISOR_ID = 10
ADMIN_ID = 20


class InMemoryUsers:
    def __init__(self, users=()):
        self._users: dict[int, User] = {u.user_id: u for u in users}

    def add(self, user: User) -> User:
        self._users[user.user_id] = user
        return user

    def credit(self, user_id: int, hours: float) -> None:
        user = self._users[user_id]
        self._users[user_id] = replace(user, completed_hours=max(0.0, user.completed_hours + hours))

    def set_completed(self, user_id: int, hours: float) -> None:
        self._users[user_id] = replace(self._users[user_id], completed_hours=hours)

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self._users.get(int(user_id))

    def list_students(self, *, batch=None, semester=None, search=None, supervisor_id=None, active_only=True):
        found = []
        for u in sorted(self._users.values(), key=lambda u: u.name):
            if u.role != Role.STUDENT:
                continue
            if active_only and not u.is_active:
                continue
            if batch and u.batch != batch:
                continue
            if semester and u.semester != semester:
                continue
            if supervisor_id and u.supervisor_id != supervisor_id:
                continue
            if search and search.lower() not in f"{u.name} {u.email} {u.registration_number or ''}".lower():
                continue
            found.append(u)
        return found

    def update_profile(self, user_id: int, *, changes: dict) -> bool:
        if user_id not in self._users:
            return False
        self._users[user_id] = replace(self._users[user_id], **changes)
        return True

    def set_supervisor(self, user_id: int, *, supervisor_id: int) -> bool:
        return self.update_profile(user_id, changes={"supervisor_id": supervisor_id})

    def set_allotted_hours(self, user_id: int, *, hours: float) -> bool:
        return self.update_profile(user_id, changes={"total_allotted_hours": hours})

    def set_active(self, user_id: int, *, is_active: bool) -> bool:
        return self.update_profile(user_id, changes={"is_active": is_active})


class InMemoryLedger:
    def __init__(self, users: InMemoryUsers):
        self._users = users
        self.entries: list[HourAccrual] = []

    def _append(self, **fields) -> int:
        accrual_id = len(self.entries) + 1
        self.entries.append(HourAccrual(accrual_id=accrual_id, **fields))
        self._users.credit(fields["student_id"], fields["hours"])
        return accrual_id

    def has_session(self, session_id: int) -> bool:
        return any(e.session_id == session_id for e in self.entries)

    def append_session(self, *, student_id: int, session_id: int, hours: float, created_at: datetime) -> int:
        return self._append(
            student_id=student_id, hours=hours, kind=AccrualKind.SESSION, created_at=created_at, session_id=session_id
        )

    def list_for_student(self, student_id: int):
        mine = [e for e in self.entries if e.student_id == student_id]
        return sorted(mine, key=lambda e: (e.created_at, e.accrual_id), reverse=True)

    def append_adjustment(self, *, student_id, hours, created_by, created_at, note=None) -> int:
        return self._append(
            student_id=student_id,
            hours=hours,
            kind=AccrualKind.ADJUSTMENT,
            created_at=created_at,
            created_by=created_by,
            note=note,
        )

    def rematerialize(self, student_id: int) -> float:
        total = max(0.0, sum(e.hours for e in self.entries if e.student_id == student_id))
        self._users.set_completed(student_id, total)
        return total


class InMemoryAttendance:
    """Attendance store whose close step can be told to fail before or after applying."""

    def __init__(self, ledger: InMemoryLedger):
        self._ledger = ledger
        self._sessions: dict[int, AttendanceSession] = {}
        self._id = 0
        self.fail_before_apply = 0
        self.fail_after_apply = 0
        self.close_calls = 0

    def add(self, session: AttendanceSession) -> AttendanceSession:
        self._id = max(self._id, session.session_id)
        self._sessions[session.session_id] = session
        return session

    def get_by_id(self, session_id: int) -> Optional[AttendanceSession]:
        return self._sessions.get(int(session_id))

    def get_open_for_student(self, student_id: int) -> Optional[AttendanceSession]:
        return next((s for s in self._sessions.values() if s.student_id == student_id and s.is_open), None)

    def get_for_student_and_date(self, student_id: int, day: date) -> Optional[AttendanceSession]:
        return next((s for s in self._sessions.values() if s.student_id == student_id and s.date == day), None)

    def create_checkin(self, *, student_id, day, time_in, location=Location.MAIN_CLINIC, supervisor_id=None) -> int:
        if self.get_for_student_and_date(student_id, day):
            raise ConflictError("You have already checked in today")
        self._id += 1
        self._sessions[self._id] = AttendanceSession(
            session_id=self._id,
            student_id=student_id,
            date=day,
            time_in=time_in,
            location=location,
            supervisor_id=supervisor_id,
        )
        return self._id

    def close_session_and_accrue(self, close: SessionClose, *, accrued_at: datetime) -> bool:
        self.close_calls += 1
        if self.fail_before_apply:
            self.fail_before_apply -= 1
            raise PersistenceError("connection lost")

        session = self._sessions.get(close.session_id)
        if not session:
            return False
        if session.is_open:
            self._sessions[close.session_id] = replace(
                session,
                time_out=close.time_out,
                break_minutes=close.break_minutes,
                notes=close.notes,
                is_manual_entry=close.is_manual_entry,
            )
        if not self._ledger.has_session(close.session_id):
            self._ledger.append_session(
                student_id=close.student_id, session_id=close.session_id, hours=close.net_hours, created_at=accrued_at
            )

        if self.fail_after_apply:
            self.fail_after_apply -= 1
            raise PersistenceError("commit acknowledgement lost")
        return True

    def mark_verified(self, *, session_id, supervisor_id, verified_at) -> bool:
        session = self._sessions.get(session_id)
        if not session:
            return False
        self._sessions[session_id] = replace(
            session, supervisor_verified=True, supervisor_id=supervisor_id, verified_at=verified_at
        )
        return True

    def list_for_student(self, *, student_id, start=None, end=None, closed_only=False, window=None):
        found = [
            s
            for s in self._sessions.values()
            if (student_id is None or s.student_id == student_id)
            and (start is None or s.date >= start)
            and (end is None or s.date <= end)
            and not (closed_only and s.is_open)
        ]
        return _window(sorted(found, key=lambda s: (s.date, s.time_in), reverse=True), window)

    def count_for_student(self, *, student_id, start=None, end=None, closed_only=False) -> int:
        return len(self.list_for_student(student_id=student_id, start=start, end=end, closed_only=closed_only))


class InMemoryLeaves:
    def __init__(self):
        self._requests: dict[int, LeaveRequest] = {}
        self._id = 0

    def get_by_id(self, request_id: int) -> Optional[LeaveRequest]:
        return self._requests.get(int(request_id))

    def list_active_for_student(self, student_id: int, *, exclude_request_id=None):
        return [
            r
            for r in self._requests.values()
            if r.student_id == student_id and r.status in ACTIVE_LEAVE_STATUSES and r.request_id != exclude_request_id
        ]

    def list_requests(self, *, student_id=None, status=None, window=None):
        found = [
            r
            for r in self._requests.values()
            if (student_id is None or r.student_id == student_id) and (status is None or r.status == status)
        ]
        return _window(sorted(found, key=lambda r: (r.created_at, r.request_id), reverse=True), window)

    def count_requests(self, *, student_id=None, status=None) -> int:
        return len(self.list_requests(student_id=student_id, status=status))

    def create(self, *, student_id, leave_type, start_date, end_date, reason, is_emergency, supporting_documents, created_by, created_at) -> int:
        self._id += 1
        self._requests[self._id] = LeaveRequest(
            request_id=self._id,
            student_id=student_id,
            leave_type=leave_type,
            start_date=start_date,
            end_date=end_date,
            reason=reason,
            status=LeaveStatus.PENDING,
            created_at=created_at,
            created_by=created_by,
            is_emergency=is_emergency,
            supporting_documents=tuple(supporting_documents),
        )
        return self._id

    def update_fields(self, request_id: int, *, changes: dict, expected=None) -> bool:
        leave = self._requests.get(request_id)
        if not leave or (expected is not None and leave.status != expected):
            return False
        self._requests[request_id] = replace(self._requests[request_id], **changes)
        return True

    def set_status(self, request_id, *, status, expected, reviewed_by=None, reviewed_at=None, review_comments=None) -> bool:
        leave = self._requests.get(request_id)
        if not leave or leave.status not in set(expected):
            return False
        changes = {"status": status}
        if reviewed_by is not None:
            changes.update(reviewed_by=reviewed_by, reviewed_at=reviewed_at, review_comments=review_comments)
        self._requests[request_id] = replace(leave, **changes)
        return True


class InMemoryCases:
    def __init__(self):
        self._cases: dict[int, ClinicalCase] = {}
        self._id = 0

    def get_by_id(self, case_id: int) -> Optional[ClinicalCase]:
        return self._cases.get(int(case_id))

    def list_cases(self, *, student_id=None, status=None, age_group=None, test_type=None, start=None, end=None, window=None):
        found = [
            c
            for c in self._cases.values()
            if (student_id is None or c.student_id == student_id)
            and (status is None or c.status == status)
            and (age_group is None or c.patient_info.age_group == age_group)
            and (test_type is None or any(t.test_type == test_type for t in c.tests_performed))
            and (start is None or c.session_date >= start)
            and (end is None or c.session_date <= end)
        ]
        return _window(sorted(found, key=lambda c: (c.session_date, c.case_id), reverse=True), window)

    def count_cases(self, **filters) -> int:
        return len(self.list_cases(**filters))

    def create(self, draft: ClinicalCase) -> int:
        if any(c.case_number == draft.case_number for c in self._cases.values()):
            raise CaseNumberTaken(f"Case number {draft.case_number} already exists")
        self._id += 1
        self._cases[self._id] = replace(draft, case_id=self._id)
        return self._id

    def update_fields(self, case_id: int, *, changes: dict, unless_status=None) -> bool:
        case = self._cases.get(case_id)
        if not case or (unless_status is not None and case.status == unless_status):
            return False
        self._cases[case_id] = replace(self._cases[case_id], **changes)
        return True

    def apply_review(self, case_id, *, expected, status, reviewed_at, comments, supervisor_id, is_completed) -> bool:
        case = self._cases.get(case_id)
        if not case or case.status != expected:
            return False
        self._cases[case_id] = replace(
            case,
            approval=replace(case.approval, status=status, reviewed_at=reviewed_at, comments=comments),
            supervisor_id=supervisor_id,
            is_completed=is_completed,
        )
        return True

    def delete(self, case_id: int) -> bool:
        return self._cases.pop(case_id, None) is not None


class InMemoryCounter:
    def __init__(self):
        self.values: dict[str, int] = {}

    def next_sequence(self, period: str) -> int:
        self.values[period] = self.values.get(period, 0) + 1
        return self.values[period]


@pytest.fixture
def fixed_now():
    # Tuesday
    return datetime(2026, 4, 14, 9, 0, 0)


@pytest.fixture
def student():
    return Actor(user_id=STUDENT_ID, role=Role.STUDENT)


@pytest.fixture
def other_student():
    return Actor(user_id=OTHER_STUDENT_ID, role=Role.STUDENT)


@pytest.fixture
def supervisor():
    return Actor(user_id=SUPERVISOR_ID, role=Role.SUPERVISOR)


@pytest.fixture
def admin():
    return Actor(user_id=ADMIN_ID, role=Role.ADMIN)


@pytest.fixture
def users():
    return InMemoryUsers(
        [
            User(
                user_id=STUDENT_ID,
                name="Asha Rao",
                email="asha@srish.edu.in",
                role=Role.STUDENT,
                supervisor_id=SUPERVISOR_ID,
                batch="2024",
                semester=3,
                registration_number="AUD-001",
            ),
            User(
                user_id=OTHER_STUDENT_ID,
                name="Vikram Nair",
                email="vikram@srish.edu.in",
                role=Role.STUDENT,
                batch="2025",
                semester=1,
                registration_number="AUD-002",
            ),
            User(user_id=SUPERVISOR_ID, name="Dr. Professor", email="professor@srish.edu.in", role=Role.SUPERVISOR),
            User(user_id=ADMIN_ID, name="Clinic Admin", email="admin@srish.edu.in", role=Role.ADMIN),
        ]
    )


@pytest.fixture
def ledger(users):
    return InMemoryLedger(users)


@pytest.fixture
def attendance_repo(ledger):
    return InMemoryAttendance(ledger)


@pytest.fixture
def leave_repo():
    return InMemoryLeaves()


@pytest.fixture
def case_repo():
    return InMemoryCases()


@pytest.fixture
def counter():
    return InMemoryCounter()


@pytest.fixture
def services(users, ledger, attendance_repo, leave_repo, case_repo, counter):
    return build_services(
        users=users,
        attendance=attendance_repo,
        ledger=ledger,
        leaves=leave_repo,
        cases=case_repo,
        case_counter=counter,
    )
