from __future__ import annotations

from datetime import timedelta

import pytest

from src.clinical_hours.clinical_hours.core.enums import AccrualKind
from src.clinical_hours.clinical_hours.core.exceptions import AuthorizationError, NotFoundError, ValidationError


def test_progress_reflects_accrued_sessions(services, student, fixed_now):
    services.attendance_service.check_in(student, now=fixed_now)
    services.attendance_service.check_out(student, break_minutes=30, now=fixed_now + timedelta(hours=5, minutes=30))

    progress = services.hours_service.progress(student, student.user_id)

    assert progress.completed_hours == pytest.approx(5.0)
    assert progress.total_allotted_hours == 500
    assert progress.percentage == 1
    assert progress.remaining_hours == pytest.approx(495.0)


def test_progress_visibility(services, student, other_student, supervisor):
    with pytest.raises(AuthorizationError):
        services.hours_service.progress(other_student, student.user_id)
    assert services.hours_service.progress(supervisor, student.user_id).student_id == student.user_id
    with pytest.raises(NotFoundError):
        services.hours_service.progress(supervisor, supervisor.user_id)


def test_override_appends_difference_to_ledger(services, users, ledger, student, admin, fixed_now):
    svc = services.hours_service
    users.set_completed(student.user_id, 12.5)

    progress = svc.override_completed_hours(admin, student_id=student.user_id, completed_hours=20, note="Camp hours", now=fixed_now)

    assert progress.completed_hours == pytest.approx(20.0)
    [entry] = svc.history(admin, student.user_id)
    assert entry.kind == AccrualKind.ADJUSTMENT
    assert entry.hours == pytest.approx(7.5)
    assert entry.created_by == admin.user_id
    assert entry.note == "Camp hours"


def test_override_to_same_value_is_a_no_op(services, ledger, student, admin, fixed_now):
    services.hours_service.override_completed_hours(admin, student_id=student.user_id, completed_hours=0, now=fixed_now)
    assert ledger.entries == []


def test_override_rules(services, student, supervisor, admin, fixed_now):
    svc = services.hours_service
    with pytest.raises(AuthorizationError):
        svc.override_completed_hours(supervisor, student_id=student.user_id, completed_hours=10, now=fixed_now)
    with pytest.raises(ValidationError):
        svc.override_completed_hours(admin, student_id=student.user_id, completed_hours=-1, now=fixed_now)
    with pytest.raises(NotFoundError):
        svc.override_completed_hours(admin, student_id=999, completed_hours=1, now=fixed_now)


def test_reconcile_restores_ledger_total(services, users, student, admin, fixed_now):
    services.attendance_service.check_in(student, now=fixed_now)
    services.attendance_service.check_out(student, now=fixed_now + timedelta(hours=3))
    users.set_completed(student.user_id, 99.0)

    assert services.hours_service.reconcile(admin, student.user_id) == pytest.approx(3.0)
    assert users.get_by_id(student.user_id).completed_hours == pytest.approx(3.0)


def test_history_is_newest_first(services, student, admin, fixed_now):
    svc = services.hours_service
    services.attendance_service.check_in(student, now=fixed_now)
    services.attendance_service.check_out(student, now=fixed_now + timedelta(hours=2))
    svc.override_completed_hours(admin, student_id=student.user_id, completed_hours=1, now=fixed_now + timedelta(days=1))

    kinds = [e.kind for e in svc.history(student, student.user_id)]
    assert kinds == [AccrualKind.ADJUSTMENT, AccrualKind.SESSION]
