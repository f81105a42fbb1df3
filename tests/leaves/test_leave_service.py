from __future__ import annotations

from datetime import datetime

import pytest

from src.clinical_hours.clinical_hours.core.enums import LeaveStatus, LeaveType
from src.clinical_hours.clinical_hours.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

REASON = "Fever and doctor advised rest"


def _file(svc, actor, now, **overrides):
    fields = dict(leave_type="Sick Leave", start_date="2026-04-20", end_date="2026-04-21", reason=REASON, now=now)
    fields.update(overrides)
    return svc.create(actor, **fields)


def test_student_creates_pending_request(services, student, fixed_now):
    leave = _file(
        services.leave_service,
        student,
        fixed_now,
        is_emergency=True,
        supporting_documents=[{"file_name": "note.pdf", "file_url": "https://files.example/note.pdf"}],
    )

    assert leave.status == LeaveStatus.PENDING
    assert leave.leave_type == LeaveType.SICK
    assert leave.student_id == student.user_id
    assert leave.created_by == student.user_id
    assert leave.is_emergency
    assert leave.number_of_days == 2
    assert leave.supporting_documents[0].uploaded_at == fixed_now


@pytest.mark.parametrize(
    "overrides",
    [
        {"reason": "too short"},
        {"reason": "x" * 1001},
        {"leave_type": "Vacation"},
        {"start_date": "20-04-2026"},
        {"end_date": None},
        {"supporting_documents": "note.pdf"},
        {"supporting_documents": [{"file_name": "note.pdf"}]},
    ],
)
def test_invalid_requests_are_rejected(services, student, fixed_now, overrides):
    with pytest.raises(ValidationError):
        _file(services.leave_service, student, fixed_now, **overrides)


def test_admin_files_on_behalf_of_student(services, admin, fixed_now):
    svc = services.leave_service
    leave = _file(svc, admin, fixed_now, student_id=2)
    assert leave.student_id == 2
    assert leave.created_by == admin.user_id

    with pytest.raises(ValidationError):
        _file(svc, admin, fixed_now)
    with pytest.raises(NotFoundError):
        _file(svc, admin, fixed_now, student_id=10)


def test_supervisor_cannot_file_leave(services, supervisor, fixed_now):
    with pytest.raises(AuthorizationError):
        _file(services.leave_service, supervisor, fixed_now, student_id=1)


def test_student_updates_only_own_pending_request(services, student, other_student, supervisor, fixed_now):
    svc = services.leave_service
    leave = _file(svc, student, fixed_now)

    updated = svc.update(student, leave.request_id, changes={"reason": "Recovering after surgery", "leave_type": "Personal Leave"})
    assert updated.reason == "Recovering after surgery"
    assert updated.leave_type == LeaveType.PERSONAL

    with pytest.raises(AuthorizationError):
        svc.update(other_student, leave.request_id, changes={"reason": "Someone else's request"})
    with pytest.raises(AuthorizationError):
        svc.update(supervisor, leave.request_id, changes={"reason": "Supervisors only review"})

    svc.review(supervisor, leave.request_id, status="Approved", now=fixed_now)
    with pytest.raises(ConflictError):
        svc.update(student, leave.request_id, changes={"reason": "Too late to change this"})


def test_student_edit_racing_a_review_is_rejected(services, leave_repo, student, supervisor, fixed_now):
    svc = services.leave_service
    leave = _file(svc, student, fixed_now)
    original = leave_repo.update_fields

    def review_then_update(request_id, **kwargs):
        svc.review(supervisor, request_id, status="Approved", now=fixed_now)
        return original(request_id, **kwargs)

    leave_repo.update_fields = review_then_update

    with pytest.raises(ConflictError):
        svc.update(student, leave.request_id, changes={"reason": "Changed after the approval"})
    stored = leave_repo.get_by_id(leave.request_id)
    assert stored.status == LeaveStatus.APPROVED
    assert stored.reason == REASON


def test_update_rejects_status_and_unknown_fields(services, student, admin, fixed_now):
    svc = services.leave_service
    leave = _file(svc, student, fixed_now)

    with pytest.raises(ValidationError):
        svc.update(student, leave.request_id, changes={"status": "Approved"})
    with pytest.raises(ValidationError):
        svc.update(admin, leave.request_id, changes={"student_id": 2})


def test_admin_can_edit_reviewed_request(services, student, admin, fixed_now):
    svc = services.leave_service
    leave = _file(svc, student, fixed_now)
    svc.review(admin, leave.request_id, status="Approved", now=fixed_now)

    updated = svc.update(admin, leave.request_id, changes={"end_date": "2026-04-23"})
    assert updated.number_of_days == 4
    assert updated.status == LeaveStatus.APPROVED


def test_cancel_rules(services, student, other_student, supervisor, admin, fixed_now):
    svc = services.leave_service
    pending = _file(svc, student, fixed_now)
    approved = _file(svc, student, fixed_now, start_date="2026-05-01", end_date="2026-05-02")
    rejected = _file(svc, student, fixed_now, start_date="2026-06-01", end_date="2026-06-02")
    svc.review(supervisor, approved.request_id, status="Approved", now=fixed_now)
    svc.review(supervisor, rejected.request_id, status="Rejected", now=fixed_now)

    with pytest.raises(AuthorizationError):
        svc.cancel(other_student, pending.request_id)
    with pytest.raises(AuthorizationError):
        svc.cancel(supervisor, pending.request_id)

    assert svc.cancel(student, pending.request_id).status == LeaveStatus.CANCELLED
    assert svc.cancel(admin, approved.request_id).status == LeaveStatus.CANCELLED

    with pytest.raises(ConflictError):
        svc.cancel(student, rejected.request_id)
    with pytest.raises(ConflictError):
        svc.cancel(student, pending.request_id)


def test_review_records_reviewer_and_comments(services, student, supervisor, fixed_now):
    svc = services.leave_service
    leave = _file(svc, student, fixed_now)
    reviewed_at = datetime(2026, 4, 15, 11, 30)

    reviewed = svc.review(supervisor, leave.request_id, status="Rejected", comments="Clinic is short staffed", now=reviewed_at)

    assert reviewed.status == LeaveStatus.REJECTED
    assert reviewed.reviewed_by == supervisor.user_id
    assert reviewed.reviewed_at == reviewed_at
    assert reviewed.review_comments == "Clinic is short staffed"


def test_review_only_from_pending(services, student, supervisor, admin, fixed_now):
    svc = services.leave_service
    leave = _file(svc, student, fixed_now)
    svc.review(supervisor, leave.request_id, status="Approved", now=fixed_now)

    with pytest.raises(ConflictError):
        svc.review(admin, leave.request_id, status="Rejected", now=fixed_now)


@pytest.mark.parametrize("status", ["Pending", "Cancelled", "Maybe"])
def test_review_target_must_be_approved_or_rejected(services, student, supervisor, fixed_now, status):
    svc = services.leave_service
    leave = _file(svc, student, fixed_now)

    with pytest.raises(ValidationError):
        svc.review(supervisor, leave.request_id, status=status, now=fixed_now)


def test_students_cannot_review(services, student, fixed_now):
    svc = services.leave_service
    leave = _file(svc, student, fixed_now)

    with pytest.raises(AuthorizationError):
        svc.review(student, leave.request_id, status="Approved", now=fixed_now)


def test_review_lost_race_is_a_conflict(services, leave_repo, student, supervisor, fixed_now):
    svc = services.leave_service
    leave = _file(svc, student, fixed_now)
    # Another reviewer lands between the read and the guarded write.
    original_set_status = leave_repo.set_status

    def racing_set_status(request_id, **kwargs):
        original_set_status(request_id, status=LeaveStatus.APPROVED, expected=[LeaveStatus.PENDING], reviewed_by=20)
        return original_set_status(request_id, **kwargs)

    leave_repo.set_status = racing_set_status

    with pytest.raises(ConflictError):
        svc.review(supervisor, leave.request_id, status="Rejected", now=fixed_now)
    assert leave_repo.get_by_id(leave.request_id).reviewed_by == 20


def test_list_and_pending_count(services, student, other_student, supervisor, fixed_now):
    svc = services.leave_service
    _file(svc, student, fixed_now)
    mine = _file(svc, student, fixed_now, start_date="2026-05-01", end_date="2026-05-01")
    _file(svc, other_student, fixed_now)
    svc.review(supervisor, mine.request_id, status="Approved", now=fixed_now)

    assert svc.list(student).total == 2
    assert svc.list(student, status="Approved").total == 1
    assert svc.list(supervisor).total == 3
    assert svc.list(supervisor, student_id=2).total == 1
    assert svc.pending_count(supervisor) == 2

    with pytest.raises(AuthorizationError):
        svc.pending_count(student)
    with pytest.raises(ValidationError):
        svc.list(student, status="Unknown")


def test_students_cannot_read_others_requests(services, student, other_student, fixed_now):
    leave = _file(services.leave_service, student, fixed_now)

    with pytest.raises(AuthorizationError):
        services.leave_service.get(other_student, leave.request_id)
    with pytest.raises(NotFoundError):
        services.leave_service.get(student, 999)
