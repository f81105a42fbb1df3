from __future__ import annotations

import pytest

from src.clinical_hours.clinical_hours.core.exceptions import AuthorizationError, NotFoundError, ValidationError


def test_students_see_only_themselves(services, student, other_student, supervisor):
    svc = services.user_service
    assert svc.get(student, student.user_id).name == "Asha Rao"
    with pytest.raises(AuthorizationError):
        svc.get(other_student, student.user_id)
    assert svc.get(supervisor, other_student.user_id).user_id == other_student.user_id


def test_list_students_filters(services, student, supervisor):
    svc = services.user_service
    assert [u.user_id for u in svc.list_students(supervisor)] == [1, 2]
    assert [u.user_id for u in svc.list_students(supervisor, batch="2025")] == [2]
    assert [u.user_id for u in svc.list_students(supervisor, search="aud-001")] == [1]
    assert [u.user_id for u in svc.my_students(supervisor)] == [1]

    with pytest.raises(AuthorizationError):
        svc.list_students(student)
    with pytest.raises(ValidationError):
        svc.list_students(supervisor, semester=9)


def test_assign_supervisor(services, admin, supervisor):
    svc = services.user_service
    assert svc.assign_supervisor(admin, student_id=2, supervisor_id=10).supervisor_id == 10

    with pytest.raises(AuthorizationError):
        svc.assign_supervisor(supervisor, student_id=2, supervisor_id=10)
    with pytest.raises(NotFoundError):
        svc.assign_supervisor(admin, student_id=2, supervisor_id=20)
    with pytest.raises(NotFoundError):
        svc.assign_supervisor(admin, student_id=10, supervisor_id=10)
    with pytest.raises(ValidationError):
        svc.assign_supervisor(admin, student_id=2, supervisor_id=None)


def test_profile_update_never_touches_completed_hours(services, admin):
    svc = services.user_service
    with pytest.raises(ValidationError):
        svc.update_profile(admin, 1, changes={"completed_hours": 100})
    with pytest.raises(ValidationError):
        svc.update_profile(admin, 1, changes={"role": "Admin"})

    updated = svc.update_profile(admin, 1, changes={"email": "ASHA.RAO@srish.edu.in", "semester": 4})
    assert updated.email == "asha.rao@srish.edu.in"
    assert updated.semester == 4
    assert updated.completed_hours == 0


def test_allotted_hours_and_deactivate(services, supervisor, admin):
    svc = services.user_service
    assert svc.set_allotted_hours(supervisor, student_id=1, hours="650").total_allotted_hours == 650

    with pytest.raises(ValidationError):
        svc.set_allotted_hours(supervisor, student_id=1, hours=-1)
    with pytest.raises(AuthorizationError):
        svc.deactivate(supervisor, 2)

    svc.deactivate(admin, 2)
    assert [u.user_id for u in svc.list_students(admin)] == [1]


@pytest.mark.parametrize("bad", ["nan", "NaN", "inf", "-inf", float("nan"), float("inf")])
def test_non_finite_allotted_hours_are_rejected(services, users, supervisor, bad):
    with pytest.raises(ValidationError):
        services.user_service.set_allotted_hours(supervisor, student_id=1, hours=bad)

    assert users.get_by_id(1).total_allotted_hours == 500
    assert services.hours_service.progress(supervisor, 1).percentage == 0


def test_filter_options_list_active_batches_and_semesters(services, users, student, supervisor, admin):
    assert services.user_service.filter_options(supervisor) == {"batches": ["2025", "2024"], "semesters": [1, 3]}

    services.user_service.deactivate(admin, 2)
    assert services.user_service.filter_options(admin) == {"batches": ["2024"], "semesters": [3]}

    with pytest.raises(AuthorizationError):
        services.user_service.filter_options(student)
