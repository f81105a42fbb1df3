from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from src.clinical_hours.clinical_hours.core.exceptions import AuthorizationError, NotFoundError, ValidationError

PATIENT = {"initials": "RK", "age_group": "16.1-40y", "gender": "Male"}


def _log(services, actor, when, tests=("PTA",), **extra):
    body = {
        "patient_info": PATIENT,
        "tests_performed": [{"test_type": t, "completed": True} for t in tests],
        "session_date": when.date().isoformat(),
    }
    body.update(extra)
    return services.case_service.create(actor, body, now=when)


def _attend(services, actor, start, hours):
    services.attendance_service.check_in(actor, now=start)
    services.attendance_service.check_out(actor, now=start + timedelta(hours=hours))


def test_weekly_report_defaults_to_current_week(services, student, supervisor, fixed_now):
    _log(services, student, datetime(2026, 4, 12, 10), tests=("PTA", "OAE"), session_duration=30)
    case = _log(services, student, datetime(2026, 4, 14, 10))
    _log(services, student, datetime(2026, 4, 19, 10))
    services.case_service.review(supervisor, case.case_id, status="Approved", now=fixed_now)
    _attend(services, student, datetime(2026, 4, 13, 9), 6)

    report = services.statistics_service.weekly_report(student, now=fixed_now)

    assert report["period"] == {"start_date": "2026-04-12", "end_date": "2026-04-18"}
    assert report["summary"]["total_cases"] == 2
    assert report["summary"]["approved_cases"] == 1
    assert report["by_test_type"][0] == {"test_type": "PTA", "total_count": 2, "completed_count": 2, "total_duration": 0}
    assert [d["date"] for d in report["daily_distribution"]] == ["2026-04-12", "2026-04-14"]
    assert report["attendance"]["total_hours"] == 6


def test_weekly_report_is_scoped_to_student(services, student, other_student, supervisor, fixed_now):
    _log(services, student, fixed_now)
    _log(services, other_student, fixed_now)
    stats = services.statistics_service

    assert stats.weekly_report(other_student, student_id=1, now=fixed_now)["summary"]["total_cases"] == 1
    assert stats.weekly_report(supervisor, now=fixed_now)["summary"]["total_cases"] == 2
    assert stats.weekly_report(supervisor, student_id=1, now=fixed_now)["summary"]["total_cases"] == 1

    with pytest.raises(ValidationError):
        stats.weekly_report(supervisor, start_date="2026-04-14", end_date="2026-04-10", now=fixed_now)


def test_empty_reports_have_defaults(services, student, fixed_now):
    weekly = services.statistics_service.weekly_report(student, now=fixed_now)
    assert weekly["summary"]["total_cases"] == 0
    assert weekly["by_age_group"] == []

    monthly = services.statistics_service.monthly_report(student, year=2025, month=1, now=fixed_now)
    assert monthly["summary"] == {"total_cases": 0, "approved_cases": 0, "total_session_hours": 0}
    assert monthly["by_leave_type"] == []


def test_monthly_report(services, student, supervisor, fixed_now):
    _log(services, student, datetime(2026, 4, 2, 10), session_duration=90)
    approved = _log(services, student, datetime(2026, 4, 14, 10), session_duration=45)
    _log(services, student, datetime(2026, 3, 30, 10), session_duration=60)
    services.case_service.review(supervisor, approved.case_id, status="Approved", now=fixed_now)
    services.leave_service.create(
        student,
        leave_type="Sick Leave",
        start_date="2026-04-20",
        end_date="2026-04-22",
        reason="Fever and doctor advised rest",
        now=fixed_now,
    )

    report = services.statistics_service.monthly_report(student, now=fixed_now)

    assert report["period"]["year"] == 2026 and report["period"]["month"] == 4
    assert report["summary"] == {"total_cases": 2, "approved_cases": 1, "total_session_hours": 2.25}
    assert report["by_leave_type"] == [{"leave_type": "Sick Leave", "count": 1, "total_days": 3}]
    assert {row["status"]: row["count"] for row in report["by_status"]}["Approved"] == 1
    assert sum(w["count"] for w in report["weekly_distribution"]) == 2

    with pytest.raises(ValidationError):
        services.statistics_service.monthly_report(student, year=2026, month=13, now=fixed_now)


def test_student_dashboard(services, users, student, fixed_now):
    _log(services, student, datetime(2026, 4, 14, 10), tests=("PTA", "OAE"))
    _log(services, student, datetime(2026, 4, 1, 10))
    _log(services, student, datetime(2026, 2, 1, 10))
    _attend(services, student, datetime(2026, 4, 13, 9), 4.5)

    stats = services.statistics_service.dashboard(student, now=fixed_now)

    assert stats["clinical_cases"] == {"total": 3, "this_month": 2, "this_week": 1, "pending": 3}
    assert stats["test_distribution"][0] == {"test_type": "PTA", "count": 3}
    assert stats["attendance"] == {"days_this_month": 1, "hours_this_month": 4.5}
    assert stats["hours"]["completed_hours"] == pytest.approx(4.5)
    assert "global_stats" not in stats


def test_reviewer_dashboard(services, student, supervisor, admin, fixed_now):
    _log(services, student, fixed_now)
    stats = services.statistics_service

    with pytest.raises(ValidationError):
        stats.dashboard(supervisor, now=fixed_now)

    admin_view = stats.dashboard(admin, now=fixed_now)
    assert admin_view == {"global_stats": {"pending_reviews": 1, "today_cases": 1}}

    supervisor_view = stats.dashboard(supervisor, student_id=1, now=fixed_now)
    assert supervisor_view["clinical_cases"]["total"] == 1
    assert supervisor_view["global_stats"]["pending_reviews"] == 1

    with pytest.raises(NotFoundError):
        stats.dashboard(supervisor, student_id=10, now=fixed_now)


def test_supervisor_overview(services, users, student, other_student, supervisor, fixed_now):
    _log(services, student, fixed_now)
    second = _log(services, other_student, fixed_now - timedelta(days=1))
    services.case_service.review(supervisor, second.case_id, status="Revision Required", now=fixed_now)
    users.set_completed(2, 40.0)

    overview = services.statistics_service.supervisor_overview(supervisor, now=fixed_now)

    assert overview["students"]["total"] == 2
    assert overview["students"]["by_batch"] == [{"value": "2025", "count": 1}, {"value": "2024", "count": 1}]
    assert overview["clinical_cases"]["pending"] == 1
    assert overview["clinical_cases"]["revision_required"] == 1
    assert overview["clinical_cases"]["today"] == 1
    assert overview["leave_requests"]["total"] == 0
    assert overview["top_students"][0]["user_id"] == 2
    assert [c["student_id"] for c in overview["recent_pending_cases"]] == [1]


def test_reports_for_reviewers_only(services, student, fixed_now):
    with pytest.raises(AuthorizationError):
        services.statistics_service.supervisor_overview(student, now=fixed_now)
    with pytest.raises(AuthorizationError):
        services.statistics_service.progress_analytics(student, now=fixed_now)


def test_progress_analytics(services, users, student, other_student, admin, fixed_now):
    _log(services, student, datetime(2026, 4, 3, 10))
    _log(services, student, datetime(2026, 2, 3, 10))
    _log(services, other_student, datetime(2025, 9, 3, 10))
    users.set_completed(1, 300.0)

    analytics = services.statistics_service.progress_analytics(admin, now=fixed_now)

    assert [m["month"] for m in analytics["monthly_cases"]] == [11, 12, 1, 2, 3, 4]
    assert [m["count"] for m in analytics["monthly_cases"]] == [0, 0, 0, 1, 0, 1]
    assert {b["range"]: b["count"] for b in analytics["progress_distribution"]}["50-75%"] == 1

    narrowed = services.statistics_service.progress_analytics(admin, batch="2025", now=fixed_now)
    assert sum(m["count"] for m in narrowed["monthly_cases"]) == 0


def test_student_details(services, student, supervisor, fixed_now):
    first = _log(services, student, datetime(2026, 4, 1, 10), tests=("PTA", "OAE"))
    _log(services, student, datetime(2026, 4, 8, 10))
    _log(services, student, datetime(2026, 4, 14, 10), tests=("ABR",))
    services.case_service.review(supervisor, first.case_id, status="Revision Required", now=fixed_now)
    _attend(services, student, datetime(2026, 4, 13, 9), 5)
    _attend(services, student, datetime(2026, 3, 31, 9), 3)
    services.leave_service.create(
        student,
        leave_type="Sick Leave",
        start_date="2026-04-20",
        end_date="2026-04-21",
        reason="Fever and doctor advised rest",
        now=fixed_now,
    )

    details = services.statistics_service.student_details(supervisor, 1, cases_limit=2, now=fixed_now)

    assert details["student"]["name"] == "Asha Rao"
    assert details["student"]["supervisor_id"] == 10
    assert [c["session_date"] for c in details["clinical_cases"]["recent"]] == ["2026-04-14", "2026-04-08"]
    assert details["clinical_cases"]["stats"] == {
        "total": 3,
        "pending": 2,
        "approved": 0,
        "rejected": 0,
        "revision_required": 1,
    }
    assert [s["date"] for s in details["attendance"]["recent"]] == ["2026-04-13", "2026-03-31"]
    assert details["attendance"]["summary"] == {"year": 2026, "month": 4, "total_days": 1, "total_hours": 5.0}
    assert details["leave_requests"]["stats"]["total"] == 1
    assert details["leave_requests"]["stats"]["pending"] == 1
    assert details["test_distribution"][0] == {"test_type": "PTA", "count": 2}


def test_student_details_for_reviewers_only(services, student, supervisor, fixed_now):
    stats = services.statistics_service
    with pytest.raises(AuthorizationError):
        stats.student_details(student, 1, now=fixed_now)
    with pytest.raises(NotFoundError):
        stats.student_details(supervisor, 10, now=fixed_now)
    with pytest.raises(ValidationError):
        stats.student_details(supervisor, 1, cases_limit=0, now=fixed_now)


def test_pending_items_preview_and_paging(services, student, other_student, supervisor, fixed_now):
    for day in range(1, 13):
        _log(services, student if day % 2 else other_student, datetime(2026, 4, day, 10))
    services.leave_service.create(
        student,
        leave_type="Personal Leave",
        start_date="2026-04-27",
        end_date="2026-04-27",
        reason="Family function out of town",
        now=fixed_now,
    )
    stats = services.statistics_service

    preview = stats.pending_items(supervisor)
    assert preview["cases"]["total"] == 12
    assert len(preview["cases"]["items"]) == 10
    assert preview["cases"]["items"][0]["session_date"] == "2026-04-12"
    assert preview["cases"]["items"][0]["student_name"] == "Vikram Nair"
    assert preview["leaves"]["total"] == 1
    assert preview["leaves"]["items"][0]["student_name"] == "Asha Rao"

    second_page = stats.pending_items(supervisor, kind="cases", page=2, limit=5)
    assert set(second_page) == {"cases"}
    assert [c["session_date"] for c in second_page["cases"]["items"]] == [
        "2026-04-07", "2026-04-06", "2026-04-05", "2026-04-04", "2026-04-03",
    ]
    assert second_page["cases"]["pages"] == 3

    with pytest.raises(ValidationError):
        stats.pending_items(supervisor, kind="attendance")
    with pytest.raises(AuthorizationError):
        stats.pending_items(student)
