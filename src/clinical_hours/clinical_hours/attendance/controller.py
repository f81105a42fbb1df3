from __future__ import annotations

from flask import Flask, request

from ..common.datetime_utils import now_local, parse_iso_datetime
from ..common.validators import optional_date, require_non_empty
from ..common.web import current_actor, json_body, ok, ok_page, query_int, to_jsonable
from ..core.exceptions import ValidationError
from ..container import Container
from .model import AttendanceSession


def session_to_json(s: AttendanceSession) -> dict:
    data = to_jsonable(s)
    data.update(
        net_hours=round(s.net_hours, 2),
        regular_hours=round(s.regular_hours, 2),
        extra_hours=round(s.extra_hours, 2),
        formatted_duration=s.formatted_duration,
    )
    return data


def register(app: Flask, container: Container) -> None:
    service = container.attendance_service

    @app.route("/api/attendance/check-in", methods=["POST"], endpoint="attendance_check_in")
    def check_in():
        body = json_body()
        session = service.check_in(current_actor(), location=body.get("location"))
        return ok(session_to_json(session), status=201, message="Checked in successfully")

    @app.route("/api/attendance/check-out", methods=["PUT"], endpoint="attendance_check_out")
    def check_out():
        body = json_body()
        session = service.check_out(
            current_actor(),
            break_minutes=body.get("break_minutes", 0),
            notes=body.get("notes"),
        )
        return ok(session_to_json(session), message=f"Checked out successfully. Total hours: {session.net_hours:.2f}")

    @app.route("/api/attendance/today", methods=["GET"], endpoint="attendance_today")
    def today():
        status = service.today_status(current_actor())
        return ok(
            {
                "is_checked_in": status.is_checked_in,
                "is_checked_out": status.is_checked_out,
                "session": session_to_json(status.session) if status.session else None,
            }
        )

    @app.route("/api/attendance/monthly-summary", methods=["GET"], endpoint="attendance_monthly_summary")
    def monthly_summary():
        now = now_local()
        summary = service.monthly_summary(
            current_actor(),
            year=query_int("year") or now.year,
            month=query_int("month") or now.month,
            student_id=query_int("student_id"),
        )
        return ok(summary)

    @app.route("/api/attendance", methods=["GET"], endpoint="attendance_list")
    def list_sessions():
        page = service.list_sessions(
            current_actor(),
            student_id=query_int("student_id"),
            start=optional_date(request.args.get("start_date"), "Start date"),
            end=optional_date(request.args.get("end_date"), "End date"),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
        )
        return ok_page(page, session_to_json)

    @app.route("/api/attendance/<int:session_id>", methods=["GET"], endpoint="attendance_get")
    def get_session(session_id: int):
        return ok(session_to_json(service.get(current_actor(), session_id)))

    @app.route("/api/attendance/<int:session_id>/verify", methods=["PUT"], endpoint="attendance_verify")
    def verify(session_id: int):
        return ok(session_to_json(service.verify(current_actor(), session_id=session_id)))

    @app.route("/api/attendance/<int:session_id>/close", methods=["PUT"], endpoint="attendance_close_stale")
    def close_stale(session_id: int):
        body = json_body()
        raw_time_out = require_non_empty(body.get("time_out"), "Check-out time")
        try:
            time_out = parse_iso_datetime(raw_time_out)
        except ValueError:
            raise ValidationError("Check-out time must be an ISO datetime")

        session = service.close_stale_session(
            current_actor(),
            session_id=session_id,
            time_out=time_out,
            break_minutes=body.get("break_minutes", 0),
            notes=body.get("notes"),
        )
        return ok(session_to_json(session))
