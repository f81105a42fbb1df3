from __future__ import annotations

from flask import Flask, request

from ..common.web import current_actor, ok, query_int
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.statistics_service

    @app.route("/api/statistics/weekly", methods=["GET"], endpoint="statistics_weekly")
    def weekly():
        return ok(
            service.weekly_report(
                current_actor(),
                start_date=request.args.get("start_date"),
                end_date=request.args.get("end_date"),
                student_id=query_int("student_id"),
            )
        )

    @app.route("/api/statistics/monthly", methods=["GET"], endpoint="statistics_monthly")
    def monthly():
        return ok(
            service.monthly_report(
                current_actor(),
                year=request.args.get("year"),
                month=request.args.get("month"),
                student_id=query_int("student_id"),
            )
        )

    @app.route("/api/statistics/dashboard", methods=["GET"], endpoint="statistics_dashboard")
    def dashboard():
        return ok(service.dashboard(current_actor(), student_id=query_int("student_id")))

    @app.route("/api/statistics/overview", methods=["GET"], endpoint="statistics_overview")
    def overview():
        return ok(service.supervisor_overview(current_actor()))

    @app.route("/api/statistics/progress", methods=["GET"], endpoint="statistics_progress")
    def progress():
        return ok(
            service.progress_analytics(
                current_actor(),
                batch=request.args.get("batch"),
                semester=request.args.get("semester"),
            )
        )

    @app.route("/api/statistics/students/<int:student_id>", methods=["GET"], endpoint="statistics_student_details")
    def student_details(student_id: int):
        return ok(
            service.student_details(
                current_actor(),
                student_id,
                cases_limit=request.args.get("cases_limit"),
                sessions_limit=request.args.get("attendance_limit"),
            )
        )

    @app.route("/api/statistics/pending", methods=["GET"], endpoint="statistics_pending")
    def pending():
        return ok(
            service.pending_items(
                current_actor(),
                kind=request.args.get("type"),
                page=request.args.get("page"),
                limit=request.args.get("limit"),
            )
        )
