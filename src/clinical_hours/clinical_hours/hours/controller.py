from __future__ import annotations

from flask import Flask

from ..common.web import current_actor, json_body, ok
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.hours_service

    @app.route("/api/hours/<int:student_id>", methods=["GET"], endpoint="hours_progress")
    def progress(student_id: int):
        return ok(service.progress(current_actor(), student_id))

    @app.route("/api/hours/<int:student_id>/history", methods=["GET"], endpoint="hours_history")
    def history(student_id: int):
        entries = service.history(current_actor(), student_id)
        return ok(list(entries), count=len(entries))

    @app.route("/api/hours/<int:student_id>", methods=["PUT"], endpoint="hours_override")
    def override(student_id: int):
        body = json_body()
        progress = service.override_completed_hours(
            current_actor(),
            student_id=student_id,
            completed_hours=body.get("completed_hours"),
            note=body.get("note"),
        )
        return ok(progress, message="Completed hours updated")

    @app.route("/api/hours/<int:student_id>/reconcile", methods=["POST"], endpoint="hours_reconcile")
    def reconcile(student_id: int):
        total = service.reconcile(current_actor(), student_id)
        return ok({"student_id": student_id, "completed_hours": total})
