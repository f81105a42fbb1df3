from __future__ import annotations

from flask import Flask, request

from ..common.web import current_actor, json_body, ok, ok_page, query_int, to_jsonable
from ..container import Container
from .model import LeaveRequest


def leave_to_json(leave: LeaveRequest) -> dict:
    data = to_jsonable(leave)
    data["number_of_days"] = leave.number_of_days
    return data


def register(app: Flask, container: Container) -> None:
    service = container.leave_service

    @app.route("/api/leave-requests/pending-count", methods=["GET"], endpoint="leave_pending_count")
    def pending_count():
        return ok({"count": service.pending_count(current_actor())})

    @app.route("/api/leave-requests", methods=["GET"], endpoint="leave_list")
    def list_requests():
        page = service.list(
            current_actor(),
            status=request.args.get("status"),
            student_id=query_int("student_id"),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
        )
        return ok_page(page, leave_to_json)

    @app.route("/api/leave-requests", methods=["POST"], endpoint="leave_create")
    def create():
        body = json_body()
        leave = service.create(
            current_actor(),
            leave_type=body.get("leave_type"),
            start_date=body.get("start_date"),
            end_date=body.get("end_date"),
            reason=body.get("reason"),
            is_emergency=body.get("is_emergency", False),
            supporting_documents=body.get("supporting_documents"),
            student_id=body.get("student_id"),
        )
        return ok(leave_to_json(leave), status=201)

    @app.route("/api/leave-requests/<int:request_id>", methods=["GET"], endpoint="leave_get")
    def get(request_id: int):
        return ok(leave_to_json(service.get(current_actor(), request_id)))

    @app.route("/api/leave-requests/<int:request_id>", methods=["PUT"], endpoint="leave_update")
    def update(request_id: int):
        leave = service.update(current_actor(), request_id, changes=json_body())
        return ok(leave_to_json(leave))

    @app.route("/api/leave-requests/<int:request_id>/cancel", methods=["PUT"], endpoint="leave_cancel")
    def cancel(request_id: int):
        leave = service.cancel(current_actor(), request_id)
        return ok(leave_to_json(leave), message="Leave request cancelled")

    @app.route("/api/leave-requests/<int:request_id>/review", methods=["PUT"], endpoint="leave_review")
    def review(request_id: int):
        body = json_body()
        leave = service.review(
            current_actor(),
            request_id,
            status=body.get("status"),
            comments=body.get("comments"),
        )
        return ok(leave_to_json(leave), message=f"Leave request {leave.status.value.lower()}")
