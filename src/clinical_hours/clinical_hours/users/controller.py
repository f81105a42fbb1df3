from __future__ import annotations

from flask import Flask, request

from ..common.web import current_actor, json_body, ok, to_jsonable
from ..container import Container
from .model import User


def user_to_json(user: User) -> dict:
    data = to_jsonable(user)
    data.update(
        hours_completion_percentage=user.hours_completion_percentage,
        remaining_hours=user.remaining_hours,
    )
    return data


def register(app: Flask, container: Container) -> None:
    service = container.user_service

    @app.route("/api/users/me", methods=["GET"], endpoint="users_me")
    def me():
        actor = current_actor()
        return ok(user_to_json(service.get(actor, actor.user_id)))

    @app.route("/api/users/students", methods=["GET"], endpoint="users_students")
    def students():
        users = service.list_students(
            current_actor(),
            batch=request.args.get("batch"),
            semester=request.args.get("semester"),
            search=request.args.get("search"),
        )
        return ok([user_to_json(u) for u in users], count=len(users))

    @app.route("/api/users/filters", methods=["GET"], endpoint="users_filters")
    def filters():
        return ok(service.filter_options(current_actor()))

    @app.route("/api/users/my-students", methods=["GET"], endpoint="users_my_students")
    def my_students():
        users = service.my_students(current_actor())
        return ok([user_to_json(u) for u in users], count=len(users))

    @app.route("/api/users/<int:user_id>", methods=["GET"], endpoint="users_get")
    def get(user_id: int):
        return ok(user_to_json(service.get(current_actor(), user_id)))

    @app.route("/api/users/<int:user_id>", methods=["PUT"], endpoint="users_update")
    def update(user_id: int):
        return ok(user_to_json(service.update_profile(current_actor(), user_id, changes=json_body())))

    @app.route("/api/users/<int:user_id>", methods=["DELETE"], endpoint="users_deactivate")
    def deactivate(user_id: int):
        service.deactivate(current_actor(), user_id)
        return ok(message="User deactivated")

    @app.route("/api/users/<int:user_id>/assign-supervisor", methods=["PUT"], endpoint="users_assign_supervisor")
    def assign_supervisor(user_id: int):
        body = json_body()
        user = service.assign_supervisor(current_actor(), student_id=user_id, supervisor_id=body.get("supervisor_id"))
        return ok(user_to_json(user))

    @app.route("/api/users/<int:user_id>/update-hours", methods=["PUT"], endpoint="users_update_hours")
    def update_hours(user_id: int):
        body = json_body()
        user = service.set_allotted_hours(current_actor(), student_id=user_id, hours=body.get("total_allotted_hours"))
        return ok(user_to_json(user))
