from __future__ import annotations

from typing import Optional, Sequence

from ..common.validators import require_int_range, require_max_length, require_non_empty, require_non_negative
from ..core.enums import Role
from ..core.exceptions import NotFoundError, ValidationError
from .access import ensure_can_view, require_reviewer, require_role
from .model import Actor, User
from .repository import UserRepository

PROFILE_FIELDS = frozenset({"name", "email", "batch", "semester", "registration_number"})


class UserService:
    """Use case: look up students and manage their supervision/targets."""

    def __init__(self, users: UserRepository):
        self._users = users

    def _require_user(self, user_id: int) -> User:
        user = self._users.get_by_id(int(user_id))
        if not user:
            raise NotFoundError("User not found")
        return user

    def _require_student(self, user_id: int) -> User:
        user = self._require_user(user_id)
        if user.role != Role.STUDENT:
            raise NotFoundError("Student not found")
        return user

    def get(self, actor: Actor, user_id: int) -> User:
        user = self._require_user(user_id)
        ensure_can_view(actor, user.user_id, "user")
        return user

    def list_students(
        self,
        actor: Actor,
        *,
        batch: Optional[str] = None,
        semester: Optional[int] = None,
        search: Optional[str] = None,
    ) -> Sequence[User]:
        require_reviewer(actor)
        return self._users.list_students(
            batch=batch or None,
            semester=require_int_range(semester, "Semester", 1, 8) if semester else None,
            search=(search or "").strip() or None,
        )

    def filter_options(self, actor: Actor) -> dict:
        """Distinct batches (newest first) and semesters of active students."""
        require_reviewer(actor)
        students = self._users.list_students(active_only=True)
        return {
            "batches": sorted({s.batch for s in students if s.batch}, reverse=True),
            "semesters": sorted({s.semester for s in students if s.semester}),
        }

    def my_students(self, actor: Actor) -> Sequence[User]:
        require_role(actor, Role.SUPERVISOR, message="Only supervisors have assigned students")
        return self._users.list_students(supervisor_id=int(actor.user_id))

    def assign_supervisor(self, actor: Actor, *, student_id: int, supervisor_id: int) -> User:
        require_role(actor, Role.ADMIN)
        if supervisor_id in (None, ""):
            raise ValidationError("Supervisor ID is required")
        supervisor = self._users.get_by_id(require_int_range(supervisor_id, "Supervisor ID", 1, 2**31 - 1))
        if not supervisor or supervisor.role != Role.SUPERVISOR:
            raise NotFoundError("Supervisor not found")
        student = self._require_student(student_id)

        self._users.set_supervisor(student.user_id, supervisor_id=supervisor.user_id)
        return self._require_user(student.user_id)

    def update_profile(self, actor: Actor, user_id: int, *, changes: dict) -> User:
        require_role(actor, Role.ADMIN)
        if "completed_hours" in changes:
            raise ValidationError("completed_hours can only change through attendance or an hours adjustment")
        unknown = set(changes) - PROFILE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated here: {', '.join(sorted(unknown))}")

        user = self._require_user(user_id)
        clean: dict = {}
        if "name" in changes:
            clean["name"] = require_max_length(require_non_empty(changes["name"], "Name"), "Name", 100)
        if "email" in changes:
            email = require_non_empty(changes["email"], "Email").lower()
            if "@" not in email:
                raise ValidationError("Please provide a valid email")
            clean["email"] = email
        if "batch" in changes:
            clean["batch"] = (changes["batch"] or "").strip() or None
        if "semester" in changes:
            clean["semester"] = require_int_range(changes["semester"], "Semester", 1, 8)
        if "registration_number" in changes:
            clean["registration_number"] = (changes["registration_number"] or "").strip() or None

        if clean:
            self._users.update_profile(user.user_id, changes=clean)
        return self._require_user(user.user_id)

    def set_allotted_hours(self, actor: Actor, *, student_id: int, hours) -> User:
        require_reviewer(actor)
        value = require_non_negative(hours, "Total allotted hours")
        student = self._require_student(student_id)
        self._users.set_allotted_hours(student.user_id, hours=value)
        return self._require_user(student.user_id)

    def deactivate(self, actor: Actor, user_id: int) -> None:
        require_role(actor, Role.ADMIN)
        user = self._require_user(user_id)
        self._users.set_active(user.user_id, is_active=False)
