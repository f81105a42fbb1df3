"""Visibility and role rules shared by every feature.

Students only ever see their own records; supervisors and admins see
everything and may narrow a query to one student.
"""

from __future__ import annotations

from typing import Optional

from ..core.enums import REVIEWER_ROLES, Role
from ..core.exceptions import AuthorizationError
from .model import Actor


def can_view(actor: Actor, owner_id: int) -> bool:
    return actor.role in REVIEWER_ROLES or int(actor.user_id) == int(owner_id)


def ensure_can_view(actor: Actor, owner_id: int, what: str = "record") -> None:
    if not can_view(actor, owner_id):
        raise AuthorizationError(f"Not authorized to access this {what}")


def resolve_student_scope(actor: Actor, requested_student_id: Optional[int] = None) -> Optional[int]:
    """Student id a read should be restricted to, or None for "all students"."""
    if actor.is_student:
        return int(actor.user_id)
    return int(requested_student_id) if requested_student_id else None


def require_role(actor: Actor, *roles: Role, message: str = "You do not have permission for this action") -> None:
    if actor.role not in roles:
        raise AuthorizationError(message)


def require_reviewer(actor: Actor) -> None:
    require_role(actor, Role.SUPERVISOR, Role.ADMIN, message="Only a supervisor or admin can do this")
