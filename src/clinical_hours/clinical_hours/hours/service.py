from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..common.datetime_utils import now_local
from ..common.validators import optional_text, require_non_negative
from ..core.constants import REVIEW_COMMENTS_MAX
from ..core.enums import Role
from ..core.exceptions import NotFoundError
from ..users.access import ensure_can_view, require_role
from ..users.model import Actor, User
from ..users.repository import UserRepository
from .model import HourAccrual, HoursProgress
from .repository import HoursLedgerRepository


class HoursLedgerService:
    """Use case: inspect and correct a student's accrued clinical hours."""

    def __init__(self, ledger: HoursLedgerRepository, users: UserRepository):
        self._ledger = ledger
        self._users = users

    def _require_student(self, student_id: int) -> User:
        user = self._users.get_by_id(int(student_id))
        if not user or user.role != Role.STUDENT:
            raise NotFoundError("Student not found")
        return user

    def progress(self, actor: Actor, student_id: int) -> HoursProgress:
        student = self._require_student(student_id)
        ensure_can_view(actor, student.user_id, "student")
        return HoursProgress(
            student_id=student.user_id,
            completed_hours=student.completed_hours,
            total_allotted_hours=student.total_allotted_hours,
            percentage=student.hours_completion_percentage,
            remaining_hours=student.remaining_hours,
        )

    def history(self, actor: Actor, student_id: int) -> Sequence[HourAccrual]:
        student = self._require_student(student_id)
        ensure_can_view(actor, student.user_id, "student")
        return self._ledger.list_for_student(student.user_id)

    def override_completed_hours(
        self,
        actor: Actor,
        *,
        student_id: int,
        completed_hours,
        note: Optional[str] = None,
        now: datetime | None = None,
    ) -> HoursProgress:
        """Set completed hours to a target by appending the difference to the ledger."""
        require_role(actor, Role.ADMIN, message="Only an admin can correct completed hours")
        target = require_non_negative(completed_hours, "Completed hours")
        note = optional_text(note, "Note", REVIEW_COMMENTS_MAX)
        student = self._require_student(student_id)

        delta = target - student.completed_hours
        if delta:
            self._ledger.append_adjustment(
                student_id=student.user_id,
                hours=delta,
                created_by=int(actor.user_id),
                created_at=now or now_local(),
                note=note,
            )
        return self.progress(actor, student.user_id)

    def reconcile(self, actor: Actor, student_id: int) -> float:
        require_role(actor, Role.ADMIN)
        student = self._require_student(student_id)
        return self._ledger.rematerialize(student.user_id)
