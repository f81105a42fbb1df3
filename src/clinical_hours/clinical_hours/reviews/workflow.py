"""Generic supervisor review transition shared by clinical cases and leave requests.

A workflow is parameterized by the statuses a reviewer may move an entity to,
a guard that raises ConflictError for entities not currently reviewable, and
an effect that returns the reviewed copy of the entity. Persisting the result
stays with the calling service so the write can be guarded by the status the
review was decided against.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Generic, Iterable, Optional, Type, TypeVar

from ..common.validators import optional_text, require_enum
from ..core.constants import REVIEW_COMMENTS_MAX
from ..core.exceptions import ValidationError
from ..users.access import require_reviewer
from ..users.model import Actor

T = TypeVar("T")
S = TypeVar("S", bound=Enum)


@dataclass(frozen=True)
class ReviewDecision(Generic[S]):
    reviewer_id: int
    status: S
    reviewed_at: datetime
    comments: Optional[str] = None


class ReviewWorkflow(Generic[T, S]):
    def __init__(
        self,
        *,
        status_enum: Type[S],
        targets: Iterable[S],
        effect: Callable[[T, ReviewDecision[S]], T],
        guard: Optional[Callable[[T], None]] = None,
    ):
        self._status_enum = status_enum
        self.targets = frozenset(targets)
        self._effect = effect
        self._guard = guard

    def decide(self, actor: Actor, status, *, comments: Optional[str], now: datetime) -> ReviewDecision[S]:
        """Validate who reviews and where to; independent of any entity."""
        require_reviewer(actor)
        target = require_enum(self._status_enum, status, "status")
        if target not in self.targets:
            allowed = ", ".join(sorted(t.value for t in self.targets))
            raise ValidationError(f"Invalid status. Must be one of: {allowed}")
        return ReviewDecision(
            reviewer_id=int(actor.user_id),
            status=target,
            reviewed_at=now,
            comments=optional_text(comments, "Review comments", REVIEW_COMMENTS_MAX),
        )

    def apply(self, entity: T, decision: ReviewDecision[S]) -> T:
        if self._guard is not None:
            self._guard(entity)
        return self._effect(entity, decision)
