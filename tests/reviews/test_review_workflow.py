from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

import pytest

from src.clinical_hours.clinical_hours.core.enums import Role
from src.clinical_hours.clinical_hours.core.exceptions import AuthorizationError, ConflictError, ValidationError
from src.clinical_hours.clinical_hours.reviews.workflow import ReviewWorkflow
from src.clinical_hours.clinical_hours.users.model import Actor

NOW = datetime(2026, 4, 14, 12, 0)


class Stage(str, Enum):
    OPEN = "Open"
    ACCEPTED = "Accepted"
    DECLINED = "Declined"


@dataclass(frozen=True)
class Ticket:
    stage: Stage = Stage.OPEN
    reviewer: int = 0


def _guard(ticket: Ticket) -> None:
    if ticket.stage != Stage.OPEN:
        raise ConflictError("already decided")


WORKFLOW = ReviewWorkflow(
    status_enum=Stage,
    targets=(Stage.ACCEPTED, Stage.DECLINED),
    effect=lambda ticket, decision: replace(ticket, stage=decision.status, reviewer=decision.reviewer_id),
    guard=_guard,
)


def test_decide_builds_decision():
    decision = WORKFLOW.decide(Actor(7, Role.SUPERVISOR), "Accepted", comments="  fine  ", now=NOW)

    assert decision.status == Stage.ACCEPTED
    assert decision.reviewer_id == 7
    assert decision.reviewed_at == NOW
    assert decision.comments == "fine"


def test_decide_validates_actor_and_target():
    with pytest.raises(AuthorizationError):
        WORKFLOW.decide(Actor(1, Role.STUDENT), "Accepted", comments=None, now=NOW)
    with pytest.raises(ValidationError):
        WORKFLOW.decide(Actor(7, Role.ADMIN), "Open", comments=None, now=NOW)
    with pytest.raises(ValidationError):
        WORKFLOW.decide(Actor(7, Role.ADMIN), "Accepted", comments="x" * 501, now=NOW)


def test_apply_runs_effect_once():
    admin = Actor(7, Role.ADMIN)
    reviewed = WORKFLOW.apply(Ticket(), WORKFLOW.decide(admin, Stage.DECLINED, comments=None, now=NOW))

    assert reviewed == Ticket(stage=Stage.DECLINED, reviewer=7)
    with pytest.raises(ConflictError):
        WORKFLOW.apply(reviewed, WORKFLOW.decide(Actor(8, Role.ADMIN), Stage.ACCEPTED, comments=None, now=NOW))


def test_without_guard_decided_entities_can_be_reviewed_again():
    open_workflow = ReviewWorkflow(status_enum=Stage, targets=(Stage.ACCEPTED,), effect=lambda t, d: replace(t, stage=d.status))
    decision = open_workflow.decide(Actor(7, Role.SUPERVISOR), "Accepted", comments=None, now=NOW)

    assert open_workflow.apply(Ticket(stage=Stage.DECLINED), decision).stage == Stage.ACCEPTED
