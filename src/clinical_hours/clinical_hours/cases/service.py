from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Iterable, Optional

from ..common.datetime_utils import now_local
from ..common.pagination import Page, PageRequest, page_of
from ..common.validators import optional_date, require_date_range, require_enum
from ..core.constants import CASE_NUMBER_ATTEMPTS, DEFAULT_PAGE_SIZE
from ..core.enums import AgeGroup, ApprovalStatus, HearingLossDegree, HearingLossType, Role, TestType
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..reviews.workflow import ReviewDecision, ReviewWorkflow
from ..users.access import ensure_can_view, require_role, resolve_student_scope
from ..users.model import Actor
from ..users.repository import UserRepository
from .model import BulkReviewResult, ClinicalCase, SupervisorApproval
from .numbering import CaseNumberGenerator
from .payload import parse_case_fields
from .repository import CaseNumberTaken, CaseRepository


def _apply_review(case: ClinicalCase, decision: ReviewDecision[ApprovalStatus]) -> ClinicalCase:
    approved = decision.status == ApprovalStatus.APPROVED
    return replace(
        case,
        approval=SupervisorApproval(
            status=decision.status,
            reviewed_at=decision.reviewed_at,
            comments=decision.comments,
        ),
        is_completed=approved,
        supervisor_id=decision.reviewer_id if approved else case.supervisor_id,
    )


# Reviewers may re-review from any state; the student resubmits by editing.
CASE_REVIEW: ReviewWorkflow[ClinicalCase, ApprovalStatus] = ReviewWorkflow(
    status_enum=ApprovalStatus,
    targets=(ApprovalStatus.APPROVED, ApprovalStatus.REJECTED, ApprovalStatus.REVISION_REQUIRED),
    effect=_apply_review,
)


def _parse_case_ids(case_ids) -> list[int]:
    if not isinstance(case_ids, (list, tuple)) or not case_ids:
        raise ValidationError("Please provide an array of case IDs")
    try:
        ids = [int(c) for c in case_ids]
    except (TypeError, ValueError):
        raise ValidationError("Case IDs must be integers")
    return list(dict.fromkeys(ids))


class CaseService:
    """Clinical case records and their supervisor approval workflow."""

    def __init__(
        self,
        cases: CaseRepository,
        users: UserRepository,
        *,
        numbers: CaseNumberGenerator,
        number_attempts: int = CASE_NUMBER_ATTEMPTS,
    ):
        self._cases = cases
        self._users = users
        self._numbers = numbers
        self._number_attempts = max(1, int(number_attempts))

    def _require(self, case_id: int) -> ClinicalCase:
        case = self._cases.get_by_id(int(case_id))
        if not case:
            raise NotFoundError("Clinical case not found")
        return case

    def create(self, actor: Actor, data: dict, *, now: datetime | None = None) -> ClinicalCase:
        require_role(actor, Role.STUDENT, message="Only students can log clinical cases")
        now = now or now_local()
        fields = parse_case_fields(data, creating=True, today=now.date())

        student = self._users.get_by_id(int(actor.user_id))
        if not student:
            raise NotFoundError("Student not found")

        for _ in range(self._number_attempts):
            draft = ClinicalCase(
                case_id=0,
                student_id=student.user_id,
                case_number=self._numbers.next_number(now.date()),
                supervisor_id=student.supervisor_id,
                created_at=now,
                **fields,
            )
            try:
                case_id = self._cases.create(draft)
            except CaseNumberTaken:
                continue
            return self._require(case_id)
        raise ConflictError("Could not assign a unique case number, please try again")

    def get(self, actor: Actor, case_id: int) -> ClinicalCase:
        case = self._require(case_id)
        ensure_can_view(actor, case.student_id, "case")
        return case

    def list(
        self,
        actor: Actor,
        *,
        student_id: Optional[int] = None,
        status=None,
        age_group=None,
        test_type=None,
        start_date=None,
        end_date=None,
        page=None,
        limit=None,
    ) -> Page[ClinicalCase]:
        scoped = resolve_student_scope(actor, student_id)
        start = optional_date(start_date, "Start date")
        end = optional_date(end_date, "End date")
        if start and end:
            require_date_range(start, end)

        request = PageRequest.of(page, limit, default_limit=DEFAULT_PAGE_SIZE)
        filters = dict(
            student_id=scoped,
            status=require_enum(ApprovalStatus, status, "status") if status else None,
            age_group=require_enum(AgeGroup, age_group, "age group") if age_group else None,
            test_type=require_enum(TestType, test_type, "test type") if test_type else None,
            start=start,
            end=end,
        )
        cases = self._cases.list_cases(**filters, window=request)
        return page_of(cases, total=self._cases.count_cases(**filters), request=request)

    def update(self, actor: Actor, case_id: int, data: dict) -> ClinicalCase:
        case = self._require(case_id)
        if actor.is_student:
            if case.student_id != int(actor.user_id):
                raise AuthorizationError("Not authorized to update this case")
            if case.status == ApprovalStatus.APPROVED:
                raise ConflictError("Cannot modify an approved case")

        changes = parse_case_fields(data, creating=False, today=now_local().date())
        locked = ApprovalStatus.APPROVED if actor.is_student else None
        if changes:
            applied = self._cases.update_fields(case.case_id, changes=changes, unless_status=locked)
            if not applied and locked is not None:
                raise ConflictError("Cannot modify an approved case")
        return self._require(case.case_id)

    def delete(self, actor: Actor, case_id: int) -> None:
        require_role(actor, Role.ADMIN, message="Only an admin can delete clinical cases")
        case = self._require(case_id)
        self._cases.delete(case.case_id)

    def review(
        self,
        actor: Actor,
        case_id: int,
        *,
        status,
        comments: Optional[str] = None,
        now: datetime | None = None,
    ) -> ClinicalCase:
        decision = CASE_REVIEW.decide(actor, status, comments=comments, now=now or now_local())
        case = self._require(case_id)
        if not self._write_review(case, CASE_REVIEW.apply(case, decision)):
            raise ConflictError("This case was reviewed by someone else, please reload")
        return self._require(case.case_id)

    def bulk_review(
        self,
        actor: Actor,
        case_ids: Iterable[int],
        *,
        status,
        comments: Optional[str] = None,
        now: datetime | None = None,
    ) -> BulkReviewResult:
        """Review every listed case that is still Pending; the rest are skipped."""
        decision = CASE_REVIEW.decide(actor, status, comments=comments, now=now or now_local())
        ids = _parse_case_ids(case_ids)

        modified = 0
        for case_id in ids:
            case = self._cases.get_by_id(case_id)
            if not case or case.status != ApprovalStatus.PENDING:
                continue
            if self._write_review(case, CASE_REVIEW.apply(case, decision)):
                modified += 1
        return BulkReviewResult(requested=len(ids), modified_count=modified)

    def _write_review(self, before: ClinicalCase, after: ClinicalCase) -> bool:
        return self._cases.apply_review(
            before.case_id,
            expected=before.status,
            status=after.status,
            reviewed_at=after.approval.reviewed_at,
            comments=after.approval.comments,
            supervisor_id=after.supervisor_id,
            is_completed=after.is_completed,
        )

    @staticmethod
    def enums() -> dict:
        return {
            "test_types": [t.value for t in TestType],
            "age_groups": [a.value for a in AgeGroup],
            "hearing_loss_types": [t.value for t in HearingLossType],
            "hearing_loss_degrees": [d.value for d in HearingLossDegree],
        }
