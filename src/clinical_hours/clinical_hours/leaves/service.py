from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional

from ..common.datetime_utils import now_local, parse_iso_datetime
from ..common.pagination import Page, PageRequest, page_of
from ..common.validators import (
    require_bool,
    require_date,
    require_date_range,
    require_enum,
    require_max_length,
    require_min_length,
    require_non_empty,
)
from ..core.constants import DEFAULT_PAGE_SIZE, LEAVE_REASON_MAX, LEAVE_REASON_MIN
from ..core.enums import LeaveStatus, LeaveType, Role
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..reviews.workflow import ReviewDecision, ReviewWorkflow
from ..users.access import ensure_can_view, require_reviewer, resolve_student_scope
from ..users.model import Actor
from ..users.repository import UserRepository
from .conflict import LeaveConflictValidator
from .model import LeaveRequest, SupportingDocument
from .repository import LeaveRepository

UPDATABLE_FIELDS = frozenset({"leave_type", "start_date", "end_date", "reason", "is_emergency", "supporting_documents"})
CANCELLABLE_STATUSES = frozenset({LeaveStatus.PENDING, LeaveStatus.APPROVED})


def _require_pending(leave: LeaveRequest) -> None:
    if leave.status != LeaveStatus.PENDING:
        raise ConflictError("This leave request has already been reviewed")


def _apply_review(leave: LeaveRequest, decision: ReviewDecision[LeaveStatus]) -> LeaveRequest:
    return replace(
        leave,
        status=decision.status,
        reviewed_by=decision.reviewer_id,
        reviewed_at=decision.reviewed_at,
        review_comments=decision.comments,
    )


LEAVE_REVIEW: ReviewWorkflow[LeaveRequest, LeaveStatus] = ReviewWorkflow(
    status_enum=LeaveStatus,
    targets=(LeaveStatus.APPROVED, LeaveStatus.REJECTED),
    effect=_apply_review,
    guard=_require_pending,
)


def parse_reason(value) -> str:
    reason = require_non_empty(value, "Reason")
    require_min_length(reason, "Reason", LEAVE_REASON_MIN)
    return require_max_length(reason, "Reason", LEAVE_REASON_MAX)


def parse_documents(value, *, now: datetime) -> tuple[SupportingDocument, ...]:
    if value in (None, ""):
        return ()
    if not isinstance(value, (list, tuple)):
        raise ValidationError("Supporting documents must be a list")

    documents = []
    for item in value:
        if isinstance(item, SupportingDocument):
            documents.append(item)
            continue
        if not isinstance(item, dict):
            raise ValidationError("Each supporting document must be an object")
        uploaded_at = item.get("uploaded_at")
        if isinstance(uploaded_at, str):
            try:
                uploaded_at = parse_iso_datetime(uploaded_at)
            except ValueError:
                raise ValidationError("Document upload time must be an ISO datetime")
        documents.append(
            SupportingDocument(
                file_name=require_non_empty(item.get("file_name"), "File name"),
                file_url=require_non_empty(item.get("file_url"), "File URL"),
                uploaded_at=uploaded_at or now,
            )
        )
    return tuple(documents)


class LeaveService:
    """Leave requests: creation with overlap validation, edits, cancellation and review."""

    def __init__(
        self,
        leaves: LeaveRepository,
        users: UserRepository,
        *,
        validator: LeaveConflictValidator | None = None,
    ):
        self._leaves = leaves
        self._users = users
        self._validator = validator or LeaveConflictValidator(leaves)

    def _require(self, request_id: int) -> LeaveRequest:
        leave = self._leaves.get_by_id(int(request_id))
        if not leave:
            raise NotFoundError("Leave request not found")
        return leave

    def _target_student(self, actor: Actor, student_id: Optional[int]) -> int:
        if actor.is_student:
            return int(actor.user_id)
        if actor.role != Role.ADMIN:
            raise AuthorizationError("Only students can submit leave requests")
        if not student_id:
            raise ValidationError("Student ID is required")
        student = self._users.get_by_id(int(student_id))
        if not student or student.role != Role.STUDENT:
            raise NotFoundError("Student not found")
        return student.user_id

    def create(
        self,
        actor: Actor,
        *,
        leave_type,
        start_date,
        end_date,
        reason,
        is_emergency=False,
        supporting_documents=None,
        student_id: Optional[int] = None,
        now: datetime | None = None,
    ) -> LeaveRequest:
        now = now or now_local()
        owner_id = self._target_student(actor, student_id)

        leave_type = require_enum(LeaveType, leave_type, "leave type")
        start = require_date(start_date, "Start date")
        end = require_date(end_date, "End date")
        require_date_range(start, end)
        reason = parse_reason(reason)
        emergency = require_bool(is_emergency or False, "Emergency flag")
        documents = parse_documents(supporting_documents, now=now)

        self._validator.ensure_no_overlap(owner_id, start, end)

        request_id = self._leaves.create(
            student_id=owner_id,
            leave_type=leave_type,
            start_date=start,
            end_date=end,
            reason=reason,
            is_emergency=emergency,
            supporting_documents=documents,
            created_by=int(actor.user_id),
            created_at=now,
        )
        return self._require(request_id)

    def get(self, actor: Actor, request_id: int) -> LeaveRequest:
        leave = self._require(request_id)
        ensure_can_view(actor, leave.student_id, "leave request")
        return leave

    def list(
        self,
        actor: Actor,
        *,
        status=None,
        student_id: Optional[int] = None,
        page=None,
        limit=None,
    ) -> Page[LeaveRequest]:
        scoped = resolve_student_scope(actor, student_id)
        status = require_enum(LeaveStatus, status, "status") if status else None
        request = PageRequest.of(page, limit, default_limit=DEFAULT_PAGE_SIZE)
        rows = self._leaves.list_requests(student_id=scoped, status=status, window=request)
        return page_of(rows, total=self._leaves.count_requests(student_id=scoped, status=status), request=request)

    def update(self, actor: Actor, request_id: int, *, changes: dict, now: datetime | None = None) -> LeaveRequest:
        leave = self._require(request_id)
        if actor.is_student:
            if leave.student_id != int(actor.user_id):
                raise AuthorizationError("Not authorized to update this leave request")
            if leave.status != LeaveStatus.PENDING:
                raise ConflictError("Cannot modify a leave request that is not pending")
        elif actor.role != Role.ADMIN:
            raise AuthorizationError("Not authorized to update this leave request")

        if "status" in changes:
            raise ValidationError("Status cannot be changed here; use cancel or review")
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        cleaned: dict = {}
        if "leave_type" in changes:
            cleaned["leave_type"] = require_enum(LeaveType, changes["leave_type"], "leave type")
        if "reason" in changes:
            cleaned["reason"] = parse_reason(changes["reason"])
        if "is_emergency" in changes:
            cleaned["is_emergency"] = require_bool(changes["is_emergency"], "Emergency flag")
        if "supporting_documents" in changes:
            cleaned["supporting_documents"] = parse_documents(changes["supporting_documents"], now=now or now_local())

        if "start_date" in changes or "end_date" in changes:
            start = require_date(changes.get("start_date") or leave.start_date, "Start date")
            end = require_date(changes.get("end_date") or leave.end_date, "End date")
            require_date_range(start, end)
            self._validator.ensure_no_overlap(leave.student_id, start, end, exclude_request_id=leave.request_id)
            cleaned["start_date"] = start
            cleaned["end_date"] = end

        expected = LeaveStatus.PENDING if actor.is_student else None
        if cleaned:
            applied = self._leaves.update_fields(leave.request_id, changes=cleaned, expected=expected)
            if not applied and expected is not None:
                raise ConflictError("Cannot modify a leave request that is not pending")
        return self._require(leave.request_id)

    def cancel(self, actor: Actor, request_id: int) -> LeaveRequest:
        leave = self._require(request_id)
        is_owner = leave.student_id == int(actor.user_id)
        if not is_owner and actor.role != Role.ADMIN:
            raise AuthorizationError("Not authorized to cancel this leave request")
        if leave.status not in CANCELLABLE_STATUSES:
            raise ConflictError(f"Cannot cancel a leave request that is {leave.status.value.lower()}")

        if not self._leaves.set_status(leave.request_id, status=LeaveStatus.CANCELLED, expected=[leave.status]):
            raise ConflictError("Leave request was changed by someone else, please reload")
        return self._require(leave.request_id)

    def review(
        self,
        actor: Actor,
        request_id: int,
        *,
        status,
        comments: Optional[str] = None,
        now: datetime | None = None,
    ) -> LeaveRequest:
        decision = LEAVE_REVIEW.decide(actor, status, comments=comments, now=now or now_local())
        reviewed = LEAVE_REVIEW.apply(self._require(request_id), decision)

        applied = self._leaves.set_status(
            reviewed.request_id,
            status=reviewed.status,
            expected=[LeaveStatus.PENDING],
            reviewed_by=reviewed.reviewed_by,
            reviewed_at=reviewed.reviewed_at,
            review_comments=reviewed.review_comments,
        )
        if not applied:
            raise ConflictError("This leave request has already been reviewed")
        return self._require(reviewed.request_id)

    def pending_count(self, actor: Actor) -> int:
        require_reviewer(actor)
        return self._leaves.count_requests(status=LeaveStatus.PENDING)

