from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Tuple

from ..core.enums import ACTIVE_LEAVE_STATUSES, LeaveStatus, LeaveType


@dataclass(frozen=True)
class SupportingDocument:
    """Opaque attachment metadata; the file itself lives elsewhere."""

    file_name: str
    file_url: str
    uploaded_at: Optional[datetime] = None

    def as_dict(self) -> dict:
        return {
            "file_name": self.file_name,
            "file_url": self.file_url,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }


@dataclass(frozen=True)
class LeaveRequest:
    request_id: int
    student_id: int
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str
    status: LeaveStatus
    created_at: datetime
    created_by: Optional[int] = None
    is_emergency: bool = False
    supporting_documents: Tuple[SupportingDocument, ...] = field(default_factory=tuple)
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    review_comments: Optional[str] = None

    @property
    def number_of_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_LEAVE_STATUSES
