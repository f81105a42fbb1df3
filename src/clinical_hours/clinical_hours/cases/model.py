from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Optional, Tuple

from ..core.enums import AgeGroup, ApprovalStatus, Gender, HearingLossDegree, HearingLossType, TestType


@dataclass(frozen=True)
class PatientInfo:
    initials: str
    age_group: AgeGroup
    gender: Gender
    referral_source: Optional[str] = None


@dataclass(frozen=True)
class TestPerformed:
    __test__ = False

    test_type: TestType
    completed: bool = False
    duration: Optional[float] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class EarAudiogram:
    """Thresholds in dB HL keyed by frequency in Hz; missing frequencies were not tested."""

    air_conduction: Dict[int, float] = field(default_factory=dict)
    bone_conduction: Dict[int, float] = field(default_factory=dict)
    masking: bool = False


@dataclass(frozen=True)
class Audiogram:
    right_ear: EarAudiogram = field(default_factory=EarAudiogram)
    left_ear: EarAudiogram = field(default_factory=EarAudiogram)


@dataclass(frozen=True)
class Findings:
    right_type: Optional[HearingLossType] = None
    left_type: Optional[HearingLossType] = None
    right_degree: Optional[HearingLossDegree] = None
    left_degree: Optional[HearingLossDegree] = None
    additional_findings: Optional[str] = None


@dataclass(frozen=True)
class SupervisorApproval:
    status: ApprovalStatus = ApprovalStatus.PENDING
    reviewed_at: Optional[datetime] = None
    comments: Optional[str] = None


@dataclass(frozen=True)
class ClinicalCase:
    """Domain entity: one patient encounter logged by a student for supervisor review.

    ``case_number`` is assigned once at creation and never changes.
    """

    case_id: int
    student_id: int
    case_number: str
    patient_info: PatientInfo
    session_date: date
    tests_performed: Tuple[TestPerformed, ...] = ()
    audiogram: Optional[Audiogram] = None
    findings: Optional[Findings] = None
    recommendations: Optional[str] = None
    session_duration: Optional[float] = None
    supervisor_id: Optional[int] = None
    approval: SupervisorApproval = field(default_factory=SupervisorApproval)
    is_completed: bool = False
    created_at: Optional[datetime] = None

    @property
    def status(self) -> ApprovalStatus:
        return self.approval.status

    @property
    def total_tests_count(self) -> int:
        return len(self.tests_performed)

    @property
    def completed_tests_count(self) -> int:
        return sum(1 for t in self.tests_performed if t.completed)


@dataclass(frozen=True)
class BulkReviewResult:
    requested: int
    modified_count: int
