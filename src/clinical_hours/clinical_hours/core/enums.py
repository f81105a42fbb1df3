from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Actor roles used for permission checks."""

    STUDENT = "Student"
    SUPERVISOR = "Supervisor"
    ADMIN = "Admin"


REVIEWER_ROLES = frozenset({Role.SUPERVISOR, Role.ADMIN})


class Location(str, Enum):
    MAIN_CLINIC = "Main Clinic"
    OPD = "OPD"
    AUDIOLOGY_LAB = "Audiology Lab"
    SPEECH_LAB = "Speech Lab"
    WARD = "Ward"
    CAMP = "Camp"
    OTHER = "Other"


class AccrualKind(str, Enum):
    """Origin of an hours ledger entry."""

    SESSION = "Session"
    ADJUSTMENT = "Adjustment"


class LeaveType(str, Enum):
    SICK = "Sick Leave"
    PERSONAL = "Personal Leave"
    EMERGENCY = "Emergency"
    ACADEMIC = "Academic"
    OTHER = "Other"


class LeaveStatus(str, Enum):
    """Leave request lifecycle."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"


# Statuses that still hold the requested dates.
ACTIVE_LEAVE_STATUSES = frozenset({LeaveStatus.PENDING, LeaveStatus.APPROVED})


class ApprovalStatus(str, Enum):
    """Supervisor approval of a clinical case."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    REVISION_REQUIRED = "Revision Required"


class AgeGroup(str, Enum):
    UNDER_2 = "<2y"
    FROM_2_TO_5 = "2.1-5y"
    FROM_5_TO_16 = "5.1-16y"
    FROM_16_TO_40 = "16.1-40y"
    FROM_40_TO_60 = "40.1-60y"
    OVER_60 = ">60y"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class TestType(str, Enum):
    """Audiology procedures that can be logged on a case."""

    __test__ = False

    PTA = "PTA"
    ABR = "ABR"
    OAE = "OAE"
    IMMITTANCE = "Immittance"
    BERA = "BERA"
    ASSR = "ASSR"
    SPEECH = "Speech"
    BOA = "BOA"
    VRA = "VRA"
    COND_PLAY = "CondPlay"
    CPA = "CPA"
    HA_TRIAL = "HA_Trial"
    HA_FITTING = "HA_Fitting"
    CI_MAPPING = "CI_Mapping"
    COUNSELING = "Counseling"
    OTHER = "Other"


class HearingLossType(str, Enum):
    NORMAL = "Normal"
    CONDUCTIVE = "Conductive"
    SENSORINEURAL = "Sensorineural"
    MIXED = "Mixed"
    AUDITORY_NEUROPATHY = "Auditory Neuropathy"
    CAPD = "Central Auditory Processing Disorder"
    UNKNOWN = "Unknown"


class HearingLossDegree(str, Enum):
    NORMAL = "Normal (-10 to 25 dB)"
    MILD = "Mild (26 to 40 dB)"
    MODERATE = "Moderate (41 to 55 dB)"
    MODERATELY_SEVERE = "Moderately Severe (56 to 70 dB)"
    SEVERE = "Severe (71 to 90 dB)"
    PROFOUND = "Profound (>90 dB)"
