"""Conversion between clinical-case payload dicts and domain objects.

The same parsers read request bodies and the JSON columns of the store, so
anything persisted has passed the same validation.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from ..common.validators import (
    optional_date,
    optional_text,
    require_bool,
    require_enum,
    require_max_length,
    require_non_empty,
    require_non_negative,
)
from ..core.constants import (
    AIR_CONDUCTION_FREQUENCIES,
    BONE_CONDUCTION_FREQUENCIES,
    FINDINGS_TEXT_MAX,
    PATIENT_INITIALS_MAX,
    SESSION_NOTES_MAX,
    THRESHOLD_MAX_DB,
    THRESHOLD_MIN_DB,
)
from ..core.enums import AgeGroup, Gender, HearingLossDegree, HearingLossType, TestType
from ..core.exceptions import ValidationError
from .model import Audiogram, EarAudiogram, Findings, PatientInfo, TestPerformed

EDITABLE_FIELDS = frozenset(
    {
        "patient_info",
        "tests_performed",
        "audiogram",
        "findings",
        "recommendations",
        "session_date",
        "session_duration",
    }
)
PROTECTED_FIELDS = frozenset(
    {"case_id", "case_number", "student_id", "supervisor_id", "supervisor_approval", "status", "is_completed"}
)


def _require_mapping(value, what: str) -> dict:
    if not isinstance(value, dict):
        raise ValidationError(f"{what} must be an object")
    return value


def parse_patient_info(value) -> PatientInfo:
    data = _require_mapping(value, "Patient info")
    initials = require_non_empty(data.get("initials"), "Patient initials")
    return PatientInfo(
        initials=require_max_length(initials, "Patient initials", PATIENT_INITIALS_MAX),
        age_group=require_enum(AgeGroup, data.get("age_group"), "patient age group"),
        gender=require_enum(Gender, data.get("gender"), "gender"),
        referral_source=optional_text(data.get("referral_source"), "Referral source", FINDINGS_TEXT_MAX),
    )


def parse_tests(value) -> tuple[TestPerformed, ...]:
    if value in (None, ""):
        return ()
    if not isinstance(value, (list, tuple)):
        raise ValidationError("Tests performed must be a list")

    tests = []
    for item in value:
        data = _require_mapping(item, "Test")
        duration = data.get("duration")
        tests.append(
            TestPerformed(
                test_type=require_enum(TestType, data.get("test_type"), "test type"),
                completed=require_bool(data.get("completed") or False, "Test completed"),
                duration=require_non_negative(duration, "Duration") if duration not in (None, "") else None,
                notes=optional_text(data.get("notes"), "Test notes", SESSION_NOTES_MAX),
            )
        )
    return tuple(tests)


def _parse_thresholds(value, frequencies: Iterable[int], what: str) -> dict[int, float]:
    if value in (None, ""):
        return {}
    data = _require_mapping(value, what)
    allowed = set(frequencies)

    thresholds: dict[int, float] = {}
    for key, raw in data.items():
        try:
            frequency = int(key)
        except (TypeError, ValueError):
            raise ValidationError(f"{what}: invalid frequency {key!r}")
        if frequency not in allowed:
            raise ValidationError(f"{what}: {frequency} Hz is not a tested frequency")
        if raw in (None, ""):
            continue
        try:
            level = float(raw)
        except (TypeError, ValueError):
            raise ValidationError(f"{what} at {frequency} Hz must be a number")
        if not THRESHOLD_MIN_DB <= level <= THRESHOLD_MAX_DB:
            raise ValidationError(
                f"{what} at {frequency} Hz must be between {THRESHOLD_MIN_DB} and {THRESHOLD_MAX_DB} dB"
            )
        thresholds[frequency] = level
    return thresholds


def parse_ear(value, side: str) -> EarAudiogram:
    if value in (None, ""):
        return EarAudiogram()
    data = _require_mapping(value, f"{side} ear audiogram")
    return EarAudiogram(
        air_conduction=_parse_thresholds(
            data.get("air_conduction"), AIR_CONDUCTION_FREQUENCIES, f"{side} ear air conduction"
        ),
        bone_conduction=_parse_thresholds(
            data.get("bone_conduction"), BONE_CONDUCTION_FREQUENCIES, f"{side} ear bone conduction"
        ),
        masking=require_bool(data.get("masking") or False, "Masking"),
    )


def parse_audiogram(value) -> Optional[Audiogram]:
    if value in (None, ""):
        return None
    data = _require_mapping(value, "Audiogram")
    return Audiogram(right_ear=parse_ear(data.get("right_ear"), "Right"), left_ear=parse_ear(data.get("left_ear"), "Left"))


def _optional_enum(enum_cls, value, field_name: str):
    if value in (None, ""):
        return None
    return require_enum(enum_cls, value, field_name)


def parse_findings(value) -> Optional[Findings]:
    if value in (None, ""):
        return None
    data = _require_mapping(value, "Findings")
    types = _require_mapping(data.get("hearing_loss_type") or {}, "Hearing loss type")
    degrees = _require_mapping(data.get("hearing_loss_degree") or {}, "Hearing loss degree")
    return Findings(
        right_type=_optional_enum(HearingLossType, types.get("right_ear"), "hearing loss type"),
        left_type=_optional_enum(HearingLossType, types.get("left_ear"), "hearing loss type"),
        right_degree=_optional_enum(HearingLossDegree, degrees.get("right_ear"), "hearing loss degree"),
        left_degree=_optional_enum(HearingLossDegree, degrees.get("left_ear"), "hearing loss degree"),
        additional_findings=optional_text(data.get("additional_findings"), "Additional findings", FINDINGS_TEXT_MAX),
    )


def parse_case_fields(data, *, creating: bool, today: date) -> dict:
    """Validate a create/update body into a dict keyed by ClinicalCase attribute names."""
    data = _require_mapping(data, "Case data")

    protected = PROTECTED_FIELDS.intersection(data)
    if protected:
        raise ValidationError(f"Fields cannot be set directly: {', '.join(sorted(protected))}")
    unknown = set(data) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    cleaned: dict = {}
    if creating or "patient_info" in data:
        if data.get("patient_info") is None:
            raise ValidationError("Patient info is required")
        cleaned["patient_info"] = parse_patient_info(data["patient_info"])
    if "tests_performed" in data:
        cleaned["tests_performed"] = parse_tests(data["tests_performed"])
    if "audiogram" in data:
        cleaned["audiogram"] = parse_audiogram(data["audiogram"])
    if "findings" in data:
        cleaned["findings"] = parse_findings(data["findings"])
    if "recommendations" in data:
        cleaned["recommendations"] = optional_text(data["recommendations"], "Recommendations", FINDINGS_TEXT_MAX)
    if "session_duration" in data:
        duration = data["session_duration"]
        cleaned["session_duration"] = (
            require_non_negative(duration, "Session duration") if duration not in (None, "") else None
        )
    if creating or "session_date" in data:
        session_date = optional_date(data.get("session_date"), "Session date")
        if session_date is None and not creating:
            raise ValidationError("Session date is required")
        cleaned["session_date"] = session_date or today
    return cleaned


def patient_info_to_dict(info: PatientInfo) -> dict:
    return {
        "initials": info.initials,
        "age_group": info.age_group.value,
        "gender": info.gender.value,
        "referral_source": info.referral_source,
    }


def tests_to_list(tests: Iterable[TestPerformed]) -> list[dict]:
    return [
        {"test_type": t.test_type.value, "completed": t.completed, "duration": t.duration, "notes": t.notes}
        for t in tests
    ]


def _ear_to_dict(ear: EarAudiogram) -> dict:
    return {
        "air_conduction": {str(k): v for k, v in sorted(ear.air_conduction.items())},
        "bone_conduction": {str(k): v for k, v in sorted(ear.bone_conduction.items())},
        "masking": ear.masking,
    }


def audiogram_to_dict(audiogram: Optional[Audiogram]) -> Optional[dict]:
    if audiogram is None:
        return None
    return {"right_ear": _ear_to_dict(audiogram.right_ear), "left_ear": _ear_to_dict(audiogram.left_ear)}


def findings_to_dict(findings: Optional[Findings]) -> Optional[dict]:
    if findings is None:
        return None

    def value(member):
        return member.value if member else None

    return {
        "hearing_loss_type": {"right_ear": value(findings.right_type), "left_ear": value(findings.left_type)},
        "hearing_loss_degree": {"right_ear": value(findings.right_degree), "left_ear": value(findings.left_degree)},
        "additional_findings": findings.additional_findings,
    }
