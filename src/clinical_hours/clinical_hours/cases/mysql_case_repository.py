from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

from ..common.pagination import PageRequest
from ..core.enums import AgeGroup, ApprovalStatus, Gender, TestType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import (
    DuplicateKeyError,
    db_cursor,
    fetch_count,
    fetchall,
    fetchone,
    from_json,
    limit_clause,
    to_json,
)
from .model import ClinicalCase, PatientInfo, SupervisorApproval
from .payload import (
    audiogram_to_dict,
    findings_to_dict,
    parse_audiogram,
    parse_findings,
    parse_tests,
    tests_to_list,
)
from .repository import CaseNumberCounter, CaseNumberTaken, CaseRepository

CASE_NUMBER_KEY = "uq_clinical_cases_case_number"

_COLUMNS = """
    case_id, student_id, supervisor_id, case_number,
    patient_initials, age_group, gender, referral_source,
    tests_performed, audiogram, findings, recommendations,
    approval_status, reviewed_at, review_comments, is_completed,
    session_date, session_duration, created_at
"""


def _to_case(r: dict) -> ClinicalCase:
    duration = r.get("session_duration")
    return ClinicalCase(
        case_id=int(r["case_id"]),
        student_id=int(r["student_id"]),
        case_number=r["case_number"],
        patient_info=PatientInfo(
            initials=r["patient_initials"],
            age_group=AgeGroup(r["age_group"]),
            gender=Gender(r["gender"]),
            referral_source=r.get("referral_source"),
        ),
        session_date=r["session_date"],
        tests_performed=parse_tests(from_json(r.get("tests_performed"), [])),
        audiogram=parse_audiogram(from_json(r.get("audiogram"))),
        findings=parse_findings(from_json(r.get("findings"))),
        recommendations=r.get("recommendations"),
        session_duration=float(duration) if duration is not None else None,
        supervisor_id=r.get("supervisor_id"),
        approval=SupervisorApproval(
            status=ApprovalStatus(r["approval_status"]),
            reviewed_at=r.get("reviewed_at"),
            comments=r.get("review_comments"),
        ),
        is_completed=bool(r.get("is_completed")),
        created_at=r.get("created_at"),
    )


def _column_values(field: str, value) -> dict:
    """Map one ClinicalCase attribute to its column(s)."""
    if field == "patient_info":
        return {
            "patient_initials": value.initials,
            "age_group": value.age_group.value,
            "gender": value.gender.value,
            "referral_source": value.referral_source,
        }
    if field == "tests_performed":
        return {"tests_performed": to_json(tests_to_list(value))}
    if field == "audiogram":
        return {"audiogram": to_json(audiogram_to_dict(value))}
    if field == "findings":
        return {"findings": to_json(findings_to_dict(value))}
    if field in {"recommendations", "session_date", "session_duration"}:
        return {field: value}
    return {}


class MySQLCaseRepository(CaseRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, case_id: int) -> Optional[ClinicalCase]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM clinical_cases WHERE case_id=%s", (int(case_id),))
            r = fetchone(cur)
            return _to_case(r) if r else None

    @staticmethod
    def _filters(student_id, status, age_group, test_type, start, end) -> tuple[str, list]:
        clauses = ["1=1"]
        params: list[object] = []

        if student_id is not None:
            clauses.append("student_id=%s")
            params.append(int(student_id))
        if status is not None:
            clauses.append("approval_status=%s")
            params.append(status.value)
        if age_group is not None:
            clauses.append("age_group=%s")
            params.append(age_group.value)
        if test_type is not None:
            clauses.append("JSON_SEARCH(tests_performed, 'one', %s, NULL, '$[*].test_type') IS NOT NULL")
            params.append(test_type.value)
        if start is not None:
            clauses.append("session_date >= %s")
            params.append(start)
        if end is not None:
            clauses.append("session_date <= %s")
            params.append(end)

        return " AND ".join(clauses), params

    def list_cases(
        self,
        *,
        student_id: Optional[int] = None,
        status: Optional[ApprovalStatus] = None,
        age_group: Optional[AgeGroup] = None,
        test_type: Optional[TestType] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        window: Optional[PageRequest] = None,
    ) -> Sequence[ClinicalCase]:
        where, params = self._filters(student_id, status, age_group, test_type, start, end)
        limit, limit_params = limit_clause(window)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM clinical_cases WHERE {where} ORDER BY session_date DESC, case_id DESC{limit}",
                (*params, *limit_params),
            )
            return [_to_case(r) for r in fetchall(cur)]

    def count_cases(
        self,
        *,
        student_id: Optional[int] = None,
        status: Optional[ApprovalStatus] = None,
        age_group: Optional[AgeGroup] = None,
        test_type: Optional[TestType] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> int:
        where, params = self._filters(student_id, status, age_group, test_type, start, end)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM clinical_cases WHERE {where}", tuple(params))
            return fetch_count(cur)

    def create(self, draft: ClinicalCase) -> int:
        values = {
            "student_id": int(draft.student_id),
            "supervisor_id": draft.supervisor_id,
            "case_number": draft.case_number,
            "approval_status": draft.approval.status.value,
            "is_completed": bool(draft.is_completed),
            "created_at": draft.created_at,
        }
        for field in ("patient_info", "tests_performed", "audiogram", "findings", "recommendations",
                      "session_date", "session_duration"):
            values.update(_column_values(field, getattr(draft, field)))

        columns = ", ".join(values)
        placeholders = ",".join(["%s"] * len(values))
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    f"INSERT INTO clinical_cases({columns}) VALUES({placeholders})",
                    tuple(values.values()),
                )
                return int(cur.lastrowid)
        except DuplicateKeyError as exc:
            if exc.key == CASE_NUMBER_KEY:
                raise CaseNumberTaken(f"Case number {draft.case_number} already exists") from exc
            raise

    def update_fields(self, case_id: int, *, changes: dict, unless_status: Optional[ApprovalStatus] = None) -> bool:
        values: dict = {}
        for field, value in changes.items():
            values.update(_column_values(field, value))
        if not values:
            return False

        assignments = ", ".join(f"{column}=%s" for column in values)
        with db_cursor(self._conn_factory) as (_, cur):
            where = "case_id=%s"
            params = [*values.values(), int(case_id)]
            if unless_status is not None:
                where += " AND approval_status<>%s"
                params.append(unless_status.value)
            cur.execute(f"UPDATE clinical_cases SET {assignments} WHERE {where}", tuple(params))
            return cur.rowcount > 0

    def apply_review(
        self,
        case_id: int,
        *,
        expected: ApprovalStatus,
        status: ApprovalStatus,
        reviewed_at: datetime,
        comments: Optional[str],
        supervisor_id: Optional[int],
        is_completed: bool,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE clinical_cases
                SET approval_status=%s, reviewed_at=%s, review_comments=%s,
                    supervisor_id=%s, is_completed=%s
                WHERE case_id=%s AND approval_status=%s
                """,
                (status.value, reviewed_at, comments, supervisor_id, bool(is_completed), int(case_id), expected.value),
            )
            return cur.rowcount > 0

    def delete(self, case_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM clinical_cases WHERE case_id=%s", (int(case_id),))
            return cur.rowcount > 0


class MySQLCaseNumberCounter(CaseNumberCounter):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def next_sequence(self, period: str) -> int:
        # LAST_INSERT_ID(expr) makes the incremented value readable on this connection only.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO case_counters(period, value) VALUES(%s, 1)
                ON DUPLICATE KEY UPDATE value = LAST_INSERT_ID(value + 1)
                """,
                (period,),
            )
            if cur.rowcount == 1:
                return 1
            cur.execute("SELECT LAST_INSERT_ID() AS value")
            return int(fetchone(cur)["value"])
