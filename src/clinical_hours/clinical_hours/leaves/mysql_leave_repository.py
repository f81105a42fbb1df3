from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from ..common.datetime_utils import parse_iso_datetime
from ..common.pagination import PageRequest
from ..core.enums import ACTIVE_LEAVE_STATUSES, LeaveStatus, LeaveType
from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetch_count, fetchall, fetchone, from_json, in_clause, limit_clause, to_json
from .model import LeaveRequest, SupportingDocument
from .repository import LeaveRepository

_COLUMNS = """
    request_id, student_id, leave_type, start_date, end_date, reason, status,
    is_emergency, supporting_documents, created_by, created_at,
    reviewed_by, reviewed_at, review_comments
"""

_FIELD_COLUMNS = {
    "leave_type": "leave_type",
    "start_date": "start_date",
    "end_date": "end_date",
    "reason": "reason",
    "is_emergency": "is_emergency",
    "supporting_documents": "supporting_documents",
}

_ACTIVE = sorted(s.value for s in ACTIVE_LEAVE_STATUSES)


def _to_document(d: dict) -> SupportingDocument:
    uploaded_at = d.get("uploaded_at")
    return SupportingDocument(
        file_name=d["file_name"],
        file_url=d["file_url"],
        uploaded_at=parse_iso_datetime(uploaded_at) if uploaded_at else None,
    )


def _to_leave(r: dict) -> LeaveRequest:
    return LeaveRequest(
        request_id=int(r["request_id"]),
        student_id=int(r["student_id"]),
        leave_type=LeaveType(r["leave_type"]),
        start_date=r["start_date"],
        end_date=r["end_date"],
        reason=r["reason"],
        status=LeaveStatus(r["status"]),
        created_at=r["created_at"],
        created_by=r.get("created_by"),
        is_emergency=bool(r.get("is_emergency")),
        supporting_documents=tuple(_to_document(d) for d in from_json(r.get("supporting_documents"), [])),
        reviewed_by=r.get("reviewed_by"),
        reviewed_at=r.get("reviewed_at"),
        review_comments=r.get("review_comments"),
    )


def _db_value(field: str, value):
    if field == "leave_type":
        return value.value
    if field == "supporting_documents":
        return to_json([d.as_dict() for d in value])
    return value


class MySQLLeaveRepository(LeaveRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, request_id: int) -> Optional[LeaveRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM leave_requests WHERE request_id=%s", (int(request_id),))
            r = fetchone(cur)
            return _to_leave(r) if r else None

    def list_active_for_student(
        self,
        student_id: int,
        *,
        exclude_request_id: Optional[int] = None,
    ) -> Sequence[LeaveRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM leave_requests
                WHERE student_id=%s AND status IN ({in_clause(_ACTIVE)}) AND request_id <> %s
                ORDER BY start_date
                """,
                (int(student_id), *_ACTIVE, int(exclude_request_id or 0)),
            )
            return [_to_leave(r) for r in fetchall(cur)]

    @staticmethod
    def _filters(student_id, status) -> tuple[str, list]:
        clauses = ["1=1"]
        params: list[object] = []
        if student_id is not None:
            clauses.append("student_id=%s")
            params.append(int(student_id))
        if status is not None:
            clauses.append("status=%s")
            params.append(status.value)
        return " AND ".join(clauses), params

    def list_requests(
        self,
        *,
        student_id: Optional[int] = None,
        status: Optional[LeaveStatus] = None,
        window: Optional[PageRequest] = None,
    ) -> Sequence[LeaveRequest]:
        where, params = self._filters(student_id, status)
        limit, limit_params = limit_clause(window)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM leave_requests WHERE {where} ORDER BY created_at DESC, request_id DESC{limit}",
                (*params, *limit_params),
            )
            return [_to_leave(r) for r in fetchall(cur)]

    def count_requests(self, *, student_id: Optional[int] = None, status: Optional[LeaveStatus] = None) -> int:
        where, params = self._filters(student_id, status)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM leave_requests WHERE {where}", tuple(params))
            return fetch_count(cur)

    @staticmethod
    def _lock_and_check_overlap(cur, *, student_id: int, start: date, end: date, exclude_request_id: int = 0) -> None:
        # Serializes writers per student so two overlapping submissions cannot both pass.
        cur.execute("SELECT user_id FROM users WHERE user_id=%s FOR UPDATE", (int(student_id),))
        fetchone(cur)
        cur.execute(
            f"""
            SELECT request_id FROM leave_requests
            WHERE student_id=%s AND status IN ({in_clause(_ACTIVE)}) AND request_id <> %s
              AND start_date <= %s AND end_date >= %s
            LIMIT 1
            """,
            (int(student_id), *_ACTIVE, int(exclude_request_id), end, start),
        )
        if fetchone(cur):
            raise ConflictError("You already have a leave request for some of these dates")

    def create(
        self,
        *,
        student_id: int,
        leave_type: LeaveType,
        start_date: date,
        end_date: date,
        reason: str,
        is_emergency: bool,
        supporting_documents: Sequence[SupportingDocument],
        created_by: int,
        created_at: datetime,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            self._lock_and_check_overlap(cur, student_id=student_id, start=start_date, end=end_date)
            cur.execute(
                """
                INSERT INTO leave_requests(
                    student_id, leave_type, start_date, end_date, reason, status,
                    is_emergency, supporting_documents, created_by, created_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(student_id),
                    leave_type.value,
                    start_date,
                    end_date,
                    reason,
                    LeaveStatus.PENDING.value,
                    bool(is_emergency),
                    to_json([d.as_dict() for d in supporting_documents]),
                    int(created_by),
                    created_at,
                ),
            )
            return int(cur.lastrowid)

    def update_fields(self, request_id: int, *, changes: dict, expected: Optional[LeaveStatus] = None) -> bool:
        fields = [f for f in changes if f in _FIELD_COLUMNS]
        if not fields:
            return False

        assignments = ", ".join(f"{_FIELD_COLUMNS[f]}=%s" for f in fields)
        params = [_db_value(f, changes[f]) for f in fields]

        with db_cursor(self._conn_factory) as (_, cur):
            if "start_date" in changes and "end_date" in changes:
                cur.execute("SELECT student_id FROM leave_requests WHERE request_id=%s", (int(request_id),))
                row = fetchone(cur)
                if not row:
                    return False
                self._lock_and_check_overlap(
                    cur,
                    student_id=int(row["student_id"]),
                    start=changes["start_date"],
                    end=changes["end_date"],
                    exclude_request_id=int(request_id),
                )
            where = "request_id=%s"
            params.append(int(request_id))
            if expected is not None:
                where += " AND status=%s"
                params.append(expected.value)
            cur.execute(f"UPDATE leave_requests SET {assignments} WHERE {where}", tuple(params))
            return cur.rowcount > 0

    def set_status(
        self,
        request_id: int,
        *,
        status: LeaveStatus,
        expected: Iterable[LeaveStatus],
        reviewed_by: Optional[int] = None,
        reviewed_at: Optional[datetime] = None,
        review_comments: Optional[str] = None,
    ) -> bool:
        expected_values = [s.value for s in expected]
        with db_cursor(self._conn_factory) as (_, cur):
            if reviewed_by is None:
                cur.execute(
                    f"""
                    UPDATE leave_requests SET status=%s
                    WHERE request_id=%s AND status IN ({in_clause(expected_values)})
                    """,
                    (status.value, int(request_id), *expected_values),
                )
            else:
                cur.execute(
                    f"""
                    UPDATE leave_requests
                    SET status=%s, reviewed_by=%s, reviewed_at=%s, review_comments=%s
                    WHERE request_id=%s AND status IN ({in_clause(expected_values)})
                    """,
                    (status.value, int(reviewed_by), reviewed_at, review_comments, int(request_id), *expected_values),
                )
            return cur.rowcount > 0
