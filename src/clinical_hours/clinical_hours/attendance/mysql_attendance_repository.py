from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

from ..common.pagination import PageRequest
from ..core.enums import AccrualKind, Location
from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import DuplicateKeyError, db_cursor, fetch_count, fetchall, fetchone, limit_clause
from .model import AttendanceSession, SessionClose
from .repository import AttendanceRepository

ATTENDANCE_DAY_KEY = "uq_attendance_student_date"

_COLUMNS = """
    session_id, student_id, session_date, time_in, time_out, break_minutes, location,
    supervisor_id, supervisor_verified, verified_at, notes, is_manual_entry
"""


def _to_session(r: dict) -> AttendanceSession:
    return AttendanceSession(
        session_id=int(r["session_id"]),
        student_id=int(r["student_id"]),
        date=r["session_date"],
        time_in=r["time_in"],
        time_out=r.get("time_out"),
        break_minutes=int(r.get("break_minutes") or 0),
        location=Location(r["location"]),
        supervisor_id=r.get("supervisor_id"),
        supervisor_verified=bool(r.get("supervisor_verified")),
        verified_at=r.get("verified_at"),
        notes=r.get("notes"),
        is_manual_entry=bool(r.get("is_manual_entry")),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, session_id: int) -> Optional[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_sessions WHERE session_id=%s", (int(session_id),))
            r = fetchone(cur)
            return _to_session(r) if r else None

    def get_open_for_student(self, student_id: int) -> Optional[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_sessions
                WHERE student_id=%s AND time_out IS NULL
                ORDER BY time_in DESC
                LIMIT 1
                """,
                (int(student_id),),
            )
            r = fetchone(cur)
            return _to_session(r) if r else None

    def get_for_student_and_date(self, student_id: int, day: date) -> Optional[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_sessions WHERE student_id=%s AND session_date=%s",
                (int(student_id), day),
            )
            r = fetchone(cur)
            return _to_session(r) if r else None

    def create_checkin(
        self,
        *,
        student_id: int,
        day: date,
        time_in: datetime,
        location: Location,
        supervisor_id: Optional[int] = None,
    ) -> int:
        # The per-day unique key turns a concurrent second check-in into a conflict.
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance_sessions(student_id, session_date, time_in, location, supervisor_id)
                    VALUES(%s,%s,%s,%s,%s)
                    """,
                    (int(student_id), day, time_in, location.value, supervisor_id),
                )
                return int(cur.lastrowid)
        except DuplicateKeyError as exc:
            if exc.key == ATTENDANCE_DAY_KEY:
                raise ConflictError("You have already checked in today") from exc
            raise

    def close_session_and_accrue(self, close: SessionClose, *, accrued_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT session_id, time_out FROM attendance_sessions WHERE session_id=%s FOR UPDATE",
                (int(close.session_id),),
            )
            row = fetchone(cur)
            if not row:
                return False

            if row.get("time_out") is None:
                cur.execute(
                    """
                    UPDATE attendance_sessions
                    SET time_out=%s, break_minutes=%s, notes=%s, is_manual_entry=%s
                    WHERE session_id=%s AND time_out IS NULL
                    """,
                    (
                        close.time_out,
                        int(close.break_minutes),
                        close.notes,
                        bool(close.is_manual_entry),
                        int(close.session_id),
                    ),
                )

            cur.execute("SELECT accrual_id FROM hour_accruals WHERE session_id=%s", (int(close.session_id),))
            if fetchone(cur):
                return True

            cur.execute(
                """
                INSERT INTO hour_accruals(student_id, session_id, hours, kind, created_at)
                VALUES(%s,%s,%s,%s,%s)
                """,
                (
                    int(close.student_id),
                    int(close.session_id),
                    float(close.net_hours),
                    AccrualKind.SESSION.value,
                    accrued_at,
                ),
            )
            cur.execute(
                "UPDATE users SET completed_hours = completed_hours + %s WHERE user_id=%s",
                (float(close.net_hours), int(close.student_id)),
            )
            return True

    def mark_verified(self, *, session_id: int, supervisor_id: int, verified_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_sessions
                SET supervisor_verified=TRUE, supervisor_id=%s, verified_at=%s
                WHERE session_id=%s
                """,
                (int(supervisor_id), verified_at, int(session_id)),
            )
            return cur.rowcount > 0

    @staticmethod
    def _filters(student_id, start, end, closed_only) -> tuple[str, list]:
        clauses = ["1=1"]
        params: list[object] = []

        if student_id is not None:
            clauses.append("student_id=%s")
            params.append(int(student_id))
        if start is not None:
            clauses.append("session_date >= %s")
            params.append(start)
        if end is not None:
            clauses.append("session_date <= %s")
            params.append(end)
        if closed_only:
            clauses.append("time_out IS NOT NULL")

        return " AND ".join(clauses), params

    def list_for_student(
        self,
        *,
        student_id: Optional[int],
        start: Optional[date] = None,
        end: Optional[date] = None,
        closed_only: bool = False,
        window: Optional[PageRequest] = None,
    ) -> Sequence[AttendanceSession]:
        where, params = self._filters(student_id, start, end, closed_only)
        limit, limit_params = limit_clause(window)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_sessions
                WHERE {where}
                ORDER BY session_date DESC, time_in DESC{limit}
                """,
                (*params, *limit_params),
            )
            return [_to_session(r) for r in fetchall(cur)]

    def count_for_student(
        self,
        *,
        student_id: Optional[int],
        start: Optional[date] = None,
        end: Optional[date] = None,
        closed_only: bool = False,
    ) -> int:
        where, params = self._filters(student_id, start, end, closed_only)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM attendance_sessions WHERE {where}", tuple(params))
            return fetch_count(cur)
