from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import AccrualKind
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import HourAccrual
from .repository import HoursLedgerRepository


def _to_accrual(r: dict) -> HourAccrual:
    return HourAccrual(
        accrual_id=int(r["accrual_id"]),
        student_id=int(r["student_id"]),
        hours=float(r["hours"]),
        kind=AccrualKind(r["kind"]),
        created_at=r["created_at"],
        session_id=r.get("session_id"),
        created_by=r.get("created_by"),
        note=r.get("note"),
    )


class MySQLHoursLedgerRepository(HoursLedgerRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_student(self, student_id: int) -> Sequence[HourAccrual]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT accrual_id, student_id, session_id, hours, kind, created_at, created_by, note
                FROM hour_accruals
                WHERE student_id=%s
                ORDER BY created_at DESC, accrual_id DESC
                """,
                (int(student_id),),
            )
            return [_to_accrual(r) for r in fetchall(cur)]

    def append_adjustment(
        self,
        *,
        student_id: int,
        hours: float,
        created_by: int,
        created_at: datetime,
        note: Optional[str] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO hour_accruals(student_id, session_id, hours, kind, created_at, created_by, note)
                VALUES(%s, NULL, %s, %s, %s, %s, %s)
                """,
                (int(student_id), float(hours), AccrualKind.ADJUSTMENT.value, created_at, int(created_by), note),
            )
            accrual_id = int(cur.lastrowid)
            cur.execute(
                "UPDATE users SET completed_hours = GREATEST(0, completed_hours + %s) WHERE user_id=%s",
                (float(hours), int(student_id)),
            )
            return accrual_id

    def rematerialize(self, student_id: int) -> float:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT COALESCE(SUM(hours), 0) AS total FROM hour_accruals WHERE student_id=%s",
                (int(student_id),),
            )
            row = fetchone(cur)
            total = max(0.0, float(row["total"]) if row else 0.0)
            cur.execute("UPDATE users SET completed_hours=%s WHERE user_id=%s", (total, int(student_id)))
            return total
