from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import User
from .repository import UserRepository

_USER_COLUMNS = """
    user_id, name, email, role, total_allotted_hours, completed_hours,
    supervisor_id, batch, semester, registration_number, is_active
"""

_PROFILE_COLUMNS = ("name", "email", "batch", "semester", "registration_number")


def _to_user(r: dict) -> User:
    return User(
        user_id=int(r["user_id"]),
        name=r["name"],
        email=r["email"],
        role=Role(r["role"]),
        total_allotted_hours=float(r.get("total_allotted_hours") or 0),
        completed_hours=float(r.get("completed_hours") or 0),
        supervisor_id=r.get("supervisor_id"),
        batch=r.get("batch"),
        semester=r.get("semester"),
        registration_number=r.get("registration_number"),
        is_active=bool(r.get("is_active", True)),
    )


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, user_id: int) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE user_id=%s", (int(user_id),))
            row = fetchone(cur)
            return _to_user(row) if row else None

    def list_students(
        self,
        *,
        batch: Optional[str] = None,
        semester: Optional[int] = None,
        search: Optional[str] = None,
        supervisor_id: Optional[int] = None,
        active_only: bool = True,
    ) -> Sequence[User]:
        clauses = ["role=%s"]
        params: list[object] = [Role.STUDENT.value]
        if active_only:
            clauses.append("is_active=1")
        if batch:
            clauses.append("batch=%s")
            params.append(batch)
        if semester is not None:
            clauses.append("semester=%s")
            params.append(int(semester))
        if supervisor_id is not None:
            clauses.append("supervisor_id=%s")
            params.append(int(supervisor_id))
        if search:
            clauses.append("(name LIKE %s OR email LIKE %s OR registration_number LIKE %s)")
            pattern = f"%{search}%"
            params.extend([pattern, pattern, pattern])

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE {where} ORDER BY name ASC", tuple(params))
            return [_to_user(r) for r in fetchall(cur)]

    def update_profile(self, user_id: int, *, changes: dict) -> bool:
        columns = [c for c in _PROFILE_COLUMNS if c in changes]
        if not columns:
            return False
        assignments = ", ".join(f"{c}=%s" for c in columns)
        params = [changes[c] for c in columns] + [int(user_id)]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE users SET {assignments} WHERE user_id=%s", tuple(params))
            return cur.rowcount > 0

    def set_supervisor(self, user_id: int, *, supervisor_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE users SET supervisor_id=%s WHERE user_id=%s", (int(supervisor_id), int(user_id)))
            return cur.rowcount > 0

    def set_allotted_hours(self, user_id: int, *, hours: float) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE users SET total_allotted_hours=%s WHERE user_id=%s", (float(hours), int(user_id)))
            return cur.rowcount > 0

    def set_active(self, user_id: int, *, is_active: bool) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE users SET is_active=%s WHERE user_id=%s", (1 if is_active else 0, int(user_id)))
            return cur.rowcount > 0
