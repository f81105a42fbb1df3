from __future__ import annotations

import json
import re
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import ConflictError, PersistenceError
from .connection import DatabaseConnection

_DUP_KEY_RE = re.compile(r"for key '(?:[^'.]+\.)?([^']+)'")


class DuplicateKeyError(ConflictError):
    """A unique key rejected an insert/update. ``key`` names the violated index."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


def _connect(conn_factory: DatabaseConnection):
    try:
        return conn_factory.connect()
    except mysql.connector.Error as exc:
        raise PersistenceError(f"Database unavailable: {exc.msg}") from exc


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    """One connection, one transaction: commit on success, roll back on any error.

    Driver errors are translated to domain errors so services never see
    mysql-connector types.
    """
    conn = _connect(conn_factory)
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except mysql.connector.IntegrityError as exc:
        conn.rollback()
        if exc.errno == errorcode.ER_DUP_ENTRY:
            match = _DUP_KEY_RE.search(exc.msg or "")
            raise DuplicateKeyError(exc.msg, key=match.group(1) if match else None) from exc
        raise PersistenceError(exc.msg) from exc
    except mysql.connector.Error as exc:
        conn.rollback()
        raise PersistenceError(exc.msg) from exc
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def in_clause(values) -> str:
    """Placeholder list for ``IN (...)``; callers must pass a non-empty sequence."""
    return ",".join(["%s"] * len(values))


def to_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str)


def from_json(value: Any, default: Any = None) -> Any:
    if value is None or value == "":
        return default
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return json.loads(value)
    return value


def limit_clause(window) -> tuple[str, tuple]:
    """``LIMIT/OFFSET`` suffix for a PageRequest, or nothing when unpaged."""
    if window is None:
        return "", ()
    return " LIMIT %s OFFSET %s", (int(window.limit), int(window.offset))


def fetch_count(cur) -> int:
    row = cur.fetchone()
    return int(row["total"]) if row else 0
