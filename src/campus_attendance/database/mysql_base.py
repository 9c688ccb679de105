from __future__ import annotations

from contextlib import contextmanager
from datetime import time, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

import mysql.connector

from ..common.app_logger import get_logger
from ..core.exceptions import PersistenceError
from .connection import DatabaseConnection

logger = get_logger(__name__)


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    """One connection, one transaction: commit on success, rollback on any error.

    Driver errors surface as PersistenceError after the rollback.
    """

    try:
        conn = conn_factory.connect()
    except mysql.connector.Error as exc:
        logger.error("Database connection failed: %s", exc)
        raise PersistenceError("Database unavailable") from exc

    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except mysql.connector.Error as exc:
        conn.rollback()
        logger.error("Database operation rolled back: %s", exc)
        raise PersistenceError("Database operation failed") from exc
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    return cur.fetchone() or None


def fetchall(cur) -> List[Dict[str, Any]]:
    return list(cur.fetchall() or ())


def in_clause(values: Sequence[Any]) -> str:
    """Placeholder list for an IN (...) clause; callers must reject empty input."""
    if not values:
        raise ValueError("in_clause() needs at least one value")
    return ", ".join("%s" for _ in values)


def int_list(values: Iterable[Any]) -> List[int]:
    return sorted({int(v) for v in values})


def normalize_mysql_time(value: Any) -> Optional[time]:
    """Schedule start/end columns are TIME; the connector hands them back as
    ``timedelta`` (C extension), ``time`` or ``'HH:MM[:SS]'`` strings."""

    if value is None or isinstance(value, time):
        return value
    if isinstance(value, timedelta):
        seconds = int(value.total_seconds()) % 86400
        return time(seconds // 3600, seconds % 3600 // 60, seconds % 60)
    if isinstance(value, str):
        hh, mm, *rest = value.strip().split(":") + [""]
        if not mm:
            raise ValueError(f"Invalid time string: {value!r}")
        return time(int(hh), int(mm), int(rest[0]) if rest and rest[0] else 0)
    raise TypeError(f"Unsupported MySQL TIME value type: {type(value)!r}")
