from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Sequence

from ..core.enums import AttendanceSource, AttendanceStatus, Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause, int_list
from .model import AttendanceEvent, AttendanceFact, UpsertResult
from .repository import AttendanceRepository

_EVENT_COLUMNS = """
    attendance_id, student_id, user_id, user_role, instructor_id, subject_sched_id, event_id,
    status, attendance_type, timestamp, check_out_time, notes
"""


def _ref_clause(schedule_id: Optional[int], event_id: Optional[int]) -> tuple[str, int]:
    if schedule_id is not None:
        return "subject_sched_id=%s", int(schedule_id)
    return "event_id=%s", int(event_id or 0)


def _to_event(r: dict) -> AttendanceEvent:
    return AttendanceEvent(
        attendance_id=int(r["attendance_id"]),
        student_id=int(r["student_id"]),
        actor_user_id=int(r["user_id"]),
        actor_role=Role(r["user_role"]),
        instructor_id=int(r["instructor_id"]) if r.get("instructor_id") is not None else None,
        schedule_id=int(r["subject_sched_id"]) if r.get("subject_sched_id") is not None else None,
        event_id=int(r["event_id"]) if r.get("event_id") is not None else None,
        status=AttendanceStatus(r["status"]),
        source=AttendanceSource(r["attendance_type"]),
        timestamp=r["timestamp"],
        check_out_time=r.get("check_out_time"),
        notes=r.get("notes"),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def upsert_many(self, events: Sequence[AttendanceEvent]) -> Sequence[UpsertResult]:
        results: list[UpsertResult] = []
        # Single connection => single transaction; db_cursor rolls back everything on error.
        with db_cursor(self._conn_factory) as (_, cur):
            for ev in events:
                ref_sql, ref_id = _ref_clause(ev.schedule_id, ev.event_id)
                cur.execute(
                    f"""
                    SELECT attendance_id, status
                    FROM attendance
                    WHERE student_id=%s AND {ref_sql} AND timestamp=%s
                    FOR UPDATE
                    """,
                    (ev.student_id, ref_id, ev.timestamp),
                )
                existing = fetchone(cur)

                cur.execute(
                    """
                    INSERT INTO attendance(
                        student_id, user_id, user_role, instructor_id, subject_sched_id, event_id,
                        status, attendance_type, timestamp, check_out_time, notes
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    ON DUPLICATE KEY UPDATE
                        attendance_id=LAST_INSERT_ID(attendance_id),
                        user_id=VALUES(user_id),
                        user_role=VALUES(user_role),
                        instructor_id=VALUES(instructor_id),
                        status=VALUES(status),
                        check_out_time=VALUES(check_out_time),
                        notes=VALUES(notes)
                    """,
                    (
                        ev.student_id,
                        ev.actor_user_id,
                        ev.actor_role.value,
                        ev.instructor_id,
                        ev.schedule_id,
                        ev.event_id,
                        ev.status.value,
                        ev.source.value,
                        ev.timestamp,
                        ev.check_out_time,
                        ev.notes,
                    ),
                )
                results.append(
                    UpsertResult(
                        attendance_id=int(cur.lastrowid or (existing or {}).get("attendance_id") or 0),
                        created=existing is None,
                        previous_status=existing["status"] if existing else None,
                    )
                )
        return results

    def get_by_key(
        self,
        *,
        student_id: int,
        timestamp: datetime,
        schedule_id: Optional[int] = None,
        event_id: Optional[int] = None,
    ) -> Optional[AttendanceEvent]:
        ref_sql, ref_id = _ref_clause(schedule_id, event_id)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_EVENT_COLUMNS} FROM attendance WHERE student_id=%s AND {ref_sql} AND timestamp=%s",
                (int(student_id), ref_id, timestamp),
            )
            r = fetchone(cur)
            return _to_event(r) if r else None

    def count_for_student_status(
        self,
        *,
        student_id: int,
        status: AttendanceStatus,
        start: datetime,
        end: datetime,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COUNT(*) AS n
                FROM attendance
                WHERE student_id=%s AND status=%s AND timestamp >= %s AND timestamp < %s
                """,
                (int(student_id), status.value, start, end),
            )
            r = fetchone(cur)
            return int(r["n"]) if r else 0

    def list_facts(
        self,
        *,
        schedule_ids: Iterable[int],
        start: datetime,
        end: datetime,
        end_inclusive: bool,
        student_id: Optional[int] = None,
    ) -> Sequence[AttendanceFact]:
        ids = int_list(schedule_ids)
        if not ids:
            return []

        clauses = [
            f"subject_sched_id IN ({in_clause(ids)})",
            "timestamp >= %s",
            "timestamp <= %s" if end_inclusive else "timestamp < %s",
        ]
        params: list[object] = [*ids, start, end]
        if student_id is not None:
            clauses.append("student_id=%s")
            params.append(int(student_id))

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT attendance_id, student_id, subject_sched_id, event_id, status, timestamp
                FROM attendance
                WHERE {where}
                ORDER BY timestamp ASC, attendance_id ASC
                """,
                tuple(params),
            )
            return [
                AttendanceFact(
                    attendance_id=int(r["attendance_id"]),
                    student_id=int(r["student_id"]),
                    schedule_id=int(r["subject_sched_id"]) if r.get("subject_sched_id") is not None else None,
                    event_id=int(r["event_id"]) if r.get("event_id") is not None else None,
                    status=str(r["status"]),
                    timestamp=r["timestamp"],
                )
                for r in fetchall(cur)
            ]
