from __future__ import annotations

from typing import Dict, Iterable, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause, int_list, normalize_mysql_time
from .model import EventRef, ScheduleRef
from .repository import ScheduleRepository

_SCHEDULE_SELECT = """
    SELECT
        sc.subject_sched_id, sc.instructor_id, sc.day, sc.start_time, sc.end_time,
        sc.semester_id, sc.academic_year, sc.is_active, sc.status, sc.deleted_at,
        sub.subject_code, sub.subject_name,
        sec.section_name,
        r.room_building_loc, r.room_floor_loc
    FROM subject_schedules sc
    JOIN subjects sub ON sub.subject_id = sc.subject_id
    JOIN sections sec ON sec.section_id = sc.section_id
    LEFT JOIN rooms r ON r.room_id = sc.room_id
"""


def _room_label(r: dict) -> str:
    building = r.get("room_building_loc") or ""
    floor = r.get("room_floor_loc") or ""
    return f"{building} {floor}".strip()


def _to_schedule(r: dict) -> ScheduleRef:
    return ScheduleRef(
        schedule_id=int(r["subject_sched_id"]),
        subject_code=r.get("subject_code") or f"sched-{r['subject_sched_id']}",
        subject_name=r.get("subject_name") or "Unknown Subject",
        section_name=r.get("section_name") or "",
        room=_room_label(r),
        instructor_id=int(r["instructor_id"]),
        day_of_week=r.get("day") or "",
        start_time=normalize_mysql_time(r["start_time"]),
        end_time=normalize_mysql_time(r["end_time"]),
        semester_id=int(r["semester_id"]) if r.get("semester_id") is not None else None,
        academic_year=r.get("academic_year"),
        is_active=bool(r.get("is_active", 1)),
        is_cancelled=(r.get("status") or "").upper() == "CANCELLED",
        deleted_at=r.get("deleted_at"),
    )


class MySQLScheduleRepository(ScheduleRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, schedule_id: int) -> Optional[ScheduleRef]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SCHEDULE_SELECT + " WHERE sc.subject_sched_id=%s", (int(schedule_id),))
            r = fetchone(cur)
            return _to_schedule(r) if r else None

    def get_many(self, schedule_ids: Iterable[int]) -> Dict[int, ScheduleRef]:
        ids = int_list(schedule_ids)
        if not ids:
            return {}
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SCHEDULE_SELECT + f" WHERE sc.subject_sched_id IN ({in_clause(ids)})", tuple(ids))
            return {s.schedule_id: s for s in map(_to_schedule, fetchall(cur))}

    def list_for_instructor(self, instructor_id: int) -> Sequence[ScheduleRef]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SCHEDULE_SELECT
                + """
                WHERE sc.instructor_id=%s AND sc.deleted_at IS NULL
                ORDER BY sub.subject_code ASC, sc.subject_sched_id ASC
                """,
                (int(instructor_id),),
            )
            return [_to_schedule(r) for r in fetchall(cur)]

    def get_event(self, event_id: int) -> Optional[EventRef]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT event_id, title, event_date, deleted_at FROM events WHERE event_id=%s",
                (int(event_id),),
            )
            r = fetchone(cur)
            if not r:
                return None
            return EventRef(
                event_id=int(r["event_id"]),
                title=r["title"],
                starts_at=r["event_date"],
                deleted_at=r.get("deleted_at"),
            )
