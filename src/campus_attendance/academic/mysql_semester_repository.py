from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from ..common.app_logger import get_logger
from ..core.enums import SemesterStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause
from .model import Semester
from .repository import SemesterRepository
from .resolver import SemesterUpdatePlan, SemesterWrite, normalize_semester_type

logger = get_logger(__name__)

_SEMESTER_COLUMNS = """
    semester_id, year, semester_type, start_date, end_date,
    registration_start, registration_end, enrollment_start, enrollment_end,
    notes, is_active, status
"""


def _to_semester(r: dict) -> Semester:
    return Semester(
        semester_id=int(r["semester_id"]),
        year=int(r["year"]),
        semester_type=normalize_semester_type(r["semester_type"]),
        start_date=r["start_date"],
        end_date=r["end_date"],
        registration_start=r.get("registration_start"),
        registration_end=r.get("registration_end"),
        enrollment_start=r.get("enrollment_start"),
        enrollment_end=r.get("enrollment_end"),
        notes=r.get("notes"),
        is_active=bool(r.get("is_active")),
        status=SemesterStatus(r.get("status") or SemesterStatus.UPCOMING.value),
    )


def _write_params(w: SemesterWrite) -> tuple:
    return (
        w.semester_type.value,
        w.start_date,
        w.end_date,
        w.registration_start,
        w.registration_end,
        w.enrollment_start,
        w.enrollment_end,
        w.notes,
        1 if w.is_active else 0,
    )


class MySQLSemesterRepository(SemesterRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_year(self, year: int) -> Sequence[Semester]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_SEMESTER_COLUMNS} FROM semesters WHERE year=%s ORDER BY semester_type ASC",
                (int(year),),
            )
            return [_to_semester(r) for r in fetchall(cur)]

    def list_all(self) -> Sequence[Semester]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_SEMESTER_COLUMNS}
                FROM semesters
                WHERE status <> %s
                ORDER BY year DESC, semester_type ASC
                """,
                (SemesterStatus.CANCELLED.value,),
            )
            return [_to_semester(r) for r in fetchall(cur)]

    def year_exists(self, year: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT 1 AS found FROM semesters WHERE year=%s LIMIT 1", (int(year),))
            return fetchone(cur) is not None

    def find_overlapping(self, start: date, end: date) -> Optional[Semester]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_SEMESTER_COLUMNS}
                FROM semesters
                WHERE status <> %s AND start_date <= %s AND end_date >= %s
                ORDER BY year, semester_type
                LIMIT 1
                """,
                (SemesterStatus.CANCELLED.value, end, start),
            )
            r = fetchone(cur)
            return _to_semester(r) if r else None

    def apply_plan(self, plan: SemesterUpdatePlan) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            if plan.delete_ids:
                cur.execute(
                    f"DELETE FROM semesters WHERE year=%s AND semester_id IN ({in_clause(plan.delete_ids)})",
                    (plan.year, *plan.delete_ids),
                )

            # (year, semester_type) is unique per statement; park updated rows on a
            # placeholder type so swaps and shifts between them cannot collide.
            update_ids = [w.semester_id for w in plan.updates]
            if update_ids:
                cur.execute(
                    f"""
                    UPDATE semesters SET semester_type=CONCAT('~', semester_id)
                    WHERE year=%s AND semester_id IN ({in_clause(update_ids)})
                    """,
                    (plan.year, *update_ids),
                )

            for w in plan.updates:
                cur.execute(
                    """
                    UPDATE semesters
                    SET semester_type=%s, start_date=%s, end_date=%s,
                        registration_start=%s, registration_end=%s,
                        enrollment_start=%s, enrollment_end=%s,
                        notes=%s, is_active=%s, updated_at=NOW()
                    WHERE semester_id=%s AND year=%s
                    """,
                    (*_write_params(w), w.semester_id, plan.year),
                )

            for w in plan.creates:
                cur.execute(
                    """
                    INSERT INTO semesters(
                        semester_type, start_date, end_date,
                        registration_start, registration_end,
                        enrollment_start, enrollment_end,
                        notes, is_active, year, status, updated_at
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,NOW())
                    """,
                    (*_write_params(w), plan.year, w.status.value),
                )

            if plan.deactivate_other_years:
                cur.execute("UPDATE semesters SET is_active=0 WHERE year<>%s AND is_active=1", (plan.year,))

        logger.debug(
            "Applied semester plan for %s: %s deleted, %s updated, %s created",
            plan.year,
            len(plan.delete_ids),
            len(plan.updates),
            len(plan.creates),
        )
