from __future__ import annotations

from typing import Dict, Iterable, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause, int_list
from .model import StudentRef
from .repository import StudentRepository


def _to_student(r: dict) -> StudentRef:
    return StudentRef(
        student_id=int(r["student_id"]),
        id_number=r.get("student_id_num") or "",
        first_name=r.get("first_name") or "",
        last_name=r.get("last_name") or "",
        user_id=int(r["user_id"]) if r.get("user_id") is not None else None,
    )


class MySQLStudentRepository(StudentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, student_id: int) -> Optional[StudentRef]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT student_id, student_id_num, first_name, last_name, user_id FROM students WHERE student_id=%s",
                (int(student_id),),
            )
            r = fetchone(cur)
            return _to_student(r) if r else None

    def get_many(self, student_ids: Iterable[int]) -> Dict[int, StudentRef]:
        ids = int_list(student_ids)
        if not ids:
            return {}
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT student_id, student_id_num, first_name, last_name, user_id
                FROM students
                WHERE student_id IN ({in_clause(ids)})
                """,
                tuple(ids),
            )
            return {s.student_id: s for s in map(_to_student, fetchall(cur))}

    def list_enrolled_schedule_ids(self, student_id: int) -> Sequence[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT ss.subject_sched_id
                FROM student_schedules ss
                JOIN subject_schedules sc ON sc.subject_sched_id = ss.subject_sched_id
                WHERE ss.student_id=%s AND sc.deleted_at IS NULL
                ORDER BY ss.subject_sched_id
                """,
                (int(student_id),),
            )
            return [int(r["subject_sched_id"]) for r in fetchall(cur)]
