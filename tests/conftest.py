from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from typing import Iterable, Optional

import pytest

from campus_attendance.academic.model import Semester
from campus_attendance.academic.resolver import SemesterUpdatePlan
from campus_attendance.attendance.model import AttendanceEvent, AttendanceFact, UpsertResult
from campus_attendance.core.auth import AuthContext
from campus_attendance.core.enums import Role, SemesterStatus
from campus_attendance.core.exceptions import PersistenceError
from campus_attendance.schedules.model import EventRef, ScheduleRef
from campus_attendance.students.model import StudentRef


class InMemoryAttendance:
    """Natural-key upsert store; a failed batch leaves no trace."""

    def __init__(self):
        self.rows: dict[tuple, AttendanceEvent] = {}
        self.extra_facts: list[AttendanceFact] = []
        self.fail_on_write = False
        self.write_calls = 0
        self._id = 0

    def upsert_many(self, events):
        self.write_calls += 1
        staged = dict(self.rows)
        next_id = self._id
        results = []
        for ev in events:
            existing = staged.get(ev.natural_key)
            if existing is None:
                next_id += 1
                attendance_id = next_id
            else:
                attendance_id = existing.attendance_id
            staged[ev.natural_key] = replace(ev, attendance_id=attendance_id)
            results.append(
                UpsertResult(
                    attendance_id=attendance_id,
                    created=existing is None,
                    previous_status=existing.status.value if existing else None,
                )
            )
        if self.fail_on_write:
            raise PersistenceError("Database operation failed")
        self.rows = staged
        self._id = next_id
        return results

    def get_by_key(self, *, student_id, timestamp, schedule_id=None, event_id=None):
        ref = ("schedule", schedule_id) if schedule_id is not None else ("event", event_id)
        return self.rows.get((student_id, ref[0], ref[1], timestamp))

    def count_for_student_status(self, *, student_id, status, start, end):
        return sum(
            1
            for ev in self.rows.values()
            if ev.student_id == student_id and ev.status == status and start <= ev.timestamp < end
        )

    def list_facts(self, *, schedule_ids, start, end, end_inclusive, student_id=None):
        ids = set(schedule_ids)
        facts = [
            AttendanceFact(
                attendance_id=ev.attendance_id,
                student_id=ev.student_id,
                schedule_id=ev.schedule_id,
                event_id=ev.event_id,
                status=ev.status.value,
                timestamp=ev.timestamp,
            )
            for ev in self.rows.values()
        ] + list(self.extra_facts)

        def in_window(ts: datetime) -> bool:
            return start <= ts and (ts <= end if end_inclusive else ts < end)

        return [
            f
            for f in facts
            if f.schedule_id in ids
            and in_window(f.timestamp)
            and (student_id is None or f.student_id == student_id)
        ]


@dataclass
class InMemorySchedules:
    schedules: dict[int, ScheduleRef] = field(default_factory=dict)
    events: dict[int, EventRef] = field(default_factory=dict)

    def get_by_id(self, schedule_id: int) -> Optional[ScheduleRef]:
        return self.schedules.get(schedule_id)

    def get_many(self, schedule_ids: Iterable[int]):
        return {i: self.schedules[i] for i in schedule_ids if i in self.schedules}

    def list_for_instructor(self, instructor_id: int):
        return [s for s in self.schedules.values() if s.instructor_id == instructor_id and not s.is_deleted]

    def get_event(self, event_id: int) -> Optional[EventRef]:
        return self.events.get(event_id)


@dataclass
class InMemoryStudents:
    students: dict[int, StudentRef] = field(default_factory=dict)
    enrollments: dict[int, list[int]] = field(default_factory=dict)

    def get_by_id(self, student_id: int) -> Optional[StudentRef]:
        return self.students.get(student_id)

    def get_many(self, student_ids: Iterable[int]):
        return {i: self.students[i] for i in student_ids if i in self.students}

    def list_enrolled_schedule_ids(self, student_id: int):
        return list(self.enrollments.get(student_id, []))


class RecordingHook:
    def __init__(self, *, fail: bool = False):
        self.calls: list[tuple] = []
        self.fail = fail

    def on_threshold_crossed(self, student_id, status, week_start):
        self.calls.append((student_id, status, week_start))
        if self.fail:
            raise RuntimeError("dispatcher down")


class InMemorySemesters:
    def __init__(self, semesters: Iterable[Semester] = ()):
        self.rows: dict[int, Semester] = {s.semester_id: s for s in semesters}
        self._id = max(self.rows, default=0)
        self.fail_on_apply = False
        self.applied: list[SemesterUpdatePlan] = []

    def list_for_year(self, year: int):
        return sorted((s for s in self.rows.values() if s.year == year), key=lambda s: s.semester_type.value)

    def list_all(self):
        rows = [s for s in self.rows.values() if s.status != SemesterStatus.CANCELLED]
        return sorted(rows, key=lambda s: (-s.year, s.semester_type.value))

    def year_exists(self, year: int) -> bool:
        return any(s.year == year for s in self.rows.values())

    def find_overlapping(self, start: date, end: date):
        for s in sorted(self.rows.values(), key=lambda s: (s.year, s.semester_type.value)):
            if s.status != SemesterStatus.CANCELLED and s.start_date <= end and s.end_date >= start:
                return s
        return None

    @staticmethod
    def _check_unique(staged: dict) -> None:
        seen = set()
        for s in staged.values():
            key = (s.year, s.semester_type)
            if key in seen:
                raise PersistenceError("Database operation failed")
            seen.add(key)

    def apply_plan(self, plan: SemesterUpdatePlan) -> None:
        # Mirrors the MySQL statement order; the (year, type) unique key is checked per statement.
        staged = dict(self.rows)
        next_id = self._id
        for semester_id in plan.delete_ids:
            staged.pop(semester_id, None)
        for w in plan.updates:
            staged[w.semester_id] = replace(staged[w.semester_id], semester_type=f"~{w.semester_id}")
        self._check_unique(staged)
        for w in plan.updates:
            staged[w.semester_id] = replace(
                staged[w.semester_id],
                semester_type=w.semester_type,
                start_date=w.start_date,
                end_date=w.end_date,
                registration_start=w.registration_start,
                registration_end=w.registration_end,
                enrollment_start=w.enrollment_start,
                enrollment_end=w.enrollment_end,
                notes=w.notes,
                is_active=w.is_active,
            )
            self._check_unique(staged)
        for w in plan.creates:
            next_id += 1
            staged[next_id] = Semester(
                semester_id=next_id,
                year=plan.year,
                semester_type=w.semester_type,
                start_date=w.start_date,
                end_date=w.end_date,
                registration_start=w.registration_start,
                registration_end=w.registration_end,
                enrollment_start=w.enrollment_start,
                enrollment_end=w.enrollment_end,
                notes=w.notes,
                is_active=w.is_active,
                status=w.status,
            )
            self._check_unique(staged)
        if plan.deactivate_other_years:
            for semester_id, s in list(staged.items()):
                if s.year != plan.year and s.is_active:
                    staged[semester_id] = replace(s, is_active=False)
        if self.fail_on_apply:
            raise PersistenceError("Database operation failed")
        self.rows = staged
        self._id = next_id
        self.applied.append(plan)


def make_schedule(schedule_id: int, code: str, *, instructor_id: int = 7, start=time(8, 0), **kwargs) -> ScheduleRef:
    return ScheduleRef(
        schedule_id=schedule_id,
        subject_code=code,
        subject_name=f"{code} lecture",
        section_name="BSIT-1A",
        room="Main 2",
        instructor_id=instructor_id,
        day_of_week="SATURDAY",
        start_time=start,
        end_time=time(start.hour + 1, start.minute),
        **kwargs,
    )


@pytest.fixture
def schedules() -> InMemorySchedules:
    return InMemorySchedules(
        schedules={
            5: make_schedule(5, "IT101"),
            6: make_schedule(6, "CS201", start=time(10, 0)),
            8: make_schedule(8, "MATH1", start=time(13, 0)),
            9: make_schedule(9, "OLD1", deleted_at=datetime(2025, 1, 1)),
            20: make_schedule(20, "ENG5", instructor_id=99),
        },
        events={
            1: EventRef(event_id=1, title="Assembly", starts_at=datetime(2025, 10, 6, 9, 30)),
            2: EventRef(event_id=2, title="Cancelled fair", starts_at=datetime(2025, 10, 6, 9, 0), deleted_at=datetime(2025, 10, 1)),
        },
    )


@pytest.fixture
def students() -> InMemoryStudents:
    return InMemoryStudents(
        students={
            1: StudentRef(1, "2025-0001", "Ana", "Reyes", user_id=101),
            2: StudentRef(2, "2025-0002", "ben", "Cruz", user_id=102),
            3: StudentRef(3, "2025-0003", "Carla", "Diaz", user_id=None),
            4: StudentRef(4, "2025-0004", "Dan", "Uy", user_id=104),
        },
        enrollments={1: [5, 6], 2: [5], 3: [5], 4: [20]},
    )


@pytest.fixture
def attendance() -> InMemoryAttendance:
    return InMemoryAttendance()


@pytest.fixture
def hook() -> RecordingHook:
    return RecordingHook()


@pytest.fixture
def instructor() -> AuthContext:
    return AuthContext(user_id=7, role=Role.INSTRUCTOR)


@pytest.fixture
def admin() -> AuthContext:
    return AuthContext(user_id=1, role=Role.ADMIN)


@pytest.fixture
def schedule_factory():
    return make_schedule


@pytest.fixture
def failing_hook() -> RecordingHook:
    return RecordingHook(fail=True)


@pytest.fixture
def semester_store():
    return InMemorySemesters
