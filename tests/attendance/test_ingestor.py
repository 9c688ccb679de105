from __future__ import annotations

from datetime import date, datetime, time

import pytest

from campus_attendance.attendance.ingestor import EventIngestor, parse_batch_payload, parse_manual_payload
from campus_attendance.attendance.model import IngestBatch, IngestEntry, ManualEntry
from campus_attendance.common.cache import ResultCache
from campus_attendance.core.auth import AuthContext
from campus_attendance.core.enums import AttendanceSource, AttendanceStatus, Role
from campus_attendance.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)

WORK_DATE = date(2025, 10, 4)  # Saturday
WEEK_START = datetime(2025, 9, 29)


def scenario_a_batch(**overrides) -> IngestBatch:
    values = dict(
        work_date=WORK_DATE,
        schedule_id=5,
        entries=(
            IngestEntry(student_id=1, status=AttendanceStatus.PRESENT),
            IngestEntry(student_id=2, status=AttendanceStatus.ABSENT),
            IngestEntry(student_id=3, status=AttendanceStatus.LATE),
        ),
    )
    values.update(overrides)
    return IngestBatch(**values)


@pytest.fixture
def ingestor(attendance, schedules, students, hook):
    return EventIngestor(
        attendance,
        schedules,
        students,
        notifier=hook,
        clock=lambda: datetime(2025, 10, 6, 9, 15),
    )


def test_batch_writes_one_event_per_entry_at_schedule_start(ingestor, attendance, instructor):
    result = ingestor.ingest_batch(instructor, scenario_a_batch())

    assert result.to_dict() == {"success": True, "count": 3}
    assert result.created == 3
    stored = attendance.get_by_key(student_id=2, schedule_id=5, timestamp=datetime(2025, 10, 4, 8, 0))
    assert stored is not None
    assert stored.status == AttendanceStatus.ABSENT
    assert stored.instructor_id == 7
    assert stored.actor_user_id == instructor.user_id
    assert stored.source == AttendanceSource.MANUAL_ENTRY


def test_reingesting_same_batch_is_idempotent(ingestor, attendance, hook, instructor):
    ingestor.ingest_batch(instructor, scenario_a_batch())
    second = ingestor.ingest_batch(instructor, scenario_a_batch())

    assert len(attendance.rows) == 3
    assert second.created == 0
    assert second.updated == 3
    assert len(hook.calls) == 2


def test_update_overwrites_status_notes_and_checkout(ingestor, attendance, instructor):
    ingestor.ingest_batch(instructor, scenario_a_batch())
    ingestor.ingest_batch(
        instructor,
        scenario_a_batch(
            entries=(
                IngestEntry(
                    student_id=1,
                    status=AttendanceStatus.EXCUSED,
                    check_out=time(9, 0),
                    notes="clinic pass",
                ),
            )
        ),
    )

    stored = attendance.get_by_key(student_id=1, schedule_id=5, timestamp=datetime(2025, 10, 4, 8, 0))
    assert stored.status == AttendanceStatus.EXCUSED
    assert stored.notes == "clinic pass"
    assert stored.check_out_time == datetime(2025, 10, 4, 9, 0)
    assert len(attendance.rows) == 3


def test_first_absence_and_late_of_week_notify_once(ingestor, hook, instructor):
    ingestor.ingest_batch(instructor, scenario_a_batch())

    assert hook.calls == [
        (2, AttendanceStatus.ABSENT, WEEK_START),
        (3, AttendanceStatus.LATE, WEEK_START),
    ]


def test_second_absence_in_same_week_does_not_notify(ingestor, hook, instructor):
    ingestor.ingest_batch(instructor, scenario_a_batch())
    ingestor.ingest_batch(
        instructor,
        IngestBatch(
            work_date=date(2025, 10, 1),
            schedule_id=6,
            entries=(IngestEntry(student_id=2, status=AttendanceStatus.ABSENT),),
        ),
    )

    assert [c for c in hook.calls if c[0] == 2] == [(2, AttendanceStatus.ABSENT, WEEK_START)]


def test_absence_in_next_week_notifies_again(ingestor, hook, instructor):
    ingestor.ingest_batch(instructor, scenario_a_batch())
    ingestor.ingest_batch(
        instructor,
        IngestBatch(
            work_date=date(2025, 10, 6),
            schedule_id=5,
            entries=(IngestEntry(student_id=2, status=AttendanceStatus.ABSENT),),
        ),
    )

    assert (2, AttendanceStatus.ABSENT, datetime(2025, 10, 6)) in hook.calls


def test_status_change_to_absent_counts_as_first_occurrence(ingestor, hook, instructor):
    ingestor.ingest_batch(instructor, scenario_a_batch())
    ingestor.ingest_batch(
        instructor,
        scenario_a_batch(entries=(IngestEntry(student_id=1, status=AttendanceStatus.ABSENT),)),
    )

    assert (1, AttendanceStatus.ABSENT, WEEK_START) in hook.calls


def test_hook_failure_does_not_undo_write(attendance, schedules, students, failing_hook, instructor):
    ingestor = EventIngestor(attendance, schedules, students, notifier=failing_hook)

    result = ingestor.ingest_batch(instructor, scenario_a_batch())

    assert result.count == 3
    assert len(attendance.rows) == 3
    assert len(failing_hook.calls) == 2


def test_store_failure_rolls_back_whole_batch(ingestor, attendance, hook, instructor):
    attendance.fail_on_write = True

    with pytest.raises(PersistenceError):
        ingestor.ingest_batch(instructor, scenario_a_batch())

    assert attendance.rows == {}
    assert hook.calls == []


def test_unknown_student_fails_before_any_write(ingestor, attendance, instructor):
    batch = scenario_a_batch(
        entries=(
            IngestEntry(student_id=1, status=AttendanceStatus.PRESENT),
            IngestEntry(student_id=42, status=AttendanceStatus.PRESENT),
        )
    )

    with pytest.raises(NotFoundError, match="42"):
        ingestor.ingest_batch(instructor, batch)
    assert attendance.write_calls == 0


def test_both_schedule_and_event_is_a_conflict(ingestor, instructor):
    with pytest.raises(ConflictError) as exc:
        ingestor.ingest_batch(instructor, scenario_a_batch(event_id=1))
    assert isinstance(exc.value, ValidationError)
    assert exc.value.kind == "CONFLICT"


def test_missing_reference_is_rejected(ingestor, instructor):
    with pytest.raises(ValidationError):
        ingestor.ingest_batch(instructor, scenario_a_batch(schedule_id=None))


@pytest.mark.parametrize("schedule_id", [9, 404])
def test_deleted_or_unknown_schedule_is_not_found(ingestor, instructor, schedule_id):
    with pytest.raises(NotFoundError):
        ingestor.ingest_batch(instructor, scenario_a_batch(schedule_id=schedule_id))


def test_event_batch_defaults_to_event_start(ingestor, attendance, instructor):
    batch = IngestBatch(
        work_date=date(2025, 10, 6),
        event_id=1,
        entries=(IngestEntry(student_id=1, status=AttendanceStatus.PRESENT),),
    )

    ingestor.ingest_batch(instructor, batch)

    assert attendance.get_by_key(student_id=1, event_id=1, timestamp=datetime(2025, 10, 6, 9, 30)) is not None


def test_deleted_event_is_not_found(ingestor, instructor):
    batch = IngestBatch(
        work_date=date(2025, 10, 6),
        event_id=2,
        entries=(IngestEntry(student_id=1, status=AttendanceStatus.PRESENT),),
    )
    with pytest.raises(NotFoundError):
        ingestor.ingest_batch(instructor, batch)


def test_check_out_before_check_in_is_rejected(ingestor, attendance, instructor):
    batch = scenario_a_batch(
        entries=(
            IngestEntry(student_id=1, status=AttendanceStatus.PRESENT, check_in=time(8, 30), check_out=time(8, 10)),
        )
    )
    with pytest.raises(ValidationError):
        ingestor.ingest_batch(instructor, batch)
    assert attendance.write_calls == 0


def test_duplicate_natural_key_in_batch_is_rejected(ingestor, instructor):
    batch = scenario_a_batch(
        entries=(
            IngestEntry(student_id=1, status=AttendanceStatus.PRESENT),
            IngestEntry(student_id=1, status=AttendanceStatus.LATE),
        )
    )
    with pytest.raises(ValidationError, match="duplicate"):
        ingestor.ingest_batch(instructor, batch)


def test_students_cannot_write_attendance(ingestor):
    with pytest.raises(AuthorizationError):
        ingestor.ingest_batch(AuthContext(user_id=101, role=Role.STUDENT), scenario_a_batch())


def test_successful_write_clears_analytics_cache(attendance, schedules, students, instructor):
    cache = ResultCache()
    cache.set("stale", object())
    ingestor = EventIngestor(attendance, schedules, students, cache=cache)

    ingestor.ingest_batch(instructor, scenario_a_batch())

    assert len(cache) == 0


def test_record_manual_uses_clock_when_no_timestamp(ingestor, attendance, instructor):
    event = ingestor.record_manual(
        instructor,
        ManualEntry(student_id=4, status=AttendanceStatus.LATE, schedule_id=20),
    )

    assert event.attendance_id is not None
    assert event.timestamp == datetime(2025, 10, 6, 9, 15)
    assert event.instructor_id == 99
    assert len(attendance.rows) == 1


def test_parse_batch_payload_reads_camel_case_fields():
    batch = parse_batch_payload(
        {
            "date": "2025-10-04T00:00:00.000Z",
            "scheduleId": "5",
            "instructorId": 7,
            "entries": [
                {"studentId": 1, "status": "present", "checkIn": "08:05"},
                {"studentId": "2", "status": "ABSENT", "notes": "  "},
            ],
        }
    )

    assert batch.work_date == WORK_DATE
    assert batch.schedule_id == 5
    assert batch.instructor_id == 7
    assert batch.entries[0].status == AttendanceStatus.PRESENT
    assert batch.entries[0].check_in == time(8, 5)
    assert batch.entries[1].notes is None


@pytest.mark.parametrize(
    "payload",
    [
        {"scheduleId": 5, "entries": [{"studentId": 1, "status": "PRESENT"}]},
        {"date": "2025-10-04", "scheduleId": 5, "entries": []},
        {"date": "2025-10-04", "scheduleId": 5, "entries": [{"studentId": 1, "status": "GONE"}]},
        {"date": "2025-10-04", "scheduleId": 5, "entries": [{"status": "PRESENT"}]},
        {"date": "2025-10-04", "scheduleId": 5, "entries": [{"studentId": 1, "status": "PRESENT", "checkIn": "8am"}]},
        {"date": "2025-10-04", "scheduleId": 5, "entries": [{"studentId": 1, "status": "PRESENT", "checkIn": 830}]},
        {"date": "2025-10-04", "scheduleId": 5, "entries": [{"studentId": 1, "status": "PRESENT", "checkOut": ["09:00"]}]},
        {"date": "2025-10-04", "scheduleId": 5, "entries": [{"studentId": 1, "status": "PRESENT", "notes": 5}]},
    ],
)
def test_parse_batch_payload_rejects_bad_input(payload):
    with pytest.raises(ValidationError):
        parse_batch_payload(payload)


def test_parse_manual_payload_requires_student_and_status():
    with pytest.raises(ValidationError):
        parse_manual_payload({"scheduleId": 5})

    entry = parse_manual_payload({"studentId": 1, "status": "late", "eventId": 1, "timestamp": "2025-10-06T09:40:00"})
    assert entry.status == AttendanceStatus.LATE
    assert entry.event_id == 1
    assert entry.timestamp == datetime(2025, 10, 6, 9, 40)


def test_parse_manual_payload_rejects_non_text_notes():
    with pytest.raises(ValidationError, match="notes"):
        parse_manual_payload({"studentId": 1, "status": "ABSENT", "scheduleId": 5, "notes": {"text": "sick"}})
