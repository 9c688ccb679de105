from __future__ import annotations

from dataclasses import replace
from datetime import datetime, time, timedelta
from typing import Callable, Iterable, Mapping, Optional, Sequence

from ..common.app_logger import get_logger
from ..common.cache import ResultCache
from ..common.datetime_utils import coerce_date, now_local, parse_hhmm, parse_iso_datetime, week_start
from ..common.validators import clean_text, optional_positive_int, require_enum, require_positive_int
from ..core.auth import AuthContext
from ..core.constants import ATTENDANCE_WRITER_ROLES
from ..core.enums import AttendanceSource, AttendanceStatus
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..notifications.hooks import NotificationHook
from ..schedules.repository import ScheduleRepository
from ..students.repository import StudentRepository
from .model import AttendanceEvent, IngestBatch, IngestEntry, IngestResult, ManualEntry, UpsertResult
from .repository import AttendanceRepository

logger = get_logger(__name__)

NOTIFY_STATUSES = frozenset({AttendanceStatus.ABSENT, AttendanceStatus.LATE})


def parse_batch_payload(payload: Mapping) -> IngestBatch:
    """Turn a write-interface request body into an IngestBatch (ValidationError on bad input)."""

    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object")

    raw_entries = payload.get("entries")
    if not isinstance(raw_entries, list) or not raw_entries:
        raise ValidationError("entries must be a non-empty list")

    entries = []
    for index, raw in enumerate(raw_entries, start=1):
        if not isinstance(raw, Mapping):
            raise ValidationError(f"Entry {index} must be an object")
        if raw.get("studentId") in (None, ""):
            raise ValidationError(f"Entry {index} is missing studentId")
        if not raw.get("status"):
            raise ValidationError(f"Entry {index} is missing status")
        entries.append(
            IngestEntry(
                student_id=require_positive_int(raw.get("studentId"), f"entries[{index}].studentId"),
                status=require_enum(AttendanceStatus, raw.get("status"), f"entries[{index}].status"),
                check_in=parse_hhmm(raw.get("checkIn"), f"entries[{index}].checkIn"),
                check_out=parse_hhmm(raw.get("checkOut"), f"entries[{index}].checkOut"),
                notes=clean_text(raw.get("notes"), f"entries[{index}].notes"),
            )
        )

    if not payload.get("date"):
        raise ValidationError("date is required")

    source = payload.get("source")
    return IngestBatch(
        work_date=coerce_date(payload.get("date"), "date"),
        entries=tuple(entries),
        schedule_id=optional_positive_int(payload.get("scheduleId"), "scheduleId"),
        event_id=optional_positive_int(payload.get("eventId"), "eventId"),
        instructor_id=optional_positive_int(payload.get("instructorId"), "instructorId"),
        source=require_enum(AttendanceSource, source, "source") if source else AttendanceSource.MANUAL_ENTRY,
    )


def parse_manual_payload(payload: Mapping) -> ManualEntry:
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object")
    if payload.get("studentId") in (None, "") or not payload.get("status"):
        raise ValidationError("Missing required fields")

    timestamp = payload.get("timestamp")
    check_out = payload.get("checkOutTime")
    source = payload.get("source")
    return ManualEntry(
        student_id=require_positive_int(payload.get("studentId"), "studentId"),
        status=require_enum(AttendanceStatus, payload.get("status"), "status"),
        schedule_id=optional_positive_int(payload.get("scheduleId"), "scheduleId"),
        event_id=optional_positive_int(payload.get("eventId"), "eventId"),
        timestamp=parse_iso_datetime(timestamp, "timestamp") if timestamp else None,
        check_out_time=parse_iso_datetime(check_out, "checkOutTime") if check_out else None,
        notes=clean_text(payload.get("notes"), "notes"),
        source=require_enum(AttendanceSource, source, "source") if source else AttendanceSource.MANUAL_ENTRY,
    )


def _require_single_ref(schedule_id: Optional[int], event_id: Optional[int]) -> None:
    if schedule_id is not None and event_id is not None:
        raise ConflictError("Cannot specify both schedule and event")
    if schedule_id is None and event_id is None:
        raise ValidationError("Either scheduleId or eventId is required")


class EventIngestor:
    """Validates and idempotently writes attendance events.

    Every check runs before the single store transaction; the first-of-week
    notification runs after commit and can never undo the write.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        schedules: ScheduleRepository,
        students: StudentRepository,
        *,
        notifier: Optional[NotificationHook] = None,
        cache: Optional[ResultCache] = None,
        clock: Callable[[], datetime] = now_local,
    ):
        self._attendance = attendance
        self._schedules = schedules
        self._students = students
        self._notifier = notifier
        self._cache = cache
        self._clock = clock

    def ingest_batch(self, auth: AuthContext, batch: IngestBatch) -> IngestResult:
        auth.require(ATTENDANCE_WRITER_ROLES)
        _require_single_ref(batch.schedule_id, batch.event_id)
        if not batch.entries:
            raise ValidationError("entries must be a non-empty list")

        default_start, instructor_id = self._resolve_target(batch.schedule_id, batch.event_id)
        self._require_students(e.student_id for e in batch.entries)

        events: list[AttendanceEvent] = []
        seen_keys = set()
        for index, entry in enumerate(batch.entries, start=1):
            timestamp = datetime.combine(batch.work_date, entry.check_in or default_start)
            check_out = datetime.combine(batch.work_date, entry.check_out) if entry.check_out else None
            if check_out is not None and check_out < timestamp:
                raise ValidationError(f"Entry {index}: check-out cannot be before check-in")

            event = AttendanceEvent(
                student_id=entry.student_id,
                actor_user_id=auth.user_id,
                actor_role=auth.role,
                status=entry.status,
                source=batch.source,
                timestamp=timestamp,
                schedule_id=batch.schedule_id,
                event_id=batch.event_id,
                instructor_id=batch.instructor_id or instructor_id,
                check_out_time=check_out,
                notes=entry.notes,
            )
            if event.natural_key in seen_keys:
                raise ValidationError(f"Entry {index}: duplicate entry for student {entry.student_id}")
            seen_keys.add(event.natural_key)
            events.append(event)

        results = self._write(events)
        created = sum(1 for r in results if r.created)
        logger.info(
            "Ingested %s attendance events (%s created, %s updated) for %s on %s by user %s",
            len(results),
            created,
            len(results) - created,
            f"schedule {batch.schedule_id}" if batch.schedule_id is not None else f"event {batch.event_id}",
            batch.work_date.isoformat(),
            auth.user_id,
        )
        stored = tuple(self._with_ids(events, results))
        return IngestResult(count=len(results), created=created, updated=len(results) - created, events=stored)

    def record_manual(self, auth: AuthContext, entry: ManualEntry) -> AttendanceEvent:
        auth.require(ATTENDANCE_WRITER_ROLES)
        _require_single_ref(entry.schedule_id, entry.event_id)

        _, instructor_id = self._resolve_target(entry.schedule_id, entry.event_id)
        self._require_students([entry.student_id])

        timestamp = entry.timestamp or self._clock()
        if entry.check_out_time is not None and entry.check_out_time < timestamp:
            raise ValidationError("Check-out cannot be before check-in")

        event = AttendanceEvent(
            student_id=entry.student_id,
            actor_user_id=auth.user_id,
            actor_role=auth.role,
            status=entry.status,
            source=entry.source,
            timestamp=timestamp,
            schedule_id=entry.schedule_id,
            event_id=entry.event_id,
            instructor_id=instructor_id,
            check_out_time=entry.check_out_time,
            notes=entry.notes,
        )
        results = self._write([event])
        logger.info("Manual attendance %s recorded for student %s", entry.status.value, entry.student_id)
        return next(iter(self._with_ids([event], results)))

    def _resolve_target(self, schedule_id: Optional[int], event_id: Optional[int]) -> tuple[time, Optional[int]]:
        """Default check-in time-of-day and owning instructor for the referenced schedule/event."""

        if schedule_id is not None:
            schedule = self._schedules.get_by_id(schedule_id)
            if not schedule or schedule.is_deleted:
                raise NotFoundError("Schedule not found")
            return schedule.start_time, schedule.instructor_id

        event = self._schedules.get_event(int(event_id or 0))
        if not event or event.is_deleted:
            raise NotFoundError("Event not found or has been deleted")
        return event.starts_at.time(), None

    def _require_students(self, student_ids: Iterable[int]) -> None:
        wanted = {int(s) for s in student_ids}
        found = self._students.get_many(wanted)
        missing = sorted(wanted - set(found))
        if missing:
            raise NotFoundError(f"Student not found: {', '.join(str(s) for s in missing)}")

    def _write(self, events: Sequence[AttendanceEvent]) -> Sequence[UpsertResult]:
        results = self._attendance.upsert_many(events)
        if self._cache is not None:
            self._cache.clear()
        self._notify_first_occurrences(events, results)
        return results

    @staticmethod
    def _with_ids(events: Sequence[AttendanceEvent], results: Sequence[UpsertResult]):
        for ev, res in zip(events, results):
            yield replace(ev, attendance_id=res.attendance_id)

    def _notify_first_occurrences(self, events: Sequence[AttendanceEvent], results: Sequence[UpsertResult]) -> None:
        if self._notifier is None:
            return

        notified = set()
        for ev, res in zip(events, results):
            if ev.status not in NOTIFY_STATUSES:
                continue
            # Rewriting an event that already had this status is not a new occurrence.
            if res.previous_status == ev.status.value:
                continue

            start = week_start(ev.timestamp)
            key = (ev.student_id, ev.status, start)
            if key in notified:
                continue
            notified.add(key)

            try:
                count = self._attendance.count_for_student_status(
                    student_id=ev.student_id,
                    status=ev.status,
                    start=start,
                    end=start + timedelta(days=7),
                )
                if count == 1:
                    self._notifier.on_threshold_crossed(ev.student_id, ev.status, start)
            except Exception:
                logger.warning(
                    "First-of-week notification failed for student %s (%s)",
                    ev.student_id,
                    ev.status.value,
                    exc_info=True,
                )
