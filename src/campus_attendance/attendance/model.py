from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional, Tuple

from ..core.enums import AttendanceSource, AttendanceStatus, Role


@dataclass(frozen=True)
class AttendanceEvent:
    """Domain entity: one recorded status observation for a student.

    Exactly one of schedule_id / event_id is set. (student_id, ref, timestamp)
    is the natural key; a second write with the same key updates the row.
    """

    student_id: int
    actor_user_id: int
    actor_role: Role
    status: AttendanceStatus
    source: AttendanceSource
    timestamp: datetime
    schedule_id: Optional[int] = None
    event_id: Optional[int] = None
    instructor_id: Optional[int] = None
    check_out_time: Optional[datetime] = None
    notes: Optional[str] = None
    attendance_id: Optional[int] = None

    @property
    def natural_key(self) -> Tuple[int, str, int, datetime]:
        if self.schedule_id is not None:
            return (self.student_id, "schedule", self.schedule_id, self.timestamp)
        return (self.student_id, "event", int(self.event_id or 0), self.timestamp)

    def to_dict(self) -> dict:
        return {
            "attendance_id": self.attendance_id,
            "student_id": self.student_id,
            "schedule_id": self.schedule_id,
            "event_id": self.event_id,
            "instructor_id": self.instructor_id,
            "status": self.status.value,
            "source": self.source.value,
            "timestamp": self.timestamp.isoformat(),
            "check_out_time": self.check_out_time.isoformat() if self.check_out_time else None,
            "notes": self.notes,
            "recorded_by": self.actor_user_id,
        }


@dataclass(frozen=True)
class AttendanceFact:
    """Read-model used by aggregation (status kept raw so unknown values can be skipped)."""

    attendance_id: int
    student_id: int
    schedule_id: Optional[int]
    event_id: Optional[int]
    status: str
    timestamp: datetime


@dataclass(frozen=True)
class UpsertResult:
    attendance_id: int
    created: bool
    previous_status: Optional[str] = None


@dataclass(frozen=True)
class IngestEntry:
    student_id: int
    status: AttendanceStatus
    check_in: Optional[time] = None
    check_out: Optional[time] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class IngestBatch:
    work_date: date
    entries: Tuple[IngestEntry, ...]
    schedule_id: Optional[int] = None
    event_id: Optional[int] = None
    instructor_id: Optional[int] = None
    source: AttendanceSource = AttendanceSource.MANUAL_ENTRY


@dataclass(frozen=True)
class ManualEntry:
    student_id: int
    status: AttendanceStatus
    schedule_id: Optional[int] = None
    event_id: Optional[int] = None
    timestamp: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    notes: Optional[str] = None
    source: AttendanceSource = AttendanceSource.MANUAL_ENTRY


@dataclass(frozen=True)
class IngestResult:
    count: int
    created: int = 0
    updated: int = 0
    events: Tuple[AttendanceEvent, ...] = field(default=(), repr=False)

    def to_dict(self) -> dict:
        return {"success": True, "count": self.count}
