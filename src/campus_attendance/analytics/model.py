from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Mapping, Optional, Tuple, Union

from ..common.datetime_utils import end_of_day, start_of_day
from ..core.enums import AttendanceStatus, GroupBy
from ..core.exceptions import ValidationError


# ---- Scope: which schedules/students take part in an aggregation ----


@dataclass(frozen=True)
class InstructorScope:
    instructor_id: int


@dataclass(frozen=True)
class StudentScope:
    student_id: int


@dataclass(frozen=True)
class ScheduleScope:
    schedule_id: int


Scope = Union[InstructorScope, StudentScope, ScheduleScope]


# ---- Window: the time range an aggregation covers ----


@dataclass(frozen=True)
class DayWindow:
    """One local calendar day: [00:00, next day 00:00)."""

    day: date

    @property
    def start(self) -> datetime:
        return start_of_day(self.day)

    @property
    def end(self) -> datetime:
        return start_of_day(self.day + timedelta(days=1))

    @property
    def end_inclusive(self) -> bool:
        return False

    @property
    def first_day(self) -> date:
        return self.day

    @property
    def last_day(self) -> date:
        return self.day


@dataclass(frozen=True)
class RangeWindow:
    """Inclusive date range: start 00:00:00 .. end 23:59:59.999."""

    start_date: date
    end_date: date

    def __post_init__(self) -> None:
        if self.start_date > self.end_date:
            raise ValidationError("start must not be after end")

    @property
    def start(self) -> datetime:
        return start_of_day(self.start_date)

    @property
    def end(self) -> datetime:
        return end_of_day(self.end_date)

    @property
    def end_inclusive(self) -> bool:
        return True

    @property
    def first_day(self) -> date:
        return self.start_date

    @property
    def last_day(self) -> date:
        return self.end_date


Window = Union[DayWindow, RangeWindow]


def window_contains(window: Window, moment: datetime) -> bool:
    if moment < window.start:
        return False
    return moment <= window.end if window.end_inclusive else moment < window.end


# ---- Dimension keys (tagged union) ----


@dataclass(frozen=True)
class ScheduleKey:
    schedule_id: int

    def to_dict(self) -> dict:
        return {"schedule_id": self.schedule_id}

    @property
    def sort_token(self) -> Tuple:
        return (self.schedule_id,)


@dataclass(frozen=True)
class StudentKey:
    student_id: int

    def to_dict(self) -> dict:
        return {"student_id": self.student_id}

    @property
    def sort_token(self) -> Tuple:
        return (self.student_id,)


@dataclass(frozen=True)
class DayKey:
    day: date

    def to_dict(self) -> dict:
        return {"date": self.day.isoformat()}

    @property
    def sort_token(self) -> Tuple:
        return (self.day.toordinal(),)


@dataclass(frozen=True)
class ScheduleDayKey:
    schedule_id: int
    day: date

    def to_dict(self) -> dict:
        return {"schedule_id": self.schedule_id, "date": self.day.isoformat()}

    @property
    def sort_token(self) -> Tuple:
        return (self.day.toordinal(), self.schedule_id)


DimensionKey = Union[ScheduleKey, StudentKey, DayKey, ScheduleDayKey]


# ---- Counters / buckets ----


@dataclass
class Counters:
    present: int = 0
    absent: int = 0
    late: int = 0
    excused: int = 0
    total: int = 0

    def add(self, status: AttendanceStatus, n: int = 1) -> None:
        if status == AttendanceStatus.PRESENT:
            self.present += n
        elif status == AttendanceStatus.ABSENT:
            self.absent += n
        elif status == AttendanceStatus.LATE:
            self.late += n
        elif status == AttendanceStatus.EXCUSED:
            self.excused += n
        else:
            raise ValueError(f"Unhandled status: {status!r}")
        self.total += n

    def merge(self, other: "Counters") -> None:
        self.present += other.present
        self.absent += other.absent
        self.late += other.late
        self.excused += other.excused
        self.total += other.total

    def to_dict(self) -> dict:
        return {
            "present": self.present,
            "absent": self.absent,
            "late": self.late,
            "excused": self.excused,
            "total": self.total,
        }


@dataclass(frozen=True)
class Bucket:
    key: DimensionKey
    counters: Counters
    rate: int
    display: Mapping[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return str(self.display.get("name") or self.display.get("code") or "")

    @property
    def present(self) -> int:
        return self.counters.present

    @property
    def absent(self) -> int:
        return self.counters.absent

    @property
    def late(self) -> int:
        return self.counters.late

    @property
    def excused(self) -> int:
        return self.counters.excused

    @property
    def total(self) -> int:
        return self.counters.total

    def to_dict(self) -> dict:
        return {**self.display, **self.key.to_dict(), **self.counters.to_dict(), "rate": self.rate}


@dataclass(frozen=True)
class AggregationQuery:
    """Everything that determines an aggregation result; also the cache key."""

    scope: Scope
    window: Window
    group_by: GroupBy
    text_filter: Optional[str] = None
    include_empty: bool = False


@dataclass(frozen=True)
class AggregationResult:
    items: Tuple[Bucket, ...]
    totals: Counters
    totals_rate: int
    meta: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "items": [b.to_dict() for b in self.items],
            "totals": {**self.totals.to_dict(), "rate": self.totals_rate},
            "meta": dict(self.meta),
        }
