from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time
from typing import Optional


@dataclass(frozen=True)
class ScheduleRef:
    """Read-only view of a class meeting slot, joined with subject/section/room names."""

    schedule_id: int
    subject_code: str
    subject_name: str
    section_name: str
    room: str
    instructor_id: int
    day_of_week: str
    start_time: time
    end_time: time
    semester_id: Optional[int] = None
    academic_year: Optional[str] = None
    is_active: bool = True
    is_cancelled: bool = False
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def time_label(self) -> str:
        return f"{self.start_time.strftime('%H:%M')} - {self.end_time.strftime('%H:%M')}"

    def display(self) -> dict:
        return {
            "schedule_id": self.schedule_id,
            "code": self.subject_code,
            "subject": self.subject_name,
            "section": self.section_name,
            "room": self.room,
            "day": self.day_of_week,
            "time": self.time_label,
        }


@dataclass(frozen=True)
class EventRef:
    """One-off event (assembly, seminar, ...) students can be marked against."""

    event_id: int
    title: str
    starts_at: datetime
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
