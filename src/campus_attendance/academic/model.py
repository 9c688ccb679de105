from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple

from ..core.enums import SemesterStatus, SemesterType

SEMESTER_NAMES = {
    SemesterType.FIRST: ("1st Semester", "1st"),
    SemesterType.SECOND: ("2nd Semester", "2nd"),
    SemesterType.THIRD: ("Summer", "Summer"),
}


def semester_name(semester_type: SemesterType) -> str:
    return SEMESTER_NAMES[semester_type][0]


def semester_short_name(semester_type: SemesterType) -> str:
    return SEMESTER_NAMES[semester_type][1]


def academic_year_name(year: int) -> str:
    return f"{year}-{year + 1}"


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Semester:
    """Stored semester row. ``is_active`` is only ever set by the resolver."""

    semester_id: int
    year: int
    semester_type: SemesterType
    start_date: date
    end_date: date
    registration_start: Optional[date] = None
    registration_end: Optional[date] = None
    enrollment_start: Optional[date] = None
    enrollment_end: Optional[date] = None
    notes: Optional[str] = None
    is_active: bool = False
    status: SemesterStatus = SemesterStatus.UPCOMING

    @property
    def name(self) -> str:
        return semester_name(self.semester_type)

    @property
    def short_name(self) -> str:
        return semester_short_name(self.semester_type)

    def to_dict(self) -> dict:
        return {
            "id": self.semester_id,
            "name": self.name,
            "type": self.short_name,
            "semester_type": self.semester_type.value,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "registration_start": _iso(self.registration_start),
            "registration_end": _iso(self.registration_end),
            "enrollment_start": _iso(self.enrollment_start),
            "enrollment_end": _iso(self.enrollment_end),
            "notes": self.notes,
            "is_active": self.is_active,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class SemesterInput:
    """One semester as submitted in a calendar edit (already parsed, not yet validated)."""

    semester_type: SemesterType
    start_date: date
    end_date: date
    semester_id: Optional[int] = None
    year: Optional[int] = None
    registration_start: Optional[date] = None
    registration_end: Optional[date] = None
    enrollment_start: Optional[date] = None
    enrollment_end: Optional[date] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class AcademicYear:
    year: int
    semesters: Tuple[Semester, ...]
    is_active: bool

    @property
    def name(self) -> str:
        return academic_year_name(self.year)

    @property
    def start_date(self) -> Optional[date]:
        return min((s.start_date for s in self.semesters), default=None)

    @property
    def end_date(self) -> Optional[date]:
        return max((s.end_date for s in self.semesters), default=None)

    def to_dict(self) -> dict:
        return {
            "id": self.year,
            "name": self.name,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "is_active": self.is_active,
            "semesters": [s.to_dict() for s in self.semesters],
        }
