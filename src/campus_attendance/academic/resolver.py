"""Pure period-resolution logic for the academic calendar.

Nothing here touches the store: callers load the stored semesters, ask for a
``SemesterUpdatePlan`` and hand that plan to the repository, which executes it
in one transaction.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional, Protocol, Sequence, Tuple

from ..core.enums import SemesterStatus, SemesterType
from ..core.exceptions import NotFoundError, ValidationError
from .model import Semester, SemesterInput

_TYPE_ALIASES = {
    "FIRST_SEMESTER": SemesterType.FIRST,
    "1ST_SEMESTER": SemesterType.FIRST,
    "FIRST_TRIMESTER": SemesterType.FIRST,
    "1ST_TRIMESTER": SemesterType.FIRST,
    "FIRST": SemesterType.FIRST,
    "1ST": SemesterType.FIRST,
    "SECOND_SEMESTER": SemesterType.SECOND,
    "2ND_SEMESTER": SemesterType.SECOND,
    "SECOND_TRIMESTER": SemesterType.SECOND,
    "2ND_TRIMESTER": SemesterType.SECOND,
    "SECOND": SemesterType.SECOND,
    "2ND": SemesterType.SECOND,
    "THIRD_SEMESTER": SemesterType.THIRD,
    "3RD_SEMESTER": SemesterType.THIRD,
    "THIRD_TRIMESTER": SemesterType.THIRD,
    "3RD_TRIMESTER": SemesterType.THIRD,
    "THIRD": SemesterType.THIRD,
    "3RD": SemesterType.THIRD,
    "SUMMER": SemesterType.THIRD,
    "SUMMER_TERM": SemesterType.THIRD,
}


def normalize_semester_type(value: Any) -> SemesterType:
    """Map free-form type codes onto the three canonical types.

    Hyphens and whitespace become underscores and case is ignored. Anything
    unrecognised falls back to FIRST.
    """

    if isinstance(value, SemesterType):
        return value
    key = re.sub(r"[\s\-]+", "_", str(value or "").strip()).upper()
    return _TYPE_ALIASES.get(key, SemesterType.FIRST)


class _DateRange(Protocol):
    start_date: date
    end_date: date


@dataclass(frozen=True)
class Resolution:
    active_flags: Tuple[bool, ...]
    current_index: Optional[int]
    envelope_start: Optional[date]
    envelope_end: Optional[date]
    year_active: bool

    @property
    def has_current(self) -> bool:
        return self.current_index is not None


def resolve_active(semesters: Sequence[_DateRange], today: date) -> Resolution:
    """First semester (in input order) containing today is current; only that one is flagged.

    The year is active when a current semester exists or today lies inside
    [min start, max end] of all semesters.
    """

    current_index: Optional[int] = None
    for index, semester in enumerate(semesters):
        if semester.start_date <= today <= semester.end_date:
            current_index = index
            break

    envelope_start = min((s.start_date for s in semesters), default=None)
    envelope_end = max((s.end_date for s in semesters), default=None)
    within = envelope_start is not None and envelope_end is not None and envelope_start <= today <= envelope_end

    return Resolution(
        active_flags=tuple(i == current_index for i in range(len(semesters))),
        current_index=current_index,
        envelope_start=envelope_start,
        envelope_end=envelope_end,
        year_active=current_index is not None or within,
    )


def validate_semesters(year: int, semesters: Sequence[SemesterInput], *, declared_year: Optional[int] = None) -> None:
    if not semesters:
        raise ValidationError("Semesters array is required")
    if declared_year is not None and int(declared_year) != int(year):
        raise ValidationError("Academic year mismatch")

    seen = set()
    for index, semester in enumerate(semesters, start=1):
        if semester.year is not None and int(semester.year) != int(year):
            raise ValidationError(f"Semester {index} belongs to academic year {semester.year}, not {year}")
        if semester.semester_type in seen:
            raise ValidationError(f"Duplicate semester type: {semester.semester_type.value}")
        seen.add(semester.semester_type)
        if semester.start_date >= semester.end_date:
            raise ValidationError(f"Start date must be before end date for semester {index}")


@dataclass(frozen=True)
class SemesterWrite:
    """Values persisted for one semester row; ``semester_id`` is None for creates."""

    year: int
    semester_type: SemesterType
    start_date: date
    end_date: date
    is_active: bool
    semester_id: Optional[int] = None
    registration_start: Optional[date] = None
    registration_end: Optional[date] = None
    enrollment_start: Optional[date] = None
    enrollment_end: Optional[date] = None
    notes: Optional[str] = None
    status: SemesterStatus = SemesterStatus.UPCOMING


@dataclass(frozen=True)
class SemesterUpdatePlan:
    """Ordered steps of a calendar edit: delete, update, create, then deactivate other years."""

    year: int
    delete_ids: Tuple[int, ...] = ()
    updates: Tuple[SemesterWrite, ...] = ()
    creates: Tuple[SemesterWrite, ...] = ()
    deactivate_other_years: bool = False
    resolution: Optional[Resolution] = field(default=None, compare=False)

    @property
    def year_active(self) -> bool:
        return self.deactivate_other_years


def build_update_plan(
    year: int,
    incoming: Sequence[SemesterInput],
    stored: Sequence[Semester],
    today: date,
    *,
    declared_year: Optional[int] = None,
) -> SemesterUpdatePlan:
    validate_semesters(year, incoming, declared_year=declared_year)

    stored_ids = {s.semester_id for s in stored}
    unknown = sorted({s.semester_id for s in incoming if s.semester_id is not None} - stored_ids)
    if unknown:
        raise NotFoundError(f"Semester not found in academic year {year}: {', '.join(str(i) for i in unknown)}")

    incoming_ids = {s.semester_id for s in incoming if s.semester_id is not None}
    delete_ids = tuple(sorted(stored_ids - incoming_ids))

    resolution = resolve_active(incoming, today)
    stored_status = {s.semester_id: s.status for s in stored}

    updates = []
    creates = []
    for semester, is_active in zip(incoming, resolution.active_flags):
        write = SemesterWrite(
            year=year,
            semester_type=semester.semester_type,
            start_date=semester.start_date,
            end_date=semester.end_date,
            is_active=is_active,
            semester_id=semester.semester_id,
            registration_start=semester.registration_start,
            registration_end=semester.registration_end,
            enrollment_start=semester.enrollment_start,
            enrollment_end=semester.enrollment_end,
            notes=semester.notes,
            status=stored_status.get(semester.semester_id, SemesterStatus.UPCOMING),
        )
        (updates if semester.semester_id is not None else creates).append(write)

    return SemesterUpdatePlan(
        year=year,
        delete_ids=delete_ids,
        updates=tuple(updates),
        creates=tuple(creates),
        deactivate_other_years=resolution.year_active,
        resolution=resolution,
    )
