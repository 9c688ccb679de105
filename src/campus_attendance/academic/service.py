from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date
from itertools import groupby
from typing import Any, Callable, List, Mapping, Optional, Sequence

from ..common.app_logger import get_logger
from ..common.datetime_utils import coerce_date, coerce_optional_date, today_local
from ..common.validators import clean_text, optional_positive_int
from ..core.auth import AuthContext
from ..core.constants import CALENDAR_READER_ROLES, CALENDAR_WRITER_ROLES, MAX_ACADEMIC_YEAR, MIN_ACADEMIC_YEAR
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from .model import AcademicYear, SemesterInput, academic_year_name, semester_name
from .repository import SemesterRepository
from .resolver import build_update_plan, normalize_semester_type

logger = get_logger(__name__)

# Calendar writes deactivate semesters of other years, so two edits must never interleave.
CALENDAR_WRITE_LOCK = threading.Lock()


def parse_year(value: Any) -> int:
    try:
        year = int(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid academic year id")
    return year


def parse_semesters_payload(raw_semesters: Any) -> List[SemesterInput]:
    if not isinstance(raw_semesters, list) or not raw_semesters:
        raise ValidationError("Semesters array is required")

    parsed = []
    for index, raw in enumerate(raw_semesters, start=1):
        if not isinstance(raw, Mapping):
            raise ValidationError(f"Semester {index} must be an object")
        if not raw.get("startDate") or not raw.get("endDate") or not raw.get("semesterType"):
            raise ValidationError(f"Semester {index} is missing required fields")

        declared_year = raw.get("year")
        parsed.append(
            SemesterInput(
                semester_type=normalize_semester_type(raw.get("semesterType")),
                start_date=coerce_date(raw.get("startDate"), f"semesters[{index}].startDate"),
                end_date=coerce_date(raw.get("endDate"), f"semesters[{index}].endDate"),
                semester_id=optional_positive_int(raw.get("id"), f"semesters[{index}].id"),
                year=parse_year(declared_year) if declared_year not in (None, "") else None,
                registration_start=coerce_optional_date(raw.get("registrationStart"), "registrationStart"),
                registration_end=coerce_optional_date(raw.get("registrationEnd"), "registrationEnd"),
                enrollment_start=coerce_optional_date(raw.get("enrollmentStart"), "enrollmentStart"),
                enrollment_end=coerce_optional_date(raw.get("enrollmentEnd"), "enrollmentEnd"),
                notes=clean_text(raw.get("notes"), f"semesters[{index}].notes"),
            )
        )
    return parsed


class AcademicCalendarService:
    def __init__(
        self,
        semesters: SemesterRepository,
        *,
        clock: Callable[[], date] = today_local,
        lock: Optional[threading.Lock] = None,
    ):
        self._semesters = semesters
        self._clock = clock
        self._lock = lock or CALENDAR_WRITE_LOCK

    def list_years(self, auth: AuthContext) -> List[AcademicYear]:
        auth.require(CALENDAR_READER_ROLES)
        rows = sorted(self._semesters.list_all(), key=lambda s: (-s.year, s.semester_type.value))
        years = []
        for year, group in groupby(rows, key=lambda s: s.year):
            semesters = tuple(group)
            years.append(AcademicYear(year=year, semesters=semesters, is_active=any(s.is_active for s in semesters)))
        return years

    def get_year(self, auth: AuthContext, year: int) -> AcademicYear:
        auth.require(CALENDAR_READER_ROLES)
        semesters = tuple(self._semesters.list_for_year(year))
        if not semesters:
            raise NotFoundError(f"Academic year {academic_year_name(year)} not found")
        return AcademicYear(year=year, semesters=semesters, is_active=any(s.is_active for s in semesters))

    def apply_update(
        self,
        auth: AuthContext,
        year: int,
        incoming: Sequence[SemesterInput],
        *,
        declared_year: Optional[int] = None,
    ) -> AcademicYear:
        """Replace the semester set of one year and re-derive the active flags.

        Stored semesters missing from ``incoming`` are deleted. When the year
        turns out active, every other year's semesters are deactivated in the
        same transaction.
        """

        auth.require(CALENDAR_WRITER_ROLES)
        with self._lock:
            stored = self._semesters.list_for_year(year)
            plan = build_update_plan(year, incoming, stored, self._clock(), declared_year=declared_year)
            self._semesters.apply_plan(plan)
            logger.info(
                "Academic year %s updated by user %s (deleted=%s, updated=%s, created=%s, active=%s)",
                academic_year_name(year),
                auth.user_id,
                list(plan.delete_ids),
                len(plan.updates),
                len(plan.creates),
                plan.year_active,
            )
            return AcademicYear(
                year=year,
                semesters=tuple(self._semesters.list_for_year(year)),
                is_active=plan.year_active,
            )

    def create_year(
        self,
        auth: AuthContext,
        year: int,
        incoming: Sequence[SemesterInput],
        *,
        notes: Optional[str] = None,
    ) -> AcademicYear:
        auth.require(CALENDAR_WRITER_ROLES)
        if not MIN_ACADEMIC_YEAR <= int(year) <= MAX_ACADEMIC_YEAR:
            raise ValidationError(f"Invalid year. Must be between {MIN_ACADEMIC_YEAR} and {MAX_ACADEMIC_YEAR}")

        # New rows only; the year-level note fills in semesters without their own.
        fresh = [replace(s, semester_id=None, notes=s.notes or clean_text(notes, "notes")) for s in incoming]

        with self._lock:
            if self._semesters.year_exists(year):
                raise ConflictError(f"Academic year {academic_year_name(year)} already exists")

            plan = build_update_plan(year, fresh, [], self._clock())
            for semester in fresh:
                clash = self._semesters.find_overlapping(semester.start_date, semester.end_date)
                if clash is not None:
                    raise ValidationError(
                        f"Date range overlaps with existing semester: {clash.year} {semester_name(clash.semester_type)}"
                    )

            self._semesters.apply_plan(plan)
            logger.info(
                "Academic year %s created by user %s with %s semesters (active=%s)",
                academic_year_name(year),
                auth.user_id,
                len(plan.creates),
                plan.year_active,
            )
            return AcademicYear(
                year=year,
                semesters=tuple(self._semesters.list_for_year(year)),
                is_active=plan.year_active,
            )
