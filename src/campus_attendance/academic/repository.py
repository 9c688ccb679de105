from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from .model import Semester
from .resolver import SemesterUpdatePlan


class SemesterRepository(Protocol):
    def list_for_year(self, year: int) -> Sequence[Semester]:
        """Semesters of one year ordered by type."""
        ...

    def list_all(self) -> Sequence[Semester]:
        """Non-cancelled semesters, newest year first, then by type."""
        ...

    def year_exists(self, year: int) -> bool:
        ...

    def find_overlapping(self, start: date, end: date) -> Optional[Semester]:
        """A non-cancelled semester whose [start, end] intersects the given range."""
        ...

    def apply_plan(self, plan: SemesterUpdatePlan) -> None:
        """Execute every step of the plan in one transaction."""
        ...
