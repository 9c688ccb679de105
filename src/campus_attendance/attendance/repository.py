from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus
from .model import AttendanceEvent, AttendanceFact, UpsertResult


class AttendanceRepository(Protocol):
    """Event store for attendance rows.

    Note (DIP): services depend on this interface, not on a concrete DB.
    """

    def upsert_many(self, events: Sequence[AttendanceEvent]) -> Sequence[UpsertResult]:
        """Create-or-update every event by natural key in ONE transaction.

        Either all rows are written or none (PersistenceError on store failure).
        """

        raise NotImplementedError

    def get_by_key(
        self,
        *,
        student_id: int,
        timestamp: datetime,
        schedule_id: Optional[int] = None,
        event_id: Optional[int] = None,
    ) -> Optional[AttendanceEvent]:
        raise NotImplementedError

    def count_for_student_status(
        self,
        *,
        student_id: int,
        status: AttendanceStatus,
        start: datetime,
        end: datetime,
    ) -> int:
        """Count events in [start, end)."""

        raise NotImplementedError

    def list_facts(
        self,
        *,
        schedule_ids: Iterable[int],
        start: datetime,
        end: datetime,
        end_inclusive: bool,
        student_id: Optional[int] = None,
    ) -> Sequence[AttendanceFact]:
        raise NotImplementedError
