from __future__ import annotations

from typing import Dict, Iterable, Optional, Protocol, Sequence

from .model import EventRef, ScheduleRef


class ScheduleRepository(Protocol):
    """Read access to schedules and events; the core never writes them."""

    def get_by_id(self, schedule_id: int) -> Optional[ScheduleRef]:
        raise NotImplementedError

    def get_many(self, schedule_ids: Iterable[int]) -> Dict[int, ScheduleRef]:
        raise NotImplementedError

    def list_for_instructor(self, instructor_id: int) -> Sequence[ScheduleRef]:
        """Non-deleted schedules taught by the instructor."""

        raise NotImplementedError

    def get_event(self, event_id: int) -> Optional[EventRef]:
        raise NotImplementedError
