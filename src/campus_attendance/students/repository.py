from __future__ import annotations

from typing import Dict, Iterable, Optional, Protocol, Sequence

from .model import StudentRef


class StudentRepository(Protocol):
    def get_by_id(self, student_id: int) -> Optional[StudentRef]:
        raise NotImplementedError

    def get_many(self, student_ids: Iterable[int]) -> Dict[int, StudentRef]:
        """Only ids that exist are present in the returned mapping."""

        raise NotImplementedError

    def list_enrolled_schedule_ids(self, student_id: int) -> Sequence[int]:
        raise NotImplementedError
