from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class StudentRef:
    student_id: int
    id_number: str
    first_name: str
    last_name: str
    user_id: Optional[int] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def search_label(self) -> str:
        """Text the free-text filter is matched against."""
        return f"{self.id_number} {self.full_name}".lower()

    def display(self) -> dict:
        return {
            "student_id": self.student_id,
            "id_number": self.id_number,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "name": self.full_name,
        }
