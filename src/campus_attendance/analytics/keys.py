"""Pure functions mapping an attendance fact to its dimension key."""

from __future__ import annotations

from typing import Callable, Dict

from ..attendance.model import AttendanceFact
from ..core.enums import GroupBy
from .model import DayKey, DimensionKey, ScheduleDayKey, ScheduleKey, StudentKey


def schedule_key(fact: AttendanceFact) -> ScheduleKey:
    return ScheduleKey(schedule_id=int(fact.schedule_id or 0))


def student_key(fact: AttendanceFact) -> StudentKey:
    return StudentKey(student_id=fact.student_id)


def day_key(fact: AttendanceFact) -> DayKey:
    return DayKey(day=fact.timestamp.date())


def schedule_day_key(fact: AttendanceFact) -> ScheduleDayKey:
    return ScheduleDayKey(schedule_id=int(fact.schedule_id or 0), day=fact.timestamp.date())


KEY_FUNCTIONS: Dict[GroupBy, Callable[[AttendanceFact], DimensionKey]] = {
    GroupBy.BY_SCHEDULE: schedule_key,
    GroupBy.BY_STUDENT: student_key,
    GroupBy.BY_DAY: day_key,
    GroupBy.BY_SCHEDULE_AND_DAY: schedule_day_key,
}


def key_function(group_by: GroupBy) -> Callable[[AttendanceFact], DimensionKey]:
    try:
        return KEY_FUNCTIONS[group_by]
    except KeyError:
        raise ValueError(f"No key function for {group_by!r}")
