from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Actor roles handed to the core by the authentication layer."""

    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    DEPARTMENT_HEAD = "DEPARTMENT_HEAD"
    INSTRUCTOR = "INSTRUCTOR"
    STUDENT = "STUDENT"


class AttendanceStatus(str, Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"
    EXCUSED = "EXCUSED"


class AttendanceSource(str, Enum):
    SCAN = "SCAN"
    MANUAL_ENTRY = "MANUAL_ENTRY"


class SemesterType(str, Enum):
    FIRST = "FIRST_SEMESTER"
    SECOND = "SECOND_SEMESTER"
    THIRD = "THIRD_SEMESTER"


class SemesterStatus(str, Enum):
    """Lifecycle of a semester row, independent of the derived is_active flag."""

    UPCOMING = "UPCOMING"
    CURRENT = "CURRENT"
    ENDED = "ENDED"
    CANCELLED = "CANCELLED"


class GroupBy(str, Enum):
    BY_SCHEDULE = "BY_SCHEDULE"
    BY_STUDENT = "BY_STUDENT"
    BY_DAY = "BY_DAY"
    BY_SCHEDULE_AND_DAY = "BY_SCHEDULE_AND_DAY"


class NotificationPriority(str, Enum):
    NORMAL = "NORMAL"
    HIGH = "HIGH"
