from __future__ import annotations

from datetime import datetime
from typing import Protocol

from ..common.app_logger import get_logger
from ..core.enums import AttendanceStatus, NotificationPriority
from ..students.repository import StudentRepository
from .model import NewNotification
from .repository import NotificationRepository

logger = get_logger(__name__)


class NotificationHook(Protocol):
    """Called by the ingestor when a student's first ABSENT/LATE of the week is written.

    Fire-and-forget: the caller logs and ignores any exception raised here.
    """

    def on_threshold_crossed(self, student_id: int, status: AttendanceStatus, week_start: datetime) -> None:
        ...


class LoggingNotificationHook(NotificationHook):
    def on_threshold_crossed(self, student_id: int, status: AttendanceStatus, week_start: datetime) -> None:
        logger.info(
            "First %s of week %s for student %s",
            status.value,
            week_start.strftime("%Y-%m-%d"),
            student_id,
        )


class StudentAlertNotifier(NotificationHook):
    """Writes an in-app 'Attendance alert' for the student's user account."""

    def __init__(self, students: StudentRepository, notifications: NotificationRepository):
        self._students = students
        self._notifications = notifications

    def on_threshold_crossed(self, student_id: int, status: AttendanceStatus, week_start: datetime) -> None:
        student = self._students.get_by_id(student_id)
        if not student or not student.user_id:
            logger.debug("Student %s has no user account; alert skipped", student_id)
            return

        priority = NotificationPriority.HIGH if status == AttendanceStatus.ABSENT else NotificationPriority.NORMAL
        self._notifications.create(
            NewNotification(
                user_id=student.user_id,
                title="Attendance alert",
                message=f"{student.full_name} marked {status.value}",
                priority=priority,
            )
        )
