from __future__ import annotations

from dataclasses import dataclass

from .academic.mysql_semester_repository import MySQLSemesterRepository
from .academic.repository import SemesterRepository
from .academic.service import AcademicCalendarService
from .analytics.aggregator import Aggregator
from .analytics.service import AnalyticsService
from .attendance.ingestor import EventIngestor
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .common.cache import CacheConfig, ResultCache
from .core.constants import DEFAULT_CACHE_MAX_SIZE, DEFAULT_CACHE_TTL_SECONDS
from .database.connection import DBConfig, DatabaseConnection
from .notifications.hooks import LoggingNotificationHook, NotificationHook, StudentAlertNotifier
from .notifications.repository import MySQLNotificationRepository
from .schedules.mysql_schedule_repository import MySQLScheduleRepository
from .schedules.repository import ScheduleRepository
from .students.mysql_student_repository import MySQLStudentRepository
from .students.repository import StudentRepository


@dataclass(frozen=True)
class Container:
    attendance_repo: AttendanceRepository
    schedules_repo: ScheduleRepository
    students_repo: StudentRepository
    semesters_repo: SemesterRepository

    analytics_cache: ResultCache
    notifier: NotificationHook

    event_ingestor: EventIngestor
    aggregator: Aggregator
    analytics_service: AnalyticsService
    calendar_service: AcademicCalendarService


def wire_services(
    *,
    attendance_repo: AttendanceRepository,
    schedules_repo: ScheduleRepository,
    students_repo: StudentRepository,
    semesters_repo: SemesterRepository,
    notifier: NotificationHook,
    analytics_cache: ResultCache,
) -> Container:
    """Build the services on top of already constructed repositories."""

    event_ingestor = EventIngestor(
        attendance_repo,
        schedules_repo,
        students_repo,
        notifier=notifier,
        cache=analytics_cache,
    )
    aggregator = Aggregator(attendance_repo, schedules_repo, students_repo, cache=analytics_cache)
    analytics_service = AnalyticsService(aggregator, schedules_repo, students_repo)
    calendar_service = AcademicCalendarService(semesters_repo)

    return Container(
        attendance_repo=attendance_repo,
        schedules_repo=schedules_repo,
        students_repo=students_repo,
        semesters_repo=semesters_repo,
        analytics_cache=analytics_cache,
        notifier=notifier,
        event_ingestor=event_ingestor,
        aggregator=aggregator,
        analytics_service=analytics_service,
        calendar_service=calendar_service,
    )


def build_container(
    *,
    db_config: dict,
    cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
    cache_max_size: int = DEFAULT_CACHE_MAX_SIZE,
    notifications_backend: str = "log",
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))

    attendance_repo = MySQLAttendanceRepository(conn)
    schedules_repo = MySQLScheduleRepository(conn)
    students_repo = MySQLStudentRepository(conn)
    semesters_repo = MySQLSemesterRepository(conn)

    backend = (notifications_backend or "log").strip().lower()
    if backend == "mysql":
        notifier: NotificationHook = StudentAlertNotifier(students_repo, MySQLNotificationRepository(conn))
    elif backend == "log":
        notifier = LoggingNotificationHook()
    else:
        raise ValueError(f"Unknown NOTIFICATIONS_BACKEND: {notifications_backend!r}")

    return wire_services(
        attendance_repo=attendance_repo,
        schedules_repo=schedules_repo,
        students_repo=students_repo,
        semesters_repo=semesters_repo,
        notifier=notifier,
        analytics_cache=ResultCache(CacheConfig(max_size=cache_max_size, ttl_seconds=cache_ttl_seconds)),
    )
