from __future__ import annotations

from datetime import date
from typing import Optional

from ..common.app_logger import get_logger
from ..core.auth import AuthContext
from ..core.constants import DEFAULT_ABSENTEE_LIMIT, MAX_ABSENTEE_LIMIT
from ..core.enums import GroupBy, Role
from ..core.exceptions import AuthorizationError, NotFoundError
from ..schedules.repository import ScheduleRepository
from ..students.repository import StudentRepository
from .aggregator import Aggregator
from .model import (
    AggregationResult,
    DayWindow,
    InstructorScope,
    RangeWindow,
    ScheduleScope,
    Scope,
    StudentScope,
    Window,
)
from .ranker import rank_absentees
from .rate import absence_rate

logger = get_logger(__name__)


class AnalyticsService:
    """Named read views over the Aggregator.

    Students may only look at their own records; every other role can read any scope.
    """

    def __init__(self, aggregator: Aggregator, schedules: ScheduleRepository, students: StudentRepository):
        self._aggregator = aggregator
        self._schedules = schedules
        self._students = students

    def _authorize(self, auth: AuthContext, scope: Scope) -> None:
        if auth.role != Role.STUDENT:
            return
        if isinstance(scope, StudentScope):
            student = self._students.get_by_id(scope.student_id)
            if student is not None and student.user_id == auth.user_id:
                return
        raise AuthorizationError("Insufficient permissions")

    def aggregate(
        self,
        auth: AuthContext,
        scope: Scope,
        window: Window,
        group_by: GroupBy,
        **options,
    ) -> AggregationResult:
        self._authorize(auth, scope)
        return self._aggregator.aggregate(scope, window, group_by, **options)

    def daily_summary(self, auth: AuthContext, instructor_id: int, day: date, *, use_cache: bool = True) -> AggregationResult:
        """Per-schedule counters for one day; schedules without records are left out."""
        return self.aggregate(
            auth, InstructorScope(instructor_id), DayWindow(day), GroupBy.BY_SCHEDULE, use_cache=use_cache
        )

    def schedule_summary(self, auth: AuthContext, instructor_id: int, day: date, *, use_cache: bool = True) -> AggregationResult:
        """Every schedule of the instructor for one day, zero rows included."""
        return self.aggregate(
            auth,
            InstructorScope(instructor_id),
            DayWindow(day),
            GroupBy.BY_SCHEDULE,
            include_empty=True,
            use_cache=use_cache,
        )

    def overview(
        self, auth: AuthContext, instructor_id: int, start: date, end: date, *, use_cache: bool = True
    ) -> AggregationResult:
        return self.aggregate(
            auth, InstructorScope(instructor_id), RangeWindow(start, end), GroupBy.BY_SCHEDULE, use_cache=use_cache
        )

    def trends(
        self,
        auth: AuthContext,
        instructor_id: int,
        start: date,
        end: date,
        *,
        schedule_id: Optional[int] = None,
        use_cache: bool = True,
    ) -> AggregationResult:
        scope: Scope = InstructorScope(instructor_id)
        if schedule_id is not None:
            schedule = self._schedules.get_by_id(schedule_id)
            if schedule is None or schedule.is_deleted or schedule.instructor_id != instructor_id:
                raise NotFoundError("Schedule not found")
            scope = ScheduleScope(schedule_id)
        return self.aggregate(auth, scope, RangeWindow(start, end), GroupBy.BY_SCHEDULE_AND_DAY, use_cache=use_cache)

    def top_absentees(
        self,
        auth: AuthContext,
        instructor_id: int,
        start: date,
        end: date,
        *,
        text_filter: Optional[str] = None,
        limit: Optional[int] = None,
        use_cache: bool = True,
    ) -> AggregationResult:
        limit = max(1, min(int(limit or DEFAULT_ABSENTEE_LIMIT), MAX_ABSENTEE_LIMIT))
        result = self.aggregate(
            auth,
            InstructorScope(instructor_id),
            RangeWindow(start, end),
            GroupBy.BY_STUDENT,
            text_filter=text_filter,
            use_cache=use_cache,
        )
        ranked = rank_absentees(result.items, limit=limit)
        logger.debug("Ranked %s absentees for instructor %s", len(ranked), instructor_id)
        return AggregationResult(
            items=tuple(ranked),
            totals=result.totals,
            totals_rate=result.totals_rate,
            meta={
                **result.meta,
                "limit": limit,
                "unique_students": len(result.items),
                "absence_rate": absence_rate(result.totals),
            },
        )

    def student_overview(
        self, auth: AuthContext, student_id: int, start: date, end: date, *, use_cache: bool = True
    ) -> AggregationResult:
        if self._students.get_by_id(student_id) is None:
            raise NotFoundError("Student not found")
        return self.aggregate(
            auth, StudentScope(student_id), RangeWindow(start, end), GroupBy.BY_SCHEDULE, use_cache=use_cache
        )
