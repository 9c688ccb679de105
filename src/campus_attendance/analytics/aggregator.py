from __future__ import annotations

from typing import Dict, List, Mapping, Optional

from ..attendance.model import AttendanceFact
from ..attendance.repository import AttendanceRepository
from ..common.app_logger import get_logger
from ..common.cache import ResultCache
from ..core.constants import MAX_PAGE_SIZE
from ..core.enums import AttendanceStatus, GroupBy
from ..core.exceptions import ValidationError
from ..schedules.model import ScheduleRef
from ..schedules.repository import ScheduleRepository
from ..students.model import StudentRef
from ..students.repository import StudentRepository
from .keys import key_function
from .model import (
    AggregationQuery,
    AggregationResult,
    Bucket,
    Counters,
    DayKey,
    DimensionKey,
    InstructorScope,
    ScheduleDayKey,
    ScheduleKey,
    ScheduleScope,
    Scope,
    StudentKey,
    StudentScope,
    Window,
)
from .rate import attendance_rate

logger = get_logger(__name__)


def _known_status(value: str) -> Optional[AttendanceStatus]:
    try:
        return AttendanceStatus(value)
    except ValueError:
        return None


class Aggregator:
    """Folds attendance facts into per-dimension buckets.

    Reads only; no locks. Full (unpaginated) results are cached per query when a
    cache is injected.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        schedules: ScheduleRepository,
        students: StudentRepository,
        *,
        cache: Optional[ResultCache] = None,
    ):
        self._attendance = attendance
        self._schedules = schedules
        self._students = students
        self._cache = cache

    def aggregate(
        self,
        scope: Scope,
        window: Window,
        group_by: GroupBy,
        *,
        text_filter: Optional[str] = None,
        include_empty: bool = False,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        limit: Optional[int] = None,
        use_cache: bool = True,
    ) -> AggregationResult:
        if include_empty and group_by != GroupBy.BY_SCHEDULE:
            raise ValidationError("includeEmpty is only supported for BY_SCHEDULE")

        query = AggregationQuery(
            scope=scope,
            window=window,
            group_by=group_by,
            text_filter=(text_filter or "").strip().lower() or None,
            include_empty=bool(include_empty),
        )

        if use_cache and self._cache is not None:
            result = self._cache.get_or_compute(query, lambda: self._compute(query))
        else:
            result = self._compute(query)

        return self._paginate(result, page=page, page_size=page_size, limit=limit)

    # ---- internals ----

    def _resolve_scope(self, scope: Scope) -> Dict[int, ScheduleRef]:
        if isinstance(scope, InstructorScope):
            return {s.schedule_id: s for s in self._schedules.list_for_instructor(scope.instructor_id)}
        if isinstance(scope, StudentScope):
            ids = self._students.list_enrolled_schedule_ids(scope.student_id)
            return dict(self._schedules.get_many(ids)) if ids else {}
        if isinstance(scope, ScheduleScope):
            schedule = self._schedules.get_by_id(scope.schedule_id)
            if schedule is None or schedule.is_deleted:
                return {}
            return {schedule.schedule_id: schedule}
        raise TypeError(f"Unsupported scope: {scope!r}")

    def _compute(self, query: AggregationQuery) -> AggregationResult:
        window = query.window
        schedules = self._resolve_scope(query.scope)
        if not schedules:
            logger.debug("Empty scope %r; returning empty aggregation", query.scope)
            return self._build_result(query, [])

        facts = self._attendance.list_facts(
            schedule_ids=schedules.keys(),
            start=window.start,
            end=window.end,
            end_inclusive=window.end_inclusive,
            student_id=query.scope.student_id if isinstance(query.scope, StudentScope) else None,
        )

        folded = self._fold(facts, query.group_by)
        if query.include_empty:
            for schedule_id in schedules:
                folded.setdefault(ScheduleKey(schedule_id), Counters())

        students: Mapping[int, StudentRef] = {}
        if query.group_by == GroupBy.BY_STUDENT and folded:
            students = self._students.get_many(k.student_id for k in folded if isinstance(k, StudentKey))

        buckets = [
            Bucket(
                key=key,
                counters=counters,
                rate=attendance_rate(counters),
                display=self._display_for(key, schedules, students),
            )
            for key, counters in folded.items()
        ]

        if query.text_filter and query.group_by == GroupBy.BY_STUDENT:
            needle = query.text_filter
            buckets = [
                b for b in buckets if b.key.student_id in students and needle in students[b.key.student_id].search_label
            ]

        buckets.sort(key=self._order_for(query.group_by))
        return self._build_result(query, buckets)

    @staticmethod
    def _fold(facts: List[AttendanceFact], group_by: GroupBy) -> Dict[DimensionKey, Counters]:
        key_of = key_function(group_by)
        folded: Dict[DimensionKey, Counters] = {}
        skipped = 0
        for fact in facts:
            status = _known_status(fact.status)
            if status is None:
                skipped += 1
                continue
            folded.setdefault(key_of(fact), Counters()).add(status)
        if skipped:
            logger.debug("Ignored %s events with unknown status", skipped)
        return folded

    @staticmethod
    def _display_for(
        key: DimensionKey,
        schedules: Mapping[int, ScheduleRef],
        students: Mapping[int, StudentRef],
    ) -> dict:
        if isinstance(key, ScheduleKey):
            schedule = schedules.get(key.schedule_id)
            return schedule.display() if schedule else {"code": f"sched-{key.schedule_id}"}
        if isinstance(key, StudentKey):
            student = students.get(key.student_id)
            if student:
                return student.display()
            return {"id_number": "", "first_name": "", "last_name": "", "name": ""}
        if isinstance(key, DayKey):
            return {"weekday": key.day.strftime("%A")}
        if isinstance(key, ScheduleDayKey):
            schedule = schedules.get(key.schedule_id)
            display = schedule.display() if schedule else {"code": f"sched-{key.schedule_id}"}
            return {**display, "weekday": key.day.strftime("%A")}
        raise TypeError(f"Unsupported dimension key: {key!r}")

    @staticmethod
    def _order_for(group_by: GroupBy):
        if group_by == GroupBy.BY_SCHEDULE:
            return lambda b: (str(b.display.get("code", "")), b.key.sort_token)
        if group_by == GroupBy.BY_STUDENT:
            return lambda b: (b.display_name.casefold(), b.key.sort_token)
        if group_by == GroupBy.BY_DAY:
            return lambda b: b.key.sort_token
        if group_by == GroupBy.BY_SCHEDULE_AND_DAY:
            return lambda b: (b.key.day, str(b.display.get("code", "")), b.key.schedule_id)
        raise ValueError(f"Unsupported group_by: {group_by!r}")

    @staticmethod
    def _build_result(query: AggregationQuery, buckets: List[Bucket]) -> AggregationResult:
        totals = Counters()
        for b in buckets:
            totals.merge(b.counters)
        return AggregationResult(
            items=tuple(buckets),
            totals=totals,
            totals_rate=attendance_rate(totals),
            meta={
                "group_by": query.group_by.value,
                "start": query.window.first_day.isoformat(),
                "end": query.window.last_day.isoformat(),
                "total_items": len(buckets),
            },
        )

    @staticmethod
    def _paginate(
        result: AggregationResult,
        *,
        page: Optional[int],
        page_size: Optional[int],
        limit: Optional[int],
    ) -> AggregationResult:
        if page is None and page_size is None and limit is None:
            return result

        items = result.items
        meta = dict(result.meta)

        if page is not None or page_size is not None:
            page = page or 1
            page_size = page_size or 20
            if page < 1 or page_size < 1 or page_size > MAX_PAGE_SIZE:
                raise ValidationError(f"page must be >= 1 and pageSize between 1 and {MAX_PAGE_SIZE}")
            offset = (page - 1) * page_size
            items = items[offset: offset + page_size]
            meta.update(page=page, page_size=page_size)

        if limit is not None:
            if limit < 1:
                raise ValidationError("limit must be >= 1")
            items = items[:limit]
            meta["limit"] = limit

        return AggregationResult(items=items, totals=result.totals, totals_rate=result.totals_rate, meta=meta)
