from __future__ import annotations

from datetime import date, timedelta
from typing import Optional, Tuple

from flask import Flask, jsonify, request

from ..common.datetime_utils import today_local
from ..common.http import arg_bool, arg_date, arg_int, current_auth, login_required
from ..common.validators import require_enum
from ..core.constants import DEFAULT_RANGE_DAYS
from ..core.enums import GroupBy
from ..core.exceptions import ValidationError
from ..container import Container
from .model import DayWindow, InstructorScope, RangeWindow, ScheduleScope, Scope, StudentScope, Window


def _scope_from_args() -> Scope:
    selectors = {
        "instructorId": arg_int("instructorId"),
        "studentId": arg_int("studentId"),
        "scheduleId": arg_int("scheduleId"),
    }
    chosen = {k: v for k, v in selectors.items() if v is not None}
    if len(chosen) != 1:
        raise ValidationError("Exactly one of instructorId, studentId or scheduleId is required")
    name, value = next(iter(chosen.items()))
    if name == "instructorId":
        return InstructorScope(value)
    if name == "studentId":
        return StudentScope(value)
    return ScheduleScope(value)


def _window_from_args() -> Window:
    day = arg_date("date")
    start, end = arg_date("start"), arg_date("end")
    if day is not None:
        if start is not None or end is not None:
            raise ValidationError("Use either date or start/end, not both")
        return DayWindow(day)
    if start is None or end is None:
        raise ValidationError("date or both start and end are required")
    return RangeWindow(start, end)


def _range_from_args() -> Tuple[date, date]:
    end = arg_date("end") or today_local()
    start = arg_date("start") or end - timedelta(days=DEFAULT_RANGE_DAYS - 1)
    return start, end


def _required_instructor() -> int:
    instructor_id: Optional[int] = arg_int("instructorId")
    if instructor_id is None:
        raise ValidationError("instructorId is required")
    return instructor_id


def register(app: Flask, container: Container) -> None:
    analytics = container.analytics_service

    @app.route("/api/analytics/aggregate", methods=["GET"], endpoint="api_analytics_aggregate")
    @login_required
    def api_analytics_aggregate():
        group_by = request.args.get("groupBy") or GroupBy.BY_SCHEDULE.value
        result = analytics.aggregate(
            current_auth(),
            _scope_from_args(),
            _window_from_args(),
            require_enum(GroupBy, group_by, "groupBy"),
            text_filter=request.args.get("q"),
            include_empty=arg_bool("includeEmpty"),
            page=arg_int("page"),
            page_size=arg_int("pageSize"),
            limit=arg_int("limit"),
            use_cache=not arg_bool("noCache"),
        )
        return jsonify(result.to_dict())

    @app.route("/api/analytics/daily", methods=["GET"], endpoint="api_analytics_daily")
    @login_required
    def api_analytics_daily():
        day = arg_date("date") or today_local()
        result = analytics.daily_summary(
            current_auth(), _required_instructor(), day, use_cache=not arg_bool("noCache")
        )
        return jsonify(result.to_dict())

    @app.route("/api/analytics/summary", methods=["GET"], endpoint="api_analytics_summary")
    @login_required
    def api_analytics_summary():
        day = arg_date("date") or today_local()
        result = analytics.schedule_summary(
            current_auth(), _required_instructor(), day, use_cache=not arg_bool("noCache")
        )
        return jsonify(result.to_dict())

    @app.route("/api/analytics/overview", methods=["GET"], endpoint="api_analytics_overview")
    @login_required
    def api_analytics_overview():
        start, end = _range_from_args()
        result = analytics.overview(
            current_auth(), _required_instructor(), start, end, use_cache=not arg_bool("noCache")
        )
        return jsonify(result.to_dict())

    @app.route("/api/analytics/trends", methods=["GET"], endpoint="api_analytics_trends")
    @login_required
    def api_analytics_trends():
        start, end = _range_from_args()
        result = analytics.trends(
            current_auth(),
            _required_instructor(),
            start,
            end,
            schedule_id=arg_int("scheduleId"),
            use_cache=not arg_bool("noCache"),
        )
        return jsonify(result.to_dict())

    @app.route("/api/analytics/absentees", methods=["GET"], endpoint="api_analytics_absentees")
    @login_required
    def api_analytics_absentees():
        start, end = _range_from_args()
        result = analytics.top_absentees(
            current_auth(),
            _required_instructor(),
            start,
            end,
            text_filter=request.args.get("q"),
            limit=arg_int("limit"),
            use_cache=not arg_bool("noCache"),
        )
        return jsonify(result.to_dict())

    @app.route(
        "/api/analytics/students/<int:student_id>/overview",
        methods=["GET"],
        endpoint="api_analytics_student_overview",
    )
    @login_required
    def api_analytics_student_overview(student_id: int):
        start, end = _range_from_args()
        result = analytics.student_overview(
            current_auth(), student_id, start, end, use_cache=not arg_bool("noCache")
        )
        return jsonify(result.to_dict())
