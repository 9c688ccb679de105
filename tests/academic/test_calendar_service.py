from __future__ import annotations

from datetime import date

import pytest

from campus_attendance.academic.model import Semester, SemesterInput
from campus_attendance.academic.service import AcademicCalendarService, parse_semesters_payload
from campus_attendance.core.auth import AuthContext
from campus_attendance.core.enums import Role, SemesterStatus, SemesterType
from campus_attendance.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)

TODAY = date(2025, 10, 4)


def row(semester_id, year, semester_type, start, end, **kwargs) -> Semester:
    return Semester(
        semester_id=semester_id,
        year=year,
        semester_type=semester_type,
        start_date=start,
        end_date=end,
        **kwargs,
    )


@pytest.fixture
def store(semester_store):
    return semester_store(
        [
            row(5, 2024, SemesterType.FIRST, date(2024, 6, 1), date(2024, 10, 31), is_active=True, status=SemesterStatus.ENDED),
            row(6, 2024, SemesterType.SECOND, date(2024, 11, 1), date(2025, 3, 31), status=SemesterStatus.ENDED),
            row(11, 2025, SemesterType.FIRST, date(2025, 6, 1), date(2025, 10, 31)),
            row(12, 2025, SemesterType.SECOND, date(2025, 11, 1), date(2026, 3, 31)),
            row(30, 2023, SemesterType.FIRST, date(2023, 6, 1), date(2023, 10, 31), status=SemesterStatus.CANCELLED),
        ]
    )


@pytest.fixture
def calendar(store):
    return AcademicCalendarService(store, clock=lambda: TODAY)


def active_years(store) -> set[int]:
    return {s.year for s in store.rows.values() if s.is_active}


def test_update_deletes_omitted_semester(calendar, store, admin):
    incoming = [SemesterInput(SemesterType.FIRST, date(2025, 6, 1), date(2025, 10, 31), semester_id=11)]

    year = calendar.apply_update(admin, 2025, incoming)

    assert 12 not in store.rows
    assert [s.semester_id for s in year.semesters] == [11]


def test_update_keeps_a_single_active_year(calendar, store, admin):
    incoming = [
        SemesterInput(SemesterType.FIRST, date(2025, 6, 1), date(2025, 10, 31), semester_id=11),
        SemesterInput(SemesterType.SECOND, date(2025, 11, 1), date(2026, 3, 31), semester_id=12),
    ]

    year = calendar.apply_update(admin, 2025, incoming)

    assert active_years(store) == {2025}
    assert year.is_active is True
    assert [s.is_active for s in year.semesters] == [True, False]
    assert year.to_dict()["name"] == "2025-2026"
    assert [s["name"] for s in year.to_dict()["semesters"]] == ["1st Semester", "2nd Semester"]


def test_inactive_year_update_leaves_current_year_active(calendar, store, admin):
    calendar.apply_update(admin, 2025, [SemesterInput(SemesterType.FIRST, date(2025, 6, 1), date(2025, 10, 31), semester_id=11)])
    calendar.apply_update(admin, 2024, [SemesterInput(SemesterType.FIRST, date(2024, 6, 1), date(2024, 10, 31), semester_id=5)])

    assert active_years(store) == {2025}


def test_store_failure_rolls_back_everything(calendar, store, admin):
    before = dict(store.rows)
    store.fail_on_apply = True

    with pytest.raises(PersistenceError):
        calendar.apply_update(admin, 2025, [SemesterInput(SemesterType.FIRST, date(2025, 6, 1), date(2025, 10, 31), semester_id=11)])

    assert store.rows == before


def test_invalid_update_touches_nothing(calendar, store, admin):
    before = dict(store.rows)
    incoming = [
        SemesterInput(SemesterType.FIRST, date(2025, 6, 1), date(2025, 10, 31), semester_id=11),
        SemesterInput(SemesterType.FIRST, date(2025, 11, 1), date(2026, 3, 31), semester_id=12),
    ]

    with pytest.raises(ValidationError, match="Duplicate"):
        calendar.apply_update(admin, 2025, incoming)

    assert store.rows == before
    assert store.applied == []


def test_declared_year_must_match(calendar, admin):
    with pytest.raises(ValidationError, match="mismatch"):
        calendar.apply_update(
            admin,
            2025,
            [SemesterInput(SemesterType.FIRST, date(2025, 6, 1), date(2025, 10, 31), semester_id=11)],
            declared_year=2026,
        )


@pytest.mark.parametrize("role", [Role.INSTRUCTOR, Role.DEPARTMENT_HEAD, Role.STUDENT])
def test_only_admins_edit_the_calendar(calendar, role):
    with pytest.raises(AuthorizationError):
        calendar.apply_update(
            AuthContext(user_id=3, role=role),
            2025,
            [SemesterInput(SemesterType.FIRST, date(2025, 6, 1), date(2025, 10, 31), semester_id=11)],
        )


def test_students_cannot_read_the_calendar(calendar):
    with pytest.raises(AuthorizationError):
        calendar.list_years(AuthContext(user_id=101, role=Role.STUDENT))


def test_list_years_newest_first_without_cancelled(calendar, instructor):
    years = calendar.list_years(instructor)

    assert [y.year for y in years] == [2025, 2024]
    assert years[1].is_active is True
    assert years[1].start_date == date(2024, 6, 1)
    assert years[1].end_date == date(2025, 3, 31)


def test_get_year_unknown_is_not_found(calendar, instructor):
    with pytest.raises(NotFoundError):
        calendar.get_year(instructor, 2030)


def test_create_year(calendar, store, admin):
    incoming = [
        SemesterInput(SemesterType.FIRST, date(2026, 6, 1), date(2026, 10, 31)),
        SemesterInput(SemesterType.THIRD, date(2027, 4, 1), date(2027, 5, 31)),
    ]

    year = calendar.create_year(admin, 2026, incoming, notes="Board approved")

    assert [s.name for s in year.semesters] == ["1st Semester", "Summer"]
    assert [s.short_name for s in year.semesters] == ["1st", "Summer"]
    assert all(s.status == SemesterStatus.UPCOMING for s in year.semesters)
    assert all(s.notes == "Board approved" for s in year.semesters)
    assert year.is_active is False
    assert active_years(store) == {2024}


def test_create_existing_year_conflicts(calendar, admin):
    with pytest.raises(ConflictError):
        calendar.create_year(admin, 2025, [SemesterInput(SemesterType.THIRD, date(2026, 4, 1), date(2026, 5, 31))])


@pytest.mark.parametrize("year", [1999, 2101])
def test_create_year_out_of_range(calendar, admin, year):
    with pytest.raises(ValidationError):
        calendar.create_year(admin, year, [SemesterInput(SemesterType.FIRST, date(2026, 6, 1), date(2026, 10, 31))])


def test_create_year_rejects_overlap_with_stored_semester(calendar, store, admin):
    with pytest.raises(ValidationError, match="overlaps"):
        calendar.create_year(admin, 2026, [SemesterInput(SemesterType.FIRST, date(2026, 3, 1), date(2026, 8, 31))])
    assert not store.year_exists(2026)


def test_parse_semesters_payload():
    parsed = parse_semesters_payload(
        [
            {"id": "11", "semesterType": "1st-semester", "startDate": "2025-06-01", "endDate": "2025-10-31T00:00:00Z"},
            {"semesterType": "summer", "startDate": "2026-04-01", "endDate": "2026-05-31", "notes": " short "},
        ]
    )

    assert parsed[0].semester_id == 11
    assert parsed[0].semester_type == SemesterType.FIRST
    assert parsed[0].end_date == date(2025, 10, 31)
    assert parsed[1].semester_type == SemesterType.THIRD
    assert parsed[1].notes == "short"

    with pytest.raises(ValidationError, match="Semester 1 is missing"):
        parse_semesters_payload([{"semesterType": "FIRST", "startDate": "2025-06-01"}])


def test_update_can_swap_semester_types(calendar, store, admin):
    incoming = [
        SemesterInput(SemesterType.SECOND, date(2025, 11, 1), date(2026, 3, 31), semester_id=11),
        SemesterInput(SemesterType.FIRST, date(2025, 6, 1), date(2025, 10, 31), semester_id=12),
    ]

    year = calendar.apply_update(admin, 2025, incoming)

    assert store.rows[11].semester_type == SemesterType.SECOND
    assert store.rows[12].semester_type == SemesterType.FIRST
    assert [(s.semester_id, s.is_active) for s in year.semesters] == [(12, True), (11, False)]


def test_update_can_move_a_semester_onto_a_type_another_gives_up(calendar, store, admin):
    incoming = [
        SemesterInput(SemesterType.FIRST, date(2025, 11, 1), date(2026, 3, 31), semester_id=12),
        SemesterInput(SemesterType.THIRD, date(2025, 6, 1), date(2025, 10, 31), semester_id=11),
    ]

    calendar.apply_update(admin, 2025, incoming)

    assert {(s.semester_id, s.semester_type) for s in store.list_for_year(2025)} == {
        (11, SemesterType.THIRD),
        (12, SemesterType.FIRST),
    }


def test_parse_semesters_payload_rejects_non_text_notes():
    with pytest.raises(ValidationError, match=r"semesters\[1\]\.notes"):
        parse_semesters_payload([{"semesterType": "FIRST", "startDate": "2025-06-01", "endDate": "2025-10-31", "notes": 5}])
