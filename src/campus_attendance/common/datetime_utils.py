from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from ..core.exceptions import ValidationError


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def coerce_date(value: Any, field_name: str) -> date:
    """Accept a date, a datetime or an ISO string (date part only is kept)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return parse_iso_date(text[:10])
        except ValueError:
            pass
    raise ValidationError(f"{field_name} is not a valid date (YYYY-MM-DD)")


def coerce_optional_date(value: Any, field_name: str) -> Optional[date]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return coerce_date(value, field_name)


def parse_hhmm(value: Any, field_name: str) -> Optional[time]:
    """Parse 'HH:MM' (seconds tolerated); blank means no value."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} is not a valid time (HH:MM)")
    v = value.strip()
    if not v:
        return None
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(v, fmt).time()
        except ValueError:
            continue
    raise ValidationError(f"{field_name} is not a valid time (HH:MM)")


def parse_iso_datetime(value: str, field_name: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        raise ValidationError(f"{field_name} is not a valid timestamp")
    # Naive local time throughout; drop any offset after converting to local.
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min)


def end_of_day(d: date) -> datetime:
    """23:59:59.999 of the given day."""
    return datetime.combine(d, time(23, 59, 59, 999000))


def week_start(moment: datetime) -> datetime:
    """Monday 00:00 of the week containing moment."""
    monday = moment.date() - timedelta(days=moment.weekday())
    return start_of_day(monday)


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


def today_local() -> date:
    return now_local().date()
