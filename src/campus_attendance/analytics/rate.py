from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from .model import Counters


def rate(part: int, total: int) -> int:
    """Percentage of part in total, rounded half-up; 0 when total is 0."""
    if total <= 0:
        return 0
    value = (Decimal(part) * 100 / Decimal(total)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(0, min(100, int(value)))


def attendance_rate(counters: Counters) -> int:
    return rate(counters.present, counters.total)


def absence_rate(counters: Counters) -> int:
    return rate(counters.absent, counters.total)
