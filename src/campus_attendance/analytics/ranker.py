from __future__ import annotations

from typing import Iterable, List, Optional

from .model import Bucket


def _absentee_order(bucket: Bucket):
    return (-bucket.absent, -bucket.total, bucket.display_name.casefold(), bucket.key.sort_token)


def rank_absentees(
    buckets: Iterable[Bucket],
    *,
    limit: Optional[int] = None,
    min_absences: Optional[int] = None,
) -> List[Bucket]:
    """Most absent first; ties on total (desc) then name (case-insensitive) then key.

    The threshold filter runs before sorting, the limit after.
    """

    rows = list(buckets)
    if min_absences is not None:
        rows = [b for b in rows if b.absent >= min_absences]
    rows.sort(key=_absentee_order)
    if limit is not None:
        rows = rows[: max(limit, 0)]
    return rows
