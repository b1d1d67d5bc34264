"""Sort and page projections over table rows."""

from __future__ import annotations

import math
from typing import Any, List, Optional, Sequence, Tuple

from ..domain.models import SeriesStat

SORTABLE_FIELDS: Tuple[str, ...] = (
    "metric_name",
    "labels_text",
    "latest",
    "min",
    "max",
    "avg",
    "point_count",
    "latest_timestamp",
)


def page_count(total: int, page_size: int) -> int:
    """Number of pages, at least one."""
    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    return max(1, math.ceil(total / page_size))


def clamp_page(page_index: int, total: int, page_size: int) -> int:
    """Clamp a 1-based page index into the valid range."""
    return min(max(1, page_index), page_count(total, page_size))


def sort_rows(
    rows: Sequence[SeriesStat], key: Optional[str], descending: bool = False
) -> List[SeriesStat]:
    """Return rows ordered by ``key``; missing values always sort last.

    The sort is stable, so equal values keep their source order.

    Raises
    ------
    ValueError
        If ``key`` is not a sortable field.
    """
    if key is None:
        return list(rows)
    if key not in SORTABLE_FIELDS:
        raise ValueError(f"cannot sort by {key!r}")

    present = [row for row in rows if getattr(row, key) is not None]
    missing = [row for row in rows if getattr(row, key) is None]

    def _value(row: SeriesStat) -> Any:
        return getattr(row, key)

    return sorted(present, key=_value, reverse=descending) + missing


def paginate(
    rows: Sequence[SeriesStat], page_index: int, page_size: int
) -> List[SeriesStat]:
    """Slice one 1-based page out of ``rows``; out-of-range pages clamp.

    >>> paginate([], 3, 10)
    []
    """
    page = clamp_page(page_index, len(rows), page_size)
    start = (page - 1) * page_size
    return list(rows[start : start + page_size])
