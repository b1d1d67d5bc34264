"""Per-series summary statistics for the table view."""

from __future__ import annotations

import logging
from datetime import tzinfo
from typing import List, Mapping, Optional, Sequence

from .models import METRIC_NAME_LABEL, Series, SeriesStat
from .utils.statistics import compute_statistics
from .utils.timestamps import DEFAULT_DATETIME_FORMAT, format_timestamp
from .utils.validation import parse_sample_value

logger = logging.getLogger(__name__)


def labels_text(labels: Mapping[str, str]) -> str:
    """Render labels as ``k=v`` pairs joined by commas, skipping ``__name__``.

    >>> labels_text({"__name__": "up", "job": "node", "instance": "a:9100"})
    'job=node,instance=a:9100'
    """
    return ",".join(f"{k}={v}" for k, v in labels.items() if k != METRIC_NAME_LABEL)


def series_stat_id(metric_name: str, ordinal: int, latest_timestamp: object) -> str:
    """Row id, unique within one aggregation pass."""
    stamp = 0 if latest_timestamp is None else latest_timestamp
    return f"{metric_name}-{ordinal}-{stamp}"


def aggregate_series(
    series: Sequence[Series],
    tz: Optional[tzinfo] = None,
    datetime_format: str = DEFAULT_DATETIME_FORMAT,
) -> List[SeriesStat]:
    """Build one :class:`SeriesStat` per normalized series.

    Unparsable values are excluded from the figures but never drop a row,
    and the latest timestamp always comes from the last raw sample.

    Parameters
    ----------
    series: Sequence[Series]
        Normalized result, usually the range query's.
    tz: tzinfo, optional
        Display timezone of ``latest_timestamp_text``; host local time when
        omitted.
    datetime_format: str
        ``strftime`` format of ``latest_timestamp_text``.
    """
    rows: List[SeriesStat] = []
    dropped = 0
    for ordinal, item in enumerate(series):
        values = [parse_sample_value(raw) for _, raw in item.samples]
        stats = compute_statistics(values)
        dropped += stats.invalid
        latest_ts = item.samples[-1][0] if item.samples else None
        metric_name = item.metric_name
        rows.append(
            SeriesStat(
                id=series_stat_id(metric_name, ordinal, latest_ts),
                metric_name=metric_name,
                labels=dict(item.labels),
                labels_text=labels_text(item.labels),
                latest=stats.latest,
                min=stats.min,
                max=stats.max,
                avg=stats.mean,
                point_count=stats.count,
                latest_timestamp=latest_ts,
                latest_timestamp_text=format_timestamp(
                    latest_ts, fmt=datetime_format, tz=tz
                ),
            )
        )
    if dropped:
        logger.debug(
            "aggregate.samples_dropped",
            extra={"series": len(rows), "dropped": dropped},
        )
    return rows
