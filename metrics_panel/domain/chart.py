"""Plot-ready series built from a normalized range result.

Naming and coloring are deterministic: the same series order always yields
the same names and colors, so re-renders do not reshuffle the legend.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Tuple

from .models import METRIC_NAME_LABEL, ChartSeries, Series
from .params import TimeWindow
from .utils.timestamps import to_epoch_ms
from .utils.validation import parse_sample_value

PREFERRED_NAME_LABELS: Tuple[str, ...] = (
    "instance",
    "job",
    "node",
    "pod",
    "container",
    "service",
)

PALETTE: Tuple[str, ...] = (
    "#5470c6",
    "#91cc75",
    "#fac858",
    "#ee6666",
    "#73c0de",
    "#3ba272",
    "#fc8452",
    "#9a60b4",
    "#ea7ccc",
    "#5470c6",
)


def series_name(labels: Mapping[str, str], ordinal: int) -> str:
    """Legend name: a preferred label, else the metric name, else a counter.

    >>> series_name({"__name__": "up", "job": "node"}, 0)
    'node'
    >>> series_name({"__name__": "up"}, 0)
    'up'
    >>> series_name({}, 2)
    'Metric #3'
    """
    for key in PREFERRED_NAME_LABELS:
        value = labels.get(key)
        if value:
            return value
    return labels.get(METRIC_NAME_LABEL) or f"Metric #{ordinal + 1}"


def color_for(ordinal: int) -> Tuple[int, str]:
    """Palette index and color for the series at ``ordinal``."""
    index = ordinal % len(PALETTE)
    return index, PALETTE[index]


def build_chart_series(series: Sequence[Series]) -> List[ChartSeries]:
    """Convert normalized series into chart series, one per input.

    Unparsable values become ``NaN`` points instead of being dropped so that
    every series keeps its points aligned on the shared time axis.
    """
    chart: List[ChartSeries] = []
    for ordinal, item in enumerate(series):
        index, color = color_for(ordinal)
        chart.append(
            ChartSeries(
                name=series_name(item.labels, ordinal),
                points=tuple(
                    (to_epoch_ms(ts), parse_sample_value(raw))
                    for ts, raw in item.samples
                ),
                color_index=index,
                color=color,
                labels=dict(item.labels),
            )
        )
    return chart


@dataclass(frozen=True)
class ChartSummary:
    """Figures shown under the chart."""

    series_count: int
    points_per_series: int
    window_seconds: int
    step_seconds: int


def chart_summary(
    chart: Sequence[ChartSeries], window: Optional[TimeWindow] = None
) -> ChartSummary:
    """Summarize a chart; the point count is taken from the first series."""
    window = window or TimeWindow()
    return ChartSummary(
        series_count=len(chart),
        points_per_series=len(chart[0].points) if chart else 0,
        window_seconds=window.window_seconds,
        step_seconds=window.step_seconds,
    )
