"""Canonical data model of the metrics pipeline.

Raw series arrive from the console as a tagged variant (instant or range) and
are normalized immediately into :class:`Series`. Everything derived from a
normalized result (table rows, chart series) and the view state itself are
frozen models: a new value is built for every transition instead of mutating
the previous one.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..schemas.query_contract import ErrorKind

METRIC_NAME_LABEL = "__name__"

Timestamp = Union[int, float]
Sample = Tuple[Timestamp, str]


def _coerce_labels(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): "" if v is None else str(v) for k, v in value.items()}
    return value


def _coerce_sample(value: Any) -> Any:
    # Sample values are strings on the wire; tolerate bare numbers and nulls.
    if isinstance(value, (list, tuple)) and len(value) == 2:
        ts, raw = value
        return (ts, "" if raw is None else str(raw))
    return value


class Series(BaseModel):
    """Normalized series: one label set and its samples.

    Attributes
    ----------
    labels: Dict[str, str]
        Label set, including ``__name__`` when the backend reports it.
    samples: Tuple[Sample, ...]
        ``(timestamp_seconds, raw_value)`` pairs in backend order.
    """

    model_config = ConfigDict(frozen=True)

    labels: Dict[str, str] = Field(default_factory=dict)
    samples: Tuple[Sample, ...] = ()

    @field_validator("labels", mode="before")
    @classmethod
    def _labels_ok(cls, value: Any) -> Any:
        return _coerce_labels(value)

    @field_validator("samples", mode="before")
    @classmethod
    def _samples_ok(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return tuple(_coerce_sample(s) for s in value)
        return value

    @property
    def metric_name(self) -> str:
        """Value of the reserved metric-name label, or empty string."""
        return self.labels.get(METRIC_NAME_LABEL, "")


class InstantSeries(BaseModel):
    """Instant query result entry: ``{metric, value}``."""

    kind: Literal["instant"] = "instant"
    metric: Dict[str, str] = Field(default_factory=dict)
    value: Sample

    @field_validator("metric", mode="before")
    @classmethod
    def _metric_ok(cls, value: Any) -> Any:
        return {} if value is None else _coerce_labels(value)

    @field_validator("value", mode="before")
    @classmethod
    def _value_ok(cls, value: Any) -> Any:
        return _coerce_sample(value)

    def to_series(self) -> Series:
        """Normalize into a one-sample :class:`Series`."""
        return Series(labels=dict(self.metric), samples=(self.value,))


class RangeSeries(BaseModel):
    """Range query result entry: ``{metric, values}``."""

    kind: Literal["range"] = "range"
    metric: Dict[str, str] = Field(default_factory=dict)
    values: List[Sample] = Field(default_factory=list)

    @field_validator("metric", mode="before")
    @classmethod
    def _metric_ok(cls, value: Any) -> Any:
        return {} if value is None else _coerce_labels(value)

    @field_validator("values", mode="before")
    @classmethod
    def _values_ok(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [_coerce_sample(s) for s in value]
        return value

    def to_series(self) -> Series:
        """Normalize into a :class:`Series` keeping sample order."""
        return Series(labels=dict(self.metric), samples=tuple(self.values))


RawSeries = Annotated[Union[InstantSeries, RangeSeries], Field(discriminator="kind")]


class SeriesStat(BaseModel):
    """Summary statistics of one series, one table row.

    ``latest``/``min``/``max``/``avg`` are computed over parseable sample
    values only and are ``None`` when there are none. ``latest_timestamp``
    always comes from the last raw sample.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    metric_name: str
    labels: Dict[str, str] = Field(default_factory=dict)
    labels_text: str = ""
    latest: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    avg: Optional[float] = None
    point_count: int = Field(0, ge=0)
    latest_timestamp: Optional[Timestamp] = None
    latest_timestamp_text: str = "0"


class ChartSeries(BaseModel):
    """Plot-ready series: named, colored, time-indexed in milliseconds."""

    model_config = ConfigDict(frozen=True)

    name: str
    points: Tuple[Tuple[float, float], ...] = ()
    color_index: int = Field(0, ge=0)
    color: str = ""
    labels: Dict[str, str] = Field(default_factory=dict)


class ViewStatus(str, Enum):
    """View controller states"""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    EMPTY = "empty"
    ERROR = "error"


class PaginationState(BaseModel):
    """1-based page window over the row projection."""

    model_config = ConfigDict(frozen=True)

    page_index: int = Field(1, ge=1)
    page_size: int = Field(10, ge=1)
    total: int = Field(0, ge=0)


class SortState(BaseModel):
    """Sort order of the row projection; ``key`` None keeps source order."""

    model_config = ConfigDict(frozen=True)

    key: Optional[str] = None
    descending: bool = False


class ViewState(BaseModel):
    """Complete presentation state owned by one view controller.

    Attributes
    ----------
    status: ViewStatus
        Current state machine state.
    error: Optional[str]
        User-facing message when ``status`` is ``error``.
    error_kind: Optional[ErrorKind]
        Failure classification when ``status`` is ``error``.
    rows: Tuple[SeriesStat, ...]
        All rows of the last successful fetch (unpaginated, unsorted).
    chart: Tuple[ChartSeries, ...]
        Chart series derived from the same normalized result as ``rows``.
    instant_count: int
        Number of series in the normalized instant result.
    pagination: PaginationState
        Page window; ``total`` equals ``len(rows)``.
    sort: SortState
        Row ordering applied by the page projection.
    generation: int
        Fetch generation that produced this state.
    """

    model_config = ConfigDict(frozen=True)

    status: ViewStatus = ViewStatus.IDLE
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    rows: Tuple[SeriesStat, ...] = ()
    chart: Tuple[ChartSeries, ...] = ()
    instant_count: int = 0
    pagination: PaginationState = Field(default_factory=PaginationState)
    sort: SortState = Field(default_factory=SortState)
    generation: int = 0

    @property
    def loading(self) -> bool:
        """True while a fetch is in flight."""
        return self.status is ViewStatus.LOADING
