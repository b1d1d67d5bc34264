"""View controller for the metrics panel.

The controller owns the panel inputs (template, datasources, variable
bindings, time window) and a single current :class:`ViewState`. Every input
change re-enters ``idle -> loading -> ready | empty | error``. Each fetch
gets a generation number and a response is applied only if its generation
is still current, so a slow answer to an old query never overwrites the
view built for a newer one.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import tzinfo
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..adapters import QueryBackend
from ..domain.aggregate import aggregate_series
from ..domain.chart import build_chart_series
from ..domain.errors import PanelError, QueryTimeout, TransportFailure
from ..domain.models import (
    PaginationState,
    Series,
    SeriesStat,
    SortState,
    ViewState,
    ViewStatus,
)
from ..domain.normalize import normalize_envelope
from ..domain.params import TimeWindow, build_param_set, build_simple_range_params
from ..domain.templating import detect_variables, extract_metric_name
from ..domain.variables import VariableResolution, VariableResolver
from ..schemas.query_contract import QueryKind
from ..utils.correlation import get_request_id
from ..utils.partial_results import FailureInfo
from .pagination import SORTABLE_FIELDS, clamp_page, paginate, sort_rows

logger = logging.getLogger(__name__)

DEFAULT_QUERY_TIMEOUT_SECONDS = 5.0
DEFAULT_PAGE_SIZE = 10

FetchKey = Tuple[str, Tuple[str, ...], Tuple[int, int], Tuple[Tuple[str, str], ...]]


class PanelVariant(str, Enum):
    """Panel flavors.

    ``templated`` issues instant and range calls and supports variables;
    ``range_only`` issues a single range call with ``startTime``/``endTime``.
    """

    TEMPLATED = "templated"
    RANGE_ONLY = "range_only"


class PanelInputs(BaseModel):
    """Everything a fetch depends on.

    ``bindings`` holds the effective variable values: external defaults
    overlaid with resolver and user selections.
    """

    model_config = ConfigDict(frozen=True)

    template: str = ""
    datasources: Tuple[str, ...] = ()
    bindings: Dict[str, str] = Field(default_factory=dict)
    window: TimeWindow = Field(default_factory=TimeWindow)

    @field_validator("datasources", mode="before")
    @classmethod
    def _datasources_ok(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(part for part in value.split(",") if part)
        return value

    @property
    def present_variables(self) -> Tuple[str, ...]:
        """Recognized variables present in the template."""
        return detect_variables(self.template)


def compute_fetch_key(inputs: PanelInputs) -> FetchKey:
    """Identity of the query described by ``inputs``.

    Only bindings of variables present in the template take part, so
    selecting a value for an unused variable does not trigger a refetch.
    """
    present = set(inputs.present_variables)
    bound = tuple(
        sorted(
            (name, value)
            for name, value in inputs.bindings.items()
            if name in present and value
        )
    )
    return (
        inputs.template,
        tuple(inputs.datasources),
        (inputs.window.window_seconds, inputs.window.step_seconds),
        bound,
    )


def is_ready(
    inputs: PanelInputs, variant: PanelVariant = PanelVariant.TEMPLATED
) -> bool:
    """Readiness gate: something to query, and every present variable bound."""
    if not inputs.datasources or not inputs.template.strip():
        return False
    if variant is PanelVariant.RANGE_ONLY:
        return True
    return all(inputs.bindings.get(name) for name in inputs.present_variables)


class ViewController:
    """Drive one panel from inputs to a view state.

    Parameters
    ----------
    backend: QueryBackend
        Console query collaborator.
    variant: PanelVariant
        Templated (instant + range) or range-only panel.
    timeout_seconds: float
        Per-call timeout for query and lookup calls.
    page_size: int
        Initial page size of the row projection.
    clock: Callable[[], int], optional
        Returns "now" in epoch seconds; injectable for tests.
    tz: tzinfo, optional
        Display timezone of row timestamps; host local time when omitted.
    """

    def __init__(
        self,
        backend: QueryBackend,
        *,
        variant: PanelVariant = PanelVariant.TEMPLATED,
        timeout_seconds: float = DEFAULT_QUERY_TIMEOUT_SECONDS,
        page_size: int = DEFAULT_PAGE_SIZE,
        clock: Optional[Callable[[], int]] = None,
        tz: Optional[tzinfo] = None,
        window: Optional[TimeWindow] = None,
    ) -> None:
        self._backend = backend
        self._variant = PanelVariant(variant)
        self._timeout = float(timeout_seconds)
        self._clock = clock or (lambda: int(time.time()))
        self._tz = tz
        self._resolver = VariableResolver(backend, timeout=self._timeout)

        self._template = ""
        self._datasources: Tuple[str, ...] = ()
        self._window = window or TimeWindow()
        self._defaults: Dict[str, str] = {}
        self._selections: Dict[str, str] = {}
        self._options: Dict[str, List[str]] = {}
        self._lookup_failures: List[FailureInfo] = []

        self._generation = 0
        self._resolve_generation = 0
        self._last_key: Optional[FetchKey] = None
        self._state = ViewState(pagination=PaginationState(page_size=page_size))

    # -- accessors ---------------------------------------------------------

    @property
    def state(self) -> ViewState:
        """Current view state."""
        return self._state

    @property
    def variant(self) -> PanelVariant:
        return self._variant

    @property
    def bindings(self) -> Dict[str, str]:
        """Effective bindings: external defaults overlaid with selections."""
        merged = {name: value for name, value in self._defaults.items() if value}
        merged.update(
            {name: value for name, value in self._selections.items() if value}
        )
        return merged

    @property
    def options(self) -> Dict[str, List[str]]:
        """Label values fetched per variable since the last input change."""
        return {name: list(values) for name, values in self._options.items()}

    @property
    def lookup_failures(self) -> List[FailureInfo]:
        return list(self._lookup_failures)

    @property
    def inputs(self) -> PanelInputs:
        return PanelInputs(
            template=self._template,
            datasources=self._datasources,
            bindings=self.bindings,
            window=self._window,
        )

    @property
    def present_variables(self) -> Tuple[str, ...]:
        if self._variant is PanelVariant.RANGE_ONLY:
            return ()
        return detect_variables(self._template)

    @property
    def metric_name(self) -> str:
        return extract_metric_name(self._template)

    # -- inputs ------------------------------------------------------------

    async def set_inputs(
        self,
        template: Optional[str] = None,
        datasources: Optional[Sequence[str]] = None,
        bindings: Optional[Mapping[str, Optional[str]]] = None,
        window: Optional[TimeWindow] = None,
    ) -> ViewState:
        """Apply new inputs, resolve variables if needed, and refresh.

        Arguments left as ``None`` keep their current value. Changing the
        template or the datasource set clears resolver and user selections
        and re-runs the label-value lookups; ``bindings`` replaces the
        external defaults, which survive such changes.
        """
        changed = False
        if template is not None and template != self._template:
            self._template = template
            changed = True
        if datasources is not None and tuple(datasources) != self._datasources:
            self._datasources = tuple(datasources)
            changed = True
        if bindings is not None:
            self._defaults = {name: value for name, value in bindings.items() if value}
        if window is not None:
            self._window = window

        if changed:
            self._selections.clear()
            self._options.clear()
            self._lookup_failures = []
            # Rows from the previous key must not outlive it during lookups.
            self._go_idle()
            await self._resolve_variables()
        return await self.refresh()

    async def select_variable(self, name: str, value: Optional[str]) -> ViewState:
        """Record a user selection and refresh; lookups are not re-run."""
        if value:
            self._selections[name] = value
        else:
            self._selections.pop(name, None)
        return await self.refresh()

    async def _resolve_variables(self) -> Optional[VariableResolution]:
        if self._variant is PanelVariant.RANGE_ONLY:
            return None
        self._resolve_generation += 1
        generation = self._resolve_generation
        resolution = await self._resolver.resolve(
            self._template, self._datasources, self.bindings
        )
        if generation != self._resolve_generation:
            logger.info(
                "panel.variables.stale",
                extra={
                    "req_id": get_request_id(),
                    "generation": generation,
                    "current": self._resolve_generation,
                },
            )
            return None
        self._options.update(resolution.options)
        self._lookup_failures = resolution.failures
        for name, value in resolution.bindings.items():
            if name not in self._defaults and name not in self._selections:
                self._selections[name] = value
        return resolution

    # -- fetching ----------------------------------------------------------

    async def refresh(self, force: bool = False) -> ViewState:
        """Run the fetch cycle for the current inputs.

        When the inputs are not ready the view goes idle without any call.
        Unchanged inputs do not refetch unless ``force`` is set or the last
        fetch ended in an error.
        """
        inputs = self.inputs
        if not is_ready(inputs, self._variant):
            return self._go_idle()

        key = compute_fetch_key(inputs)
        if (
            not force
            and key == self._last_key
            and self._state.status
            in (ViewStatus.READY, ViewStatus.EMPTY, ViewStatus.LOADING)
        ):
            return self._state

        self._last_key = key
        self._generation += 1
        generation = self._generation
        self._state = ViewState(
            status=ViewStatus.LOADING,
            pagination=PaginationState(page_size=self._state.pagination.page_size),
            sort=self._state.sort,
            generation=generation,
        )
        logger.info(
            "panel.fetch.start",
            extra={
                "req_id": get_request_id(),
                "generation": generation,
                "variant": self._variant.value,
                "datasources": list(inputs.datasources),
            },
        )

        try:
            instant, ranged = await self._fetch(inputs)
        except PanelError as exc:
            if generation != self._generation:
                self._log_stale(generation)
                return self._state
            logger.warning(
                "panel.fetch.error",
                extra={
                    "req_id": get_request_id(),
                    "generation": generation,
                    "error_kind": exc.kind.value,
                    "error": exc.message,
                },
            )
            self._state = self._state.model_copy(
                update={
                    "status": ViewStatus.ERROR,
                    "error": exc.message,
                    "error_kind": exc.kind,
                }
            )
            return self._state
        except BaseException:
            # Cancelled or unexpected failure: the next refresh must refetch.
            if generation == self._generation:
                self._go_idle()
            raise

        if generation != self._generation:
            self._log_stale(generation)
            return self._state

        deciding = ranged if instant is None else instant
        if not deciding:
            logger.info(
                "panel.fetch.empty",
                extra={"req_id": get_request_id(), "generation": generation},
            )
            self._state = self._state.model_copy(update={"status": ViewStatus.EMPTY})
            return self._state

        rows = aggregate_series(ranged, tz=self._tz)
        chart = build_chart_series(ranged)
        self._state = self._state.model_copy(
            update={
                "status": ViewStatus.READY,
                "rows": tuple(rows),
                "chart": tuple(chart),
                "instant_count": len(instant) if instant is not None else 0,
                "pagination": PaginationState(
                    page_index=1,
                    page_size=self._state.pagination.page_size,
                    total=len(rows),
                ),
            }
        )
        logger.info(
            "panel.fetch.ready",
            extra={
                "req_id": get_request_id(),
                "generation": generation,
                "rows": len(rows),
                "chart_series": len(chart),
            },
        )
        return self._state

    def _go_idle(self) -> ViewState:
        """Invalidate any fetch in flight and show an empty idle view."""
        self._generation += 1
        self._last_key = None
        self._state = ViewState(
            status=ViewStatus.IDLE,
            pagination=PaginationState(page_size=self._state.pagination.page_size),
            sort=self._state.sort,
            generation=self._generation,
        )
        logger.debug(
            "panel.fetch.idle",
            extra={"req_id": get_request_id(), "generation": self._generation},
        )
        return self._state

    def _log_stale(self, generation: int) -> None:
        logger.info(
            "panel.fetch.stale",
            extra={
                "req_id": get_request_id(),
                "generation": generation,
                "current": self._generation,
            },
        )

    async def _call(self, call: Awaitable[Any], kind: QueryKind) -> List[Series]:
        try:
            payload = await asyncio.wait_for(call, self._timeout)
        except asyncio.TimeoutError as exc:
            raise QueryTimeout(self._timeout) from exc
        except (httpx.HTTPError, ValueError, OSError) as exc:
            logger.warning(
                "panel.fetch.transport_failed",
                extra={
                    "req_id": get_request_id(),
                    "kind": kind.value,
                    "error": type(exc).__name__,
                },
            )
            raise TransportFailure(exc) from exc
        return normalize_envelope(payload, kind)

    async def _fetch(
        self, inputs: PanelInputs
    ) -> Tuple[Optional[List[Series]], List[Series]]:
        now = self._clock()
        if self._variant is PanelVariant.RANGE_ONLY:
            params = build_simple_range_params(
                inputs.template, inputs.datasources, inputs.window, now
            )
            ranged = await self._call(
                self._backend.range_query(params), QueryKind.RANGE
            )
            return None, ranged

        param_set = build_param_set(
            inputs.template,
            inputs.datasources,
            inputs.bindings,
            window=inputs.window,
            now=now,
        )
        # Both calls always run to completion; the instant failure wins.
        instant, ranged = await asyncio.gather(
            self._call(
                self._backend.instant_query(param_set.instant), QueryKind.INSTANT
            ),
            self._call(self._backend.range_query(param_set.range), QueryKind.RANGE),
            return_exceptions=True,
        )
        for outcome in (instant, ranged):
            if isinstance(outcome, BaseException):
                raise outcome
        return instant, ranged

    # -- projection ----------------------------------------------------------

    def set_page(self, page_index: int) -> ViewState:
        """Move to a 1-based page; out-of-range indexes clamp."""
        pagination = self._state.pagination
        page = clamp_page(page_index, pagination.total, pagination.page_size)
        self._state = self._state.model_copy(
            update={"pagination": pagination.model_copy(update={"page_index": page})}
        )
        return self._state

    def set_page_size(self, page_size: int) -> ViewState:
        """Change the page size and go back to the first page."""
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        pagination = self._state.pagination
        self._state = self._state.model_copy(
            update={
                "pagination": pagination.model_copy(
                    update={"page_index": 1, "page_size": page_size}
                )
            }
        )
        return self._state

    def sort_by(self, key: Optional[str], descending: bool = False) -> ViewState:
        """Order rows by ``key`` (``None`` restores source order); back to page 1."""
        if key is not None and key not in SORTABLE_FIELDS:
            raise ValueError(f"cannot sort by {key!r}")
        pagination = self._state.pagination
        self._state = self._state.model_copy(
            update={
                "sort": SortState(key=key, descending=descending),
                "pagination": pagination.model_copy(update={"page_index": 1}),
            }
        )
        return self._state

    def sorted_rows(self) -> List[SeriesStat]:
        """All rows in the current sort order."""
        sort = self._state.sort
        return sort_rows(self._state.rows, sort.key, sort.descending)

    def page_rows(self) -> List[SeriesStat]:
        """Rows of the current page in the current sort order."""
        pagination = self._state.pagination
        return paginate(
            self.sorted_rows(), pagination.page_index, pagination.page_size
        )
