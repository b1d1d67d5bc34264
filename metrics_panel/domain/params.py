"""Query parameter construction for the console query endpoints.

Both parameter bags of one fetch are built from a single frozen snapshot of
the variable bindings and a single ``now``, so the instant and range calls
always describe the same query.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from .templating import RECOGNIZED_VARIABLES, unbound_variables

DEFAULT_WINDOW_SECONDS = 3600
DEFAULT_STEP_SECONDS = 60


class TimeWindow(BaseModel):
    """Look-back window of the range query, ending at "now".

    Attributes
    ----------
    window_seconds: int
        Length of the window.
    step_seconds: int
        Sampling interval of the range query.
    """

    model_config = ConfigDict(frozen=True)

    window_seconds: int = Field(DEFAULT_WINDOW_SECONDS, ge=1)
    step_seconds: int = Field(DEFAULT_STEP_SECONDS, ge=1)

    def bounds(self, now: int) -> tuple[int, int]:
        """Return ``(start, end)`` epoch seconds for a window ending at ``now``."""
        return now - self.window_seconds, now


@dataclass(frozen=True)
class QueryParamSet:
    """Instant and range parameter bags of one fetch."""

    instant: Dict[str, Any]
    range: Dict[str, Any]
    now: int


def _epoch_now() -> int:
    return int(time.time())


def effective_bindings(bindings: Mapping[str, Optional[str]]) -> Dict[str, str]:
    """Bound values worth sending: non-empty values, in insertion order."""
    return {name: value for name, value in bindings.items() if value}


def build_instant_params(
    template: str,
    datasources: Sequence[str],
    bindings: Mapping[str, Optional[str]],
) -> Dict[str, Any]:
    """Build the instant query parameters.

    Every bound variable is sent as ``variables[name]``; the recognized ones
    are also sent under their flat name, which older console versions read.
    """
    params: Dict[str, Any] = {
        "datasourceIds": ",".join(datasources),
        "query": template,
    }
    values = effective_bindings(bindings)
    for name, value in values.items():
        params[f"variables[{name}]"] = value
    for name in RECOGNIZED_VARIABLES:
        if name in values:
            params[name] = values[name]
    return params


def build_range_params(
    template: str,
    datasources: Sequence[str],
    bindings: Mapping[str, Optional[str]],
    window: Optional[TimeWindow] = None,
    now: Optional[int] = None,
) -> Dict[str, Any]:
    """Build the range query parameters: the instant bag plus start/end/step."""
    window = window or TimeWindow()
    start, end = window.bounds(_epoch_now() if now is None else now)
    params = build_instant_params(template, datasources, bindings)
    params.update({"start": start, "end": end, "step": window.step_seconds})
    return params


def build_simple_range_params(
    template: str,
    datasources: Sequence[str],
    window: Optional[TimeWindow] = None,
    now: Optional[int] = None,
) -> Dict[str, Any]:
    """Range parameters of the range-only panel, which has no templating."""
    window = window or TimeWindow()
    start, end = window.bounds(_epoch_now() if now is None else now)
    return {
        "datasourceIds": ",".join(datasources),
        "query": template,
        "startTime": start,
        "endTime": end,
        "step": window.step_seconds,
    }


def build_param_set(
    template: str,
    datasources: Sequence[str],
    bindings: Mapping[str, Optional[str]],
    window: Optional[TimeWindow] = None,
    now: Optional[int] = None,
) -> QueryParamSet:
    """Build both parameter bags from one snapshot of ``bindings``.

    Raises
    ------
    ValueError
        If no datasource is given or a variable present in ``template``
        is unbound.
    """
    if not datasources:
        raise ValueError("at least one datasource is required")
    missing = unbound_variables(template, bindings)
    if missing:
        raise ValueError(f"unbound template variables: {', '.join(missing)}")

    snapshot = dict(bindings)
    now = _epoch_now() if now is None else now
    return QueryParamSet(
        instant=build_instant_params(template, datasources, snapshot),
        range=build_range_params(template, datasources, snapshot, window, now),
        now=now,
    )
