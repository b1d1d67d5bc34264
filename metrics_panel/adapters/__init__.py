"""Query backend interfaces and registry."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Protocol

from ..schemas.query_contract import (
    LabelValuesRequest,
    LabelValuesResponse,
    QueryEnvelope,
)


class QueryBackend(Protocol):
    """Protocol for the console query endpoints.

    Implementations translate parameter bags built by
    :mod:`metrics_panel.domain.params` into calls against the console and
    return validated envelopes. Transport problems are raised; envelope
    codes are left for the normalizer to judge.
    """

    async def instant_query(self, params: Mapping[str, Any]) -> QueryEnvelope:
        """Evaluate the query at "now" on every listed datasource."""
        raise NotImplementedError

    async def range_query(self, params: Mapping[str, Any]) -> QueryEnvelope:
        """Evaluate the query over ``start``/``end`` at ``step``."""
        raise NotImplementedError

    async def label_values(self, req: LabelValuesRequest) -> LabelValuesResponse:
        """List the distinct values of one label on one datasource."""
        raise NotImplementedError


_adapters: Dict[str, QueryBackend] = {}


def register_adapter(source_id: str, adapter: QueryBackend) -> None:
    """Register an adapter instance under a logical `source_id`."""
    _adapters[source_id] = adapter


def get_adapter(source_id: str) -> QueryBackend:
    """Retrieve a registered adapter by `source_id`."""
    return _adapters[source_id]


def get_available_source_ids() -> list[str]:
    """Get list of registered adapter source_ids."""
    return list(_adapters.keys())


def log_adapter_status() -> None:
    """Log information about registered adapters."""
    logger = logging.getLogger(__name__)

    if not _adapters:
        logger.warning(
            "No console query API configured. Panels cannot fetch metrics.\n"
            "  - 💡 Set METRICS_PANEL_CONFIG to a JSON file with a 'sources' "
            "section"
        )
    else:
        adapter_info = [
            f"'{source_id}' ({type(adapter).__name__})"
            for source_id, adapter in _adapters.items()
        ]
        logger.info(
            "Console query API connections configured: %s",
            ", ".join(adapter_info),
        )


def reset_adapters() -> None:
    """Test-only helper to clear registered adapters."""
    _adapters.clear()
