"""Console API adapter tests with mocked HTTP.

These tests validate that the ConsoleApiAdapter sends the console's query
parameters to the right routes and parses responses into the contract models
without requiring a live console.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from metrics_panel.adapters import (
    get_adapter,
    get_available_source_ids,
    register_adapter,
)
from metrics_panel.adapters.console_api import ConsoleApiAdapter
from metrics_panel.schemas.query_contract import LabelValuesRequest


class _MockResponse:
    """Minimal response object exposing raise_for_status/json methods."""

    def __init__(self, payload: Any, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code
        self.text = str(payload)

    def raise_for_status(self) -> None:
        """Raise like httpx for non-2xx statuses."""
        if self.status_code >= 400:
            request = httpx.Request("GET", "http://example")
            response = httpx.Response(self.status_code, request=request, text=self.text)
            raise httpx.HTTPStatusError("error", request=request, response=response)

    def json(self) -> Any:
        """Return the preconfigured JSON payload."""
        return self._payload


class _MockClient:
    """Tiny mock of httpx.AsyncClient replaying queued outcomes."""

    def __init__(self, *outcomes: Any) -> None:
        self._outcomes = list(outcomes)
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None):
        """Record the call and return (or raise) the next queued outcome."""
        self.calls.append((path, dict(params or {})))
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def aclose(self) -> None:
        """No-op async close for API parity with httpx.AsyncClient."""
        return None


def _adapter(client: _MockClient, **kwargs: Any) -> ConsoleApiAdapter:
    adapter = ConsoleApiAdapter("http://example", backoff_initial_ms=0, **kwargs)
    adapter.inject_http_client_for_testing(client)
    return adapter


@pytest.mark.asyncio
async def test_instant_query_route_and_parsing() -> None:
    client = _MockClient(
        _MockResponse(
            {
                "code": 200,
                "data": [
                    {
                        "status": "success",
                        "data": {
                            "resultType": "vector",
                            "result": [{"metric": {"__name__": "up"}, "value": [1, "1"]}],
                        },
                    }
                ],
            }
        )
    )
    adapter = _adapter(client)
    envelope = await adapter.instant_query({"datasourceIds": "ds1", "query": "up"})
    assert envelope.ok
    assert envelope.data[0].results == [{"metric": {"__name__": "up"}, "value": [1, "1"]}]
    assert client.calls == [
        ("/api/w8t/datasource/promQuery", {"datasourceIds": "ds1", "query": "up"})
    ]


@pytest.mark.asyncio
async def test_range_query_route_with_custom_base_path() -> None:
    client = _MockClient(_MockResponse({"code": 500, "msg": "unreachable"}))
    adapter = _adapter(client, base_path="console/ds/")
    envelope = await adapter.range_query({"query": "up", "step": 60})
    # Envelope codes are judged by the normalizer, not the adapter.
    assert not envelope.ok
    assert envelope.msg == "unreachable"
    assert client.calls[0][0] == "/console/ds/promQueryRange"


@pytest.mark.asyncio
async def test_label_values_params() -> None:
    client = _MockClient(_MockResponse({"code": 200, "data": ["a", "b"]}))
    adapter = _adapter(client)
    resp = await adapter.label_values(
        LabelValuesRequest(datasource_id="ds1", label_name="instance", metric_name="up")
    )
    assert resp.ok and resp.data == ["a", "b"]
    assert client.calls == [
        (
            "/api/w8t/datasource/promLabelValues",
            {"datasourceId": "ds1", "labelName": "instance", "metricName": "up"},
        )
    ]


@pytest.mark.asyncio
async def test_retries_connect_errors_then_succeeds() -> None:
    client = _MockClient(
        httpx.ConnectError("down"), _MockResponse({"code": 200, "data": []})
    )
    adapter = _adapter(client, max_retries=1)
    envelope = await adapter.instant_query({"query": "up"})
    assert envelope.ok
    assert len(client.calls) == 2


@pytest.mark.asyncio
async def test_gives_up_after_retries() -> None:
    client = _MockClient(httpx.ReadTimeout("slow"), httpx.ReadTimeout("slow"))
    adapter = _adapter(client, max_retries=1)
    with pytest.raises(httpx.ReadTimeout):
        await adapter.instant_query({"query": "up"})


@pytest.mark.asyncio
async def test_status_error_is_raised() -> None:
    client = _MockClient(_MockResponse("oops", status_code=502))
    adapter = _adapter(client, max_retries=0)
    with pytest.raises(httpx.HTTPStatusError):
        await adapter.range_query({"query": "up"})


@pytest.mark.asyncio
async def test_non_object_body_is_rejected() -> None:
    client = _MockClient(_MockResponse(["not", "an", "object"]))
    adapter = _adapter(client)
    with pytest.raises(ValueError):
        await adapter.instant_query({"query": "up"})


def test_headers_include_bearer_token() -> None:
    assert ConsoleApiAdapter._headers("t0k") == {
        "Accept": "application/json",
        "Authorization": "Bearer t0k",
    }
    assert "Authorization" not in ConsoleApiAdapter._headers(None)


def test_registry_round_trip() -> None:
    adapter = ConsoleApiAdapter("http://example")
    register_adapter("console", adapter)
    assert get_available_source_ids() == ["console"]
    assert get_adapter("console") is adapter
