"""Console datasource API adapter.

This adapter issues the console's datasource query calls over HTTP
(``promQuery``, ``promQueryRange``, ``promLabelValues``). It encapsulates
transport concerns (base URL, headers, timeouts, retries) and returns
validated Pydantic models.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from ..schemas.query_contract import (
    LabelValuesRequest,
    LabelValuesResponse,
    QueryEnvelope,
)
from ..utils.correlation import get_request_id

logger = logging.getLogger(__name__)

INSTANT_QUERY_PATH = "promQuery"
RANGE_QUERY_PATH = "promQueryRange"
LABEL_VALUES_PATH = "promLabelValues"


class ConsoleApiAdapter:
    """Adapter for the console datasource query API.

    Parameters
    ----------
    endpoint: str
        Base URL of the console (e.g., "http://localhost:9001").
    api_key: Optional[str]
        Optional bearer token for authenticating requests.
    timeout: int
        Request timeout in seconds for all HTTP operations.
    base_path: str
        Route prefix of the datasource API.

    Attributes
    ----------
    _client: httpx.AsyncClient
        Shared async client configured with base URL, timeout, and headers.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: Optional[str] = None,
        timeout: int = 10,
        *,
        base_path: str = "/api/w8t/datasource",
        max_retries: int = 1,
        backoff_initial_ms: int = 200,
        backoff_multiplier: float = 2.0,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=endpoint, timeout=timeout, headers=self._headers(api_key)
        )
        self._base_path = "/" + base_path.strip("/")
        self._max_retries = max(0, int(max_retries))
        self._backoff_initial_ms = max(0, int(backoff_initial_ms))
        self._backoff_multiplier = max(1.0, float(backoff_multiplier))
        self._timeout_seconds = timeout
        logger.info(
            "console.adapter.init",
            extra={"endpoint": endpoint, "timeout_seconds": timeout},
        )

    def inject_http_client_for_testing(self, client: Any) -> None:
        """Replace underlying HTTP client (testing only).

        This allows unit tests to provide a mock compatible with ``get()``.
        """
        self._client = client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _path(self, route: str) -> str:
        return f"{self._base_path}/{route}"

    def _backoff(self, attempt: int) -> float:
        return (self._backoff_initial_ms / 1000.0) * (
            self._backoff_multiplier**attempt
        )

    async def _get_json(self, route: str, params: Mapping[str, Any]) -> Dict[str, Any]:
        """GET an endpoint and return parsed JSON with retry handling.

        Parameters
        ----------
        route: str
            Endpoint name under the datasource API prefix.
        params: Mapping[str, Any]
            Query-string parameters.

        Returns
        -------
        Dict[str, Any]
            Parsed JSON object from the response body.

        Raises
        ------
        httpx.HTTPError
            On transport errors or non-2xx responses.
        ValueError
            If response body is not valid JSON.
        """
        path = self._path(route)
        logger.debug(
            "console.http.get",
            extra={
                "req_id": get_request_id(),
                "path": path,
                "param_keys": list(params.keys()),
            },
        )
        attempt = 0
        last_exc: Optional[Exception] = None
        while attempt <= self._max_retries:
            try:
                resp = await self._client.get(path, params=dict(params))
                resp.raise_for_status()
                break
            except (httpx.ReadTimeout, httpx.ConnectError) as exc:
                last_exc = exc
                logger.warning(
                    "console.http.retry",
                    extra={
                        "req_id": get_request_id(),
                        "path": path,
                        "attempt": attempt + 1,
                        "max_retries": self._max_retries,
                        "timeout_seconds": self._timeout_seconds,
                        "error": type(exc).__name__,
                    },
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(self._backoff(attempt))
                attempt += 1
                continue
            except httpx.HTTPStatusError as exc:
                body_preview = exc.response.text or ""
                if len(body_preview) > 500:
                    body_preview = body_preview[:500] + "..."
                if exc.response.status_code in (429, 503) and (
                    attempt < self._max_retries
                ):
                    last_exc = exc
                    await asyncio.sleep(self._backoff(attempt))
                    attempt += 1
                    continue
                logger.error(
                    "console.http.status_error",
                    extra={
                        "req_id": get_request_id(),
                        "path": path,
                        "status": exc.response.status_code,
                        "body_preview": body_preview,
                    },
                )
                raise
        else:
            if last_exc is not None:
                raise last_exc
            raise RuntimeError(
                "ConsoleApiAdapter request failed after retries without exception"
            )
        data = resp.json()
        logger.debug(
            "console.http.response",
            extra={
                "req_id": get_request_id(),
                "path": path,
                "status_code": resp.status_code,
            },
        )
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object from {path}")
        return data

    @staticmethod
    def _headers(api_key: Optional[str]) -> dict:
        """Build default headers.

        Parameters
        ----------
        api_key: Optional[str]
            Bearer token to attach as an Authorization header.
        """
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    async def instant_query(self, params: Mapping[str, Any]) -> QueryEnvelope:
        """Run an instant query on every datasource in ``datasourceIds``."""
        data = await self._get_json(INSTANT_QUERY_PATH, params)
        return QueryEnvelope.model_validate(data)

    async def range_query(self, params: Mapping[str, Any]) -> QueryEnvelope:
        """Run a range query on every datasource in ``datasourceIds``."""
        data = await self._get_json(RANGE_QUERY_PATH, params)
        return QueryEnvelope.model_validate(data)

    async def label_values(self, req: LabelValuesRequest) -> LabelValuesResponse:
        """Fetch the distinct values of ``req.label_name``."""
        data = await self._get_json(LABEL_VALUES_PATH, req.to_params())
        return LabelValuesResponse.model_validate(data)
