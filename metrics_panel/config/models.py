"""Config models and loader.

This module defines Pydantic models for file- and environment-based
configuration. JSON parsing prefers `orjson` when available for speed and
lower memory usage, but intentionally falls back to the Python standard
library's `json` module.
"""

from __future__ import annotations

import json as _json
from pathlib import Path
from typing import Any, Callable, Dict, Optional

try:
    import orjson as _orjson_mod  # type: ignore[assignment]
except ImportError:  # pragma: no cover - optional dependency
    _orjson_mod = None  # type: ignore[assignment]
    _loads_orjson: Optional[Callable[[bytes], Any]] = None
else:

    def _loads_orjson(buf: bytes) -> Any:
        loader = getattr(_orjson_mod, "loads")  # type: ignore[assignment]
        return loader(buf)


from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SourceConfig(BaseModel):
    """Configuration for a single console query API.

    Attributes
    ----------
    endpoint: str
        Base URL of the console (e.g., "http://localhost:9001").
    base_path: str
        Path prefix of the datasource query routes.
    api_key: Optional[str]
        Optional bearer token used to authenticate to the console.
    type: str
        Source type identifier (e.g., "console-http").
    timeout_seconds: int
        HTTP request timeout in seconds for adapter operations.
    """

    endpoint: str = Field(..., description="Console base URL")
    base_path: str = Field(
        "/api/w8t/datasource", description="Datasource API route prefix"
    )
    api_key: Optional[str] = Field(None, description="Authentication token")
    type: str = Field("console-http", description="Source type identifier")
    timeout_seconds: int = Field(10, ge=1)
    max_retries: int = Field(1, ge=0, description="Number of retry attempts")
    backoff_initial_ms: int = Field(
        200, ge=0, description="Initial backoff in milliseconds"
    )
    backoff_multiplier: float = Field(
        2.0, ge=1.0, description="Backoff multiplier per attempt"
    )


class PanelConfig(BaseModel):
    """Defaults applied to every panel view controller.

    Attributes
    ----------
    window_seconds: int
        Range query look-back window ending at "now".
    step_seconds: int
        Range query sampling interval.
    query_timeout_seconds: float
        Per-call timeout for instant, range and label-value calls.
    page_size: int
        Initial page size of the row projection.
    variant: str
        "templated" (instant + range with variables) or "range_only".
    """

    window_seconds: int = Field(3600, ge=1)
    step_seconds: int = Field(60, ge=1)
    query_timeout_seconds: float = Field(5.0, gt=0)
    page_size: int = Field(10, ge=1, le=1000)
    variant: str = Field("templated")


class AppConfig(BaseModel):
    """Top-level application configuration.

    Attributes
    ----------
    sources: Dict[str, SourceConfig]
        Mapping from logical `source_id` to connection settings.
    panel: PanelConfig
        Defaults for panel controllers created by the HTTP service.
    """

    sources: Dict[str, SourceConfig] = Field(default_factory=dict)
    panel: PanelConfig = Field(default_factory=PanelConfig)

    @staticmethod
    def load(path: Path) -> "AppConfig":
        """Load application config from a JSON file."""
        raw = path.read_bytes()
        if _loads_orjson is not None:
            data = _loads_orjson(raw)
        else:
            data = _json.loads(raw.decode("utf-8"))
        return AppConfig.model_validate(data)


class EnvSettings(BaseSettings):
    """Environment-driven settings and .env support.

    Attributes
    ----------
    log_level: str
        Logging level name (e.g., "DEBUG", "INFO"). Defaults to "INFO".
    config: Optional[str]
        Path to the JSON application config.
    http_token: Optional[str]
        Bearer token required by the HTTP service when set.
    cors_origins: str
        Comma-separated list of allowed CORS origins.
    session_cache_size: int
        Maximum number of live panel sessions kept by the HTTP service.
    """

    model_config = SettingsConfigDict(env_file=".env", env_prefix="METRICS_PANEL_")

    log_level: str = Field("INFO")
    config: Optional[str] = None
    http_token: Optional[str] = None
    cors_origins: str = Field("")
    session_cache_size: int = Field(
        256,
        ge=1,
        description="Maximum number of panel sessions held in memory",
    )
