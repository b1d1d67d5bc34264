"""HTTP server exposing the metrics panel pipeline via FastAPI.

Endpoints implement a thin HTTP transport over :class:`ViewController`:
one stateless preview call, and per-panel sessions kept in a bounded LRU
cache. Authentication and CORS are configurable via environment variables.
"""

from __future__ import annotations

import importlib
import logging
import math
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import psutil
from pydantic import BaseModel, Field, ValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from .. import __version__, __view_model_version__
from ..adapters import (
    QueryBackend,
    get_adapter,
    get_available_source_ids,
    log_adapter_status,
    register_adapter,
)
from ..adapters.console_api import ConsoleApiAdapter
from ..config.models import AppConfig, EnvSettings, PanelConfig
from ..domain.chart import chart_summary
from ..domain.models import (
    ChartSeries,
    PaginationState,
    SeriesStat,
    SortState,
    ViewStatus,
)
from ..domain.params import TimeWindow
from ..domain.templating import RECOGNIZED_VARIABLES
from ..observability import setup_logging
from ..panel.controller import PanelVariant, ViewController
from ..panel.pagination import SORTABLE_FIELDS
from ..schemas.query_contract import ErrorKind
from ..utils.cache import Cache
from ..utils.correlation import get_request_id, set_request_id

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "x-correlation-id"
CONSOLE_SOURCE_TYPES = ("console-http", "console", "http")


class CorrelationIdMiddleware(
    BaseHTTPMiddleware
):  # pylint: disable=too-few-public-methods
    """Assign a correlation id to every request and echo it back."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        req_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        set_request_id(req_id)
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = req_id
        logger.debug(
            "http.request.completed",
            extra={
                "req_id": req_id,
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": int((time.time() - start_time) * 1000),
            },
        )
        return response


__all__ = [
    "create_app",
    "_load_fastapi",
    "_build_app",
    "_apply_cors_env",
    "_make_auth_dependency",
    "_register_health",
    "_register_capabilities",
    "_register_panels",
]


class HealthResponse(BaseModel):
    """Simple health/readiness response model."""

    status: str


class ErrorResponse(BaseModel):
    """Structured JSON error response for HTTP endpoints.

    Fields
    ------
    detail: str
        Human-readable explanation of the error.
    error_type: str
        Machine-readable error classification.
    available_options: list[str] | None
        Optional list of valid options when the error is about an invalid
        input value (e.g., unknown `source_id` or sort field).
    """

    detail: str = Field(..., description="Human-readable error detail")
    error_type: str = Field(..., description="Machine-readable error type")
    available_options: List[str] | None = Field(
        default=None, description="Optional list of valid alternative options"
    )


class CapabilitiesResponse(BaseModel):
    """Server capabilities summary for diagnostics and clients."""

    version: str
    view_model_version: str
    http_auth: str
    cors_origins: List[str]
    sources: List[str]
    variants: List[str]
    recognized_variables: List[str]
    sortable_fields: List[str]


class PanelInputsRequest(BaseModel):
    """Inputs of one panel; omitted window fields use the configured default."""

    source_id: Optional[str] = Field(
        None, description="Registered console source; the first one if omitted"
    )
    template: str = Field("", description="PromQL-style query with $variables")
    datasources: List[str] = Field(default_factory=list)
    variables: Dict[str, str] = Field(
        default_factory=dict, description="External default variable values"
    )
    window_seconds: Optional[int] = Field(None, ge=1)
    step_seconds: Optional[int] = Field(None, ge=1)
    variant: Optional[PanelVariant] = None


class PreviewRequest(PanelInputsRequest):
    """One-shot pipeline run; nothing is kept after the response."""

    page: int = Field(1, ge=1)
    page_size: Optional[int] = Field(None, ge=1, le=1000)
    sort_by: Optional[str] = None
    descending: bool = False


class VariableSelection(BaseModel):
    """User selection for one variable; ``None`` clears it."""

    value: Optional[str] = None


class ChartPayload(BaseModel):
    """Chart series with non-finite values rendered as ``null``."""

    name: str
    points: List[Tuple[float, Optional[float]]]
    color_index: int
    color: str
    labels: Dict[str, str]


class ChartSummaryPayload(BaseModel):
    series_count: int
    points_per_series: int
    window_seconds: int
    step_seconds: int


class ViewResponse(BaseModel):
    """Current view of a panel with the requested page of rows."""

    panel_id: Optional[str] = None
    status: ViewStatus
    loading: bool
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    rows: List[SeriesStat]
    chart: List[ChartPayload]
    summary: ChartSummaryPayload
    instant_count: int
    pagination: PaginationState
    sort: SortState
    generation: int
    bindings: Dict[str, str]
    view_model_version: str = Field(__view_model_version__)


class VariableFailure(BaseModel):
    variable: str
    error_type: str
    error: str


class VariablesResponse(BaseModel):
    """Variable picker state of a panel."""

    panel_id: str
    present: List[str]
    metric_name: str
    options: Dict[str, List[str]]
    bindings: Dict[str, str]
    failures: List[VariableFailure]


@dataclass
class PanelSession:
    """A session controller and the source it queries."""

    source_id: str
    controller: ViewController


def _finite_or_none(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


def _chart_payload(series: ChartSeries) -> ChartPayload:
    return ChartPayload(
        name=series.name,
        points=[(ts, _finite_or_none(v)) for ts, v in series.points],
        color_index=series.color_index,
        color=series.color,
        labels=dict(series.labels),
    )


def _view_response(
    controller: ViewController, panel_id: Optional[str] = None
) -> ViewResponse:
    state = controller.state
    summary = chart_summary(state.chart, controller.inputs.window)
    return ViewResponse(
        panel_id=panel_id,
        status=state.status,
        loading=state.loading,
        error=state.error,
        error_kind=state.error_kind,
        rows=controller.page_rows(),
        chart=[_chart_payload(series) for series in state.chart],
        summary=ChartSummaryPayload(
            series_count=summary.series_count,
            points_per_series=summary.points_per_series,
            window_seconds=summary.window_seconds,
            step_seconds=summary.step_seconds,
        ),
        instant_count=state.instant_count,
        pagination=state.pagination,
        sort=state.sort,
        generation=state.generation,
        bindings=controller.bindings,
    )


def _load_fastapi():
    """Dynamically import FastAPI pieces to keep deps optional."""
    fastapi_mod = importlib.import_module("fastapi")
    cors_mod = importlib.import_module("fastapi.middleware.cors")
    exc_mod = importlib.import_module("fastapi.exceptions")
    resp_mod = importlib.import_module("fastapi.responses")
    st_exc_mod = importlib.import_module("starlette.exceptions")
    return {
        "fastapi_cls": getattr(fastapi_mod, "FastAPI"),
        "depends": getattr(fastapi_mod, "Depends"),
        "header": getattr(fastapi_mod, "Header"),
        "query": getattr(fastapi_mod, "Query"),
        "http_exc": getattr(fastapi_mod, "HTTPException"),
        "status": getattr(fastapi_mod, "status"),
        "cors_mw": getattr(cors_mod, "CORSMiddleware"),
        "validation_exc": getattr(exc_mod, "RequestValidationError"),
        "json_response": getattr(resp_mod, "JSONResponse"),
        "starlette_http_exc": getattr(st_exc_mod, "HTTPException"),
    }


def _build_app(fastapi_cls: Any, lifespan: Any | None = None):
    """Create base FastAPI app (optionally with lifespan)."""
    if lifespan is not None:
        return fastapi_cls(
            title="Metrics Panel Service", version=__version__, lifespan=lifespan
        )
    return fastapi_cls(title="Metrics Panel Service", version=__version__)


def _cors_origins(settings: EnvSettings) -> List[str]:
    origins = settings.cors_origins or ""
    return [o.strip() for o in origins.split(",") if o.strip()]


def _apply_cors_env(
    app: Any, cors_middleware_cls: Any, settings: EnvSettings
) -> None:
    """Enable CORS if METRICS_PANEL_CORS_ORIGINS is set."""
    allow_origins = _cors_origins(settings)
    if allow_origins:
        app.add_middleware(
            cors_middleware_cls,
            allow_origins=allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )


def _make_auth_dependency(
    header: Any, http_exc: Any, status_mod: Any, settings: EnvSettings
):
    """Return a dependency function that enforces optional bearer token."""
    expected = _get_expected_token(settings)

    def _auth_dependency(authorization: str | None = header(default=None)) -> None:
        if expected is None:
            return
        if not authorization or not authorization.startswith("Bearer "):
            raise http_exc(status_code=status_mod.HTTP_401_UNAUTHORIZED)
        token = authorization.split(" ", 1)[1]
        if token != expected:
            raise http_exc(status_code=status_mod.HTTP_403_FORBIDDEN)

    return _auth_dependency


def _register_health(app: Any) -> None:
    """Register health and readiness endpoints."""

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Liveness probe",
    )
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get(
        "/ready",
        response_model=HealthResponse,
        summary="Readiness probe",
    )
    async def ready() -> HealthResponse:
        return HealthResponse(status="ready")


def _register_capabilities(app: Any, settings: EnvSettings) -> None:
    """Register server capabilities endpoint."""

    @app.get(
        "/capabilities",
        response_model=CapabilitiesResponse,
        summary="Server capabilities summary",
    )
    async def capabilities() -> CapabilitiesResponse:  # noqa: D401
        token = _get_expected_token(settings)
        return CapabilitiesResponse(
            version=__version__,
            view_model_version=__view_model_version__,
            http_auth=("enabled" if token else "disabled"),
            cors_origins=_cors_origins(settings),
            sources=get_available_source_ids(),
            variants=[v.value for v in PanelVariant],
            recognized_variables=list(RECOGNIZED_VARIABLES),
            sortable_fields=list(SORTABLE_FIELDS),
        )


def _register_panels(  # pylint: disable=too-many-arguments
    app: Any,
    panel_cfg: PanelConfig,
    sessions: Cache[str, PanelSession],
    depends: Any,
    query: Any,
    http_exc: Any,
    auth_dep: Any,
) -> None:
    """Register the preview and panel session endpoints."""

    def _error(status_code: int, detail: str, error_type: str, options=None):
        return http_exc(
            status_code=status_code,
            detail=ErrorResponse(
                detail=detail, error_type=error_type, available_options=options
            ).model_dump(),
        )

    def _backend(source_id: Optional[str]) -> Tuple[str, QueryBackend]:
        available = get_available_source_ids()
        if not available:
            raise _error(
                503,
                "No console query API configured",
                "no_sources_configured",
                [],
            )
        sid = source_id or available[0]
        try:
            return sid, get_adapter(sid)
        except KeyError:
            raise _error(  # pylint: disable=raise-missing-from
                400, f"Unknown source_id '{sid}'", "invalid_source_id", available
            )

    def _window(req: PanelInputsRequest) -> TimeWindow:
        return TimeWindow(
            window_seconds=req.window_seconds or panel_cfg.window_seconds,
            step_seconds=req.step_seconds or panel_cfg.step_seconds,
        )

    def _controller(backend: QueryBackend, variant: Optional[PanelVariant]):
        return ViewController(
            backend,
            variant=variant or PanelVariant(panel_cfg.variant),
            timeout_seconds=panel_cfg.query_timeout_seconds,
            page_size=panel_cfg.page_size,
        )

    def _session(panel_id: str) -> PanelSession:
        session = sessions.get(panel_id)
        if session is None:
            raise _error(
                404, f"Unknown panel '{panel_id}'", "panel_not_found", sessions.keys()
            )
        return session

    def _apply_projection(
        controller: ViewController,
        page: Optional[int],
        page_size: Optional[int],
        sort_by: Optional[str],
        descending: bool,
    ) -> None:
        sort = controller.state.sort
        if sort_by is not None and (sort_by, descending) != (
            sort.key,
            sort.descending,
        ):
            try:
                controller.sort_by(sort_by, descending)
            except ValueError as exc:
                raise _error(  # pylint: disable=raise-missing-from
                    400, str(exc), "invalid_sort_field", list(SORTABLE_FIELDS)
                )
        if (
            page_size is not None
            and page_size != controller.state.pagination.page_size
        ):
            controller.set_page_size(page_size)
        if page is not None:
            controller.set_page(page)

    @app.post(
        "/api/metrics/preview",
        response_model=ViewResponse,
        dependencies=[depends(auth_dep)],
        summary="Run the panel pipeline once without keeping a session",
        responses={
            400: {"model": ErrorResponse},
            401: {"description": "Unauthorized"},
            403: {"description": "Forbidden"},
            503: {"model": ErrorResponse},
        },
    )
    async def preview(req: PreviewRequest) -> ViewResponse:
        _, backend = _backend(req.source_id)
        controller = _controller(backend, req.variant)
        await controller.set_inputs(
            template=req.template,
            datasources=req.datasources,
            bindings=req.variables,
            window=_window(req),
        )
        _apply_projection(
            controller, req.page, req.page_size, req.sort_by, req.descending
        )
        logger.info(
            "http.preview.done",
            extra={
                "req_id": get_request_id(),
                "status": controller.state.status.value,
                "rows": len(controller.state.rows),
            },
        )
        return _view_response(controller)

    @app.post(
        "/api/panels/{panel_id}/inputs",
        response_model=ViewResponse,
        dependencies=[depends(auth_dep)],
        summary="Set the inputs of a panel session and refresh it",
        responses={
            400: {"model": ErrorResponse},
            503: {"model": ErrorResponse},
        },
    )
    async def set_inputs(panel_id: str, req: PanelInputsRequest) -> ViewResponse:
        sid, backend = _backend(req.source_id)
        session = sessions.get(panel_id)
        variant = req.variant or PanelVariant(panel_cfg.variant)
        if (
            session is None
            or session.source_id != sid
            or session.controller.variant is not variant
        ):
            session = PanelSession(sid, _controller(backend, variant))
            sessions.set(panel_id, session)
            logger.info(
                "http.panel.created",
                extra={
                    "req_id": get_request_id(),
                    "panel_id": panel_id,
                    "source_id": sid,
                    "variant": variant.value,
                    "sessions": len(sessions),
                },
            )
        await session.controller.set_inputs(
            template=req.template,
            datasources=req.datasources,
            bindings=req.variables,
            window=_window(req),
        )
        return _view_response(session.controller, panel_id)

    @app.put(
        "/api/panels/{panel_id}/variables/{name}",
        response_model=ViewResponse,
        dependencies=[depends(auth_dep)],
        summary="Select a value for one template variable",
        responses={
            400: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
        },
    )
    async def select_variable(
        panel_id: str, name: str, selection: VariableSelection
    ) -> ViewResponse:
        session = _session(panel_id)
        present = session.controller.present_variables
        if name not in present:
            raise _error(
                400,
                f"Variable '{name}' is not used by the panel template",
                "invalid_variable",
                list(present),
            )
        await session.controller.select_variable(name, selection.value)
        return _view_response(session.controller, panel_id)

    @app.get(
        "/api/panels/{panel_id}/view",
        response_model=ViewResponse,
        dependencies=[depends(auth_dep)],
        summary="Current view of a panel session",
        responses={
            400: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
        },
    )
    async def get_view(
        panel_id: str,
        page: Optional[int] = query(None, ge=1),
        page_size: Optional[int] = query(None, ge=1, le=1000),
        sort_by: Optional[str] = query(None),
        descending: bool = query(False),
    ) -> ViewResponse:
        session = _session(panel_id)
        _apply_projection(session.controller, page, page_size, sort_by, descending)
        return _view_response(session.controller, panel_id)

    @app.get(
        "/api/panels/{panel_id}/variables",
        response_model=VariablesResponse,
        dependencies=[depends(auth_dep)],
        summary="Variable picker state of a panel session",
        responses={404: {"model": ErrorResponse}},
    )
    async def get_variables(panel_id: str) -> VariablesResponse:
        controller = _session(panel_id).controller
        return VariablesResponse(
            panel_id=panel_id,
            present=list(controller.present_variables),
            metric_name=controller.metric_name,
            options=controller.options,
            bindings=controller.bindings,
            failures=[
                VariableFailure(
                    variable=f.identifier, error_type=f.error_type, error=f.error
                )
                for f in controller.lookup_failures
            ],
        )

    # Mark handlers as intentionally used (registered via decorators)
    _ = (preview, set_inputs, select_variable, get_view, get_variables)


def _register_sources(cfg: AppConfig) -> List[str]:
    """Register one console adapter per configured source."""
    initialized: List[str] = []
    for source_id, sc in cfg.sources.items():
        if sc.type not in CONSOLE_SOURCE_TYPES:
            logger.warning(
                "http.startup.unknown_source_type",
                extra={"source_id": source_id, "type": sc.type},
            )
            continue
        register_adapter(
            source_id,
            ConsoleApiAdapter(
                sc.endpoint,
                sc.api_key,
                sc.timeout_seconds,
                base_path=sc.base_path,
                max_retries=sc.max_retries,
                backoff_initial_ms=sc.backoff_initial_ms,
                backoff_multiplier=sc.backoff_multiplier,
            ),
        )
        initialized.append(f"{source_id}:http")
    return initialized


def create_app(config: Optional[AppConfig] = None):
    """Create and configure the FastAPI application.

    Parameters
    ----------
    config: AppConfig, optional
        Application config; when omitted it is loaded from the file named by
        ``METRICS_PANEL_CONFIG``, if any. Adapters registered beforehand
        (e.g., by tests) are kept.
    """
    settings = EnvSettings()
    # Respect prior logging configuration from CLI; otherwise use env setting
    if not logging.getLogger().hasHandlers():
        setup_logging(settings.log_level)
    parts = _load_fastapi()

    cfg_path = Path(settings.config) if settings.config else None
    config_error: str | None = None
    if config is None and cfg_path is not None and cfg_path.exists():
        try:
            config = AppConfig.load(cfg_path)
        except (OSError, ValueError, ValidationError) as exc:
            config_error = str(exc)
    cfg = config or AppConfig()
    adapters_initialized = _register_sources(cfg)
    sessions: Cache[str, PanelSession] = Cache(maxsize=settings.session_cache_size)

    @asynccontextmanager
    async def lifespan(_app: Any):
        logger.info("http.startup")
        try:
            process = psutil.Process()
            mem_info = process.memory_info()
            logger.info(
                "http.startup.memory",
                extra={
                    "rss_mb": round(mem_info.rss / 1024 / 1024, 1),
                    "vms_mb": round(mem_info.vms / 1024 / 1024, 1),
                },
            )
        except (psutil.Error, RuntimeError):  # pragma: no cover
            pass
        try:
            yield
        finally:
            logger.info("http.shutdown", extra={"sessions": len(sessions)})
            for sid in get_available_source_ids():
                close = getattr(get_adapter(sid), "aclose", None)
                if callable(close):
                    await close()

    app = _build_app(parts["fastapi_cls"], lifespan=lifespan)
    request_validation_error_cls = parts["validation_exc"]
    jr = parts["json_response"]
    starlette_http_exception_cls = parts["starlette_http_exc"]

    @app.exception_handler(request_validation_error_cls)
    async def validation_exception_handler(_request: Any, exc: Exception):  # noqa: D401
        err = ErrorResponse(
            detail=str(exc), error_type="validation_error", available_options=None
        )
        return jr(status_code=400, content={"detail": err.model_dump()})

    @app.exception_handler(starlette_http_exception_cls)
    async def http_exception_handler(_request: Any, exc: Any):  # noqa: D401
        detail = getattr(exc, "detail", "")
        if isinstance(detail, dict) and {"detail", "error_type"} <= detail.keys():
            payload = {"detail": detail}
        else:
            payload = {
                "detail": ErrorResponse(
                    detail=str(detail) or "HTTP error",
                    error_type="http_error",
                    available_options=None,
                ).model_dump()
            }
        return jr(status_code=exc.status_code, content=payload)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Any, exc: Exception):  # noqa: D401
        logger.error(
            "http.unhandled_exception",
            extra={"req_id": get_request_id()},
            exc_info=exc,
        )
        err = ErrorResponse(
            detail="Internal error. See server logs for request id.",
            error_type="internal_server_error",
            available_options=None,
        )
        return jr(status_code=500, content={"detail": err.model_dump()})

    _ = (
        validation_exception_handler,
        http_exception_handler,
        unhandled_exception_handler,
    )

    app.add_middleware(CorrelationIdMiddleware)
    _apply_cors_env(app, parts["cors_mw"], settings)
    auth_dep = _make_auth_dependency(
        parts["header"], parts["http_exc"], parts["status"], settings
    )
    _register_health(app)
    _register_capabilities(app, settings)
    _register_panels(
        app,
        cfg.panel,
        sessions,
        parts["depends"],
        parts["query"],
        parts["http_exc"],
        auth_dep,
    )

    logger.info(
        "http.startup.settings",
        extra={
            "log_level": settings.log_level,
            "cors_origins": _cors_origins(settings),
            "http_auth": "enabled" if _get_expected_token(settings) else "disabled",
            "config_path": str(cfg_path) if cfg_path else None,
            "config_error": config_error,
            "adapters_initialized": adapters_initialized,
            "session_cache_size": settings.session_cache_size,
        },
    )
    log_adapter_status()
    return app


def _get_expected_token(settings: EnvSettings) -> str | None:
    """Return expected bearer token, or ``None`` if disabled.

    Read from ``METRICS_PANEL_HTTP_TOKEN`` in the environment or ``.env``.
    """
    token = settings.http_token
    return token if token else None
