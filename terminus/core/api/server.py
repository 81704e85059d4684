"""Terminus HTTP server (FastAPI + uvicorn)."""

from __future__ import annotations

import datetime
import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.exceptions import HTTPException

from terminus import __version__
from terminus.core.api.auth import BearerAuthMiddleware
from terminus.core.api.errors import (
    ApiConfigError,
    config_exception_handler,
    generic_exception_handler,
    http_exception_handler,
    make_error_envelope,
    render_exception_handler,
    validation_exception_handler,
)
from terminus.core.api.middleware import RequestIDMiddleware
from terminus.core.api.models import DebugResponse, HealthResponse
from terminus.core.api.settings import Settings, load_settings
from terminus.core.api.startup_checks import format_check_result, run_startup_checks
from terminus.core.dashboard import (
    ClientFactory,
    DashboardSnapshot,
    build_snapshot,
    default_client_factory,
)
from terminus.core.debug import capture_logs, run_advanced_diagnostics, run_query_diagnostics
from terminus.core.event_logs import load_event_logs_config
from terminus.core.filters import DashboardFilter
from terminus.core.render import DashboardRenderer, RenderError

logger = logging.getLogger("terminus.api")

LOGS_ENV_HEADERS = ("x-terminus-logs-env-id", "x-logs-environment-id")

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _utc_now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def _header(request: Request, *names: str) -> Optional[str]:
    for name in names:
        value = request.headers.get(name)
        if value and value.strip():
            return value.strip()
    return None


def request_parameters(request: Request, settings: Settings) -> Tuple[Optional[str], DashboardFilter]:
    """Logs environment id and data filter from headers, else from settings."""
    logs_env = _header(request, *LOGS_ENV_HEADERS) or settings.logs_environment_id or None
    flt = DashboardFilter(
        project_id=_header(request, "x-project-id") or settings.project_id,
        service_id=_header(request, "x-service-id") or settings.service_id,
        environment_id=_header(request, "x-environment-id") or settings.environment_id,
    )
    return logs_env, flt


def create_app(
    settings: Optional[Settings] = None,
    client_factory: Optional[ClientFactory] = None,
) -> FastAPI:
    """Create and return the FastAPI application.

    Args:
        settings: Server settings, or None to load from environment
        client_factory: Builds the Railway client per request; tests pass
            one backed by ``httpx.MockTransport``
    """
    if settings is None:
        settings = load_settings()

    app = FastAPI(
        title="Railway Terminus",
        description="Railway project dashboard for e-ink displays.",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    event_config = load_event_logs_config(settings.event_logs_config or None)

    app.state.settings = settings
    app.state.event_config = event_config
    app.state.client_factory = client_factory or default_client_factory(
        settings.api_url, settings.http_timeout
    )
    app.state.renderer = DashboardRenderer(
        timezone=settings.timezone,
        event_config=event_config,
        max_services=settings.max_services,
        max_volumes=settings.max_volumes,
        max_events=settings.max_events,
    )

    # ── Normalized error envelope ────────────────────────────────
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ApiConfigError, config_exception_handler)
    app.add_exception_handler(RenderError, render_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # ── Middleware ────────────────────────────────────────────────
    # Last added runs outermost: request IDs exist before auth rejects.
    app.add_middleware(BearerAuthMiddleware)
    app.add_middleware(RequestIDMiddleware)

    def _railway_token() -> str:
        token = app.state.settings.railway_token
        if not token:
            raise ApiConfigError("RAILWAY_TOKEN environment variable is not set")
        return token

    async def _snapshot(request: Request) -> DashboardSnapshot:
        token = _railway_token()
        logs_env, flt = request_parameters(request, app.state.settings)
        logger.info(
            "dashboard_request request_id=%s logs_env=%s filters=%s",
            getattr(request.state, "request_id", "?"),
            logs_env or "-",
            flt.to_dict(),
        )
        return await build_snapshot(
            token,
            logs_environment_id=logs_env,
            filters=flt,
            event_config=app.state.event_config,
            client_factory=app.state.client_factory,
        )

    async def _diagnostics(request: Request, advanced: bool) -> Any:
        token = _railway_token()
        logs_env, _ = request_parameters(request, app.state.settings)
        request_id = getattr(request.state, "request_id", None)
        secrets = [token, app.state.settings.auth_token]
        runner = run_advanced_diagnostics if advanced else run_query_diagnostics
        label = "Advanced debug" if advanced else "Debug queries"
        try:
            with capture_logs(request_id, secrets) as (scoped, capture):
                client = app.state.client_factory(token, logger=scoped)
                async with client:
                    ok = await runner(client, logs_env, scoped)
                lines = list(capture.lines)
        except Exception as e:
            logger.exception("debug_failed request_id=%s", request_id or "?")
            return JSONResponse(
                status_code=500,
                content=make_error_envelope(
                    "INTERNAL_ERROR", f"{label} execution failed: {e}", request_id
                ),
            )
        return DebugResponse(
            success=ok,
            message=f"{label} completed",
            logs=lines,
            timestamp=_utc_now_iso(),
        )

    # ── Routes ───────────────────────────────────────────────────

    @app.get("/health", response_model=HealthResponse)
    def health() -> Dict[str, Any]:
        return {
            "status": "healthy",
            "timestamp": _utc_now_iso(),
            "service": "railway-terminus",
            "version": __version__,
        }

    @app.get("/", response_class=HTMLResponse)
    async def dashboard(request: Request) -> HTMLResponse:
        snapshot = await _snapshot(request)
        html = app.state.renderer.render_html(snapshot)
        return HTMLResponse(content=html, headers=NO_CACHE_HEADERS)

    @app.get("/api/data")
    async def api_data(request: Request) -> JSONResponse:
        snapshot = await _snapshot(request)
        return JSONResponse(content=app.state.renderer.render_json(snapshot))

    @app.get("/debug", response_model=DebugResponse)
    async def debug(request: Request) -> Any:
        return await _diagnostics(request, advanced=False)

    @app.get("/debug/advanced", response_model=DebugResponse)
    async def debug_advanced(request: Request) -> Any:
        return await _diagnostics(request, advanced=True)

    return app


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


def start_server(
    *,
    host: Optional[str] = None,
    port: Optional[int] = None,
    reload: bool = False,
    settings: Optional[Settings] = None,
) -> None:
    """Run pre-flight checks, create the app, and start uvicorn."""
    import uvicorn
    from rich.console import Console

    if settings is None:
        settings = load_settings(bind=host, port=port)

    console = Console(stderr=True)
    console.print("\n[bold]Terminus Pre-flight Checks[/bold]")
    result = run_startup_checks(settings)
    console.print(format_check_result(result))

    if not result.ok:
        console.print("\n[red bold]Startup failed:[/red bold] Environment validation errors detected.")
        console.print("Fix the issues above and try again.")
        raise RuntimeError(f"Startup checks failed: {'; '.join(result.errors)}")

    console.print("\n[green]✓ Startup checks passed[/green]")
    console.print(f"Dashboard available at: http://localhost:{settings.port}/")

    configure_logging()

    def app_factory() -> FastAPI:
        return create_app(settings)

    uvicorn.run(
        app_factory,
        host=settings.bind,
        port=settings.port,
        reload=reload,
        log_level="info",
        factory=True,
    )
