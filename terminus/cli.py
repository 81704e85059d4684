"""Terminus CLI: Typer app with serve, snapshot and debug subcommands."""

from __future__ import annotations

import asyncio
import json
import traceback
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from terminus import __version__
from terminus.core.secrets import load_dotenv_if_present

console = Console(stderr=True)

app = typer.Typer(
    name="terminus",
    help=(
        "Railway Terminus: a Railway project dashboard for e-ink displays.\n\n"
        "Reads RAILWAY_TOKEN, TERMINUS_AUTH_TOKEN and TERMINUS_* settings from the "
        "environment (or a .env file in the working directory)."
    ),
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    epilog=(
        "Common commands:\n"
        "  terminus serve --port 3000\n"
        "  terminus snapshot --format json --logs-env <environment-id>\n"
        "  terminus debug --advanced\n\n"
        f"Railway Terminus v{__version__}"
    ),
)


def _version_callback(value: bool) -> None:
    if value:
        from rich.panel import Panel
        c = Console()
        c.print(Panel(f"[bold]Railway Terminus[/bold] v{__version__}", border_style="blue"))
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-v", help="Show version and exit.",
        callback=_version_callback, is_eager=True,
    ),
) -> None:
    """Railway Terminus dashboard server."""
    load_dotenv_if_present()


# ── version ──────────────────────────────────────────────────────

@app.command()
def version() -> None:
    """Show version info."""
    typer.echo(f"railway-terminus {__version__}")


# ── serve ────────────────────────────────────────────────────────

@app.command()
def serve(
    host: Optional[str] = typer.Option(
        None, "--host", help="Host to bind to (default: TERMINUS_BIND or 0.0.0.0)."
    ),
    port: Optional[int] = typer.Option(
        None, "--port", "-p", help="Port to listen on (default: PORT or 3000)."
    ),
    reload: bool = typer.Option(
        False, "--reload", help="Enable auto-reload for development.",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Show detailed output."),
) -> None:
    """Start the dashboard HTTP server.

    Example:
      terminus serve
      terminus serve --port 8080
    """
    from terminus.core.api.server import start_server

    _run_safe(lambda: start_server(host=host, port=port, reload=reload), verbose=verbose)


# ── snapshot ─────────────────────────────────────────────────────

@app.command()
def snapshot(
    fmt: str = typer.Option("html", "--format", "-f", help="Output format: html or json."),
    logs_env: Optional[str] = typer.Option(
        None, "--logs-env", help="Environment id to read event logs from."
    ),
    project: Optional[str] = typer.Option(None, "--project", help="Only this project id."),
    service: Optional[str] = typer.Option(None, "--service", help="Only this service id."),
    environment: Optional[str] = typer.Option(
        None, "--environment", help="Only this environment id (or name)."
    ),
    out: Optional[Path] = typer.Option(
        None, "--out", "-o", help="Write the output to a file instead of stdout."
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Show detailed output."),
) -> None:
    """Fetch the dashboard once and print or save it.

    Example:
      terminus snapshot --format json
      terminus snapshot --out dashboard.html --logs-env 1f2e...
    """
    _run_safe(
        lambda: _snapshot_impl(fmt, logs_env, project, service, environment, out),
        verbose=verbose,
    )


def _snapshot_impl(
    fmt: str,
    logs_env: Optional[str],
    project: Optional[str],
    service: Optional[str],
    environment: Optional[str],
    out: Optional[Path],
) -> None:
    from terminus.core.api.settings import load_settings
    from terminus.core.dashboard import build_snapshot, default_client_factory
    from terminus.core.event_logs import load_event_logs_config
    from terminus.core.filters import DashboardFilter
    from terminus.core.render import DashboardRenderer

    if fmt not in ("html", "json"):
        raise typer.BadParameter(f"format must be html or json, got {fmt!r}")

    settings = load_settings()
    event_config = load_event_logs_config(settings.event_logs_config or None)
    flt = DashboardFilter(
        project_id=project or settings.project_id,
        service_id=service or settings.service_id,
        environment_id=environment or settings.environment_id,
    )
    result = asyncio.run(build_snapshot(
        settings.railway_token,
        logs_environment_id=logs_env or settings.logs_environment_id or None,
        filters=flt,
        event_config=event_config,
        client_factory=default_client_factory(settings.api_url, settings.http_timeout),
    ))

    renderer = DashboardRenderer(
        timezone=settings.timezone,
        event_config=event_config,
        max_services=settings.max_services,
        max_volumes=settings.max_volumes,
        max_events=settings.max_events,
    )
    if fmt == "json":
        text = json.dumps(renderer.render_json(result), indent=2)
    else:
        text = renderer.render_html(result)

    if out is not None:
        out.write_text(text, encoding="utf-8")
        console.print(f"[green]Wrote[/green] {out}")
    else:
        typer.echo(text)

    if not result.success:
        console.print(f"[red bold]Snapshot failed:[/red bold] {escape(result.error.message)}")
        raise typer.Exit(code=1)
    if result.data.query_info.errors:
        console.print(
            f"[yellow]Query errors:[/yellow] {', '.join(result.data.query_info.errors)}"
        )


# ── debug ────────────────────────────────────────────────────────

@app.command()
def debug(
    advanced: bool = typer.Option(
        False, "--advanced", help="Run the advanced diagnostics (counts, query variants)."
    ),
    logs_env: Optional[str] = typer.Option(
        None, "--logs-env", help="Environment id for the event log checks."
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Show detailed output."),
) -> None:
    """Run the Railway API diagnostic queries and print what happened.

    Example:
      terminus debug
      terminus debug --advanced
    """
    _run_safe(lambda: _debug_impl(advanced, logs_env), verbose=verbose)


def _debug_impl(advanced: bool, logs_env: Optional[str]) -> None:
    from terminus.core.api.settings import load_settings
    from terminus.core.dashboard import default_client_factory
    from terminus.core.debug import (
        capture_logs,
        run_advanced_diagnostics,
        run_query_diagnostics,
    )
    from terminus.core.railway.errors import ConfigError

    settings = load_settings()
    if not settings.railway_token:
        raise ConfigError("RAILWAY_TOKEN environment variable is required")
    factory = default_client_factory(settings.api_url, settings.http_timeout)
    runner = run_advanced_diagnostics if advanced else run_query_diagnostics
    environment_id = logs_env or settings.logs_environment_id or None

    async def _run(scoped):
        async with factory(settings.railway_token, logger=scoped) as client:
            return await runner(client, environment_id, scoped)

    with capture_logs("cli", [settings.railway_token]) as (scoped, capture):
        ok = asyncio.run(_run(scoped))
        lines = list(capture.lines)

    for line in lines:
        if line["type"] == "error":
            console.print(f"[red]✗[/red] {escape(line['message'])}", highlight=False)
        else:
            console.print(escape(line["message"]), highlight=False)
    if not ok:
        raise typer.Exit(code=1)


# ── Helpers ──────────────────────────────────────────────────────

def _run_safe(fn, verbose: bool = False) -> None:
    """Run a function with clean error handling."""
    try:
        fn()
    except (SystemExit, typer.Exit):
        raise
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        raise SystemExit(130)
    except Exception as e:
        console.print(f"\n[red bold]Error:[/red bold] {escape(str(e))}")
        if verbose:
            console.print(traceback.format_exc())
        else:
            console.print("[dim]Run with --verbose for full traceback.[/dim]")
        raise SystemExit(1)
