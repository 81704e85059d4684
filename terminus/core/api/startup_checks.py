"""Startup environment validation for the Terminus API.

Ensures the server environment is usable before binding to any port.
All checks are deterministic and produce actionable messages.
"""

from __future__ import annotations

import datetime
import sys
from typing import List, Optional, Tuple

from pydantic import BaseModel

from terminus.core.api.settings import Settings, load_settings
from terminus.core.event_logs import load_event_logs_config
from terminus.core.railway.errors import ConfigError
from terminus.core.render import resolve_timezone

REQUIRED_PYTHON_VERSION = (3, 9)

LOG_FORMATS = ("text", "json")


class StartupCheckResult(BaseModel):
    """Result of startup environment validation.

    Attributes:
        ok: True if server should start (no errors)
        warnings: Non-fatal issues that allow startup
        errors: Fatal issues that must prevent startup
    """
    ok: bool
    warnings: List[str]
    errors: List[str]


def _check_python_version() -> Tuple[bool, Optional[str]]:
    if sys.version_info >= REQUIRED_PYTHON_VERSION:
        return True, None
    return False, (
        f"Python {sys.version_info.major}.{sys.version_info.minor} < "
        f"{REQUIRED_PYTHON_VERSION[0]}.{REQUIRED_PYTHON_VERSION[1]}"
    )


def _check_timezone(name: str) -> Optional[str]:
    """Warning text when ``name`` does not resolve (UTC is used instead)."""
    if not name or name.strip().upper() in ("UTC", "Z"):
        return None
    if resolve_timezone(name) is datetime.timezone.utc:
        return f"TERMINUS_TIMEZONE {name!r} is not a valid timezone, using UTC"
    return None


def _check_limits(settings: Settings) -> List[str]:
    errors = []
    for label, value in (
        ("TERMINUS_MAX_SERVICES", settings.max_services),
        ("TERMINUS_MAX_VOLUMES", settings.max_volumes),
        ("TERMINUS_MAX_EVENTS", settings.max_events),
    ):
        if value < 1:
            errors.append(f"{label} must be >= 1, got {value}")
    return errors


def run_startup_checks(settings: Optional[Settings] = None) -> StartupCheckResult:
    """Run all startup validation checks.

    Validates:
    - Python version >= 3.9
    - RAILWAY_TOKEN is set
    - event logs config file (if any) loads
    - display limits are positive

    Warns about a missing TERMINUS_AUTH_TOKEN, an invalid timezone and a
    missing logs environment id.

    Args:
        settings: Settings to validate, or None to load from environment

    Returns:
        StartupCheckResult with ok/warnings/errors
    """
    if settings is None:
        settings = load_settings()

    warnings: List[str] = []
    errors: List[str] = []

    passed, error = _check_python_version()
    if not passed:
        errors.append(error)

    if not settings.railway_token:
        errors.append("RAILWAY_TOKEN is not set - Railway API calls will fail")

    if not settings.auth_token:
        warnings.append("TERMINUS_AUTH_TOKEN not set - authentication will fail")

    tz_warning = _check_timezone(settings.timezone)
    if tz_warning:
        warnings.append(tz_warning)

    if not settings.logs_environment_id:
        warnings.append(
            "TERMINUS_LOGS_ENV_ID not set - event logs are skipped unless a request header provides one"
        )

    if settings.log_format not in LOG_FORMATS:
        warnings.append(
            f"TERMINUS_LOG_FORMAT {settings.log_format!r} is not one of {', '.join(LOG_FORMATS)}; using text"
        )

    try:
        load_event_logs_config(settings.event_logs_config or None)
    except ConfigError as e:
        errors.append(str(e))

    errors.extend(_check_limits(settings))

    return StartupCheckResult(
        ok=len(errors) == 0,
        warnings=warnings,
        errors=errors,
    )


def format_check_result(result: StartupCheckResult) -> str:
    """Format check result for Rich console output."""
    lines = ["Terminus Startup Checks", ""]

    for error in result.errors:
        lines.append(f"[red]✗[/red] {error}")
    for warning in result.warnings:
        lines.append(f"[yellow]⚠[/yellow] {warning}")
    if result.ok and not result.warnings:
        lines.append("[green]✓[/green] All startup checks passed")

    return "\n".join(lines)
