"""Centralized server settings for the Terminus dashboard.

Reads environment variables with sensible defaults. Never exposes secrets
in repr or serialization.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Optional

from terminus.core.railway.client import RAILWAY_API_URL


def _int_env(key: str, default: int) -> int:
    """Parse an int env var with fallback."""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        return default


def _float_env(key: str, default: float) -> float:
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        return default


def _str_env(*keys: str, default: str = "") -> str:
    """First non-blank value among ``keys``."""
    for key in keys:
        val = os.environ.get(key)
        if val is not None and val.strip():
            return val.strip()
    return default


@dataclass(frozen=True)
class Settings:
    """Immutable server configuration. Safe to log: secrets are masked."""

    # ── Upstream ───────────────────────────────────────────────────
    railway_token: str = ""
    api_url: str = RAILWAY_API_URL
    http_timeout: float = 30.0

    # ── Security ───────────────────────────────────────────────────
    auth_token: str = ""

    # ── Request defaults ──────────────────────────────────────────
    logs_environment_id: str = ""
    project_id: str = ""
    service_id: str = ""
    environment_id: str = ""

    # ── Server ─────────────────────────────────────────────────────
    bind: str = "0.0.0.0"
    port: int = 3000
    log_format: str = "text"

    # ── Display ────────────────────────────────────────────────────
    timezone: str = "UTC"
    event_logs_config: str = ""
    max_services: int = 6
    max_volumes: int = 4
    max_events: int = 12

    def __repr__(self) -> str:
        return (
            f"Settings(api_url={self.api_url!r}, "
            f"railway_token={'***' if self.railway_token else ''!r}, "
            f"auth_token={'***' if self.auth_token else ''!r}, "
            f"logs_environment_id={self.logs_environment_id!r}, "
            f"bind={self.bind!r}, port={self.port}, "
            f"timezone={self.timezone!r}, log_format={self.log_format!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe dict with tokens masked."""
        data = asdict(self)
        data["railway_token"] = "configured" if self.railway_token else "not set"
        data["auth_token"] = "configured" if self.auth_token else "not set"
        return data


def load_settings(
    bind: Optional[str] = None,
    port: Optional[int] = None,
    **overrides: Any,
) -> Settings:
    """Load settings from environment with optional overrides.

    Args:
        bind: Override bind host
        port: Override port
        **overrides: Additional field overrides

    Returns:
        Settings instance
    """
    settings = Settings(
        railway_token=_str_env("RAILWAY_TOKEN"),
        api_url=_str_env("TERMINUS_API_URL", default=RAILWAY_API_URL),
        http_timeout=_float_env("TERMINUS_HTTP_TIMEOUT", 30.0),
        auth_token=_str_env("TERMINUS_AUTH_TOKEN"),
        logs_environment_id=_str_env("TERMINUS_LOGS_ENV_ID", "RAILWAY_ENVIRONMENT_ID"),
        project_id=_str_env("TERMINUS_PROJECT_ID"),
        service_id=_str_env("TERMINUS_SERVICE_ID"),
        environment_id=_str_env("TERMINUS_ENVIRONMENT_ID"),
        bind=_str_env("TERMINUS_BIND", default="0.0.0.0"),
        port=_int_env("PORT", 3000),
        log_format=_str_env("TERMINUS_LOG_FORMAT", default="text"),
        timezone=_str_env("TERMINUS_TIMEZONE", default="UTC"),
        event_logs_config=_str_env("TERMINUS_EVENT_LOGS_CONFIG"),
        max_services=_int_env("TERMINUS_MAX_SERVICES", 6),
        max_volumes=_int_env("TERMINUS_MAX_VOLUMES", 4),
        max_events=_int_env("TERMINUS_MAX_EVENTS", 12),
    )

    if bind is not None:
        settings = replace(settings, bind=bind)
    if port is not None:
        settings = replace(settings, port=port)
    if overrides:
        settings = replace(settings, **overrides)

    return settings
