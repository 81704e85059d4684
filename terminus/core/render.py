"""HTML and JSON presentation of a ``DashboardSnapshot``.

The HTML output is a fixed 800x470 page meant to be screenshotted for an
e-ink display, so every panel is capped and shows "+N more" beyond that.
"""

from __future__ import annotations

import datetime
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from jinja2 import Environment, FileSystemLoader, StrictUndefined
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from terminus.core.dashboard import DashboardSnapshot
from terminus.core.event_logs import EventLogsConfig, build_strategy, extract_event_action
from terminus.core.flatten import flatten_snapshot
from terminus.core.railway.models import parse_timestamp

logger = logging.getLogger("terminus.render")

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"

_HTML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#39;"),
)


class RenderError(Exception):
    """Raised when a snapshot cannot be turned into HTML."""


def escape_html(text: Any) -> str:
    """Entity-encode ``& < > " '``. None renders as an empty string."""
    if text is None:
        return ""
    result = str(text)
    for raw, entity in _HTML_ESCAPES:
        result = result.replace(raw, entity)
    return result


def resolve_timezone(name: Optional[str]) -> datetime.tzinfo:
    """Look up an IANA zone name; unknown names log a warning and give UTC."""
    if not name or name.strip().upper() in ("UTC", "Z"):
        return datetime.timezone.utc
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Invalid timezone %r, using UTC", name)
        return datetime.timezone.utc


def _localize(value: Optional[str], tz: datetime.tzinfo) -> Optional[datetime.datetime]:
    parsed = parse_timestamp(value)
    return parsed.astimezone(tz) if parsed is not None else None


def format_timestamp(value: Optional[str], tz: datetime.tzinfo = datetime.timezone.utc) -> str:
    """``Oct 18, 2026, 09:05 AM UTC``; unparseable input is returned as is."""
    dt = _localize(value, tz)
    if dt is None:
        return value or ""
    return f"{dt:%b} {dt.day}, {dt:%Y, %I:%M %p} {dt.tzname()}"


def format_event_timestamp(
    value: Optional[str], tz: datetime.tzinfo = datetime.timezone.utc
) -> str:
    """``Oct 18, 09:05`` on a 24-hour clock."""
    dt = _localize(value, tz)
    if dt is None:
        return value or ""
    return f"{dt:%b} {dt.day}, {dt:%H:%M}"


def render_json(snapshot: DashboardSnapshot) -> Dict[str, Any]:
    """JSON-ready dict with camelCase keys; absent fields are omitted."""
    return snapshot.model_dump(mode="json", by_alias=True, exclude_none=True)


class DashboardRenderer:
    """Renders snapshots with the packaged Jinja2 templates.

    Every ``{{ ... }}`` value passes through ``escape_html`` on output, so
    templates never mark anything safe by hand.
    """

    def __init__(
        self,
        timezone: Union[str, datetime.tzinfo, None] = "UTC",
        event_config: Optional[EventLogsConfig] = None,
        max_services: int = 6,
        max_volumes: int = 4,
        max_events: int = 12,
        templates_dir: Optional[Path] = None,
    ) -> None:
        if isinstance(timezone, datetime.tzinfo):
            self.tz = timezone
        else:
            self.tz = resolve_timezone(timezone)
        self.event_config = event_config or EventLogsConfig()
        self.strategy = build_strategy(self.event_config)
        self.max_services = max_services
        self.max_volumes = max_volumes
        self.max_events = max_events
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
            autoescape=False,
            finalize=escape_html,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["timestamp"] = lambda v: format_timestamp(v, self.tz)
        self.env.filters["event_time"] = lambda v: format_event_timestamp(v, self.tz)
        self.env.filters["event_action"] = lambda v: extract_event_action(
            v, self.event_config, self.strategy
        )

    def render_html(self, snapshot: DashboardSnapshot) -> str:
        try:
            if not snapshot.success:
                return self.env.get_template("error.html").render(snapshot=snapshot)
            view = flatten_snapshot(snapshot)
            return self.env.get_template("dashboard.html").render(
                snapshot=snapshot,
                data=snapshot.data,
                view=view,
                max_services=self.max_services,
                max_volumes=self.max_volumes,
                max_events=self.max_events,
            )
        except Exception as e:
            raise RenderError(f"Failed to render dashboard: {e}") from e

    def render_json(self, snapshot: DashboardSnapshot) -> Dict[str, Any]:
        return render_json(snapshot)
