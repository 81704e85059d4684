"""Redaction helpers for logs, error bodies and diagnostic output.

Railway API tokens are UUIDs and the dashboard secret is an arbitrary bearer
string; neither may reach a log line, a JSON error envelope or a captured
debug log. Redaction is deterministic and never mutates its input.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
import re
from typing import Any, Iterable

# ── Constants ────────────────────────────────────────────────────

SENSITIVE_KEYWORDS = [
    "token", "secret", "password", "bearer", "authorization", "api_key",
]

REDACTED = "***REDACTED***"

# Max payload size for safe_log_json (8 KB)
_MAX_LOG_BYTES = 8192

_MAX_STRING_LEN = 240

_MAX_DEPTH = 10

# ── Patterns ─────────────────────────────────────────────────────

_BEARER_RE = re.compile(r"(Bearer\s+)\S+", re.IGNORECASE)
_LONG_HEX_RE = re.compile(r"\b[0-9a-fA-F]{32,}\b")


def _is_sensitive_key(key: str) -> bool:
    lower = key.lower()
    return any(kw in lower for kw in SENSITIVE_KEYWORDS)


# ── Public API ───────────────────────────────────────────────────


def redact_text(text: str, secrets: Iterable[str] = ()) -> str:
    """Redact bearer tokens, long hex strings and any explicitly given secrets.

    UUID-shaped values are left alone unless passed in ``secrets``: Railway
    project, service and environment ids are UUIDs too, and diagnostics need
    to show them.
    """
    if not text:
        return text
    result = text
    for secret in secrets:
        if secret:
            result = result.replace(secret, REDACTED)
    result = _BEARER_RE.sub(r"\1" + REDACTED, result)
    result = _LONG_HEX_RE.sub(REDACTED, result)
    return result


def redact_dict(obj: Any, *, _depth: int = 0) -> Any:
    """Recursively redact values under sensitive keys.

    Long strings are shortened to prefix...suffix. Never mutates the input.
    """
    if _depth > _MAX_DEPTH:
        return "[max_depth_exceeded]"

    if isinstance(obj, dict):
        result = {}
        for k, v in obj.items():
            if isinstance(k, str) and _is_sensitive_key(k):
                result[k] = REDACTED
            else:
                result[k] = redact_dict(v, _depth=_depth + 1)
        return result

    if isinstance(obj, list):
        return [redact_dict(item, _depth=_depth + 1) for item in obj]

    if isinstance(obj, str):
        if len(obj) > _MAX_STRING_LEN:
            return obj[:60] + "..." + obj[-60:]
        return redact_text(obj)

    return obj


def safe_log_json(event: dict) -> dict:
    """Redact a structured log event and keep it under 8 KB."""
    redacted = redact_dict(event)
    serialized = json.dumps(redacted, separators=(",", ":"), default=str)
    if len(serialized) <= _MAX_LOG_BYTES:
        return redacted
    return _truncate_to_fit(redacted)


def _truncate_to_fit(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _truncate_to_fit(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_truncate_to_fit(item) for item in obj]
    if isinstance(obj, str) and len(obj) > 100:
        return obj[:40] + "...[truncated]..." + obj[-40:]
    return obj


# ── Dotenv loader ────────────────────────────────────────────────


def load_dotenv_if_present(path: str = ".env") -> None:
    """Load KEY=VALUE pairs from a .env file into os.environ.

    Comments and blank lines are skipped, surrounding quotes stripped, and
    variables already present in the environment are never overwritten.
    """
    p = Path(path)
    if not p.is_file():
        return

    with open(p, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                value = value[1:-1]
            os.environ.setdefault(key, value)
