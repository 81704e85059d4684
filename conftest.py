"""Repo-wide test fixtures.

Snapshots and restores the Railway and Terminus environment variables
between tests so that a test setting RAILWAY_TOKEN (or loading a .env
file) cannot leak into the next one.
"""

from __future__ import annotations

import os

import pytest

_SENSITIVE_ENV_VARS = [
    "RAILWAY_TOKEN",
    "RAILWAY_ENVIRONMENT_ID",
    "TERMINUS_AUTH_TOKEN",
    "TERMINUS_API_URL",
    "TERMINUS_HTTP_TIMEOUT",
    "TERMINUS_LOGS_ENV_ID",
    "TERMINUS_PROJECT_ID",
    "TERMINUS_SERVICE_ID",
    "TERMINUS_ENVIRONMENT_ID",
    "TERMINUS_TIMEZONE",
    "TERMINUS_BIND",
    "PORT",
    "TERMINUS_LOG_FORMAT",
    "TERMINUS_EVENT_LOGS_CONFIG",
    "TERMINUS_MAX_SERVICES",
    "TERMINUS_MAX_VOLUMES",
    "TERMINUS_MAX_EVENTS",
]


@pytest.fixture(autouse=True)
def _restore_env():
    """Snapshot sensitive env vars before each test and restore after."""
    snapshot = {}
    for var in _SENSITIVE_ENV_VARS:
        val = os.environ.get(var)
        if val is not None:
            snapshot[var] = val

    yield

    # Restore: remove any that were added, reset any that changed
    for var in _SENSITIVE_ENV_VARS:
        if var in snapshot:
            os.environ[var] = snapshot[var]
        else:
            os.environ.pop(var, None)
