"""GraphQL query documents shipped as ``terminus/queries/*.gql``.

Documents are fixed text assets, read from disk once per process and never
assembled per request.
"""

from __future__ import annotations

import functools
from pathlib import Path
from typing import Optional

QUERIES_DIR = Path(__file__).resolve().parents[2] / "queries"

# Dashboard queries
PROJECTS = "projects_services_environments"
DEPLOYMENTS = "latest_deployments"
VOLUMES = "volume_usage"
EVENT_LOGS = "event_logs"

# Diagnostic queries
ME = "me"
USER_INFO = "user_info"
WORKSPACES = "workspaces"
PROJECTS_ENVIRONMENTS = "projects_environments"
VOLUME_INSTANCES = "volume_instances"
VOLUME_SIZES = "volume_sizes"
EVENT_LOGS_DATE_RANGE = "event_logs_date_range"
EVENT_LOGS_SIMPLE = "event_logs_simple"


@functools.lru_cache(maxsize=None)
def load_query(name: str, queries_dir: Optional[str] = None) -> str:
    """Return the text of ``<queries_dir>/<name>.gql``.

    Raises FileNotFoundError with the searched path when the asset is missing.
    """
    base = Path(queries_dir) if queries_dir else QUERIES_DIR
    path = base / f"{name}.gql"
    if not path.is_file():
        raise FileNotFoundError(f"GraphQL query asset not found: {path}")
    return path.read_text(encoding="utf-8")
