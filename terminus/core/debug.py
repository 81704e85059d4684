"""Diagnostic replay of the Railway queries for the /debug endpoints.

Each run logs through a request-scoped logger whose lines are collected by
a ``LogCapture`` handler and returned to the caller. Nothing process-wide
is patched: the scoped logger is not registered with the logging manager
and only propagates to ``terminus.debug``.
"""

from __future__ import annotations

import contextlib
import datetime
import logging
import uuid
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from terminus.core.railway import queries
from terminus.core.railway.client import AsyncRailwayClient
from terminus.core.railway.errors import RailwayError
from terminus.core.railway.models import EventLogList, WorkspaceTree
from terminus.core.secrets import redact_text

DEBUG_LOGGER_NAME = "terminus.debug"


class LogCapture(logging.Handler):
    """Collects records as ``{"type": "log" | "error", "message": ...}``."""

    def __init__(self, secrets: Iterable[str] = (), level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.secrets = [s for s in secrets if s]
        self.lines: List[Dict[str, str]] = []

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = redact_text(record.getMessage(), self.secrets)
        except Exception:
            self.handleError(record)
            return
        kind = "error" if record.levelno >= logging.ERROR else "log"
        self.lines.append({"type": kind, "message": message})


@contextlib.contextmanager
def capture_logs(
    name: Optional[str] = None, secrets: Iterable[str] = ()
) -> Iterator[Tuple[logging.Logger, LogCapture]]:
    """Yield ``(logger, capture)`` for one diagnostic run.

    The logger lives only as long as the ``with`` block; its records are
    also passed on to ``terminus.debug`` so they reach the server log.
    """
    scope = name or uuid.uuid4().hex[:12]
    scoped = logging.Logger(f"{DEBUG_LOGGER_NAME}.{scope}", logging.INFO)
    scoped.parent = logging.getLogger(DEBUG_LOGGER_NAME)
    capture = LogCapture(secrets)
    scoped.addHandler(capture)
    try:
        yield scoped, capture
    finally:
        scoped.removeHandler(capture)
        capture.close()


def _count_volumes(tree: WorkspaceTree) -> int:
    return sum(
        project.volume_instance_count
        for workspace in tree.workspaces
        for project in workspace.projects
    )


# ── Basic diagnostics ────────────────────────────────────────────


async def run_query_diagnostics(
    client: AsyncRailwayClient,
    logs_environment_id: Optional[str],
    logger: logging.Logger,
) -> bool:
    """Run each dashboard query once. Returns False if authentication failed."""
    logger.info("Testing Railway GraphQL queries individually...")

    logger.info("1. Testing basic authentication...")
    try:
        await client.query(queries.load_query(queries.ME), {}, "Basic Auth Test")
    except RailwayError as e:
        logger.error("Authentication failed: %s", e)
        logger.info("   This suggests your token is invalid or lacks permissions")
        return False
    logger.info("Authentication successful")

    logger.info("2. Testing volume sizes query...")
    try:
        await client.query(queries.load_query(queries.VOLUME_SIZES), {}, "Volume Sizes")
        logger.info("Volume query successful")
    except RailwayError as e:
        logger.error("Volume query failed: %s", e)

    logger.info("3. Testing latest deployment query...")
    try:
        await client.query(
            queries.load_query(queries.DEPLOYMENTS), {"first": 1}, "Latest Deployments"
        )
        logger.info("Deployment query successful")
    except RailwayError as e:
        logger.error("Deployment query failed: %s", e)

    if logs_environment_id:
        logger.info("4. Testing event logs query...")
        try:
            await client.query(
                queries.load_query(queries.EVENT_LOGS),
                {"environmentId": logs_environment_id, "filter": "", "afterLimit": 8},
                "Event Logs",
            )
            logger.info("Event logs query successful")
        except RailwayError as e:
            logger.error("Event logs query failed: %s", e)
    else:
        logger.info("4. Skipping event logs query (no logs environment id set)")

    logger.info("Query testing complete!")
    return True


# ── Advanced diagnostics ─────────────────────────────────────────


def _last_24_hours() -> Dict[str, str]:
    now = datetime.datetime.now(datetime.timezone.utc)
    start = now - datetime.timedelta(hours=24)
    return {"startDate": start.isoformat(), "endDate": now.isoformat()}


async def _count_query(
    client: AsyncRailwayClient,
    logger: logging.Logger,
    label: str,
    query_name: str,
    variables: Dict[str, Any],
    unit: str,
) -> None:
    logger.info("   Testing: %s...", label)
    try:
        data = await client.query(queries.load_query(query_name), variables, label)
    except RailwayError as e:
        logger.error("   %s failed: %s", label, e)
        return
    logger.info("   %s successful", label)
    if unit == "volumes":
        count = _count_volumes(WorkspaceTree.model_validate(data))
    else:
        count = len(EventLogList.model_validate(data).logs)
    logger.info("   Found %d %s", count, unit)


async def run_advanced_diagnostics(
    client: AsyncRailwayClient,
    logs_environment_id: Optional[str],
    logger: logging.Logger,
) -> bool:
    """Walk user, workspaces, projects, volumes and event logs in turn."""
    logger.info("Advanced Railway API Debugging...")

    logger.info("1. Testing user authentication and basic info...")
    try:
        data = await client.query(queries.load_query(queries.USER_INFO), {}, "User Info")
    except RailwayError as e:
        logger.error("User authentication failed: %s", e)
        return False
    me = data.get("me") or {}
    logger.info("User authenticated: %s", me.get("name"))
    logger.info("   User ID: %s", me.get("id"))
    logger.info("   Email: %s", me.get("email"))

    logger.info("2. Testing workspace access...")
    try:
        data = await client.query(queries.load_query(queries.WORKSPACES), {}, "Workspaces")
        workspaces = (data.get("me") or {}).get("workspaces") or []
        logger.info("Workspaces found: %d", len(workspaces))
        for ws in workspaces:
            logger.info("   - %s (%s)", ws.get("name"), ws.get("id"))
            team = ws.get("team")
            if team:
                logger.info("     Team: %s (%s)", team.get("name"), team.get("id"))
    except RailwayError as e:
        logger.error("Workspace query failed: %s", e)

    logger.info("3. Testing project access...")
    try:
        data = await client.query(
            queries.load_query(queries.PROJECTS_ENVIRONMENTS), {}, "Projects"
        )
        tree = WorkspaceTree.model_validate(data)
        project_count = env_count = 0
        for workspace in tree.workspaces:
            for project in workspace.projects:
                project_count += 1
                logger.info("   - Project: %s (%s)", project.name, project.id)
                for env in project.environments:
                    env_count += 1
                    logger.info("     Environment: %s (%s)", env.name, env.id)
        logger.info("Found %d projects and %d environments", project_count, env_count)
    except RailwayError as e:
        logger.error("Project query failed: %s", e)

    logger.info("4. Testing volume access...")
    await _count_query(
        client, logger, "Basic Volume Query", queries.VOLUME_INSTANCES, {}, "volumes"
    )
    await _count_query(
        client, logger, "Volume with Size Info", queries.VOLUME_SIZES, {}, "volumes"
    )

    if logs_environment_id:
        logger.info("5. Testing event logs access...")
        await _count_query(
            client,
            logger,
            "Event Logs with Date Range",
            queries.EVENT_LOGS_DATE_RANGE,
            {"environmentId": logs_environment_id, **_last_24_hours()},
            "log entries",
        )
        await _count_query(
            client,
            logger,
            "Event Logs Simple",
            queries.EVENT_LOGS_SIMPLE,
            {"environmentId": logs_environment_id, "afterLimit": 10},
            "log entries",
        )
    else:
        logger.info("5. Skipping event logs test (no logs environment id set)")

    logger.info("Advanced debugging complete!")
    logger.info("Recommendations:")
    logger.info("   - If volume queries fail, check if you have volumes in your projects")
    logger.info("   - If event logs fail, verify the environment ID is correct")
    logger.info("   - Some queries may require specific permissions in Railway")
    logger.info("   - Try using the simple query versions as fallbacks")
    return True
