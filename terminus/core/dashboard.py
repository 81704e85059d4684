"""Per-request aggregation of the four dashboard queries into a snapshot.

A failing query never fails the request: it is replaced by its empty
fallback and named in ``queryInfo.errors``. Only a missing token or an
unexpected error outside the per-query boundaries produces a failed
snapshot.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from terminus.core.event_logs import EventLogsConfig
from terminus.core.filters import (
    DashboardFilter,
    filter_deployments,
    filter_projects,
    filter_volumes,
)
from terminus.core.railway.client import AsyncRailwayClient
from terminus.core.railway.errors import ConfigError
from terminus.core.railway.models import DeploymentList, EventLogList, WorkspaceTree

logger = logging.getLogger("terminus.dashboard")

T = TypeVar("T")

# Called as factory(token, logger=None)
ClientFactory = Callable[..., AsyncRailwayClient]

EVENT_LOGS_FULL = "full"
EVENT_LOGS_EMPTY = "empty"
EVENT_LOGS_SKIPPED = "skipped"


def _utc_now_iso() -> str:
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class EventLogsInfo(_Model):
    max_entries: int = Field(alias="maxEntries")
    filter: str


class QueryInfo(_Model):
    errors: List[str] = Field(default_factory=list)
    event_logs_query_used: str = Field(EVENT_LOGS_SKIPPED, alias="eventLogsQueryUsed")


class DashboardData(_Model):
    projects: WorkspaceTree = Field(default_factory=WorkspaceTree)
    deployments: DeploymentList = Field(default_factory=DeploymentList)
    volumes: WorkspaceTree = Field(default_factory=WorkspaceTree)
    event_logs: EventLogList = Field(default_factory=EventLogList, alias="eventLogs")
    event_logs_environment_id: Optional[str] = Field(None, alias="eventLogsEnvironmentId")
    event_logs_config: EventLogsInfo = Field(alias="eventLogsConfig")
    filters: Dict[str, Optional[str]] = Field(default_factory=dict)
    query_info: QueryInfo = Field(default_factory=QueryInfo, alias="queryInfo")


class SnapshotError(_Model):
    message: str
    type: str = "API_ERROR"


class DashboardSnapshot(_Model):
    """Exactly one of ``data`` (success) or ``error`` (failure)."""

    timestamp: str = Field(default_factory=_utc_now_iso)
    success: bool
    data: Optional[DashboardData] = None
    error: Optional[SnapshotError] = None

    @model_validator(mode="after")
    def _one_of_data_or_error(self) -> "DashboardSnapshot":
        if self.success and (self.data is None or self.error is not None):
            raise ValueError("a successful snapshot carries data and no error")
        if not self.success and (self.error is None or self.data is not None):
            raise ValueError("a failed snapshot carries an error and no data")
        return self

    @classmethod
    def failure(cls, message: str, type: str = "API_ERROR") -> "DashboardSnapshot":
        return cls(success=False, error=SnapshotError(message=message, type=type))


# ── Aggregation ──────────────────────────────────────────────────


async def _with_fallback(
    coro: Awaitable[T],
    fallback: T,
    label: str,
    errors: List[str],
) -> T:
    try:
        return await coro
    except Exception as e:
        logger.error("%s query failed: %s", label, e)
        errors.append(f"{label} query failed")
        return fallback


async def _event_logs(
    client: AsyncRailwayClient,
    environment_id: Optional[str],
    config: EventLogsConfig,
    errors: List[str],
) -> Any:
    if not environment_id:
        logger.info("No logs environment id provided, skipping event logs")
        return EventLogList(), EVENT_LOGS_SKIPPED
    logger.info("Including event logs for environment: %s", environment_id)
    try:
        logs = await client.fetch_event_logs(
            environment_id, config.log_filter, config.max_log_entries
        )
    except Exception as e:
        logger.error("Event logs query failed: %s", e)
        errors.append("Event logs query failed")
        return EventLogList(), EVENT_LOGS_EMPTY
    return logs, EVENT_LOGS_FULL


async def fetch_dashboard_snapshot(
    client: AsyncRailwayClient,
    logs_environment_id: Optional[str] = None,
    filters: Optional[DashboardFilter] = None,
    event_config: Optional[EventLogsConfig] = None,
) -> DashboardSnapshot:
    """Run the dashboard queries concurrently and pack a snapshot."""
    flt = filters or DashboardFilter()
    config = event_config or EventLogsConfig()
    try:
        if not flt.is_empty:
            logger.info(
                "Applying filters - Project: %s, Service: %s, Environment: %s",
                flt.project_id or "all",
                flt.service_id or "all",
                flt.environment_id or "all",
            )
        errors: List[str] = []
        projects, deployments, volumes, (event_logs, used) = await asyncio.gather(
            _with_fallback(client.fetch_projects(), WorkspaceTree(), "Projects", errors),
            _with_fallback(client.fetch_deployments(first=4), DeploymentList(), "Deployments", errors),
            _with_fallback(client.fetch_volumes(), WorkspaceTree(), "Volumes", errors),
            _event_logs(client, logs_environment_id, config, errors),
        )

        data = DashboardData(
            projects=filter_projects(projects, flt),
            deployments=filter_deployments(deployments, flt),
            volumes=filter_volumes(volumes, flt),
            event_logs=event_logs,
            event_logs_environment_id=logs_environment_id or None,
            event_logs_config=EventLogsInfo(
                max_entries=config.max_log_entries, filter=config.log_filter
            ),
            filters=flt.to_dict(),
            query_info=QueryInfo(errors=errors, event_logs_query_used=used),
        )
    except Exception as e:
        logger.exception("Error fetching Railway data")
        return DashboardSnapshot.failure(str(e))

    logger.info("Successfully fetched Railway data")
    if errors:
        logger.info("Query errors: %s", ", ".join(errors))
    logger.info("Event logs query: %s", used)
    return DashboardSnapshot(success=True, data=data)


def default_client_factory(
    api_url: Optional[str] = None, timeout: float = 30.0
) -> ClientFactory:
    def factory(
        token: str, logger: Optional[logging.Logger] = None
    ) -> AsyncRailwayClient:
        if api_url:
            return AsyncRailwayClient(
                token, api_url=api_url, timeout=timeout, logger=logger
            )
        return AsyncRailwayClient(token, timeout=timeout, logger=logger)
    return factory


async def build_snapshot(
    token: Optional[str],
    logs_environment_id: Optional[str] = None,
    filters: Optional[DashboardFilter] = None,
    event_config: Optional[EventLogsConfig] = None,
    client_factory: Optional[ClientFactory] = None,
) -> DashboardSnapshot:
    """Build a client for ``token``, fetch one snapshot, and close the client.

    A missing token gives a failed snapshot rather than an exception.
    """
    factory = client_factory or default_client_factory()
    try:
        client = factory(token or "")
    except ConfigError as e:
        logger.error("Cannot create Railway client: %s", e)
        return DashboardSnapshot.failure(str(e))
    async with client:
        return await fetch_dashboard_snapshot(
            client, logs_environment_id, filters, event_config
        )
