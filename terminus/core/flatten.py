"""Flatten filtered query results into the dashboard's row-oriented view.

Rows keep the upstream sibling order. Event logs are the exception: they
are emitted newest first.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

from terminus.core.railway.models import (
    Deployment,
    DeploymentStatus,
    EventLogEntry,
    VolumeInstance,
    WorkspaceTree,
    parse_timestamp,
)

if TYPE_CHECKING:
    from terminus.core.dashboard import DashboardSnapshot

UNKNOWN_SERVICE = "Unknown Service"
UNKNOWN = "Unknown"


@dataclass(frozen=True)
class ServiceRow:
    workspace_name: Optional[str]
    project_name: Optional[str]
    service_name: Optional[str]
    service_id: Optional[str]
    environment_name: Optional[str] = None
    deployment: Optional[Deployment] = None

    @property
    def healthy(self) -> bool:
        return (
            self.deployment is not None
            and self.deployment.status_kind is DeploymentStatus.SUCCESS
        )


@dataclass(frozen=True)
class VolumeRow:
    workspace_name: Optional[str]
    project_name: Optional[str]
    environment_name: Optional[str]
    service_name: str
    volume: VolumeInstance

    @property
    def usage_percent(self) -> int:
        return int(round(self.volume.usage * 100))

    @property
    def current_size_mb(self) -> float:
        return self.volume.current_size_mb or 0.0

    @property
    def size_mb(self) -> float:
        return self.volume.size_mb or 0.0


@dataclass(frozen=True)
class DashboardView:
    services: List[ServiceRow] = field(default_factory=list)
    volumes: List[VolumeRow] = field(default_factory=list)
    event_logs: List[EventLogEntry] = field(default_factory=list)

    @property
    def workspace_name(self) -> str:
        if self.services and self.services[0].workspace_name:
            return self.services[0].workspace_name
        return UNKNOWN

    @property
    def project_name(self) -> str:
        if self.services and self.services[0].project_name:
            return self.services[0].project_name
        return UNKNOWN


# ── Deployments ──────────────────────────────────────────────────


def deployment_key(service_id: Optional[str], environment_id: Optional[str]) -> str:
    return f"{service_id}-{environment_id}"


def _created_or_min(deployment: Deployment) -> datetime.datetime:
    return deployment.created or datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


def index_latest_deployments(deployments: Iterable[Deployment]) -> Dict[str, Deployment]:
    """Map ``serviceId-environmentId`` to the most recently created deployment.

    Newer means a later ``createdAt``; on equal (or unparseable) timestamps
    the first one seen is kept.
    """
    index: Dict[str, Deployment] = {}
    for deployment in deployments:
        key = deployment_key(deployment.service_id, deployment.environment_id)
        current = index.get(key)
        if current is None or _created_or_min(deployment) > _created_or_min(current):
            index[key] = deployment
    return index


def flatten_services(
    projects: WorkspaceTree, index: Dict[str, Deployment]
) -> List[ServiceRow]:
    """One row per (service, environment) with a deployment.

    A service without any indexed deployment still gets a single row with
    ``deployment=None``.
    """
    rows: List[ServiceRow] = []
    for workspace in projects.workspaces:
        for project in workspace.projects:
            for service in project.services:
                matched = False
                for environment in project.environments:
                    deployment = index.get(deployment_key(service.id, environment.id))
                    if deployment is None:
                        continue
                    matched = True
                    rows.append(ServiceRow(
                        workspace_name=workspace.name,
                        project_name=project.name,
                        service_name=service.name,
                        service_id=service.id,
                        environment_name=deployment.environment_name or environment.name,
                        deployment=deployment,
                    ))
                if not matched:
                    rows.append(ServiceRow(
                        workspace_name=workspace.name,
                        project_name=project.name,
                        service_name=service.name,
                        service_id=service.id,
                    ))
    return rows


# ── Volumes ──────────────────────────────────────────────────────


def _service_names(projects: Optional[WorkspaceTree]) -> Dict[str, str]:
    names: Dict[str, str] = {}
    if projects is None:
        return names
    for workspace in projects.workspaces:
        for project in workspace.projects:
            for service in project.services:
                if service.id and service.name:
                    names[service.id] = service.name
    return names


def flatten_volumes(
    volumes: WorkspaceTree, projects: Optional[WorkspaceTree] = None
) -> List[VolumeRow]:
    """One row per volume instance, denormalized with its owners' names.

    The service name comes from the volume's own relation, then from the
    projects tree by service id, then ``"Unknown Service"``.
    """
    names = _service_names(projects)
    rows: List[VolumeRow] = []
    for workspace in volumes.workspaces:
        for project in workspace.projects:
            for environment in project.environments:
                for volume in environment.volume_instances:
                    service_name = (
                        volume.service_name
                        or names.get(volume.service_id or "")
                        or UNKNOWN_SERVICE
                    )
                    rows.append(VolumeRow(
                        workspace_name=workspace.name,
                        project_name=project.name,
                        environment_name=environment.name or volume.environment_name,
                        service_name=service_name,
                        volume=volume,
                    ))
    return rows


# ── Event logs ───────────────────────────────────────────────────


def flatten_event_logs(logs: Iterable[EventLogEntry]) -> List[EventLogEntry]:
    """Newest first; entries whose timestamp does not parse go last."""
    def sort_key(entry: EventLogEntry):
        parsed = parse_timestamp(entry.timestamp)
        if parsed is None:
            return (1, 0.0)
        return (0, -parsed.timestamp())

    projected = [
        EventLogEntry(timestamp=e.timestamp, message=e.message, severity=e.severity)
        for e in logs
    ]
    return sorted(projected, key=sort_key)


def flatten(
    projects: WorkspaceTree,
    deployments: Iterable[Deployment],
    volumes: WorkspaceTree,
    event_logs: Iterable[EventLogEntry] = (),
) -> DashboardView:
    return DashboardView(
        services=flatten_services(projects, index_latest_deployments(deployments)),
        volumes=flatten_volumes(volumes, projects),
        event_logs=flatten_event_logs(event_logs),
    )


def flatten_snapshot(snapshot: "DashboardSnapshot") -> DashboardView:
    """View of a successful snapshot; an empty view for a failed one."""
    if not snapshot.success or snapshot.data is None:
        return DashboardView()
    data = snapshot.data
    return flatten(
        data.projects,
        data.deployments.deployments,
        data.volumes,
        data.event_logs.logs,
    )
