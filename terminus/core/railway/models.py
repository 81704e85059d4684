"""Typed mirrors of the Railway GraphQL response shapes.

GraphQL connections (``{"edges": [{"node": {...}}]}``) are unwrapped to plain
lists while parsing, and a missing, null or malformed connection parses as an
empty list, so code downstream never has to check for presence. Field aliases
keep the upstream camelCase names; ``model_dump(by_alias=True)`` produces the
JSON shape served by ``/api/data``.

All models are frozen: the filter engine derives new trees with
``model_copy(update=...)`` and never mutates what the client returned.
"""

from __future__ import annotations

import datetime
import enum
import re
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class DeploymentStatus(str, enum.Enum):
    SUCCESS = "SUCCESS"
    BUILDING = "BUILDING"
    DEPLOYING = "DEPLOYING"
    FAILED = "FAILED"
    CRASHED = "CRASHED"
    REMOVED = "REMOVED"
    SKIPPED = "SKIPPED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Optional[str]) -> "DeploymentStatus":
        try:
            return cls((value or "").upper())
        except ValueError:
            return cls.UNKNOWN


_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def parse_timestamp(value: Optional[str]) -> Optional[datetime.datetime]:
    """Parse an ISO-8601 timestamp into an aware datetime, or None.

    Accepts a trailing ``Z`` and sub-microsecond fractions (log timestamps
    carry nanoseconds). Naive values are taken as UTC.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(r"\1", text)
    try:
        parsed = datetime.datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def _nodes(value: Any) -> List[Any]:
    """Unwrap a connection (or pass through a list); anything else is empty."""
    if isinstance(value, dict):
        edges = value.get("edges")
        if not isinstance(edges, list):
            return []
        return [
            edge["node"]
            for edge in edges
            if isinstance(edge, dict) and isinstance(edge.get("node"), dict)
        ]
    if isinstance(value, list):
        return [item for item in value if isinstance(item, (dict, BaseModel))]
    return []


def _relation(data: Any, relation: str, fields: dict) -> Any:
    """Copy ``relation.{id,name}`` onto flat foreign-key fields when unset."""
    if not isinstance(data, dict):
        return data
    nested = data.get(relation)
    if not isinstance(nested, dict):
        return data
    data = dict(data)
    for flat_key, nested_key in fields.items():
        if data.get(flat_key) is None and nested.get(nested_key) is not None:
            data[flat_key] = nested[nested_key]
    return data


class _Node(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


# ── Leaves ───────────────────────────────────────────────────────

class Deployment(_Node):
    id: Optional[str] = None
    status: str = DeploymentStatus.UNKNOWN.value
    created_at: Optional[str] = Field(None, alias="createdAt")
    environment_id: Optional[str] = Field(None, alias="environmentId")
    environment_name: Optional[str] = Field(None, alias="environmentName")
    service_id: Optional[str] = Field(None, alias="serviceId")
    project_id: Optional[str] = Field(None, alias="projectId")

    @model_validator(mode="before")
    @classmethod
    def _lift_environment(cls, data: Any) -> Any:
        return _relation(
            data, "environment", {"environmentId": "id", "environmentName": "name"}
        )

    @field_validator("status", mode="before")
    @classmethod
    def _status_default(cls, value: Any) -> Any:
        return value or DeploymentStatus.UNKNOWN.value

    @property
    def status_kind(self) -> DeploymentStatus:
        return DeploymentStatus.parse(self.status)

    @property
    def created(self) -> Optional[datetime.datetime]:
        return parse_timestamp(self.created_at)


class VolumeInstance(_Node):
    id: Optional[str] = None
    mount_path: Optional[str] = Field(None, alias="mountPath")
    current_size_mb: Optional[float] = Field(None, alias="currentSizeMB")
    size_mb: Optional[float] = Field(None, alias="sizeMB")
    region: Optional[str] = None
    state: Optional[str] = None
    service_id: Optional[str] = Field(None, alias="serviceId")
    service_name: Optional[str] = Field(None, alias="serviceName")
    environment_id: Optional[str] = Field(None, alias="environmentId")
    environment_name: Optional[str] = Field(None, alias="environmentName")
    volume_name: Optional[str] = Field(None, alias="volumeName")

    @model_validator(mode="before")
    @classmethod
    def _lift_relations(cls, data: Any) -> Any:
        data = _relation(data, "service", {"serviceId": "id", "serviceName": "name"})
        data = _relation(
            data, "environment", {"environmentId": "id", "environmentName": "name"}
        )
        return _relation(data, "volume", {"volumeName": "name"})

    @property
    def usage(self) -> float:
        """Fraction of the volume in use; 0.0 when the size is unknown."""
        if not self.size_mb:
            return 0.0
        return (self.current_size_mb or 0.0) / self.size_mb


class EventLogEntry(_Node):
    timestamp: Optional[str] = None
    message: str = ""
    severity: str = "INFO"

    @field_validator("message", mode="before")
    @classmethod
    def _message_default(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("severity", mode="before")
    @classmethod
    def _severity_default(cls, value: Any) -> Any:
        return value or "INFO"


# ── Branches ─────────────────────────────────────────────────────

class Environment(_Node):
    id: Optional[str] = None
    name: Optional[str] = None
    is_ephemeral: Optional[bool] = Field(None, alias="isEphemeral")
    created_at: Optional[str] = Field(None, alias="createdAt")
    volume_instances: List[VolumeInstance] = Field(
        default_factory=list, alias="volumeInstances"
    )

    @field_validator("volume_instances", mode="before")
    @classmethod
    def _unwrap_connection(cls, value: Any) -> List[Any]:
        return _nodes(value)


class Service(_Node):
    id: Optional[str] = None
    name: Optional[str] = None
    icon: Optional[str] = None
    created_at: Optional[str] = Field(None, alias="createdAt")
    deployments: List[Deployment] = Field(default_factory=list)

    @field_validator("deployments", mode="before")
    @classmethod
    def _unwrap_connection(cls, value: Any) -> List[Any]:
        return _nodes(value)


class Project(_Node):
    id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    team_id: Optional[str] = Field(None, alias="teamId")
    created_at: Optional[str] = Field(None, alias="createdAt")
    services: List[Service] = Field(default_factory=list)
    environments: List[Environment] = Field(default_factory=list)

    @field_validator("services", "environments", mode="before")
    @classmethod
    def _unwrap_connection(cls, value: Any) -> List[Any]:
        return _nodes(value)

    @property
    def volume_instance_count(self) -> int:
        return sum(len(env.volume_instances) for env in self.environments)


class Workspace(_Node):
    id: Optional[str] = None
    name: Optional[str] = None
    projects: List[Project] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _lift_team_projects(cls, data: Any) -> Any:
        if isinstance(data, dict) and "projects" not in data:
            team = data.get("team")
            if isinstance(team, dict):
                data = {**data, "projects": team.get("projects")}
        return data

    @field_validator("projects", mode="before")
    @classmethod
    def _unwrap_connection(cls, value: Any) -> List[Any]:
        return _nodes(value)


# ── Query roots ──────────────────────────────────────────────────

class WorkspaceTree(_Node):
    """Root of the projects and volumes queries: ``me.workspaces``."""

    workspaces: List[Workspace] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _lift_me(cls, data: Any) -> Any:
        if isinstance(data, dict) and "workspaces" not in data:
            me = data.get("me")
            return {"workspaces": me.get("workspaces") if isinstance(me, dict) else None}
        return data

    @field_validator("workspaces", mode="before")
    @classmethod
    def _unwrap_connection(cls, value: Any) -> List[Any]:
        return _nodes(value)


class DeploymentList(_Node):
    """Root of the latest-deployments query: ``deployments`` connection."""

    deployments: List[Deployment] = Field(default_factory=list)

    @field_validator("deployments", mode="before")
    @classmethod
    def _unwrap_connection(cls, value: Any) -> List[Any]:
        return _nodes(value)


class EventLogList(_Node):
    """Root of the event-logs query: ``environmentLogs`` list or connection."""

    logs: List[EventLogEntry] = Field(default_factory=list, alias="environmentLogs")

    @field_validator("logs", mode="before")
    @classmethod
    def _unwrap_connection(cls, value: Any) -> List[Any]:
        return _nodes(value)
