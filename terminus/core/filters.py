"""Client-side filtering of Railway query results.

Railway's API offers no server-side filtering for these queries, so every
result is pruned here after retrieval. Filters are a pure AND-composition of
three independent, optional predicates (project, service, environment).

Every function returns a new tree and leaves its input untouched; an empty
filter returns the input object itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from terminus.core.railway.models import (
    Deployment,
    DeploymentList,
    Environment,
    Project,
    Service,
    VolumeInstance,
    Workspace,
    WorkspaceTree,
)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class DashboardFilter:
    """Optional project / service / environment selection.

    Blank strings count as absent, so raw header values can be passed in.
    """

    project_id: Optional[str] = None
    service_id: Optional[str] = None
    environment_id: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "project_id", _blank_to_none(self.project_id))
        object.__setattr__(self, "service_id", _blank_to_none(self.service_id))
        object.__setattr__(self, "environment_id", _blank_to_none(self.environment_id))

    @property
    def is_empty(self) -> bool:
        return not (self.project_id or self.service_id or self.environment_id)

    @property
    def narrows_within_project(self) -> bool:
        """True when a service or environment constraint is active."""
        return bool(self.service_id or self.environment_id)

    def to_dict(self) -> dict:
        return {
            "projectId": self.project_id,
            "serviceId": self.service_id,
            "environmentId": self.environment_id,
        }


# ── Predicates ───────────────────────────────────────────────────

def _matches(expected: Optional[str], *candidates: Optional[str]) -> bool:
    if expected is None:
        return True
    return any(candidate == expected for candidate in candidates if candidate is not None)


def _deployment_in_environment(deployment: Deployment, flt: DashboardFilter) -> bool:
    # Deployments may carry the environment as an id or, on older shapes, a name.
    return _matches(flt.environment_id, deployment.environment_id, deployment.environment_name)


def _environment_matches(
    environment: Environment, flt: DashboardFilter, match_name: bool
) -> bool:
    if match_name:
        return _matches(flt.environment_id, environment.id, environment.name)
    return _matches(flt.environment_id, environment.id)


def _volume_matches(
    volume: VolumeInstance, environment: Environment, flt: DashboardFilter
) -> bool:
    if not _matches(flt.service_id, volume.service_id):
        return False
    owning_environment = volume.environment_id or environment.id
    return _matches(flt.environment_id, owning_environment)


# ── Tree walk ────────────────────────────────────────────────────

def _filter_service(service: Service, flt: DashboardFilter) -> Service:
    if flt.environment_id is None:
        return service
    kept = [d for d in service.deployments if _deployment_in_environment(d, flt)]
    return service.model_copy(update={"deployments": kept})


def _filter_environment(environment: Environment, flt: DashboardFilter) -> Environment:
    if not flt.narrows_within_project:
        return environment
    kept = [v for v in environment.volume_instances if _volume_matches(v, environment, flt)]
    return environment.model_copy(update={"volume_instances": kept})


def _filter_project(
    project: Project, flt: DashboardFilter, match_environment_name: bool
) -> Project:
    services = [
        _filter_service(s, flt)
        for s in project.services
        if _matches(flt.service_id, s.id)
    ]
    environments = [
        _filter_environment(e, flt)
        for e in project.environments
        if _environment_matches(e, flt, match_environment_name)
    ]
    return project.model_copy(update={"services": services, "environments": environments})


def _filter_workspace(
    workspace: Workspace,
    flt: DashboardFilter,
    match_environment_name: bool,
    prune_empty_volumes: bool,
) -> Workspace:
    projects: List[Project] = []
    for project in workspace.projects:
        if not _matches(flt.project_id, project.id):
            continue
        filtered = _filter_project(project, flt, match_environment_name)
        if (
            prune_empty_volumes
            and flt.narrows_within_project
            and filtered.volume_instance_count == 0
        ):
            continue
        projects.append(filtered)
    return workspace.model_copy(update={"projects": projects})


def filter_tree(
    tree: WorkspaceTree,
    flt: Optional[DashboardFilter],
    *,
    match_environment_name: bool = True,
    prune_empty_volumes: bool = False,
) -> WorkspaceTree:
    """Prune a workspace -> project -> {service, environment, volume} tree.

    Args:
        tree: Parsed projects or volumes query result
        flt: Selection; None or empty returns ``tree`` unchanged
        match_environment_name: Also accept an environment whose *name*
            equals ``environment_id`` (the id is sometimes supplied as a name)
        prune_empty_volumes: Drop projects left without volume instances,
            but only while a service or environment constraint is active
    """
    if flt is None or flt.is_empty:
        return tree
    workspaces = [
        _filter_workspace(ws, flt, match_environment_name, prune_empty_volumes)
        for ws in tree.workspaces
    ]
    return tree.model_copy(update={"workspaces": workspaces})


def filter_projects(tree: WorkspaceTree, flt: Optional[DashboardFilter]) -> WorkspaceTree:
    """Filter the projects/services/environments query result."""
    return filter_tree(tree, flt, match_environment_name=True)


def filter_volumes(tree: WorkspaceTree, flt: Optional[DashboardFilter]) -> WorkspaceTree:
    """Filter the volume-usage query result."""
    return filter_tree(
        tree, flt, match_environment_name=False, prune_empty_volumes=True
    )


def filter_deployment_nodes(
    deployments: Iterable[Deployment], flt: DashboardFilter
) -> List[Deployment]:
    return [
        d
        for d in deployments
        if _matches(flt.project_id, d.project_id)
        and _matches(flt.service_id, d.service_id)
        and _deployment_in_environment(d, flt)
    ]


def filter_deployments(
    result: DeploymentList, flt: Optional[DashboardFilter]
) -> DeploymentList:
    """Filter the flat latest-deployments query result by foreign keys."""
    if flt is None or flt.is_empty:
        return result
    return result.model_copy(
        update={"deployments": filter_deployment_nodes(result.deployments, flt)}
    )
