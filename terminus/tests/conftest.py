"""Shared fixtures for Terminus tests.

``FakeRailway`` answers GraphQL POSTs through ``httpx.MockTransport``,
keyed by the operation name of the query document, and records every
request it sees.
"""

from __future__ import annotations

import asyncio
import copy
import json
import re
from typing import Any, Dict, List, Optional

import httpx
import pytest

from terminus.core.railway.client import AsyncRailwayClient

TEST_API_URL = "https://railway.test/graphql/v2"
RAILWAY_TOKEN = "rw-test-token-1234"
AUTH_TOKEN = "terminus-secret-42"

_OPERATION_RE = re.compile(r"query\s+(\w+)")

TERMINUS_ENV_VARS = [
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


def run_async(coro):
    """Helper to run async coroutine in sync test."""
    return asyncio.run(coro)


def connection(*nodes: Dict[str, Any]) -> Dict[str, Any]:
    return {"edges": [{"node": node} for node in nodes]}


# ── Sample upstream payloads ─────────────────────────────────────
#
# Workspace "Acme"
#   Shop (proj-1): web, worker; production (env-prod), staging (env-stg)
#   Blog (proj-2): blog; production (env-blog-prod)


def projects_payload() -> Dict[str, Any]:
    return {
        "me": {
            "workspaces": [
                {
                    "id": "ws-1",
                    "name": "Acme",
                    "team": {
                        "id": "team-1",
                        "projects": connection(
                            {
                                "id": "proj-1",
                                "name": "Shop",
                                "services": connection(
                                    {"id": "svc-web", "name": "web"},
                                    {"id": "svc-worker", "name": "worker"},
                                ),
                                "environments": connection(
                                    {"id": "env-prod", "name": "production"},
                                    {"id": "env-stg", "name": "staging"},
                                ),
                            },
                            {
                                "id": "proj-2",
                                "name": "Blog",
                                "services": connection({"id": "svc-blog", "name": "blog"}),
                                "environments": connection(
                                    {"id": "env-blog-prod", "name": "production"},
                                ),
                            },
                        ),
                    },
                }
            ]
        }
    }


def deployments_payload() -> Dict[str, Any]:
    return {
        "deployments": connection(
            {
                "id": "d1", "status": "SUCCESS", "createdAt": "2026-10-18T08:00:00Z",
                "projectId": "proj-1", "serviceId": "svc-web", "environmentId": "env-prod",
                "environment": {"id": "env-prod", "name": "production"},
            },
            {
                "id": "d2", "status": "FAILED", "createdAt": "2026-10-18T09:00:00Z",
                "projectId": "proj-1", "serviceId": "svc-web", "environmentId": "env-prod",
                "environment": {"id": "env-prod", "name": "production"},
            },
            {
                "id": "d3", "status": "SUCCESS", "createdAt": "2026-10-17T12:00:00Z",
                "projectId": "proj-1", "serviceId": "svc-worker", "environmentId": "env-stg",
                "environment": {"id": "env-stg", "name": "staging"},
            },
            {
                "id": "d4", "status": "CRASHED", "createdAt": "2026-10-16T07:30:00Z",
                "projectId": "proj-2", "serviceId": "svc-blog", "environmentId": "env-blog-prod",
                "environment": {"id": "env-blog-prod", "name": "production"},
            },
        )
    }


def volumes_payload() -> Dict[str, Any]:
    return {
        "me": {
            "workspaces": [
                {
                    "id": "ws-1",
                    "name": "Acme",
                    "team": {
                        "projects": connection(
                            {
                                "id": "proj-1",
                                "name": "Shop",
                                "environments": connection(
                                    {
                                        "id": "env-prod",
                                        "name": "production",
                                        "volumeInstances": connection({
                                            "id": "vol-1", "mountPath": "/data",
                                            "currentSizeMB": 250.0, "sizeMB": 1000,
                                            "serviceId": "svc-web",
                                            "service": {"id": "svc-web", "name": "web"},
                                            "volume": {"name": "web-data"},
                                        }),
                                    },
                                    {
                                        "id": "env-stg",
                                        "name": "staging",
                                        "volumeInstances": connection({
                                            "id": "vol-2", "mountPath": "/queue",
                                            "currentSizeMB": 100.0, "sizeMB": 500,
                                            "serviceId": "svc-worker",
                                        }),
                                    },
                                ),
                            },
                            {
                                "id": "proj-2",
                                "name": "Blog",
                                "environments": connection(
                                    {
                                        "id": "env-blog-prod",
                                        "name": "production",
                                        "volumeInstances": connection({
                                            "id": "vol-3", "mountPath": "/var/lib/ghost",
                                            "currentSizeMB": 50.0, "sizeMB": 100,
                                            "serviceId": "svc-blog",
                                            "environmentId": "env-blog-prod",
                                        }),
                                    },
                                ),
                            },
                        )
                    },
                }
            ]
        }
    }


def event_logs_payload() -> Dict[str, Any]:
    return {
        "environmentLogs": [
            {"timestamp": "2026-10-18T07:00:00.123456789Z", "message": "[BACKUP-DONE] nightly", "severity": "INFO"},
            {"timestamp": "2026-10-18T09:30:00Z", "message": "[DEPLOY] web rolled out", "severity": "INFO"},
            {"timestamp": "2026-10-18T08:15:00Z", "message": "disk almost full on /queue volume!", "severity": "WARN"},
        ]
    }


def default_responses() -> Dict[str, Any]:
    return {
        "projectsServicesEnvironments": {"data": projects_payload()},
        "latestDeployments": {"data": deployments_payload()},
        "volumeUsage": {"data": volumes_payload()},
        "eventLogs": {"data": event_logs_payload()},
        "me": {"data": {"me": {"id": "user-1", "name": "Ada"}}},
        "userInfo": {"data": {"me": {"id": "user-1", "name": "Ada", "email": "ada@example.com"}}},
        "workspaces": {"data": {"me": {"workspaces": [
            {"id": "ws-1", "name": "Acme", "team": {"id": "team-1", "name": "Acme Team"}},
        ]}}},
        "projectsEnvironments": {"data": projects_payload()},
        "volumeInstances": {"data": volumes_payload()},
        "volumeSizes": {"data": volumes_payload()},
        "eventLogsDateRange": {"data": event_logs_payload()},
        "eventLogsSimple": {"data": event_logs_payload()},
    }


def graphql_error(message: str) -> Dict[str, Any]:
    return {"errors": [{"message": message}], "data": None}


class FakeRailway:
    """In-memory Railway GraphQL endpoint."""

    def __init__(self, responses: Optional[Dict[str, Any]] = None) -> None:
        self.responses = default_responses()
        if responses:
            self.responses.update(responses)
        self.requests: List[Dict[str, Any]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        match = _OPERATION_RE.search(body["query"])
        operation = match.group(1) if match else "anonymous"
        self.requests.append({
            "operation": operation,
            "variables": body.get("variables"),
            "authorization": request.headers.get("authorization"),
        })
        result = self.responses.get(operation)
        if result is None:
            return httpx.Response(200, json=graphql_error(f"no fixture for {operation}"))
        if isinstance(result, Exception):
            raise result
        return httpx.Response(200, json=copy.deepcopy(result))

    def operations(self) -> List[str]:
        return [r["operation"] for r in self.requests]

    def factory(self, token, logger=None) -> AsyncRailwayClient:
        return AsyncRailwayClient(
            token,
            api_url=TEST_API_URL,
            transport=httpx.MockTransport(self.handler),
            logger=logger,
        )


@pytest.fixture
def fake_railway():
    return FakeRailway()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every Terminus / Railway variable from the environment."""
    for var in TERMINUS_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch
