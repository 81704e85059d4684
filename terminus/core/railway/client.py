"""AsyncRailwayClient: asynchronous client for the Railway GraphQL API.

Requires: pip install httpx
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from terminus.core.railway import queries
from terminus.core.railway.errors import (
    ConfigError,
    NetworkError,
    ParseError,
    UpstreamQueryError,
)
from terminus.core.railway.models import DeploymentList, EventLogList, WorkspaceTree
from terminus.core.secrets import redact_text

RAILWAY_API_URL = "https://backboard.railway.com/graphql/v2"

# Query names double as the labels reported in queryInfo.errors
PROJECTS_QUERY_NAME = "Projects, Services, and Environments"
DEPLOYMENTS_QUERY_NAME = "Latest Deployments"
VOLUMES_QUERY_NAME = "Volume Usage"
EVENT_LOGS_QUERY_NAME = "Event Logs"

M = TypeVar("M", bound=BaseModel)


class AsyncRailwayClient:
    """Asynchronous client for the Railway GraphQL API.

    Usage::

        import asyncio
        from terminus.core.railway import AsyncRailwayClient

        async def main():
            async with AsyncRailwayClient(token="...") as client:
                tree = await client.fetch_projects()
                print([ws.name for ws in tree.workspaces])

        asyncio.run(main())

    Every call is a single POST; there is no retry. Failures surface as
    ``NetworkError``, ``ParseError`` or ``UpstreamQueryError``.
    """

    def __init__(
        self,
        token: Optional[str],
        api_url: str = RAILWAY_API_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """Initialize client.

        Args:
            token: Railway API token (account or team token)
            api_url: GraphQL endpoint
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
            logger: Logger receiving per-query progress lines
        """
        if not token:
            raise ConfigError("RAILWAY_TOKEN is required")
        self._token = token
        self._api_url = api_url
        self._timeout = timeout
        self._logger = logger or logging.getLogger("terminus.railway")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    # ── Internal helpers ─────────────────────────────────────────

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._token}",
        }

    def _redact(self, text: str) -> str:
        return redact_text(text, [self._token])

    def _parse_response(self, resp: httpx.Response, name: str) -> Dict[str, Any]:
        raw = self._redact(resp.text)
        try:
            body = resp.json()
        except ValueError as e:
            raise ParseError(
                f"Failed to parse response: {e}. Raw response: {raw[:200]}",
                name,
                raw,
            )
        if not isinstance(body, dict):
            raise ParseError(
                f"Expected a JSON object. Raw response: {raw[:200]}", name, raw
            )

        errors = body.get("errors")
        if errors:
            messages = [
                self._redact(err.get("message", str(err)) if isinstance(err, dict) else str(err))
                for err in (errors if isinstance(errors, list) else [errors])
            ]
            raise UpstreamQueryError(messages, name, raw)
        if resp.status_code >= 400:
            raise UpstreamQueryError([f"HTTP {resp.status_code}"], name, raw)

        data = body.get("data")
        return data if isinstance(data, dict) else {}

    def _validate(self, model: Type[M], data: Dict[str, Any], name: str) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ParseError(f"Unexpected response shape: {e}", name)

    # ── Public API ───────────────────────────────────────────────

    async def query(
        self,
        document: str,
        variables: Optional[Dict[str, Any]] = None,
        name: str = "Unknown",
    ) -> Dict[str, Any]:
        """POST one GraphQL document and return its ``data`` object verbatim."""
        self._logger.info("Executing %s query...", name)
        try:
            resp = await self._client.post(
                self._api_url,
                json={"query": document, "variables": variables or {}},
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"Network error: {self._redact(str(e))}", name)

        data = self._parse_response(resp, name)
        self._logger.info("%s query successful", name)
        return data

    async def fetch_projects(self) -> WorkspaceTree:
        """Workspaces -> projects -> services and environments."""
        data = await self.query(
            queries.load_query(queries.PROJECTS), {}, PROJECTS_QUERY_NAME
        )
        return self._validate(WorkspaceTree, data, PROJECTS_QUERY_NAME)

    async def fetch_deployments(self, first: int = 4) -> DeploymentList:
        """Most recent deployments across every project the token can see."""
        data = await self.query(
            queries.load_query(queries.DEPLOYMENTS),
            {"first": first},
            DEPLOYMENTS_QUERY_NAME,
        )
        return self._validate(DeploymentList, data, DEPLOYMENTS_QUERY_NAME)

    async def fetch_volumes(self) -> WorkspaceTree:
        """Workspaces -> projects -> environments -> volume instances."""
        data = await self.query(
            queries.load_query(queries.VOLUMES), {}, VOLUMES_QUERY_NAME
        )
        return self._validate(WorkspaceTree, data, VOLUMES_QUERY_NAME)

    async def fetch_event_logs(
        self,
        environment_id: str,
        log_filter: str = "",
        limit: int = 8,
    ) -> EventLogList:
        """Most recent environment log lines matching ``log_filter``."""
        data = await self.query(
            queries.load_query(queries.EVENT_LOGS),
            {
                "environmentId": environment_id,
                "filter": log_filter,
                "afterLimit": limit,
            },
            EVENT_LOGS_QUERY_NAME,
        )
        return self._validate(EventLogList, data, EVENT_LOGS_QUERY_NAME)

    # ── Context Manager ─────────────────────────────────────────

    async def __aenter__(self) -> "AsyncRailwayClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
