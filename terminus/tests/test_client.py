"""Tests for AsyncRailwayClient.

All traffic goes through httpx.MockTransport; nothing leaves the process.
"""

from __future__ import annotations

import logging

import httpx
import pytest

from terminus.core.debug import capture_logs
from terminus.core.railway import (
    AsyncRailwayClient,
    ConfigError,
    NetworkError,
    ParseError,
    UpstreamQueryError,
)
from terminus.core.railway import queries
from terminus.tests.conftest import (
    RAILWAY_TOKEN,
    TEST_API_URL,
    FakeRailway,
    graphql_error,
    run_async,
)


def _client(handler, logger=None) -> AsyncRailwayClient:
    return AsyncRailwayClient(
        RAILWAY_TOKEN,
        api_url=TEST_API_URL,
        transport=httpx.MockTransport(handler),
        logger=logger,
    )


async def _query(client: AsyncRailwayClient, name: str = "Probe"):
    async with client:
        return await client.query("query probe { me { id } }", {}, name)


class TestClientBasics:
    """Construction and request shape."""

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing_token_raises_config_error(self, token) -> None:
        with pytest.raises(ConfigError, match="RAILWAY_TOKEN is required"):
            AsyncRailwayClient(token)

    def test_headers(self) -> None:
        client = AsyncRailwayClient(RAILWAY_TOKEN)
        headers = client._headers()
        assert headers["Authorization"] == f"Bearer {RAILWAY_TOKEN}"
        assert headers["Content-Type"] == "application/json"
        run_async(client.aclose())

    def test_posts_query_and_variables(self, fake_railway: FakeRailway) -> None:
        async def go():
            async with fake_railway.factory(RAILWAY_TOKEN) as client:
                await client.fetch_deployments()
        run_async(go())

        assert fake_railway.requests == [{
            "operation": "latestDeployments",
            "variables": {"first": 4},
            "authorization": f"Bearer {RAILWAY_TOKEN}",
        }]

    def test_event_logs_variables(self, fake_railway: FakeRailway) -> None:
        async def go():
            async with fake_railway.factory(RAILWAY_TOKEN) as client:
                return await client.fetch_event_logs("env-prod", "<EVENT>", 5)
        logs = run_async(go())

        assert len(logs.logs) == 3
        assert fake_railway.requests[0]["variables"] == {
            "environmentId": "env-prod",
            "filter": "<EVENT>",
            "afterLimit": 5,
        }


class TestTypedFetches:
    """Typed helpers parse into the response models."""

    def test_fetch_projects(self, fake_railway: FakeRailway) -> None:
        async def go():
            async with fake_railway.factory(RAILWAY_TOKEN) as client:
                return await client.fetch_projects()
        tree = run_async(go())
        assert [p.id for p in tree.workspaces[0].projects] == ["proj-1", "proj-2"]

    def test_fetch_volumes(self, fake_railway: FakeRailway) -> None:
        async def go():
            async with fake_railway.factory(RAILWAY_TOKEN) as client:
                return await client.fetch_volumes()
        tree = run_async(go())
        env = tree.workspaces[0].projects[0].environments[0]
        assert env.volume_instances[0].volume_name == "web-data"
        assert env.volume_instances[0].service_name == "web"


class TestClientErrors:
    """Every failure mode maps onto a RailwayError subclass."""

    def test_graphql_errors(self) -> None:
        client = _client(lambda req: httpx.Response(200, json=graphql_error("Not Authorized")))
        with pytest.raises(UpstreamQueryError) as exc_info:
            run_async(_query(client, "Projects"))
        assert exc_info.value.errors == ["Not Authorized"]
        assert exc_info.value.query_name == "Projects"
        assert str(exc_info.value).startswith("Projects query failed - Railway API Error: Not Authorized")

    def test_http_error_status_without_errors(self) -> None:
        client = _client(lambda req: httpx.Response(502, json={"message": "bad gateway"}))
        with pytest.raises(UpstreamQueryError) as exc_info:
            run_async(_query(client))
        assert exc_info.value.errors == ["HTTP 502"]

    def test_non_json_body(self) -> None:
        client = _client(lambda req: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(ParseError) as exc_info:
            run_async(_query(client))
        assert "Raw response: <html>oops</html>" in exc_info.value.message

    def test_raw_body_is_capped_in_message(self) -> None:
        client = _client(lambda req: httpx.Response(200, text="x" * 1000))
        with pytest.raises(ParseError) as exc_info:
            run_async(_query(client))
        assert "x" * 201 not in exc_info.value.message

    def test_non_object_json(self) -> None:
        client = _client(lambda req: httpx.Response(200, json=[1, 2, 3]))
        with pytest.raises(ParseError):
            run_async(_query(client))

    def test_network_failure(self) -> None:
        def boom(request):
            raise httpx.ConnectError("connection refused")

        client = _client(boom)
        with pytest.raises(NetworkError, match="connection refused"):
            run_async(_query(client))

    def test_token_is_redacted_from_raw_body(self) -> None:
        echoed = {"errors": [{"message": "bad token"}], "token": RAILWAY_TOKEN}
        client = _client(lambda req: httpx.Response(200, json=echoed))
        with pytest.raises(UpstreamQueryError) as exc_info:
            run_async(_query(client))
        assert RAILWAY_TOKEN not in exc_info.value.raw_body
        assert RAILWAY_TOKEN not in str(exc_info.value)


class TestClientLogging:
    """Progress lines go to the logger passed in."""

    def test_query_progress_lines(self, fake_railway: FakeRailway) -> None:
        async def go(logger):
            async with fake_railway.factory(RAILWAY_TOKEN, logger=logger) as client:
                await client.fetch_projects()

        with capture_logs("client-test") as (logger, capture):
            run_async(go(logger))

        messages = [line["message"] for line in capture.lines]
        assert messages == [
            "Executing Projects, Services, and Environments query...",
            "Projects, Services, and Environments query successful",
        ]

    def test_default_logger(self) -> None:
        client = AsyncRailwayClient(RAILWAY_TOKEN)
        assert client._logger is logging.getLogger("terminus.railway")
        run_async(client.aclose())


class TestQueryAssets:
    """GraphQL documents ship as package data."""

    @pytest.mark.parametrize("name,operation", [
        (queries.PROJECTS, "projectsServicesEnvironments"),
        (queries.DEPLOYMENTS, "latestDeployments"),
        (queries.VOLUMES, "volumeUsage"),
        (queries.EVENT_LOGS, "eventLogs"),
        (queries.USER_INFO, "userInfo"),
        (queries.EVENT_LOGS_SIMPLE, "eventLogsSimple"),
    ])
    def test_documents_load(self, name, operation) -> None:
        assert f"query {operation}" in queries.load_query(name)

    def test_missing_document(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError, match="nope.gql"):
            queries.load_query("nope", str(tmp_path))
