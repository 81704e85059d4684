"""Tests for HTML / JSON rendering of dashboard snapshots."""

from __future__ import annotations

import datetime

import pytest

from terminus.core.dashboard import (
    DashboardData,
    DashboardSnapshot,
    EventLogsInfo,
    QueryInfo,
)
from terminus.core.railway.models import DeploymentList, EventLogList, WorkspaceTree
from terminus.core.render import (
    DashboardRenderer,
    RenderError,
    escape_html,
    format_event_timestamp,
    format_timestamp,
    render_json,
    resolve_timezone,
)
from terminus.tests.conftest import (
    deployments_payload,
    event_logs_payload,
    projects_payload,
    volumes_payload,
)

SNAPSHOT_TIME = "2026-10-18T09:05:00.000Z"


def _snapshot(
    projects=None,
    deployments=None,
    with_logs: bool = True,
    logs_env: str = "env-prod",
) -> DashboardSnapshot:
    data = DashboardData(
        projects=WorkspaceTree.model_validate(projects or projects_payload()),
        deployments=DeploymentList.model_validate(deployments or deployments_payload()),
        volumes=WorkspaceTree.model_validate(volumes_payload()),
        event_logs=EventLogList.model_validate(event_logs_payload() if with_logs else {}),
        event_logs_environment_id=logs_env,
        event_logs_config=EventLogsInfo(max_entries=8, filter="<EVENT>"),
        filters={"projectId": None, "serviceId": None, "environmentId": None},
        query_info=QueryInfo(errors=[], event_logs_query_used="full" if logs_env else "skipped"),
    )
    return DashboardSnapshot(timestamp=SNAPSHOT_TIME, success=True, data=data)


class TestEscapeHtml:
    """Entity encoding used as the template finalizer."""

    def test_all_five(self) -> None:
        assert escape_html("<a href=\"x\">Tom & 'Jerry'</a>") == (
            "&lt;a href=&quot;x&quot;&gt;Tom &amp; &#39;Jerry&#39;&lt;/a&gt;"
        )

    def test_none_and_numbers(self) -> None:
        assert escape_html(None) == ""
        assert escape_html(42) == "42"


class TestTimestamps:
    """Display formatting in the configured zone."""

    def test_full_timestamp_utc(self) -> None:
        assert format_timestamp("2026-10-18T09:05:00Z") == "Oct 18, 2026, 09:05 AM UTC"

    def test_afternoon(self) -> None:
        assert format_timestamp("2026-10-18T21:30:00Z") == "Oct 18, 2026, 09:30 PM UTC"

    def test_event_timestamp_in_offset_zone(self) -> None:
        tz = datetime.timezone(datetime.timedelta(hours=2))
        assert format_event_timestamp("2026-10-18T09:05:00Z", tz) == "Oct 18, 11:05"

    def test_unparseable_passes_through(self) -> None:
        assert format_timestamp("soon") == "soon"
        assert format_event_timestamp(None) == ""

    @pytest.mark.parametrize("name", [None, "", "UTC", "utc", "Z"])
    def test_utc_names(self, name) -> None:
        assert resolve_timezone(name) is datetime.timezone.utc

    def test_invalid_zone_falls_back_to_utc(self, caplog) -> None:
        assert resolve_timezone("Mars/Olympus_Mons") is datetime.timezone.utc
        assert "Invalid timezone" in caplog.text


class TestRenderHtml:
    """The 800x470 dashboard page."""

    def test_header_and_panels(self) -> None:
        html = DashboardRenderer().render_html(_snapshot())
        assert "<h1>Railway Dashboard</h1>" in html
        assert "Acme / Shop" in html
        assert "Services (3)" in html
        assert "Volumes (3)" in html
        assert "Events (3)" in html
        assert 'content="width=800, initial-scale=1.0"' in html
        assert "Updated: Oct 18, 2026, 09:05 AM UTC" in html

    def test_service_boxes(self) -> None:
        html = DashboardRenderer().render_html(_snapshot())
        assert "FAILED" in html
        assert "CRASHED" in html
        assert "Oct 18, 09:00" in html
        assert 'class="service-box error"' in html

    def test_unrecognized_status_shown_as_unknown(self) -> None:
        payload = deployments_payload()
        payload["deployments"]["edges"][1]["node"]["status"] = "RESTARTING"
        html = DashboardRenderer().render_html(_snapshot(deployments=payload))
        assert "UNKNOWN" in html
        assert "RESTARTING" not in html

    def test_status_is_normalized(self) -> None:
        payload = deployments_payload()
        payload["deployments"]["edges"][1]["node"]["status"] = "failed"
        html = DashboardRenderer().render_html(_snapshot(deployments=payload))
        assert ">FAILED<" in html

    def test_volume_boxes(self) -> None:
        html = DashboardRenderer().render_html(_snapshot())
        assert "25%" in html
        assert "web-data" in html
        assert "Vol 2" in html
        assert "250.00/1000MB" in html

    def test_event_actions_newest_first(self) -> None:
        html = DashboardRenderer().render_html(_snapshot())
        assert html.index("DEPLOY") < html.index("disk almost full") < html.index("BACKUP-DONE")
        assert "disk almost full on /queue vol..." in html
        assert 'class="log-entry WARN"' in html

    def test_overflow_markers(self) -> None:
        renderer = DashboardRenderer(max_services=2, max_volumes=1, max_events=2)
        html = renderer.render_html(_snapshot())
        assert html.count("+1 more") == 2
        assert "+2 more" in html

    def test_no_logs_with_environment(self) -> None:
        html = DashboardRenderer().render_html(_snapshot(with_logs=False))
        assert "No recent events" in html

    def test_no_logs_without_environment(self) -> None:
        html = DashboardRenderer().render_html(_snapshot(with_logs=False, logs_env=None))
        assert "No environment ID configured" in html

    def test_no_volumes(self) -> None:
        snapshot = _snapshot()
        data = snapshot.data.model_copy(update={"volumes": WorkspaceTree()})
        html = DashboardRenderer().render_html(snapshot.model_copy(update={"data": data}))
        assert "No volumes configured" in html

    def test_names_are_escaped(self) -> None:
        payload = projects_payload()
        project = payload["me"]["workspaces"][0]["team"]["projects"]["edges"][0]["node"]
        project["name"] = "<Shop & Co>"
        html = DashboardRenderer().render_html(_snapshot(projects=payload))
        assert "&lt;Shop &amp; Co&gt;" in html
        assert "<Shop & Co>" not in html

    def test_timezone(self) -> None:
        tz = datetime.timezone(datetime.timedelta(hours=-5), "EST")
        html = DashboardRenderer(timezone=tz).render_html(_snapshot())
        assert "Updated: Oct 18, 2026, 04:05 AM EST" in html

    def test_error_page(self) -> None:
        snapshot = DashboardSnapshot(
            timestamp=SNAPSHOT_TIME,
            success=False,
            error={"message": "RAILWAY_TOKEN is required", "type": "API_ERROR"},
        )
        html = DashboardRenderer().render_html(snapshot)
        assert "Railway Service Dashboard" in html
        assert "Railway API Unavailable" in html
        assert "RAILWAY_TOKEN is required" in html
        assert "API_ERROR" in html
        assert "Last updated: Oct 18, 2026, 09:05 AM UTC" in html

    def test_missing_templates_raise_render_error(self, tmp_path) -> None:
        renderer = DashboardRenderer(templates_dir=tmp_path)
        with pytest.raises(RenderError, match="Failed to render dashboard"):
            renderer.render_html(_snapshot())


class TestRenderJson:
    """The /api/data document."""

    def test_camel_case_keys(self) -> None:
        doc = render_json(_snapshot())
        assert doc["success"] is True
        assert doc["timestamp"] == SNAPSHOT_TIME
        data = doc["data"]
        assert data["eventLogsEnvironmentId"] == "env-prod"
        assert data["eventLogsConfig"] == {"maxEntries": 8, "filter": "<EVENT>"}
        assert data["queryInfo"] == {"errors": [], "eventLogsQueryUsed": "full"}
        assert len(data["eventLogs"]["environmentLogs"]) == 3
        deployment = data["deployments"]["deployments"][0]
        assert deployment["createdAt"] == "2026-10-18T08:00:00Z"
        assert deployment["serviceId"] == "svc-web"

    def test_connections_are_plain_lists(self) -> None:
        doc = render_json(_snapshot())
        project = doc["data"]["projects"]["workspaces"][0]["projects"][0]
        assert [s["name"] for s in project["services"]] == ["web", "worker"]

    def test_failure_has_no_data(self) -> None:
        doc = DashboardRenderer().render_json(DashboardSnapshot.failure("boom"))
        assert doc["success"] is False
        assert doc["error"] == {"message": "boom", "type": "API_ERROR"}
        assert "data" not in doc
