"""Dashboard stats, live socket, report summary and settings."""

from datetime import datetime, timedelta, timezone

import pytest
from starlette.websockets import WebSocketDisconnect

from tests.fakes import FakeBackend, FakeIssueFeed


def _iso(delta: timedelta) -> str:
    return (datetime.now(timezone.utc) + delta).isoformat()


@pytest.fixture
def populated(backend: FakeBackend, owner) -> dict:
    org_id = owner["org_id"]
    backend.add_asset(org_id, name="Boiler")
    backend.add_asset(org_id, name="Chiller")
    backend.add_issue(org_id, title="Open critical", priority="critical")
    backend.add_issue(org_id, title="In progress", status="in_progress")
    backend.add_issue(org_id, title="Closed critical", priority="critical", status="closed")
    backend.add_issue(
        org_id,
        title="Resolved recently",
        status="resolved",
        created_at=_iso(timedelta(days=-3)),
        resolved_at=_iso(timedelta(days=-1)),
    )
    backend.add_issue(
        org_id,
        title="Resolved long ago",
        status="resolved",
        created_at=_iso(timedelta(days=-30)),
        resolved_at=_iso(timedelta(days=-20)),
    )
    rival = backend.add_member("rival@other.test", org_name="Other Co")
    backend.add_asset(rival["org_id"], name="Not ours")
    backend.add_issue(rival["org_id"], title="Not ours", priority="critical")
    return owner


class TestDashboard:
    def test_stats(self, client, populated):
        response = client.get("/v1/dashboard", headers=populated["headers"])

        assert response.status_code == 200
        data = response.json()
        assert data["organization_name"] == "Acme Facilities"
        assert data["total_assets"] == 2
        assert data["active_issues"] == 2
        assert data["critical_alerts"] == 1
        assert data["resolved_this_week"] == 1
        assert len(data["recent_issues"]) == 5
        assert all(issue["org_id"] == populated["org_id"] for issue in data["recent_issues"])

    def test_empty_organization(self, client, owner):
        data = client.get("/v1/dashboard", headers=owner["headers"]).json()

        assert data["total_assets"] == 0
        assert data["recent_issues"] == []


class TestLiveDashboard:
    def test_rejects_missing_token(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/v1/dashboard/live"):
                pass

        assert exc_info.value.code == 4401

    def test_rejects_member_without_organization(self, client, backend: FakeBackend):
        member = backend.add_member("solo@acme.test", org_name=None)

        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"/v1/dashboard/live?access_token={member['token']}"):
                pass

        assert exc_info.value.code == 4403
        assert backend.feed.opened == []

    def test_pushes_stats_on_each_change_then_releases(self, client, backend: FakeBackend, owner):
        backend.feed = FakeIssueFeed(changes=[{"eventType": "INSERT"}, {"eventType": "UPDATE"}])

        with client.websocket_connect(f"/v1/dashboard/live?access_token={owner['token']}") as ws:
            initial = ws.receive_json()
            assert initial["organization_name"] == "Acme Facilities"
            assert initial["active_issues"] == 0

            first = ws.receive_json()
            second = ws.receive_json()
            assert first["total_assets"] == second["total_assets"] == 0

            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()
            assert exc_info.value.code == 1000

        assert backend.feed.opened == [(owner["org_id"], owner["token"])]
        assert backend.feed.released == 1

    def test_client_disconnect_releases_feed(self, client, backend: FakeBackend, owner):
        backend.feed = FakeIssueFeed(hold_open=True)

        with client.websocket_connect(f"/v1/dashboard/live?access_token={owner['token']}") as ws:
            ws.receive_json()

        assert backend.feed.released == 1

    def test_feed_error_closes_socket_and_releases_feed(self, client, backend: FakeBackend, owner):
        backend.feed = FakeIssueFeed(changes=[{"eventType": "INSERT"}], fail_with="channel error")

        with client.websocket_connect(f"/v1/dashboard/live?access_token={owner['token']}") as ws:
            ws.receive_json()
            ws.receive_json()

            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()
            assert exc_info.value.code == 1011

        assert backend.feed.released == 1


class TestReportSummary:
    def test_summary(self, client, populated):
        data = client.get("/v1/reports/summary", headers=populated["headers"]).json()

        assert data["total_issues"] == 5
        assert data["resolved_issues"] == 2
        assert data["by_status"] == {"open": 1, "in_progress": 1, "resolved": 2, "closed": 1}
        assert data["by_priority"] == {"low": 0, "medium": 3, "high": 0, "critical": 2}
        # (2 days + 10 days) / 2
        assert data["avg_resolution_days"] == 6.0

    def test_no_resolved_issues(self, client, owner):
        data = client.get("/v1/reports/summary", headers=owner["headers"]).json()

        assert data["total_issues"] == 0
        assert data["avg_resolution_days"] is None


class TestSettings:
    def test_update_own_profile(self, client, backend: FakeBackend, owner):
        response = client.patch(
            "/v1/settings/profile", json={"full_name": "Jane Q. Doe"}, headers=owner["headers"]
        )

        assert response.status_code == 200
        assert response.json()["full_name"] == "Jane Q. Doe"

    def test_owner_renames_organization(self, client, owner):
        response = client.patch(
            "/v1/settings/organization", json={"name": "Acme Holdings"}, headers=owner["headers"]
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Acme Holdings"

    def test_member_cannot_rename_organization(self, client, backend: FakeBackend, owner):
        member = backend.join("tech@acme.test", owner["org_id"], role="member")

        response = client.patch(
            "/v1/settings/organization", json={"name": "Hijacked"}, headers=member["headers"]
        )

        assert response.status_code == 403
        assert response.json()["type"].endswith("/insufficient-role")
        assert backend.db.all("organizations")[0]["name"] == "Acme Facilities"
