"""Public QR reporting: GET/POST /v1/report/{asset_id} without authentication."""

from postgrest.types import ReturnMethod

from tests.fakes import FakeBackend


def _report(client, asset_id, query="", **overrides):
    body = {"title": "Water leak", "description": "Dripping from the valve"}
    body.update(overrides)
    return client.post(f"/v1/report/{asset_id}{query}", json=body)


class TestReportPage:
    def test_page_shows_fetched_asset(self, client, backend: FakeBackend, owner):
        asset = backend.add_asset(owner["org_id"], serial_number="SN-1")

        response = client.get(
            f"/v1/report/{asset['id']}?name=Boiler&location=Roof&orgId={owner['org_id']}"
        )

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "ready"
        assert data["asset"] == {
            "id": asset["id"],
            "name": "Boiler #2",
            "location": "Basement",
            "serial_number": "SN-1",
        }
        assert data["hints"] == {"name": "Boiler", "location": "Roof", "org_id": owner["org_id"]}
        assert data["display_name"] == "Boiler #2"
        assert data["display_location"] == "Basement"

    def test_hints_default_when_missing(self, client, backend: FakeBackend, owner):
        asset = backend.add_asset(owner["org_id"], location=None)

        data = client.get(f"/v1/report/{asset['id']}").json()

        assert data["hints"] == {"name": "Unknown Asset", "location": "Unknown Location", "org_id": ""}
        assert data["display_location"] == "Unknown Location"

    def test_unknown_asset_offers_reload(self, client):
        response = client.get("/v1/report/does-not-exist?name=Boiler")

        assert response.status_code == 404
        data = response.json()
        assert data["retry"] == "reload"
        assert data["detail"].startswith("Could not verify asset details.")

    def test_fetch_failure_is_not_found(self, client, backend: FakeBackend, owner):
        asset = backend.add_asset(owner["org_id"])
        backend.db.fail("assets", "select", "connection reset")

        response = client.get(f"/v1/report/{asset['id']}")

        assert response.status_code == 404
        assert response.json()["retry"] == "reload"

    def test_page_uses_anonymous_access(self, client, backend: FakeBackend, owner):
        asset = backend.add_asset(owner["org_id"])

        client.get(f"/v1/report/{asset['id']}", headers=owner["headers"])

        assert backend.table_tokens == [None]


class TestReportSubmit:
    def test_submit_creates_open_issue(self, client, backend: FakeBackend, owner):
        asset = backend.add_asset(owner["org_id"])

        response = _report(
            client,
            asset["id"],
            priority="high",
            reporter_name="Sam",
            reporter_email="sam@example.test",
        )

        assert response.status_code == 201
        data = response.json()
        assert data["state"] == "submitted"
        assert data["message"] == "Thank you! Your report for Boiler #2 has been submitted."

        [issue] = backend.db.all("issues")
        assert issue["id"] == data["issue_id"]
        assert issue["org_id"] == owner["org_id"]
        assert issue["asset_id"] == asset["id"]
        assert issue["status"] == "open"
        assert issue["priority"] == "high"
        assert issue["description"] == (
            "Dripping from the valve\n\n---\nReported by: Sam\nContact: sam@example.test"
        )

    def test_anonymous_insert_reads_nothing_back(self, client, backend: FakeBackend, owner):
        asset = backend.add_asset(owner["org_id"])

        response = _report(client, asset["id"])

        assert response.status_code == 201
        assert backend.db.insert_returning == [("issues", ReturnMethod.minimal)]
        assert backend.table_tokens == [None]

    def test_organization_comes_from_asset_not_hint(self, client, backend: FakeBackend, owner):
        asset = backend.add_asset(owner["org_id"])

        _report(client, asset["id"], query="?orgId=00000000-0000-0000-0000-000000000000&name=Fake")

        [issue] = backend.db.all("issues")
        assert issue["org_id"] == owner["org_id"]

    def test_each_report_gets_distinct_reporter(self, client, backend: FakeBackend, owner):
        asset = backend.add_asset(owner["org_id"])

        _report(client, asset["id"])
        _report(client, asset["id"])

        reporters = {issue["reported_by"] for issue in backend.db.all("issues")}
        assert len(reporters) == 2
        assert owner["user_id"] not in reporters

    def test_anonymous_footer_defaults(self, client, backend: FakeBackend, owner):
        asset = backend.add_asset(owner["org_id"])

        _report(client, asset["id"])

        [issue] = backend.db.all("issues")
        assert issue["description"].endswith("Reported by: Anonymous\nContact: N/A")
        assert issue["priority"] == "medium"

    def test_blank_description_rejected_before_insert(self, client, backend: FakeBackend, owner):
        asset = backend.add_asset(owner["org_id"])

        response = _report(client, asset["id"], description="   ")

        assert response.status_code == 422
        assert backend.db.all("issues") == []

    def test_asset_without_organization(self, client, backend: FakeBackend):
        asset = backend.db.seed("assets", {"name": "Orphan", "org_id": None})

        response = _report(client, asset["id"])

        assert response.status_code == 422
        assert response.json()["detail"] == "Missing asset organization information."
        assert backend.db.all("issues") == []

    def test_insert_rejection_is_returned_verbatim(self, client, backend: FakeBackend, owner):
        asset = backend.add_asset(owner["org_id"])
        backend.db.fail("issues", "insert", "new row violates row-level security policy for table \"issues\"")

        response = _report(client, asset["id"])

        assert response.status_code == 502
        assert response.json()["detail"] == (
            "new row violates row-level security policy for table \"issues\""
        )

    def test_unknown_asset_cannot_be_reported(self, client, backend: FakeBackend):
        response = _report(client, "missing")

        assert response.status_code == 404
        assert backend.db.all("issues") == []
