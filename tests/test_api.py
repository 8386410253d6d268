"""Tests for the registry REST API."""

import json
import logging

import pytest
from fastapi.testclient import TestClient

from bluecarbon.registry.api.app import create_app
from bluecarbon.registry.config import RegistryConfig

from conftest import (
    ADMIN,
    COLLECTOR,
    OUTSIDER,
    OWNER,
    VERIFIER,
    mrv_payload,
    project_payload,
    stakeholder_payload,
)


def _create_project(client, **overrides):
    response = client.post("/api/projects", json=project_payload(**overrides))
    assert response.status_code == 201
    return response.json()["project"]


def _set_status(client, project_id, action, address=ADMIN, reason=None):
    body = {"action": action, "adminAddress": address}
    if reason:
        body["reason"] = reason
    return client.put(f"/api/projects/{project_id}/status", json=body)


class TestHealth:

    def test_health(self, api_client):
        body = api_client.get("/api/health").json()
        assert body["status"] == "healthy"
        assert body["version"] == "1.0.0"

    def test_unknown_route(self, api_client):
        response = api_client.get("/api/carbon-credits")
        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}

    def test_metrics(self, api_client):
        _create_project(api_client)
        response = api_client.get("/metrics")

        assert response.status_code == 200
        assert "bc_registry_operations_total" in response.text
        assert "bc_registry_records" in response.text


class TestProjectEndpoints:

    def test_create(self, api_client):
        response = api_client.post("/api/projects", json=project_payload())

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["project"]["status"] == "pending"

    def test_create_invalid(self, api_client):
        response = api_client.post("/api/projects", json=project_payload(area=0, name=""))

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Validation failed"
        assert {d["field"] for d in body["details"]} == {"area", "name"}
        assert api_client.get("/api/projects").json()["pagination"]["totalItems"] == 0

    def test_get(self, api_client):
        project = _create_project(api_client)
        assert api_client.get(f"/api/projects/{project['id']}").json()["project"] == project

    def test_get_unknown(self, api_client):
        response = api_client.get("/api/projects/missing")
        assert response.status_code == 404
        assert response.json()["error_type"] == "NotFoundError"

    def test_list_filters_and_pagination(self, api_client):
        for i in range(3):
            _create_project(api_client, name=f"Seagrass meadow {i}", ecosystemType="seagrass")
        _create_project(api_client)

        body = api_client.get(
            "/api/projects", params={"ecosystemType": "seagrass", "limit": 2, "page": 2},
        ).json()
        assert len(body["projects"]) == 1
        assert body["pagination"]["totalItems"] == 3
        assert body["pagination"]["hasPrev"] is True

    @pytest.mark.parametrize("params", [{"page": 0}, {"limit": 500}])
    def test_list_bad_paging(self, api_client, params):
        response = api_client.get("/api/projects", params=params)
        assert response.status_code == 400
        assert response.json()["details"][0]["field"] in ("page", "limit")

    def test_approve_returns_statistics(self, api_client):
        project = _create_project(api_client)
        response = _set_status(api_client, project["id"], "approve")

        assert response.status_code == 200
        body = response.json()
        assert body["project"]["status"] == "active"
        assert body["statistics"]["totalAreaUnderRestoration"] == 250.5

    def test_verifier_cannot_approve(self, api_client):
        project = _create_project(api_client)
        response = _set_status(api_client, project["id"], "approve", address=VERIFIER)

        assert response.status_code == 403
        assert response.json()["context"]["required_role"] == "admin"

    def test_unlisted_address_is_forbidden(self, api_client):
        project = _create_project(api_client)
        response = _set_status(api_client, project["id"], "verify", address=OUTSIDER)
        assert response.status_code == 403

    def test_double_verify(self, api_client):
        project = _create_project(api_client)
        assert _set_status(api_client, project["id"], "verify", VERIFIER).status_code == 200

        response = _set_status(api_client, project["id"], "verify", VERIFIER)
        assert response.status_code == 400
        assert response.json()["error_type"] == "InvalidTransitionError"

    def test_unknown_action(self, api_client):
        project = _create_project(api_client)
        response = _set_status(api_client, project["id"], "archive")
        assert response.status_code == 400

    def test_target_state(self, api_client):
        project = _create_project(api_client)
        response = api_client.put(
            f"/api/projects/{project['id']}/status",
            json={"targetState": "active", "adminAddress": ADMIN},
        )
        assert response.status_code == 200
        assert response.json()["project"]["status"] == "active"

    def test_action_or_target_required(self, api_client):
        project = _create_project(api_client)
        response = api_client.put(
            f"/api/projects/{project['id']}/status", json={"adminAddress": ADMIN},
        )
        assert response.status_code == 400
        current = api_client.get(f"/api/projects/{project['id']}").json()["project"]
        assert current["status"] == "pending"

    def test_mobile_projects(self, api_client):
        project = _create_project(api_client)
        assert api_client.get("/api/mobile/projects").json()["projects"] == []

        _set_status(api_client, project["id"], "approve")
        feed = api_client.get("/api/mobile/projects").json()["projects"]
        assert [p["id"] for p in feed] == [project["id"]]


class TestStakeholderEndpoints:

    def test_register_and_approve(self, api_client):
        response = api_client.post("/api/stakeholders", json=stakeholder_payload())
        assert response.status_code == 201
        stakeholder = response.json()["stakeholder"]

        response = api_client.put(
            f"/api/stakeholders/{COLLECTOR}/approve", json={"adminAddress": ADMIN},
        )
        assert response.status_code == 200
        assert response.json()["stakeholder"]["approved"] is True

        listed = api_client.get("/api/stakeholders", params={"approved": "true"}).json()
        assert [s["id"] for s in listed["stakeholders"]] == [stakeholder["id"]]

    def test_invalid_name(self, api_client):
        response = api_client.post("/api/stakeholders", json=stakeholder_payload(name="R2D2"))
        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "name"

    def test_unknown(self, api_client):
        assert api_client.get(f"/api/stakeholders/{OUTSIDER}").status_code == 404


class TestMRVFlow:

    def test_submit_verify_updates_credits(self, api_client):
        api_client.post("/api/stakeholders", json=stakeholder_payload())
        project = _create_project(api_client)
        _set_status(api_client, project["id"], "approve")

        response = api_client.post("/api/mrv-data", json=mrv_payload(project["id"], 12.5))
        assert response.status_code == 201
        data_id = response.json()["dataId"]

        response = api_client.put(
            f"/api/mrv-data/{data_id}/verify",
            json={"action": "verify", "adminAddress": VERIFIER},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["data"]["status"] == "verified"
        assert body["statistics"]["totalCarbonSequestered"] == 12.5

        project = api_client.get(f"/api/projects/{project['id']}").json()["project"]
        assert project["actualCredits"] == 12.5
        stakeholder = api_client.get(f"/api/stakeholders/{COLLECTOR}").json()["stakeholder"]
        assert stakeholder["reputationScore"] == 110

    def test_submit_against_pending_project(self, api_client):
        project = _create_project(api_client)
        response = api_client.post("/api/mrv-data", json=mrv_payload(project["id"], 1))
        assert response.status_code == 400
        assert response.json()["error_type"] == "InvalidTransitionError"

    def test_bad_coordinates(self, api_client):
        project = _create_project(api_client)
        response = api_client.post(
            "/api/mrv-data", json=mrv_payload(project["id"], 1, coordinates="north"),
        )
        assert response.status_code == 400

    @pytest.mark.parametrize("overrides", [
        {"carbonSequestration": float("inf")},
        {"measurements": {"salinity": float("nan")}},
    ])
    def test_non_finite_values_rejected(self, api_client, overrides):
        project = _create_project(api_client)
        _set_status(api_client, project["id"], "approve")
        # json.dumps writes Infinity / NaN literals, which the server parser accepts
        body = json.dumps(mrv_payload(project["id"], 1, **overrides))

        response = api_client.post(
            "/api/mrv-data", content=body, headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"
        assert api_client.get("/api/mrv-data").json()["pagination"]["totalItems"] == 0
        stats = api_client.get("/api/statistics").json()
        assert stats["totalCarbonSequestered"] == 0

    def test_verify_by_target_state(self, api_client):
        project = _create_project(api_client)
        _set_status(api_client, project["id"], "approve")
        data_id = api_client.post(
            "/api/mrv-data", json=mrv_payload(project["id"], 2),
        ).json()["dataId"]

        response = api_client.put(
            f"/api/mrv-data/{data_id}/verify",
            json={"targetState": "verified", "adminAddress": VERIFIER},
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "verified"
        project = api_client.get(f"/api/projects/{project['id']}").json()["project"]
        assert project["actualCredits"] == 2

    def test_list_by_project(self, api_client):
        project = _create_project(api_client)
        _set_status(api_client, project["id"], "approve")
        api_client.post("/api/mrv-data", json=mrv_payload(project["id"], 1))

        body = api_client.get("/api/mrv-data", params={"projectId": project["id"]}).json()
        assert body["pagination"]["totalItems"] == 1
        record_id = body["data"][0]["id"]
        assert api_client.get(f"/api/mrv-data/{record_id}").json()["data"]["id"] == record_id


class TestCreditsAndTransactions:

    def test_mint_and_retire(self, api_client):
        project = _create_project(api_client)
        _set_status(api_client, project["id"], "approve")
        data_id = api_client.post(
            "/api/mrv-data", json=mrv_payload(project["id"], 8),
        ).json()["dataId"]
        api_client.put(
            f"/api/mrv-data/{data_id}/verify", json={"action": "verify", "adminAddress": ADMIN},
        )

        mint = {
            "amount": 5,
            "projectId": project["id"],
            "verificationHash": "0xverification-hash-1",
            "recipientAddress": OWNER,
        }
        assert api_client.post("/api/carbon-credits/mint", json=mint).status_code == 201
        assert api_client.get(f"/api/carbon-credits/balance/{OWNER}").json()["balance"] == 5

        response = api_client.post(
            "/api/carbon-credits/retire",
            json={"amount": 5, "reason": "Annual offset", "ownerAddress": OWNER},
        )
        assert response.status_code == 200
        assert len(response.json()["retiredCredits"]) == 1
        assert api_client.get(f"/api/carbon-credits/balance/{OWNER}").json()["balance"] == 0

    def test_transaction(self, api_client):
        tx_hash = "0x" + "12" * 32
        response = api_client.post(
            "/api/blockchain/transaction", json={"transactionHash": tx_hash, "fromAddress": OWNER},
        )
        assert response.status_code == 201

        body = api_client.get(f"/api/blockchain/transaction/{tx_hash}").json()
        assert body["transaction"]["fromAddress"] == OWNER


class TestSearchAndAnalytics:

    def test_search(self, api_client):
        _create_project(api_client)
        body = api_client.get("/api/search", params={"q": "sundarbans", "type": "project"}).json()
        assert len(body["results"]["projects"]) == 1

    def test_search_bad_type(self, api_client):
        assert api_client.get("/api/search", params={"q": "x", "type": "credit"}).status_code == 400

    def test_statistics_and_overview(self, api_client):
        _create_project(api_client)
        assert api_client.get("/api/statistics").json()["statistics"]["totalProjects"] == 1

        overview = api_client.get("/api/analytics/overview").json()["analytics"]
        assert overview["pendingProjects"] == 1
        assert overview["ecosystemDistribution"] == {"mangrove": 1}


class TestExport:

    def test_csv(self, api_client):
        project = _create_project(api_client, name="Pichavaram, Tamil Nadu")
        response = api_client.get("/api/export/projects", params={"format": "csv"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment; filename=projects.csv" == response.headers["content-disposition"]
        lines = response.text.splitlines()
        assert lines[0] == "ID,Name,Location,Area,Ecosystem Type,Status,Created At"
        assert lines[1].startswith(f'{project["id"]},"Pichavaram, Tamil Nadu",')

    def test_json(self, api_client):
        _create_project(api_client)
        body = api_client.get("/api/export/projects").json()
        assert len(body["projects"]) == 1

    def test_unknown_collection(self, api_client):
        response = api_client.get("/api/export/credits")
        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "collection"

    def test_unknown_format(self, api_client):
        response = api_client.get("/api/export/projects", params={"format": "xml"})
        assert response.status_code == 400


class TestNotifications:

    def test_inbox_and_mark_read(self, api_client):
        project = _create_project(api_client)
        _set_status(api_client, project["id"], "approve")

        inbox = api_client.get("/api/notifications", params={"user": OWNER}).json()
        assert inbox["unreadCount"] == 1
        notification_id = inbox["notifications"][0]["id"]

        response = api_client.put(f"/api/notifications/{notification_id}/read")
        assert response.json()["notification"]["read"] is True
        assert api_client.get(
            "/api/notifications", params={"user": OWNER},
        ).json()["unreadCount"] == 0


class TestStorageFailure:

    def test_corrupt_file_is_500(self, api_client, data_dir):
        (data_dir / "projects.json").write_text("[oops", encoding="utf-8")

        response = api_client.get("/api/projects")
        assert response.status_code == 500
        assert response.json()["error_type"] == "StorageError"

    def test_storage_failure_logs_cause(self, api_client, data_dir, caplog):
        (data_dir / "projects.json").write_text("[oops", encoding="utf-8")

        with caplog.at_level(logging.ERROR, logger="bluecarbon.registry.api.app"):
            api_client.get("/api/projects")

        assert "Storage failure on GET /api/projects" in caplog.text
        assert "JSONDecodeError" in caplog.text


class TestRateLimiting:

    def test_limit_exceeded(self, data_dir):
        config = RegistryConfig(
            data_dir=str(data_dir), rate_limit="2/minute", rate_limit_enabled=True,
        )
        with TestClient(create_app(config)) as client:
            assert client.get("/api/health").status_code == 200
            assert client.get("/api/health").status_code == 200
            assert client.get("/api/health").status_code == 429

    def test_limit_response_has_cors_headers(self, data_dir):
        config = RegistryConfig(
            data_dir=str(data_dir), rate_limit="1/minute", rate_limit_enabled=True,
        )
        origin = {"Origin": "http://localhost:3000"}
        with TestClient(create_app(config)) as client:
            client.get("/api/health", headers=origin)
            response = client.get("/api/health", headers=origin)

        assert response.status_code == 429
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
