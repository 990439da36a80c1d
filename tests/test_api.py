"""Tests for the HTTP API and its error response formats."""

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from autorules.api.app import create_app
from autorules.engine.service import AutomationService

OWNER = {"X-Owner-Id": "user_1"}

RULE_BODY = {
    "name": "Doctor emails",
    "description": "Book doctor appointments",
    "trigger": {"kind": "email", "conditions": {"patterns": ["doctor"]}},
    "actions": [{"kind": "send_notification", "config": {"to": "user@example.com"}}],
}


@pytest.fixture
def client(registry, ledger, executors) -> Iterator[TestClient]:
    service = AutomationService(registry, executors, ledger=ledger, dispatch_workers=1, scheduler_timezone="UTC")
    with TestClient(create_app(service=service)) as test_client:
        yield test_client


def _create(client: TestClient, body: dict | None = None, headers: dict | None = None) -> dict:
    response = client.post("/api/v1/rules", json=body or RULE_BODY, headers=headers or OWNER)
    assert response.status_code == 200
    return response.json()["data"]


def test_create_and_get_rule(client) -> None:
    created = _create(client)

    assert created["id"].startswith("rule_")
    assert created["owner_id"] == "user_1"
    assert created["execution_count"] == 0

    response = client.get(f"/api/v1/rules/{created['id']}", headers=OWNER)
    payload = response.json()
    assert payload["code"] == 0
    assert payload["data"]["name"] == "Doctor emails"


def test_rules_are_scoped_to_owner(client) -> None:
    created = _create(client)
    _create(client, headers={"X-Owner-Id": "user_2"})

    response = client.get("/api/v1/rules", headers=OWNER)
    assert response.json()["total"] == 1

    foreign = client.get(f"/api/v1/rules/{created['id']}", headers={"X-Owner-Id": "user_2"})
    assert foreign.status_code == 404


def test_list_rules_filters(client) -> None:
    _create(client)
    cron_trigger = {"kind": "schedule", "conditions": {"cron": "0 9 * * *"}}
    _create(client, {**RULE_BODY, "name": "Cron", "trigger": cron_trigger})

    response = client.get("/api/v1/rules", params={"trigger_kind": "schedule"}, headers=OWNER)

    payload = response.json()
    assert payload["total"] == 1
    assert payload["data"][0]["name"] == "Cron"
    assert payload["data"][0]["next_run_at"] is not None


def test_patch_rule_updates_selected_fields_only(client) -> None:
    created = _create(client)

    response = client.patch(
        f"/api/v1/rules/{created['id']}",
        json={"description": "Updated description"},
        headers=OWNER,
    )

    data = response.json()["data"]
    assert data["description"] == "Updated description"
    assert data["name"] == "Doctor emails"
    assert data["trigger"]["conditions"] == {"patterns": ["doctor"]}


def test_toggle_and_execute_rule(client) -> None:
    created = _create(client)

    response = client.patch(f"/api/v1/rules/{created['id']}/status", json={"enabled": False}, headers=OWNER)
    assert response.json()["data"]["enabled"] is False

    disabled = client.post(f"/api/v1/rules/{created['id']}/execute", json={}, headers=OWNER).json()
    assert disabled["data"]["success"] is False
    assert disabled["data"]["execution_log"] is None

    client.patch(f"/api/v1/rules/{created['id']}/status", json={"enabled": True}, headers=OWNER)
    executed = client.post(
        f"/api/v1/rules/{created['id']}/execute",
        json={"trigger_data": {"region": "US"}},
        headers=OWNER,
    ).json()
    assert executed["data"]["success"] is True
    assert executed["data"]["execution_log"]["status"] == "success"

    history = client.get("/api/v1/executions", params={"rule_id": created["id"]}, headers=OWNER).json()
    assert [record["id"] for record in history["data"]] == [executed["data"]["execution_log"]["id"]]


def test_delete_rule(client) -> None:
    created = _create(client)

    response = client.delete(f"/api/v1/rules/{created['id']}", headers=OWNER)
    assert response.status_code == 200
    assert response.json()["data"]["store_error"] is None

    again = client.delete(f"/api/v1/rules/{created['id']}", headers=OWNER)
    assert again.status_code == 404


def test_email_trigger_reports_matches(client) -> None:
    created = _create(client)

    response = client.post(
        "/api/v1/triggers/email",
        json={"subject": "Doctor visit", "body": "Tomorrow", "from": "clinic@example.com"},
        headers=OWNER,
    )

    assert response.json()["data"]["matched_rule_ids"] == [created["id"]]


def test_templates(client) -> None:
    listed = client.get("/api/v1/templates").json()["data"]
    assert "medication_reminder" in {template["id"] for template in listed}

    response = client.post(
        "/api/v1/templates/medication_reminder",
        json={"name": "Pills"},
        headers=OWNER,
    )
    data = response.json()["data"]
    assert data["name"] == "Pills"
    assert data["trigger"]["conditions"]["cron"] == "0 8,14,20 * * *"

    missing = client.post("/api/v1/templates/unknown", headers=OWNER)
    assert missing.status_code == 404
    assert missing.json()["message"] == "Template unknown not found"


def test_http_exception_response_format(client) -> None:
    response = client.get("/api/v1/rules/missing-rule", headers=OWNER)

    assert response.status_code == 404
    payload = response.json()
    assert payload["code"] == 404
    assert payload["message"] == "Rule missing-rule not found"
    assert "data" in payload


def test_validation_error_response_format(client) -> None:
    response = client.post("/api/v1/rules", json={"name": ""}, headers=OWNER)

    assert response.status_code == 422
    payload = response.json()
    assert payload["code"] == 422
    assert payload["message"] == "Validation error"
    assert isinstance(payload["data"], list)
    assert payload["data"]


def test_owner_header_is_required(client) -> None:
    response = client.get("/api/v1/rules")

    assert response.status_code == 422
    assert response.json()["message"] == "Validation error"


def test_health_and_metrics(client) -> None:
    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["dispatcher_running"] is True
    assert health["scheduler_enabled"] is True

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "automation_rule_executions" in metrics.text
