import json
import uuid

import httpx
import pytest
from conftest import run_in_app

from docbox.integrations.models import Integration


@pytest.fixture()
def captured(client):
    """Route outbound webhook calls to an in-memory handler and collect the requests."""
    requests: list[httpx.Request] = []
    state = {"status": 200}

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(state["status"], text="ok")

    client.app.state.dispatcher.transport = httpx.MockTransport(handler)
    return requests, state


def create_slack(client, owner, events=("BOX_SUBMITTED",)):
    response = client.post(
        "/api/integrations",
        json={
            "type": "SLACK",
            "name": "บัญชี Slack",
            "config": {"webhookUrl": "https://hooks.slack.example/services/T000"},
            "events": list(events),
        },
        headers=owner["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_missing_config_is_rejected(client, owner) -> None:
    response = client.post(
        "/api/integrations",
        json={"type": "LINE_OA", "name": "LINE", "config": {"userId": "U1"}, "events": []},
        headers=owner["headers"],
    )
    assert response.status_code == 422
    assert response.json()["error"]["details"] == {"missing": ["channelAccessToken"]}


def test_only_admins_manage_integrations(client, owner, add_member) -> None:
    accountant = add_member(owner, "ACCOUNTING", "Accountant")
    assert client.get("/api/integrations", headers=accountant["headers"]).status_code == 403

    catalog = client.get("/api/integrations/catalog", headers=owner["headers"]).json()["data"]
    assert "WHT_OVERDUE" in catalog["events"]
    assert {"type": "SLACK", "required_config": ["webhookUrl"]} in catalog["types"]


def test_box_submission_posts_to_slack(client, owner, create_box, captured) -> None:
    requests, _ = captured
    integration = create_slack(client, owner)
    box = create_box(owner)

    response = client.post(f"/api/boxes/{box['id']}/status", json={"status": "PENDING"}, headers=owner["headers"])
    assert response.status_code == 200

    assert len(requests) == 1
    request = requests[0]
    assert str(request.url) == "https://hooks.slack.example/services/T000"
    text = json.loads(request.content)["text"]
    assert f"เลขที่: {box['box_number']}" in text
    assert "ยอดเงิน: ฿1,070.00" in text

    logs = client.get(f"/api/integrations/{integration['id']}/logs", headers=owner["headers"]).json()["data"]
    assert [(log["event_type"], log["status"], log["response_code"]) for log in logs] == [
        ("BOX_SUBMITTED", "success", 200)
    ]

    listed = client.get("/api/integrations", headers=owner["headers"]).json()["data"]
    assert listed[0]["trigger_count"] == 1


def test_unsubscribed_events_are_not_sent(client, owner, create_box, captured) -> None:
    requests, _ = captured
    create_slack(client, owner, events=["BOX_COMPLETED"])
    box = create_box(owner)
    client.post(f"/api/boxes/{box['id']}/status", json={"status": "PENDING"}, headers=owner["headers"])
    assert requests == []


def test_failed_delivery_is_logged_not_raised(client, owner, create_box, captured) -> None:
    _, state = captured
    state["status"] = 500
    integration = create_slack(client, owner, events=["PAYMENT_RECORDED"])
    box = create_box(owner)

    response = client.post(f"/api/boxes/{box['id']}/payments", json={"amount": 100}, headers=owner["headers"])
    assert response.status_code == 201

    logs = client.get(f"/api/integrations/{integration['id']}/logs", headers=owner["headers"]).json()["data"]
    assert [(log["status"], log["response_code"]) for log in logs] == [("failed", 500)]


def test_connection_error_is_recorded(client, owner) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client.app.state.dispatcher.transport = httpx.MockTransport(refuse)
    integration = create_slack(client, owner)

    response = client.post(f"/api/integrations/{integration['id']}/test", headers=owner["headers"])
    assert response.status_code == 200
    log = response.json()["data"]
    assert log["event_type"] == "TEST"
    assert log["status"] == "failed"
    assert "connection refused" in log["error_message"]


def test_custom_webhook_receives_json_payload(client, owner, create_box, captured) -> None:
    requests, _ = captured
    response = client.post(
        "/api/integrations",
        json={
            "type": "CUSTOM_WEBHOOK",
            "name": "ERP",
            "config": {"url": "https://erp.example/hooks", "method": "POST", "headers": {"X-Token": "abc"}},
            "events": ["BOX_SUBMITTED"],
        },
        headers=owner["headers"],
    )
    assert response.status_code == 201
    box = create_box(owner)
    client.post(f"/api/boxes/{box['id']}/status", json={"status": "PENDING"}, headers=owner["headers"])

    (request,) = requests
    assert request.headers["X-Token"] == "abc"
    body = json.loads(request.content)
    assert body["type"] == "BOX_SUBMITTED"
    assert body["box_number"] == box["box_number"]
    assert "timestamp" in body


def test_disabled_integration_is_skipped(client, owner, create_box, captured) -> None:
    requests, _ = captured
    integration = create_slack(client, owner)
    response = client.put(
        f"/api/integrations/{integration['id']}", json={"is_active": False}, headers=owner["headers"]
    )
    assert response.json()["data"]["is_active"] is False

    box = create_box(owner)
    client.post(f"/api/boxes/{box['id']}/status", json={"status": "PENDING"}, headers=owner["headers"])
    assert requests == []


@pytest.mark.parametrize(
    "config, invalid",
    [
        ({"url": "http://[::1", "method": "POST"}, ["url"]),
        ({"url": "ftp://erp.example/hooks", "method": "POST"}, ["url"]),
        ({"url": "https://erp.example/hooks", "method": "POST", "headers": ["X-Token"]}, ["headers"]),
        ({"url": "https://erp.example/hooks", "method": "FETCH"}, ["method"]),
    ],
)
def test_invalid_custom_webhook_config_is_rejected(client, owner, config, invalid) -> None:
    response = client.post(
        "/api/integrations",
        json={"type": "CUSTOM_WEBHOOK", "name": "ERP", "config": config, "events": ["BOX_SUBMITTED"]},
        headers=owner["headers"],
    )
    assert response.status_code == 422
    assert response.json()["error"]["details"] == {"invalid": invalid}


def test_unexpected_delivery_error_does_not_fail_the_request(client, owner, create_box, captured) -> None:
    response = client.post(
        "/api/integrations",
        json={
            "type": "CUSTOM_WEBHOOK",
            "name": "ERP",
            "config": {"url": "https://erp.example/hooks", "method": "POST"},
            "events": ["BOX_SUBMITTED"],
        },
        headers=owner["headers"],
    )
    integration = response.json()["data"]

    # A config stored before validation tightened still has to be survivable
    async def corrupt(db, integration_id):
        stored = await db.get(Integration, integration_id)
        stored.config = {"url": "http://[::1", "method": "POST", "headers": "X-Token: abc"}
        await db.commit()

    run_in_app(client, corrupt, uuid.UUID(integration["id"]))

    box = create_box(owner)
    response = client.post(f"/api/boxes/{box['id']}/status", json={"status": "PENDING"}, headers=owner["headers"])
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "PENDING"

    logs = client.get(f"/api/integrations/{integration['id']}/logs", headers=owner["headers"]).json()["data"]
    assert [(log["event_type"], log["status"]) for log in logs] == [("BOX_SUBMITTED", "failed")]
    assert logs[0]["error_message"]


def test_handler_crash_is_recorded_as_failed(client, owner) -> None:
    def crash(request: httpx.Request) -> httpx.Response:
        raise RuntimeError("handler blew up")

    client.app.state.dispatcher.transport = httpx.MockTransport(crash)
    integration = create_slack(client, owner)

    response = client.post(f"/api/integrations/{integration['id']}/test", headers=owner["headers"])
    assert response.status_code == 200
    log = response.json()["data"]
    assert log["status"] == "failed"
    assert log["error_message"] == "RuntimeError: handler blew up"
