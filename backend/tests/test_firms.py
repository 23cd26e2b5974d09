from datetime import date

import pytest
from conftest import days_ago, org_headers, run_in_app

from docbox.boxes.wht import flag_overdue_wht


@pytest.fixture()
def firm_owner(client, register_user):
    user = register_user("Kanya Accountant")
    response = client.post("/api/firms", json={"name": "Kanya Accounting Office"}, headers=user["headers"])
    assert response.status_code == 201, response.text
    return {**user, "firm": response.json()["data"]}


def invite(client, firm_owner, org_id):
    return client.post(
        f"/api/firms/{firm_owner['firm']['id']}/clients",
        json={"organization_id": org_id, "notes": "ปิดงบปี 2567"},
        headers=firm_owner["headers"],
    )


def connect(client, firm_owner, owner) -> dict:
    relation = invite(client, firm_owner, owner["org"]["id"]).json()["data"]
    response = client.post(
        f"/api/organizations/current/accounting-firms/{relation['id']}/accept", headers=owner["headers"]
    )
    assert response.status_code == 200
    return response.json()["data"]


def test_creator_owns_firm(client, firm_owner) -> None:
    response = client.get("/api/firms", headers=firm_owner["headers"])
    firms = response.json()["data"]
    assert [(f["name"], f["role"]) for f in firms] == [("Kanya Accounting Office", "OWNER")]


def test_outsiders_cannot_see_firm(client, firm_owner, register_user) -> None:
    outsider = register_user("Outsider")
    response = client.get(f"/api/firms/{firm_owner['firm']['id']}", headers=outsider["headers"])
    assert response.status_code == 404


def test_invitation_grants_access_after_acceptance(client, firm_owner, owner, create_box) -> None:
    box = create_box(owner)
    client.post(f"/api/boxes/{box['id']}/status", json={"status": "PENDING"}, headers=owner["headers"])
    firm_headers = org_headers(firm_owner, owner["org"])

    response = invite(client, firm_owner, owner["org"]["id"])
    assert response.status_code == 201
    relation = response.json()["data"]
    assert relation["status"] == "PENDING"
    assert relation["organization_name"] == owner["org"]["name"]

    assert client.get("/api/boxes", headers=firm_headers).status_code == 404
    assert invite(client, firm_owner, owner["org"]["id"]).status_code == 409

    pending = client.get("/api/organizations/current/accounting-firms", headers=owner["headers"]).json()["data"]
    assert [r["firm_name"] for r in pending] == ["Kanya Accounting Office"]

    accepted = client.post(
        f"/api/organizations/current/accounting-firms/{relation['id']}/accept", headers=owner["headers"]
    ).json()["data"]
    assert accepted["status"] == "ACTIVE"
    assert accepted["accepted_at"] is not None

    current = client.get("/api/organizations/current", headers=firm_headers).json()["data"]
    assert current["role"] == "ACCOUNTING"

    # Firm staff review client boxes with the accounting role
    response = client.post(
        f"/api/boxes/{box['id']}/status", json={"status": "COMPLETED"}, headers=firm_headers
    )
    assert response.status_code == 200
    assert client.get("/api/audit-logs", headers=firm_headers).status_code == 403

    response = client.post(
        f"/api/organizations/current/accounting-firms/{relation['id']}/terminate", headers=owner["headers"]
    )
    assert response.json()["data"]["status"] == "TERMINATED"
    assert client.get("/api/boxes", headers=firm_headers).status_code == 404


def test_declined_invitation_can_be_renewed(client, firm_owner, owner) -> None:
    relation = invite(client, firm_owner, owner["org"]["id"]).json()["data"]
    response = client.post(
        f"/api/organizations/current/accounting-firms/{relation['id']}/decline", headers=owner["headers"]
    )
    assert response.json()["data"]["status"] == "TERMINATED"

    response = client.post(
        f"/api/organizations/current/accounting-firms/{relation['id']}/accept", headers=owner["headers"]
    )
    assert response.status_code == 422

    response = invite(client, firm_owner, owner["org"]["id"])
    assert response.status_code == 201
    assert response.json()["data"]["id"] == relation["id"]
    assert response.json()["data"]["status"] == "PENDING"


def test_firm_staff_roles(client, firm_owner, owner, register_user) -> None:
    accountant = register_user("Junior Accountant")
    firm_id = firm_owner["firm"]["id"]

    response = client.post(
        f"/api/firms/{firm_id}/members",
        json={"email": accountant["email"], "role": "ACCOUNTANT"},
        headers=firm_owner["headers"],
    )
    assert response.status_code == 201

    # Only owners and managers invite clients
    response = client.post(
        f"/api/firms/{firm_id}/clients",
        json={"organization_id": owner["org"]["id"]},
        headers=accountant["headers"],
    )
    assert response.status_code == 403

    members = client.get(f"/api/firms/{firm_id}/members", headers=accountant["headers"]).json()["data"]
    assert sorted(m["role"] for m in members) == ["ACCOUNTANT", "OWNER"]

    connect(client, firm_owner, owner)
    response = client.get("/api/boxes", headers=org_headers(accountant, owner["org"]))
    assert response.status_code == 200


def test_dashboard_summarizes_clients(client, firm_owner, owner, create_box) -> None:
    late = create_box(owner, has_wht=True, box_date=days_ago(20))
    need_docs = create_box(owner)
    client.post(f"/api/boxes/{need_docs['id']}/status", json={"status": "PENDING"}, headers=owner["headers"])
    client.post(
        f"/api/boxes/{need_docs['id']}/status",
        json={"status": "NEED_DOCS", "reason": "ขาดสลิปโอนเงิน"},
        headers=owner["headers"],
    )
    run_in_app(client, flag_overdue_wht, today=date.today())
    connect(client, firm_owner, owner)

    response = client.get(f"/api/firms/{firm_owner['firm']['id']}/dashboard", headers=firm_owner["headers"])
    assert response.status_code == 200
    dashboard = response.json()["data"]
    assert dashboard["firm_name"] == "Kanya Accounting Office"
    assert dashboard["total_clients"] == 1
    assert dashboard["total_pending_boxes"] == 2
    assert dashboard["total_pending_amount"] == 2140.0
    assert dashboard["total_wht_outstanding"] == late["wht_amount"] == 30.0
    assert dashboard["total_wht_overdue"] == 1

    (client_health,) = dashboard["clients"]
    assert client_health["name"] == owner["org"]["name"]
    assert client_health["need_docs_count"] == 1
    assert client_health["overdue_tasks_count"] == 1
    assert client_health["completion_rate"] == 0
    assert client_health["health_score"] == 65
