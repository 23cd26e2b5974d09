from datetime import date

from conftest import org_headers


def change_status(client, member, box_id, status, reason=None):
    return client.post(
        f"/api/boxes/{box_id}/status",
        json={"status": status, "reason": reason},
        headers=member["headers"],
    )


def list_tasks(client, member, box_id):
    response = client.get("/api/tasks", params={"box_id": box_id}, headers=member["headers"])
    assert response.status_code == 200
    return response.json()["data"]


def test_create_box_derives_number_and_tax(client, owner, create_box) -> None:
    box = create_box(owner, box_date="2024-03-15", has_wht=True, wht_rate=3)

    assert box["box_number"] == "EXP2403-0001"
    assert box["status"] == "DRAFT"
    assert box["expense_type"] == "STANDARD"
    assert box["total_amount"] == 1070.0
    assert box["vat_amount"] == 70.0
    assert box["wht_amount"] == 30.0
    assert box["vat_doc_status"] == "MISSING"
    assert box["wht_doc_status"] == "MISSING"
    assert box["wht_due_date"] == "2024-03-22"
    assert box["doc_status"] == "INCOMPLETE"
    assert box["payment_status"] == "UNPAID"

    second = create_box(owner, box_date="2024-03-20")
    assert second["box_number"] == "EXP2403-0002"
    income = create_box(owner, box_type="INCOME", box_date="2024-03-20")
    assert income["box_number"] == "INC2403-0001"


def test_box_numbers_are_per_organization(client, owner, register_user, create_org, create_box) -> None:
    other = register_user("Other Owner")
    other_org = create_org(other, "Other Co.")
    other_member = {**other, "headers": org_headers(other, other_org)}

    first = create_box(owner, box_date="2024-05-01")
    second = create_box(other_member, box_date="2024-05-01")
    assert first["box_number"] == second["box_number"] == "EXP2405-0001"

    response = client.get(f"/api/boxes/{first['id']}", headers=other_member["headers"])
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "BOX_NOT_FOUND"


def test_exclusive_amount_adds_vat(client, owner, create_box) -> None:
    box = create_box(owner, amount=1000, is_vat_inclusive=False)
    assert box["total_amount"] == 1070.0
    assert box["vat_amount"] == 70.0


def test_new_box_generates_document_tasks(client, owner, create_box) -> None:
    box = create_box(owner, has_wht=True)
    task_types = sorted(t["task_type"] for t in list_tasks(client, owner, box["id"]))
    assert task_types == ["VAT_INVOICE", "WHT_CERTIFICATE"]

    no_tax = create_box(owner, has_vat=False)
    assert list_tasks(client, owner, no_tax["id"]) == []


def test_review_workflow(client, owner, add_member, create_box) -> None:
    staff = add_member(owner, "STAFF", "Staff")
    accountant = add_member(owner, "ACCOUNTING", "Accountant")
    box = create_box(staff)

    response = client.get(f"/api/boxes/{box['id']}", headers=staff["headers"])
    transitions = response.json()["meta"]["transitions"]
    assert [t["status"] for t in transitions] == ["PENDING"]

    response = change_status(client, staff, box["id"], "PENDING")
    assert response.status_code == 200
    assert response.json()["data"]["submitted_at"] is not None

    response = change_status(client, staff, box["id"], "COMPLETED")
    assert response.status_code == 403

    response = change_status(client, accountant, box["id"], "NEED_DOCS")
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    response = change_status(client, accountant, box["id"], "NEED_DOCS", "ขาดใบกำกับภาษี")
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "NEED_DOCS"

    assert change_status(client, staff, box["id"], "PENDING").status_code == 200
    response = change_status(client, accountant, box["id"], "COMPLETED")
    assert response.status_code == 200
    assert response.json()["data"]["completed_at"] is not None
    assert response.json()["meta"]["transitions"] == []

    # Completed boxes are frozen
    response = client.put(f"/api/boxes/{box['id']}", json={"title": "changed"}, headers=owner["headers"])
    assert response.status_code == 422

    response = change_status(client, owner, box["id"], "PENDING", "ต้องแก้ยอด")
    assert response.status_code == 200
    assert response.json()["data"]["completed_at"] is None


def test_invalid_transition(client, owner, create_box) -> None:
    box = create_box(owner)
    response = change_status(client, owner, box["id"], "COMPLETED")
    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "INVALID_STATUS_TRANSITION"
    assert error["details"] == {"from": "DRAFT", "to": "COMPLETED"}


def test_submission_notifies_accounting(client, owner, add_member, create_box) -> None:
    staff = add_member(owner, "STAFF", "Staff")
    box = create_box(staff)
    change_status(client, staff, box["id"], "PENDING")

    response = client.get("/api/notifications", headers=owner["headers"])
    notifications = response.json()["data"]
    assert len(notifications) == 1
    assert notifications[0]["type"] == "BOX_SUBMITTED"
    assert box["box_number"] in notifications[0]["title"]
    assert response.json()["meta"]["unread_count"] == 1

    response = client.put(f"/api/notifications/{notifications[0]['id']}/read", headers=owner["headers"])
    assert response.json()["data"]["is_read"] is True

    response = client.get("/api/notifications", headers=staff["headers"])
    assert response.json()["data"] == []


def test_update_recomputes_amounts(client, owner, create_box) -> None:
    box = create_box(owner)
    response = client.put(
        f"/api/boxes/{box['id']}",
        json={"amount": 2140, "has_wht": True, "wht_rate": 3},
        headers=owner["headers"],
    )
    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["total_amount"] == 2140.0
    assert updated["vat_amount"] == 140.0
    assert updated["wht_amount"] == 60.0

    task_types = sorted(t["task_type"] for t in list_tasks(client, owner, box["id"]))
    assert task_types == ["VAT_INVOICE", "WHT_CERTIFICATE"]


def test_tax_update_keeps_total(client, owner, create_box) -> None:
    box = create_box(owner)
    response = client.put(f"/api/boxes/{box['id']}/tax", json={"has_vat": False}, headers=owner["headers"])
    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["total_amount"] == 1070.0
    assert updated["vat_amount"] == 0.0
    assert updated["vat_doc_status"] == "NA"


def test_vat_verification(client, owner, add_member, create_box) -> None:
    staff = add_member(owner, "STAFF", "Staff")
    box = create_box(owner)

    response = client.put(
        f"/api/boxes/{box['id']}/vat-status", json={"vat_doc_status": "VERIFIED"}, headers=staff["headers"]
    )
    assert response.status_code == 403

    response = client.put(
        f"/api/boxes/{box['id']}/vat-status", json={"vat_doc_status": "VERIFIED"}, headers=owner["headers"]
    )
    data = response.json()["data"]
    assert data["vat_doc_status"] == "VERIFIED"
    assert data["vat_verified_by"] == owner["id"]


def test_list_filters_and_search(client, owner, create_box) -> None:
    create_box(owner, title="ค่าไฟฟ้า", box_date="2024-01-10")
    create_box(owner, title="ค่าน้ำประปา", box_date="2024-02-10", has_wht=True)

    response = client.get("/api/boxes", params={"search": "ไฟฟ้า"}, headers=owner["headers"])
    assert [b["title"] for b in response.json()["data"]] == ["ค่าไฟฟ้า"]

    response = client.get("/api/boxes", params={"has_wht": True}, headers=owner["headers"])
    assert [b["title"] for b in response.json()["data"]] == ["ค่าน้ำประปา"]

    response = client.get("/api/boxes", params={"date_from": "2024-02-01"}, headers=owner["headers"])
    assert response.json()["meta"]["total_count"] == 1

    response = client.get("/api/boxes", params={"page_size": 1}, headers=owner["headers"])
    meta = response.json()["meta"]
    assert meta["total_count"] == 2
    assert meta["total_pages"] == 2
    assert meta["has_next"] is True


def test_box_with_contact_and_category(client, owner, create_box) -> None:
    contact = client.post(
        "/api/contacts",
        json={"name": "Acme Co., Ltd.", "tax_id": "0105551234567", "default_wht_rate": 5},
        headers=owner["headers"],
    ).json()["data"]
    category = client.post(
        "/api/master-data/categories",
        json={"name": "ค่าเช่า", "peak_account_code": "5310-01"},
        headers=owner["headers"],
    )
    assert category.status_code == 201, category.text

    box = create_box(owner, contact_id=contact["id"], category_id=category.json()["data"]["id"], has_wht=True)
    assert box["contact"]["name"] == "Acme Co., Ltd."
    assert box["wht_rate"] == 5.0
    assert box["wht_amount"] == 50.0


def test_checklist_toggle(client, owner, create_box) -> None:
    box = create_box(owner, has_wht=True)

    response = client.get(f"/api/boxes/{box['id']}/checklist", headers=owner["headers"])
    checklist = response.json()["data"]
    assert [item["id"] for item in checklist["items"]] == ["payment", "hasTaxInvoice", "whtIssued", "whtSent"]
    assert checklist["completion_percent"] == 0

    response = client.post(
        f"/api/boxes/{box['id']}/checklist/toggle", json={"item_id": "payment"}, headers=owner["headers"]
    )
    assert response.status_code == 200
    assert response.json()["data"]["completion_percent"] == 25

    response = client.get(f"/api/boxes/{box['id']}", headers=owner["headers"])
    assert response.json()["data"]["payment_status"] == "PAID"

    response = client.post(
        f"/api/boxes/{box['id']}/checklist/toggle", json={"item_id": "hasTaxInvoice"}, headers=owner["headers"]
    )
    assert response.status_code == 422


def test_timeline_and_audit_log(client, owner, add_member, create_box) -> None:
    box = create_box(owner)
    change_status(client, owner, box["id"], "PENDING")

    response = client.get(f"/api/boxes/{box['id']}/timeline", headers=owner["headers"])
    actions = [entry["action"] for entry in response.json()["data"]]
    assert set(actions) >= {"BOX_CREATED", "STATUS_CHANGED"}

    response = client.get("/api/audit-logs", params={"action": "STATUS_CHANGED"}, headers=owner["headers"])
    logs = response.json()["data"]
    assert len(logs) == 1
    assert logs[0]["details"]["from"] == "DRAFT"
    assert logs[0]["details"]["to"] == "PENDING"

    staff = add_member(owner, "STAFF", "Staff")
    assert client.get("/api/audit-logs", headers=staff["headers"]).status_code == 403


def test_only_admins_delete_boxes(client, owner, add_member, create_box) -> None:
    accountant = add_member(owner, "ACCOUNTING", "Accountant")
    box = create_box(owner)

    assert client.delete(f"/api/boxes/{box['id']}", headers=accountant["headers"]).status_code == 403

    response = client.delete(f"/api/boxes/{box['id']}", headers=owner["headers"])
    assert response.json() == {"data": {"message": "Box deleted"}}
    assert client.get(f"/api/boxes/{box['id']}", headers=owner["headers"]).status_code == 404


def test_box_date_defaults_to_today(client, owner, create_box) -> None:
    box = create_box(owner)
    assert box["box_date"] == date.today().isoformat()
    assert box["box_number"].startswith(f"EXP{date.today():%y%m}-")
