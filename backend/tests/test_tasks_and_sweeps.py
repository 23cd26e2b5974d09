from datetime import date

from conftest import days_ago, run_in_app

from docbox.boxes.wht import flag_overdue_wht
from docbox.tasks.service import process_overdue_tasks


def box_tasks(client, member, box_id):
    return client.get("/api/tasks", params={"box_id": box_id}, headers=member["headers"]).json()["data"]


def notification_types(client, member):
    return [n["type"] for n in client.get("/api/notifications", headers=member["headers"]).json()["data"]]


def test_completing_vat_task_marks_invoice_received(client, owner, create_box) -> None:
    box = create_box(owner)
    (task,) = box_tasks(client, owner, box["id"])
    assert task["task_type"] == "VAT_INVOICE"
    assert task["status"] == "OPEN"

    response = client.post(f"/api/tasks/{task['id']}/complete", headers=owner["headers"])
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "DONE"
    assert response.json()["data"]["completed_at"] is not None

    detail = client.get(f"/api/boxes/{box['id']}", headers=owner["headers"]).json()["data"]
    assert detail["vat_doc_status"] == "RECEIVED"

    response = client.post(f"/api/tasks/{task['id']}/complete", headers=owner["headers"])
    assert response.status_code == 422


def test_completing_wht_task_clears_overdue(client, owner, create_box) -> None:
    box = create_box(owner, has_vat=False, has_wht=True, box_date=days_ago(20))
    assert run_in_app(client, flag_overdue_wht, client.app.state.dispatcher, today=date.today()) == 1

    (task,) = box_tasks(client, owner, box["id"])
    client.post(f"/api/tasks/{task['id']}/complete", headers=owner["headers"])

    detail = client.get(f"/api/boxes/{box['id']}", headers=owner["headers"]).json()["data"]
    assert detail["wht_doc_status"] == "RECEIVED"
    assert detail["wht_overdue"] is False


def test_manual_task_assignment(client, owner, add_member, create_box) -> None:
    staff = add_member(owner, "STAFF", "Staff")
    box = create_box(owner, has_vat=False)

    response = client.post(
        "/api/tasks",
        json={
            "box_id": box["id"],
            "task_type": "FOLLOW_UP",
            "title": "โทรตามใบเสร็จ",
            "assignee_id": staff["id"],
            "due_date": days_ago(-3),
        },
        headers=owner["headers"],
    )
    assert response.status_code == 201
    task = response.json()["data"]
    assert task["escalation_level"] == 0
    assert task["reminder_count"] == 0
    assert notification_types(client, staff) == ["TASK_ASSIGNED"]

    response = client.post(f"/api/tasks/{task['id']}/remind", headers=owner["headers"])
    assert response.json()["data"]["reminder_count"] == 1
    assert sorted(notification_types(client, staff)) == ["TASK_ASSIGNED", "TASK_REMINDER"]

    response = client.post(f"/api/tasks/{task['id']}/escalate", headers=staff["headers"])
    assert response.status_code == 403
    response = client.post(f"/api/tasks/{task['id']}/escalate", headers=owner["headers"])
    assert response.json()["data"]["escalation_level"] == 1

    response = client.post(f"/api/tasks/{task['id']}/cancel", json={"reason": "ได้รับแล้ว"}, headers=owner["headers"])
    assert response.json()["data"]["status"] == "CANCELLED"
    assert response.json()["data"]["cancel_reason"] == "ได้รับแล้ว"


def test_task_for_foreign_box_is_rejected(client, owner, register_user, create_org, create_box) -> None:
    box = create_box(owner)
    other = register_user("Other")
    other_org = create_org(other, "Other Co.")

    response = client.post(
        "/api/tasks",
        json={"box_id": box["id"], "title": "x"},
        headers={**other["headers"], "X-Organization-Id": other_org["id"]},
    )
    assert response.status_code == 404


def test_task_stats(client, owner, create_box) -> None:
    create_box(owner, has_wht=True)
    response = client.get("/api/tasks/stats", headers=owner["headers"])
    stats = response.json()["data"]
    assert stats["open"] == 2
    assert stats["total"] == 2
    assert stats["completed_today"] == 0


def test_wht_sweep_flags_once(client, owner, add_member, create_box) -> None:
    accountant = add_member(owner, "ACCOUNTING", "Accountant")
    late = create_box(owner, has_vat=False, has_wht=True, box_date=days_ago(20))
    create_box(owner, has_vat=False, has_wht=True, box_date=days_ago(2))
    received = create_box(owner, has_vat=False, has_wht=True, box_date=days_ago(20))
    client.put(
        f"/api/boxes/{received['id']}/wht-status", json={"wht_doc_status": "RECEIVED"}, headers=owner["headers"]
    )

    dispatcher = client.app.state.dispatcher
    assert run_in_app(client, flag_overdue_wht, dispatcher, today=date.today()) == 1
    assert run_in_app(client, flag_overdue_wht, dispatcher, today=date.today()) == 0

    response = client.get("/api/boxes", params={"wht_overdue": True}, headers=owner["headers"])
    assert [b["id"] for b in response.json()["data"]] == [late["id"]]

    assert notification_types(client, accountant) == ["WHT_OVERDUE"]
    logs = client.get("/api/audit-logs", params={"action": "WHT_OVERDUE"}, headers=owner["headers"]).json()
    assert len(logs["data"]) == 1
    assert logs["data"][0]["user_id"] is None


def test_overdue_task_policy(client, owner, create_box) -> None:
    reminded = create_box(owner, has_vat=False, has_wht=True, box_date=days_ago(12))
    escalated = create_box(owner, has_vat=False, has_wht=True, box_date=days_ago(15))
    overdue = create_box(owner, has_vat=False, has_wht=True, box_date=days_ago(25))
    create_box(owner, has_vat=False, has_wht=True, box_date=days_ago(8))

    result = run_in_app(client, process_overdue_tasks, today=date.today())
    assert result == {"reminders": 1, "escalated": 2, "overdue": 1}

    (task,) = box_tasks(client, owner, reminded["id"])
    assert task["reminder_count"] == 1
    assert task["escalation_level"] == 0
    (task,) = box_tasks(client, owner, escalated["id"])
    assert task["escalation_level"] == 1
    (task,) = box_tasks(client, owner, overdue["id"])
    assert task["escalation_level"] == 2

    types = notification_types(client, owner)
    assert types.count("TASK_REMINDER") == 1
    assert types.count("TASK_ESCALATED") == 2

    response = client.get("/api/tasks", params={"overdue_only": True}, headers=owner["headers"])
    assert response.json()["meta"]["total_count"] == 4
