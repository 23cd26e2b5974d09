from pathlib import Path

PDF_BYTES = b"%PDF-1.4\n% test invoice\n"


def upload(client, member, box_id, filename="invoice.pdf", content=PDF_BYTES, mime="application/pdf", **form):
    return client.post(
        f"/api/boxes/{box_id}/files",
        files={"file": (filename, content, mime)},
        data=form,
        headers=member["headers"],
    )


def test_upload_download_delete(client, owner, settings, create_box) -> None:
    box = create_box(owner)

    response = upload(client, owner, box["id"], filename="ใบกำกับภาษี.pdf", doc_type="TAX_INVOICE")
    assert response.status_code == 201, response.text
    document = response.json()["data"]
    assert document["doc_type"] == "TAX_INVOICE"
    stored = document["files"][0]
    assert stored["file_size"] == len(PDF_BYTES)
    assert stored["page_order"] == 0

    assert any(Path(settings.storage_path).rglob("*.pdf"))

    response = client.get(
        f"/api/boxes/{box['id']}/files/{stored['id']}/download", headers=owner["headers"]
    )
    assert response.status_code == 200
    assert response.content == PDF_BYTES
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"].startswith("attachment; filename*=UTF-8''")

    # A second page goes into the same document slot
    response = upload(client, owner, box["id"], filename="page2.png", mime="image/png",
                      content=b"\x89PNG", document_id=document["id"])
    assert [f["page_order"] for f in response.json()["data"]["files"]] == [0, 1]

    response = client.delete(f"/api/boxes/{box['id']}/files/{stored['id']}", headers=owner["headers"])
    assert response.json() == {"data": {"message": "File deleted"}}
    response = client.get(
        f"/api/boxes/{box['id']}/files/{stored['id']}/download", headers=owner["headers"]
    )
    assert response.status_code == 404


def test_tax_invoice_upload_completes_vat_item(client, owner, create_box) -> None:
    box = create_box(owner)
    client.post(f"/api/boxes/{box['id']}/checklist/toggle", json={"item_id": "payment"}, headers=owner["headers"])
    upload(client, owner, box["id"], doc_type="TAX_INVOICE")

    response = client.get(f"/api/boxes/{box['id']}", headers=owner["headers"])
    assert response.json()["data"]["doc_status"] == "COMPLETE"


def test_upload_validation(client, owner, create_box) -> None:
    box = create_box(owner)

    response = upload(client, owner, box["id"], filename="run.exe", mime="application/x-msdownload",
                      doc_type="OTHER")
    assert response.status_code == 422
    assert "not allowed" in response.json()["error"]["message"]

    response = upload(client, owner, box["id"], content=b"", doc_type="OTHER")
    assert response.status_code == 422

    response = upload(client, owner, box["id"])
    assert response.status_code == 422


def test_empty_document_slot(client, owner, create_box) -> None:
    box = create_box(owner)
    response = client.post(
        f"/api/boxes/{box['id']}/documents",
        json={"doc_type": "RECEIPT", "doc_number": "RC-001"},
        headers=owner["headers"],
    )
    assert response.status_code == 201
    document = response.json()["data"]
    assert document["files"] == []

    response = client.delete(f"/api/boxes/{box['id']}/documents/{document['id']}", headers=owner["headers"])
    assert response.status_code == 200


def test_partial_then_full_payment(client, owner, add_member, create_box) -> None:
    staff = add_member(owner, "STAFF", "Staff")
    box = create_box(staff)
    url = f"/api/boxes/{box['id']}/payments"

    response = client.post(url, json={"amount": 500, "method": "TRANSFER"}, headers=owner["headers"])
    assert response.status_code == 201
    payment = response.json()["data"]

    detail = client.get(f"/api/boxes/{box['id']}", headers=owner["headers"]).json()["data"]
    assert detail["paid_amount"] == 500.0
    assert detail["payment_status"] == "PARTIAL"

    response = client.post(f"{url}/mark-paid", json={"method": "CASH"}, headers=owner["headers"])
    assert response.status_code == 201
    assert response.json()["data"]["amount"] == 570.0

    detail = client.get(f"/api/boxes/{box['id']}", headers=owner["headers"]).json()["data"]
    assert detail["payment_status"] == "PAID"
    assert len(detail["payments"]) == 2

    response = client.post(f"{url}/mark-paid", json={}, headers=owner["headers"])
    assert response.status_code == 422

    # The box creator hears about payments recorded by someone else
    notifications = client.get("/api/notifications", headers=staff["headers"]).json()["data"]
    assert {n["type"] for n in notifications} == {"PAYMENT_RECORDED"}

    response = client.delete(f"{url}/{payment['id']}", headers=staff["headers"])
    assert response.status_code == 403
    response = client.delete(f"{url}/{payment['id']}", headers=owner["headers"])
    assert response.json() == {"data": {"message": "Payment deleted"}}

    detail = client.get(f"/api/boxes/{box['id']}", headers=owner["headers"]).json()["data"]
    assert detail["paid_amount"] == 570.0
    assert detail["payment_status"] == "PARTIAL"


def test_checklist_payment_toggle_records_balancing_payment(client, owner, create_box) -> None:
    box = create_box(owner)
    url = f"/api/boxes/{box['id']}/payments"
    toggle = f"/api/boxes/{box['id']}/checklist/toggle"

    client.post(url, json={"amount": 500}, headers=owner["headers"])
    response = client.post(toggle, json={"item_id": "payment"}, headers=owner["headers"])
    assert response.status_code == 200

    payments = client.get(url, headers=owner["headers"]).json()["data"]
    assert sorted(p["amount"] for p in payments) == [500.0, 570.0]
    detail = client.get(f"/api/boxes/{box['id']}", headers=owner["headers"]).json()["data"]
    assert detail["paid_amount"] == 1070.0
    assert detail["payment_status"] == "PAID"

    response = client.post(toggle, json={"item_id": "isPaid"}, headers=owner["headers"])
    assert response.status_code == 200

    assert client.get(url, headers=owner["headers"]).json()["data"] == []
    detail = client.get(f"/api/boxes/{box['id']}", headers=owner["headers"]).json()["data"]
    assert detail["paid_amount"] == 0.0
    assert detail["payment_status"] == "UNPAID"


def test_overpayment_and_edit(client, owner, create_box) -> None:
    box = create_box(owner, amount=100, has_vat=False)
    url = f"/api/boxes/{box['id']}/payments"

    payment = client.post(url, json={"amount": 150}, headers=owner["headers"]).json()["data"]
    detail = client.get(f"/api/boxes/{box['id']}", headers=owner["headers"]).json()["data"]
    assert detail["payment_status"] == "OVERPAID"

    response = client.put(f"{url}/{payment['id']}", json={"amount": 100}, headers=owner["headers"])
    assert response.status_code == 200
    detail = client.get(f"/api/boxes/{box['id']}", headers=owner["headers"]).json()["data"]
    assert detail["payment_status"] == "PAID"

    response = client.post(url, json={"amount": 0}, headers=owner["headers"])
    assert response.status_code == 422

    response = client.get(url, headers=owner["headers"])
    assert [p["amount"] for p in response.json()["data"]] == [100.0]
