import io
import json
import zipfile
from pathlib import Path

from openpyxl import load_workbook

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def read_sheet(content: bytes):
    workbook = load_workbook(io.BytesIO(content))
    sheet = workbook.active
    rows = [list(row) for row in sheet.iter_rows(values_only=True)]
    return sheet.title, rows


def test_formats_are_listed(client, owner) -> None:
    response = client.get("/api/export/formats", headers=owner["headers"])
    ids = [f["id"] for f in response.json()["data"]]
    assert ids == ["GENERIC", "PEAK", "FLOWACCOUNT", "EXPRESS", "ZIP"]


def test_generic_excel_export(client, owner, create_box) -> None:
    first = create_box(owner, box_date="2024-03-02", title="ค่าไฟฟ้า")
    second = create_box(owner, box_date="2024-03-01", title="ค่าน้ำ", has_wht=True)

    response = client.post(
        "/api/export/excel", json={"box_ids": [first["id"], second["id"]]}, headers=owner["headers"]
    )
    assert response.status_code == 200
    assert response.headers["content-type"] == XLSX
    assert response.headers["content-disposition"].startswith("attachment; filename*=UTF-8''export_generic_")

    title, rows = read_sheet(response.content)
    assert title == "กล่องเอกสาร"
    header, *data = rows
    assert header[:3] == ["เลขที่กล่อง", "วันที่", "ประเภท"]
    # Oldest box first
    assert [row[0] for row in data] == [second["box_number"], first["box_number"]]
    assert data[0][1] == "1/3/2567"
    assert data[0][header.index("ยอดก่อน VAT")] == 1000
    assert data[0][header.index("มี WHT")] == "ใช่"
    assert data[0][header.index("ผู้สร้าง")] == "Somchai Owner"

    detail = client.get(f"/api/boxes/{first['id']}", headers=owner["headers"]).json()["data"]
    assert detail["exported_at"] is not None


def test_peak_export_layout(client, owner, create_box) -> None:
    box = create_box(owner, box_date="2024-04-05", external_ref="INV-7788")
    response = client.post(
        "/api/export/excel", json={"box_ids": [box["id"]], "profile": "PEAK"}, headers=owner["headers"]
    )
    title, (header, row) = read_sheet(response.content)
    assert title == "PEAK Import"
    assert header[:2] == ["วันที่", "เลขที่เอกสาร"]
    assert row[1] == "INV-7788"
    assert row[header.index("ยอดสุทธิ")] == 1070


def test_custom_profile_export(client, owner, create_box) -> None:
    response = client.post(
        "/api/export/profiles",
        json={
            "name": "สรุปผู้บริหาร",
            "columns": [
                {"field": "box_number", "header": "เลขที่"},
                {"field": "total_amount", "header": "ยอด"},
            ],
            "is_default": True,
        },
        headers=owner["headers"],
    )
    assert response.status_code == 201
    profile = response.json()["data"]

    box = create_box(owner)
    response = client.post(
        "/api/export/excel", json={"box_ids": [box["id"]], "profile_id": profile["id"]}, headers=owner["headers"]
    )
    assert "export_custom_" in response.headers["content-disposition"]
    title, rows = read_sheet(response.content)
    assert title == "สรุปผู้บริหาร"
    assert rows == [["เลขที่", "ยอด"], [box["box_number"], 1070]]

    response = client.put(
        f"/api/export/profiles/{profile['id']}", json={"name": "Renamed"}, headers=owner["headers"]
    )
    assert response.json()["data"]["name"] == "Renamed"
    assert response.json()["data"]["is_default"] is True

    response = client.delete(f"/api/export/profiles/{profile['id']}", headers=owner["headers"])
    assert response.json() == {"data": {"message": "Export profile deleted"}}
    assert client.get("/api/export/profiles", headers=owner["headers"]).json()["data"] == []


def test_profile_rejects_unknown_field(client, owner) -> None:
    response = client.post(
        "/api/export/profiles",
        json={"name": "Bad", "columns": [{"field": "password", "header": "x"}]},
        headers=owner["headers"],
    )
    assert response.status_code == 422


def test_zip_bundle_contains_files_and_summaries(client, owner, create_box) -> None:
    contact = client.post("/api/contacts", json={"name": "Acme Co."}, headers=owner["headers"]).json()["data"]
    box = create_box(owner, box_date="2024-03-15", contact_id=contact["id"])
    client.post(
        f"/api/boxes/{box['id']}/files",
        files={"file": ("invoice.pdf", b"%PDF-1.4 data", "application/pdf")},
        data={"doc_type": "TAX_INVOICE"},
        headers=owner["headers"],
    )

    response = client.post("/api/export/zip", json={"box_ids": [box["id"]]}, headers=owner["headers"])
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/zip"

    folder = f"2024/03/{box['box_number']}_Acme_Co__1070"
    with zipfile.ZipFile(io.BytesIO(response.content)) as bundle:
        names = set(bundle.namelist())
        assert names == {"summary.xlsx", f"{folder}/summary.json", f"{folder}/01_TAX_INVOICE.pdf"}
        assert bundle.read(f"{folder}/01_TAX_INVOICE.pdf") == b"%PDF-1.4 data"
        summary = json.loads(bundle.read(f"{folder}/summary.json"))
        assert summary["box_number"] == box["box_number"]
        assert summary["vendor"]["name"] == "Acme Co."
        assert summary["documents"][0]["files"] == ["invoice.pdf"]

        title, rows = read_sheet(bundle.read("summary.xlsx"))
        assert title == "สรุปกล่องเอกสาร"
        assert len(rows) == 2

    response = client.post(
        "/api/export/zip",
        json={"box_ids": [box["id"]], "include_json": False, "group_by_month": False},
        headers=owner["headers"],
    )
    with zipfile.ZipFile(io.BytesIO(response.content)) as bundle:
        assert set(bundle.namelist()) == {
            "summary.xlsx",
            f"{box['box_number']}_Acme_Co__1070/01_TAX_INVOICE.pdf",
        }


def test_zip_bundle_skips_missing_files(client, owner, create_box, settings) -> None:
    contact = client.post("/api/contacts", json={"name": "Acme Co."}, headers=owner["headers"]).json()["data"]
    box = create_box(owner, box_date="2024-03-15", contact_id=contact["id"])
    response = client.post(
        f"/api/boxes/{box['id']}/files",
        files={"file": ("invoice.pdf", b"%PDF-1.4 data", "application/pdf")},
        data={"doc_type": "TAX_INVOICE"},
        headers=owner["headers"],
    )
    assert response.status_code == 201

    stored = [p for p in Path(settings.storage_path).rglob("*") if p.is_file()]
    assert len(stored) == 1
    stored[0].unlink()

    response = client.post("/api/export/zip", json={"box_ids": [box["id"]]}, headers=owner["headers"])
    assert response.status_code == 200

    folder = f"2024/03/{box['box_number']}_Acme_Co__1070"
    with zipfile.ZipFile(io.BytesIO(response.content)) as bundle:
        assert set(bundle.namelist()) == {"summary.xlsx", f"{folder}/summary.json"}
        summary = json.loads(bundle.read(f"{folder}/summary.json"))
        assert summary["box_number"] == box["box_number"]


def test_export_history(client, owner, create_box) -> None:
    box = create_box(owner)
    client.post("/api/export/excel", json={"box_ids": [box["id"]], "profile": "EXPRESS"}, headers=owner["headers"])
    client.post("/api/export/zip", json={"box_ids": [box["id"]]}, headers=owner["headers"])

    history = client.get("/api/export/history", headers=owner["headers"]).json()["data"]
    assert sorted((h["export_type"], h["profile"]) for h in history) == [("EXCEL", "EXPRESS"), ("ZIP", "GENERIC")]
    assert all(h["box_ids"] == [box["id"]] for h in history)

    logs = client.get("/api/audit-logs", params={"action": "BOXES_EXPORTED"}, headers=owner["headers"])
    assert len(logs.json()["data"]) == 2


def test_export_requires_known_boxes(client, owner, register_user, create_org, create_box) -> None:
    response = client.post("/api/export/excel", json={"box_ids": []}, headers=owner["headers"])
    assert response.status_code == 422

    other = register_user("Other")
    other_org = create_org(other, "Other Co.")
    foreign = create_box({**other, "headers": {**other["headers"], "X-Organization-Id": other_org["id"]}})

    response = client.post("/api/export/excel", json={"box_ids": [foreign["id"]]}, headers=owner["headers"])
    assert response.status_code == 422
    assert response.json()["error"]["message"] == "No boxes found to export."


def test_staff_cannot_export(client, owner, add_member, create_box) -> None:
    staff = add_member(owner, "STAFF", "Staff")
    box = create_box(staff)
    response = client.post("/api/export/excel", json={"box_ids": [box["id"]]}, headers=staff["headers"])
    assert response.status_code == 403
    assert client.get("/api/export/formats", headers=staff["headers"]).status_code == 200
