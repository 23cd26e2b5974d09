from datetime import date, datetime, timezone
from types import SimpleNamespace

from docbox.boxes.models import BoxStatus, BoxType, DocType, PaymentMode
from docbox.export.profiles import PROFILE_COLUMNS, ExportFormat, available_fields, sheet_name_for
from docbox.export.transformers import (
    amount_before_vat,
    box_folder_name,
    box_summary,
    format_thai_date,
    numbered_file_name,
    transform_box_to_row,
)


def make_box(**overrides):
    fields = {
        "box_number": "EXP2403-0001",
        "box_date": date(2024, 3, 15),
        "box_type": BoxType.EXPENSE,
        "status": BoxStatus.PENDING,
        "doc_status": "INCOMPLETE",
        "title": "ค่าเช่าสำนักงาน",
        "description": None,
        "notes": None,
        "external_ref": None,
        "total_amount": 1070.0,
        "vat_amount": 70.0,
        "wht_amount": 30.0,
        "paid_amount": 0.0,
        "has_vat": True,
        "has_wht": True,
        "vat_doc_status": "MISSING",
        "wht_doc_status": "REQUEST_SENT",
        "wht_overdue": False,
        "vat_verified_at": None,
        "payment_mode": PaymentMode.COMPANY_PAID,
        "contact": SimpleNamespace(name="Acme (Thailand) Co.", tax_id="0105551234567"),
        "category": SimpleNamespace(name="ค่าเช่า", peak_account_code="5310-01"),
        "cost_center": None,
        "documents": [],
        "payments": [],
        "created_at": datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_thai_date_uses_buddhist_year() -> None:
    assert format_thai_date(date(2024, 3, 5)) == "5/3/2567"
    assert format_thai_date(None) == ""


def test_amount_before_vat() -> None:
    assert amount_before_vat(make_box()) == 1000.0


def test_generic_row_uses_thai_labels() -> None:
    columns = PROFILE_COLUMNS[ExportFormat.GENERIC]
    row = transform_box_to_row(make_box(), columns, creator_name="Somchai")
    assert list(row) == list(columns.values())
    assert row["เลขที่กล่อง"] == "EXP2403-0001"
    assert row["ประเภท"] == "รายจ่าย"
    assert row["สถานะ"] == "รอตรวจ"
    assert row["สถานะ WHT"] == "ส่งคำขอแล้ว"
    assert row["มี VAT"] == "ใช่"
    assert row["รูปแบบจ่าย"] == "บริษัทจ่าย"
    assert row["ผู้สร้าง"] == "Somchai"
    assert row["จำนวนเอกสาร"] == 0


def test_peak_row_falls_back_to_box_number_and_title() -> None:
    row = transform_box_to_row(make_box(), PROFILE_COLUMNS[ExportFormat.PEAK])
    assert row["เลขที่เอกสาร"] == "EXP2403-0001"
    assert row["คำอธิบาย"] == "ค่าเช่าสำนักงาน"
    assert row["รหัสบัญชี"] == "5310-01"
    assert row["ศูนย์ต้นทุน"] == ""
    assert row["จำนวนเงิน"] == 1000.0


def test_missing_relations_render_dashes() -> None:
    box = make_box(contact=None, category=None, title=None)
    row = transform_box_to_row(box, PROFILE_COLUMNS[ExportFormat.GENERIC])
    assert row["คู่ค้า"] == "-"
    assert row["หมวดหมู่"] == "-"
    assert row["ชื่อ"] == "-"
    assert row["ผู้สร้าง"] == "-"


def test_unknown_field_is_blank() -> None:
    row = transform_box_to_row(make_box(), {"no_such_field": "X"})
    assert row == {"X": ""}


def test_transform_does_not_modify_box() -> None:
    box = make_box()
    before = dict(vars(box))
    transform_box_to_row(box, PROFILE_COLUMNS[ExportFormat.GENERIC])
    box_summary(box)
    assert vars(box) == before


def test_folder_name_sanitizes_vendor() -> None:
    assert box_folder_name(make_box()) == "2024/03/EXP2403-0001_Acme__Thailand__Co__1070"
    assert box_folder_name(make_box(contact=None), group_by_month=False) == "EXP2403-0001_unknown_1070"


def test_summary_lists_documents_and_files() -> None:
    document = SimpleNamespace(
        doc_type=DocType.TAX_INVOICE,
        doc_number="INV-9",
        doc_date=date(2024, 3, 14),
        amount=1070.0,
        files=[SimpleNamespace(original_filename="invoice.pdf")],
    )
    summary = box_summary(make_box(documents=[document]), creator_name="Somchai")
    assert summary["box_date"] == "2024-03-15"
    assert summary["vendor"] == {"name": "Acme (Thailand) Co.", "tax_id": "0105551234567"}
    assert summary["documents"][0]["type"] == "TAX_INVOICE"
    assert summary["documents"][0]["files"] == ["invoice.pdf"]
    assert summary["created_by"] == "Somchai"


def test_numbered_file_name() -> None:
    assert numbered_file_name(3, DocType.TAX_INVOICE, "Scan.PDF") == "03_TAX_INVOICE.pdf"
    assert numbered_file_name(12, DocType.OTHER, "noext") == "12_OTHER.bin"


def test_profile_helpers() -> None:
    assert "account_code" in available_fields()
    assert sheet_name_for(ExportFormat.GENERIC) == "กล่องเอกสาร"
    assert sheet_name_for(ExportFormat.PEAK) == "PEAK Import"
