"""Turn boxes into flat export rows. Nothing here touches the database."""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Callable

from docbox.boxes.models import Box

BOX_TYPE_LABELS = {"EXPENSE": "รายจ่าย", "INCOME": "รายรับ", "ADJUSTMENT": "ปรับปรุง"}

STATUS_LABELS = {
    "DRAFT": "ร่าง",
    "PENDING": "รอตรวจ",
    "NEED_DOCS": "ขาดเอกสาร",
    "COMPLETED": "เสร็จสิ้น",
}

DOC_STATUS_LABELS = {"INCOMPLETE": "ไม่ครบ", "COMPLETE": "ครบ", "NA": "ไม่ต้องมี"}

VAT_DOC_STATUS_LABELS = {
    "MISSING": "ยังไม่ได้รับ",
    "RECEIVED": "ได้รับแล้ว",
    "VERIFIED": "ตรวจแล้ว",
    "NA": "ไม่ต้องมี",
}

WHT_DOC_STATUS_LABELS = {
    "MISSING": "ยังไม่ได้รับ",
    "REQUEST_SENT": "ส่งคำขอแล้ว",
    "RECEIVED": "ได้รับแล้ว",
    "VERIFIED": "ตรวจแล้ว",
    "NA": "ไม่ต้องมี",
}

PAYMENT_MODE_LABELS = {"COMPANY_PAID": "บริษัทจ่าย", "EMPLOYEE_ADVANCE": "พนักงานสำรองจ่าย"}

_UNSAFE_FOLDER_CHARS = re.compile(r"[^a-zA-Z0-9ก-๙]")


def _value(enum_or_str: Any) -> str:
    return getattr(enum_or_str, "value", enum_or_str) or ""


def _label(labels: dict[str, str], value: Any) -> str:
    raw = _value(value)
    return labels.get(raw, raw)


def _yes_no(flag: bool) -> str:
    return "ใช่" if flag else "ไม่"


def format_thai_date(value: date | None) -> str:
    """Render a date the way Thai bookkeeping software expects: d/m/Buddhist year."""
    if value is None:
        return ""
    return f"{value.day}/{value.month}/{value.year + 543}"


def amount_before_vat(box: Box) -> float:
    return round(box.total_amount - box.vat_amount, 2)


def _field_getters(box: Box, creator_name: str | None) -> dict[str, Callable[[], Any]]:
    contact = box.contact
    category = box.category
    cost_center = box.cost_center
    return {
        "box_number": lambda: box.box_number,
        "box_date": lambda: format_thai_date(box.box_date),
        "box_type": lambda: _label(BOX_TYPE_LABELS, box.box_type),
        "vendor_name": lambda: contact.name if contact else "-",
        "vendor_tax_id": lambda: (contact.tax_id or "") if contact else "",
        "category_name": lambda: category.name if category else "-",
        "account_code": lambda: (category.peak_account_code or "") if category else "",
        "cost_center_code": lambda: cost_center.code if cost_center else "",
        "title": lambda: box.title or "-",
        "description": lambda: box.description or box.title or (category.name if category else ""),
        "external_ref": lambda: box.external_ref or box.box_number,
        "amount_before_vat": lambda: amount_before_vat(box),
        "vat_amount": lambda: box.vat_amount,
        "wht_amount": lambda: box.wht_amount,
        "total_amount": lambda: box.total_amount,
        "paid_amount": lambda: box.paid_amount,
        "has_vat": lambda: _yes_no(box.has_vat),
        "vat_doc_status": lambda: _label(VAT_DOC_STATUS_LABELS, box.vat_doc_status),
        "has_wht": lambda: _yes_no(box.has_wht),
        "wht_doc_status": lambda: _label(WHT_DOC_STATUS_LABELS, box.wht_doc_status),
        "payment_mode": lambda: _label(PAYMENT_MODE_LABELS, box.payment_mode),
        "status": lambda: _label(STATUS_LABELS, box.status),
        "doc_status": lambda: _label(DOC_STATUS_LABELS, box.doc_status),
        "notes": lambda: box.notes or "",
        "created_by": lambda: creator_name or "-",
        "document_count": lambda: len(box.documents),
    }


def transform_box_to_row(
    box: Box,
    columns: dict[str, str],
    creator_name: str | None = None,
) -> dict[str, Any]:
    """Map a box onto ``columns`` (field key -> header). Unknown keys become empty cells."""
    getters = _field_getters(box, creator_name)
    row: dict[str, Any] = {}
    for field, header in columns.items():
        getter = getters.get(field)
        row[header] = getter() if getter is not None else ""
    return row


def box_folder_name(box: Box, group_by_month: bool = True) -> str:
    """Folder path for a box inside a ZIP bundle, e.g. ``2024/03/EXP2403-0001_Acme_1070``."""
    vendor = "unknown"
    if box.contact and box.contact.name:
        vendor = _UNSAFE_FOLDER_CHARS.sub("_", box.contact.name)[:20] or "unknown"
    name = f"{box.box_number}_{vendor}_{round(box.total_amount)}"
    if not group_by_month:
        return name
    return f"{box.box_date.year}/{box.box_date.month:02d}/{name}"


def box_summary(box: Box, creator_name: str | None = None) -> dict:
    """JSON sidecar written next to a box's files in a ZIP bundle."""

    def iso(value):
        return value.isoformat() if value is not None else None

    return {
        "box_number": box.box_number,
        "box_date": iso(box.box_date),
        "box_type": _value(box.box_type),
        "status": _value(box.status),
        "vendor": (
            {"name": box.contact.name, "tax_id": box.contact.tax_id} if box.contact else None
        ),
        "category": box.category.name if box.category else None,
        "amounts": {
            "total": box.total_amount,
            "vat": box.vat_amount,
            "wht": box.wht_amount,
            "paid": box.paid_amount,
        },
        "vat_info": {
            "has_vat": box.has_vat,
            "doc_status": _value(box.vat_doc_status),
            "verified_at": iso(box.vat_verified_at),
        },
        "wht_info": {
            "has_wht": box.has_wht,
            "doc_status": _value(box.wht_doc_status),
            "overdue": box.wht_overdue,
        },
        "documents": [
            {
                "type": _value(doc.doc_type),
                "number": doc.doc_number,
                "date": iso(doc.doc_date),
                "amount": doc.amount,
                "files": [f.original_filename for f in doc.files],
            }
            for doc in box.documents
        ],
        "payments": [
            {"amount": p.amount, "date": iso(p.date), "method": _value(p.method)} for p in box.payments
        ],
        "created_at": iso(box.created_at),
        "created_by": creator_name,
    }


def numbered_file_name(index: int, doc_type: Any, original_filename: str) -> str:
    """``03_TAX_INVOICE.pdf`` for the third file of a box."""
    ext = original_filename.rsplit(".", 1)[-1].lower() if "." in original_filename else "bin"
    return f"{index:02d}_{_value(doc_type)}.{ext}"
