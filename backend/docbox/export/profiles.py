"""Column layouts for the bookkeeping systems boxes can be exported to."""

import enum


class ExportFormat(str, enum.Enum):
    GENERIC = "GENERIC"
    PEAK = "PEAK"
    FLOWACCOUNT = "FLOWACCOUNT"
    EXPRESS = "EXPRESS"


# Field key -> Thai column header, in column order
PROFILE_COLUMNS: dict[ExportFormat, dict[str, str]] = {
    ExportFormat.GENERIC: {
        "box_number": "เลขที่กล่อง",
        "box_date": "วันที่",
        "box_type": "ประเภท",
        "vendor_name": "คู่ค้า",
        "vendor_tax_id": "เลขผู้เสียภาษี",
        "category_name": "หมวดหมู่",
        "title": "ชื่อ",
        "description": "รายละเอียด",
        "amount_before_vat": "ยอดก่อน VAT",
        "vat_amount": "VAT",
        "wht_amount": "หัก ณ ที่จ่าย",
        "total_amount": "ยอดรวม",
        "has_vat": "มี VAT",
        "vat_doc_status": "สถานะ VAT",
        "has_wht": "มี WHT",
        "wht_doc_status": "สถานะ WHT",
        "payment_mode": "รูปแบบจ่าย",
        "status": "สถานะ",
        "doc_status": "สถานะเอกสาร",
        "notes": "หมายเหตุ",
        "created_by": "ผู้สร้าง",
        "document_count": "จำนวนเอกสาร",
    },
    ExportFormat.PEAK: {
        "box_date": "วันที่",
        "external_ref": "เลขที่เอกสาร",
        "vendor_tax_id": "รหัสผู้ติดต่อ",
        "vendor_name": "ชื่อผู้ติดต่อ",
        "account_code": "รหัสบัญชี",
        "description": "คำอธิบาย",
        "amount_before_vat": "จำนวนเงิน",
        "vat_amount": "ภาษีมูลค่าเพิ่ม",
        "wht_amount": "ภาษีหัก ณ ที่จ่าย",
        "total_amount": "ยอดสุทธิ",
        "cost_center_code": "ศูนย์ต้นทุน",
    },
    ExportFormat.FLOWACCOUNT: {
        "box_date": "วันที่",
        "vendor_name": "ชื่อผู้ขาย",
        "vendor_tax_id": "เลขประจำตัวผู้เสียภาษี",
        "description": "รายละเอียด",
        "amount_before_vat": "มูลค่าก่อนภาษี",
        "vat_amount": "ภาษีมูลค่าเพิ่ม",
        "wht_amount": "หัก ณ ที่จ่าย",
        "total_amount": "ยอดรวม",
        "category_name": "หมวดหมู่",
    },
    ExportFormat.EXPRESS: {
        "box_date": "วันที่",
        "external_ref": "เลขที่เอกสาร",
        "vendor_name": "ผู้ขาย/ผู้รับเงิน",
        "description": "รายการ",
        "amount_before_vat": "จำนวนเงิน",
        "vat_amount": "VAT",
        "wht_amount": "WHT",
        "total_amount": "รวม",
    },
}

FORMAT_DESCRIPTIONS: list[dict] = [
    {
        "id": ExportFormat.GENERIC.value,
        "name": "Excel ทั่วไป",
        "description": "ข้อมูลกล่องเอกสารครบทุกคอลัมน์",
        "extension": "xlsx",
    },
    {
        "id": ExportFormat.PEAK.value,
        "name": "PEAK",
        "description": "รูปแบบนำเข้าโปรแกรม PEAK",
        "extension": "xlsx",
    },
    {
        "id": ExportFormat.FLOWACCOUNT.value,
        "name": "FlowAccount",
        "description": "รูปแบบนำเข้าโปรแกรม FlowAccount",
        "extension": "xlsx",
    },
    {
        "id": ExportFormat.EXPRESS.value,
        "name": "Express",
        "description": "รูปแบบนำเข้าโปรแกรม Express",
        "extension": "xlsx",
    },
    {
        "id": "ZIP",
        "name": "ZIP พร้อมไฟล์",
        "description": "สรุป Excel พร้อมไฟล์เอกสารแยกโฟลเดอร์ตามเดือน",
        "extension": "zip",
    },
]


def available_fields() -> list[str]:
    """Every field key a custom profile may reference."""
    return list(PROFILE_COLUMNS[ExportFormat.GENERIC]) + ["external_ref", "account_code", "cost_center_code"]


def sheet_name_for(profile: ExportFormat | None) -> str:
    if profile is None:
        return "Export"
    if profile == ExportFormat.GENERIC:
        return "กล่องเอกสาร"
    return f"{profile.value} Import"
