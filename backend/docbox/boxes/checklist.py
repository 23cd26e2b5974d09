"""Document checklist per box and the doc_status derived from it."""

from dataclasses import asdict, dataclass

from docbox.boxes.models import (
    BoxType,
    DocStatus,
    DocType,
    ExpenseType,
    NoReceiptReason,
    PaymentStatus,
)

PAYMENT_EVIDENCE = frozenset({
    DocType.SLIP_TRANSFER,
    DocType.SLIP_CHEQUE,
    DocType.BANK_STATEMENT,
    DocType.CREDIT_CARD_STATEMENT,
    DocType.ONLINE_RECEIPT,
    DocType.PETTY_CASH_VOUCHER,
})
TAX_INVOICE_EVIDENCE = frozenset({DocType.TAX_INVOICE, DocType.TAX_INVOICE_ABB})
CASH_RECEIPT_EVIDENCE = frozenset({DocType.CASH_RECEIPT, DocType.RECEIPT, DocType.OTHER})

# Items a user may confirm by hand instead of uploading a document
TOGGLEABLE_ITEMS = ("payment", "isPaid", "whtSent", "hasCashReceipt")


@dataclass
class ChecklistItem:
    id: str
    label: str
    required: bool
    completed: bool
    related_doc_type: DocType | None = None
    can_toggle: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def _is_paid(payment_status: PaymentStatus) -> bool:
    return payment_status in (PaymentStatus.PAID, PaymentStatus.OVERPAID)


def _expense_items(box, uploaded: set[DocType]) -> list[ChecklistItem]:
    paid = _is_paid(box.payment_status)

    if box.expense_type == ExpenseType.PETTY_CASH:
        return [
            ChecklistItem("isPaid", "จ่ายเงินสดแล้ว", True, paid, can_toggle=True),
            ChecklistItem(
                "hasPaymentProof", "มีใบสำคัญจ่าย/บิล", False,
                bool(uploaded & PAYMENT_EVIDENCE), DocType.PETTY_CASH_VOUCHER,
            ),
        ]

    items = [ChecklistItem("payment", "การชำระเงิน", True, paid, DocType.SLIP_TRANSFER, can_toggle=True)]

    if box.has_vat:
        items.append(
            ChecklistItem(
                "hasTaxInvoice", "มีใบกำกับภาษี", True,
                bool(uploaded & TAX_INVOICE_EVIDENCE), DocType.TAX_INVOICE,
            )
        )

    if box.expense_type == ExpenseType.NO_VAT:
        confirmed_none = box.no_receipt_reason == NoReceiptReason.NO_CASH_RECEIPT
        items.append(
            ChecklistItem(
                "hasCashReceipt", "มีบิลเงินสด", True,
                bool(uploaded & CASH_RECEIPT_EVIDENCE) or confirmed_none,
                DocType.CASH_RECEIPT, can_toggle=True,
            )
        )

    if box.expense_type == ExpenseType.FOREIGN:
        items.append(
            ChecklistItem(
                "hasForeignInvoice", "มี Invoice ต่างประเทศ", True,
                DocType.FOREIGN_INVOICE in uploaded, DocType.FOREIGN_INVOICE,
            )
        )

    if box.has_wht:
        items.append(
            ChecklistItem(
                "whtIssued", "ออกหนังสือหัก ณ ที่จ่ายแล้ว", True,
                DocType.WHT_SENT in uploaded, DocType.WHT_SENT,
            )
        )
        items.append(ChecklistItem("whtSent", "ส่งหนังสือหัก ณ ที่จ่ายแล้ว", True, box.wht_sent, can_toggle=True))

    return items


def _income_items(box, uploaded: set[DocType]) -> list[ChecklistItem]:
    items = [
        ChecklistItem("hasInvoice", "ออกใบแจ้งหนี้แล้ว", True, DocType.INVOICE in uploaded, DocType.INVOICE),
    ]
    if box.has_vat:
        items.append(
            ChecklistItem(
                "hasTaxInvoice", "ออกใบกำกับภาษีแล้ว", True,
                bool(uploaded & TAX_INVOICE_EVIDENCE), DocType.TAX_INVOICE,
            )
        )
    items.append(ChecklistItem("isPaid", "รับเงินแล้ว", True, _is_paid(box.payment_status), can_toggle=True))
    items.append(
        ChecklistItem(
            "hasPaymentProof", "มีหลักฐานการรับเงิน", False,
            bool(uploaded & PAYMENT_EVIDENCE) or DocType.RECEIPT in uploaded, DocType.RECEIPT,
        )
    )
    if box.has_wht:
        items.append(
            ChecklistItem(
                "whtReceived", "ได้รับหนังสือหัก ณ ที่จ่ายแล้ว", True,
                DocType.WHT_INCOMING in uploaded, DocType.WHT_INCOMING,
            )
        )
    return items


def build_checklist(box, uploaded: set[DocType]) -> list[ChecklistItem]:
    """Checklist for a box given the document types that hold at least one file."""
    if box.box_type == BoxType.EXPENSE:
        return _expense_items(box, uploaded)
    if box.box_type == BoxType.INCOME:
        return _income_items(box, uploaded)
    return [ChecklistItem("hasDocument", "มีเอกสารประกอบ", True, bool(uploaded))]


def completion_percent(items: list[ChecklistItem]) -> int:
    required = [item for item in items if item.required]
    if not required:
        return 100
    done = sum(1 for item in required if item.completed)
    return round(done / len(required) * 100)


def determine_doc_status(box, uploaded: set[DocType]) -> DocStatus:
    if box.no_receipt_reason is not None and box.no_receipt_reason != NoReceiptReason.NO_CASH_RECEIPT:
        return DocStatus.NA
    items = build_checklist(box, uploaded)
    if all(item.completed for item in items if item.required):
        return DocStatus.COMPLETE
    return DocStatus.INCOMPLETE


def uploaded_doc_types(box) -> set[DocType]:
    return {doc.doc_type for doc in box.documents if doc.files}
