from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field

from docbox.boxes.models import (
    BoxStatus,
    BoxType,
    DocStatus,
    DocType,
    ExpenseType,
    NoReceiptReason,
    PaymentMode,
    PaymentStatus,
    VatDocStatus,
    WhtDocStatus,
)
from docbox.payments.schemas import PaymentResponse


class BoxCreate(BaseModel):
    box_type: BoxType = BoxType.EXPENSE
    expense_type: ExpenseType | None = None
    box_date: date | None = None
    due_date: date | None = None
    title: str | None = Field(None, max_length=255)
    description: str | None = None
    notes: str | None = None
    external_ref: str | None = Field(None, max_length=100)
    # Gross total when is_vat_inclusive, pre-VAT base otherwise
    amount: float = Field(0.0, ge=0)
    has_vat: bool = True
    is_vat_inclusive: bool = True
    vat_rate: float | None = Field(None, ge=0, le=100)
    has_wht: bool = False
    wht_rate: float | None = Field(None, ge=0, le=100)
    wht_due_date: date | None = None
    payment_mode: PaymentMode = PaymentMode.COMPANY_PAID
    no_receipt_reason: NoReceiptReason | None = None
    contact_id: uuid.UUID | None = None
    category_id: uuid.UUID | None = None
    cost_center_id: uuid.UUID | None = None


class BoxUpdate(BaseModel):
    expense_type: ExpenseType | None = None
    box_date: date | None = None
    due_date: date | None = None
    title: str | None = Field(None, max_length=255)
    description: str | None = None
    notes: str | None = None
    external_ref: str | None = Field(None, max_length=100)
    amount: float | None = Field(None, ge=0)
    has_vat: bool | None = None
    is_vat_inclusive: bool | None = None
    vat_rate: float | None = Field(None, ge=0, le=100)
    has_wht: bool | None = None
    wht_rate: float | None = Field(None, ge=0, le=100)
    wht_due_date: date | None = None
    payment_mode: PaymentMode | None = None
    no_receipt_reason: NoReceiptReason | None = None
    contact_id: uuid.UUID | None = None
    category_id: uuid.UUID | None = None
    cost_center_id: uuid.UUID | None = None


class BoxStatusChange(BaseModel):
    status: BoxStatus
    reason: str | None = Field(None, max_length=2000)


class BoxTaxUpdate(BaseModel):
    has_vat: bool | None = None
    vat_rate: float | None = Field(None, ge=0, le=100)
    is_vat_inclusive: bool | None = None
    vat_amount: float | None = Field(None, ge=0)
    has_wht: bool | None = None
    wht_rate: float | None = Field(None, ge=0, le=100)
    wht_amount: float | None = Field(None, ge=0)


class VatStatusUpdate(BaseModel):
    vat_doc_status: VatDocStatus


class WhtStatusUpdate(BaseModel):
    wht_doc_status: WhtDocStatus


class ChecklistToggle(BaseModel):
    item_id: str


class DocumentCreate(BaseModel):
    doc_type: DocType
    doc_number: str | None = Field(None, max_length=100)
    doc_date: date | None = None
    amount: float | None = None
    vat_amount: float | None = None
    notes: str | None = None


class DocumentFileResponse(BaseModel):
    id: uuid.UUID
    original_filename: str
    mime_type: str
    file_size: int
    checksum_sha256: str
    page_order: int
    created_at: datetime

    model_config = {"from_attributes": True}


class DocumentResponse(BaseModel):
    id: uuid.UUID
    doc_type: DocType
    doc_number: str | None
    doc_date: date | None
    amount: float | None
    vat_amount: float | None
    notes: str | None
    files: list[DocumentFileResponse] = []
    created_at: datetime

    model_config = {"from_attributes": True}


class RefResponse(BaseModel):
    id: uuid.UUID
    name: str

    model_config = {"from_attributes": True}


class BoxListItem(BaseModel):
    id: uuid.UUID
    box_number: str
    box_type: BoxType
    expense_type: ExpenseType | None
    box_date: date
    title: str | None
    status: BoxStatus
    doc_status: DocStatus
    payment_status: PaymentStatus
    total_amount: float
    vat_amount: float
    wht_amount: float
    paid_amount: float
    has_vat: bool
    has_wht: bool
    wht_overdue: bool
    contact: RefResponse | None = None
    aging_bucket: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BoxResponse(BoxListItem):
    due_date: date | None
    description: str | None
    notes: str | None
    external_ref: str | None
    payment_mode: PaymentMode
    vat_rate: float
    wht_rate: float | None
    is_vat_inclusive: bool
    vat_doc_status: VatDocStatus
    vat_verified_at: datetime | None
    vat_verified_by: uuid.UUID | None
    wht_doc_status: WhtDocStatus
    wht_sent: bool
    wht_due_date: date | None
    no_receipt_reason: NoReceiptReason | None
    category: RefResponse | None = None
    cost_center: RefResponse | None = None
    created_by: uuid.UUID | None
    submitted_at: datetime | None
    completed_at: datetime | None
    exported_at: datetime | None
    updated_at: datetime
    documents: list[DocumentResponse] = []
    payments: list[PaymentResponse] = []


class BoxFilter(BaseModel):
    status: BoxStatus | None = None
    box_type: BoxType | None = None
    doc_status: DocStatus | None = None
    payment_status: PaymentStatus | None = None
    contact_id: uuid.UUID | None = None
    category_id: uuid.UUID | None = None
    cost_center_id: uuid.UUID | None = None
    date_from: date | None = None
    date_to: date | None = None
    search: str | None = None
    has_wht: bool | None = None
    wht_overdue: bool | None = None
