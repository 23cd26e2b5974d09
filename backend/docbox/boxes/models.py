"""SQLAlchemy models for boxes and the documents inside them."""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docbox.boxes import aging
from docbox.contacts.models import Contact
from docbox.database import Base, OrganizationScopedMixin, TimestampMixin
from docbox.masterdata.models import Category, CostCenter


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class BoxType(str, enum.Enum):
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"
    ADJUSTMENT = "ADJUSTMENT"


class ExpenseType(str, enum.Enum):
    STANDARD = "STANDARD"
    NO_VAT = "NO_VAT"
    PETTY_CASH = "PETTY_CASH"
    FOREIGN = "FOREIGN"


class BoxStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    NEED_DOCS = "NEED_DOCS"
    COMPLETED = "COMPLETED"


class DocStatus(str, enum.Enum):
    INCOMPLETE = "INCOMPLETE"
    COMPLETE = "COMPLETE"
    NA = "NA"


class PaymentStatus(str, enum.Enum):
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERPAID = "OVERPAID"
    REFUNDED = "REFUNDED"


class PaymentMode(str, enum.Enum):
    COMPANY_PAID = "COMPANY_PAID"
    EMPLOYEE_ADVANCE = "EMPLOYEE_ADVANCE"


class VatDocStatus(str, enum.Enum):
    MISSING = "MISSING"
    RECEIVED = "RECEIVED"
    VERIFIED = "VERIFIED"
    NA = "NA"


class WhtDocStatus(str, enum.Enum):
    MISSING = "MISSING"
    REQUEST_SENT = "REQUEST_SENT"
    RECEIVED = "RECEIVED"
    VERIFIED = "VERIFIED"
    NA = "NA"


class NoReceiptReason(str, enum.Enum):
    NO_CASH_RECEIPT = "NO_CASH_RECEIPT"
    LOST = "LOST"
    VENDOR_REFUSED = "VENDOR_REFUSED"
    OTHER = "OTHER"


class DocType(str, enum.Enum):
    TAX_INVOICE = "TAX_INVOICE"
    TAX_INVOICE_ABB = "TAX_INVOICE_ABB"
    RECEIPT = "RECEIPT"
    CASH_RECEIPT = "CASH_RECEIPT"
    INVOICE = "INVOICE"
    FOREIGN_INVOICE = "FOREIGN_INVOICE"
    SLIP_TRANSFER = "SLIP_TRANSFER"
    SLIP_CHEQUE = "SLIP_CHEQUE"
    BANK_STATEMENT = "BANK_STATEMENT"
    CREDIT_CARD_STATEMENT = "CREDIT_CARD_STATEMENT"
    ONLINE_RECEIPT = "ONLINE_RECEIPT"
    PETTY_CASH_VOUCHER = "PETTY_CASH_VOUCHER"
    WHT_SENT = "WHT_SENT"
    WHT_INCOMING = "WHT_INCOMING"
    CREDIT_NOTE = "CREDIT_NOTE"
    DEBIT_NOTE = "DEBIT_NOTE"
    OTHER = "OTHER"


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class Box(OrganizationScopedMixin, TimestampMixin, Base):
    __tablename__ = "boxes"
    __table_args__ = (
        UniqueConstraint("organization_id", "box_number", name="uq_box_number_per_org"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    box_number: Mapped[str] = mapped_column(String(20), nullable=False)
    box_type: Mapped[BoxType] = mapped_column(Enum(BoxType), default=BoxType.EXPENSE, nullable=False)
    expense_type: Mapped[ExpenseType | None] = mapped_column(Enum(ExpenseType), nullable=True)
    box_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    external_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)

    status: Mapped[BoxStatus] = mapped_column(
        Enum(BoxStatus), default=BoxStatus.DRAFT, nullable=False, index=True
    )
    doc_status: Mapped[DocStatus] = mapped_column(
        Enum(DocStatus), default=DocStatus.INCOMPLETE, nullable=False
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), default=PaymentStatus.UNPAID, nullable=False
    )
    payment_mode: Mapped[PaymentMode] = mapped_column(
        Enum(PaymentMode), default=PaymentMode.COMPANY_PAID, nullable=False
    )

    total_amount: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    vat_amount: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    wht_amount: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    paid_amount: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    vat_rate: Mapped[float] = mapped_column(Float, default=7.0, nullable=False)
    wht_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_vat_inclusive: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    has_vat: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    vat_doc_status: Mapped[VatDocStatus] = mapped_column(
        Enum(VatDocStatus), default=VatDocStatus.MISSING, nullable=False
    )
    vat_verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    vat_verified_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    has_wht: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    wht_doc_status: Mapped[WhtDocStatus] = mapped_column(
        Enum(WhtDocStatus), default=WhtDocStatus.NA, nullable=False
    )
    wht_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    wht_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    wht_overdue: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    no_receipt_reason: Mapped[NoReceiptReason | None] = mapped_column(
        Enum(NoReceiptReason), nullable=True
    )

    contact_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    cost_center_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("cost_centers.id", ondelete="SET NULL"), nullable=True
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    exported_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    contact: Mapped[Contact | None] = relationship(lazy="selectin")
    category: Mapped[Category | None] = relationship(lazy="selectin")
    cost_center: Mapped[CostCenter | None] = relationship(lazy="selectin")
    documents: Mapped[list[Document]] = relationship(
        back_populates="box", lazy="selectin", cascade="all, delete-orphan", order_by="Document.created_at"
    )
    payments: Mapped[list["Payment"]] = relationship(
        "Payment", back_populates="box", lazy="selectin", cascade="all, delete-orphan"
    )

    @property
    def aging_bucket(self) -> str | None:
        if self.status == BoxStatus.COMPLETED or self.created_at is None:
            return None
        return aging.aging_bucket(aging.age_in_days(self.created_at))


class Document(TimestampMixin, Base):
    """A classification slot inside a box, holding one or more uploaded files."""

    __tablename__ = "box_documents"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    box_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("boxes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    doc_type: Mapped[DocType] = mapped_column(Enum(DocType), nullable=False)
    doc_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    doc_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    vat_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    box: Mapped[Box] = relationship(back_populates="documents")
    files: Mapped[list[DocumentFile]] = relationship(
        back_populates="document", lazy="selectin", cascade="all, delete-orphan",
        order_by="DocumentFile.page_order",
    )


class DocumentFile(TimestampMixin, Base):
    __tablename__ = "box_document_files"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    document_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("box_documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    original_filename: Mapped[str] = mapped_column(String(500), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(1000), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    checksum_sha256: Mapped[str] = mapped_column(String(64), nullable=False)
    page_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    uploaded_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    document: Mapped[Document] = relationship(back_populates="files")


# Payment lives in its own module and points back at Box
from docbox.payments.models import Payment  # noqa: E402, F401
