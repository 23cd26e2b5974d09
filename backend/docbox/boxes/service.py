"""Business logic for boxes: lifecycle, tax flags, document slots and files."""

from __future__ import annotations

import hashlib
import logging
import os
import uuid
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.audit.models import AuditLog
from docbox.audit.service import record_audit
from docbox.boxes.checklist import (
    TOGGLEABLE_ITEMS,
    build_checklist,
    completion_percent,
    determine_doc_status,
    uploaded_doc_types,
)
from docbox.boxes.models import (
    Box,
    BoxStatus,
    BoxType,
    DocType,
    Document,
    DocumentFile,
    ExpenseType,
    NoReceiptReason,
    PaymentStatus,
    VatDocStatus,
    WhtDocStatus,
)
from docbox.boxes.schemas import (
    BoxCreate,
    BoxFilter,
    BoxStatusChange,
    BoxTaxUpdate,
    BoxUpdate,
    DocumentCreate,
)
from docbox.boxes.status import available_transitions, check_transition, is_editable
from docbox.boxes.storage import StorageBackend
from docbox.boxes.tax import compute_vat, compute_wht, derive_amounts
from docbox.config import Settings
from docbox.contacts.models import Contact
from docbox.contacts.service import get_contact, touch_contact
from docbox.core.exceptions import NotFoundError, ValidationError
from docbox.core.pagination import PaginationParams, paginate
from docbox.dependencies import OrgContext
from docbox.integrations.dispatcher import WebhookDispatcher
from docbox.integrations.models import IntegrationEvent
from docbox.masterdata.service import get_category, get_cost_center
from docbox.notifications.models import NotificationType
from docbox.notifications.service import notify_users
from docbox.organizations.permissions import ACCOUNTING_ROLES
from docbox.organizations.service import list_member_user_ids
from docbox.payments.calculation import calculate_payment_status, remaining_balance
from docbox.payments.models import Payment, PaymentMethod
from docbox.tasks.service import generate_box_tasks

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Allowed MIME types for upload validation
# ---------------------------------------------------------------------------

ALLOWED_MIME_TYPES: set[str] = {
    "application/pdf",
    "image/png",
    "image/jpeg",
    "image/heic",
    "image/tiff",
    "image/webp",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
}

BOX_NUMBER_PREFIXES = {
    BoxType.EXPENSE: "EXP",
    BoxType.INCOME: "INC",
    BoxType.ADJUSTMENT: "ADJ",
}

# Fields the database will not accept as NULL
_NON_NULLABLE_UPDATES = {"box_date", "payment_mode", "has_vat", "is_vat_inclusive", "has_wht", "vat_rate"}
_TAX_FIELDS = {"amount", "has_vat", "is_vat_inclusive", "vat_rate", "has_wht", "wht_rate"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _compute_sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _extension_from_filename(filename: str) -> str:
    _, ext = os.path.splitext(filename)
    return ext.lstrip(".").lower() if ext else "bin"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def box_event_payload(box: Box, title: str, message: str) -> dict:
    """Payload shared by every box-related integration event."""
    return {
        "box_id": str(box.id),
        "box_number": box.box_number,
        "title": title,
        "message": message,
        "contact_name": box.contact.name if box.contact else None,
        "amount": box.total_amount,
        "status": box.status.value,
    }


def refresh_doc_status(box: Box) -> None:
    box.doc_status = determine_doc_status(box, uploaded_doc_types(box))


def recalculate_box_payments(box: Box) -> None:
    """Derive paid_amount and payment_status from the box's payments."""
    box.paid_amount = round(sum(p.amount for p in box.payments), 2)
    box.payment_status = calculate_payment_status(box.total_amount, box.paid_amount)
    refresh_doc_status(box)


async def generate_box_number(
    db: AsyncSession, organization_id: uuid.UUID, box_type: BoxType, on: date | None = None
) -> str:
    """Next number in the form EXP2610-0001, counted per organization, type and month."""
    on = on or date.today()
    stem = f"{BOX_NUMBER_PREFIXES[box_type]}{on:%y%m}-"
    result = await db.execute(
        select(Box.box_number).where(
            Box.organization_id == organization_id,
            Box.box_number.like(f"{stem}%"),
        )
    )
    sequences = [
        int(number[len(stem):]) for number in result.scalars().all() if number[len(stem):].isdigit()
    ]
    return f"{stem}{max(sequences, default=0) + 1:04d}"


async def _check_references(db: AsyncSession, organization_id: uuid.UUID, values: dict) -> Contact | None:
    contact = None
    if values.get("contact_id") is not None:
        contact = await get_contact(db, organization_id, values["contact_id"])
    if values.get("category_id") is not None:
        await get_category(db, organization_id, values["category_id"])
    if values.get("cost_center_id") is not None:
        await get_cost_center(db, organization_id, values["cost_center_id"])
    return contact


def _ensure_editable(box: Box) -> None:
    if not is_editable(box.status):
        raise ValidationError(
            f"Box {box.box_number} is {box.status.value} and can no longer be edited.",
            details={"status": box.status.value},
        )


# ---------------------------------------------------------------------------
# Box CRUD
# ---------------------------------------------------------------------------


async def get_box(db: AsyncSession, organization_id: uuid.UUID, box_id: uuid.UUID) -> Box:
    result = await db.execute(
        select(Box)
        .where(Box.id == box_id, Box.organization_id == organization_id)
        .execution_options(populate_existing=True)
    )
    box = result.scalar_one_or_none()
    if box is None:
        raise NotFoundError("Box", str(box_id))
    return box


async def create_box(db: AsyncSession, ctx: OrgContext, data: BoxCreate, settings: Settings) -> Box:
    contact = await _check_references(db, ctx.organization_id, data.model_dump())

    box_date = data.box_date or date.today()
    vat_rate = data.vat_rate if data.vat_rate is not None else settings.vat_rate
    wht_rate = None
    if data.has_wht:
        wht_rate = data.wht_rate
        if wht_rate is None and contact is not None:
            wht_rate = contact.default_wht_rate
        if wht_rate is None:
            wht_rate = settings.default_wht_rate

    amounts = derive_amounts(
        data.amount,
        has_vat=data.has_vat,
        is_vat_inclusive=data.is_vat_inclusive,
        vat_rate=vat_rate,
        has_wht=data.has_wht,
        wht_rate=wht_rate,
    )

    expense_type = data.expense_type
    if data.box_type == BoxType.EXPENSE and expense_type is None:
        expense_type = ExpenseType.STANDARD

    box = Box(
        organization_id=ctx.organization_id,
        box_number=await generate_box_number(db, ctx.organization_id, data.box_type, box_date),
        box_type=data.box_type,
        expense_type=expense_type,
        box_date=box_date,
        due_date=data.due_date,
        title=data.title,
        description=data.description,
        notes=data.notes,
        external_ref=data.external_ref,
        status=BoxStatus.DRAFT,
        payment_status=PaymentStatus.UNPAID,
        payment_mode=data.payment_mode,
        total_amount=amounts.total,
        vat_amount=amounts.vat,
        wht_amount=amounts.wht,
        paid_amount=0.0,
        vat_rate=vat_rate,
        wht_rate=wht_rate,
        is_vat_inclusive=data.is_vat_inclusive,
        has_vat=data.has_vat,
        vat_doc_status=VatDocStatus.MISSING if data.has_vat else VatDocStatus.NA,
        has_wht=data.has_wht,
        wht_doc_status=WhtDocStatus.MISSING if data.has_wht else WhtDocStatus.NA,
        wht_sent=False,
        wht_overdue=False,
        wht_due_date=(data.wht_due_date or box_date + timedelta(days=settings.wht_due_days))
        if data.has_wht
        else None,
        no_receipt_reason=data.no_receipt_reason,
        contact_id=data.contact_id,
        category_id=data.category_id,
        cost_center_id=data.cost_center_id,
        created_by=ctx.user_id,
    )
    box.doc_status = determine_doc_status(box, set())
    db.add(box)
    await db.flush()

    if contact is not None:
        await touch_contact(db, contact.id)
    record_audit(
        db,
        organization_id=ctx.organization_id,
        user_id=ctx.user_id,
        action="BOX_CREATED",
        resource_type="box",
        resource_id=box.id,
        box_id=box.id,
        details={"box_number": box.box_number, "total_amount": box.total_amount},
    )
    await generate_box_tasks(db, box, ctx.user_id)
    await db.commit()

    logger.info("Created box %s in organization %s", box.box_number, ctx.organization_id)
    return await get_box(db, ctx.organization_id, box.id)


async def list_boxes(
    db: AsyncSession,
    organization_id: uuid.UUID,
    filters: BoxFilter,
    pagination: PaginationParams,
) -> tuple[list[Box], dict]:
    query = select(Box).where(Box.organization_id == organization_id)

    if filters.status is not None:
        query = query.where(Box.status == filters.status)
    if filters.box_type is not None:
        query = query.where(Box.box_type == filters.box_type)
    if filters.doc_status is not None:
        query = query.where(Box.doc_status == filters.doc_status)
    if filters.payment_status is not None:
        query = query.where(Box.payment_status == filters.payment_status)
    if filters.contact_id is not None:
        query = query.where(Box.contact_id == filters.contact_id)
    if filters.category_id is not None:
        query = query.where(Box.category_id == filters.category_id)
    if filters.cost_center_id is not None:
        query = query.where(Box.cost_center_id == filters.cost_center_id)
    if filters.date_from is not None:
        query = query.where(Box.box_date >= filters.date_from)
    if filters.date_to is not None:
        query = query.where(Box.box_date <= filters.date_to)
    if filters.has_wht is not None:
        query = query.where(Box.has_wht == filters.has_wht)
    if filters.wht_overdue is not None:
        query = query.where(Box.wht_overdue == filters.wht_overdue)
    if filters.search:
        term = f"%{filters.search}%"
        query = query.where(
            or_(
                Box.box_number.ilike(term),
                Box.title.ilike(term),
                Box.description.ilike(term),
                Box.external_ref.ilike(term),
                Box.contact.has(Contact.name.ilike(term)),
            )
        )

    return await paginate(db, query, pagination, Box.box_date.desc(), Box.created_at.desc())


def _apply_wht_flag(box: Box, has_wht: bool, settings: Settings) -> None:
    if has_wht and not box.has_wht:
        box.wht_doc_status = WhtDocStatus.MISSING
        if box.wht_rate is None:
            box.wht_rate = settings.default_wht_rate
        if box.wht_due_date is None:
            box.wht_due_date = box.box_date + timedelta(days=settings.wht_due_days)
    elif not has_wht:
        box.wht_doc_status = WhtDocStatus.NA
        box.wht_amount = 0.0
        box.wht_overdue = False
        box.wht_sent = False
    box.has_wht = has_wht


def _apply_vat_flag(box: Box, has_vat: bool) -> None:
    if has_vat and not box.has_vat:
        box.vat_doc_status = VatDocStatus.MISSING
    elif not has_vat:
        box.vat_doc_status = VatDocStatus.NA
        box.vat_verified_at = None
        box.vat_verified_by = None
    box.has_vat = has_vat


async def update_box(
    db: AsyncSession, ctx: OrgContext, box_id: uuid.UUID, data: BoxUpdate, settings: Settings
) -> Box:
    box = await get_box(db, ctx.organization_id, box_id)
    _ensure_editable(box)

    updates = {
        key: value
        for key, value in data.model_dump(exclude_unset=True).items()
        if value is not None or key not in _NON_NULLABLE_UPDATES
    }
    contact = await _check_references(db, ctx.organization_id, updates)

    tax_changes = {key: updates.pop(key) for key in list(updates) if key in _TAX_FIELDS}
    for key, value in updates.items():
        setattr(box, key, value)

    if tax_changes:
        is_vat_inclusive = tax_changes.get("is_vat_inclusive", box.is_vat_inclusive)
        amount = tax_changes.get("amount")
        if amount is None:
            amount = box.total_amount if is_vat_inclusive else box.total_amount - box.vat_amount
        if "wht_rate" in tax_changes and tax_changes["wht_rate"] is not None:
            box.wht_rate = tax_changes["wht_rate"]
        if "vat_rate" in tax_changes:
            box.vat_rate = tax_changes["vat_rate"]

        _apply_vat_flag(box, tax_changes.get("has_vat", box.has_vat))
        _apply_wht_flag(box, tax_changes.get("has_wht", box.has_wht), settings)
        box.is_vat_inclusive = is_vat_inclusive

        amounts = derive_amounts(
            amount,
            has_vat=box.has_vat,
            is_vat_inclusive=box.is_vat_inclusive,
            vat_rate=box.vat_rate,
            has_wht=box.has_wht,
            wht_rate=box.wht_rate,
        )
        box.total_amount = amounts.total
        box.vat_amount = amounts.vat
        box.wht_amount = amounts.wht
        box.payment_status = calculate_payment_status(box.total_amount, box.paid_amount)

    refresh_doc_status(box)
    if contact is not None:
        await touch_contact(db, contact.id)

    record_audit(
        db,
        organization_id=ctx.organization_id,
        user_id=ctx.user_id,
        action="BOX_UPDATED",
        resource_type="box",
        resource_id=box.id,
        box_id=box.id,
        details={"fields": sorted(set(updates) | set(tax_changes))},
    )
    await generate_box_tasks(db, box, ctx.user_id)
    await db.commit()
    return await get_box(db, ctx.organization_id, box.id)


async def delete_box(
    db: AsyncSession, ctx: OrgContext, box_id: uuid.UUID, storage: StorageBackend
) -> None:
    box = await get_box(db, ctx.organization_id, box_id)
    storage_paths = [f.storage_path for doc in box.documents for f in doc.files]

    record_audit(
        db,
        organization_id=ctx.organization_id,
        user_id=ctx.user_id,
        action="BOX_DELETED",
        resource_type="box",
        resource_id=box.id,
        details={"box_number": box.box_number, "files": len(storage_paths)},
    )
    await db.delete(box)
    await db.commit()

    for path in storage_paths:
        try:
            await storage.delete(path)
        except OSError:
            logger.warning("Could not remove stored file %s of deleted box %s", path, box_id)
    logger.info("Deleted box %s with %d files", box.box_number, len(storage_paths))


# ---------------------------------------------------------------------------
# Status workflow
# ---------------------------------------------------------------------------


def list_transitions(box: Box, ctx: OrgContext) -> list[dict]:
    return [
        {
            "status": t.target.value,
            "label": t.label,
            "requires_reason": t.requires_reason,
            "is_revert": t.is_revert,
        }
        for t in available_transitions(box.status, ctx.role)
    ]


def _status_event(previous: BoxStatus, target: BoxStatus) -> IntegrationEvent | None:
    if target == BoxStatus.NEED_DOCS:
        return IntegrationEvent.BOX_NEED_DOCS
    if target == BoxStatus.COMPLETED:
        return IntegrationEvent.BOX_COMPLETED
    if target == BoxStatus.PENDING:
        if previous == BoxStatus.COMPLETED:
            return IntegrationEvent.BOX_REOPENED
        return IntegrationEvent.BOX_SUBMITTED
    return None


_EVENT_TEXT = {
    IntegrationEvent.BOX_SUBMITTED: (NotificationType.BOX_SUBMITTED, "กล่องเอกสารรอตรวจ"),
    IntegrationEvent.BOX_NEED_DOCS: (NotificationType.BOX_NEED_DOCS, "ขอเอกสารเพิ่มเติม"),
    IntegrationEvent.BOX_COMPLETED: (NotificationType.BOX_COMPLETED, "กล่องเอกสารเสร็จสิ้น"),
    IntegrationEvent.BOX_REOPENED: (NotificationType.BOX_REOPENED, "เปิดกล่องเอกสารใหม่"),
}


async def change_status(
    db: AsyncSession,
    ctx: OrgContext,
    box_id: uuid.UUID,
    data: BoxStatusChange,
    dispatcher: WebhookDispatcher,
) -> Box:
    box = await get_box(db, ctx.organization_id, box_id)
    check_transition(box.status, data.status, ctx.role, data.reason)

    previous = box.status
    now = _now()
    box.status = data.status
    if data.status == BoxStatus.PENDING:
        if box.submitted_at is None:
            box.submitted_at = now
        box.completed_at = None
    elif data.status == BoxStatus.COMPLETED:
        box.completed_at = now
    elif data.status == BoxStatus.DRAFT:
        box.submitted_at = None
        box.completed_at = None

    record_audit(
        db,
        organization_id=ctx.organization_id,
        user_id=ctx.user_id,
        action="STATUS_CHANGED",
        resource_type="box",
        resource_id=box.id,
        box_id=box.id,
        details={"from": previous.value, "to": data.status.value, "reason": data.reason},
    )

    event = _status_event(previous, data.status)
    payload = None
    if event is not None:
        notification_type, title = _EVENT_TEXT[event]
        message = data.reason or f"{box.box_number}: {previous.value} → {data.status.value}"
        if event == IntegrationEvent.BOX_SUBMITTED:
            recipients = await list_member_user_ids(db, ctx.organization_id, ACCOUNTING_ROLES)
        else:
            recipients = [box.created_by] if box.created_by else []
        notify_users(
            db,
            [user_id for user_id in recipients if user_id != ctx.user_id],
            notification_type,
            f"{title}: {box.box_number}",
            message,
            organization_id=ctx.organization_id,
            resource_type="box",
            resource_id=str(box.id),
        )
        payload = box_event_payload(box, title, message)

    await db.commit()
    logger.info("Box %s moved %s -> %s by %s", box.box_number, previous.value, data.status.value, ctx.user_id)

    if event is not None:
        await dispatcher.trigger_event(db, ctx.organization_id, event.value, payload)
    return await get_box(db, ctx.organization_id, box.id)


# ---------------------------------------------------------------------------
# Tax flags and VAT/WHT document sub-statuses
# ---------------------------------------------------------------------------


async def update_tax(
    db: AsyncSession, ctx: OrgContext, box_id: uuid.UUID, data: BoxTaxUpdate, settings: Settings
) -> Box:
    """Change VAT/WHT flags and rates while keeping the box total fixed."""
    box = await get_box(db, ctx.organization_id, box_id)
    _ensure_editable(box)
    changes = data.model_dump(exclude_unset=True)
    before = {"vat_amount": box.vat_amount, "wht_amount": box.wht_amount}

    if changes.get("vat_rate") is not None:
        box.vat_rate = changes["vat_rate"]
    if changes.get("is_vat_inclusive") is not None:
        box.is_vat_inclusive = changes["is_vat_inclusive"]
    if changes.get("has_vat") is not None:
        _apply_vat_flag(box, changes["has_vat"])
    if changes.get("wht_rate") is not None:
        box.wht_rate = changes["wht_rate"]
    if changes.get("has_wht") is not None:
        _apply_wht_flag(box, changes["has_wht"], settings)

    if not box.has_vat:
        box.vat_amount = 0.0
    elif changes.get("vat_amount") is not None:
        box.vat_amount = changes["vat_amount"]
    else:
        box.vat_amount = compute_vat(box.total_amount, box.vat_rate)

    if not box.has_wht:
        box.wht_amount = 0.0
    elif changes.get("wht_amount") is not None:
        box.wht_amount = changes["wht_amount"]
    else:
        rate = box.wht_rate if box.wht_rate is not None else settings.default_wht_rate
        box.wht_amount = compute_wht(box.total_amount, box.vat_amount, rate)

    refresh_doc_status(box)
    record_audit(
        db,
        organization_id=ctx.organization_id,
        user_id=ctx.user_id,
        action="TAX_UPDATED",
        resource_type="box",
        resource_id=box.id,
        box_id=box.id,
        details={
            "before": before,
            "after": {"vat_amount": box.vat_amount, "wht_amount": box.wht_amount},
            "changes": changes,
        },
    )
    await generate_box_tasks(db, box, ctx.user_id)
    await db.commit()
    return await get_box(db, ctx.organization_id, box.id)


async def update_vat_status(
    db: AsyncSession, ctx: OrgContext, box_id: uuid.UUID, vat_doc_status: VatDocStatus
) -> Box:
    box = await get_box(db, ctx.organization_id, box_id)
    if not box.has_vat and vat_doc_status != VatDocStatus.NA:
        raise ValidationError("This box has no VAT.")

    previous = box.vat_doc_status
    box.vat_doc_status = vat_doc_status
    if vat_doc_status == VatDocStatus.VERIFIED:
        box.vat_verified_at = _now()
        box.vat_verified_by = ctx.user_id
    else:
        box.vat_verified_at = None
        box.vat_verified_by = None

    record_audit(
        db,
        organization_id=ctx.organization_id,
        user_id=ctx.user_id,
        action="VAT_STATUS_UPDATED",
        resource_type="box",
        resource_id=box.id,
        box_id=box.id,
        details={"from": previous.value, "to": vat_doc_status.value},
    )
    await db.commit()
    return await get_box(db, ctx.organization_id, box.id)


async def update_wht_status(
    db: AsyncSession, ctx: OrgContext, box_id: uuid.UUID, wht_doc_status: WhtDocStatus
) -> Box:
    box = await get_box(db, ctx.organization_id, box_id)
    if not box.has_wht and wht_doc_status != WhtDocStatus.NA:
        raise ValidationError("This box has no withholding tax.")

    previous = box.wht_doc_status
    box.wht_doc_status = wht_doc_status
    if wht_doc_status in (WhtDocStatus.RECEIVED, WhtDocStatus.VERIFIED):
        box.wht_overdue = False

    record_audit(
        db,
        organization_id=ctx.organization_id,
        user_id=ctx.user_id,
        action="WHT_STATUS_UPDATED",
        resource_type="box",
        resource_id=box.id,
        box_id=box.id,
        details={"from": previous.value, "to": wht_doc_status.value},
    )
    await db.commit()
    return await get_box(db, ctx.organization_id, box.id)


# ---------------------------------------------------------------------------
# Documents and files
# ---------------------------------------------------------------------------


def _find_document(box: Box, document_id: uuid.UUID) -> Document:
    for document in box.documents:
        if document.id == document_id:
            return document
    raise NotFoundError("Document", str(document_id))


def _find_file(box: Box, file_id: uuid.UUID) -> tuple[Document, DocumentFile]:
    for document in box.documents:
        for stored in document.files:
            if stored.id == file_id:
                return document, stored
    raise NotFoundError("File", str(file_id))


async def add_document(
    db: AsyncSession, ctx: OrgContext, box_id: uuid.UUID, data: DocumentCreate
) -> Document:
    box = await get_box(db, ctx.organization_id, box_id)
    _ensure_editable(box)

    document = Document(**data.model_dump(), created_by=ctx.user_id, files=[])
    box.documents.append(document)
    await db.flush()

    record_audit(
        db,
        organization_id=ctx.organization_id,
        user_id=ctx.user_id,
        action="DOCUMENT_ADDED",
        resource_type="document",
        resource_id=document.id,
        box_id=box.id,
        details={"doc_type": document.doc_type.value},
    )
    await db.commit()
    return document


async def upload_file(
    db: AsyncSession,
    ctx: OrgContext,
    box_id: uuid.UUID,
    storage: StorageBackend,
    file_data: bytes,
    filename: str,
    content_type: str,
    settings: Settings,
    document_id: uuid.UUID | None = None,
    doc_type: DocType | None = None,
) -> Document:
    """Validate and store an upload, into an existing slot or a new one of ``doc_type``."""

    if len(file_data) == 0:
        raise ValidationError("Uploaded file is empty.")
    if len(file_data) > settings.max_upload_size:
        raise ValidationError(
            f"File size {len(file_data)} exceeds maximum allowed size of {settings.max_upload_size} bytes."
        )
    if content_type not in ALLOWED_MIME_TYPES:
        raise ValidationError(
            f"File type '{content_type}' is not allowed. "
            f"Allowed types: {', '.join(sorted(ALLOWED_MIME_TYPES))}"
        )

    box = await get_box(db, ctx.organization_id, box_id)
    _ensure_editable(box)

    if document_id is not None:
        document = _find_document(box, document_id)
    elif doc_type is not None:
        document = Document(doc_type=doc_type, created_by=ctx.user_id, files=[])
        box.documents.append(document)
    else:
        raise ValidationError("Either a document slot or a document type is required.")

    storage_path = await storage.save(
        file_data, _extension_from_filename(filename), prefix=str(ctx.organization_id)
    )
    stored = DocumentFile(
        original_filename=filename,
        storage_path=storage_path,
        mime_type=content_type,
        file_size=len(file_data),
        checksum_sha256=_compute_sha256(file_data),
        page_order=len(document.files),
        uploaded_by=ctx.user_id,
    )
    document.files.append(stored)
    await db.flush()

    refresh_doc_status(box)
    record_audit(
        db,
        organization_id=ctx.organization_id,
        user_id=ctx.user_id,
        action="FILE_UPLOADED",
        resource_type="document",
        resource_id=document.id,
        box_id=box.id,
        details={"filename": filename, "file_size": len(file_data), "doc_type": document.doc_type.value},
    )
    await db.commit()
    return document


async def delete_document(
    db: AsyncSession, ctx: OrgContext, box_id: uuid.UUID, document_id: uuid.UUID, storage: StorageBackend
) -> None:
    box = await get_box(db, ctx.organization_id, box_id)
    _ensure_editable(box)
    document = _find_document(box, document_id)
    storage_paths = [f.storage_path for f in document.files]

    box.documents.remove(document)
    await db.flush()
    refresh_doc_status(box)
    record_audit(
        db,
        organization_id=ctx.organization_id,
        user_id=ctx.user_id,
        action="DOCUMENT_DELETED",
        resource_type="document",
        resource_id=document_id,
        box_id=box.id,
        details={"doc_type": document.doc_type.value, "files": len(storage_paths)},
    )
    await db.commit()

    for path in storage_paths:
        try:
            await storage.delete(path)
        except OSError:
            logger.warning("Could not remove stored file %s", path)


async def delete_file(
    db: AsyncSession, ctx: OrgContext, box_id: uuid.UUID, file_id: uuid.UUID, storage: StorageBackend
) -> None:
    box = await get_box(db, ctx.organization_id, box_id)
    _ensure_editable(box)
    document, stored = _find_file(box, file_id)
    document.files.remove(stored)
    await db.flush()

    refresh_doc_status(box)
    record_audit(
        db,
        organization_id=ctx.organization_id,
        user_id=ctx.user_id,
        action="FILE_DELETED",
        resource_type="document",
        resource_id=document.id,
        box_id=box.id,
        details={"filename": stored.original_filename},
    )
    await db.commit()

    try:
        await storage.delete(stored.storage_path)
    except OSError:
        logger.warning("Could not remove stored file %s", stored.storage_path)


async def download_file(
    db: AsyncSession, organization_id: uuid.UUID, box_id: uuid.UUID, file_id: uuid.UUID, storage: StorageBackend
) -> tuple[DocumentFile, bytes]:
    box = await get_box(db, organization_id, box_id)
    _, stored = _find_file(box, file_id)
    try:
        data = await storage.read(stored.storage_path)
    except FileNotFoundError:
        logger.error("Stored file %s for box %s is missing", stored.storage_path, box.box_number)
        raise NotFoundError("File", str(file_id))
    return stored, data


# ---------------------------------------------------------------------------
# Checklist and timeline
# ---------------------------------------------------------------------------


def get_checklist(box: Box) -> dict:
    items = build_checklist(box, uploaded_doc_types(box))
    return {
        "items": [item.to_dict() for item in items],
        "completion_percent": completion_percent(items),
        "doc_status": box.doc_status.value,
    }


async def toggle_checklist(db: AsyncSession, ctx: OrgContext, box_id: uuid.UUID, item_id: str) -> dict:
    """Flip a hand-confirmed checklist item and re-derive doc_status."""
    if item_id not in TOGGLEABLE_ITEMS:
        raise ValidationError(f"Checklist item '{item_id}' cannot be toggled.")

    box = await get_box(db, ctx.organization_id, box_id)
    _ensure_editable(box)

    details: dict = {"item": item_id}
    if item_id in ("payment", "isPaid"):
        if box.payment_status in (PaymentStatus.PAID, PaymentStatus.OVERPAID):
            # Unchecking removes every payment so paid_amount returns to zero
            details["removed_amounts"] = [p.amount for p in box.payments]
            box.payments.clear()
            action = "MARK_UNPAID"
        else:
            remaining = remaining_balance(box.total_amount, box.paid_amount)
            if remaining <= 0:
                raise ValidationError(f"Box {box.box_number} has nothing left to pay.")
            box.payments.append(
                Payment(
                    amount=remaining,
                    date=date.today(),
                    method=PaymentMethod.TRANSFER,
                    notes="Marked as paid from checklist",
                    recorded_by=ctx.user_id,
                )
            )
            details["amount"] = remaining
            action = "MARK_PAID"
        await db.flush()
        recalculate_box_payments(box)
    elif item_id == "whtSent":
        if not box.has_wht:
            raise ValidationError("This box has no withholding tax.")
        box.wht_sent = not box.wht_sent
        action = "WHT_SENT" if box.wht_sent else "WHT_UNSENT"
    else:
        if box.no_receipt_reason == NoReceiptReason.NO_CASH_RECEIPT:
            box.no_receipt_reason = None
            action = "CASH_RECEIPT_REQUIRED"
        else:
            box.no_receipt_reason = NoReceiptReason.NO_CASH_RECEIPT
            action = "NO_CASH_RECEIPT"

    refresh_doc_status(box)
    record_audit(
        db,
        organization_id=ctx.organization_id,
        user_id=ctx.user_id,
        action=action,
        resource_type="box",
        resource_id=box.id,
        box_id=box.id,
        details=details,
    )
    await db.commit()
    box = await get_box(db, ctx.organization_id, box.id)
    return get_checklist(box)


async def get_timeline(db: AsyncSession, organization_id: uuid.UUID, box_id: uuid.UUID) -> list[AuditLog]:
    await get_box(db, organization_id, box_id)
    result = await db.execute(
        select(AuditLog)
        .where(AuditLog.organization_id == organization_id, AuditLog.box_id == box_id)
        .order_by(AuditLog.created_at.asc())
    )
    return list(result.scalars().all())
