import io
import uuid
from datetime import date
from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.audit.schemas import AuditLogResponse
from docbox.boxes import service
from docbox.boxes.models import BoxStatus, BoxType, DocStatus, DocType, PaymentStatus
from docbox.boxes.schemas import (
    BoxCreate,
    BoxFilter,
    BoxListItem,
    BoxResponse,
    BoxStatusChange,
    BoxTaxUpdate,
    BoxUpdate,
    ChecklistToggle,
    DocumentCreate,
    DocumentResponse,
    VatStatusUpdate,
    WhtStatusUpdate,
)
from docbox.boxes.storage import LocalStorage, StorageBackend
from docbox.boxes.tax import wht_rate_options
from docbox.core.pagination import PaginationParams, get_pagination
from docbox.dependencies import OrgContext, get_db, get_dispatcher, get_org_context, require_org_role
from docbox.integrations.dispatcher import WebhookDispatcher
from docbox.organizations.permissions import ACCOUNTING_ROLES, ADMIN_ROLES

router = APIRouter()


def get_storage(request: Request) -> StorageBackend:
    """Resolve the storage backend from application settings."""
    return LocalStorage(request.app.state.settings.storage_path)


# ---------------------------------------------------------------------------
# Boxes
# ---------------------------------------------------------------------------


@router.get("")
async def list_boxes(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
    pagination: Annotated[PaginationParams, Depends(get_pagination)],
    status: BoxStatus | None = Query(None),
    box_type: BoxType | None = Query(None),
    doc_status: DocStatus | None = Query(None),
    payment_status: PaymentStatus | None = Query(None),
    contact_id: uuid.UUID | None = Query(None),
    category_id: uuid.UUID | None = Query(None),
    cost_center_id: uuid.UUID | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    search: str | None = Query(None),
    has_wht: bool | None = Query(None),
    wht_overdue: bool | None = Query(None),
) -> dict:
    filters = BoxFilter(
        status=status,
        box_type=box_type,
        doc_status=doc_status,
        payment_status=payment_status,
        contact_id=contact_id,
        category_id=category_id,
        cost_center_id=cost_center_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
        has_wht=has_wht,
        wht_overdue=wht_overdue,
    )
    boxes, meta = await service.list_boxes(db, ctx.organization_id, filters, pagination)
    return {"data": [BoxListItem.model_validate(b) for b in boxes], "meta": meta}


@router.get("/wht-rates")
async def list_wht_rates(
    _: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    return {"data": wht_rate_options()}


@router.post("", status_code=201)
async def create_box(
    data: BoxCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    box = await service.create_box(db, ctx, data, request.app.state.settings)
    return {"data": BoxResponse.model_validate(box)}


@router.get("/{box_id}")
async def get_box(
    box_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    box = await service.get_box(db, ctx.organization_id, box_id)
    return {
        "data": BoxResponse.model_validate(box),
        "meta": {"transitions": service.list_transitions(box, ctx)},
    }


@router.put("/{box_id}")
async def update_box(
    box_id: uuid.UUID,
    data: BoxUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    box = await service.update_box(db, ctx, box_id, data, request.app.state.settings)
    return {"data": BoxResponse.model_validate(box)}


@router.delete("/{box_id}")
async def delete_box(
    box_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
    storage: Annotated[StorageBackend, Depends(get_storage)],
) -> dict:
    await service.delete_box(db, ctx, box_id, storage)
    return {"data": {"message": "Box deleted"}}


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


@router.post("/{box_id}/status")
async def change_box_status(
    box_id: uuid.UUID,
    data: BoxStatusChange,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
    dispatcher: Annotated[WebhookDispatcher, Depends(get_dispatcher)],
) -> dict:
    box = await service.change_status(db, ctx, box_id, data, dispatcher)
    return {
        "data": BoxResponse.model_validate(box),
        "meta": {"transitions": service.list_transitions(box, ctx)},
    }


@router.put("/{box_id}/tax")
async def update_box_tax(
    box_id: uuid.UUID,
    data: BoxTaxUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ACCOUNTING_ROLES))],
) -> dict:
    box = await service.update_tax(db, ctx, box_id, data, request.app.state.settings)
    return {"data": BoxResponse.model_validate(box)}


@router.put("/{box_id}/vat-status")
async def update_vat_status(
    box_id: uuid.UUID,
    data: VatStatusUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ACCOUNTING_ROLES))],
) -> dict:
    box = await service.update_vat_status(db, ctx, box_id, data.vat_doc_status)
    return {"data": BoxResponse.model_validate(box)}


@router.put("/{box_id}/wht-status")
async def update_wht_status(
    box_id: uuid.UUID,
    data: WhtStatusUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ACCOUNTING_ROLES))],
) -> dict:
    box = await service.update_wht_status(db, ctx, box_id, data.wht_doc_status)
    return {"data": BoxResponse.model_validate(box)}


@router.get("/{box_id}/checklist")
async def get_checklist(
    box_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    box = await service.get_box(db, ctx.organization_id, box_id)
    return {"data": service.get_checklist(box)}


@router.post("/{box_id}/checklist/toggle")
async def toggle_checklist_item(
    box_id: uuid.UUID,
    data: ChecklistToggle,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    return {"data": await service.toggle_checklist(db, ctx, box_id, data.item_id)}


@router.get("/{box_id}/timeline")
async def get_timeline(
    box_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    logs = await service.get_timeline(db, ctx.organization_id, box_id)
    return {"data": [AuditLogResponse.model_validate(log) for log in logs]}


# ---------------------------------------------------------------------------
# Documents and files
# ---------------------------------------------------------------------------


@router.post("/{box_id}/documents", status_code=201)
async def add_document(
    box_id: uuid.UUID,
    data: DocumentCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    document = await service.add_document(db, ctx, box_id, data)
    return {"data": DocumentResponse.model_validate(document)}


@router.post("/{box_id}/files", status_code=201)
async def upload_file(
    box_id: uuid.UUID,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
    storage: Annotated[StorageBackend, Depends(get_storage)],
    file: UploadFile = File(...),
    doc_type: DocType | None = Form(None),
    document_id: uuid.UUID | None = Form(None),
) -> dict:
    """Upload a file into an existing document slot or into a new slot of ``doc_type``."""
    file_data = await file.read()
    document = await service.upload_file(
        db=db,
        ctx=ctx,
        box_id=box_id,
        storage=storage,
        file_data=file_data,
        filename=file.filename or "unnamed",
        content_type=file.content_type or "application/octet-stream",
        settings=request.app.state.settings,
        document_id=document_id,
        doc_type=doc_type,
    )
    return {"data": DocumentResponse.model_validate(document)}


@router.delete("/{box_id}/documents/{document_id}")
async def delete_document(
    box_id: uuid.UUID,
    document_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
    storage: Annotated[StorageBackend, Depends(get_storage)],
) -> dict:
    await service.delete_document(db, ctx, box_id, document_id, storage)
    return {"data": {"message": "Document deleted"}}


@router.delete("/{box_id}/files/{file_id}")
async def delete_file(
    box_id: uuid.UUID,
    file_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
    storage: Annotated[StorageBackend, Depends(get_storage)],
) -> dict:
    await service.delete_file(db, ctx, box_id, file_id, storage)
    return {"data": {"message": "File deleted"}}


@router.get("/{box_id}/files/{file_id}/download")
async def download_file(
    box_id: uuid.UUID,
    file_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
    storage: Annotated[StorageBackend, Depends(get_storage)],
) -> StreamingResponse:
    stored, data = await service.download_file(db, ctx.organization_id, box_id, file_id, storage)
    return StreamingResponse(
        io.BytesIO(data),
        media_type=stored.mime_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(stored.original_filename)}",
            "Content-Length": str(stored.file_size),
        },
    )
