import uuid
from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.boxes.router import get_storage
from docbox.boxes.storage import StorageBackend
from docbox.dependencies import OrgContext, get_db, get_org_context, require_org_role
from docbox.export import service
from docbox.export.schemas import (
    ExcelExportRequest,
    ExportHistoryResponse,
    ExportProfileCreate,
    ExportProfileResponse,
    ExportProfileUpdate,
    ZipExportRequest,
)
from docbox.organizations.permissions import ACCOUNTING_ROLES

router = APIRouter()


def _attachment(content: bytes, file_name: str, media_type: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(file_name)}"},
    )


@router.get("/formats")
async def list_formats(
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    return {"data": service.list_formats()}


@router.post("/excel")
async def export_excel(
    request: Request,
    data: ExcelExportRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ACCOUNTING_ROLES))],
):
    file_name, content = await service.export_excel(db, ctx, data, request.app.state.settings)
    return _attachment(content, file_name, service.XLSX_MEDIA_TYPE)


@router.post("/zip")
async def export_zip(
    request: Request,
    data: ZipExportRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ACCOUNTING_ROLES))],
    storage: Annotated[StorageBackend, Depends(get_storage)],
):
    file_name, content = await service.export_zip(db, ctx, data, storage, request.app.state.settings)
    return _attachment(content, file_name, "application/zip")


@router.get("/history")
async def export_history(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ACCOUNTING_ROLES))],
) -> dict:
    limit = request.app.state.settings.export_history_limit
    history = await service.list_history(db, ctx.organization_id, limit)
    return {"data": [ExportHistoryResponse.model_validate(h) for h in history]}


# ---------------------------------------------------------------------------
# Custom profiles
# ---------------------------------------------------------------------------


@router.get("/profiles")
async def list_profiles(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ACCOUNTING_ROLES))],
) -> dict:
    profiles = await service.list_profiles(db, ctx.organization_id)
    return {"data": [ExportProfileResponse.model_validate(p) for p in profiles]}


@router.post("/profiles", status_code=201)
async def create_profile(
    data: ExportProfileCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ACCOUNTING_ROLES))],
) -> dict:
    profile = await service.create_profile(db, ctx, data)
    return {"data": ExportProfileResponse.model_validate(profile)}


@router.put("/profiles/{profile_id}")
async def update_profile(
    profile_id: uuid.UUID,
    data: ExportProfileUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ACCOUNTING_ROLES))],
) -> dict:
    profile = await service.update_profile(db, ctx, profile_id, data)
    return {"data": ExportProfileResponse.model_validate(profile)}


@router.delete("/profiles/{profile_id}")
async def delete_profile(
    profile_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ACCOUNTING_ROLES))],
) -> dict:
    await service.delete_profile(db, ctx, profile_id)
    return {"data": {"message": "Export profile deleted"}}
