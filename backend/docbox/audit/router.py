import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.audit.schemas import AuditLogFilter, AuditLogResponse
from docbox.audit.service import list_audit_logs
from docbox.core.pagination import PaginationParams, get_pagination
from docbox.dependencies import OrgContext, get_db, require_org_role
from docbox.organizations.permissions import ADMIN_ROLES

router = APIRouter()


@router.get("")
async def get_audit_logs(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
    pagination: Annotated[PaginationParams, Depends(get_pagination)],
    box_id: uuid.UUID | None = Query(None),
    action: str | None = Query(None),
    user_id: uuid.UUID | None = Query(None),
) -> dict:
    filters = AuditLogFilter(box_id=box_id, action=action, user_id=user_id)
    logs, meta = await list_audit_logs(db, ctx.organization_id, filters, pagination)
    return {"data": [AuditLogResponse.model_validate(log) for log in logs], "meta": meta}
