import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.dependencies import OrgContext, get_db, get_dispatcher, require_org_role
from docbox.integrations import service
from docbox.integrations.dispatcher import WebhookDispatcher
from docbox.integrations.models import REQUIRED_CONFIG, IntegrationEvent
from docbox.integrations.schemas import (
    IntegrationCreate,
    IntegrationResponse,
    IntegrationUpdate,
    WebhookLogResponse,
)
from docbox.organizations.permissions import ADMIN_ROLES

router = APIRouter()


@router.get("/catalog")
async def integration_catalog(
    _: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
) -> dict:
    return {
        "data": {
            "types": [{"type": t.value, "required_config": list(keys)} for t, keys in REQUIRED_CONFIG.items()],
            "events": [e.value for e in IntegrationEvent],
        }
    }


@router.get("")
async def list_integrations(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
) -> dict:
    integrations = await service.list_integrations(db, ctx.organization_id)
    return {"data": [IntegrationResponse.model_validate(i) for i in integrations]}


@router.post("", status_code=201)
async def create_integration(
    data: IntegrationCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
) -> dict:
    integration = await service.create_integration(db, ctx.organization_id, data, ctx.user_id)
    return {"data": IntegrationResponse.model_validate(integration)}


@router.put("/{integration_id}")
async def update_integration(
    integration_id: uuid.UUID,
    data: IntegrationUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
) -> dict:
    integration = await service.update_integration(db, ctx.organization_id, integration_id, data)
    return {"data": IntegrationResponse.model_validate(integration)}


@router.delete("/{integration_id}")
async def delete_integration(
    integration_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
) -> dict:
    await service.delete_integration(db, ctx.organization_id, integration_id)
    return {"data": {"message": "Integration deleted"}}


@router.post("/{integration_id}/test")
async def test_integration(
    integration_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
    dispatcher: Annotated[WebhookDispatcher, Depends(get_dispatcher)],
) -> dict:
    log = await service.test_integration(db, ctx.organization, integration_id, dispatcher)
    return {"data": WebhookLogResponse.model_validate(log)}


@router.get("/{integration_id}/logs")
async def integration_logs(
    integration_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
    limit: int = Query(50, ge=1, le=200),
) -> dict:
    logs = await service.list_webhook_logs(db, ctx.organization_id, integration_id, limit)
    return {"data": [WebhookLogResponse.model_validate(log) for log in logs]}
