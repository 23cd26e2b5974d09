import uuid
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.dependencies import OrgContext, get_db, get_dispatcher, get_org_context, require_org_role
from docbox.integrations.dispatcher import WebhookDispatcher
from docbox.organizations.permissions import ACCOUNTING_ROLES
from docbox.payments import service
from docbox.payments.schemas import MarkAsPaid, PaymentCreate, PaymentResponse, PaymentUpdate

router = APIRouter()


@router.get("/{box_id}/payments")
async def list_payments(
    box_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    payments = await service.list_payments(db, ctx.organization_id, box_id)
    return {"data": [PaymentResponse.model_validate(p) for p in payments]}


@router.post("/{box_id}/payments", status_code=201)
async def add_payment(
    box_id: uuid.UUID,
    data: PaymentCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
    dispatcher: Annotated[WebhookDispatcher, Depends(get_dispatcher)],
) -> dict:
    payment = await service.add_payment(db, ctx, box_id, data, dispatcher)
    return {"data": PaymentResponse.model_validate(payment)}


@router.post("/{box_id}/payments/mark-paid", status_code=201)
async def mark_as_paid(
    box_id: uuid.UUID,
    data: MarkAsPaid,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
    dispatcher: Annotated[WebhookDispatcher, Depends(get_dispatcher)],
) -> dict:
    payment = await service.mark_as_paid(db, ctx, box_id, data, dispatcher)
    return {"data": PaymentResponse.model_validate(payment)}


@router.put("/{box_id}/payments/{payment_id}")
async def update_payment(
    box_id: uuid.UUID,
    payment_id: uuid.UUID,
    data: PaymentUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ACCOUNTING_ROLES))],
) -> dict:
    payment = await service.update_payment(db, ctx, box_id, payment_id, data)
    return {"data": PaymentResponse.model_validate(payment)}


@router.delete("/{box_id}/payments/{payment_id}")
async def delete_payment(
    box_id: uuid.UUID,
    payment_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ACCOUNTING_ROLES))],
) -> dict:
    await service.delete_payment(db, ctx, box_id, payment_id)
    return {"data": {"message": "Payment deleted"}}
