import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.contacts import service
from docbox.contacts.models import ContactType
from docbox.contacts.schemas import (
    ContactCreate,
    ContactFilter,
    ContactListItem,
    ContactResponse,
    ContactUpdate,
)
from docbox.core.pagination import PaginationParams, get_pagination
from docbox.dependencies import OrgContext, get_db, get_org_context, require_org_role
from docbox.organizations.permissions import ADMIN_ROLES

router = APIRouter()


@router.get("")
async def list_contacts(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
    pagination: Annotated[PaginationParams, Depends(get_pagination)],
    search: str | None = Query(None),
    type: ContactType | None = Query(None),
    is_active: bool | None = Query(None),
) -> dict:
    filters = ContactFilter(search=search, type=type, is_active=is_active)
    contacts, meta = await service.list_contacts(db, ctx.organization_id, filters, pagination)
    return {"data": [ContactListItem.model_validate(c) for c in contacts], "meta": meta}


@router.post("", status_code=201)
async def create_contact(
    data: ContactCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    contact = await service.create_contact(db, ctx.organization_id, data, ctx.user_id)
    return {"data": ContactResponse.model_validate(contact)}


@router.get("/{contact_id}")
async def get_contact(
    contact_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    contact = await service.get_contact(db, ctx.organization_id, contact_id)
    return {"data": ContactResponse.model_validate(contact)}


@router.put("/{contact_id}")
async def update_contact(
    contact_id: uuid.UUID,
    data: ContactUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    contact = await service.update_contact(db, ctx.organization_id, contact_id, data)
    return {"data": ContactResponse.model_validate(contact)}


@router.delete("/{contact_id}")
async def delete_contact(
    contact_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
) -> dict:
    await service.delete_contact(db, ctx.organization_id, contact_id)
    return {"data": {"message": "Contact deleted"}}
