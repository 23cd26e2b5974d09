import uuid
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.auth.models import User
from docbox.dependencies import OrgContext, get_current_user, get_db, require_org_role
from docbox.firms import service
from docbox.firms.dashboard import build_firm_dashboard
from docbox.firms.schemas import (
    ClientHealthResponse,
    ClientInvite,
    ClientRelationResponse,
    FirmCreate,
    FirmDashboardResponse,
    FirmMemberAdd,
    FirmMemberResponse,
    FirmResponse,
    FirmUpdate,
    MyFirmResponse,
)
from docbox.organizations.permissions import ADMIN_ROLES

router = APIRouter()

# Mounted under the organization prefix: the client side of firm relations
client_router = APIRouter()


@router.post("", status_code=201)
async def create_firm(
    data: FirmCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    firm = await service.create_firm(db, data, current_user)
    return {"data": FirmResponse.model_validate(firm)}


@router.get("")
async def my_firms(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    rows = await service.list_my_firms(db, current_user)
    return {
        "data": [
            MyFirmResponse(**FirmResponse.model_validate(firm).model_dump(), role=role)
            for firm, role in rows
        ]
    }


@router.get("/{firm_id}")
async def get_firm(
    firm_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    firm, member = await service.get_firm_for_member(db, firm_id, current_user.id)
    return {"data": MyFirmResponse(**FirmResponse.model_validate(firm).model_dump(), role=member.role)}


@router.put("/{firm_id}")
async def update_firm(
    firm_id: uuid.UUID,
    data: FirmUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    firm, member = await service.get_firm_for_member(db, firm_id, current_user.id)
    service.require_firm_manager(member)
    firm = await service.update_firm(db, firm, data)
    return {"data": FirmResponse.model_validate(firm)}


@router.get("/{firm_id}/dashboard")
async def firm_dashboard(
    firm_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    firm, _ = await service.get_firm_for_member(db, firm_id, current_user.id)
    summary = await build_firm_dashboard(db, firm)
    summary["clients"] = [ClientHealthResponse.model_validate(c) for c in summary["clients"]]
    return {"data": FirmDashboardResponse(**summary)}


# ---------------------------------------------------------------------------
# Firm staff
# ---------------------------------------------------------------------------


@router.get("/{firm_id}/members")
async def list_firm_members(
    firm_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    firm, _ = await service.get_firm_for_member(db, firm_id, current_user.id)
    return {"data": [FirmMemberResponse.from_member(m) for m in firm.members if m.is_active]}


@router.post("/{firm_id}/members", status_code=201)
async def add_firm_member(
    firm_id: uuid.UUID,
    data: FirmMemberAdd,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    firm, member = await service.get_firm_for_member(db, firm_id, current_user.id)
    service.require_firm_manager(member)
    added = await service.add_firm_member(db, firm, data)
    return {"data": FirmMemberResponse.from_member(added)}


@router.delete("/{firm_id}/members/{member_id}")
async def remove_firm_member(
    firm_id: uuid.UUID,
    member_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    firm, member = await service.get_firm_for_member(db, firm_id, current_user.id)
    service.require_firm_manager(member)
    await service.remove_firm_member(db, firm, member_id)
    return {"data": {"message": "Firm member removed"}}


# ---------------------------------------------------------------------------
# Client organizations, firm side
# ---------------------------------------------------------------------------


@router.get("/{firm_id}/clients")
async def list_clients(
    firm_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    await service.get_firm_membership(db, firm_id, current_user.id)
    relations = await service.list_firm_clients(db, firm_id)
    return {"data": [ClientRelationResponse.from_relation(r) for r in relations]}


@router.post("/{firm_id}/clients", status_code=201)
async def invite_client(
    firm_id: uuid.UUID,
    data: ClientInvite,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    firm, member = await service.get_firm_for_member(db, firm_id, current_user.id)
    service.require_firm_manager(member)
    relation = await service.invite_client(db, firm, data, current_user)
    return {"data": ClientRelationResponse.from_relation(relation)}


@router.post("/{firm_id}/clients/{relation_id}/terminate")
async def terminate_client(
    firm_id: uuid.UUID,
    relation_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    member = await service.get_firm_membership(db, firm_id, current_user.id)
    service.require_firm_manager(member)
    relation = await service.get_firm_client(db, firm_id, relation_id)
    relation = await service.terminate_relation(db, relation)
    return {"data": ClientRelationResponse.from_relation(relation)}


# ---------------------------------------------------------------------------
# Client organizations, organization side
# ---------------------------------------------------------------------------


@client_router.get("")
async def list_organization_firms(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
) -> dict:
    relations = await service.list_organization_firms(db, ctx.organization_id)
    return {"data": [ClientRelationResponse.from_relation(r) for r in relations]}


@client_router.post("/{relation_id}/accept")
async def accept_invitation(
    relation_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
) -> dict:
    relation = await service.get_organization_relation(db, ctx.organization_id, relation_id)
    relation = await service.respond_to_invitation(db, relation, accept=True)
    return {"data": ClientRelationResponse.from_relation(relation)}


@client_router.post("/{relation_id}/decline")
async def decline_invitation(
    relation_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
) -> dict:
    relation = await service.get_organization_relation(db, ctx.organization_id, relation_id)
    relation = await service.respond_to_invitation(db, relation, accept=False)
    return {"data": ClientRelationResponse.from_relation(relation)}


@client_router.post("/{relation_id}/terminate")
async def end_relation(
    relation_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
) -> dict:
    relation = await service.get_organization_relation(db, ctx.organization_id, relation_id)
    relation = await service.terminate_relation(db, relation)
    return {"data": ClientRelationResponse.from_relation(relation)}
