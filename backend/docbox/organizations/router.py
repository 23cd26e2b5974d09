import uuid
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.auth.models import User
from docbox.dependencies import OrgContext, get_current_user, get_db, get_org_context, require_org_role
from docbox.organizations.permissions import ADMIN_ROLES
from docbox.organizations.schemas import (
    MemberAdd,
    MemberResponse,
    MemberRoleUpdate,
    MyOrganizationResponse,
    OrganizationCreate,
    OrganizationResponse,
    OrganizationUpdate,
)
from docbox.organizations.service import (
    add_member,
    change_member_role,
    create_organization,
    list_members,
    list_my_organizations,
    remove_member,
    update_organization,
)

router = APIRouter()


@router.post("", status_code=201)
async def create_org(
    data: OrganizationCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    org = await create_organization(db, data, current_user)
    return {"data": OrganizationResponse.model_validate(org)}


@router.get("")
async def my_orgs(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    rows = await list_my_organizations(db, current_user)
    return {
        "data": [
            MyOrganizationResponse(**OrganizationResponse.model_validate(org).model_dump(), role=role)
            for org, role in rows
        ]
    }


@router.get("/current")
async def current_org(
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    return {
        "data": MyOrganizationResponse(
            **OrganizationResponse.model_validate(ctx.organization).model_dump(), role=ctx.role
        )
    }


@router.put("/current")
async def update_current_org(
    data: OrganizationUpdate,
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    org = await update_organization(db, ctx.organization, data)
    return {"data": OrganizationResponse.model_validate(org)}


@router.get("/current/members")
async def get_members(
    ctx: Annotated[OrgContext, Depends(get_org_context)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    members = await list_members(db, ctx.organization_id)
    return {"data": [MemberResponse.from_member(m) for m in members]}


@router.post("/current/members", status_code=201)
async def add_org_member(
    data: MemberAdd,
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    member = await add_member(db, ctx.organization_id, data, ctx.role)
    return {"data": MemberResponse.from_member(member)}


@router.put("/current/members/{member_id}")
async def update_org_member(
    member_id: uuid.UUID,
    data: MemberRoleUpdate,
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    member = await change_member_role(db, ctx.organization_id, member_id, data.role, ctx.role)
    return {"data": MemberResponse.from_member(member)}


@router.delete("/current/members/{member_id}")
async def delete_org_member(
    member_id: uuid.UUID,
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    await remove_member(db, ctx.organization_id, member_id, ctx.role)
    return {"data": {"message": "Member removed"}}
