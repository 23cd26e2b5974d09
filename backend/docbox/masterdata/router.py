import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.dependencies import OrgContext, get_db, get_org_context, require_org_role
from docbox.masterdata import service
from docbox.masterdata.models import CategoryType
from docbox.masterdata.schemas import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    CostCenterCreate,
    CostCenterResponse,
    CostCenterUpdate,
)
from docbox.organizations.permissions import ACCOUNTING_ROLES, ADMIN_ROLES

router = APIRouter()


@router.get("/categories")
async def list_categories(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
    type: CategoryType | None = Query(None),
    include_inactive: bool = Query(False),
) -> dict:
    categories = await service.list_categories(db, ctx.organization_id, type, include_inactive)
    return {"data": [CategoryResponse.model_validate(c) for c in categories]}


@router.post("/categories", status_code=201)
async def create_category(
    data: CategoryCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ACCOUNTING_ROLES))],
) -> dict:
    category = await service.create_category(db, ctx.organization_id, data)
    return {"data": CategoryResponse.model_validate(category)}


@router.put("/categories/{category_id}")
async def update_category(
    category_id: uuid.UUID,
    data: CategoryUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ACCOUNTING_ROLES))],
) -> dict:
    category = await service.update_category(db, ctx.organization_id, category_id, data)
    return {"data": CategoryResponse.model_validate(category)}


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
) -> dict:
    await service.delete_category(db, ctx.organization_id, category_id)
    return {"data": {"message": "Category deleted"}}


@router.get("/cost-centers")
async def list_cost_centers(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
    include_inactive: bool = Query(False),
) -> dict:
    cost_centers = await service.list_cost_centers(db, ctx.organization_id, include_inactive)
    return {"data": [CostCenterResponse.model_validate(c) for c in cost_centers]}


@router.post("/cost-centers", status_code=201)
async def create_cost_center(
    data: CostCenterCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ACCOUNTING_ROLES))],
) -> dict:
    cost_center = await service.create_cost_center(db, ctx.organization_id, data)
    return {"data": CostCenterResponse.model_validate(cost_center)}


@router.put("/cost-centers/{cost_center_id}")
async def update_cost_center(
    cost_center_id: uuid.UUID,
    data: CostCenterUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ACCOUNTING_ROLES))],
) -> dict:
    cost_center = await service.update_cost_center(db, ctx.organization_id, cost_center_id, data)
    return {"data": CostCenterResponse.model_validate(cost_center)}


@router.delete("/cost-centers/{cost_center_id}")
async def delete_cost_center(
    cost_center_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
) -> dict:
    await service.delete_cost_center(db, ctx.organization_id, cost_center_id)
    return {"data": {"message": "Cost center deleted"}}
