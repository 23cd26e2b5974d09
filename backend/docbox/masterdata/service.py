import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.core.exceptions import ConflictError, NotFoundError
from docbox.masterdata.models import Category, CategoryType, CostCenter
from docbox.masterdata.schemas import (
    CategoryCreate,
    CategoryUpdate,
    CostCenterCreate,
    CostCenterUpdate,
)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


async def list_categories(
    db: AsyncSession,
    organization_id: uuid.UUID,
    type: CategoryType | None = None,
    include_inactive: bool = False,
) -> list[Category]:
    query = select(Category).where(Category.organization_id == organization_id)
    if type is not None:
        query = query.where(Category.type == type)
    if not include_inactive:
        query = query.where(Category.is_active == True)  # noqa: E712
    result = await db.execute(query.order_by(Category.name))
    return list(result.scalars().all())


async def get_category(db: AsyncSession, organization_id: uuid.UUID, category_id: uuid.UUID) -> Category:
    result = await db.execute(
        select(Category).where(Category.id == category_id, Category.organization_id == organization_id)
    )
    category = result.scalar_one_or_none()
    if category is None:
        raise NotFoundError("Category", str(category_id))
    return category


async def create_category(db: AsyncSession, organization_id: uuid.UUID, data: CategoryCreate) -> Category:
    category = Category(**data.model_dump(), organization_id=organization_id)
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return category


async def update_category(
    db: AsyncSession, organization_id: uuid.UUID, category_id: uuid.UUID, data: CategoryUpdate
) -> Category:
    category = await get_category(db, organization_id, category_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(category, key, value)
    await db.commit()
    await db.refresh(category)
    return category


async def delete_category(db: AsyncSession, organization_id: uuid.UUID, category_id: uuid.UUID) -> None:
    category = await get_category(db, organization_id, category_id)
    await db.delete(category)
    await db.commit()


# ---------------------------------------------------------------------------
# Cost centers
# ---------------------------------------------------------------------------


async def list_cost_centers(
    db: AsyncSession, organization_id: uuid.UUID, include_inactive: bool = False
) -> list[CostCenter]:
    query = select(CostCenter).where(CostCenter.organization_id == organization_id)
    if not include_inactive:
        query = query.where(CostCenter.is_active == True)  # noqa: E712
    result = await db.execute(query.order_by(CostCenter.code))
    return list(result.scalars().all())


async def get_cost_center(
    db: AsyncSession, organization_id: uuid.UUID, cost_center_id: uuid.UUID
) -> CostCenter:
    result = await db.execute(
        select(CostCenter).where(
            CostCenter.id == cost_center_id, CostCenter.organization_id == organization_id
        )
    )
    cost_center = result.scalar_one_or_none()
    if cost_center is None:
        raise NotFoundError("Cost center", str(cost_center_id))
    return cost_center


async def _commit_unique(db: AsyncSession, code: str) -> None:
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Cost center code {code} is already in use.")


async def create_cost_center(
    db: AsyncSession, organization_id: uuid.UUID, data: CostCenterCreate
) -> CostCenter:
    cost_center = CostCenter(**data.model_dump(), organization_id=organization_id)
    db.add(cost_center)
    await _commit_unique(db, data.code)
    await db.refresh(cost_center)
    return cost_center


async def update_cost_center(
    db: AsyncSession,
    organization_id: uuid.UUID,
    cost_center_id: uuid.UUID,
    data: CostCenterUpdate,
) -> CostCenter:
    cost_center = await get_cost_center(db, organization_id, cost_center_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(cost_center, key, value)
    await _commit_unique(db, cost_center.code)
    await db.refresh(cost_center)
    return cost_center


async def delete_cost_center(
    db: AsyncSession, organization_id: uuid.UUID, cost_center_id: uuid.UUID
) -> None:
    cost_center = await get_cost_center(db, organization_id, cost_center_id)
    await db.delete(cost_center)
    await db.commit()
