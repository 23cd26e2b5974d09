import math
from dataclasses import dataclass
from typing import Any

from fastapi import Query
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100


@dataclass
class PaginationParams:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def get_pagination(
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size)


def build_pagination_meta(total_count: int, pagination: PaginationParams) -> dict:
    total_pages = math.ceil(total_count / pagination.page_size) if total_count else 0
    return {
        "page": pagination.page,
        "page_size": pagination.page_size,
        "total_count": total_count,
        "total_pages": total_pages,
        "has_next": pagination.page < total_pages,
    }


async def paginate(
    db: AsyncSession,
    query: Select,
    pagination: PaginationParams,
    *order_by: Any,
) -> tuple[list, dict]:
    """Count ``query``, then fetch one ordered page of it.

    Returns the page's ORM objects and the ``meta`` block for the response envelope.
    """
    total = await db.scalar(select(func.count()).select_from(query.order_by(None).subquery())) or 0
    result = await db.execute(
        query.order_by(*order_by).offset(pagination.offset).limit(pagination.page_size)
    )
    return list(result.scalars().all()), build_pagination_meta(total, pagination)
