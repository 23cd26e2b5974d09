import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.core.pagination import PaginationParams, get_pagination
from docbox.dependencies import OrgContext, get_db, get_org_context, require_org_role
from docbox.organizations.permissions import ACCOUNTING_ROLES, ADMIN_ROLES
from docbox.tasks import service
from docbox.tasks.models import TaskStatus, TaskType
from docbox.tasks.schemas import TaskCancel, TaskCreate, TaskFilter, TaskResponse, TaskUpdate

router = APIRouter()


@router.get("")
async def list_tasks(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
    pagination: Annotated[PaginationParams, Depends(get_pagination)],
    status: TaskStatus | None = Query(None),
    task_type: TaskType | None = Query(None),
    box_id: uuid.UUID | None = Query(None),
    assignee_id: uuid.UUID | None = Query(None),
    overdue_only: bool = Query(False),
) -> dict:
    filters = TaskFilter(
        status=status, task_type=task_type, box_id=box_id, assignee_id=assignee_id, overdue_only=overdue_only
    )
    tasks, meta = await service.list_tasks(db, ctx.organization_id, filters, pagination)
    return {"data": [TaskResponse.model_validate(t) for t in tasks], "meta": meta}


@router.get("/stats")
async def get_task_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    return {"data": await service.task_stats(db, ctx.organization_id)}


@router.post("", status_code=201)
async def create_task(
    data: TaskCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    task = await service.create_task(db, ctx, data)
    return {"data": TaskResponse.model_validate(task)}


@router.get("/{task_id}")
async def get_task(
    task_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    task = await service.get_task(db, ctx.organization_id, task_id)
    return {"data": TaskResponse.model_validate(task)}


@router.put("/{task_id}")
async def update_task(
    task_id: uuid.UUID,
    data: TaskUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    task = await service.update_task(db, ctx, task_id, data)
    return {"data": TaskResponse.model_validate(task)}


@router.post("/{task_id}/complete")
async def complete_task(
    task_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    task = await service.complete_task(db, ctx, task_id)
    return {"data": TaskResponse.model_validate(task)}


@router.post("/{task_id}/cancel")
async def cancel_task(
    task_id: uuid.UUID,
    body: TaskCancel,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    task = await service.cancel_task(db, ctx, task_id, body.reason)
    return {"data": TaskResponse.model_validate(task)}


@router.post("/{task_id}/remind")
async def remind_task(
    task_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(get_org_context)],
) -> dict:
    task = await service.send_task_reminder(db, ctx, task_id)
    return {"data": TaskResponse.model_validate(task)}


@router.post("/{task_id}/escalate")
async def escalate_task(
    task_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ACCOUNTING_ROLES))],
) -> dict:
    task = await service.escalate_task(db, ctx, task_id)
    return {"data": TaskResponse.model_validate(task)}


@router.delete("/{task_id}")
async def delete_task(
    task_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    ctx: Annotated[OrgContext, Depends(require_org_role(ADMIN_ROLES))],
) -> dict:
    await service.delete_task(db, ctx.organization_id, task_id)
    return {"data": {"message": "Task deleted"}}
