from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.audit.service import record_audit
from docbox.boxes.models import Box, VatDocStatus, WhtDocStatus
from docbox.core.exceptions import NotFoundError, ValidationError
from docbox.core.pagination import PaginationParams, paginate
from docbox.dependencies import OrgContext
from docbox.integrations.dispatcher import WebhookDispatcher
from docbox.integrations.models import IntegrationEvent
from docbox.notifications.models import NotificationType
from docbox.notifications.service import notify_users
from docbox.organizations.models import MemberRole
from docbox.organizations.permissions import ACCOUNTING_ROLES, ADMIN_ROLES
from docbox.organizations.service import list_member_user_ids
from docbox.tasks.models import ACTIVE_TASK_STATUSES, Task, TaskStatus, TaskType
from docbox.tasks.schemas import TaskCreate, TaskFilter, TaskUpdate

logger = logging.getLogger(__name__)

WHT_TASK_TITLE = "ขอหนังสือรับรองหัก ณ ที่จ่าย"
VAT_TASK_TITLE = "ขอใบกำกับภาษี"


@dataclass(frozen=True)
class ReminderPolicy:
    first_reminder_days: int = 3
    escalate_to_owner_days: int = 7
    overdue_days: int = 14


DEFAULT_POLICY = ReminderPolicy()


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def _get_box(db: AsyncSession, organization_id: uuid.UUID, box_id: uuid.UUID) -> Box:
    result = await db.execute(select(Box).where(Box.id == box_id, Box.organization_id == organization_id))
    box = result.scalar_one_or_none()
    if box is None:
        raise NotFoundError("Box", str(box_id))
    return box


async def get_task(db: AsyncSession, organization_id: uuid.UUID, task_id: uuid.UUID) -> Task:
    result = await db.execute(
        select(Task).where(Task.id == task_id, Task.organization_id == organization_id)
    )
    task = result.scalar_one_or_none()
    if task is None:
        raise NotFoundError("Task", str(task_id))
    return task


def _notify_assignee(db: AsyncSession, ctx: OrgContext, task: Task) -> None:
    if task.assignee_id and task.assignee_id != ctx.user_id:
        notify_users(
            db,
            [task.assignee_id],
            NotificationType.TASK_ASSIGNED,
            "งานใหม่",
            f"คุณได้รับมอบหมายงาน: {task.title}",
            organization_id=ctx.organization_id,
            resource_type="task",
            resource_id=str(task.id),
        )


async def create_task(db: AsyncSession, ctx: OrgContext, data: TaskCreate) -> Task:
    if data.box_id is not None:
        await _get_box(db, ctx.organization_id, data.box_id)

    task = Task(
        **data.model_dump(),
        organization_id=ctx.organization_id,
        created_by=ctx.user_id,
    )
    db.add(task)
    await db.flush()

    _notify_assignee(db, ctx, task)
    if task.box_id is not None:
        record_audit(
            db,
            organization_id=ctx.organization_id,
            user_id=ctx.user_id,
            action="TASK_CREATED",
            resource_type="task",
            resource_id=task.id,
            box_id=task.box_id,
            details={"task_type": task.task_type.value},
        )
    await db.commit()
    await db.refresh(task)
    return task


async def list_tasks(
    db: AsyncSession,
    organization_id: uuid.UUID,
    filters: TaskFilter,
    pagination: PaginationParams,
    today: date | None = None,
) -> tuple[list[Task], dict]:
    query = select(Task).where(Task.organization_id == organization_id)
    if filters.status is not None:
        query = query.where(Task.status == filters.status)
    if filters.task_type is not None:
        query = query.where(Task.task_type == filters.task_type)
    if filters.box_id is not None:
        query = query.where(Task.box_id == filters.box_id)
    if filters.assignee_id is not None:
        query = query.where(Task.assignee_id == filters.assignee_id)
    if filters.overdue_only:
        query = query.where(
            Task.status.in_(ACTIVE_TASK_STATUSES),
            Task.due_date < (today or date.today()),
        )

    return await paginate(db, query, pagination, Task.due_date.asc().nulls_last(), Task.created_at.desc())


async def sync_box_from_task(db: AsyncSession, task: Task) -> None:
    """A finished document task means the document arrived."""
    if task.box_id is None or task.status != TaskStatus.DONE:
        return
    box = await db.get(Box, task.box_id)
    if box is None:
        return
    if task.task_type == TaskType.VAT_INVOICE and box.vat_doc_status == VatDocStatus.MISSING:
        box.vat_doc_status = VatDocStatus.RECEIVED
    elif task.task_type == TaskType.WHT_CERTIFICATE and box.wht_doc_status in (
        WhtDocStatus.MISSING,
        WhtDocStatus.REQUEST_SENT,
    ):
        box.wht_doc_status = WhtDocStatus.RECEIVED
        box.wht_overdue = False


async def update_task(
    db: AsyncSession, ctx: OrgContext, task_id: uuid.UUID, data: TaskUpdate
) -> Task:
    task = await get_task(db, ctx.organization_id, task_id)
    updates = data.model_dump(exclude_unset=True)
    previous_assignee = task.assignee_id

    new_status = updates.pop("status", None)
    for key, value in updates.items():
        setattr(task, key, value)

    if new_status is not None and new_status != task.status:
        if new_status == TaskStatus.CANCELLED:
            task.cancelled_at = datetime.now(timezone.utc)
        elif new_status == TaskStatus.DONE:
            task.completed_at = datetime.now(timezone.utc)
            task.completed_by = ctx.user_id
        task.status = new_status
        await sync_box_from_task(db, task)

    if task.assignee_id != previous_assignee:
        _notify_assignee(db, ctx, task)

    await db.commit()
    await db.refresh(task)
    return task


async def complete_task(db: AsyncSession, ctx: OrgContext, task_id: uuid.UUID) -> Task:
    task = await get_task(db, ctx.organization_id, task_id)
    if task.status not in ACTIVE_TASK_STATUSES:
        raise ValidationError(f"Task is already {task.status.value}.")
    return await update_task(db, ctx, task_id, TaskUpdate(status=TaskStatus.DONE))


async def cancel_task(
    db: AsyncSession, ctx: OrgContext, task_id: uuid.UUID, reason: str | None
) -> Task:
    task = await get_task(db, ctx.organization_id, task_id)
    if task.status not in ACTIVE_TASK_STATUSES:
        raise ValidationError(f"Task is already {task.status.value}.")
    task.status = TaskStatus.CANCELLED
    task.cancelled_at = datetime.now(timezone.utc)
    task.cancel_reason = reason
    await db.commit()
    await db.refresh(task)
    return task


async def delete_task(db: AsyncSession, organization_id: uuid.UUID, task_id: uuid.UUID) -> None:
    task = await get_task(db, organization_id, task_id)
    await db.delete(task)
    await db.commit()


async def task_stats(db: AsyncSession, organization_id: uuid.UUID, now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    start_of_day = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)

    async def count(*conditions) -> int:
        return await db.scalar(
            select(func.count()).select_from(Task).where(Task.organization_id == organization_id, *conditions)
        ) or 0

    open_count = await count(Task.status == TaskStatus.OPEN)
    in_progress = await count(Task.status == TaskStatus.IN_PROGRESS)
    overdue = await count(Task.status.in_(ACTIVE_TASK_STATUSES), Task.due_date < now.date())
    completed_today = await count(Task.status == TaskStatus.DONE, Task.completed_at >= start_of_day)
    return {
        "open": open_count,
        "in_progress": in_progress,
        "overdue": overdue,
        "completed_today": completed_today,
        "total": open_count + in_progress,
    }


# ---------------------------------------------------------------------------
# Box-driven tasks
# ---------------------------------------------------------------------------


async def generate_box_tasks(db: AsyncSession, box: Box, user_id: uuid.UUID | None = None) -> list[Task]:
    """Create the VAT-invoice and WHT-certificate follow-ups a box needs.

    Existing non-cancelled tasks of the same type are left alone. The caller
    commits.
    """
    result = await db.execute(
        select(Task.task_type).where(Task.box_id == box.id, Task.status != TaskStatus.CANCELLED)
    )
    existing = set(result.scalars().all())

    created = []
    if box.has_vat and TaskType.VAT_INVOICE not in existing and box.vat_doc_status == VatDocStatus.MISSING:
        created.append(
            Task(
                organization_id=box.organization_id,
                box_id=box.id,
                task_type=TaskType.VAT_INVOICE,
                title=VAT_TASK_TITLE,
                due_date=box.due_date,
                created_by=user_id,
            )
        )
    if box.has_wht and TaskType.WHT_CERTIFICATE not in existing:
        created.append(
            Task(
                organization_id=box.organization_id,
                box_id=box.id,
                task_type=TaskType.WHT_CERTIFICATE,
                title=WHT_TASK_TITLE,
                due_date=box.wht_due_date or box.box_date + timedelta(days=7),
                created_by=user_id,
            )
        )
    for task in created:
        db.add(task)
    if created:
        logger.info("Generated %d tasks for box %s", len(created), box.id)
    return created


# ---------------------------------------------------------------------------
# Reminders and escalation
# ---------------------------------------------------------------------------


def _task_label(task: Task, box: Box | None) -> str:
    if box is not None:
        return f"{task.title} ในกล่อง {box.box_number}"
    return task.title


async def escalate_task(db: AsyncSession, ctx: OrgContext, task_id: uuid.UUID) -> Task:
    task = await get_task(db, ctx.organization_id, task_id)
    task.escalation_level = min(task.escalation_level + 1, 2)
    task.escalated_at = datetime.now(timezone.utc)

    box = await db.get(Box, task.box_id) if task.box_id else None
    owners = await list_member_user_ids(db, ctx.organization_id, ADMIN_ROLES)
    notify_users(
        db,
        owners,
        NotificationType.TASK_ESCALATED,
        f"งาน Escalated (Level {task.escalation_level})",
        _task_label(task, box),
        organization_id=ctx.organization_id,
        resource_type="task",
        resource_id=str(task.id),
    )
    await db.commit()
    await db.refresh(task)
    return task


def _reminder_recipient(task: Task, box: Box | None) -> uuid.UUID | None:
    if task.assignee_id:
        return task.assignee_id
    if box is not None and box.created_by:
        return box.created_by
    return task.created_by


async def send_task_reminder(db: AsyncSession, ctx: OrgContext, task_id: uuid.UUID) -> Task:
    task = await get_task(db, ctx.organization_id, task_id)
    box = await db.get(Box, task.box_id) if task.box_id else None
    recipient = _reminder_recipient(task, box)
    if recipient is None:
        raise ValidationError("This task has nobody to remind.")

    notify_users(
        db,
        [recipient],
        NotificationType.TASK_REMINDER,
        "เตือนงานค้าง",
        _task_label(task, box),
        organization_id=ctx.organization_id,
        resource_type="task",
        resource_id=str(task.id),
    )
    task.last_reminder_at = datetime.now(timezone.utc)
    task.reminder_count += 1
    await db.commit()
    await db.refresh(task)
    return task


def _reminded_on(task: Task, day: date) -> bool:
    return task.last_reminder_at is not None and task.last_reminder_at.date() == day


async def process_overdue_tasks(
    db: AsyncSession,
    today: date | None = None,
    policy: ReminderPolicy = DEFAULT_POLICY,
    dispatcher: WebhookDispatcher | None = None,
) -> dict:
    """Remind, escalate and flag overdue open tasks across all organizations.

    days overdue >= overdue_days: level 2, accounting team notified and a
        TASK_OVERDUE integration event sent.
    days overdue >= escalate_to_owner_days: level 1, owners/admins notified.
    days overdue >= first_reminder_days: one reminder per day to the assignee.
    """
    today = today or date.today()
    now = datetime.now(timezone.utc)

    result = await db.execute(
        select(Task).where(
            Task.status.in_(ACTIVE_TASK_STATUSES),
            Task.due_date.is_not(None),
            Task.due_date < today,
        )
    )
    tasks = list(result.scalars().all())

    reminders = escalated = overdue = 0
    flagged: list[tuple[uuid.UUID, dict]] = []
    recipients_cache: dict[tuple[uuid.UUID, tuple[MemberRole, ...]], list[uuid.UUID]] = {}

    async def team(org_id: uuid.UUID, roles: list[MemberRole]) -> list[uuid.UUID]:
        key = (org_id, tuple(roles))
        if key not in recipients_cache:
            recipients_cache[key] = await list_member_user_ids(db, org_id, roles)
        return recipients_cache[key]

    for task in tasks:
        days_overdue = (today - task.due_date).days
        box = await db.get(Box, task.box_id) if task.box_id else None
        label = _task_label(task, box)
        message = f"{label} เกินกำหนด {days_overdue} วัน"

        if days_overdue >= policy.overdue_days and task.escalation_level < 2:
            task.escalation_level = 2
            task.escalated_at = now
            notify_users(
                db, await team(task.organization_id, ACCOUNTING_ROLES),
                NotificationType.TASK_ESCALATED, "งานเกินกำหนด (Level 2)", message,
                organization_id=task.organization_id, resource_type="task", resource_id=str(task.id),
            )
            flagged.append((
                task.organization_id,
                {
                    "task_id": str(task.id),
                    "title": "งานเกินกำหนด",
                    "message": message,
                    "box_number": box.box_number if box else None,
                },
            ))
            overdue += 1
            escalated += 1
        elif days_overdue >= policy.escalate_to_owner_days and task.escalation_level < 1:
            task.escalation_level = 1
            task.escalated_at = now
            notify_users(
                db, await team(task.organization_id, ADMIN_ROLES),
                NotificationType.TASK_ESCALATED, "งานเกินกำหนด", message,
                organization_id=task.organization_id, resource_type="task", resource_id=str(task.id),
            )
            escalated += 1
        elif days_overdue >= policy.first_reminder_days and not _reminded_on(task, today):
            recipient = _reminder_recipient(task, box)
            if recipient is None:
                continue
            notify_users(
                db, [recipient], NotificationType.TASK_REMINDER, "เตือนงานค้าง", message,
                organization_id=task.organization_id, resource_type="task", resource_id=str(task.id),
            )
            task.last_reminder_at = now
            task.reminder_count += 1
            reminders += 1

    await db.commit()

    if dispatcher is not None:
        for organization_id, payload in flagged:
            await dispatcher.trigger_event(db, organization_id, IntegrationEvent.TASK_OVERDUE.value, payload)
    return {"reminders": reminders, "escalated": escalated, "overdue": overdue}
