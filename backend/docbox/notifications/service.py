from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.core.exceptions import NotFoundError
from docbox.core.pagination import PaginationParams, paginate
from docbox.notifications.models import Notification, NotificationType

logger = logging.getLogger(__name__)


def notify_users(
    db: AsyncSession,
    user_ids: Iterable[uuid.UUID],
    type: NotificationType,
    title: str,
    message: str,
    organization_id: uuid.UUID | None = None,
    resource_type: str | None = None,
    resource_id: str | None = None,
) -> list[Notification]:
    """Queue one notification per distinct user. The caller commits."""
    notifications = []
    for user_id in dict.fromkeys(user_ids):
        notification = Notification(
            user_id=user_id,
            organization_id=organization_id,
            type=type.value,
            title=title,
            message=message,
            resource_type=resource_type,
            resource_id=resource_id,
        )
        db.add(notification)
        notifications.append(notification)
    if notifications:
        logger.debug("Queued %d %s notifications", len(notifications), type.value)
    return notifications


async def list_notifications(
    db: AsyncSession,
    user_id: uuid.UUID,
    pagination: PaginationParams,
    unread_only: bool = False,
) -> tuple[list[Notification], dict]:
    """Return one page of a user's notifications; ``meta`` also carries the unread count."""
    base = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        base = base.where(Notification.is_read == False)  # noqa: E712

    notifications, meta = await paginate(db, base, pagination, Notification.created_at.desc())
    meta["unread_count"] = await db.scalar(
        select(func.count()).select_from(Notification).where(
            Notification.user_id == user_id,
            Notification.is_read == False,  # noqa: E712
        )
    ) or 0
    return notifications, meta


async def _get_own(db: AsyncSession, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFoundError("Notification", str(notification_id))
    return notification


async def mark_read(
    db: AsyncSession,
    notification_id: uuid.UUID,
    user_id: uuid.UUID,
) -> Notification:
    notification = await _get_own(db, notification_id, user_id)
    notification.is_read = True
    await db.commit()
    await db.refresh(notification)
    return notification


async def mark_all_read(
    db: AsyncSession,
    user_id: uuid.UUID,
) -> int:
    """Mark all notifications as read for a user. Returns the number updated."""
    result = await db.execute(
        update(Notification)
        .where(
            Notification.user_id == user_id,
            Notification.is_read == False,  # noqa: E712
        )
        .values(is_read=True)
    )
    await db.commit()
    return result.rowcount  # type: ignore[return-value]


async def delete_notification(
    db: AsyncSession,
    notification_id: uuid.UUID,
    user_id: uuid.UUID,
) -> None:
    notification = await _get_own(db, notification_id, user_id)
    await db.delete(notification)
    await db.commit()
