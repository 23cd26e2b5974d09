"""Daily sweep that flags boxes whose withholding-tax certificate is late."""

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.audit.service import record_audit
from docbox.boxes.models import Box, BoxStatus, WhtDocStatus
from docbox.boxes.service import box_event_payload
from docbox.integrations.dispatcher import WebhookDispatcher
from docbox.integrations.models import IntegrationEvent
from docbox.notifications.models import NotificationType
from docbox.notifications.service import notify_users
from docbox.organizations.permissions import ACCOUNTING_ROLES
from docbox.organizations.service import list_member_user_ids

logger = logging.getLogger(__name__)

WAITING_WHT_STATUSES = (WhtDocStatus.MISSING, WhtDocStatus.REQUEST_SENT)


async def flag_overdue_wht(
    db: AsyncSession,
    dispatcher: WebhookDispatcher | None = None,
    today: date | None = None,
) -> int:
    """Mark late WHT boxes as overdue and tell each organization's accounting team.

    Boxes already flagged are skipped, so running the sweep twice on the
    same day notifies only once. Returns the number of newly flagged boxes.
    """
    today = today or date.today()
    result = await db.execute(
        select(Box).where(
            Box.has_wht == True,  # noqa: E712
            Box.wht_overdue == False,  # noqa: E712
            Box.wht_doc_status.in_(WAITING_WHT_STATUSES),
            Box.wht_due_date.is_not(None),
            Box.wht_due_date < today,
            Box.status != BoxStatus.COMPLETED,
        )
    )
    boxes = list(result.scalars().all())
    if not boxes:
        return 0

    team_cache: dict = {}
    events = []
    for box in boxes:
        box.wht_overdue = True
        days_late = (today - box.wht_due_date).days
        message = f"หนังสือรับรองหัก ณ ที่จ่ายของ {box.box_number} เกินกำหนด {days_late} วัน"

        record_audit(
            db,
            organization_id=box.organization_id,
            user_id=None,
            action="WHT_OVERDUE",
            resource_type="box",
            resource_id=box.id,
            box_id=box.id,
            details={"wht_due_date": box.wht_due_date.isoformat(), "days_late": days_late},
        )

        if box.organization_id not in team_cache:
            team_cache[box.organization_id] = await list_member_user_ids(db, box.organization_id, ACCOUNTING_ROLES)
        notify_users(
            db,
            team_cache[box.organization_id],
            NotificationType.WHT_OVERDUE,
            f"WHT เกินกำหนด: {box.box_number}",
            message,
            organization_id=box.organization_id,
            resource_type="box",
            resource_id=str(box.id),
        )
        events.append((box.organization_id, box_event_payload(box, "WHT เกินกำหนด", message)))

    await db.commit()
    logger.info("Flagged %d boxes with overdue WHT certificates", len(boxes))

    if dispatcher is not None:
        for organization_id, payload in events:
            await dispatcher.trigger_event(db, organization_id, IntegrationEvent.WHT_OVERDUE.value, payload)
    return len(boxes)
