"""Per-client health figures for an accounting firm's dashboard."""

from __future__ import annotations

import math
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.boxes import aging
from docbox.boxes.models import Box, BoxStatus, WhtDocStatus
from docbox.firms.models import AccountingFirm, ClientRelationStatus, FirmClientRelation
from docbox.organizations.models import Organization
from docbox.tasks.models import ACTIVE_TASK_STATUSES, Task

OUTSTANDING_WHT_STATUSES = (WhtDocStatus.MISSING, WhtDocStatus.REQUEST_SENT)


@dataclass
class ClientHealth:
    organization_id: uuid.UUID
    name: str
    slug: str
    pending_boxes: int = 0
    pending_amount: float = 0.0
    wht_outstanding: float = 0.0
    wht_overdue_count: int = 0
    need_docs_count: int = 0
    ready_to_book_count: int = 0
    overdue_tasks_count: int = 0
    avg_aging_days: float = 0.0
    completion_rate: int = 100
    health_score: int = 100


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def compute_completion_rate(completed: int, submitted: int) -> int:
    """Completed boxes as a percentage of all boxes past DRAFT; 100 when there are none."""
    if submitted <= 0:
        return 100
    return _round_half_up(completed / submitted * 100)


def compute_health_score(
    wht_overdue: int, need_docs: int, overdue_tasks: int, completion_rate: float
) -> int:
    score = 100.0
    score -= min(30, wht_overdue * 10)
    score -= min(20, need_docs * 5)
    score -= min(20, overdue_tasks * 5)
    score -= max(0.0, 30 - completion_rate) * 0.5
    return max(0, min(100, _round_half_up(score)))


def summarize_client(
    organization: Organization,
    boxes: list[Box],
    overdue_tasks: int,
    now: datetime | None = None,
) -> ClientHealth:
    now = now or datetime.now(timezone.utc)
    health = ClientHealth(organization_id=organization.id, name=organization.name, slug=organization.slug)

    open_boxes = [b for b in boxes if b.status != BoxStatus.COMPLETED]
    submitted = [b for b in boxes if b.status != BoxStatus.DRAFT]
    completed = [b for b in boxes if b.status == BoxStatus.COMPLETED]

    health.pending_boxes = len(open_boxes)
    health.pending_amount = round(sum(b.total_amount for b in open_boxes), 2)
    health.wht_outstanding = round(
        sum(b.wht_amount for b in boxes if b.has_wht and b.wht_doc_status in OUTSTANDING_WHT_STATUSES), 2
    )
    health.wht_overdue_count = sum(1 for b in boxes if b.has_wht and b.wht_overdue)
    health.need_docs_count = sum(1 for b in boxes if b.status == BoxStatus.NEED_DOCS)
    health.ready_to_book_count = sum(1 for b in boxes if b.status == BoxStatus.PENDING)
    health.overdue_tasks_count = overdue_tasks

    if open_boxes:
        total_aging = sum(
            aging.bucket_midpoint(aging.aging_bucket(aging.age_in_days(b.created_at, now))) for b in open_boxes
        )
        health.avg_aging_days = round(total_aging / len(open_boxes), 1)

    health.completion_rate = compute_completion_rate(len(completed), len(submitted))
    health.health_score = compute_health_score(
        health.wht_overdue_count,
        health.need_docs_count,
        health.overdue_tasks_count,
        health.completion_rate,
    )
    return health


async def build_firm_dashboard(
    db: AsyncSession, firm: AccountingFirm, today: date | None = None
) -> dict:
    today = today or date.today()
    result = await db.execute(
        select(Organization)
        .join(FirmClientRelation, FirmClientRelation.organization_id == Organization.id)
        .where(
            FirmClientRelation.firm_id == firm.id,
            FirmClientRelation.status == ClientRelationStatus.ACTIVE,
        )
    )
    organizations = list(result.scalars().all())
    client_ids = [org.id for org in organizations]

    boxes_by_org: dict[uuid.UUID, list[Box]] = defaultdict(list)
    overdue_by_org: dict[uuid.UUID, int] = {}
    if client_ids:
        boxes = await db.execute(select(Box).where(Box.organization_id.in_(client_ids)))
        for box in boxes.scalars().all():
            boxes_by_org[box.organization_id].append(box)

        overdue = await db.execute(
            select(Task.organization_id, func.count())
            .where(
                Task.organization_id.in_(client_ids),
                Task.status.in_(ACTIVE_TASK_STATUSES),
                Task.due_date < today,
            )
            .group_by(Task.organization_id)
        )
        overdue_by_org = {org_id: count for org_id, count in overdue.all()}

    clients = [
        summarize_client(org, boxes_by_org[org.id], overdue_by_org.get(org.id, 0)) for org in organizations
    ]
    clients.sort(key=lambda c: (c.health_score, -c.pending_boxes))

    return {
        "firm_id": firm.id,
        "firm_name": firm.name,
        "total_clients": len(clients),
        "total_pending_boxes": sum(c.pending_boxes for c in clients),
        "total_pending_amount": round(sum(c.pending_amount for c in clients), 2),
        "total_wht_outstanding": round(sum(c.wht_outstanding for c in clients), 2),
        "total_wht_overdue": sum(c.wht_overdue_count for c in clients),
        "clients": clients,
    }
