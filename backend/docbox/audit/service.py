import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.audit.models import AuditLog
from docbox.audit.schemas import AuditLogFilter
from docbox.core.pagination import PaginationParams, paginate


def record_audit(
    db: AsyncSession,
    *,
    organization_id: uuid.UUID,
    user_id: uuid.UUID | None,
    action: str,
    resource_type: str,
    resource_id,
    box_id: uuid.UUID | None = None,
    details: dict | None = None,
) -> AuditLog:
    """Add an audit entry to the session. The caller commits."""
    log = AuditLog(
        organization_id=organization_id,
        user_id=user_id,
        box_id=box_id,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id),
        details=details,
    )
    db.add(log)
    return log


async def list_audit_logs(
    db: AsyncSession,
    organization_id: uuid.UUID,
    filters: AuditLogFilter,
    pagination: PaginationParams,
) -> tuple[list[AuditLog], dict]:
    query = select(AuditLog).where(AuditLog.organization_id == organization_id)
    if filters.box_id is not None:
        query = query.where(AuditLog.box_id == filters.box_id)
    if filters.action:
        query = query.where(AuditLog.action == filters.action)
    if filters.user_id is not None:
        query = query.where(AuditLog.user_id == filters.user_id)

    return await paginate(db, query, pagination, AuditLog.created_at.desc())
