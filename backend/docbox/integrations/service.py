import uuid

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.core.exceptions import NotFoundError, ValidationError
from docbox.integrations.dispatcher import WebhookDispatcher
from docbox.integrations.models import REQUIRED_CONFIG, Integration, IntegrationType, WebhookLog
from docbox.integrations.schemas import IntegrationCreate, IntegrationUpdate
from docbox.organizations.models import Organization


URL_KEYS = ("url", "webhookUrl")
HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")


def _is_http_url(value) -> bool:
    if not isinstance(value, str):
        return False
    try:
        url = httpx.URL(value)
    except (httpx.InvalidURL, TypeError, ValueError):
        return False
    return url.scheme in ("http", "https") and bool(url.host)


def validate_config(type: IntegrationType, config: dict) -> None:
    missing = [key for key in REQUIRED_CONFIG[type] if not config.get(key)]
    if missing:
        raise ValidationError(
            f"Missing configuration for {type.value}: {', '.join(missing)}.",
            details={"missing": missing},
        )

    invalid = [key for key in URL_KEYS if key in config and not _is_http_url(config[key])]
    headers = config.get("headers")
    if headers is not None and not (
        isinstance(headers, dict)
        and all(isinstance(k, str) and isinstance(v, str) for k, v in headers.items())
    ):
        invalid.append("headers")
    method = config.get("method")
    if method is not None and (not isinstance(method, str) or method.upper() not in HTTP_METHODS):
        invalid.append("method")
    if invalid:
        raise ValidationError(
            f"Invalid configuration for {type.value}: {', '.join(invalid)}.",
            details={"invalid": invalid},
        )


async def list_integrations(db: AsyncSession, organization_id: uuid.UUID) -> list[Integration]:
    result = await db.execute(
        select(Integration)
        .where(Integration.organization_id == organization_id)
        .order_by(Integration.created_at.desc())
    )
    return list(result.scalars().all())


async def get_integration(
    db: AsyncSession, organization_id: uuid.UUID, integration_id: uuid.UUID
) -> Integration:
    result = await db.execute(
        select(Integration).where(
            Integration.id == integration_id,
            Integration.organization_id == organization_id,
        )
    )
    integration = result.scalar_one_or_none()
    if integration is None:
        raise NotFoundError("Integration", str(integration_id))
    return integration


async def create_integration(
    db: AsyncSession, organization_id: uuid.UUID, data: IntegrationCreate, user_id: uuid.UUID
) -> Integration:
    validate_config(data.type, data.config)
    integration = Integration(
        organization_id=organization_id,
        type=data.type,
        name=data.name,
        config=data.config,
        events=[e.value for e in data.events],
        created_by=user_id,
    )
    db.add(integration)
    await db.commit()
    await db.refresh(integration)
    return integration


async def update_integration(
    db: AsyncSession, organization_id: uuid.UUID, integration_id: uuid.UUID, data: IntegrationUpdate
) -> Integration:
    integration = await get_integration(db, organization_id, integration_id)
    if data.name is not None:
        integration.name = data.name
    if data.is_active is not None:
        integration.is_active = data.is_active
    if data.config is not None:
        validate_config(integration.type, data.config)
        integration.config = data.config
    if data.events is not None:
        integration.events = [e.value for e in data.events]
    await db.commit()
    await db.refresh(integration)
    return integration


async def delete_integration(
    db: AsyncSession, organization_id: uuid.UUID, integration_id: uuid.UUID
) -> None:
    integration = await get_integration(db, organization_id, integration_id)
    await db.delete(integration)
    await db.commit()


async def test_integration(
    db: AsyncSession,
    organization: Organization,
    integration_id: uuid.UUID,
    dispatcher: WebhookDispatcher,
) -> WebhookLog:
    integration = await get_integration(db, organization.id, integration_id)
    log = await dispatcher.send(
        db,
        integration,
        "TEST",
        {"type": "TEST", "title": "ทดสอบการเชื่อมต่อ", "message": f"ทดสอบจาก {organization.name}"},
    )
    await db.commit()
    await db.refresh(log)
    return log


async def list_webhook_logs(
    db: AsyncSession, organization_id: uuid.UUID, integration_id: uuid.UUID, limit: int = 50
) -> list[WebhookLog]:
    await get_integration(db, organization_id, integration_id)
    result = await db.execute(
        select(WebhookLog)
        .where(WebhookLog.integration_id == integration_id)
        .order_by(WebhookLog.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
