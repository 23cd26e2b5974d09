"""Outbound delivery of integration events (chat webhooks, HTTP hooks, e-mail)."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from email.mime.text import MIMEText

import aiosmtplib
import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.config import Settings
from docbox.integrations.models import Integration, IntegrationType, WebhookLog

logger = logging.getLogger(__name__)

# Response bodies are kept in the log for debugging but not in full
MAX_LOGGED_BODY = 2000


def format_message(payload: dict) -> str:
    lines = []
    if payload.get("title"):
        lines.append(f"📋 {payload['title']}")
    if payload.get("message"):
        lines.append(str(payload["message"]))
    if payload.get("box_number"):
        lines.append(f"เลขที่: {payload['box_number']}")
    if payload.get("contact_name"):
        lines.append(f"คู่ค้า: {payload['contact_name']}")
    if payload.get("amount"):
        lines.append(f"ยอดเงิน: ฿{float(payload['amount']):,.2f}")

    if not lines:
        return f"[{payload.get('type')}] {json.dumps(payload, ensure_ascii=False, default=str)}"
    return "\n".join(lines)


@dataclass
class DeliveryResult:
    ok: bool
    response_code: int | None = None
    response_body: str | None = None
    error: str | None = None


class WebhookDispatcher:
    """Sends integration events and records every attempt as a WebhookLog.

    ``transport`` lets callers swap the HTTP transport, e.g. for a mock in
    tests.
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.webhook_timeout_seconds, transport=self.transport)

    async def _post_http(self, integration: Integration, payload: dict) -> httpx.Response:
        config = integration.config or {}
        text = format_message(payload)

        async with self._client() as client:
            if integration.type == IntegrationType.LINE_NOTIFY:
                return await client.post(
                    self.settings.line_notify_url,
                    headers={"Authorization": f"Bearer {config['accessToken']}"},
                    data={"message": text},
                )
            if integration.type == IntegrationType.SLACK:
                return await client.post(config["webhookUrl"], json={"text": text})
            if integration.type == IntegrationType.DISCORD:
                return await client.post(config["webhookUrl"], json={"content": text})
            if integration.type == IntegrationType.LINE_OA:
                return await client.post(
                    self.settings.line_push_url,
                    headers={"Authorization": f"Bearer {config['channelAccessToken']}"},
                    json={"to": config["userId"], "messages": [{"type": "text", "text": text}]},
                )
            # CUSTOM_WEBHOOK
            headers = {"Content-Type": "application/json", **(config.get("headers") or {})}
            return await client.request(
                (config.get("method") or "POST").upper(),
                config["url"],
                headers=headers,
                content=json.dumps(payload, ensure_ascii=False, default=str).encode("utf-8"),
            )

    async def _send_email(self, integration: Integration, payload: dict) -> None:
        settings = self.settings
        if not settings.smtp_host:
            raise aiosmtplib.SMTPException("SMTP is not configured. Set SMTP_HOST.")

        msg = MIMEText(format_message(payload), "plain", "utf-8")
        msg["From"] = f"{settings.smtp_from_name} <{settings.smtp_from_email}>"
        msg["To"] = integration.config["to"]
        msg["Subject"] = payload.get("title") or f"DocBox: {payload.get('type')}"

        await aiosmtplib.send(
            msg,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username or None,
            password=settings.smtp_password or None,
            start_tls=settings.smtp_use_tls,
        )

    async def deliver(self, integration: Integration, payload: dict) -> DeliveryResult:
        try:
            if integration.type == IntegrationType.EMAIL:
                await self._send_email(integration, payload)
                return DeliveryResult(ok=True)
            response = await self._post_http(integration, payload)
        except (httpx.HTTPError, aiosmtplib.SMTPException, OSError, KeyError) as exc:
            logger.warning("Integration %s (%s) delivery failed: %s", integration.id, integration.type.value, exc)
            return DeliveryResult(ok=False, error=str(exc) or exc.__class__.__name__)
        except Exception as exc:
            # Bad stored config (invalid URL, non-dict headers) must not reach the caller
            logger.warning(
                "Integration %s (%s) delivery crashed", integration.id, integration.type.value, exc_info=True
            )
            return DeliveryResult(ok=False, error=f"{exc.__class__.__name__}: {exc}")

        if not response.is_success:
            logger.warning(
                "Integration %s (%s) answered HTTP %d", integration.id, integration.type.value, response.status_code
            )
        return DeliveryResult(
            ok=response.is_success,
            response_code=response.status_code,
            response_body=response.text[:MAX_LOGGED_BODY],
        )

    async def send(
        self,
        db: AsyncSession,
        integration: Integration,
        event: str,
        payload: dict,
    ) -> WebhookLog:
        """Deliver one event to one integration and record the attempt. Caller commits."""
        payload = {**payload, "timestamp": datetime.now(timezone.utc).isoformat()}
        result = await self.deliver(integration, payload)

        log = WebhookLog(
            integration_id=integration.id,
            event_type=event,
            payload=json.loads(json.dumps(payload, default=str)),
            status="success" if result.ok else "failed",
            response_code=result.response_code,
            response_body=result.response_body,
            error_message=result.error,
        )
        db.add(log)
        if result.error is None:
            integration.trigger_count = (integration.trigger_count or 0) + 1
            integration.last_triggered_at = datetime.now(timezone.utc)
        return log

    async def trigger_event(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        event: str,
        payload: dict,
    ) -> int:
        """Send an event to every active integration subscribed to it.

        Returns the number of successful deliveries. Delivery problems are
        logged and recorded; they never reach the caller.
        """
        result = await db.execute(
            select(Integration).where(
                Integration.organization_id == organization_id,
                Integration.is_active == True,  # noqa: E712
            )
        )
        subscribed = [i for i in result.scalars().all() if event in (i.events or [])]
        if not subscribed:
            return 0

        delivered = 0
        for integration in subscribed:
            log = await self.send(db, integration, event, {"type": event, **payload})
            if log.status == "success":
                delivered += 1
        await db.commit()

        logger.info("Event %s for org %s delivered to %d/%d integrations",
                    event, organization_id, delivered, len(subscribed))
        return delivered
