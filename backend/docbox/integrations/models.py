import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from docbox.database import Base, OrganizationScopedMixin, TimestampMixin, utcnow


class IntegrationType(str, enum.Enum):
    LINE_NOTIFY = "LINE_NOTIFY"
    LINE_OA = "LINE_OA"
    SLACK = "SLACK"
    DISCORD = "DISCORD"
    CUSTOM_WEBHOOK = "CUSTOM_WEBHOOK"
    EMAIL = "EMAIL"


class IntegrationEvent(str, enum.Enum):
    BOX_SUBMITTED = "BOX_SUBMITTED"
    BOX_NEED_DOCS = "BOX_NEED_DOCS"
    BOX_COMPLETED = "BOX_COMPLETED"
    BOX_REOPENED = "BOX_REOPENED"
    WHT_OVERDUE = "WHT_OVERDUE"
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    TASK_OVERDUE = "TASK_OVERDUE"


REQUIRED_CONFIG: dict[IntegrationType, tuple[str, ...]] = {
    IntegrationType.LINE_OA: ("channelAccessToken", "userId"),
    IntegrationType.LINE_NOTIFY: ("accessToken",),
    IntegrationType.SLACK: ("webhookUrl",),
    IntegrationType.DISCORD: ("webhookUrl",),
    IntegrationType.CUSTOM_WEBHOOK: ("url", "method"),
    IntegrationType.EMAIL: ("to",),
}


class Integration(OrganizationScopedMixin, TimestampMixin, Base):
    __tablename__ = "integrations"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    type: Mapped[IntegrationType] = mapped_column(Enum(IntegrationType), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    config: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    events: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    trigger_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_triggered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )


class WebhookLog(Base):
    __tablename__ = "webhook_logs"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    integration_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    response_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    response_body: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
