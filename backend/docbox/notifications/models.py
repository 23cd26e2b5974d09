from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from docbox.database import Base, utcnow


class NotificationType(str, enum.Enum):
    BOX_SUBMITTED = "BOX_SUBMITTED"
    BOX_NEED_DOCS = "BOX_NEED_DOCS"
    BOX_COMPLETED = "BOX_COMPLETED"
    BOX_REOPENED = "BOX_REOPENED"
    WHT_OVERDUE = "WHT_OVERDUE"
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_REMINDER = "TASK_REMINDER"
    TASK_ESCALATED = "TASK_ESCALATED"
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    SYSTEM = "SYSTEM"


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    organization_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    resource_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    resource_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
