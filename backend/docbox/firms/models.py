from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docbox.auth.models import User
from docbox.database import Base, TimestampMixin
from docbox.organizations.models import Organization


class FirmRole(str, enum.Enum):
    OWNER = "OWNER"
    MANAGER = "MANAGER"
    ACCOUNTANT = "ACCOUNTANT"


class ClientRelationStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    TERMINATED = "TERMINATED"


class AccountingFirm(TimestampMixin, Base):
    __tablename__ = "accounting_firms"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    tax_id: Mapped[str | None] = mapped_column(String(20), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    members: Mapped[list[FirmMember]] = relationship(
        back_populates="firm", cascade="all, delete-orphan", lazy="selectin"
    )


class FirmMember(TimestampMixin, Base):
    __tablename__ = "firm_members"
    __table_args__ = (UniqueConstraint("firm_id", "user_id", name="uq_firm_member"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    firm_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounting_firms.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[FirmRole] = mapped_column(Enum(FirmRole), default=FirmRole.ACCOUNTANT, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    firm: Mapped[AccountingFirm] = relationship(back_populates="members")
    user: Mapped[User] = relationship(lazy="selectin")


class FirmClientRelation(TimestampMixin, Base):
    __tablename__ = "firm_client_relations"
    __table_args__ = (UniqueConstraint("firm_id", "organization_id", name="uq_firm_client"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    firm_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounting_firms.id", ondelete="CASCADE"), nullable=False, index=True
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[ClientRelationStatus] = mapped_column(
        Enum(ClientRelationStatus), default=ClientRelationStatus.PENDING, nullable=False
    )
    invited_by: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    terminated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    firm: Mapped[AccountingFirm] = relationship(lazy="selectin")
    organization: Mapped[Organization] = relationship(lazy="selectin")
