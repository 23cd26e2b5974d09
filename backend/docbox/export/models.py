import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from docbox.database import Base, OrganizationScopedMixin, TimestampMixin, utcnow


class ExportType(str, enum.Enum):
    EXCEL = "EXCEL"
    ZIP = "ZIP"


class ExportProfile(OrganizationScopedMixin, TimestampMixin, Base):
    """An organization's own column layout, stored as an ordered list of {field, header}."""

    __tablename__ = "export_profiles"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    columns: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    def column_map(self) -> dict[str, str]:
        return {col["field"]: col["header"] for col in self.columns}


class ExportHistory(OrganizationScopedMixin, Base):
    __tablename__ = "export_history"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    export_type: Mapped[ExportType] = mapped_column(Enum(ExportType), nullable=False)
    profile: Mapped[str | None] = mapped_column(String(100), nullable=True)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    box_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    box_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    exported_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
