from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from docbox.export.models import ExportType
from docbox.export.profiles import ExportFormat, available_fields


class ExcelExportRequest(BaseModel):
    box_ids: list[uuid.UUID] = Field(min_length=1)
    profile: ExportFormat = ExportFormat.GENERIC
    # A saved custom profile takes precedence over ``profile``
    profile_id: uuid.UUID | None = None


class ZipExportRequest(BaseModel):
    box_ids: list[uuid.UUID] = Field(min_length=1)
    include_json: bool = True
    group_by_month: bool = True


class ExportColumn(BaseModel):
    field: str
    header: str = Field(min_length=1, max_length=100)

    @field_validator("field")
    @classmethod
    def known_field(cls, value: str) -> str:
        if value not in available_fields():
            raise ValueError(f"Unknown export field: {value}")
        return value


class ExportProfileCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    columns: list[ExportColumn] = Field(min_length=1)
    is_default: bool = False


class ExportProfileUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    columns: list[ExportColumn] | None = Field(None, min_length=1)
    is_default: bool | None = None


class ExportProfileResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None
    columns: list[ExportColumn]
    is_default: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ExportHistoryResponse(BaseModel):
    id: uuid.UUID
    export_type: ExportType
    profile: str | None
    file_name: str
    box_ids: list[uuid.UUID]
    box_count: int
    exported_by: uuid.UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}
