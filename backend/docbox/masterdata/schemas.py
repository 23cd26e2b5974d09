import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from docbox.masterdata.models import CategoryType


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    type: CategoryType = CategoryType.EXPENSE
    peak_account_code: str | None = Field(None, max_length=20)
    description: str | None = None


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    type: CategoryType | None = None
    peak_account_code: str | None = Field(None, max_length=20)
    description: str | None = None
    is_active: bool | None = None


class CategoryResponse(BaseModel):
    id: uuid.UUID
    name: str
    type: CategoryType
    peak_account_code: str | None
    description: str | None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class CostCenterCreate(BaseModel):
    code: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None


class CostCenterUpdate(BaseModel):
    code: str | None = Field(None, min_length=1, max_length=20)
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    is_active: bool | None = None


class CostCenterResponse(BaseModel):
    id: uuid.UUID
    code: str
    name: str
    description: str | None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
