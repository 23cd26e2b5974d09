import uuid
from datetime import date as date_type
from datetime import datetime

from pydantic import BaseModel, Field

from docbox.payments.models import PaymentMethod


class PaymentCreate(BaseModel):
    amount: float = Field(gt=0)
    date: date_type | None = None
    method: PaymentMethod = PaymentMethod.TRANSFER
    reference: str | None = Field(None, max_length=255)
    notes: str | None = None


class PaymentUpdate(BaseModel):
    amount: float | None = Field(None, gt=0)
    date: date_type | None = None
    method: PaymentMethod | None = None
    reference: str | None = Field(None, max_length=255)
    notes: str | None = None


class MarkAsPaid(BaseModel):
    date: date_type | None = None
    method: PaymentMethod = PaymentMethod.TRANSFER
    reference: str | None = Field(None, max_length=255)


class PaymentResponse(BaseModel):
    id: uuid.UUID
    box_id: uuid.UUID
    amount: float
    date: date_type
    method: PaymentMethod
    reference: str | None
    notes: str | None
    recorded_by: uuid.UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}
