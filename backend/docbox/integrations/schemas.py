import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from docbox.integrations.models import IntegrationEvent, IntegrationType


class IntegrationCreate(BaseModel):
    type: IntegrationType
    name: str = Field(min_length=1, max_length=255)
    config: dict = Field(default_factory=dict)
    events: list[IntegrationEvent] = Field(default_factory=list)


class IntegrationUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    is_active: bool | None = None
    config: dict | None = None
    events: list[IntegrationEvent] | None = None


class IntegrationResponse(BaseModel):
    id: uuid.UUID
    type: IntegrationType
    name: str
    is_active: bool
    events: list[str]
    trigger_count: int
    last_triggered_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class WebhookLogResponse(BaseModel):
    id: uuid.UUID
    integration_id: uuid.UUID
    event_type: str
    status: str
    response_code: int | None
    error_message: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
