import uuid
from datetime import datetime

from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID | None
    box_id: uuid.UUID | None
    action: str
    resource_type: str
    resource_id: str
    details: dict | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditLogFilter(BaseModel):
    box_id: uuid.UUID | None = None
    action: str | None = None
    user_id: uuid.UUID | None = None
