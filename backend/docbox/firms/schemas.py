import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from docbox.firms.models import ClientRelationStatus, FirmRole


class FirmCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    tax_id: str | None = Field(None, max_length=20)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = None


class FirmUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    tax_id: str | None = Field(None, max_length=20)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = None


class FirmResponse(BaseModel):
    id: uuid.UUID
    name: str
    tax_id: str | None
    email: str | None
    phone: str | None
    address: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class MyFirmResponse(FirmResponse):
    role: FirmRole


class FirmMemberAdd(BaseModel):
    email: EmailStr
    role: FirmRole = FirmRole.ACCOUNTANT


class FirmMemberResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    email: str
    full_name: str
    role: FirmRole
    is_active: bool
    created_at: datetime

    @classmethod
    def from_member(cls, member) -> "FirmMemberResponse":
        return cls(
            id=member.id,
            user_id=member.user_id,
            email=member.user.email,
            full_name=member.user.full_name,
            role=member.role,
            is_active=member.is_active,
            created_at=member.created_at,
        )


class ClientInvite(BaseModel):
    organization_id: uuid.UUID
    notes: str | None = None


class ClientRelationResponse(BaseModel):
    id: uuid.UUID
    firm_id: uuid.UUID
    firm_name: str
    organization_id: uuid.UUID
    organization_name: str
    status: ClientRelationStatus
    notes: str | None
    accepted_at: datetime | None
    terminated_at: datetime | None
    created_at: datetime

    @classmethod
    def from_relation(cls, relation) -> "ClientRelationResponse":
        return cls(
            id=relation.id,
            firm_id=relation.firm_id,
            firm_name=relation.firm.name,
            organization_id=relation.organization_id,
            organization_name=relation.organization.name,
            status=relation.status,
            notes=relation.notes,
            accepted_at=relation.accepted_at,
            terminated_at=relation.terminated_at,
            created_at=relation.created_at,
        )


class ClientHealthResponse(BaseModel):
    organization_id: uuid.UUID
    name: str
    slug: str
    pending_boxes: int
    pending_amount: float
    wht_outstanding: float
    wht_overdue_count: int
    need_docs_count: int
    ready_to_book_count: int
    overdue_tasks_count: int
    avg_aging_days: float
    completion_rate: int
    health_score: int

    model_config = {"from_attributes": True}


class FirmDashboardResponse(BaseModel):
    firm_id: uuid.UUID
    firm_name: str
    total_clients: int
    total_pending_boxes: int
    total_pending_amount: float
    total_wht_outstanding: float
    total_wht_overdue: int
    clients: list[ClientHealthResponse]
