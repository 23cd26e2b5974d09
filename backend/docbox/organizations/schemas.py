import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from docbox.organizations.models import MemberRole


class OrganizationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    tax_id: str | None = Field(None, max_length=20)
    branch_code: str | None = Field(None, max_length=10)
    address: str | None = None
    phone: str | None = Field(None, max_length=50)
    email: EmailStr | None = None


class OrganizationUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    tax_id: str | None = Field(None, max_length=20)
    branch_code: str | None = Field(None, max_length=10)
    address: str | None = None
    phone: str | None = Field(None, max_length=50)
    email: EmailStr | None = None


class OrganizationResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    tax_id: str | None
    branch_code: str | None
    address: str | None
    phone: str | None
    email: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class MyOrganizationResponse(OrganizationResponse):
    role: MemberRole


class MemberAdd(BaseModel):
    email: EmailStr
    role: MemberRole = MemberRole.STAFF


class MemberRoleUpdate(BaseModel):
    role: MemberRole


class MemberResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    email: str
    full_name: str
    role: MemberRole
    is_active: bool
    created_at: datetime

    @classmethod
    def from_member(cls, member) -> "MemberResponse":
        return cls(
            id=member.id,
            user_id=member.user_id,
            email=member.user.email,
            full_name=member.user.full_name,
            role=member.role,
            is_active=member.is_active,
            created_at=member.created_at,
        )
