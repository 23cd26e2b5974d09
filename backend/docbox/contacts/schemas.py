from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from docbox.contacts.models import ContactType, EntityType


class ContactCreate(BaseModel):
    type: ContactType = ContactType.VENDOR
    entity_type: EntityType = EntityType.COMPANY
    name: str = Field(min_length=1, max_length=255)
    contact_person: str | None = Field(None, max_length=255)
    tax_id: str | None = Field(None, max_length=20)
    branch_code: str | None = Field(None, max_length=10)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)
    address: str | None = None
    default_wht_rate: float | None = Field(None, ge=0, le=100)
    notes: str | None = None


class ContactUpdate(BaseModel):
    type: ContactType | None = None
    entity_type: EntityType | None = None
    name: str | None = Field(None, min_length=1, max_length=255)
    contact_person: str | None = Field(None, max_length=255)
    tax_id: str | None = Field(None, max_length=20)
    branch_code: str | None = Field(None, max_length=10)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)
    address: str | None = None
    default_wht_rate: float | None = Field(None, ge=0, le=100)
    notes: str | None = None
    is_active: bool | None = None


class ContactResponse(BaseModel):
    id: uuid.UUID
    type: ContactType
    entity_type: EntityType
    name: str
    contact_person: str | None
    tax_id: str | None
    branch_code: str | None
    email: str | None
    phone: str | None
    address: str | None
    default_wht_rate: float | None
    notes: str | None
    is_active: bool
    last_used_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ContactListItem(BaseModel):
    id: uuid.UUID
    type: ContactType
    name: str
    tax_id: str | None
    phone: str | None
    is_active: bool
    last_used_at: datetime | None

    model_config = {"from_attributes": True}


class ContactFilter(BaseModel):
    search: str | None = None
    type: ContactType | None = None
    is_active: bool | None = None
