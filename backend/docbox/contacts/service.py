import uuid
from datetime import datetime, timezone

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.contacts.models import Contact, ContactType
from docbox.contacts.schemas import ContactCreate, ContactFilter, ContactUpdate
from docbox.core.exceptions import NotFoundError
from docbox.core.pagination import PaginationParams, paginate


async def create_contact(
    db: AsyncSession, organization_id: uuid.UUID, data: ContactCreate, user_id: uuid.UUID
) -> Contact:
    contact = Contact(
        **data.model_dump(),
        organization_id=organization_id,
        created_by=user_id,
    )
    db.add(contact)
    await db.commit()
    await db.refresh(contact)
    return contact


async def list_contacts(
    db: AsyncSession,
    organization_id: uuid.UUID,
    filters: ContactFilter,
    pagination: PaginationParams,
) -> tuple[list[Contact], dict]:
    query = select(Contact).where(Contact.organization_id == organization_id)

    if filters.search:
        term = f"%{filters.search}%"
        query = query.where(
            or_(
                Contact.name.ilike(term),
                Contact.tax_id.ilike(term),
                Contact.email.ilike(term),
            )
        )
    if filters.type is not None:
        # BOTH contacts show up under either side
        query = query.where(Contact.type.in_([filters.type, ContactType.BOTH]))
    if filters.is_active is not None:
        query = query.where(Contact.is_active == filters.is_active)

    # Recently used contacts first
    return await paginate(db, query, pagination, Contact.last_used_at.desc().nulls_last(), Contact.name)


async def get_contact(db: AsyncSession, organization_id: uuid.UUID, contact_id: uuid.UUID) -> Contact:
    result = await db.execute(
        select(Contact).where(Contact.id == contact_id, Contact.organization_id == organization_id)
    )
    contact = result.scalar_one_or_none()
    if contact is None:
        raise NotFoundError("Contact", str(contact_id))
    return contact


async def update_contact(
    db: AsyncSession, organization_id: uuid.UUID, contact_id: uuid.UUID, data: ContactUpdate
) -> Contact:
    contact = await get_contact(db, organization_id, contact_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(contact, key, value)
    await db.commit()
    await db.refresh(contact)
    return contact


async def delete_contact(db: AsyncSession, organization_id: uuid.UUID, contact_id: uuid.UUID) -> None:
    contact = await get_contact(db, organization_id, contact_id)
    await db.delete(contact)
    await db.commit()


async def touch_contact(db: AsyncSession, contact_id: uuid.UUID) -> None:
    """Record that a contact was just used on a box. Caller commits."""
    contact = await db.get(Contact, contact_id)
    if contact is not None:
        contact.last_used_at = datetime.now(timezone.utc)
