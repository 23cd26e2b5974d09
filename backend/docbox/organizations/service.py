from __future__ import annotations

import logging
import re
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.auth.models import User
from docbox.core.exceptions import ConflictError, NotFoundError, ValidationError
from docbox.organizations.models import MemberRole, Organization, OrganizationMember
from docbox.organizations.schemas import MemberAdd, OrganizationCreate, OrganizationUpdate

logger = logging.getLogger(__name__)


def _slugify(name: str) -> str:
    base = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "org"
    return f"{base[:80]}-{uuid.uuid4().hex[:6]}"


async def create_organization(
    db: AsyncSession, data: OrganizationCreate, user: User
) -> Organization:
    org = Organization(slug=_slugify(data.name), **data.model_dump())
    db.add(org)
    await db.flush()
    db.add(OrganizationMember(organization_id=org.id, user_id=user.id, role=MemberRole.OWNER))
    await db.commit()
    await db.refresh(org)
    logger.info("Organization %s created by %s", org.id, user.id)
    return org


async def list_my_organizations(
    db: AsyncSession, user: User
) -> list[tuple[Organization, MemberRole]]:
    result = await db.execute(
        select(Organization, OrganizationMember.role)
        .join(OrganizationMember, OrganizationMember.organization_id == Organization.id)
        .where(
            OrganizationMember.user_id == user.id,
            OrganizationMember.is_active == True,  # noqa: E712
            Organization.is_active == True,  # noqa: E712
        )
        .order_by(Organization.name)
    )
    return [(org, role) for org, role in result.all()]


async def update_organization(
    db: AsyncSession, org: Organization, data: OrganizationUpdate
) -> Organization:
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(org, field, value)
    await db.commit()
    await db.refresh(org)
    return org


async def list_members(db: AsyncSession, organization_id: uuid.UUID) -> list[OrganizationMember]:
    result = await db.execute(
        select(OrganizationMember)
        .where(OrganizationMember.organization_id == organization_id)
        .order_by(OrganizationMember.created_at)
    )
    return list(result.scalars().all())


async def list_member_user_ids(
    db: AsyncSession, organization_id: uuid.UUID, roles: list[MemberRole]
) -> list[uuid.UUID]:
    result = await db.execute(
        select(OrganizationMember.user_id).where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.role.in_(roles),
            OrganizationMember.is_active == True,  # noqa: E712
        )
    )
    return list(result.scalars().all())


async def _get_member(
    db: AsyncSession, organization_id: uuid.UUID, member_id: uuid.UUID
) -> OrganizationMember:
    result = await db.execute(
        select(OrganizationMember).where(
            OrganizationMember.id == member_id,
            OrganizationMember.organization_id == organization_id,
        )
    )
    member = result.scalar_one_or_none()
    if member is None:
        raise NotFoundError("Member", str(member_id))
    return member


async def _owner_count(db: AsyncSession, organization_id: uuid.UUID) -> int:
    return await db.scalar(
        select(func.count())
        .select_from(OrganizationMember)
        .where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.role == MemberRole.OWNER,
            OrganizationMember.is_active == True,  # noqa: E712
        )
    )


async def add_member(
    db: AsyncSession, organization_id: uuid.UUID, data: MemberAdd, acting_role: MemberRole
) -> OrganizationMember:
    if data.role == MemberRole.OWNER and acting_role != MemberRole.OWNER:
        raise ValidationError("Only an owner can add another owner.")

    user = (
        await db.execute(select(User).where(User.email == data.email.lower()))
    ).scalar_one_or_none()
    if user is None:
        raise NotFoundError("User", data.email)

    existing = (
        await db.execute(
            select(OrganizationMember).where(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.user_id == user.id,
            )
        )
    ).scalar_one_or_none()
    if existing is not None:
        if existing.is_active:
            raise ConflictError(f"{data.email} is already a member of this organization.")
        existing.is_active = True
        existing.role = data.role
        member = existing
    else:
        member = OrganizationMember(organization_id=organization_id, user_id=user.id, role=data.role)
        db.add(member)

    await db.commit()
    await db.refresh(member)
    return member


async def change_member_role(
    db: AsyncSession,
    organization_id: uuid.UUID,
    member_id: uuid.UUID,
    role: MemberRole,
    acting_role: MemberRole,
) -> OrganizationMember:
    member = await _get_member(db, organization_id, member_id)
    if MemberRole.OWNER in (role, member.role) and acting_role != MemberRole.OWNER:
        raise ValidationError("Only an owner can grant or revoke the owner role.")
    if member.role == MemberRole.OWNER and role != MemberRole.OWNER:
        if await _owner_count(db, organization_id) <= 1:
            raise ValidationError("An organization must keep at least one owner.")

    member.role = role
    await db.commit()
    await db.refresh(member)
    return member


async def remove_member(
    db: AsyncSession,
    organization_id: uuid.UUID,
    member_id: uuid.UUID,
    acting_role: MemberRole,
) -> None:
    member = await _get_member(db, organization_id, member_id)
    if member.role == MemberRole.OWNER:
        if acting_role != MemberRole.OWNER:
            raise ValidationError("Only an owner can remove another owner.")
        if await _owner_count(db, organization_id) <= 1:
            raise ValidationError("An organization must keep at least one owner.")
    await db.delete(member)
    await db.commit()
