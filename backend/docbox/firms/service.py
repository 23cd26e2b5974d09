import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.auth.models import User
from docbox.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from docbox.firms.models import (
    AccountingFirm,
    ClientRelationStatus,
    FirmClientRelation,
    FirmMember,
    FirmRole,
)
from docbox.firms.schemas import ClientInvite, FirmCreate, FirmMemberAdd, FirmUpdate
from docbox.notifications.models import NotificationType
from docbox.notifications.service import notify_users
from docbox.organizations.models import Organization
from docbox.organizations.permissions import ADMIN_ROLES
from docbox.organizations.service import list_member_user_ids

logger = logging.getLogger(__name__)

FIRM_MANAGER_ROLES = [FirmRole.OWNER, FirmRole.MANAGER]


# ---------------------------------------------------------------------------
# Firms and their staff
# ---------------------------------------------------------------------------


async def create_firm(db: AsyncSession, data: FirmCreate, user: User) -> AccountingFirm:
    firm = AccountingFirm(**data.model_dump())
    firm.members.append(FirmMember(user_id=user.id, role=FirmRole.OWNER))
    db.add(firm)
    await db.commit()
    await db.refresh(firm)
    logger.info("Accounting firm %s created by %s", firm.id, user.id)
    return firm


async def list_my_firms(db: AsyncSession, user: User) -> list[tuple[AccountingFirm, FirmRole]]:
    result = await db.execute(
        select(AccountingFirm, FirmMember.role)
        .join(FirmMember, FirmMember.firm_id == AccountingFirm.id)
        .where(
            FirmMember.user_id == user.id,
            FirmMember.is_active == True,  # noqa: E712
            AccountingFirm.is_active == True,  # noqa: E712
        )
        .order_by(AccountingFirm.name)
    )
    return [(firm, role) for firm, role in result.all()]


async def get_firm_membership(db: AsyncSession, firm_id: uuid.UUID, user_id: uuid.UUID) -> FirmMember:
    """The caller's active membership in a firm; firms they do not belong to are not found."""
    result = await db.execute(
        select(FirmMember).where(
            FirmMember.firm_id == firm_id,
            FirmMember.user_id == user_id,
            FirmMember.is_active == True,  # noqa: E712
        )
    )
    member = result.scalar_one_or_none()
    if member is None:
        raise NotFoundError("Firm", str(firm_id))
    return member


async def get_firm_for_member(
    db: AsyncSession, firm_id: uuid.UUID, user_id: uuid.UUID
) -> tuple[AccountingFirm, FirmMember]:
    member = await get_firm_membership(db, firm_id, user_id)
    firm = await db.get(AccountingFirm, firm_id)
    if firm is None or not firm.is_active:
        raise NotFoundError("Firm", str(firm_id))
    return firm, member


def require_firm_manager(member: FirmMember) -> None:
    if member.role not in FIRM_MANAGER_ROLES:
        raise ForbiddenError("Only firm owners and managers can do this.")


async def update_firm(db: AsyncSession, firm: AccountingFirm, data: FirmUpdate) -> AccountingFirm:
    for key, value in data.model_dump(exclude_unset=True).items():
        if value is None and key == "name":
            continue
        setattr(firm, key, value)
    await db.commit()
    await db.refresh(firm)
    return firm


async def add_firm_member(db: AsyncSession, firm: AccountingFirm, data: FirmMemberAdd) -> FirmMember:
    user = (await db.execute(select(User).where(User.email == data.email.lower()))).scalar_one_or_none()
    if user is None:
        raise NotFoundError("User", data.email)

    for member in firm.members:
        if member.user_id == user.id:
            if member.is_active:
                raise ConflictError(f"{data.email} is already a member of this firm.")
            member.is_active = True
            member.role = data.role
            break
    else:
        member = FirmMember(user_id=user.id, role=data.role)
        firm.members.append(member)

    await db.commit()
    await db.refresh(member)
    return member


async def remove_firm_member(db: AsyncSession, firm: AccountingFirm, member_id: uuid.UUID) -> None:
    member = next((m for m in firm.members if m.id == member_id), None)
    if member is None:
        raise NotFoundError("Firm member", str(member_id))
    if member.role == FirmRole.OWNER:
        owners = [m for m in firm.members if m.role == FirmRole.OWNER and m.is_active]
        if len(owners) <= 1:
            raise ValidationError("A firm must keep at least one owner.")
    firm.members.remove(member)
    await db.commit()


# ---------------------------------------------------------------------------
# Client relations
# ---------------------------------------------------------------------------


async def list_firm_clients(db: AsyncSession, firm_id: uuid.UUID) -> list[FirmClientRelation]:
    result = await db.execute(
        select(FirmClientRelation)
        .where(FirmClientRelation.firm_id == firm_id)
        .order_by(FirmClientRelation.created_at.desc())
    )
    return list(result.scalars().all())


async def invite_client(
    db: AsyncSession, firm: AccountingFirm, data: ClientInvite, user: User
) -> FirmClientRelation:
    organization = await db.get(Organization, data.organization_id)
    if organization is None or not organization.is_active:
        raise NotFoundError("Organization", str(data.organization_id))

    result = await db.execute(
        select(FirmClientRelation).where(
            FirmClientRelation.firm_id == firm.id,
            FirmClientRelation.organization_id == organization.id,
        )
    )
    relation = result.scalar_one_or_none()
    if relation is not None and relation.status != ClientRelationStatus.TERMINATED:
        raise ConflictError(f"{organization.name} is already {relation.status.value} with this firm.")

    if relation is None:
        relation = FirmClientRelation(firm_id=firm.id, organization_id=organization.id)
        db.add(relation)
    relation.status = ClientRelationStatus.PENDING
    relation.invited_by = user.id
    relation.notes = data.notes
    relation.accepted_at = None
    relation.terminated_at = None

    admins = await list_member_user_ids(db, organization.id, ADMIN_ROLES)
    notify_users(
        db,
        admins,
        NotificationType.SYSTEM,
        "คำเชิญจากสำนักงานบัญชี",
        f"{firm.name} ขอเป็นผู้ดูแลบัญชีของ {organization.name}",
        organization_id=organization.id,
        resource_type="firm",
        resource_id=str(firm.id),
    )
    await db.commit()
    await db.refresh(relation)
    logger.info("Firm %s invited organization %s", firm.id, organization.id)
    return relation


async def get_firm_client(
    db: AsyncSession, firm_id: uuid.UUID, relation_id: uuid.UUID
) -> FirmClientRelation:
    relation = await db.get(FirmClientRelation, relation_id)
    if relation is None or relation.firm_id != firm_id:
        raise NotFoundError("Client relation", str(relation_id))
    return relation


async def list_organization_firms(db: AsyncSession, organization_id: uuid.UUID) -> list[FirmClientRelation]:
    result = await db.execute(
        select(FirmClientRelation)
        .where(FirmClientRelation.organization_id == organization_id)
        .order_by(FirmClientRelation.created_at.desc())
    )
    return list(result.scalars().all())


async def get_organization_relation(
    db: AsyncSession, organization_id: uuid.UUID, relation_id: uuid.UUID
) -> FirmClientRelation:
    relation = await db.get(FirmClientRelation, relation_id)
    if relation is None or relation.organization_id != organization_id:
        raise NotFoundError("Client relation", str(relation_id))
    return relation


async def respond_to_invitation(
    db: AsyncSession, relation: FirmClientRelation, accept: bool
) -> FirmClientRelation:
    if relation.status != ClientRelationStatus.PENDING:
        raise ValidationError(f"Invitation is already {relation.status.value}.")

    now = datetime.now(timezone.utc)
    if accept:
        relation.status = ClientRelationStatus.ACTIVE
        relation.accepted_at = now
    else:
        relation.status = ClientRelationStatus.TERMINATED
        relation.terminated_at = now

    await db.commit()
    await db.refresh(relation)
    logger.info(
        "Organization %s %s firm %s",
        relation.organization_id, "accepted" if accept else "declined", relation.firm_id,
    )
    return relation


async def terminate_relation(db: AsyncSession, relation: FirmClientRelation) -> FirmClientRelation:
    if relation.status == ClientRelationStatus.TERMINATED:
        raise ValidationError("This relation is already terminated.")
    relation.status = ClientRelationStatus.TERMINATED
    relation.terminated_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(relation)
    logger.info("Relation between firm %s and organization %s terminated", relation.firm_id, relation.organization_id)
    return relation
