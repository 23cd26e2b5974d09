import uuid
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.auth.models import User
from docbox.auth.utils import decode_token
from docbox.core.exceptions import ForbiddenError, NotFoundError
from docbox.firms.models import ClientRelationStatus, FirmClientRelation, FirmMember
from docbox.integrations.dispatcher import WebhookDispatcher
from docbox.organizations.models import MemberRole, Organization, OrganizationMember

security = HTTPBearer()


@dataclass
class OrgContext:
    """The organization a request acts on and the caller's role inside it."""

    organization: Organization
    user: User
    role: MemberRole
    via_firm_id: uuid.UUID | None = None

    @property
    def organization_id(self) -> uuid.UUID:
        return self.organization.id

    @property
    def user_id(self) -> uuid.UUID:
        return self.user.id


async def get_db(request: Request) -> AsyncSession:
    async with request.app.state.session_factory() as session:
        yield session


def get_dispatcher(request: Request) -> WebhookDispatcher:
    return request.app.state.dispatcher


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    token_data = decode_token(credentials.credentials, request.app.state.settings)
    if token_data is None or token_data.token_type != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    user = await db.get(User, token_data.sub)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return user


async def resolve_org_role(
    db: AsyncSession, organization_id: uuid.UUID, user_id: uuid.UUID
) -> tuple[MemberRole, uuid.UUID | None] | None:
    """Return the caller's effective role in an organization, or None.

    Direct membership wins. Staff of a firm with an active client relation
    act with the ACCOUNTING role.
    """
    membership = (
        await db.execute(
            select(OrganizationMember).where(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.user_id == user_id,
                OrganizationMember.is_active == True,  # noqa: E712
            )
        )
    ).scalar_one_or_none()
    if membership is not None:
        return membership.role, None

    firm_id = (
        await db.execute(
            select(FirmClientRelation.firm_id)
            .join(FirmMember, FirmMember.firm_id == FirmClientRelation.firm_id)
            .where(
                FirmClientRelation.organization_id == organization_id,
                FirmClientRelation.status == ClientRelationStatus.ACTIVE,
                FirmMember.user_id == user_id,
                FirmMember.is_active == True,  # noqa: E712
            )
            .limit(1)
        )
    ).scalar_one_or_none()
    if firm_id is not None:
        return MemberRole.ACCOUNTING, firm_id
    return None


async def get_org_context(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    x_organization_id: Annotated[uuid.UUID, Header()],
) -> OrgContext:
    organization = await db.get(Organization, x_organization_id)
    if organization is None or not organization.is_active:
        raise NotFoundError("Organization", str(x_organization_id))

    resolved = await resolve_org_role(db, organization.id, current_user.id)
    if resolved is None:
        # Organizations the caller cannot see do not exist for them
        raise NotFoundError("Organization", str(x_organization_id))

    role, firm_id = resolved
    return OrgContext(organization=organization, user=current_user, role=role, via_firm_id=firm_id)


def require_org_role(allowed_roles: list[MemberRole]):
    """Dependency factory that checks the caller's role in the request organization."""

    async def check_role(
        ctx: Annotated[OrgContext, Depends(get_org_context)],
    ) -> OrgContext:
        if ctx.role not in allowed_roles:
            raise ForbiddenError()
        return ctx

    return check_role
