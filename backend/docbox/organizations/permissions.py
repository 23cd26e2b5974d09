"""Role groups used across the organization-scoped routes."""

from docbox.organizations.models import MemberRole

ALL_ROLES = [MemberRole.OWNER, MemberRole.ADMIN, MemberRole.ACCOUNTING, MemberRole.STAFF]
ACCOUNTING_ROLES = [MemberRole.OWNER, MemberRole.ADMIN, MemberRole.ACCOUNTING]
ADMIN_ROLES = [MemberRole.OWNER, MemberRole.ADMIN]


def is_accounting_role(role: MemberRole) -> bool:
    return role in ACCOUNTING_ROLES


def is_admin_role(role: MemberRole) -> bool:
    return role in ADMIN_ROLES
