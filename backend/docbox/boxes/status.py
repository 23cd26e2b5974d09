"""Box review workflow: which status moves exist and who may make them."""

from dataclasses import dataclass

from docbox.boxes.models import BoxStatus
from docbox.core.exceptions import ForbiddenError, InvalidTransitionError, ValidationError
from docbox.organizations.models import MemberRole
from docbox.organizations.permissions import ACCOUNTING_ROLES, ADMIN_ROLES, ALL_ROLES

EDITABLE_STATUSES = frozenset({BoxStatus.DRAFT, BoxStatus.PENDING, BoxStatus.NEED_DOCS})


@dataclass(frozen=True)
class Transition:
    source: BoxStatus
    target: BoxStatus
    roles: tuple[MemberRole, ...]
    requires_reason: bool = False
    is_revert: bool = False
    label: str = ""


TRANSITIONS: tuple[Transition, ...] = (
    Transition(BoxStatus.DRAFT, BoxStatus.PENDING, tuple(ALL_ROLES), label="ส่งตรวจ"),
    Transition(BoxStatus.PENDING, BoxStatus.COMPLETED, tuple(ACCOUNTING_ROLES), label="เสร็จสิ้น"),
    Transition(
        BoxStatus.PENDING, BoxStatus.NEED_DOCS, tuple(ACCOUNTING_ROLES),
        requires_reason=True, label="ขอเอกสารเพิ่ม",
    ),
    Transition(BoxStatus.NEED_DOCS, BoxStatus.PENDING, tuple(ALL_ROLES), label="ส่งเอกสารเพิ่มแล้ว"),
    Transition(BoxStatus.PENDING, BoxStatus.DRAFT, tuple(ALL_ROLES), is_revert=True, label="ดึงกลับเป็นร่าง"),
    Transition(
        BoxStatus.COMPLETED, BoxStatus.PENDING, tuple(ADMIN_ROLES),
        requires_reason=True, is_revert=True, label="เปิดกล่องใหม่",
    ),
)

_BY_PAIR = {(t.source, t.target): t for t in TRANSITIONS}


def find_transition(current: BoxStatus, target: BoxStatus) -> Transition | None:
    return _BY_PAIR.get((current, target))


def next_statuses(current: BoxStatus, role: MemberRole) -> list[BoxStatus]:
    return [t.target for t in TRANSITIONS if t.source == current and role in t.roles]


def available_transitions(current: BoxStatus, role: MemberRole) -> list[Transition]:
    return [t for t in TRANSITIONS if t.source == current and role in t.roles]


def check_transition(
    current: BoxStatus,
    target: BoxStatus,
    role: MemberRole,
    reason: str | None = None,
) -> Transition:
    """Validate a status move and return the matching transition.

    Unknown moves raise InvalidTransitionError, role violations raise
    ForbiddenError and a missing mandatory reason raises ValidationError.
    """
    transition = find_transition(current, target)
    if transition is None:
        raise InvalidTransitionError(current.value, target.value)
    if role not in transition.roles:
        raise ForbiddenError(
            f"Role {role.value} cannot change box status from {current.value} to {target.value}."
        )
    if transition.requires_reason and not (reason and reason.strip()):
        raise ValidationError(f"A reason is required to move a box to {target.value}.")
    return transition


def is_editable(status: BoxStatus) -> bool:
    return status in EDITABLE_STATUSES
