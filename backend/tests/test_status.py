import pytest

from docbox.boxes.models import BoxStatus
from docbox.boxes.status import check_transition, is_editable, next_statuses
from docbox.core.exceptions import ForbiddenError, InvalidTransitionError, ValidationError
from docbox.organizations.models import MemberRole


def test_staff_can_submit_but_not_complete() -> None:
    assert next_statuses(BoxStatus.DRAFT, MemberRole.STAFF) == [BoxStatus.PENDING]
    assert BoxStatus.COMPLETED not in next_statuses(BoxStatus.PENDING, MemberRole.STAFF)


def test_accounting_review_targets() -> None:
    targets = next_statuses(BoxStatus.PENDING, MemberRole.ACCOUNTING)
    assert set(targets) == {BoxStatus.COMPLETED, BoxStatus.NEED_DOCS, BoxStatus.DRAFT}


def test_only_admins_reopen() -> None:
    assert next_statuses(BoxStatus.COMPLETED, MemberRole.ACCOUNTING) == []
    assert next_statuses(BoxStatus.COMPLETED, MemberRole.OWNER) == [BoxStatus.PENDING]


def test_unknown_move_is_invalid_transition() -> None:
    with pytest.raises(InvalidTransitionError) as exc_info:
        check_transition(BoxStatus.DRAFT, BoxStatus.COMPLETED, MemberRole.OWNER)
    assert exc_info.value.code == "INVALID_STATUS_TRANSITION"
    assert exc_info.value.details == {"from": "DRAFT", "to": "COMPLETED"}


def test_role_violation_is_forbidden() -> None:
    with pytest.raises(ForbiddenError):
        check_transition(BoxStatus.PENDING, BoxStatus.COMPLETED, MemberRole.STAFF)


def test_need_docs_requires_reason() -> None:
    with pytest.raises(ValidationError):
        check_transition(BoxStatus.PENDING, BoxStatus.NEED_DOCS, MemberRole.ACCOUNTING, "  ")
    transition = check_transition(
        BoxStatus.PENDING, BoxStatus.NEED_DOCS, MemberRole.ACCOUNTING, "ขาดใบกำกับภาษี"
    )
    assert transition.requires_reason


def test_completed_is_not_editable() -> None:
    assert is_editable(BoxStatus.DRAFT)
    assert is_editable(BoxStatus.NEED_DOCS)
    assert not is_editable(BoxStatus.COMPLETED)
