import logging
import uuid
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from docbox.audit.service import record_audit
from docbox.boxes.models import Box
from docbox.boxes.service import box_event_payload, get_box, recalculate_box_payments
from docbox.core.exceptions import NotFoundError, ValidationError
from docbox.dependencies import OrgContext
from docbox.integrations.dispatcher import WebhookDispatcher
from docbox.integrations.models import IntegrationEvent
from docbox.notifications.models import NotificationType
from docbox.notifications.service import notify_users
from docbox.payments.calculation import remaining_balance
from docbox.payments.models import Payment
from docbox.payments.schemas import MarkAsPaid, PaymentCreate, PaymentUpdate

logger = logging.getLogger(__name__)


def _find_payment(box: Box, payment_id: uuid.UUID) -> Payment:
    for payment in box.payments:
        if payment.id == payment_id:
            return payment
    raise NotFoundError("Payment", str(payment_id))


async def list_payments(db: AsyncSession, organization_id: uuid.UUID, box_id: uuid.UUID) -> list[Payment]:
    box = await get_box(db, organization_id, box_id)
    return sorted(box.payments, key=lambda p: (p.date, p.created_at))


async def _announce(
    db: AsyncSession, ctx: OrgContext, box: Box, payment: Payment, dispatcher: WebhookDispatcher
) -> None:
    message = f"บันทึกการชำระเงิน ฿{payment.amount:,.2f} ({box.payment_status.value})"
    payload = box_event_payload(box, "บันทึกการชำระเงิน", message)
    payload["amount"] = payment.amount
    await dispatcher.trigger_event(db, ctx.organization_id, IntegrationEvent.PAYMENT_RECORDED.value, payload)


def _notify_creator(db: AsyncSession, ctx: OrgContext, box: Box, payment: Payment) -> None:
    if box.created_by and box.created_by != ctx.user_id:
        notify_users(
            db,
            [box.created_by],
            NotificationType.PAYMENT_RECORDED,
            f"บันทึกการชำระเงิน: {box.box_number}",
            f"฿{payment.amount:,.2f}",
            organization_id=ctx.organization_id,
            resource_type="box",
            resource_id=str(box.id),
        )


async def add_payment(
    db: AsyncSession,
    ctx: OrgContext,
    box_id: uuid.UUID,
    data: PaymentCreate,
    dispatcher: WebhookDispatcher,
) -> Payment:
    box = await get_box(db, ctx.organization_id, box_id)

    payment = Payment(
        amount=round(data.amount, 2),
        date=data.date or date.today(),
        method=data.method,
        reference=data.reference,
        notes=data.notes,
        recorded_by=ctx.user_id,
    )
    box.payments.append(payment)
    await db.flush()
    recalculate_box_payments(box)

    record_audit(
        db,
        organization_id=ctx.organization_id,
        user_id=ctx.user_id,
        action="PAYMENT_ADDED",
        resource_type="payment",
        resource_id=payment.id,
        box_id=box.id,
        details={"amount": payment.amount, "method": payment.method.value},
    )
    _notify_creator(db, ctx, box, payment)
    await db.commit()

    logger.info("Recorded payment of %.2f on box %s (%s)", payment.amount, box.box_number, box.payment_status.value)
    await _announce(db, ctx, box, payment, dispatcher)
    return payment


async def update_payment(
    db: AsyncSession,
    ctx: OrgContext,
    box_id: uuid.UUID,
    payment_id: uuid.UUID,
    data: PaymentUpdate,
) -> Payment:
    box = await get_box(db, ctx.organization_id, box_id)
    payment = _find_payment(box, payment_id)

    before = {"amount": payment.amount, "method": payment.method.value}
    for key, value in data.model_dump(exclude_unset=True).items():
        if value is None and key in ("amount", "date", "method"):
            continue
        setattr(payment, key, round(value, 2) if key == "amount" else value)
    recalculate_box_payments(box)

    record_audit(
        db,
        organization_id=ctx.organization_id,
        user_id=ctx.user_id,
        action="PAYMENT_UPDATED",
        resource_type="payment",
        resource_id=payment.id,
        box_id=box.id,
        details={"before": before, "after": {"amount": payment.amount, "method": payment.method.value}},
    )
    await db.commit()
    await db.refresh(payment)
    return payment


async def delete_payment(
    db: AsyncSession, ctx: OrgContext, box_id: uuid.UUID, payment_id: uuid.UUID
) -> None:
    box = await get_box(db, ctx.organization_id, box_id)
    payment = _find_payment(box, payment_id)

    box.payments.remove(payment)
    await db.flush()
    recalculate_box_payments(box)

    record_audit(
        db,
        organization_id=ctx.organization_id,
        user_id=ctx.user_id,
        action="PAYMENT_DELETED",
        resource_type="payment",
        resource_id=payment_id,
        box_id=box.id,
        details={"amount": payment.amount},
    )
    await db.commit()


async def mark_as_paid(
    db: AsyncSession,
    ctx: OrgContext,
    box_id: uuid.UUID,
    data: MarkAsPaid,
    dispatcher: WebhookDispatcher,
) -> Payment:
    """Record a single payment covering whatever is still owed on the box."""
    box = await get_box(db, ctx.organization_id, box_id)
    remaining = remaining_balance(box.total_amount, box.paid_amount)
    if remaining <= 0:
        raise ValidationError(
            f"Box {box.box_number} has nothing left to pay.",
            details={"total_amount": box.total_amount, "paid_amount": box.paid_amount},
        )

    payment = Payment(
        amount=remaining,
        date=data.date or date.today(),
        method=data.method,
        reference=data.reference,
        notes="Marked as paid",
        recorded_by=ctx.user_id,
    )
    box.payments.append(payment)
    await db.flush()
    recalculate_box_payments(box)

    record_audit(
        db,
        organization_id=ctx.organization_id,
        user_id=ctx.user_id,
        action="MARKED_AS_PAID",
        resource_type="payment",
        resource_id=payment.id,
        box_id=box.id,
        details={"amount": remaining},
    )
    _notify_creator(db, ctx, box, payment)
    await db.commit()

    await _announce(db, ctx, box, payment, dispatcher)
    return payment
