from docbox.boxes.models import PaymentStatus


def _to_satang(amount: float) -> int:
    return int(round(amount * 100))


def calculate_payment_status(total: float, paid: float) -> PaymentStatus:
    """Payment status of a box from its total and the sum of its payments.

    Amounts are compared in whole satang so float noise cannot flip a
    boundary.
    """
    total_s = _to_satang(total)
    paid_s = _to_satang(paid)

    if paid_s <= 0:
        return PaymentStatus.UNPAID
    if paid_s < total_s:
        return PaymentStatus.PARTIAL
    if paid_s == total_s:
        return PaymentStatus.PAID
    return PaymentStatus.OVERPAID


def remaining_balance(total: float, paid: float) -> float:
    return max(0.0, round(total - paid, 2))
