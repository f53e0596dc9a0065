"""
Bill state machine

    pending --(balance <= 0 after a payment)--> paid
    pending --(explicit)--> cancelled
    paid    --(explicit)--> cancelled

Every bill is created pending. Cancelled is terminal and never derived.
"""

from decimal import Decimal
from enum import Enum

from app.modules.ledger.errors import ValidationError
from app.modules.ledger.money import ZERO, quantize_money


class BillStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


INITIAL_STATUS = BillStatus.PENDING

TRANSITIONS = {
    BillStatus.PENDING: {BillStatus.PAID, BillStatus.CANCELLED},
    BillStatus.PAID: {BillStatus.CANCELLED},
    BillStatus.CANCELLED: set(),
}


def can_transition(current: BillStatus, target: BillStatus) -> bool:
    return BillStatus(target) in TRANSITIONS[BillStatus(current)]


def transition(current: BillStatus, target: BillStatus) -> BillStatus:
    current, target = BillStatus(current), BillStatus(target)
    if not can_transition(current, target):
        raise ValidationError(
            "status",
            f"Bill cannot move from {current.value} to {target.value}",
            code="invalid_transition"
        )
    return target


def cancel(current: BillStatus) -> BillStatus:
    return transition(current, BillStatus.CANCELLED)


def after_payment(current: BillStatus, balance: Decimal) -> BillStatus:
    """Status once a payment has been booked against the given balance"""
    current = BillStatus(current)
    if current == BillStatus.PENDING and quantize_money(balance) <= ZERO:
        return transition(current, BillStatus.PAID)
    return current


def require_open(current: BillStatus, action: str):
    if BillStatus(current) == BillStatus.CANCELLED:
        raise ValidationError("status", f"Cannot {action} a cancelled bill", code="bill_cancelled")
