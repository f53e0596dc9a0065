"""
Payment ledger

Payments against a purchase bill are append-only: a booked payment is never
edited or removed. Each append is validated against the balance the bill has
at that moment, and the bill status is re-evaluated right after.

Rejections (nothing is mutated):
- mode missing
- amount <= 0
- amount finer than the currency minor unit
- amount > current balance (no partial accept, no refund path)
- bank_transfer / upi / cheque without a transaction reference
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional
from uuid import UUID, uuid4

from app.modules.ledger.state import after_payment, require_open
from app.modules.ledger.errors import ValidationError
from app.modules.ledger.money import ZERO, Number, money_sum, quantize_money, to_money

if TYPE_CHECKING:
    from app.modules.ledger.bills import PurchaseBill

logger = logging.getLogger(__name__)


class PaymentMode(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    UPI = "upi"
    CHEQUE = "cheque"
    CREDIT = "credit"


REFERENCE_REQUIRED_MODES = frozenset({
    PaymentMode.BANK_TRANSFER,
    PaymentMode.UPI,
    PaymentMode.CHEQUE,
})


@dataclass(frozen=True)
class Payment:
    amount: Decimal
    mode: PaymentMode
    reference: Optional[str] = None
    timestamp: Optional[datetime] = None
    notes: Optional[str] = None
    id: Optional[UUID] = None


def paid_amount(payments: Iterable[Payment]) -> Decimal:
    return money_sum(p.amount for p in payments)


def validate_payment(
    balance: Decimal,
    amount: Optional[Number],
    mode: Optional[PaymentMode],
    reference: Optional[str] = None
) -> Payment:
    """Check a payment against the current balance; returns the normalized record"""
    if not mode:
        raise ValidationError("mode", "Payment mode is required")
    try:
        mode = PaymentMode(mode)
    except ValueError:
        raise ValidationError("mode", f"Unknown payment mode '{mode}'")

    try:
        amount = to_money(amount) if amount is not None else ZERO
    except InvalidOperation:
        raise ValidationError("amount", "Payment amount must be a number")
    if amount <= ZERO:
        raise ValidationError("amount", "Payment amount must be greater than zero", code="non_positive_amount")
    if amount != quantize_money(amount):
        raise ValidationError("amount", "Payment amount cannot have more than 2 decimal places", code="sub_minor_unit")
    balance = quantize_money(balance)
    if amount > balance:
        raise ValidationError(
            "amount",
            f"Payment amount cannot exceed balance. Maximum allowed: {quantize_money(max(balance, ZERO))}",
            code="exceeds_balance"
        )

    reference = (reference or "").strip() or None
    if mode in REFERENCE_REQUIRED_MODES and reference is None:
        raise ValidationError(
            "reference",
            "Transaction reference is required for bank transfer, UPI and cheque payments",
            code="reference_required"
        )

    return Payment(amount=amount, mode=mode, reference=reference)


def add_payment(
    bill: "PurchaseBill",
    amount: Optional[Number],
    mode: Optional[PaymentMode],
    reference: Optional[str] = None,
    timestamp: Optional[datetime] = None,
    notes: Optional[str] = None,
    payment_id: Optional[UUID] = None
) -> "PurchaseBill":
    """Append one payment and return the updated bill"""
    require_open(bill.status, "record a payment on")
    payment = validate_payment(bill.balance, amount, mode, reference)
    payment = replace(
        payment,
        id=payment_id or uuid4(),
        timestamp=timestamp or datetime.now(timezone.utc),
        notes=notes
    )
    updated = replace(bill, payments=bill.payments + (payment,))
    status = after_payment(updated.status, updated.balance)
    if status != updated.status:
        logger.info(f"Bill {bill.bill_number or bill.id} settled: balance {updated.balance}")
        updated = replace(updated, status=status)
    return updated
