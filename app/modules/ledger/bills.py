"""
Bill aggregates

OrderBill: sale to a wholesaler, reseller or retailer. Settles outside the
ledger, so it carries a status but no payments.

PurchaseBill: buy from a vendor. Adds shared expenses and an append-only
list of payments; balance and status are derived from them.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Tuple, Union
from uuid import UUID

from app.modules.ledger.aggregation import BillTotals, aggregate, complete_lines, total_units
from app.modules.ledger.counterparties import Counterparty, Vendor
from app.modules.ledger.errors import ValidationError, InvariantViolation
from app.modules.ledger.expenses import Expenses, NO_EXPENSES, distribute, landing_costs
from app.modules.ledger.lines import LineItem
from app.modules.ledger.money import ZERO, quantize_money
from app.modules.ledger.payments import Payment, paid_amount
from app.modules.ledger.sizes import check_size_conservation
from app.modules.ledger.state import BillStatus, INITIAL_STATUS


@dataclass(frozen=True)
class OrderBill:
    counterparty: Counterparty
    lines: Tuple[LineItem, ...] = ()
    id: Optional[UUID] = None
    invoice_number: Optional[str] = None
    issued_at: Optional[datetime] = None
    status: BillStatus = INITIAL_STATUS
    notes: Optional[str] = None

    @property
    def totals(self) -> BillTotals:
        return aggregate(self.lines)

    @property
    def grand_total(self) -> Decimal:
        return self.totals.grand_total


@dataclass(frozen=True)
class PurchaseBill:
    vendor: Vendor
    lines: Tuple[LineItem, ...] = ()
    id: Optional[UUID] = None
    bill_number: Optional[str] = None
    issued_at: Optional[datetime] = None
    expenses: Expenses = NO_EXPENSES
    payments: Tuple[Payment, ...] = ()
    status: BillStatus = INITIAL_STATUS
    notes: Optional[str] = None

    @property
    def totals(self) -> BillTotals:
        return aggregate(self.lines)

    @property
    def items_total(self) -> Decimal:
        return self.totals.grand_total

    @property
    def extra_charges(self) -> Decimal:
        return self.expenses.extra_charges

    @property
    def bill_total(self) -> Decimal:
        return self.items_total + self.extra_charges

    @property
    def paid_amount(self) -> Decimal:
        return paid_amount(self.payments)

    @property
    def payable_total(self) -> Decimal:
        """Bill total in the currency minor unit, the amount payments settle against"""
        return quantize_money(self.bill_total)

    @property
    def balance(self) -> Decimal:
        balance = self.payable_total - self.paid_amount
        if balance < ZERO:
            raise InvariantViolation(
                "negative_balance",
                f"Bill {self.bill_number or self.id} has paid {self.paid_amount} against a total of {self.bill_total}"
            )
        return balance

    @property
    def total_units(self) -> int:
        return total_units(self.lines)

    @property
    def per_unit_addend(self) -> Decimal:
        return distribute(self.extra_charges, self.total_units)

    def landing_costs(self):
        return landing_costs(self.lines, self.expenses)


Bill = Union[OrderBill, PurchaseBill]


# ===== LINE MUTATIONS =====

def _check_duplicate(lines: Iterable[LineItem], line: LineItem):
    if not line.is_complete:
        return
    for existing in lines:
        if existing.reference_id == line.reference_id:
            raise ValidationError(
                "reference_id",
                f"Product {line.sku or line.reference_id} is already on this bill; update its quantity instead",
                code="duplicate_reference"
            )


def add_line(bill: Bill, line: LineItem) -> Bill:
    _check_duplicate(bill.lines, line)
    return replace(bill, lines=bill.lines + (line,))


def replace_line(bill: Bill, index: int, line: LineItem) -> Bill:
    if not 0 <= index < len(bill.lines):
        raise ValidationError("lines", f"No line at position {index}")
    others = bill.lines[:index] + bill.lines[index + 1:]
    _check_duplicate(others, line)
    return replace(bill, lines=bill.lines[:index] + (line,) + bill.lines[index + 1:])


def remove_line(bill: Bill, index: int) -> Bill:
    if not 0 <= index < len(bill.lines):
        raise ValidationError("lines", f"No line at position {index}")
    return replace(bill, lines=bill.lines[:index] + bill.lines[index + 1:])


def with_lines(bill: Bill, lines: Iterable[LineItem]) -> Bill:
    bill = replace(bill, lines=())
    for line in lines:
        bill = add_line(bill, line)
    return bill


# ===== SUBMISSION =====

def _check_invariants(lines: Tuple[LineItem, ...]):
    seen = set()
    for line in lines:
        if line.reference_id in seen:
            raise InvariantViolation("duplicate_reference", f"Product {line.reference_id} appears on more than one line")
        seen.add(line.reference_id)
        check_size_conservation(line.quantity, line.size_allocations)


def validate_submission(bill: Bill) -> Bill:
    """Bill ready to persist: incomplete rows dropped, every rule checked.

    Rejects the bill as a whole; there is no partial save.
    """
    if isinstance(bill, PurchaseBill):
        party, field = bill.vendor, "vendor_id"
    else:
        party, field = bill.counterparty, "counterparty_id"
    if party is None or party.id is None:
        raise ValidationError(field, "Counterparty is required")
    party.require_active(field)

    lines = tuple(complete_lines(bill.lines))
    if not lines:
        raise ValidationError("lines", "Add at least one product to the bill", code="empty_bill")

    for line in lines:
        if line.quantity <= 0:
            raise ValidationError("quantity", f"Quantity for {line.sku or line.reference_id} must be greater than zero")
        if isinstance(bill, PurchaseBill) and line.unit_price <= ZERO:
            raise ValidationError("unit_cost", f"Cost price for {line.sku or line.reference_id} must be greater than zero")
        if line.unit_price < ZERO:
            raise ValidationError("unit_price", f"Unit price for {line.sku or line.reference_id} cannot be negative")

    _check_invariants(lines)
    return replace(bill, lines=lines)
