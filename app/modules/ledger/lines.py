"""
Line items

A LineItem is immutable; every edit returns a new line that has been priced
again from scratch, so discount_amount and total can never go stale.
"""

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Optional, Tuple
from uuid import UUID

from app.modules.ledger.money import ZERO, Number, to_money
from app.modules.ledger.ports import CatalogReference
from app.modules.ledger.pricing import DiscountSpec, NO_DISCOUNT, price_line
from app.modules.ledger.sizes import (
    DEFAULT_QUANTITY, SizeAllocation, SizeBreakdown,
    seed_allocations, allocate, allocate_by_size, set_total_quantity, check_size_conservation
)


@dataclass(frozen=True)
class LineItem:
    reference_id: Optional[UUID] = None
    unit_price: Decimal = ZERO
    quantity: int = DEFAULT_QUANTITY
    size_allocations: Tuple[SizeAllocation, ...] = ()
    discount: DiscountSpec = NO_DISCOUNT
    discount_amount: Decimal = ZERO
    total: Decimal = ZERO
    # Snapshot of the catalog reference at selection time
    sku: str = ""
    name: str = ""
    mrp: Optional[Decimal] = None

    @property
    def is_complete(self) -> bool:
        return self.reference_id is not None

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def unit_cost(self) -> Decimal:
        """Purchase lines carry the vendor cost in unit_price"""
        return self.unit_price


def reprice(line: LineItem) -> LineItem:
    check_size_conservation(line.quantity, line.size_allocations)
    price = price_line(line.quantity, line.unit_price, line.discount)
    return replace(line, discount_amount=price.discount_amount, total=price.total)


def blank_line() -> LineItem:
    """Row added in the UI before a product is picked; excluded from totals"""
    return reprice(LineItem())


def line_for_reference(reference: CatalogReference, unit_price: Number) -> LineItem:
    breakdown = seed_allocations(reference.offered_sizes)
    return reprice(LineItem(
        reference_id=reference.id,
        unit_price=to_money(unit_price),
        quantity=breakdown.total_quantity,
        size_allocations=breakdown.allocations,
        sku=reference.sku,
        name=reference.name,
        mrp=reference.mrp
    ))


def _with_breakdown(line: LineItem, breakdown: SizeBreakdown) -> LineItem:
    return reprice(replace(
        line,
        quantity=breakdown.total_quantity,
        size_allocations=breakdown.allocations
    ))


def update_line(
    line: LineItem,
    quantity: Optional[int] = None,
    unit_price: Optional[Number] = None,
    discount: Optional[DiscountSpec] = None
) -> LineItem:
    if unit_price is not None:
        line = replace(line, unit_price=to_money(unit_price))
    if discount is not None:
        line = replace(line, discount=discount)
    if quantity is not None:
        return _with_breakdown(line, set_total_quantity(line.size_allocations, quantity))
    return reprice(line)


def update_size_quantity(line: LineItem, index: int, quantity: int) -> LineItem:
    return _with_breakdown(line, allocate(line.size_allocations, index, quantity))


def update_size_quantity_by_id(line: LineItem, size_id: UUID, quantity: int) -> LineItem:
    return _with_breakdown(line, allocate_by_size(line.size_allocations, size_id, quantity))
