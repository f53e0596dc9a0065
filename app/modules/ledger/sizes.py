"""
Size allocator

A line owns zero, one or many SizeAllocations.

- zero sizes: plain quantity field, default 1
- one size: the line quantity and the allocation quantity are the same number,
  default 1
- two or more sizes: every allocation starts at 0 and the line quantity is
  always the sum of the allocations
"""

from dataclasses import dataclass, replace
from typing import Sequence, Tuple
from uuid import UUID

from app.modules.ledger.errors import ValidationError, InvariantViolation
from app.modules.ledger.ports import CatalogSize


DEFAULT_QUANTITY = 1


@dataclass(frozen=True)
class SizeAllocation:
    size_id: UUID
    size_name: str
    quantity: int = 0


@dataclass(frozen=True)
class SizeBreakdown:
    allocations: Tuple[SizeAllocation, ...]
    total_quantity: int


def _require_quantity(quantity: int, field: str = "quantity") -> int:
    if isinstance(quantity, bool) or int(quantity) != quantity:
        raise ValidationError(field, "Quantity must be a whole number")
    if quantity < 0:
        raise ValidationError(field, "Quantity cannot be negative")
    return int(quantity)


def seed_allocations(sizes: Sequence[CatalogSize]) -> SizeBreakdown:
    """Initial breakdown for a freshly selected catalog reference"""
    if not sizes:
        return SizeBreakdown(allocations=(), total_quantity=DEFAULT_QUANTITY)
    if len(sizes) == 1:
        only = sizes[0]
        allocation = SizeAllocation(size_id=only.id, size_name=only.name, quantity=DEFAULT_QUANTITY)
        return SizeBreakdown(allocations=(allocation,), total_quantity=DEFAULT_QUANTITY)
    allocations = tuple(SizeAllocation(size_id=s.id, size_name=s.name) for s in sizes)
    return SizeBreakdown(allocations=allocations, total_quantity=0)


def allocate(
    allocations: Sequence[SizeAllocation],
    changed_index: int,
    new_quantity: int
) -> SizeBreakdown:
    """Set one allocation's quantity and re-derive the line total"""
    if not 0 <= changed_index < len(allocations):
        raise ValidationError("size_quantities", f"No size at position {changed_index}")
    new_quantity = _require_quantity(new_quantity, "size_quantities")
    updated = list(allocations)
    updated[changed_index] = replace(updated[changed_index], quantity=new_quantity)
    return SizeBreakdown(
        allocations=tuple(updated),
        total_quantity=sum(a.quantity for a in updated)
    )


def allocate_by_size(
    allocations: Sequence[SizeAllocation],
    size_id: UUID,
    new_quantity: int
) -> SizeBreakdown:
    for index, allocation in enumerate(allocations):
        if allocation.size_id == size_id:
            return allocate(allocations, index, new_quantity)
    raise ValidationError("size_quantities", f"Size {size_id} is not offered for this product")


def set_total_quantity(allocations: Sequence[SizeAllocation], quantity: int) -> SizeBreakdown:
    """Direct edit of the line quantity.

    Only legal for unsized and single-size lines; a multi-size line's total is
    owned by its allocations.
    """
    quantity = _require_quantity(quantity)
    if not allocations:
        return SizeBreakdown(allocations=(), total_quantity=quantity)
    if len(allocations) == 1:
        return SizeBreakdown(
            allocations=(replace(allocations[0], quantity=quantity),),
            total_quantity=quantity
        )
    raise ValidationError(
        "quantity",
        "Quantity of a multi-size line is the sum of its size quantities; edit the sizes instead"
    )


def check_size_conservation(quantity: int, allocations: Sequence[SizeAllocation]):
    if not allocations:
        return
    allocated = sum(a.quantity for a in allocations)
    if allocated != quantity:
        raise InvariantViolation(
            "size_quantity_mismatch",
            f"Line quantity {quantity} does not match allocated sizes {allocated}"
        )
