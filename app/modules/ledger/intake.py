"""
Raw line input -> LineItem

Order bills and purchase bills feed submitted rows through the same path:
seed the line from the catalog reference, apply per-size quantities, then the
plain quantity and the discount. Each step goes through the line mutators, so
the result is priced and size-conserved exactly as an interactive edit would be.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional
from uuid import UUID

from app.modules.ledger.errors import ValidationError
from app.modules.ledger.lines import LineItem, blank_line, line_for_reference, update_line, update_size_quantity_by_id
from app.modules.ledger.money import Number
from app.modules.ledger.ports import CatalogLookup, CatalogReference
from app.modules.ledger.pricing import DiscountSpec, NO_DISCOUNT


@dataclass(frozen=True)
class LineInput:
    reference_id: Optional[UUID] = None
    quantity: Optional[int] = None
    unit_price: Optional[Number] = None
    discount: DiscountSpec = NO_DISCOUNT
    size_quantities: Dict[UUID, int] = field(default_factory=dict)


def build_line(reference: CatalogReference, unit_price: Number, data: LineInput) -> LineItem:
    line = line_for_reference(reference, unit_price)

    if data.size_quantities:
        if not line.size_allocations:
            raise ValidationError("size_quantities", f"Product {reference.sku} is not sold in sizes")
        for size_id, quantity in data.size_quantities.items():
            line = update_size_quantity_by_id(line, size_id, quantity)

    if data.quantity is not None and data.quantity != line.quantity:
        if len(line.size_allocations) > 1:
            raise ValidationError(
                "quantity",
                f"Quantity {data.quantity} for {reference.sku} does not match its size quantities ({line.quantity})"
            )
        if data.size_quantities:
            raise ValidationError("quantity", f"Quantity and size quantity for {reference.sku} disagree")
        line = update_line(line, quantity=data.quantity)

    return update_line(line, discount=data.discount)


def build_lines(
    lookup: CatalogLookup,
    default_price: Callable[[CatalogReference], Number],
    inputs: Iterable[LineInput]
) -> List[LineItem]:
    """Lines for a bill; rows without a product stay blank and drop out at submission"""
    lines = []
    for data in inputs:
        if data.reference_id is None:
            lines.append(blank_line())
            continue
        reference = lookup.get_reference(data.reference_id)
        price = data.unit_price if data.unit_price is not None else default_price(reference)
        lines.append(build_line(reference, price, data))
    return lines
