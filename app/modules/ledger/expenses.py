"""
Expense distributor

Shared purchase overhead (shipping, packaging, misc) is spread evenly over
every unit on the bill, whatever line the unit belongs to:

    per_unit_addend = extra_charges / total_units    (0 when there are no units)
    landing_cost    = unit_cost + per_unit_addend

Landing cost is a read-side figure. It is recomputed from the current
expenses each time and never replaces the line's purchase cost.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional
from uuid import UUID

from app.modules.ledger.aggregation import complete_lines, total_units
from app.modules.ledger.errors import ValidationError
from app.modules.ledger.lines import LineItem
from app.modules.ledger.money import ZERO, Number, to_money


@dataclass(frozen=True)
class Expenses:
    shipping: Decimal = ZERO
    packaging: Decimal = ZERO
    misc: Decimal = ZERO

    def __post_init__(self):
        for name in ("shipping", "packaging", "misc"):
            value = to_money(getattr(self, name))
            if value < ZERO:
                raise ValidationError(name, f"{name.capitalize()} charges cannot be negative")
            object.__setattr__(self, name, value)

    @property
    def extra_charges(self) -> Decimal:
        return self.shipping + self.packaging + self.misc

    @property
    def has_expenses(self) -> bool:
        return self.extra_charges > ZERO


NO_EXPENSES = Expenses()


@dataclass(frozen=True)
class LandingCostLine:
    reference_id: Optional[UUID]
    sku: str
    name: str
    quantity: int
    unit_cost: Decimal
    per_unit_addend: Decimal
    distributed_cost: Decimal
    landing_cost: Decimal
    landing_total: Decimal


def distribute(extra_charges: Number, units: int) -> Decimal:
    if units <= 0:
        return ZERO
    return to_money(extra_charges) / units


def landing_cost(line: LineItem, per_unit_addend: Decimal) -> Decimal:
    return line.unit_cost + per_unit_addend


def landing_costs(lines: Iterable[LineItem], expenses: Expenses) -> List[LandingCostLine]:
    lines = complete_lines(lines)
    addend = distribute(expenses.extra_charges, total_units(lines))
    result = []
    for line in lines:
        cost = landing_cost(line, addend)
        result.append(LandingCostLine(
            reference_id=line.reference_id,
            sku=line.sku,
            name=line.name,
            quantity=line.quantity,
            unit_cost=line.unit_cost,
            per_unit_addend=addend,
            distributed_cost=addend * line.quantity,
            landing_cost=cost,
            landing_total=cost * line.quantity
        ))
    return result
