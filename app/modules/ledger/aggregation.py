"""
Bill aggregator

Straight sums over complete lines. Lines without a selected reference are
rows the user left half-filled and never count towards a total.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List

from app.modules.ledger.lines import LineItem
from app.modules.ledger.money import money_sum


@dataclass(frozen=True)
class BillTotals:
    subtotal: Decimal
    total_discount: Decimal
    grand_total: Decimal


def complete_lines(lines: Iterable[LineItem]) -> List[LineItem]:
    return [line for line in lines if line.is_complete]


def aggregate(lines: Iterable[LineItem]) -> BillTotals:
    counted = complete_lines(lines)
    return BillTotals(
        subtotal=money_sum(line.subtotal for line in counted),
        total_discount=money_sum(line.discount_amount for line in counted),
        grand_total=money_sum(line.total for line in counted)
    )


def total_units(lines: Iterable[LineItem]) -> int:
    return sum(line.quantity for line in complete_lines(lines))
