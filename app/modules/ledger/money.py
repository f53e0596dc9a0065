"""
Money helpers

Amounts are Decimal end to end. Rounding to the currency minor unit happens
only when a value leaves the ledger (schema serialization, database columns).
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

ZERO = Decimal("0")
HUNDRED = Decimal("100")
MINOR_UNIT = Decimal("0.01")

Number = Union[Decimal, int, str, float]


def to_money(value: Number) -> Decimal:
    """Coerce a raw input to Decimal without passing through binary float math"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value: Number) -> Decimal:
    return to_money(value).quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


def money_sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)
