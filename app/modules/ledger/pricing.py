"""
LineItem pricer

price_line(quantity, unit_price, discount) -> LinePrice

    subtotal        = quantity * unit_price
    discount_amount = 0 | subtotal * pct / 100 | amount
    total           = max(0, subtotal - discount_amount)

Pure function, always re-run in full on any field change. A discount larger
than the subtotal floors the total at 0 instead of being rejected.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from app.modules.ledger.errors import ValidationError
from app.modules.ledger.money import ZERO, HUNDRED, Number, to_money


class DiscountType(str, Enum):
    NONE = "none"
    PERCENTAGE = "percentage"
    AMOUNT = "amount"


@dataclass(frozen=True)
class DiscountSpec:
    """Tagged discount: none, a percentage in [0, 100], or a fixed amount >= 0"""
    type: DiscountType = DiscountType.NONE
    value: Decimal = ZERO

    def __post_init__(self):
        object.__setattr__(self, "type", DiscountType(self.type))
        value = to_money(self.value)
        if self.type == DiscountType.NONE:
            value = ZERO
        elif value < ZERO:
            raise ValidationError("discount_value", "Discount cannot be negative")
        elif self.type == DiscountType.PERCENTAGE and value > HUNDRED:
            raise ValidationError("discount_value", "Percentage discount must be between 0 and 100")
        object.__setattr__(self, "value", value)

    @classmethod
    def none(cls) -> "DiscountSpec":
        return cls()

    @classmethod
    def percentage(cls, value: Number) -> "DiscountSpec":
        return cls(DiscountType.PERCENTAGE, to_money(value))

    @classmethod
    def amount(cls, value: Number) -> "DiscountSpec":
        return cls(DiscountType.AMOUNT, to_money(value))


NO_DISCOUNT = DiscountSpec()


@dataclass(frozen=True)
class LinePrice:
    subtotal: Decimal
    discount_amount: Decimal
    total: Decimal


def discount_amount_for(subtotal: Decimal, discount: DiscountSpec) -> Decimal:
    if discount.type == DiscountType.PERCENTAGE:
        return subtotal * discount.value / HUNDRED
    if discount.type == DiscountType.AMOUNT:
        return discount.value
    return ZERO


def price_line(quantity: int, unit_price: Number, discount: DiscountSpec = NO_DISCOUNT) -> LinePrice:
    subtotal = to_money(unit_price) * quantity
    discount_amount = discount_amount_for(subtotal, discount)
    total = max(ZERO, subtotal - discount_amount)
    return LinePrice(subtotal=subtotal, discount_amount=discount_amount, total=total)
