"""
Pydantic building blocks shared by the order and purchase bill schemas
"""

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from decimal import Decimal
from typing import Annotated, List, Optional
from uuid import UUID

from app.modules.ledger.intake import LineInput
from app.modules.ledger.lines import LineItem
from app.modules.ledger.money import quantize_money
from app.modules.ledger.pricing import DiscountSpec, DiscountType


# Amounts leave the API rounded to the currency minor unit
Money = Annotated[Decimal, PlainSerializer(quantize_money, return_type=Decimal)]


class SizeQuantityIn(BaseModel):
    size_id: UUID = Field(..., description="Size offered by the product or its category")
    quantity: int = Field(..., ge=0, description="Units of this size")


class LineIn(BaseModel):
    product_id: Optional[UUID] = Field(None, description="Product; empty rows are ignored")
    quantity: Optional[int] = Field(None, ge=0, description="Units; derived from sizes on multi-size products")
    discount_type: DiscountType = Field(DiscountType.NONE, description="none, percentage or amount")
    discount_value: Decimal = Field(Decimal("0"), ge=0, description="Percentage (0-100) or fixed amount")
    size_quantities: List[SizeQuantityIn] = Field(default_factory=list, description="Per-size quantities")

    def price_override(self) -> Optional[Decimal]:
        return None

    def to_line_input(self) -> LineInput:
        return LineInput(
            reference_id=self.product_id,
            quantity=self.quantity,
            unit_price=self.price_override(),
            discount=DiscountSpec(self.discount_type, self.discount_value),
            size_quantities={s.size_id: s.quantity for s in self.size_quantities}
        )


class SizeAllocationOut(BaseModel):
    size_id: UUID
    size_name: str
    quantity: int


class LineOut(BaseModel):
    product_id: UUID
    sku: str
    name: str
    quantity: int
    unit_price: Money
    discount_type: DiscountType
    discount_value: Decimal
    discount_amount: Money
    total: Money
    sizes: List[SizeAllocationOut] = []

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_line(cls, line: LineItem) -> "LineOut":
        return cls(
            product_id=line.reference_id,
            sku=line.sku,
            name=line.name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            discount_type=line.discount.type,
            discount_value=line.discount.value,
            discount_amount=line.discount_amount,
            total=line.total,
            sizes=[
                SizeAllocationOut(size_id=a.size_id, size_name=a.size_name, quantity=a.quantity)
                for a in line.size_allocations
            ]
        )


class TotalsOut(BaseModel):
    subtotal: Money
    total_discount: Money
    grand_total: Money
