"""
Pydantic schemas for purchase bills

- Lines: product, cost price, quantity or per-size quantities, discount
- Expenses: shipping / packaging / misc shared over all units
- Payments: amount, mode, transaction reference
- Landing cost: per-line cost once the expenses are spread
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from app.common.schemas import LineIn, LineOut, Money
from app.modules.ledger.expenses import LandingCostLine
from app.modules.ledger.payments import PaymentMode
from app.modules.ledger.state import BillStatus


# ===== LINES AND EXPENSES =====

class PurchaseLineIn(LineIn):
    cost_price: Optional[Decimal] = Field(None, ge=0, decimal_places=2, description="Vendor cost per unit; defaults to the product cost price")

    def price_override(self) -> Optional[Decimal]:
        return self.cost_price


class ExpensesIn(BaseModel):
    shipping: Decimal = Field(Decimal("0"), ge=0, decimal_places=2, description="Shipping charges")
    packaging: Decimal = Field(Decimal("0"), ge=0, decimal_places=2, description="Packaging charges")
    misc: Decimal = Field(Decimal("0"), ge=0, decimal_places=2, description="Other charges")


# ===== PAYMENTS =====

class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., decimal_places=2, description="Amount paid; must not exceed the balance")
    mode: PaymentMode = Field(..., description="cash, bank_transfer, upi, cheque or credit")
    reference: Optional[str] = Field(None, max_length=100, description="Required for bank transfer, UPI and cheque")
    paid_at: Optional[datetime] = Field(None, description="Defaults to now")
    notes: Optional[str] = None

    @field_validator("reference")
    @classmethod
    def strip_reference(cls, v):
        if v is not None:
            v = v.strip()
        return v or None


class PaymentOut(BaseModel):
    id: UUID
    bill_id: UUID
    amount: Money
    mode: PaymentMode
    reference: Optional[str]
    paid_at: datetime
    notes: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class PaymentList(BaseModel):
    items: List[PaymentOut]
    total: int
    paid_amount: Money
    balance: Money


# ===== BILLS =====

class PurchaseBillBase(BaseModel):
    vendor_id: UUID = Field(..., description="Vendor the stock is bought from")
    issued_at: Optional[datetime] = Field(None, description="Bill date; defaults to now")
    notes: Optional[str] = Field(None, description="Free text notes")


class PurchaseBillCreate(PurchaseBillBase):
    bill_number: Optional[str] = Field(None, max_length=50, description="Generated as PBYYYYMMDD-NNN when empty")
    lines: List[PurchaseLineIn] = Field(..., min_length=1, description="Bill lines")
    expenses: ExpensesIn = Field(default_factory=ExpensesIn)
    initial_payment: Optional[PaymentCreate] = Field(None, description="Payment made together with the purchase")


class PurchaseBillUpdate(BaseModel):
    vendor_id: Optional[UUID] = None
    issued_at: Optional[datetime] = None
    notes: Optional[str] = None
    lines: Optional[List[PurchaseLineIn]] = Field(None, min_length=1)
    expenses: Optional[ExpensesIn] = None


class PurchaseQuoteRequest(BaseModel):
    vendor_id: UUID
    lines: List[PurchaseLineIn] = Field(..., min_length=1)
    expenses: ExpensesIn = Field(default_factory=ExpensesIn)


class PurchaseBillOut(BaseModel):
    id: UUID
    bill_number: str
    vendor_id: UUID
    vendor_name: str
    issued_at: datetime
    status: BillStatus
    notes: Optional[str]
    subtotal: Money
    total_discount: Money
    items_total: Money
    extra_charges: Money
    bill_total: Money
    paid_amount: Money
    balance: Money
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PurchaseBillDetail(PurchaseBillOut):
    shipping: Money
    packaging: Money
    misc: Money
    items: List[LineOut]
    payments: List[PaymentOut]


class PurchaseBillList(BaseModel):
    items: List[PurchaseBillOut]
    total: int
    limit: int
    offset: int


# ===== LANDING COST =====

class LandingCostLineOut(BaseModel):
    product_id: UUID
    sku: str
    name: str
    quantity: int
    unit_cost: Money
    per_unit_addend: Money
    distributed_cost: Money
    landing_cost: Money
    landing_total: Money

    @classmethod
    def from_line(cls, line: LandingCostLine) -> "LandingCostLineOut":
        return cls(
            product_id=line.reference_id,
            sku=line.sku,
            name=line.name,
            quantity=line.quantity,
            unit_cost=line.unit_cost,
            per_unit_addend=line.per_unit_addend,
            distributed_cost=line.distributed_cost,
            landing_cost=line.landing_cost,
            landing_total=line.landing_total
        )


class LandingCostOut(BaseModel):
    bill_id: UUID
    bill_number: str
    extra_charges: Money
    total_units: int
    per_unit_addend: Money
    lines: List[LandingCostLineOut]


class PurchaseQuoteOut(BaseModel):
    lines: List[LineOut]
    subtotal: Money
    total_discount: Money
    items_total: Money
    extra_charges: Money
    bill_total: Money
    total_units: int
    per_unit_addend: Money
    landing_costs: List[LandingCostLineOut] = []
