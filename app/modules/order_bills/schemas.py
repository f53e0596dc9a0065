"""
Pydantic schemas for order bills
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from app.common.schemas import LineIn, LineOut, Money
from app.modules.ledger.counterparties import CounterpartyRole
from app.modules.ledger.state import BillStatus


class OrderLineIn(LineIn):
    unit_price: Optional[Decimal] = Field(None, ge=0, decimal_places=2, description="Selling price per unit; defaults to the counterparty's price tier")

    def price_override(self) -> Optional[Decimal]:
        return self.unit_price


class OrderBillBase(BaseModel):
    counterparty_role: CounterpartyRole = Field(..., description="wholesaler, reseller or retailer")
    counterparty_id: UUID = Field(..., description="Buyer of the order")

    @field_validator("counterparty_role")
    @classmethod
    def validate_role(cls, v):
        if v == CounterpartyRole.VENDOR:
            raise ValueError("Vendors are billed through purchase bills")
        return v


class OrderBillCreate(OrderBillBase):
    invoice_number: Optional[str] = Field(None, max_length=50, description="Generated as INV-YYYYMMDD-NNNN when empty")
    issued_at: Optional[datetime] = Field(None, description="Invoice date; defaults to now")
    status: BillStatus = Field(BillStatus.PENDING, description="pending, or paid when settled at the counter")
    notes: Optional[str] = None
    lines: List[OrderLineIn] = Field(..., min_length=1, description="Bill lines")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v == BillStatus.CANCELLED:
            raise ValueError("A bill cannot be created cancelled")
        return v


class OrderBillUpdate(BaseModel):
    counterparty_role: Optional[CounterpartyRole] = None
    counterparty_id: Optional[UUID] = None
    issued_at: Optional[datetime] = None
    notes: Optional[str] = None
    lines: Optional[List[OrderLineIn]] = Field(None, min_length=1)

    @field_validator("counterparty_role")
    @classmethod
    def validate_role(cls, v):
        if v == CounterpartyRole.VENDOR:
            raise ValueError("Vendors are billed through purchase bills")
        return v


class OrderQuoteRequest(OrderBillBase):
    lines: List[OrderLineIn] = Field(..., min_length=1)


class OrderBillOut(BaseModel):
    id: UUID
    invoice_number: str
    counterparty_role: CounterpartyRole
    counterparty_id: UUID
    counterparty_name: str
    issued_at: datetime
    status: BillStatus
    notes: Optional[str]
    subtotal: Money
    total_discount: Money
    grand_total: Money
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderBillDetail(OrderBillOut):
    items: List[LineOut]


class OrderBillList(BaseModel):
    items: List[OrderBillOut]
    total: int
    limit: int
    offset: int


class OrderQuoteOut(BaseModel):
    lines: List[LineOut]
    subtotal: Money
    total_discount: Money
    grand_total: Money
    total_units: int
