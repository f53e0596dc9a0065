"""
Common mixins for multi-tenant models
"""
from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, JSON, Numeric, String, Uuid
from sqlalchemy.orm import declared_attr
from sqlalchemy.sql import func
from decimal import Decimal
from uuid import UUID, uuid4

from app.modules.ledger.lines import LineItem
from app.modules.ledger.money import quantize_money
from app.modules.ledger.pricing import DiscountSpec, DiscountType
from app.modules.ledger.sizes import SizeAllocation


class TenantMixin:
    """Mixin for multi-tenant models; every query is expected to filter on tenant_id"""

    tenant_id = Column(Uuid(as_uuid=True), nullable=False, index=True)


class TimestampMixin:
    """Mixin for models that need timestamp tracking"""

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class LineItemMixin:
    """Columns shared by order and purchase bill lines.

    A line keeps a snapshot of the product (sku, name) and its size breakdown
    as JSON: [{"size_id", "size_name", "quantity"}, ...]
    """

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    position = Column(Integer, nullable=False, default=0)
    sku = Column(String(50), nullable=False)
    name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False, default=0)
    mrp = Column(Numeric(15, 2), nullable=True)
    discount_type = Column(Enum(DiscountType), nullable=False, default=DiscountType.NONE)
    discount_value = Column(Numeric(15, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total = Column(Numeric(15, 2), nullable=False, default=0)
    sizes = Column(JSON, nullable=False, default=list)

    @declared_attr
    def product_id(cls):
        return Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=False, index=True)

    def to_line(self) -> LineItem:
        return LineItem(
            reference_id=self.product_id,
            unit_price=Decimal(self.unit_price),
            quantity=self.quantity,
            size_allocations=tuple(
                SizeAllocation(size_id=UUID(str(s["size_id"])), size_name=s["size_name"], quantity=s["quantity"])
                for s in (self.sizes or [])
            ),
            discount=DiscountSpec(self.discount_type, Decimal(self.discount_value)),
            discount_amount=Decimal(self.discount_amount),
            total=Decimal(self.total),
            sku=self.sku,
            name=self.name,
            mrp=self.mrp
        )

    def apply_line(self, line: LineItem, position: int):
        self.position = position
        self.product_id = line.reference_id
        self.sku = line.sku
        self.name = line.name
        self.quantity = line.quantity
        self.unit_price = quantize_money(line.unit_price)
        self.mrp = line.mrp
        self.discount_type = line.discount.type
        self.discount_value = line.discount.value
        self.discount_amount = quantize_money(line.discount_amount)
        self.total = quantize_money(line.total)
        self.sizes = [
            {"size_id": str(a.size_id), "size_name": a.size_name, "quantity": a.quantity}
            for a in line.size_allocations
        ]
