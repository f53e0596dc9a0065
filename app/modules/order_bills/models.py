"""
SQLAlchemy models for order bills

An order bill is a sale to a wholesaler, reseller or retailer. The
counterparty lives in one of three tables, so the bill stores the role next
to the id plus a name snapshot for listings.
"""

from app.database.database import Base
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Enum, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin, LineItemMixin
from app.modules.ledger.counterparties import CounterpartyRole
from app.modules.ledger.state import BillStatus


class OrderBill(Base, TenantMixin, TimestampMixin):
    __tablename__ = "order_bills"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    invoice_number = Column(String(50), nullable=False, index=True)
    counterparty_role = Column(Enum(CounterpartyRole), nullable=False)
    counterparty_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    counterparty_name = Column(String(200), nullable=False)
    issued_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    status = Column(Enum(BillStatus), nullable=False, default=BillStatus.PENDING, index=True)
    notes = Column(Text, nullable=True)

    # Totals
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    total_discount = Column(Numeric(15, 2), nullable=False, default=0)
    grand_total = Column(Numeric(15, 2), nullable=False, default=0)

    # Relationships
    items = relationship(
        "OrderBillItem",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="OrderBillItem.position"
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_number", name="uq_order_bill_tenant_number"),
    )


class OrderBillItem(Base, LineItemMixin, TimestampMixin):
    __tablename__ = "order_bill_items"

    bill_id = Column(Uuid(as_uuid=True), ForeignKey("order_bills.id", ondelete="CASCADE"), nullable=False, index=True)

    # Relationships
    bill = relationship("OrderBill", back_populates="items")
