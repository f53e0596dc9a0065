"""
SQLAlchemy models for purchase bills

- PurchaseBill: stock bought from a vendor, numbered PBYYYYMMDD-NNN
- PurchaseBillItem: one product per line, with its size breakdown
- PurchasePayment: append-only payments against the bill

Totals (items_total, bill_total, paid_amount) are stored for listing and
reporting, but always rewritten from the ledger aggregate on save.
"""

from app.database.database import Base
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Enum, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin, LineItemMixin
from app.modules.ledger.payments import PaymentMode
from app.modules.ledger.state import BillStatus


def _now():
    return datetime.now(timezone.utc)


class PurchaseBill(Base, TenantMixin, TimestampMixin):
    __tablename__ = "purchase_bills"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    bill_number = Column(String(50), nullable=False, index=True)
    vendor_id = Column(Uuid(as_uuid=True), ForeignKey("vendors.id"), nullable=False, index=True)
    issued_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    status = Column(Enum(BillStatus), nullable=False, default=BillStatus.PENDING, index=True)
    notes = Column(Text, nullable=True)

    # Shared expenses, spread over every unit on the bill
    shipping = Column(Numeric(15, 2), nullable=False, default=0)
    packaging = Column(Numeric(15, 2), nullable=False, default=0)
    misc = Column(Numeric(15, 2), nullable=False, default=0)

    # Totals
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    total_discount = Column(Numeric(15, 2), nullable=False, default=0)
    items_total = Column(Numeric(15, 2), nullable=False, default=0)
    extra_charges = Column(Numeric(15, 2), nullable=False, default=0)
    bill_total = Column(Numeric(15, 2), nullable=False, default=0)
    paid_amount = Column(Numeric(15, 2), nullable=False, default=0)
    balance = Column(Numeric(15, 2), nullable=False, default=0)

    # Relationships
    vendor = relationship("Vendor", lazy="joined")
    items = relationship(
        "PurchaseBillItem",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="PurchaseBillItem.position"
    )
    payments = relationship(
        "PurchasePayment",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="PurchasePayment.paid_at"
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "bill_number", name="uq_purchase_bill_tenant_number"),
    )

    @property
    def vendor_name(self) -> str:
        return self.vendor.name if self.vendor else ""


class PurchaseBillItem(Base, LineItemMixin, TimestampMixin):
    __tablename__ = "purchase_bill_items"

    bill_id = Column(Uuid(as_uuid=True), ForeignKey("purchase_bills.id", ondelete="CASCADE"), nullable=False, index=True)

    # Relationships
    bill = relationship("PurchaseBill", back_populates="items")


class PurchasePayment(Base, TenantMixin, TimestampMixin):
    __tablename__ = "purchase_payments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    bill_id = Column(Uuid(as_uuid=True), ForeignKey("purchase_bills.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    mode = Column(Enum(PaymentMode), nullable=False)
    reference = Column(String(100), nullable=True)  # Transaction id / UPI ref / cheque number
    paid_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    notes = Column(Text, nullable=True)

    # Relationships
    bill = relationship("PurchaseBill", back_populates="payments")
