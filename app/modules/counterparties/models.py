"""
Counterparty tables

Vendors sell to the business (purchase bills). Wholesalers, resellers and
retailers buy from it (order bills). Account management and registration are
handled elsewhere; billing only needs identity, display name and status.
"""

from app.database.database import Base
from sqlalchemy import Column, String, Boolean, Text, Uuid
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin


class CounterpartyMixin(TenantMixin, TimestampMixin):
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(200), nullable=False, index=True)
    contact_number = Column(String(50), nullable=True)
    email = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class Vendor(Base, CounterpartyMixin):
    __tablename__ = "vendors"

    city = Column(String(100), nullable=True)


class Wholesaler(Base, CounterpartyMixin):
    __tablename__ = "wholesalers"

    shop_name = Column(String(200), nullable=True)
    address = Column(Text, nullable=True)


class Reseller(Base, CounterpartyMixin):
    __tablename__ = "resellers"

    shop_name = Column(String(200), nullable=True)
    store_address = Column(Text, nullable=True)


class Retailer(Base, CounterpartyMixin):
    __tablename__ = "retailers"

    shop_name = Column(String(200), nullable=True)
    address = Column(Text, nullable=True)
