"""
Catalog tables read by the billing modules

Product, category and size management belong to the catalog screens; bills
only read a product snapshot (price tiers, sizes) when a line is seeded and
push stock / cost updates back after a purchase.
"""

from app.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Numeric, Enum, Table, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin
import enum


class ProductStatus(enum.Enum):
    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"


category_sizes = Table(
    "category_sizes",
    Base.metadata,
    Column("category_id", Uuid(as_uuid=True), ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
    Column("size_id", Uuid(as_uuid=True), ForeignKey("sizes.id", ondelete="CASCADE"), primary_key=True),
)

product_sizes = Table(
    "product_sizes",
    Base.metadata,
    Column("product_id", Uuid(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("size_id", Uuid(as_uuid=True), ForeignKey("sizes.id", ondelete="CASCADE"), primary_key=True),
)


class Size(Base, TenantMixin, TimestampMixin):
    __tablename__ = "sizes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(50), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_size_tenant_name"),
    )


class Category(Base, TenantMixin, TimestampMixin):
    __tablename__ = "categories"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True)

    # Relationships
    sizes = relationship("Size", secondary=category_sizes, order_by=Size.sort_order)
    products = relationship("Product", back_populates="category")

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_category_tenant_name"),
    )


class Product(Base, TenantMixin, TimestampMixin):
    __tablename__ = "products"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    sku = Column(String(50), nullable=False)
    name = Column(String(200), nullable=True)
    status = Column(Enum(ProductStatus), nullable=False, default=ProductStatus.OUT_OF_STOCK)
    stock_quantity = Column(Integer, nullable=False, default=0)

    # Price tiers
    cost_price = Column(Numeric(15, 2), nullable=False, default=0)  # Weighted average landing cost
    wholesale_price = Column(Numeric(15, 2), nullable=False, default=0)
    reseller_price = Column(Numeric(15, 2), nullable=False, default=0)
    retail_price = Column(Numeric(15, 2), nullable=False, default=0)
    mrp = Column(Numeric(15, 2), nullable=True)

    category_id = Column(Uuid(as_uuid=True), ForeignKey("categories.id"), nullable=True)

    # Relationships
    category = relationship("Category", back_populates="products", lazy="joined")
    sizes = relationship("Size", secondary=product_sizes, order_by=Size.sort_order)

    __table_args__ = (
        UniqueConstraint("tenant_id", "sku", name="uq_product_tenant_sku"),
    )

    @property
    def display_name(self) -> str:
        return self.name or self.sku
