"""
Catalog access for the billing modules

- CatalogService.get_reference: product snapshot for seeding a bill line
- SqlCatalogLookup: CatalogLookup bound to one tenant and session
- Stock and weighted-average cost updates after purchases
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, Tuple
from uuid import UUID
import logging

from app.modules.catalog.models import Product, ProductStatus
from app.modules.ledger.ports import CatalogReference, CatalogSize

logger = logging.getLogger(__name__)


def to_reference(product: Product) -> CatalogReference:
    category_sizes = product.category.sizes if product.category else []
    return CatalogReference(
        id=product.id,
        sku=product.sku,
        name=product.display_name,
        prices={
            "wholesale_price": Decimal(product.wholesale_price or 0),
            "reseller_price": Decimal(product.reseller_price or 0),
            "retail_price": Decimal(product.retail_price or 0),
        },
        cost_price=Decimal(product.cost_price or 0),
        mrp=product.mrp,
        sizes=tuple(CatalogSize(id=s.id, name=s.name) for s in product.sizes if s.is_active),
        category_sizes=tuple(CatalogSize(id=s.id, name=s.name) for s in category_sizes if s.is_active),
    )


class CatalogService:
    """Read and update products on behalf of the bill services"""

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: UUID, tenant_id: UUID) -> Product:
        product = self.db.query(Product).filter(
            Product.id == product_id,
            Product.tenant_id == tenant_id
        ).first()

        if not product:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Product {product_id} not found"
            )
        return product

    def get_reference(self, product_id: UUID, tenant_id: UUID) -> CatalogReference:
        return to_reference(self.get_product(product_id, tenant_id))

    def adjust_stock(self, quantities: Dict[UUID, int], tenant_id: UUID):
        """Add (or with negative numbers, remove) units from product stock"""
        for product_id, quantity in quantities.items():
            if not quantity:
                continue
            product = self.get_product(product_id, tenant_id)
            old_quantity = product.stock_quantity or 0
            product.stock_quantity = old_quantity + quantity
            product.status = ProductStatus.IN_STOCK if product.stock_quantity > 0 else ProductStatus.OUT_OF_STOCK
            logger.info(f"Updated stock for product {product.sku}: {old_quantity} -> {product.stock_quantity}")

    def set_average_cost(self, product_id: UUID, tenant_id: UUID, purchases: Iterable[Tuple[int, Decimal]]):
        """Cost price = sum(quantity * landing cost) / sum(quantity) over all purchases"""
        total_cost = Decimal("0")
        total_quantity = 0
        for quantity, landing_cost in purchases:
            total_cost += landing_cost * quantity
            total_quantity += quantity

        product = self.get_product(product_id, tenant_id)
        average = total_cost / total_quantity if total_quantity > 0 else Decimal("0")
        product.cost_price = average.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        logger.info(f"Recalculated cost price for product {product.sku}: {product.cost_price}")


class SqlCatalogLookup:
    """CatalogLookup implementation over the products table"""

    def __init__(self, db: Session, tenant_id: UUID):
        self.service = CatalogService(db)
        self.tenant_id = tenant_id
        self._cache: Dict[UUID, CatalogReference] = {}

    def get_reference(self, reference_id: UUID) -> CatalogReference:
        if reference_id not in self._cache:
            self._cache[reference_id] = self.service.get_reference(reference_id, self.tenant_id)
        return self._cache[reference_id]
