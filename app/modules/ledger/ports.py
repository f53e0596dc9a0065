"""
Collaborator contracts consumed by the ledger core

The ledger never talks to a database or a catalog directly. Callers hand it
CatalogReference snapshots and persist the aggregates it returns through a
BillRepository. Change notification goes through BillObserver.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol, Tuple
from uuid import UUID

from app.modules.ledger.money import ZERO


@dataclass(frozen=True)
class CatalogSize:
    id: UUID
    name: str


@dataclass(frozen=True)
class CatalogReference:
    """Snapshot of a product as the catalog exposes it to the ledger"""
    id: UUID
    sku: str
    name: str
    prices: Dict[str, Decimal] = field(default_factory=dict)
    cost_price: Decimal = ZERO
    mrp: Optional[Decimal] = None
    sizes: Tuple[CatalogSize, ...] = ()
    category_sizes: Tuple[CatalogSize, ...] = ()

    @property
    def offered_sizes(self) -> Tuple[CatalogSize, ...]:
        # Product sizes win; the category's configured sizes are the fallback
        return self.sizes or self.category_sizes

    def price_for(self, tier: str) -> Decimal:
        return self.prices.get(tier) or ZERO


class CatalogLookup(Protocol):
    def get_reference(self, reference_id: UUID) -> CatalogReference:
        ...


class BillRepository(Protocol):
    def load_bill(self, bill_id: UUID) -> Any:
        ...

    def save_bill(self, bill: Any) -> None:
        ...


class BillObserver(Protocol):
    def bill_saved(self, bill: Any) -> None:
        ...

    def payment_recorded(self, bill: Any, payment: Any) -> None:
        ...

    def status_changed(self, bill: Any, previous: Any) -> None:
        ...
