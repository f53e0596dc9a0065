"""
Counterparties on a bill

Orders go to a Wholesaler, Reseller or Retailer; each buys at its own price
tier of the product. Purchases come from a Vendor, which sells at cost.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Union
from uuid import UUID

from app.modules.ledger.errors import ValidationError
from app.modules.ledger.ports import CatalogReference


class CounterpartyRole(str, Enum):
    WHOLESALER = "wholesaler"
    RESELLER = "reseller"
    RETAILER = "retailer"
    VENDOR = "vendor"


class PriceTier(str, Enum):
    WHOLESALE = "wholesale_price"
    RESELLER = "reseller_price"
    RETAIL = "retail_price"
    COST = "cost_price"


@dataclass(frozen=True)
class Party:
    id: UUID
    name: str
    is_active: bool = True

    role: ClassVar[CounterpartyRole]
    price_tier: ClassVar[PriceTier]

    def require_active(self, field: str = "counterparty_id"):
        if not self.is_active:
            raise ValidationError(field, f"{self.role.value.capitalize()} '{self.name}' is inactive", code="inactive_counterparty")


@dataclass(frozen=True)
class Wholesaler(Party):
    role: ClassVar[CounterpartyRole] = CounterpartyRole.WHOLESALER
    price_tier: ClassVar[PriceTier] = PriceTier.WHOLESALE


@dataclass(frozen=True)
class Reseller(Party):
    role: ClassVar[CounterpartyRole] = CounterpartyRole.RESELLER
    price_tier: ClassVar[PriceTier] = PriceTier.RESELLER


@dataclass(frozen=True)
class Retailer(Party):
    role: ClassVar[CounterpartyRole] = CounterpartyRole.RETAILER
    price_tier: ClassVar[PriceTier] = PriceTier.RETAIL


@dataclass(frozen=True)
class Vendor(Party):
    role: ClassVar[CounterpartyRole] = CounterpartyRole.VENDOR
    price_tier: ClassVar[PriceTier] = PriceTier.COST


Counterparty = Union[Wholesaler, Reseller, Retailer]

ORDER_COUNTERPARTIES = {
    CounterpartyRole.WHOLESALER: Wholesaler,
    CounterpartyRole.RESELLER: Reseller,
    CounterpartyRole.RETAILER: Retailer,
}


def make_counterparty(role: CounterpartyRole, id: UUID, name: str, is_active: bool = True) -> Counterparty:
    try:
        party_class = ORDER_COUNTERPARTIES[CounterpartyRole(role)]
    except (KeyError, ValueError):
        raise ValidationError("counterparty_role", f"'{role}' cannot be billed on an order")
    return party_class(id=id, name=name, is_active=is_active)


def unit_price_for(reference: CatalogReference, party: Party) -> Decimal:
    if party.price_tier == PriceTier.COST:
        return reference.cost_price
    return reference.price_for(party.price_tier.value)
