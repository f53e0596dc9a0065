from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from uuid import UUID

from app.modules.counterparties import models
from app.modules.ledger.counterparties import (
    Counterparty, CounterpartyRole, Vendor, make_counterparty
)

ROLE_MODELS = {
    CounterpartyRole.WHOLESALER: models.Wholesaler,
    CounterpartyRole.RESELLER: models.Reseller,
    CounterpartyRole.RETAILER: models.Retailer,
    CounterpartyRole.VENDOR: models.Vendor,
}


class CounterpartyService:
    """Resolve counterparty rows into ledger counterparties"""

    def __init__(self, db: Session):
        self.db = db

    def _get_row(self, role: CounterpartyRole, counterparty_id: UUID, tenant_id: UUID):
        model = ROLE_MODELS[CounterpartyRole(role)]
        row = self.db.query(model).filter(
            model.id == counterparty_id,
            model.tenant_id == tenant_id
        ).first()
        if not row:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"{CounterpartyRole(role).value.capitalize()} {counterparty_id} not found"
            )
        return row

    def get_counterparty(self, role: CounterpartyRole, counterparty_id: UUID, tenant_id: UUID) -> Counterparty:
        row = self._get_row(role, counterparty_id, tenant_id)
        return make_counterparty(role, row.id, row.name, row.is_active)

    def get_vendor(self, vendor_id: UUID, tenant_id: UUID) -> Vendor:
        row = self._get_row(CounterpartyRole.VENDOR, vendor_id, tenant_id)
        return Vendor(id=row.id, name=row.name, is_active=row.is_active)
