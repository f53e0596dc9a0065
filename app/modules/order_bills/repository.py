"""
Persistence of ledger OrderBill aggregates
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from uuid import UUID

from app.modules.order_bills import models
from app.modules.counterparties.service import CounterpartyService
from app.modules.ledger.bills import OrderBill
from app.modules.ledger.money import quantize_money


class OrderBillRepository:
    def __init__(self, db: Session, tenant_id: UUID):
        self.db = db
        self.tenant_id = tenant_id
        self.counterparties = CounterpartyService(db)

    def get_row(self, bill_id: UUID, for_update: bool = False) -> models.OrderBill:
        query = self.db.query(models.OrderBill).filter(
            models.OrderBill.id == bill_id,
            models.OrderBill.tenant_id == self.tenant_id
        )
        if for_update:
            query = query.with_for_update()
        row = query.first()
        if not row:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Order bill {bill_id} not found"
            )
        return row

    def to_domain(self, row: models.OrderBill) -> OrderBill:
        return OrderBill(
            counterparty=self.counterparties.get_counterparty(row.counterparty_role, row.counterparty_id, self.tenant_id),
            lines=tuple(item.to_line() for item in row.items),
            id=row.id,
            invoice_number=row.invoice_number,
            issued_at=row.issued_at,
            status=row.status,
            notes=row.notes
        )

    def load_bill(self, bill_id: UUID, for_update: bool = False) -> OrderBill:
        return self.to_domain(self.get_row(bill_id, for_update))

    def save_bill(self, bill: OrderBill) -> models.OrderBill:
        if bill.id is None:
            row = models.OrderBill(tenant_id=self.tenant_id, invoice_number=bill.invoice_number)
            self.db.add(row)
        else:
            row = self.get_row(bill.id)
            row.invoice_number = bill.invoice_number or row.invoice_number

        party = bill.counterparty
        row.counterparty_role = party.role
        row.counterparty_id = party.id
        row.counterparty_name = party.name
        if bill.issued_at is not None:
            row.issued_at = bill.issued_at
        row.status = bill.status
        row.notes = bill.notes

        totals = bill.totals
        row.subtotal = quantize_money(totals.subtotal)
        row.total_discount = quantize_money(totals.total_discount)
        row.grand_total = quantize_money(totals.grand_total)

        if tuple(item.to_line() for item in row.items) != bill.lines:
            items = []
            for position, line in enumerate(bill.lines):
                item = models.OrderBillItem()
                item.apply_line(line, position)
                items.append(item)
            row.items = items

        self.db.flush()
        return row
