"""
Persistence of ledger PurchaseBill aggregates

load_bill turns rows into the immutable ledger aggregate; save_bill writes
an aggregate back, rewriting lines and stored totals and inserting payments
the table has not seen yet. Payments already stored are never touched.
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from decimal import Decimal
from uuid import UUID

from app.modules.purchase_bills import models
from app.modules.ledger.bills import PurchaseBill
from app.modules.ledger.counterparties import Vendor
from app.modules.ledger.expenses import Expenses
from app.modules.ledger.money import quantize_money
from app.modules.ledger.payments import Payment


class PurchaseBillRepository:
    def __init__(self, db: Session, tenant_id: UUID):
        self.db = db
        self.tenant_id = tenant_id

    def get_row(self, bill_id: UUID, for_update: bool = False) -> models.PurchaseBill:
        query = self.db.query(models.PurchaseBill).filter(
            models.PurchaseBill.id == bill_id,
            models.PurchaseBill.tenant_id == self.tenant_id
        )
        if for_update:
            # Serializes concurrent payments against the same bill
            query = query.with_for_update(of=models.PurchaseBill)
        row = query.first()
        if not row:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Purchase bill {bill_id} not found"
            )
        return row

    def to_domain(self, row: models.PurchaseBill) -> PurchaseBill:
        return PurchaseBill(
            vendor=Vendor(id=row.vendor.id, name=row.vendor.name, is_active=row.vendor.is_active),
            lines=tuple(item.to_line() for item in row.items),
            id=row.id,
            bill_number=row.bill_number,
            issued_at=row.issued_at,
            expenses=Expenses(
                shipping=Decimal(row.shipping),
                packaging=Decimal(row.packaging),
                misc=Decimal(row.misc)
            ),
            payments=tuple(
                Payment(
                    amount=Decimal(p.amount),
                    mode=p.mode,
                    reference=p.reference,
                    timestamp=p.paid_at,
                    notes=p.notes,
                    id=p.id
                )
                for p in row.payments
            ),
            status=row.status,
            notes=row.notes
        )

    def load_bill(self, bill_id: UUID, for_update: bool = False) -> PurchaseBill:
        return self.to_domain(self.get_row(bill_id, for_update))

    def save_bill(self, bill: PurchaseBill) -> models.PurchaseBill:
        if bill.id is None:
            row = models.PurchaseBill(tenant_id=self.tenant_id, bill_number=bill.bill_number)
            self.db.add(row)
        else:
            row = self.get_row(bill.id)
            row.bill_number = bill.bill_number or row.bill_number

        row.vendor_id = bill.vendor.id
        if bill.issued_at is not None:
            row.issued_at = bill.issued_at
        row.status = bill.status
        row.notes = bill.notes

        row.shipping = bill.expenses.shipping
        row.packaging = bill.expenses.packaging
        row.misc = bill.expenses.misc

        totals = bill.totals
        row.subtotal = quantize_money(totals.subtotal)
        row.total_discount = quantize_money(totals.total_discount)
        row.items_total = quantize_money(bill.items_total)
        row.extra_charges = quantize_money(bill.extra_charges)
        row.bill_total = quantize_money(bill.bill_total)
        row.paid_amount = quantize_money(bill.paid_amount)
        row.balance = quantize_money(bill.balance)

        if tuple(item.to_line() for item in row.items) != bill.lines:
            items = []
            for position, line in enumerate(bill.lines):
                item = models.PurchaseBillItem()
                item.apply_line(line, position)
                items.append(item)
            row.items = items

        stored = {p.id for p in row.payments}
        for payment in bill.payments:
            if payment.id in stored:
                continue
            row.payments.append(models.PurchasePayment(
                id=payment.id,
                tenant_id=self.tenant_id,
                amount=payment.amount,
                mode=payment.mode,
                reference=payment.reference,
                paid_at=payment.timestamp,
                notes=payment.notes
            ))

        self.db.flush()
        return row
