"""
Purchase bill service

Wraps the ledger core with persistence, catalog lookups and inventory:
- create / update: lines built from catalog references, validated as a whole
- payments: appended under a row lock, status derived from the balance
- expenses: editable; landing cost recomputed on every read
- inventory: stock and weighted-average cost follow the saved lines
"""

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session
from dataclasses import replace
from datetime import date, datetime, time, timezone
from typing import Dict, Iterable, List, Optional
from uuid import UUID
import logging

from app.core.config import settings
from app.common.errors import ledger_errors
from app.common.events import BillNotifier
from app.common.numbering import next_document_number
from app.common.schemas import LineOut
from app.modules.catalog.service import CatalogService, SqlCatalogLookup
from app.modules.counterparties.service import CounterpartyService
from app.modules.ledger.bills import PurchaseBill, validate_submission, with_lines
from app.modules.ledger.counterparties import Vendor, unit_price_for
from app.modules.ledger.errors import ValidationError
from app.modules.ledger.expenses import Expenses
from app.modules.ledger.intake import build_lines
from app.modules.ledger.money import quantize_money
from app.modules.ledger.payments import add_payment
from app.modules.ledger.ports import BillObserver
from app.modules.ledger.state import BillStatus, after_payment, cancel, require_open
from app.modules.purchase_bills import models
from app.modules.purchase_bills.repository import PurchaseBillRepository
from app.modules.purchase_bills.schemas import (
    PurchaseBillCreate, PurchaseBillUpdate, PurchaseBillList, PurchaseQuoteRequest, PurchaseQuoteOut,
    PurchaseLineIn, ExpensesIn, PaymentCreate, PaymentList, LandingCostOut, LandingCostLineOut
)

logger = logging.getLogger(__name__)


def _expenses(data: ExpensesIn) -> Expenses:
    return Expenses(shipping=data.shipping, packaging=data.packaging, misc=data.misc)


def _quantities(bill: PurchaseBill) -> Dict[UUID, int]:
    return {line.reference_id: line.quantity for line in bill.lines if line.is_complete}


class PurchaseBillService:
    """Service for vendor purchase bills"""

    def __init__(self, db: Session, observers: Optional[Iterable[BillObserver]] = None):
        self.db = db
        self.catalog = CatalogService(db)
        self.counterparties = CounterpartyService(db)
        self.notifier = BillNotifier(observers)

    # ===== BUILDING =====

    def _with_input_lines(self, draft: PurchaseBill, lines: List[PurchaseLineIn], tenant_id: UUID) -> PurchaseBill:
        lookup = SqlCatalogLookup(self.db, tenant_id)
        vendor = draft.vendor
        built = build_lines(
            lookup,
            lambda reference: unit_price_for(reference, vendor),
            [line.to_line_input() for line in lines]
        )
        return with_lines(draft, built)

    def _next_number(self, tenant_id: UUID, issued_at: datetime) -> str:
        return next_document_number(
            self.db,
            models.PurchaseBill,
            models.PurchaseBill.bill_number,
            tenant_id,
            settings.PURCHASE_BILL_PREFIX,
            3,
            issued_at.date()
        )

    # ===== INVENTORY =====

    def _sync_inventory(self, tenant_id: UUID, before: Dict[UUID, int], after: Dict[UUID, int]):
        """Move stock by the difference between two line sets and re-average cost"""
        products = set(before) | set(after)
        self.catalog.adjust_stock(
            {pid: after.get(pid, 0) - before.get(pid, 0) for pid in products},
            tenant_id
        )
        for product_id in products:
            self._recalculate_cost(product_id, tenant_id)

    def _recalculate_cost(self, product_id: UUID, tenant_id: UUID):
        repo = PurchaseBillRepository(self.db, tenant_id)
        bill_ids = select(models.PurchaseBillItem.bill_id).where(models.PurchaseBillItem.product_id == product_id)
        rows = self.db.query(models.PurchaseBill).filter(
            models.PurchaseBill.tenant_id == tenant_id,
            models.PurchaseBill.status != BillStatus.CANCELLED,
            models.PurchaseBill.id.in_(bill_ids)
        ).all()

        purchases = []
        for row in rows:
            for line in repo.to_domain(row).landing_costs():
                if line.reference_id == product_id:
                    purchases.append((line.quantity, line.landing_cost))

        if not purchases:
            return
        self.catalog.set_average_cost(product_id, tenant_id, purchases)

    # ===== BILLS =====

    def quote(self, data: PurchaseQuoteRequest, tenant_id: UUID) -> PurchaseQuoteOut:
        """Price a draft bill without saving it"""
        with ledger_errors(self.db, "pricing purchase bill"):
            vendor = self.counterparties.get_vendor(data.vendor_id, tenant_id)
            bill = self._with_input_lines(
                PurchaseBill(vendor=vendor, expenses=_expenses(data.expenses)),
                data.lines,
                tenant_id
            )
            totals = bill.totals
            return PurchaseQuoteOut(
                lines=[LineOut.from_line(line) for line in bill.lines if line.is_complete],
                subtotal=totals.subtotal,
                total_discount=totals.total_discount,
                items_total=bill.items_total,
                extra_charges=bill.extra_charges,
                bill_total=bill.bill_total,
                total_units=bill.total_units,
                per_unit_addend=bill.per_unit_addend,
                landing_costs=[LandingCostLineOut.from_line(line) for line in bill.landing_costs()]
            )

    def create_bill(self, data: PurchaseBillCreate, tenant_id: UUID) -> models.PurchaseBill:
        """Create a purchase bill, optionally with its first payment"""
        with ledger_errors(self.db, "creating purchase bill"):
            repo = PurchaseBillRepository(self.db, tenant_id)
            vendor = self.counterparties.get_vendor(data.vendor_id, tenant_id)
            issued_at = data.issued_at or datetime.now(timezone.utc)

            draft = PurchaseBill(
                vendor=vendor,
                issued_at=issued_at,
                expenses=_expenses(data.expenses),
                notes=data.notes
            )
            bill = validate_submission(self._with_input_lines(draft, data.lines, tenant_id))
            bill = replace(bill, bill_number=data.bill_number or self._next_number(tenant_id, issued_at))

            if data.initial_payment:
                payment = data.initial_payment
                bill = add_payment(
                    bill,
                    payment.amount,
                    payment.mode,
                    payment.reference,
                    timestamp=payment.paid_at,
                    notes=payment.notes
                )

            row = repo.save_bill(bill)
            self._sync_inventory(tenant_id, {}, _quantities(bill))

            self.db.commit()
            self.db.refresh(row)
            logger.info(f"Created purchase bill {row.bill_number} for vendor {vendor.name}: {row.bill_total}")

        saved = repo.to_domain(row)
        self.notifier.bill_saved(saved)
        for payment in saved.payments:
            self.notifier.payment_recorded(saved, payment)
        self.notifier.status_changed(saved, BillStatus.PENDING)
        return row

    def get_bills(
        self,
        tenant_id: UUID,
        limit: int = settings.DEFAULT_PAGE_SIZE,
        offset: int = 0,
        status: Optional[BillStatus] = None,
        vendor_id: Optional[UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> PurchaseBillList:
        """List purchase bills, newest first"""
        query = self.db.query(models.PurchaseBill).filter(models.PurchaseBill.tenant_id == tenant_id)

        if status:
            query = query.filter(models.PurchaseBill.status == status)
        if vendor_id:
            query = query.filter(models.PurchaseBill.vendor_id == vendor_id)
        if start_date:
            query = query.filter(models.PurchaseBill.issued_at >= datetime.combine(start_date, time.min))
        if end_date:
            query = query.filter(models.PurchaseBill.issued_at <= datetime.combine(end_date, time.max))

        total = query.count()
        bills = query.order_by(
            models.PurchaseBill.issued_at.desc(),
            models.PurchaseBill.created_at.desc()
        ).offset(offset).limit(limit).all()

        return PurchaseBillList(items=bills, total=total, limit=limit, offset=offset)

    def get_bill_by_id(self, bill_id: UUID, tenant_id: UUID) -> models.PurchaseBill:
        return PurchaseBillRepository(self.db, tenant_id).get_row(bill_id)

    def _save_edit(self, repo: PurchaseBillRepository, current: PurchaseBill, bill: PurchaseBill) -> models.PurchaseBill:
        bill = validate_submission(bill)
        if bill.payable_total < bill.paid_amount:
            raise ValidationError(
                "lines",
                f"Bill total {quantize_money(bill.payable_total)} cannot be less than the amount already paid ({quantize_money(bill.paid_amount)})",
                code="total_below_paid"
            )
        if current.status == BillStatus.PAID and bill.balance > 0:
            raise ValidationError(
                "lines",
                "Bill is already paid; its total cannot increase",
                code="paid_bill_total_locked"
            )
        if bill.payments:
            # Shrinking the total down to what was paid settles the bill
            bill = replace(bill, status=after_payment(bill.status, bill.balance))

        row = repo.save_bill(bill)
        self._sync_inventory(repo.tenant_id, _quantities(current), _quantities(bill))
        self.db.commit()
        self.db.refresh(row)
        return row

    def _notify_edit(self, repo: PurchaseBillRepository, row: models.PurchaseBill, previous: BillStatus):
        saved = repo.to_domain(row)
        self.notifier.bill_saved(saved)
        self.notifier.status_changed(saved, previous)

    def update_bill(self, bill_id: UUID, data: PurchaseBillUpdate, tenant_id: UUID) -> models.PurchaseBill:
        """Replace vendor, date, notes, lines and/or expenses of an open bill"""
        with ledger_errors(self.db, "updating purchase bill"):
            repo = PurchaseBillRepository(self.db, tenant_id)
            current = repo.load_bill(bill_id, for_update=True)
            require_open(current.status, "edit")

            vendor: Vendor = current.vendor
            if data.vendor_id and data.vendor_id != vendor.id:
                vendor = self.counterparties.get_vendor(data.vendor_id, tenant_id)

            bill = replace(
                current,
                vendor=vendor,
                issued_at=data.issued_at or current.issued_at,
                notes=data.notes if data.notes is not None else current.notes,
                expenses=_expenses(data.expenses) if data.expenses is not None else current.expenses
            )
            if data.lines is not None:
                bill = self._with_input_lines(bill, data.lines, tenant_id)

            row = self._save_edit(repo, current, bill)
            logger.info(f"Updated purchase bill {row.bill_number}: total {row.bill_total}")

        self._notify_edit(repo, row, current.status)
        return row

    def update_expenses(self, bill_id: UUID, data: ExpensesIn, tenant_id: UUID) -> models.PurchaseBill:
        """Edit shipping / packaging / misc; landing costs and product cost follow"""
        with ledger_errors(self.db, "updating purchase bill expenses"):
            repo = PurchaseBillRepository(self.db, tenant_id)
            current = repo.load_bill(bill_id, for_update=True)
            require_open(current.status, "edit expenses of")

            row = self._save_edit(repo, current, replace(current, expenses=_expenses(data)))
            logger.info(f"Updated expenses on purchase bill {row.bill_number}: {row.extra_charges}")

        self._notify_edit(repo, row, current.status)
        return row

    def get_landing_cost(self, bill_id: UUID, tenant_id: UUID) -> LandingCostOut:
        bill = PurchaseBillRepository(self.db, tenant_id).load_bill(bill_id)
        return LandingCostOut(
            bill_id=bill.id,
            bill_number=bill.bill_number,
            extra_charges=bill.extra_charges,
            total_units=bill.total_units,
            per_unit_addend=bill.per_unit_addend,
            lines=[LandingCostLineOut.from_line(line) for line in bill.landing_costs()]
        )

    def cancel_bill(self, bill_id: UUID, reason: Optional[str], tenant_id: UUID) -> models.PurchaseBill:
        """Cancel a bill; its units leave stock and its lines leave the cost average"""
        with ledger_errors(self.db, "cancelling purchase bill"):
            repo = PurchaseBillRepository(self.db, tenant_id)
            current = repo.load_bill(bill_id, for_update=True)

            notes = current.notes
            if reason:
                notes = f"{(notes or '').strip()}\n[CANCELLED] {reason}".strip()
            bill = replace(current, status=cancel(current.status), notes=notes)

            row = repo.save_bill(bill)
            self._sync_inventory(tenant_id, _quantities(current), {})
            self.db.commit()
            self.db.refresh(row)
            logger.info(f"Cancelled purchase bill {row.bill_number}")

        self.notifier.status_changed(repo.to_domain(row), current.status)
        return row

    # ===== PAYMENTS =====

    def create_payment(self, bill_id: UUID, data: PaymentCreate, tenant_id: UUID) -> models.PurchasePayment:
        """Append one payment to the bill"""
        with ledger_errors(self.db, "recording payment"):
            repo = PurchaseBillRepository(self.db, tenant_id)
            current = repo.load_bill(bill_id, for_update=True)

            bill = add_payment(
                current,
                data.amount,
                data.mode,
                data.reference,
                timestamp=data.paid_at,
                notes=data.notes
            )
            payment = bill.payments[-1]
            row = repo.save_bill(bill)
            self.db.commit()
            self.db.refresh(row)
            logger.info(f"Recorded {payment.mode.value} payment of {payment.amount} on purchase bill {row.bill_number}; balance {row.balance}")

        saved = repo.to_domain(row)
        self.notifier.payment_recorded(saved, payment)
        self.notifier.status_changed(saved, current.status)

        stored = self.db.get(models.PurchasePayment, payment.id)
        if not stored:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Payment {payment.id} was not stored"
            )
        return stored

    def list_payments(self, bill_id: UUID, tenant_id: UUID) -> PaymentList:
        row = PurchaseBillRepository(self.db, tenant_id).get_row(bill_id)
        return PaymentList(
            items=row.payments,
            total=len(row.payments),
            paid_amount=row.paid_amount,
            balance=row.balance
        )
