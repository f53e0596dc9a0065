"""
Order bill service

Sales to wholesalers, resellers and retailers. Each line is priced at the
buyer's tier (wholesale_price / reseller_price / retail_price) unless an
explicit unit price is given. Order bills have no payment ledger: they are
created pending or paid and settle through mark-paid.
"""

from sqlalchemy.orm import Session
from dataclasses import replace
from datetime import date, datetime, time, timezone
from typing import Iterable, List, Optional
from uuid import UUID
import logging

from app.core.config import settings
from app.common.errors import ledger_errors
from app.common.events import BillNotifier
from app.common.numbering import next_document_number
from app.common.schemas import LineOut
from app.modules.catalog.service import SqlCatalogLookup
from app.modules.counterparties.service import CounterpartyService
from app.modules.ledger.aggregation import total_units
from app.modules.ledger.bills import OrderBill, validate_submission, with_lines
from app.modules.ledger.counterparties import CounterpartyRole, unit_price_for
from app.modules.ledger.errors import ValidationError
from app.modules.ledger.intake import build_lines
from app.modules.ledger.money import quantize_money
from app.modules.ledger.ports import BillObserver
from app.modules.ledger.state import BillStatus, cancel, require_open, transition
from app.modules.order_bills import models
from app.modules.order_bills.repository import OrderBillRepository
from app.modules.order_bills.schemas import (
    OrderBillCreate, OrderBillUpdate, OrderBillList, OrderLineIn, OrderQuoteRequest, OrderQuoteOut
)

logger = logging.getLogger(__name__)


class OrderBillService:
    """Service for order bills"""

    def __init__(self, db: Session, observers: Optional[Iterable[BillObserver]] = None):
        self.db = db
        self.counterparties = CounterpartyService(db)
        self.notifier = BillNotifier(observers)

    def _with_input_lines(self, draft: OrderBill, lines: List[OrderLineIn], tenant_id: UUID) -> OrderBill:
        lookup = SqlCatalogLookup(self.db, tenant_id)
        party = draft.counterparty
        built = build_lines(
            lookup,
            lambda reference: unit_price_for(reference, party),
            [line.to_line_input() for line in lines]
        )
        return with_lines(draft, built)

    def _next_number(self, tenant_id: UUID, issued_at: datetime) -> str:
        return next_document_number(
            self.db,
            models.OrderBill,
            models.OrderBill.invoice_number,
            tenant_id,
            f"{settings.ORDER_INVOICE_PREFIX}-",
            4,
            issued_at.date()
        )

    def quote(self, data: OrderQuoteRequest, tenant_id: UUID) -> OrderQuoteOut:
        """Price a draft order without saving it"""
        with ledger_errors(self.db, "pricing order bill"):
            party = self.counterparties.get_counterparty(data.counterparty_role, data.counterparty_id, tenant_id)
            bill = self._with_input_lines(OrderBill(counterparty=party), data.lines, tenant_id)
            totals = bill.totals
            return OrderQuoteOut(
                lines=[LineOut.from_line(line) for line in bill.lines if line.is_complete],
                subtotal=totals.subtotal,
                total_discount=totals.total_discount,
                grand_total=totals.grand_total,
                total_units=total_units(bill.lines)
            )

    def create_bill(self, data: OrderBillCreate, tenant_id: UUID) -> models.OrderBill:
        """Create an order bill; every bill starts pending and may be settled at once"""
        with ledger_errors(self.db, "creating order bill"):
            repo = OrderBillRepository(self.db, tenant_id)
            party = self.counterparties.get_counterparty(data.counterparty_role, data.counterparty_id, tenant_id)
            issued_at = data.issued_at or datetime.now(timezone.utc)

            draft = OrderBill(counterparty=party, issued_at=issued_at, notes=data.notes)
            bill = validate_submission(self._with_input_lines(draft, data.lines, tenant_id))
            bill = replace(bill, invoice_number=data.invoice_number or self._next_number(tenant_id, issued_at))
            if data.status != bill.status:
                bill = replace(bill, status=transition(bill.status, data.status))

            row = repo.save_bill(bill)
            self.db.commit()
            self.db.refresh(row)
            logger.info(f"Created order bill {row.invoice_number} for {party.role.value} {party.name}: {row.grand_total}")

        saved = repo.to_domain(row)
        self.notifier.bill_saved(saved)
        self.notifier.status_changed(saved, BillStatus.PENDING)
        return row

    def get_bills(
        self,
        tenant_id: UUID,
        limit: int = settings.DEFAULT_PAGE_SIZE,
        offset: int = 0,
        status: Optional[BillStatus] = None,
        counterparty_role: Optional[CounterpartyRole] = None,
        counterparty_id: Optional[UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> OrderBillList:
        """List order bills, newest first"""
        query = self.db.query(models.OrderBill).filter(models.OrderBill.tenant_id == tenant_id)

        if status:
            query = query.filter(models.OrderBill.status == status)
        if counterparty_role:
            query = query.filter(models.OrderBill.counterparty_role == counterparty_role)
        if counterparty_id:
            query = query.filter(models.OrderBill.counterparty_id == counterparty_id)
        if start_date:
            query = query.filter(models.OrderBill.issued_at >= datetime.combine(start_date, time.min))
        if end_date:
            query = query.filter(models.OrderBill.issued_at <= datetime.combine(end_date, time.max))

        total = query.count()
        bills = query.order_by(
            models.OrderBill.issued_at.desc(),
            models.OrderBill.created_at.desc()
        ).offset(offset).limit(limit).all()

        return OrderBillList(items=bills, total=total, limit=limit, offset=offset)

    def get_bill_by_id(self, bill_id: UUID, tenant_id: UUID) -> models.OrderBill:
        return OrderBillRepository(self.db, tenant_id).get_row(bill_id)

    def update_bill(self, bill_id: UUID, data: OrderBillUpdate, tenant_id: UUID) -> models.OrderBill:
        """Replace counterparty, date, notes and/or lines of a bill that is not cancelled"""
        with ledger_errors(self.db, "updating order bill"):
            repo = OrderBillRepository(self.db, tenant_id)
            current = repo.load_bill(bill_id, for_update=True)
            require_open(current.status, "edit")

            party = current.counterparty
            role = data.counterparty_role or party.role
            counterparty_id = data.counterparty_id or party.id
            if role != party.role or counterparty_id != party.id:
                party = self.counterparties.get_counterparty(role, counterparty_id, tenant_id)

            bill = replace(
                current,
                counterparty=party,
                issued_at=data.issued_at or current.issued_at,
                notes=data.notes if data.notes is not None else current.notes
            )
            if data.lines is not None:
                bill = self._with_input_lines(bill, data.lines, tenant_id)

            bill = validate_submission(bill)
            if current.status == BillStatus.PAID and quantize_money(bill.grand_total) != quantize_money(current.grand_total):
                raise ValidationError(
                    "lines",
                    "Order bill is already paid; its total cannot change",
                    code="paid_bill_total_locked"
                )

            row = repo.save_bill(bill)
            self.db.commit()
            self.db.refresh(row)
            logger.info(f"Updated order bill {row.invoice_number}: total {row.grand_total}")

        self.notifier.bill_saved(repo.to_domain(row))
        return row

    def _change_status(self, bill_id: UUID, tenant_id: UUID, action: str, apply, reason: Optional[str] = None) -> models.OrderBill:
        with ledger_errors(self.db, action):
            repo = OrderBillRepository(self.db, tenant_id)
            current = repo.load_bill(bill_id, for_update=True)

            notes = current.notes
            if reason:
                notes = f"{(notes or '').strip()}\n[CANCELLED] {reason}".strip()
            row = repo.save_bill(replace(current, status=apply(current.status), notes=notes))
            self.db.commit()
            self.db.refresh(row)
            logger.info(f"Order bill {row.invoice_number}: {current.status.value} -> {row.status.value}")

        self.notifier.status_changed(repo.to_domain(row), current.status)
        return row

    def mark_paid(self, bill_id: UUID, tenant_id: UUID) -> models.OrderBill:
        """Record that the order was settled outside the ledger"""
        return self._change_status(
            bill_id, tenant_id, "marking order bill paid",
            lambda current: transition(current, BillStatus.PAID)
        )

    def cancel_bill(self, bill_id: UUID, reason: Optional[str], tenant_id: UUID) -> models.OrderBill:
        return self._change_status(bill_id, tenant_id, "cancelling order bill", cancel, reason)
