"""
FastAPI router for purchase bills

- Quote, create, list, detail and edit bills
- Expenses and the landing cost invoice
- Payments against a bill
- Cancellation

Every endpoint is scoped to the tenant in the X-Tenant-ID header.
"""

from fastapi import APIRouter, Body, HTTPException, Query, status
from typing import Optional
from uuid import UUID
from datetime import date

from app.core.config import settings
from app.dependencies.companyDependencies import TenantId
from app.dependencies.dbDependecies import db_dependency
from app.modules.ledger.state import BillStatus
from app.modules.purchase_bills.service import PurchaseBillService
from app.modules.purchase_bills.schemas import (
    PurchaseBillCreate, PurchaseBillUpdate, PurchaseBillOut, PurchaseBillDetail, PurchaseBillList,
    PurchaseQuoteRequest, PurchaseQuoteOut, ExpensesIn, LandingCostOut,
    PaymentCreate, PaymentOut, PaymentList
)

purchase_bills_router = APIRouter(prefix="/purchase-bills", tags=["Purchase Bills"])


@purchase_bills_router.post("/quote", response_model=PurchaseQuoteOut)
def quote_purchase_bill(data: PurchaseQuoteRequest, tenant_id: TenantId, db: db_dependency):
    """
    Price a draft purchase bill

    Returns line totals, bill totals and the per-unit expense addend without
    saving anything.
    """
    return PurchaseBillService(db).quote(data, tenant_id)


@purchase_bills_router.post("/", response_model=PurchaseBillDetail, status_code=status.HTTP_201_CREATED)
def create_purchase_bill(data: PurchaseBillCreate, tenant_id: TenantId, db: db_dependency):
    """
    Create a purchase bill

    Stock of every product on the bill goes up by the line quantity and the
    product cost price is re-averaged over its purchases.
    """
    return PurchaseBillService(db).create_bill(data, tenant_id)


@purchase_bills_router.get("/", response_model=PurchaseBillList)
def list_purchase_bills(
    tenant_id: TenantId,
    db: db_dependency,
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    status: Optional[BillStatus] = Query(None, description="Filter by status"),
    vendor_id: Optional[UUID] = Query(None, description="Filter by vendor"),
    start_date: Optional[date] = Query(None, description="Issued on or after"),
    end_date: Optional[date] = Query(None, description="Issued on or before")
):
    return PurchaseBillService(db).get_bills(
        tenant_id=tenant_id,
        limit=limit,
        offset=offset,
        status=status,
        vendor_id=vendor_id,
        start_date=start_date,
        end_date=end_date
    )


@purchase_bills_router.get("/{bill_id}", response_model=PurchaseBillDetail)
def get_purchase_bill(bill_id: UUID, tenant_id: TenantId, db: db_dependency):
    return PurchaseBillService(db).get_bill_by_id(bill_id, tenant_id)


@purchase_bills_router.put("/{bill_id}", response_model=PurchaseBillDetail)
def update_purchase_bill(bill_id: UUID, data: PurchaseBillUpdate, tenant_id: TenantId, db: db_dependency):
    """
    Edit a purchase bill

    Cancelled bills cannot be edited, and the new total may not drop below
    what has already been paid.
    """
    return PurchaseBillService(db).update_bill(bill_id, data, tenant_id)


@purchase_bills_router.patch("/{bill_id}/expenses", response_model=PurchaseBillDetail)
def update_purchase_bill_expenses(bill_id: UUID, data: ExpensesIn, tenant_id: TenantId, db: db_dependency):
    return PurchaseBillService(db).update_expenses(bill_id, data, tenant_id)


@purchase_bills_router.get("/{bill_id}/landing-cost", response_model=LandingCostOut)
def get_landing_cost(bill_id: UUID, tenant_id: TenantId, db: db_dependency):
    """
    Landing cost invoice

    Only available when the bill carries shipping, packaging or misc charges.
    """
    report = PurchaseBillService(db).get_landing_cost(bill_id, tenant_id)
    if report.extra_charges <= 0:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "field": "expenses",
                "code": "no_expenses",
                "message": "Bill has no expenses; landing cost equals unit cost"
            }
        )
    return report


@purchase_bills_router.post("/{bill_id}/payments", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
def create_payment(bill_id: UUID, data: PaymentCreate, tenant_id: TenantId, db: db_dependency):
    """
    Record a payment

    Rejected when it exceeds the balance, when the bill is cancelled, or when
    a bank transfer / UPI / cheque payment has no reference.
    """
    return PurchaseBillService(db).create_payment(bill_id, data, tenant_id)


@purchase_bills_router.get("/{bill_id}/payments", response_model=PaymentList)
def list_payments(bill_id: UUID, tenant_id: TenantId, db: db_dependency):
    return PurchaseBillService(db).list_payments(bill_id, tenant_id)


@purchase_bills_router.post("/{bill_id}/cancel", response_model=PurchaseBillOut)
def cancel_purchase_bill(
    bill_id: UUID,
    tenant_id: TenantId,
    db: db_dependency,
    reason: Optional[str] = Body(None, embed=True)
):
    return PurchaseBillService(db).cancel_bill(bill_id, reason, tenant_id)
