"""
FastAPI router for order bills

Every endpoint is scoped to the tenant in the X-Tenant-ID header.
"""

from fastapi import APIRouter, Body, Query, status
from typing import Optional
from uuid import UUID
from datetime import date

from app.core.config import settings
from app.dependencies.companyDependencies import TenantId
from app.dependencies.dbDependecies import db_dependency
from app.modules.ledger.counterparties import CounterpartyRole
from app.modules.ledger.state import BillStatus
from app.modules.order_bills.service import OrderBillService
from app.modules.order_bills.schemas import (
    OrderBillCreate, OrderBillUpdate, OrderBillOut, OrderBillDetail, OrderBillList,
    OrderQuoteRequest, OrderQuoteOut
)

order_bills_router = APIRouter(prefix="/order-bills", tags=["Order Bills"])


@order_bills_router.post("/quote", response_model=OrderQuoteOut)
def quote_order_bill(data: OrderQuoteRequest, tenant_id: TenantId, db: db_dependency):
    """
    Price a draft order

    Lines without a product are ignored. Nothing is saved.
    """
    return OrderBillService(db).quote(data, tenant_id)


@order_bills_router.post("/", response_model=OrderBillDetail, status_code=status.HTTP_201_CREATED)
def create_order_bill(data: OrderBillCreate, tenant_id: TenantId, db: db_dependency):
    """
    Create an order bill

    Unit prices default to the counterparty's price tier. The whole bill is
    rejected if any line is invalid.
    """
    return OrderBillService(db).create_bill(data, tenant_id)


@order_bills_router.get("/", response_model=OrderBillList)
def list_order_bills(
    tenant_id: TenantId,
    db: db_dependency,
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    status: Optional[BillStatus] = Query(None, description="Filter by status"),
    counterparty_role: Optional[CounterpartyRole] = Query(None, description="Filter by counterparty type"),
    counterparty_id: Optional[UUID] = Query(None, description="Filter by counterparty"),
    start_date: Optional[date] = Query(None, description="Issued on or after"),
    end_date: Optional[date] = Query(None, description="Issued on or before")
):
    return OrderBillService(db).get_bills(
        tenant_id=tenant_id,
        limit=limit,
        offset=offset,
        status=status,
        counterparty_role=counterparty_role,
        counterparty_id=counterparty_id,
        start_date=start_date,
        end_date=end_date
    )


@order_bills_router.get("/{bill_id}", response_model=OrderBillDetail)
def get_order_bill(bill_id: UUID, tenant_id: TenantId, db: db_dependency):
    return OrderBillService(db).get_bill_by_id(bill_id, tenant_id)


@order_bills_router.put("/{bill_id}", response_model=OrderBillDetail)
def update_order_bill(bill_id: UUID, data: OrderBillUpdate, tenant_id: TenantId, db: db_dependency):
    return OrderBillService(db).update_bill(bill_id, data, tenant_id)


@order_bills_router.post("/{bill_id}/mark-paid", response_model=OrderBillOut)
def mark_order_bill_paid(bill_id: UUID, tenant_id: TenantId, db: db_dependency):
    return OrderBillService(db).mark_paid(bill_id, tenant_id)


@order_bills_router.post("/{bill_id}/cancel", response_model=OrderBillOut)
def cancel_order_bill(
    bill_id: UUID,
    tenant_id: TenantId,
    db: db_dependency,
    reason: Optional[str] = Body(None, embed=True)
):
    return OrderBillService(db).cancel_bill(bill_id, reason, tenant_id)
