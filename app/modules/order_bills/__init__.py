"""
Order bills - sales to wholesalers, resellers and retailers

PRICING:
- wholesaler -> wholesale_price
- reseller   -> reseller_price
- retailer   -> retail_price
An explicit unit price on the line overrides the tier.

STATUSES:
- pending: created, not settled
- paid: settled outside the ledger (created paid, or POST mark-paid)
- cancelled: terminal
"""

from .models import OrderBill, OrderBillItem
from .schemas import OrderBillCreate, OrderBillUpdate, OrderBillOut, OrderBillDetail
from .service import OrderBillService
from .router import order_bills_router

__all__ = [
    "OrderBill", "OrderBillItem",
    "OrderBillCreate", "OrderBillUpdate", "OrderBillOut", "OrderBillDetail",
    "OrderBillService",
    "order_bills_router"
]
