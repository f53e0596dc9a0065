"""
Purchase bills - stock bought from vendors

ENTITIES:
- PurchaseBill: vendor, lines, shared expenses, running balance
- PurchaseBillItem: product snapshot, cost price, size breakdown, discount
- PurchasePayment: append-only payments

INVENTORY:
- Saving a bill adds its quantities to product stock
- Editing a bill moves stock by the difference
- Cancelling a bill takes its quantities back out
- Product cost price = weighted average landing cost over open purchases

STATUSES:
- pending: balance outstanding
- paid: balance reached 0 through payments
- cancelled: terminal

TYPICAL FLOW:
1. POST /purchase-bills/quote while the bill is being filled in
2. POST /purchase-bills (optionally with an initial payment)
3. PATCH expenses as shipping / packaging invoices arrive
4. POST payments until the balance is 0 -> paid
"""

from .models import PurchaseBill, PurchaseBillItem, PurchasePayment
from .schemas import (
    PurchaseBillCreate, PurchaseBillUpdate, PurchaseBillOut, PurchaseBillDetail,
    PaymentCreate, PaymentOut, LandingCostOut
)
from .service import PurchaseBillService
from .router import purchase_bills_router

__all__ = [
    # Models
    "PurchaseBill", "PurchaseBillItem", "PurchasePayment",

    # Schemas
    "PurchaseBillCreate", "PurchaseBillUpdate", "PurchaseBillOut", "PurchaseBillDetail",
    "PaymentCreate", "PaymentOut", "LandingCostOut",

    # Services
    "PurchaseBillService",

    # Router
    "purchase_bills_router"
]
