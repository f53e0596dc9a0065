"""
Ledger core - invoice engine shared by order bills and purchase bills

COMPONENTS (leaves first):
- pricing: line quantity x price, discount, floored total
- sizes: per-size quantity breakdown of a line
- aggregation: bill subtotal / discount / grand total
- expenses: shared overhead spread per unit (landing cost)
- payments: append-only payments, balance
- state: pending -> paid | cancelled

FLOW:
raw line input -> lines (pricing + sizes) -> aggregation
-> (purchases) expenses -> payments -> state

Everything here is synchronous, pure and free of I/O. Persistence and HTTP
live in the order_bills and purchase_bills modules.
"""

from .errors import LedgerError, ValidationError, InvariantViolation
from .money import ZERO, to_money, quantize_money
from .pricing import DiscountType, DiscountSpec, LinePrice, price_line
from .sizes import SizeAllocation, SizeBreakdown, seed_allocations, allocate
from .lines import LineItem, line_for_reference, update_line, update_size_quantity
from .aggregation import BillTotals, aggregate
from .expenses import Expenses, LandingCostLine, distribute, landing_costs
from .payments import PaymentMode, Payment, add_payment
from .state import BillStatus
from .counterparties import CounterpartyRole, Wholesaler, Reseller, Retailer, Vendor
from .bills import OrderBill, PurchaseBill, add_line, validate_submission

__all__ = [
    # Errors
    "LedgerError", "ValidationError", "InvariantViolation",

    # Money
    "ZERO", "to_money", "quantize_money",

    # Pricing and sizes
    "DiscountType", "DiscountSpec", "LinePrice", "price_line",
    "SizeAllocation", "SizeBreakdown", "seed_allocations", "allocate",
    "LineItem", "line_for_reference", "update_line", "update_size_quantity",

    # Totals and expenses
    "BillTotals", "aggregate",
    "Expenses", "LandingCostLine", "distribute", "landing_costs",

    # Payments and status
    "PaymentMode", "Payment", "add_payment", "BillStatus",

    # Bills
    "CounterpartyRole", "Wholesaler", "Reseller", "Retailer", "Vendor",
    "OrderBill", "PurchaseBill", "add_line", "validate_submission",
]
