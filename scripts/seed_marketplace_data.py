"""
Seed script: Populate a demo reseller marketplace tenant.

What it creates:
- Sizes (S, M, L, XL, Free Size) and categories with their default sizes.
- Products: N (default 200) with SKU, cost and the three selling price tiers.
- Counterparties: vendors, wholesalers, resellers and retailers.
- Purchase bills: raise stock, spread shipping / packaging over units,
  some partly or fully paid.
- Order bills: priced at each buyer's tier; a mix of pending / paid / cancelled.

Run inside the API container to use the 'postgres' host:
    docker compose exec api python scripts/seed_marketplace_data.py \
        --products 200 --purchases 60 --orders 150

Prints the tenant id to send as X-Tenant-ID. Development only.
"""

# Add project root to sys.path so `app.*` imports work even if CWD changes
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from fastapi import HTTPException

from app.database.database import SessionLocal, Base, engine
from app.modules.catalog.models import Size, Category, Product
from app.modules.counterparties.models import Vendor, Wholesaler, Reseller, Retailer
from app.modules.ledger.counterparties import CounterpartyRole
from app.modules.ledger.payments import PaymentMode
from app.modules.ledger.pricing import DiscountType
from app.modules.ledger.state import BillStatus
from app.modules.order_bills.schemas import OrderBillCreate, OrderLineIn
from app.modules.order_bills.service import OrderBillService
from app.modules.purchase_bills.schemas import (
    PurchaseBillCreate, PurchaseLineIn, ExpensesIn, PaymentCreate
)
from app.modules.purchase_bills.service import PurchaseBillService


CATEGORIES = {
    "Kurtis": ["S", "M", "L", "XL"],
    "Sarees": ["Free Size"],
    "T-Shirts": ["S", "M", "L", "XL"],
    "Handbags": [],
    "Jewellery": [],
}

CITIES = ["Surat", "Jaipur", "Ludhiana", "Tiruppur", "Kolkata", "Delhi"]


def pick(seq):
    return random.choice(seq)


def money(value) -> Decimal:
    return Decimal(value).quantize(Decimal("0.01"))


def random_date(days_back: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=random.randint(0, days_back))


def create_catalog(db, tenant_id, product_count: int):
    sizes = {}
    for order, name in enumerate(["S", "M", "L", "XL", "Free Size"]):
        sizes[name] = Size(tenant_id=tenant_id, name=name, sort_order=order)
    db.add_all(sizes.values())

    categories = []
    for name, size_names in CATEGORIES.items():
        category = Category(tenant_id=tenant_id, name=name, sizes=[sizes[s] for s in size_names])
        categories.append(category)
    db.add_all(categories)

    products = []
    for i in range(product_count):
        category = pick(categories)
        cost = money(random.randint(80, 900))
        product = Product(
            tenant_id=tenant_id,
            sku=f"{category.name[:3].upper()}-{i:04d}",
            name=f"{category.name[:-1]} #{i + 1}",
            category=category,
            cost_price=cost,
            wholesale_price=money(cost * Decimal("1.15")),
            reseller_price=money(cost * Decimal("1.30")),
            retail_price=money(cost * Decimal("1.60")),
            mrp=money(cost * Decimal("1.90")),
        )
        products.append(product)
    db.add_all(products)
    db.commit()
    return products


def create_counterparties(db, tenant_id, vendors=10, wholesalers=10, resellers=25, retailers=40):
    created = {
        CounterpartyRole.VENDOR: [
            Vendor(tenant_id=tenant_id, name=f"{pick(CITIES)} Mills {i + 1}", city=pick(CITIES))
            for i in range(vendors)
        ],
        CounterpartyRole.WHOLESALER: [
            Wholesaler(tenant_id=tenant_id, name=f"Wholesale Hub {i + 1}", shop_name=f"Hub {i + 1}")
            for i in range(wholesalers)
        ],
        CounterpartyRole.RESELLER: [
            Reseller(tenant_id=tenant_id, name=f"Reseller {i + 1}", contact_number=f"98{random.randint(10000000, 99999999)}")
            for i in range(resellers)
        ],
        CounterpartyRole.RETAILER: [
            Retailer(tenant_id=tenant_id, name=f"Retail Store {i + 1}", shop_name=f"Store {i + 1}")
            for i in range(retailers)
        ],
    }
    for parties in created.values():
        db.add_all(parties)
    db.commit()
    return created


def line_for(product, quantity: int, line_class, **price):
    """Spread the quantity over the product's sizes when it has several"""
    sizes = product.sizes or (product.category.sizes if product.category else [])
    if len(sizes) > 1:
        split = [0] * len(sizes)
        for _ in range(quantity):
            split[random.randrange(len(sizes))] += 1
        return line_class(
            product_id=product.id,
            size_quantities=[{"size_id": s.id, "quantity": q} for s, q in zip(sizes, split) if q],
            **price
        )
    return line_class(product_id=product.id, quantity=quantity, **price)


def create_purchases(db, tenant_id, vendors, products, count: int):
    service = PurchaseBillService(db)
    created = 0
    for _ in range(count):
        chosen = random.sample(products, k=min(len(products), random.randint(2, 6)))
        lines = [
            line_for(p, random.randint(10, 60), PurchaseLineIn, cost_price=p.cost_price)
            for p in chosen
        ]
        expenses = ExpensesIn(
            shipping=money(random.choice([0, 250, 450, 800])),
            packaging=money(random.choice([0, 0, 120])),
        )
        data = PurchaseBillCreate(vendor_id=pick(vendors).id, issued_at=random_date(90), lines=lines, expenses=expenses)
        try:
            bill = service.create_bill(data, tenant_id)
            roll = random.random()
            if roll < 0.5:
                service.create_payment(bill.id, PaymentCreate(amount=bill.bill_total, mode=PaymentMode.CASH), tenant_id)
            elif roll < 0.8:
                service.create_payment(
                    bill.id,
                    PaymentCreate(amount=money(bill.bill_total / 2), mode=PaymentMode.UPI, reference=f"UPI{uuid4().hex[:10].upper()}"),
                    tenant_id
                )
            created += 1
        except HTTPException as e:
            print(f"  Skipped purchase bill: {e.detail}")
            continue
    return created


def create_orders(db, tenant_id, buyers, products, count: int):
    service = OrderBillService(db)
    created = 0
    for _ in range(count):
        role = pick([CounterpartyRole.WHOLESALER, CounterpartyRole.RESELLER, CounterpartyRole.RETAILER])
        chosen = random.sample(products, k=min(len(products), random.randint(1, 5)))
        lines = []
        for p in chosen:
            discount = {}
            if random.random() < 0.3:
                discount = {"discount_type": DiscountType.PERCENTAGE, "discount_value": Decimal(pick([5, 10, 15]))}
            lines.append(line_for(p, random.randint(1, 12), OrderLineIn, **discount))
        data = OrderBillCreate(
            counterparty_role=role,
            counterparty_id=pick(buyers[role]).id,
            issued_at=random_date(60),
            status=BillStatus.PAID if random.random() < 0.6 else BillStatus.PENDING,
            lines=lines,
        )
        try:
            bill = service.create_bill(data, tenant_id)
            if random.random() < 0.05:
                service.cancel_bill(bill.id, "Demo cancellation", tenant_id)
            created += 1
        except HTTPException as e:
            print(f"  Skipped order bill: {e.detail}")
            continue
    return created


def main():
    parser = argparse.ArgumentParser(description="Seed reseller marketplace demo data")
    parser.add_argument("--tenant-id", default=None, help="Existing tenant UUID; a new one is generated if empty")
    parser.add_argument("--products", type=int, default=200)
    parser.add_argument("--purchases", type=int, default=60)
    parser.add_argument("--orders", type=int, default=150)
    args = parser.parse_args()

    tenant_id = UUID(args.tenant_id) if args.tenant_id else uuid4()
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        print("Creating catalog...")
        products = create_catalog(db, tenant_id, args.products)
        print(f"Products created: {len(products)}")

        print("Creating counterparties...")
        parties = create_counterparties(db, tenant_id)

        print("Creating purchase bills (increase stock)...")
        purchases = create_purchases(db, tenant_id, parties[CounterpartyRole.VENDOR], products, args.purchases)
        print(f"Purchase bills created: {purchases}")

        print("Creating order bills...")
        orders = create_orders(db, tenant_id, parties, products, args.orders)
        print(f"Order bills created: {orders}")

        print("\nSeed completed.")
        print("Headers for API requests:")
        print(f"  X-Tenant-ID: {tenant_id}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
