"""
Tests for order bills

Covers price tiers per counterparty, discounts, sizes, duplicate lines,
status handling (created paid, mark-paid, cancel) and editing.
"""

import pytest
from decimal import Decimal
from uuid import uuid4
from fastapi import HTTPException

from app.modules.ledger.counterparties import CounterpartyRole
from app.modules.ledger.pricing import DiscountType
from app.modules.order_bills.schemas import OrderBillCreate, OrderLineIn
from app.modules.order_bills.service import OrderBillService


def order_payload(party, role, lines, **extra):
    payload = {
        "counterparty_role": role,
        "counterparty_id": str(party.id),
        "issued_at": "2024-03-15T10:00:00",
        "lines": lines,
    }
    payload.update(extra)
    return payload


def bag(catalog, **extra):
    return {"product_id": str(catalog.bag.id), "quantity": 3, **extra}


class TestCreateOrderBill:

    @pytest.mark.parametrize("role,expected", [
        ("wholesaler", "70.00"),
        ("reseller", "85.00"),
        ("retailer", "99.00"),
    ])
    def test_counterparty_price_tier(self, client, catalog, parties, role, expected):
        party = getattr(parties, role)
        response = client.post("/order-bills/", json=order_payload(party, role, [bag(catalog)]))
        assert response.status_code == 201
        data = response.json()
        assert data["items"][0]["unit_price"] == expected
        assert data["counterparty_name"] == party.name
        assert data["status"] == "pending"

    def test_percentage_discount(self, client, catalog, parties):
        response = client.post("/order-bills/", json=order_payload(
            parties.retailer, "retailer",
            [bag(catalog, unit_price="100", discount_type="percentage", discount_value="10")]
        ))
        data = response.json()
        assert data["subtotal"] == "300.00"
        assert data["total_discount"] == "30.00"
        assert data["grand_total"] == "270.00"
        assert data["items"][0]["discount_amount"] == "30.00"

    def test_oversized_discount_floors_at_zero(self, client, catalog, parties):
        response = client.post("/order-bills/", json=order_payload(
            parties.retailer, "retailer",
            [bag(catalog, unit_price="10", discount_type="amount", discount_value="500")]
        ))
        assert response.status_code == 201
        assert response.json()["grand_total"] == "0.00"

    def test_grand_total_is_sum_of_lines(self, client, catalog, parties):
        lines = [
            bag(catalog, discount_type="amount", discount_value="5"),
            {
                "product_id": str(catalog.tshirt.id),
                "size_quantities": [
                    {"size_id": str(catalog.small.id), "quantity": 1},
                    {"size_id": str(catalog.large.id), "quantity": 2},
                ],
            },
            {"product_id": str(catalog.cap.id), "quantity": 4},
        ]
        data = client.post("/order-bills/", json=order_payload(parties.wholesaler, "wholesaler", lines)).json()

        totals = [Decimal(item["total"]) for item in data["items"]]
        assert totals == [Decimal("205.00"), Decimal("600.00"), Decimal("400.00")]
        assert Decimal(data["grand_total"]) == sum(totals)
        assert data["items"][1]["quantity"] == 3
        assert [s["quantity"] for s in data["items"][2]["sizes"]] == [4]

    def test_invoice_number(self, client, catalog, parties):
        first = client.post("/order-bills/", json=order_payload(parties.retailer, "retailer", [bag(catalog)])).json()
        second = client.post("/order-bills/", json=order_payload(parties.retailer, "retailer", [bag(catalog)])).json()
        assert first["invoice_number"] == "INV-20240315-0001"
        assert second["invoice_number"] == "INV-20240315-0002"

    def test_created_paid(self, client, catalog, parties):
        response = client.post("/order-bills/", json=order_payload(
            parties.reseller, "reseller", [bag(catalog)], status="paid"
        ))
        assert response.json()["status"] == "paid"

    def test_cannot_create_cancelled(self, client, catalog, parties):
        response = client.post("/order-bills/", json=order_payload(
            parties.reseller, "reseller", [bag(catalog)], status="cancelled"
        ))
        assert response.status_code == 422

    def test_vendor_is_not_an_order_counterparty(self, client, catalog, parties):
        response = client.post("/order-bills/", json=order_payload(parties.vendor, "vendor", [bag(catalog)]))
        assert response.status_code == 422

    def test_wrong_role_for_counterparty(self, client, catalog, parties):
        response = client.post("/order-bills/", json=order_payload(parties.retailer, "wholesaler", [bag(catalog)]))
        assert response.status_code == 404

    def test_inactive_counterparty(self, client, catalog, parties):
        response = client.post("/order-bills/", json=order_payload(
            parties.inactive_retailer, "retailer", [bag(catalog)]
        ))
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "inactive_counterparty"

    def test_duplicate_product_rejected(self, client, catalog, parties):
        response = client.post("/order-bills/", json=order_payload(
            parties.retailer, "retailer", [bag(catalog), bag(catalog, quantity=1)]
        ))
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "duplicate_reference"
        assert client.get("/order-bills/").json()["total"] == 0

    def test_size_quantity_for_unknown_size(self, client, catalog, parties):
        response = client.post("/order-bills/", json=order_payload(parties.retailer, "retailer", [{
            "product_id": str(catalog.tshirt.id),
            "size_quantities": [{"size_id": str(catalog.free.id), "quantity": 1}],
        }]))
        assert response.status_code == 422
        assert response.json()["detail"]["field"] == "size_quantities"

    def test_orders_do_not_touch_stock(self, client, catalog, parties, db_session):
        client.post("/order-bills/", json=order_payload(parties.retailer, "retailer", [bag(catalog)]))
        db_session.refresh(catalog.bag)
        assert catalog.bag.stock_quantity == 0


class TestQuote:

    def test_quote(self, client, catalog, parties):
        response = client.post("/order-bills/quote", json={
            "counterparty_role": "retailer",
            "counterparty_id": str(parties.retailer.id),
            "lines": [bag(catalog), {}],
        })
        assert response.status_code == 200
        data = response.json()
        assert data["grand_total"] == "297.00"
        assert data["total_units"] == 3
        assert len(data["lines"]) == 1
        assert client.get("/order-bills/").json()["total"] == 0


class TestStatus:

    def test_mark_paid(self, client, catalog, parties):
        bill = client.post("/order-bills/", json=order_payload(parties.retailer, "retailer", [bag(catalog)])).json()
        response = client.post(f"/order-bills/{bill['id']}/mark-paid")
        assert response.status_code == 200
        assert response.json()["status"] == "paid"

        again = client.post(f"/order-bills/{bill['id']}/mark-paid")
        assert again.status_code == 422
        assert again.json()["detail"]["code"] == "invalid_transition"

    def test_cancel_is_terminal(self, client, catalog, parties):
        bill = client.post("/order-bills/", json=order_payload(parties.retailer, "retailer", [bag(catalog)])).json()
        response = client.post(f"/order-bills/{bill['id']}/cancel", json={"reason": "Customer changed mind"})
        assert response.json()["status"] == "cancelled"

        assert client.post(f"/order-bills/{bill['id']}/mark-paid").status_code == 422
        assert client.put(f"/order-bills/{bill['id']}", json={"notes": "x"}).status_code == 422


class TestEditing:

    def test_replace_lines(self, client, catalog, parties):
        bill = client.post("/order-bills/", json=order_payload(parties.retailer, "retailer", [bag(catalog)])).json()
        response = client.put(f"/order-bills/{bill['id']}", json={
            "lines": [{"product_id": str(catalog.cap.id), "quantity": 2}]
        })
        assert response.status_code == 200
        data = response.json()
        assert data["grand_total"] == "300.00"
        assert [item["sku"] for item in data["items"]] == ["CP-001"]

    def test_paid_bill_total_is_locked(self, client, catalog, parties):
        bill = client.post("/order-bills/", json=order_payload(
            parties.retailer, "retailer", [bag(catalog)], status="paid"
        )).json()

        response = client.put(f"/order-bills/{bill['id']}", json={
            "lines": [{"product_id": str(catalog.cap.id), "quantity": 2}]
        })
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "paid_bill_total_locked"
        assert client.get(f"/order-bills/{bill['id']}").json()["grand_total"] == "297.00"

        notes = client.put(f"/order-bills/{bill['id']}", json={"notes": "Delivered"})
        assert notes.status_code == 200
        assert notes.json()["notes"] == "Delivered"

    def test_switch_counterparty(self, client, catalog, parties):
        bill = client.post("/order-bills/", json=order_payload(parties.retailer, "retailer", [bag(catalog)])).json()
        response = client.put(f"/order-bills/{bill['id']}", json={
            "counterparty_role": "wholesaler",
            "counterparty_id": str(parties.wholesaler.id),
        })
        data = response.json()
        assert data["counterparty_role"] == "wholesaler"
        assert data["counterparty_name"] == "Metro Wholesale"
        # Existing lines keep the price they were saved with
        assert data["grand_total"] == "297.00"


class TestListing:

    def test_filters(self, client, catalog, parties):
        client.post("/order-bills/", json=order_payload(parties.retailer, "retailer", [bag(catalog)]))
        client.post("/order-bills/", json=order_payload(parties.reseller, "reseller", [bag(catalog)], status="paid"))

        assert client.get("/order-bills/").json()["total"] == 2
        assert client.get("/order-bills/", params={"status": "paid"}).json()["total"] == 1
        assert client.get("/order-bills/", params={"counterparty_role": "retailer"}).json()["total"] == 1
        assert client.get("/order-bills/", params={"counterparty_id": str(parties.reseller.id)}).json()["total"] == 1
        assert client.get("/order-bills/", params={"end_date": "2024-03-01"}).json()["total"] == 0

    def test_unknown_bill(self, client):
        assert client.get(f"/order-bills/{uuid4()}").status_code == 404


class TestOrderBillService:

    def test_service_create(self, db_session, tenant_id, catalog, parties):
        data = OrderBillCreate(
            counterparty_role=CounterpartyRole.RESELLER,
            counterparty_id=parties.reseller.id,
            lines=[OrderLineIn(product_id=catalog.cap.id, quantity=2, discount_type=DiscountType.AMOUNT, discount_value=Decimal("40"))],
        )
        bill = OrderBillService(db_session).create_bill(data, tenant_id)
        assert bill.grand_total == Decimal("200.00")
        assert bill.items[0].discount_amount == Decimal("40.00")

    def test_empty_order_rejected(self, db_session, tenant_id, catalog, parties):
        data = OrderBillCreate(
            counterparty_role=CounterpartyRole.RETAILER,
            counterparty_id=parties.retailer.id,
            lines=[OrderLineIn()],
        )
        with pytest.raises(HTTPException) as exc:
            OrderBillService(db_session).create_bill(data, tenant_id)
        assert exc.value.status_code == 422
        assert exc.value.detail["code"] == "empty_bill"
