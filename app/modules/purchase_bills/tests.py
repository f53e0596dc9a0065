"""
Tests for purchase bills

Covers:
- Creation with sizes, expenses and an initial payment
- Payment ledger over HTTP: overpayment, references, auto-paid
- Landing cost invoice and expense editing
- Inventory: stock and weighted-average cost
- Editing, cancelling, tenant isolation, observers
"""

import pytest
from decimal import Decimal
from uuid import uuid4
from fastapi import HTTPException
from fastapi.testclient import TestClient

from app.main import app
from app.common.middleware import TENANT_HEADER
from app.modules.ledger.payments import PaymentMode
from app.modules.ledger.state import BillStatus
from app.modules.purchase_bills.models import PurchaseBill
from app.modules.purchase_bills.schemas import PaymentCreate, PurchaseBillCreate, PurchaseLineIn
from app.modules.purchase_bills.service import PurchaseBillService


# ===== HELPERS =====

def tshirt_line(catalog, cost="100", small=2, medium=3):
    return {
        "product_id": str(catalog.tshirt.id),
        "cost_price": cost,
        "size_quantities": [
            {"size_id": str(catalog.small.id), "quantity": small},
            {"size_id": str(catalog.medium.id), "quantity": medium},
        ],
    }


def bag_line(catalog, cost="40", quantity=10):
    return {"product_id": str(catalog.bag.id), "cost_price": cost, "quantity": quantity}


def create_bill(client, parties, lines, **extra):
    payload = {
        "vendor_id": str(parties.vendor.id),
        "issued_at": "2024-03-15T10:00:00",
        "lines": lines,
    }
    payload.update(extra)
    return client.post("/purchase-bills/", json=payload)


class RecordingObserver:
    def __init__(self):
        self.events = []

    def bill_saved(self, bill):
        self.events.append(("bill_saved", bill.bill_number))

    def payment_recorded(self, bill, payment):
        self.events.append(("payment_recorded", payment.amount))

    def status_changed(self, bill, previous):
        self.events.append(("status_changed", previous, bill.status))


# ===== CREATION =====

class TestCreatePurchaseBill:

    def test_create_with_sizes_and_expenses(self, client, catalog, parties):
        response = create_bill(
            client, parties,
            [tshirt_line(catalog), bag_line(catalog)],
            expenses={"shipping": "450"}
        )
        assert response.status_code == 201
        data = response.json()

        assert data["bill_number"] == "PB20240315-001"
        assert data["status"] == "pending"
        assert data["vendor_name"] == "Surat Textiles"
        assert data["items_total"] == "900.00"
        assert data["extra_charges"] == "450.00"
        assert data["bill_total"] == "1350.00"
        assert data["balance"] == "1350.00"

        tshirt = data["items"][0]
        assert tshirt["quantity"] == 5
        assert [s["quantity"] for s in tshirt["sizes"]] == [2, 3, 0]
        assert [s["size_name"] for s in tshirt["sizes"]] == ["S", "M", "L"]

    def test_bill_numbers_follow_the_day_sequence(self, client, catalog, parties):
        first = create_bill(client, parties, [bag_line(catalog)]).json()
        second = create_bill(client, parties, [bag_line(catalog)]).json()
        assert first["bill_number"] == "PB20240315-001"
        assert second["bill_number"] == "PB20240315-002"

    def test_duplicate_bill_number_conflicts(self, client, catalog, parties):
        create_bill(client, parties, [bag_line(catalog)], bill_number="PB-MANUAL")
        response = create_bill(client, parties, [bag_line(catalog)], bill_number="PB-MANUAL")
        assert response.status_code == 409

    def test_initial_payment(self, client, catalog, parties):
        response = create_bill(
            client, parties, [bag_line(catalog)],
            initial_payment={"amount": "150", "mode": "cash"}
        )
        data = response.json()
        assert data["paid_amount"] == "150.00"
        assert data["balance"] == "250.00"
        assert len(data["payments"]) == 1

    def test_initial_payment_settling_the_bill(self, client, catalog, parties):
        response = create_bill(
            client, parties, [bag_line(catalog)],
            initial_payment={"amount": "400", "mode": "upi", "reference": "UPI-778"}
        )
        assert response.json()["status"] == "paid"

    def test_initial_payment_follows_ledger_rules(self, client, catalog, parties):
        response = create_bill(
            client, parties, [bag_line(catalog)],
            initial_payment={"amount": "400", "mode": "cheque"}
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "reference_required"
        assert client.get("/purchase-bills/").json()["total"] == 0

    def test_duplicate_product_rejects_whole_bill(self, client, catalog, parties):
        response = create_bill(client, parties, [bag_line(catalog), bag_line(catalog, quantity=2)])
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "duplicate_reference"
        assert client.get("/purchase-bills/").json()["total"] == 0

    def test_blank_rows_only_is_an_empty_bill(self, client, catalog, parties):
        response = create_bill(client, parties, [{"quantity": 3}])
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "empty_bill"

    def test_blank_rows_are_not_persisted(self, client, catalog, parties):
        response = create_bill(client, parties, [bag_line(catalog), {}])
        assert response.status_code == 201
        assert len(response.json()["items"]) == 1

    def test_zero_cost_rejected(self, client, catalog, parties):
        response = create_bill(client, parties, [bag_line(catalog, cost="0")])
        assert response.status_code == 422
        assert response.json()["detail"]["field"] == "unit_cost"

    def test_multi_size_line_without_sizes_rejected(self, client, catalog, parties):
        response = create_bill(client, parties, [{"product_id": str(catalog.tshirt.id), "cost_price": "100"}])
        assert response.status_code == 422
        assert response.json()["detail"]["field"] == "quantity"

    def test_inactive_vendor_rejected(self, client, catalog, parties):
        response = client.post("/purchase-bills/", json={
            "vendor_id": str(parties.inactive_vendor.id),
            "lines": [bag_line(catalog)],
        })
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "inactive_counterparty"

    def test_unknown_product(self, client, catalog, parties):
        response = create_bill(client, parties, [{"product_id": str(uuid4()), "quantity": 1, "cost_price": "5"}])
        assert response.status_code == 404

    def test_cost_defaults_to_product_cost(self, client, catalog, parties):
        response = create_bill(client, parties, [{"product_id": str(catalog.bag.id), "quantity": 2}])
        assert response.json()["items"][0]["unit_price"] == "50.00"


# ===== QUOTE =====

class TestQuote:

    def test_quote_prices_without_saving(self, client, catalog, parties):
        response = client.post("/purchase-bills/quote", json={
            "vendor_id": str(parties.vendor.id),
            "lines": [
                tshirt_line(catalog),
                {**bag_line(catalog), "discount_type": "percentage", "discount_value": "10"},
                {},
            ],
            "expenses": {"shipping": "450"},
        })
        assert response.status_code == 200
        data = response.json()
        assert len(data["lines"]) == 2
        assert data["total_discount"] == "40.00"
        assert data["items_total"] == "860.00"
        assert data["bill_total"] == "1310.00"
        assert data["total_units"] == 15
        assert data["per_unit_addend"] == "30.00"
        assert [line["landing_cost"] for line in data["landing_costs"]] == ["130.00", "70.00"]
        assert client.get("/purchase-bills/").json()["total"] == 0


# ===== PAYMENTS =====

class TestPayments:

    def test_auto_paid_after_second_payment(self, client, catalog, parties):
        bill = create_bill(client, parties, [bag_line(catalog, cost="100")]).json()
        assert bill["bill_total"] == "1000.00"

        first = client.post(f"/purchase-bills/{bill['id']}/payments", json={"amount": "600", "mode": "cash"})
        assert first.status_code == 201
        assert client.get(f"/purchase-bills/{bill['id']}").json()["status"] == "pending"

        second = client.post(
            f"/purchase-bills/{bill['id']}/payments",
            json={"amount": "400", "mode": "bank_transfer", "reference": "NEFT-0042"}
        )
        assert second.status_code == 201
        assert second.json()["reference"] == "NEFT-0042"

        detail = client.get(f"/purchase-bills/{bill['id']}").json()
        assert detail["status"] == "paid"
        assert detail["balance"] == "0.00"

    def test_overpayment_rejected_without_change(self, client, catalog, parties):
        bill = create_bill(client, parties, [bag_line(catalog, cost="20")]).json()
        assert bill["balance"] == "200.00"

        response = client.post(f"/purchase-bills/{bill['id']}/payments", json={"amount": "250", "mode": "cash"})
        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["field"] == "amount"
        assert detail["code"] == "exceeds_balance"
        assert "Maximum allowed: 200.00" in detail["message"]

        payments = client.get(f"/purchase-bills/{bill['id']}/payments").json()
        assert payments["total"] == 0
        assert payments["balance"] == "200.00"

    def test_sub_paisa_payment_rejected(self, client, catalog, parties):
        bill = create_bill(client, parties, [bag_line(catalog, cost="100")]).json()

        response = client.post(f"/purchase-bills/{bill['id']}/payments", json={"amount": "999.996", "mode": "cash"})
        assert response.status_code == 422
        assert client.get(f"/purchase-bills/{bill['id']}/payments").json()["total"] == 0

        settle = client.post(f"/purchase-bills/{bill['id']}/payments", json={"amount": "1000.00", "mode": "cash"})
        assert settle.status_code == 201
        detail = client.get(f"/purchase-bills/{bill['id']}").json()
        assert detail["status"] == "paid"
        assert detail["balance"] == "0.00"

    @pytest.mark.parametrize("percentage", ["33.33", "33.335"])
    def test_fractional_discount_settled_by_rounded_total(self, client, catalog, parties, percentage):
        line = {**bag_line(catalog, cost="10", quantity=3), "discount_type": "percentage", "discount_value": percentage}
        response = create_bill(client, parties, [line], initial_payment={"amount": "20.00", "mode": "cash"})
        assert response.status_code == 201
        data = response.json()
        assert data["bill_total"] == "20.00"
        assert data["paid_amount"] == "20.00"
        assert data["balance"] == "0.00"
        assert data["status"] == "paid"

    def test_fractional_discount_settled_in_two_payments(self, client, catalog, parties):
        line = {**bag_line(catalog, cost="10", quantity=3), "discount_type": "percentage", "discount_value": "33.33"}
        bill = create_bill(client, parties, [line]).json()

        client.post(f"/purchase-bills/{bill['id']}/payments", json={"amount": "19.99", "mode": "cash"})
        assert client.get(f"/purchase-bills/{bill['id']}").json()["status"] == "pending"

        last = client.post(f"/purchase-bills/{bill['id']}/payments", json={"amount": "0.01", "mode": "cash"})
        assert last.status_code == 201
        assert client.get(f"/purchase-bills/{bill['id']}").json()["status"] == "paid"

    def test_sub_paisa_cost_and_expenses_rejected(self, client, catalog, parties):
        assert create_bill(client, parties, [bag_line(catalog, cost="10.005")]).status_code == 422
        response = create_bill(client, parties, [bag_line(catalog)], expenses={"shipping": "0.001"})
        assert response.status_code == 422

    @pytest.mark.parametrize("mode", ["bank_transfer", "upi", "cheque"])
    def test_reference_required(self, client, catalog, parties, mode):
        bill = create_bill(client, parties, [bag_line(catalog)]).json()
        response = client.post(f"/purchase-bills/{bill['id']}/payments", json={"amount": "10", "mode": mode, "reference": " "})
        assert response.status_code == 422
        assert response.json()["detail"]["field"] == "reference"

    def test_non_positive_amount(self, client, catalog, parties):
        bill = create_bill(client, parties, [bag_line(catalog)]).json()
        response = client.post(f"/purchase-bills/{bill['id']}/payments", json={"amount": "0", "mode": "cash"})
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "non_positive_amount"

    def test_payment_list(self, client, catalog, parties):
        bill = create_bill(client, parties, [bag_line(catalog)]).json()
        for amount in ("100", "50.25"):
            client.post(f"/purchase-bills/{bill['id']}/payments", json={"amount": amount, "mode": "credit"})

        payments = client.get(f"/purchase-bills/{bill['id']}/payments").json()
        assert payments["total"] == 2
        assert payments["paid_amount"] == "150.25"
        assert payments["balance"] == "249.75"

    def test_payment_on_unknown_bill(self, client, catalog, parties):
        response = client.post(f"/purchase-bills/{uuid4()}/payments", json={"amount": "10", "mode": "cash"})
        assert response.status_code == 404


# ===== EXPENSES AND LANDING COST =====

class TestLandingCost:

    def test_landing_cost_invoice(self, client, catalog, parties):
        bill = create_bill(
            client, parties,
            [tshirt_line(catalog, small=5, medium=5), bag_line(catalog, quantity=5)],
            expenses={"shipping": "450"}
        ).json()

        response = client.get(f"/purchase-bills/{bill['id']}/landing-cost")
        assert response.status_code == 200
        data = response.json()
        assert data["total_units"] == 15
        assert data["per_unit_addend"] == "30.00"

        tshirt, bag = data["lines"]
        assert tshirt["product_id"] == str(catalog.tshirt.id)
        assert tshirt["landing_cost"] == "130.00"
        assert tshirt["distributed_cost"] == "300.00"
        assert bag["landing_cost"] == "70.00"
        assert bag["distributed_cost"] == "150.00"

    def test_landing_cost_needs_expenses(self, client, catalog, parties):
        bill = create_bill(client, parties, [bag_line(catalog)]).json()
        response = client.get(f"/purchase-bills/{bill['id']}/landing-cost")
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "no_expenses"

    def test_expense_edit_recomputes_landing_cost(self, client, catalog, parties, db_session):
        bill = create_bill(client, parties, [bag_line(catalog)], expenses={"shipping": "100"}).json()

        response = client.patch(f"/purchase-bills/{bill['id']}/expenses", json={"packaging": "50"})
        assert response.status_code == 200
        data = response.json()
        assert data["shipping"] == "0.00"
        assert data["packaging"] == "50.00"
        assert data["bill_total"] == "450.00"
        assert data["items"][0]["unit_price"] == "40.00"

        landing = client.get(f"/purchase-bills/{bill['id']}/landing-cost").json()
        assert landing["lines"][0]["landing_cost"] == "45.00"

        db_session.refresh(catalog.bag)
        assert catalog.bag.cost_price == Decimal("45.00")

    def test_negative_expense_rejected(self, client, catalog, parties):
        bill = create_bill(client, parties, [bag_line(catalog)]).json()
        response = client.patch(f"/purchase-bills/{bill['id']}/expenses", json={"misc": "-5"})
        assert response.status_code == 422


# ===== INVENTORY =====

class TestInventory:

    def test_stock_and_cost_follow_purchase(self, client, catalog, parties, db_session):
        create_bill(client, parties, [tshirt_line(catalog), bag_line(catalog)], expenses={"shipping": "450"})

        db_session.refresh(catalog.tshirt)
        db_session.refresh(catalog.bag)
        assert catalog.tshirt.stock_quantity == 5
        assert catalog.bag.stock_quantity == 10
        assert catalog.tshirt.cost_price == Decimal("130.00")
        assert catalog.bag.cost_price == Decimal("70.00")

    def test_cost_is_weighted_over_purchases(self, client, catalog, parties, db_session):
        create_bill(client, parties, [bag_line(catalog, cost="40")], expenses={"misc": "300"})
        create_bill(client, parties, [bag_line(catalog, cost="60")])

        db_session.refresh(catalog.bag)
        assert catalog.bag.stock_quantity == 20
        assert catalog.bag.cost_price == Decimal("65.00")

    def test_cancel_returns_stock(self, client, catalog, parties, db_session):
        bill = create_bill(client, parties, [bag_line(catalog)]).json()
        response = client.post(f"/purchase-bills/{bill['id']}/cancel", json={"reason": "Wrong vendor"})
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert "Wrong vendor" in response.json()["notes"]

        db_session.refresh(catalog.bag)
        assert catalog.bag.stock_quantity == 0


# ===== EDITING AND CANCELLING =====

class TestEditing:

    def test_edit_moves_stock_by_difference(self, client, catalog, parties, db_session):
        bill = create_bill(client, parties, [bag_line(catalog)]).json()
        response = client.put(f"/purchase-bills/{bill['id']}", json={"lines": [bag_line(catalog, quantity=25)]})
        assert response.status_code == 200
        assert response.json()["bill_total"] == "1000.00"

        db_session.refresh(catalog.bag)
        assert catalog.bag.stock_quantity == 25

    def test_total_cannot_drop_below_paid(self, client, catalog, parties):
        bill = create_bill(client, parties, [bag_line(catalog)]).json()
        client.post(f"/purchase-bills/{bill['id']}/payments", json={"amount": "300", "mode": "cash"})

        response = client.put(f"/purchase-bills/{bill['id']}", json={"lines": [bag_line(catalog, quantity=5)]})
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "total_below_paid"
        assert client.get(f"/purchase-bills/{bill['id']}").json()["bill_total"] == "400.00"

    def test_cancelled_bill_is_frozen(self, client, catalog, parties):
        bill = create_bill(client, parties, [bag_line(catalog)]).json()
        client.post(f"/purchase-bills/{bill['id']}/cancel")

        payment = client.post(f"/purchase-bills/{bill['id']}/payments", json={"amount": "10", "mode": "cash"})
        assert payment.status_code == 422
        assert payment.json()["detail"]["code"] == "bill_cancelled"

        edit = client.put(f"/purchase-bills/{bill['id']}", json={"notes": "late edit"})
        assert edit.status_code == 422

        again = client.post(f"/purchase-bills/{bill['id']}/cancel")
        assert again.status_code == 422
        assert again.json()["detail"]["code"] == "invalid_transition"

    def test_paid_bill_can_be_cancelled(self, client, catalog, parties):
        bill = create_bill(
            client, parties, [bag_line(catalog)],
            initial_payment={"amount": "400", "mode": "cash"}
        ).json()
        response = client.post(f"/purchase-bills/{bill['id']}/cancel")
        assert response.json()["status"] == "cancelled"


# ===== LISTING AND TENANCY =====

class TestListing:

    def test_filters(self, client, catalog, parties):
        create_bill(client, parties, [bag_line(catalog)])
        paid = create_bill(
            client, parties, [bag_line(catalog)],
            issued_at="2024-04-01T09:00:00",
            initial_payment={"amount": "400", "mode": "cash"}
        ).json()

        assert client.get("/purchase-bills/").json()["total"] == 2
        by_status = client.get("/purchase-bills/", params={"status": "paid"}).json()
        assert [b["id"] for b in by_status["items"]] == [paid["id"]]
        by_date = client.get("/purchase-bills/", params={"start_date": "2024-03-20"}).json()
        assert by_date["total"] == 1
        by_vendor = client.get("/purchase-bills/", params={"vendor_id": str(uuid4())}).json()
        assert by_vendor["total"] == 0

    def test_newest_first_with_pagination(self, client, catalog, parties):
        create_bill(client, parties, [bag_line(catalog)], issued_at="2024-03-01T09:00:00")
        newest = create_bill(client, parties, [bag_line(catalog)], issued_at="2024-03-02T09:00:00").json()

        page = client.get("/purchase-bills/", params={"limit": 1}).json()
        assert page["total"] == 2
        assert page["items"][0]["id"] == newest["id"]

    def test_other_tenant_cannot_see_bill(self, client, catalog, parties):
        bill = create_bill(client, parties, [bag_line(catalog)]).json()
        response = client.get(f"/purchase-bills/{bill['id']}", headers={TENANT_HEADER: str(uuid4())})
        assert response.status_code == 404

    def test_tenant_header_required(self):
        response = TestClient(app).get("/purchase-bills/")
        assert response.status_code == 400


# ===== SERVICE =====

class TestPurchaseBillService:

    def test_observers_are_notified(self, db_session, tenant_id, catalog, parties):
        observer = RecordingObserver()
        service = PurchaseBillService(db_session, observers=[observer])
        data = PurchaseBillCreate(
            vendor_id=parties.vendor.id,
            lines=[PurchaseLineIn(product_id=catalog.bag.id, quantity=4, cost_price=Decimal("25"))],
        )
        bill = service.create_bill(data, tenant_id)
        service.create_payment(bill.id, PaymentCreate(amount=Decimal("100"), mode=PaymentMode.CASH), tenant_id)

        assert observer.events == [
            ("bill_saved", bill.bill_number),
            ("payment_recorded", Decimal("100")),
            ("status_changed", BillStatus.PENDING, BillStatus.PAID),
        ]

    def test_failing_observer_does_not_undo_the_bill(self, db_session, tenant_id, catalog, parties):
        class BrokenObserver(RecordingObserver):
            def bill_saved(self, bill):
                raise RuntimeError("mail server down")

        service = PurchaseBillService(db_session, observers=[BrokenObserver()])
        data = PurchaseBillCreate(
            vendor_id=parties.vendor.id,
            lines=[PurchaseLineIn(product_id=catalog.bag.id, quantity=1, cost_price=Decimal("25"))],
        )
        bill = service.create_bill(data, tenant_id)
        assert db_session.query(PurchaseBill).filter(PurchaseBill.id == bill.id).count() == 1

    def test_validation_error_becomes_422(self, db_session, tenant_id, catalog, parties):
        service = PurchaseBillService(db_session)
        data = PurchaseBillCreate(
            vendor_id=parties.vendor.id,
            lines=[PurchaseLineIn(product_id=catalog.bag.id, quantity=0, cost_price=Decimal("25"))],
        )
        with pytest.raises(HTTPException) as exc:
            service.create_bill(data, tenant_id)
        assert exc.value.status_code == 422
        assert exc.value.detail["field"] == "quantity"
