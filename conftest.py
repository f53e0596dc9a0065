"""
Shared pytest fixtures

Tests run against an in-memory SQLite database; tables are created and
dropped around every test.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")

import pytest
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4
from fastapi.testclient import TestClient

from app.main import app
from app.database.database import Base, SessionLocal, engine, get_db
from app.common.middleware import TENANT_HEADER
from app.modules.catalog.models import Category, Product, Size
from app.modules.counterparties.models import Vendor, Wholesaler, Reseller, Retailer


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def tenant_id():
    return uuid4()


@pytest.fixture
def client(db_session, tenant_id):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app, headers={TENANT_HEADER: str(tenant_id)}) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def catalog(db_session, tenant_id):
    """
    Three products covering every size layout:
    - tshirt: no own sizes, inherits S/M/L from its category
    - cap: exactly one size
    - bag: no sizes at all
    """
    small = Size(tenant_id=tenant_id, name="S", sort_order=1)
    medium = Size(tenant_id=tenant_id, name="M", sort_order=2)
    large = Size(tenant_id=tenant_id, name="L", sort_order=3)
    free = Size(tenant_id=tenant_id, name="Free Size", sort_order=4)
    apparel = Category(tenant_id=tenant_id, name="Apparel", sizes=[small, medium, large])
    accessories = Category(tenant_id=tenant_id, name="Accessories")

    tshirt = Product(
        tenant_id=tenant_id, sku="TS-001", name="Cotton T-Shirt", category=apparel,
        cost_price=Decimal("150.00"), wholesale_price=Decimal("200.00"),
        reseller_price=Decimal("240.00"), retail_price=Decimal("299.00"), mrp=Decimal("349.00")
    )
    cap = Product(
        tenant_id=tenant_id, sku="CP-001", name="Baseball Cap", category=accessories, sizes=[free],
        cost_price=Decimal("80.00"), wholesale_price=Decimal("100.00"),
        reseller_price=Decimal("120.00"), retail_price=Decimal("150.00")
    )
    bag = Product(
        tenant_id=tenant_id, sku="BG-001", name="Tote Bag", category=accessories,
        cost_price=Decimal("50.00"), wholesale_price=Decimal("70.00"),
        reseller_price=Decimal("85.00"), retail_price=Decimal("99.00")
    )
    db_session.add_all([small, medium, large, free, apparel, accessories, tshirt, cap, bag])
    db_session.commit()

    return SimpleNamespace(
        tshirt=tshirt, cap=cap, bag=bag,
        small=small, medium=medium, large=large, free=free
    )


@pytest.fixture
def parties(db_session, tenant_id):
    vendor = Vendor(tenant_id=tenant_id, name="Surat Textiles", city="Surat")
    inactive_vendor = Vendor(tenant_id=tenant_id, name="Closed Mills", is_active=False)
    wholesaler = Wholesaler(tenant_id=tenant_id, name="Metro Wholesale")
    reseller = Reseller(tenant_id=tenant_id, name="Priya Resells")
    retailer = Retailer(tenant_id=tenant_id, name="Corner Store")
    inactive_retailer = Retailer(tenant_id=tenant_id, name="Shut Shop", is_active=False)
    db_session.add_all([vendor, inactive_vendor, wholesaler, reseller, retailer, inactive_retailer])
    db_session.commit()

    return SimpleNamespace(
        vendor=vendor, inactive_vendor=inactive_vendor,
        wholesaler=wholesaler, reseller=reseller,
        retailer=retailer, inactive_retailer=inactive_retailer
    )
