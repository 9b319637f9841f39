import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SEARCH_DEBOUNCE_SECONDS", "0")

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from motopos.core.numbering import random_code  # noqa: E402
from motopos.db.database import Base, SessionLocal, engine  # noqa: E402
from motopos.main import app  # noqa: E402
from motopos.models import Customer, Motorcycle, Product  # noqa: E402


class TestDataFactory:
    """Rows for tests, committed straight through the session."""

    __test__ = False

    @staticmethod
    def create_product(db, name=None, stock=10, retail="100", wholesale="80", **extra) -> Product:
        product = Product(
            name=name or f"Product {random_code(4)}",
            sku=extra.pop("sku", None) or f"P-{random_code(8)}",
            retail_price=Decimal(retail),
            wholesale_price=Decimal(wholesale),
            purchase_price=Decimal("0"),
            stock_quantity=stock,
            low_stock_threshold=2,
            is_active=True,
            **extra,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    @staticmethod
    def create_motorcycle(db, name=None, stock=3, retail="1500", wholesale="1200", **extra) -> Motorcycle:
        motorcycle = Motorcycle(
            name=name or f"Motorcycle {random_code(4)}",
            sku=extra.pop("sku", None) or f"M-{random_code(8)}",
            usd_retail_price=Decimal(retail),
            usd_wholesale_price=Decimal(wholesale),
            stock_quantity=stock,
            low_stock_threshold=1,
            **extra,
        )
        db.add(motorcycle)
        db.commit()
        db.refresh(motorcycle)
        return motorcycle

    @staticmethod
    def create_customer(db, name=None, debt_iqd="0", debt_usd="0") -> Customer:
        customer = Customer(
            name=name or f"Customer {random_code(4)}",
            sku=f"C-{random_code(8)}",
            debt_iqd=Decimal(debt_iqd),
            debt_usd=Decimal(debt_usd),
            current_balance=Decimal(debt_iqd),
        )
        db.add(customer)
        db.commit()
        db.refresh(customer)
        return customer


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def factory():
    return TestDataFactory
