"""Pytest fixtures for unit tests."""
from decimal import Decimal
from itertools import count

import pytest
from sqlalchemy.orm import sessionmaker

from storefront import crud, schemas
from storefront.database import make_engine
from storefront.models import Base


@pytest.fixture(scope="function")
def db():
    """Create an in-memory SQLite database for unit testing."""
    engine = make_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def customer(db):
    return crud.create_customer(
        db,
        schemas.CustomerCreate(first_name="John", last_name="Doe", email="john@example.com", password_hash="hash1"),
    )


@pytest.fixture
def address(db, customer):
    return crud.add_address(
        db, customer.id, schemas.AddressCreate(address_line1="123 Nairobi Rd", city="Nairobi", country="Kenya")
    )


@pytest.fixture
def make_product(db):
    """Factory for products with stock; SKUs are numbered per test."""
    numbers = count(1)

    def _make(price="10.00", stock=10, **kwargs):
        n = next(numbers)
        data = schemas.ProductCreate(
            sku=f"SKU-{n:03d}",
            name=f"Product {n}",
            price=Decimal(price),
            initial_stock=stock,
            **kwargs,
        )
        return crud.create_product(db, data)

    return _make


@pytest.fixture
def make_order(db, customer):
    """Factory for orders of ``(product, quantity)`` pairs at the products' prices."""

    def _make(*lines, shipping_cost="0.00", tax_amount="0.00"):
        return crud.create_order(
            db,
            schemas.OrderCreate(
                customer_id=customer.id,
                shipping_cost=Decimal(shipping_cost),
                tax_amount=Decimal(tax_amount),
                items=[schemas.OrderItemCreate(product_id=p.id, quantity=q) for p, q in lines],
            ),
        )

    return _make
