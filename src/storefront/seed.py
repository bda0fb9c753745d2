"""Demo data: two customers, a small catalog, and one paid order of 1358.50.

Run ``python -m storefront.seed`` to create the tables and load it into the
database named by DATABASE_URL.
"""
import logging
from decimal import Decimal

from . import crud, schemas

logger = logging.getLogger(__name__)


def load_sample_data(db, stock: int = 50):
    """Insert the sample rows through the crud layer and return what was created."""
    john = crud.create_customer(db, schemas.CustomerCreate(
        first_name="John", last_name="Doe", email="john@example.com", phone="+254700000000", password_hash="hash1"
    ))
    jane = crud.create_customer(db, schemas.CustomerCreate(
        first_name="Jane", last_name="Smith", email="jane@example.com", phone="+254711111111", password_hash="hash2"
    ))
    john_home = crud.add_address(db, john.id, schemas.AddressCreate(
        label="home", address_line1="123 Nairobi Rd", city="Nairobi", country="Kenya", is_default=True
    ))
    crud.add_address(db, jane.id, schemas.AddressCreate(
        label="home", address_line1="456 Mombasa Rd", city="Mombasa", country="Kenya", is_default=True
    ))

    electronics = crud.create_category(db, schemas.CategoryCreate(name="Electronics", slug="electronics"))
    accessories = crud.create_category(db, schemas.CategoryCreate(name="Accessories", slug="accessories"))
    acme = crud.create_supplier(db, schemas.SupplierCreate(name="Acme Supplies", contact_email="acme@example.com"))

    laptop = crud.create_product(db, schemas.ProductCreate(
        sku="SKU-001", name="Laptop Pro", description="High performance laptop", price=Decimal("1200.00"),
        initial_stock=stock, category_ids=[electronics.id],
    ))
    mouse = crud.create_product(db, schemas.ProductCreate(
        sku="SKU-002", name="Wireless Mouse", description="Ergonomic wireless mouse", price=Decimal("25.00"),
        initial_stock=stock, category_ids=[accessories.id],
    ))
    keyboard = crud.create_product(db, schemas.ProductCreate(
        sku="SKU-003", name="Keyboard", description="Mechanical keyboard", price=Decimal("60.00"),
        initial_stock=stock, category_ids=[accessories.id],
    ))
    crud.link_supplier(db, laptop.id, acme.id, supplier_sku="A-100")

    order = crud.create_order(db, schemas.OrderCreate(
        customer_id=john.id,
        billing_address_id=john_home.id,
        shipping_address_id=john_home.id,
        shipping_cost=Decimal("10.00"),
        tax_amount=Decimal("123.50"),
        items=[
            schemas.OrderItemCreate(product_id=laptop.id, quantity=1, unit_price=Decimal("1200.00")),
            schemas.OrderItemCreate(product_id=mouse.id, quantity=1, unit_price=Decimal("25.00")),
        ],
    ))
    payment = crud.record_payment(db, order.id, schemas.PaymentCreate(
        amount=Decimal("1358.50"), method="card", transaction_ref="txn_12345"
    ))
    logger.info("Loaded sample data: order %s total %s", order.id, order.total_amount)
    return {
        "customers": [john, jane],
        "categories": [electronics, accessories],
        "supplier": acme,
        "products": [laptop, mouse, keyboard],
        "order": order,
        "payment": payment,
    }


if __name__ == "__main__":
    from .database import SessionLocal, init_db
    from .logging_config import configure_logging

    configure_logging()
    init_db()
    session = SessionLocal()
    try:
        load_sample_data(session)
    finally:
        session.close()
