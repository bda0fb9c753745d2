"""Unit tests for CRUD operations on Order model."""
import logging
from decimal import Decimal

import pytest
from sqlalchemy import update

from storefront import models, schemas, crud


class TestCreateOrder:
    """Tests for create_order."""

    def test_create_order_computes_totals(self, db, customer, make_product):
        """create_order derives line totals, subtotal and total from the lines."""
        laptop = make_product(price="1200.00")
        mouse = make_product(price="25.00")
        order_data = schemas.OrderCreate(
            customer_id=customer.id,
            shipping_cost=Decimal("10.00"),
            tax_amount=Decimal("123.50"),
            items=[
                schemas.OrderItemCreate(product_id=laptop.id, quantity=1),
                schemas.OrderItemCreate(product_id=mouse.id, quantity=2, discount=Decimal("5.00")),
            ],
        )
        order = crud.create_order(db, order_data)

        assert order.status == models.OrderStatus.PENDING
        assert order.payment_status == models.PaymentStatus.UNPAID
        lines = {item.product_id: item for item in order.items}
        assert lines[mouse.id].line_total == Decimal("45.00")
        assert order.subtotal == Decimal("1245.00")
        assert order.total_amount == Decimal("1378.50")
        assert order.total_amount == order.subtotal + order.shipping_cost + order.tax_amount

    def test_create_order_reserves_stock(self, db, make_product, make_order):
        """create_order decrements quantity_on_hand for every line."""
        product = make_product(stock=10)
        make_order((product, 4))

        assert crud.get_inventory(db, product.id).quantity_on_hand == 6

    def test_create_order_snapshots_current_price(self, db, make_product, make_order):
        """Omitted unit_price takes the product price at order time and keeps it."""
        product = make_product(price="19.99")
        order = make_order((product, 1))

        crud.update_product_partial(db, product.id, schemas.ProductUpdate(price=Decimal("29.99")))

        db.refresh(order)
        assert order.items[0].unit_price == Decimal("19.99")
        assert order.total_amount == Decimal("19.99")

    def test_create_order_explicit_unit_price(self, db, customer, make_product):
        """An explicit unit_price overrides the catalog price."""
        product = make_product(price="50.00")
        order = crud.create_order(
            db,
            schemas.OrderCreate(
                customer_id=customer.id,
                items=[schemas.OrderItemCreate(product_id=product.id, quantity=3, unit_price=Decimal("40.00"))],
            ),
        )
        assert order.items[0].line_total == Decimal("120.00")

    def test_create_order_accepts_mapping(self, db, customer, make_product):
        """create_order validates a plain dict the same way as the schema."""
        product = make_product(price="2.50")
        order = crud.create_order(
            db, {"customer_id": customer.id, "items": [{"product_id": product.id, "quantity": 4}]}
        )
        assert order.total_amount == Decimal("10.00")

    def test_create_order_insufficient_stock_raises_error(self, db, make_product, make_order):
        """A short line fails the whole order and leaves every stock level untouched."""
        plenty = make_product(stock=5)
        scarce = make_product(stock=1)

        with pytest.raises(crud.InsufficientStockError):
            make_order((plenty, 2), (scarce, 3))

        assert crud.get_inventory(db, plenty.id).quantity_on_hand == 5
        assert crud.get_inventory(db, scarce.id).quantity_on_hand == 1
        assert db.query(models.Order).count() == 0

    def test_insufficient_stock_is_validation_error(self):
        """InsufficientStockError is reported as a validation failure."""
        assert issubclass(crud.InsufficientStockError, crud.ValidationError)

    def test_create_order_product_not_found_raises_error(self, db, customer):
        """create_order raises NotFoundError for an unknown product."""
        with pytest.raises(crud.NotFoundError):
            crud.create_order(db, {"customer_id": customer.id, "items": [{"product_id": 999, "quantity": 1}]})

    def test_create_order_inactive_product_raises_error(self, db, make_product, make_order):
        """Inactive products cannot be ordered."""
        product = make_product(active=False)
        with pytest.raises(crud.ValidationError, match="not active"):
            make_order((product, 1))

    def test_create_order_customer_not_found_raises_error(self, db, make_product):
        """create_order raises NotFoundError for an unknown customer."""
        product = make_product()
        with pytest.raises(crud.NotFoundError):
            crud.create_order(db, {"customer_id": 999, "items": [{"product_id": product.id, "quantity": 1}]})

    def test_create_order_foreign_address_raises_error(self, db, customer, make_product):
        """Billing and shipping addresses must belong to the ordering customer."""
        other = crud.create_customer(
            db, schemas.CustomerCreate(first_name="Jane", last_name="Smith", email="jane@example.com", password_hash="x")
        )
        theirs = crud.add_address(
            db, other.id, schemas.AddressCreate(address_line1="456 Mombasa Rd", city="Mombasa", country="Kenya")
        )
        product = make_product()
        with pytest.raises(crud.ValidationError, match="does not belong"):
            crud.create_order(
                db,
                {
                    "customer_id": customer.id,
                    "shipping_address_id": theirs.id,
                    "items": [{"product_id": product.id, "quantity": 1}],
                },
            )

    @pytest.mark.parametrize(
        "item",
        [
            {"quantity": 0},
            {"quantity": -1},
            {"quantity": 1, "unit_price": "-1.00"},
            {"quantity": 1, "discount": "-0.01"},
        ],
    )
    def test_create_order_rejects_bad_lines(self, db, customer, make_product, item):
        """Non-positive quantities and negative prices or discounts are rejected."""
        product = make_product()
        with pytest.raises(crud.ValidationError):
            crud.create_order(db, {"customer_id": customer.id, "items": [{"product_id": product.id, **item}]})
        assert crud.get_inventory(db, product.id).quantity_on_hand == 10

    def test_create_order_discount_above_line_raises_error(self, db, customer, make_product):
        """A discount larger than price * quantity is rejected."""
        product = make_product(price="10.00")
        with pytest.raises(crud.ValidationError, match="exceeds"):
            crud.create_order(
                db,
                {"customer_id": customer.id, "items": [{"product_id": product.id, "quantity": 2, "discount": "20.01"}]},
            )

    def test_create_order_zero_total_is_paid(self, db, customer, make_product):
        """A fully discounted order owes nothing and is settled from the start."""
        product = make_product(price="15.00")
        order = crud.create_order(
            db,
            {"customer_id": customer.id, "items": [{"product_id": product.id, "quantity": 2, "discount": "30.00"}]},
        )

        assert order.total_amount == Decimal("0.00")
        assert order.payment_status == models.PaymentStatus.PAID

        order = crud.update_charges(db, order.id, shipping_cost="5.00")
        assert order.payment_status == models.PaymentStatus.UNPAID

    def test_create_order_duplicate_product_raises_error(self, db, customer, make_product):
        """A product may appear on only one line of an order."""
        product = make_product()
        with pytest.raises(crud.ValidationError):
            crud.create_order(
                db,
                {
                    "customer_id": customer.id,
                    "items": [{"product_id": product.id, "quantity": 1}, {"product_id": product.id, "quantity": 2}],
                },
            )


class TestOrderQueries:
    """Tests for order lookups."""

    def test_get_order_not_found(self, db):
        """get_order returns None if order not found."""
        assert crud.get_order(db, 999) is None

    def test_get_orders_for_customer_filters_status(self, db, customer, make_product, make_order):
        """get_orders_for_customer narrows by status when given one."""
        product = make_product(stock=10)
        first = make_order((product, 1))
        second = make_order((product, 1))
        crud.transition_status(db, second.id, models.OrderStatus.PROCESSING)

        assert [o.id for o in crud.get_orders_for_customer(db, customer.id)] == [first.id, second.id]
        assert [o.id for o in crud.get_orders_for_customer(db, customer.id, "processing")] == [second.id]

    def test_get_order_detail(self, db, make_product, make_order):
        """get_order_detail returns the order with its lines and payments."""
        product = make_product(price="12.00")
        order = make_order((product, 2))
        crud.record_payment(db, order.id, schemas.PaymentCreate(amount=Decimal("5.00"), method="card"))

        detail = crud.get_order_detail(db, order.id)
        assert isinstance(detail, schemas.OrderDetail)
        assert detail.total_amount == Decimal("24.00")
        assert [item.quantity for item in detail.items] == [2]
        assert [p.amount for p in detail.payments] == [Decimal("5.00")]
        assert crud.get_order_detail(db, 999) is None


class TestAddOrderItem:
    """Tests for add_order_item."""

    def test_add_order_item_reserves_and_recomputes(self, db, make_product, make_order):
        """A new line reserves its stock and is included in the totals."""
        first = make_product(price="10.00")
        second = make_product(price="3.00", stock=5)
        order = make_order((first, 1), shipping_cost="2.00")

        order = crud.add_order_item(db, order.id, schemas.OrderItemCreate(product_id=second.id, quantity=2))

        assert order.subtotal == Decimal("16.00")
        assert order.total_amount == Decimal("18.00")
        assert crud.get_inventory(db, second.id).quantity_on_hand == 3

    def test_add_order_item_duplicate_product_raises_error(self, db, make_product, make_order):
        """A product already on the order cannot be added again."""
        product = make_product()
        order = make_order((product, 1))
        with pytest.raises(crud.ValidationError, match="already on order"):
            crud.add_order_item(db, order.id, {"product_id": product.id, "quantity": 1})
        assert crud.get_inventory(db, product.id).quantity_on_hand == 9

    def test_add_order_item_after_shipping_raises_error(self, db, make_product, make_order):
        """Lines cannot be attached once the order has shipped."""
        first = make_product()
        second = make_product()
        order = make_order((first, 1))
        crud.transition_status(db, order.id, "processing")
        crud.transition_status(db, order.id, "shipped")

        with pytest.raises(crud.ValidationError):
            crud.add_order_item(db, order.id, {"product_id": second.id, "quantity": 1})
        assert crud.get_inventory(db, second.id).quantity_on_hand == 10

    def test_add_order_item_insufficient_stock_raises_error(self, db, make_product, make_order):
        """A short new line leaves the order as it was."""
        first = make_product(price="10.00")
        second = make_product(stock=1)
        order = make_order((first, 1))

        with pytest.raises(crud.InsufficientStockError):
            crud.add_order_item(db, order.id, {"product_id": second.id, "quantity": 2})

        order = crud.get_order(db, order.id)
        assert len(order.items) == 1
        assert order.total_amount == Decimal("10.00")


class TestUpdateCharges:
    """Tests for update_charges."""

    def test_update_charges_recomputes_total(self, db, make_product, make_order):
        """Shipping and tax changes flow into total_amount."""
        product = make_product(price="100.00")
        order = make_order((product, 1))

        order = crud.update_charges(db, order.id, shipping_cost="7.50", tax_amount="16.00")
        assert order.total_amount == Decimal("123.50")

    def test_update_charges_below_paid_raises_error(self, db, make_product, make_order):
        """The total may not fall below what has already been paid."""
        product = make_product(price="10.00")
        order = make_order((product, 2), shipping_cost="5.00")
        crud.record_payment(db, order.id, schemas.PaymentCreate(amount=Decimal("25.00")))

        with pytest.raises(crud.OverpaymentError):
            crud.update_charges(db, order.id, shipping_cost="0.00")
        assert crud.get_order(db, order.id).shipping_cost == Decimal("5.00")

    def test_update_charges_after_pending_raises_error(self, db, make_product, make_order):
        """Charges are fixed once the order leaves pending."""
        product = make_product()
        order = make_order((product, 1))
        crud.transition_status(db, order.id, "processing")

        with pytest.raises(crud.ValidationError):
            crud.update_charges(db, order.id, tax_amount="1.00")

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", "-Infinity", float("nan"), float("inf")])
    def test_update_charges_non_numeric_raises_error(self, db, make_product, make_order, value):
        """Garbage and non-finite charges are validation errors and change nothing."""
        product = make_product(price="10.00")
        order = make_order((product, 1), shipping_cost="2.00")

        with pytest.raises(crud.ValidationError, match="finite decimal"):
            crud.update_charges(db, order.id, shipping_cost=value)
        with pytest.raises(crud.ValidationError, match="finite decimal"):
            crud.update_charges(db, order.id, tax_amount=value)

        order = crud.get_order(db, order.id)
        assert order.shipping_cost == Decimal("2.00")
        assert order.total_amount == Decimal("12.00")


class TestTransitionStatus:
    """Tests for transition_status."""

    def test_transition_status_happy_path(self, db, make_product, make_order):
        """pending -> processing -> shipped -> delivered is allowed."""
        product = make_product()
        order = make_order((product, 1))
        for status in ("processing", "shipped", "delivered"):
            order = crud.transition_status(db, order.id, status)
        assert order.status == models.OrderStatus.DELIVERED

    @pytest.mark.parametrize(
        "path, target",
        [
            ([], models.OrderStatus.SHIPPED),
            ([], models.OrderStatus.REFUNDED),
            ([], models.OrderStatus.PENDING),
            (["processing", "shipped"], models.OrderStatus.CANCELLED),
            (["processing", "shipped", "delivered"], models.OrderStatus.PENDING),
        ],
    )
    def test_transition_status_invalid_raises_error(self, db, make_product, make_order, path, target):
        """Transitions outside the lifecycle graph raise InvalidTransitionError."""
        product = make_product()
        order = make_order((product, 1))
        for status in path:
            crud.transition_status(db, order.id, status)

        with pytest.raises(crud.InvalidTransitionError, match="Invalid transition"):
            crud.transition_status(db, order.id, target)

    def test_transition_status_unknown_status_raises_error(self, db, make_product, make_order):
        """An unknown status name is a validation error."""
        product = make_product()
        order = make_order((product, 1))
        with pytest.raises(crud.ValidationError):
            crud.transition_status(db, order.id, "lost")

    def test_transition_status_order_not_found_raises_error(self, db):
        """transition_status raises NotFoundError for an unknown order."""
        with pytest.raises(crud.NotFoundError):
            crud.transition_status(db, 999, "processing")

    def test_cancel_restores_stock(self, db, make_product, make_order):
        """Cancelling gives back exactly the reserved quantities."""
        first = make_product(stock=10)
        second = make_product(stock=4)
        order = make_order((first, 5), (second, 4))
        assert crud.get_inventory(db, second.id).quantity_on_hand == 0

        order = crud.transition_status(db, order.id, models.OrderStatus.CANCELLED)

        assert order.inventory_released_at is not None
        assert crud.get_inventory(db, first.id).quantity_on_hand == 10
        assert crud.get_inventory(db, second.id).quantity_on_hand == 4

    def test_cancel_twice_raises_error(self, db, make_product, make_order):
        """A second reversal raises AlreadyReversedError and restores nothing."""
        product = make_product(stock=10)
        order = make_order((product, 3))
        crud.transition_status(db, order.id, "cancelled")

        with pytest.raises(crud.AlreadyReversedError):
            crud.transition_status(db, order.id, "cancelled")
        with pytest.raises(crud.AlreadyReversedError):
            crud.transition_status(db, order.id, "refunded")
        assert crud.get_inventory(db, product.id).quantity_on_hand == 10

    def test_refund_after_delivery_restores_stock(self, db, make_product, make_order):
        """Refunding a delivered order returns its stock once."""
        product = make_product(stock=3)
        order = make_order((product, 2))
        for status in ("processing", "shipped", "delivered", "refunded"):
            order = crud.transition_status(db, order.id, status)

        assert order.status == models.OrderStatus.REFUNDED
        assert crud.get_inventory(db, product.id).quantity_on_hand == 3

    def test_cancelled_order_is_terminal(self, db, make_product, make_order):
        """Nothing leaves cancelled."""
        product = make_product()
        order = make_order((product, 1))
        crud.transition_status(db, order.id, "cancelled")

        with pytest.raises(crud.InvalidTransitionError):
            crud.transition_status(db, order.id, "processing")


class TestClaimOrder:
    """Tests for the per-order version claim taken by every ledger write."""

    def test_writes_bump_version(self, db, make_product, make_order):
        """Each committed write moves the order to the next version."""
        product = make_product(price="10.00")
        order = make_order((product, 1))
        assert order.version == 0

        crud.update_charges(db, order.id, shipping_cost="1.00")
        crud.record_payment(db, order.id, {"amount": "11.00"})
        order = crud.transition_status(db, order.id, "processing")

        assert order.version == 3

    def test_stale_copy_raises_error(self, db, make_product, make_order, caplog):
        """A claim against a version someone else already moved past is refused."""
        product = make_product()
        order = make_order((product, 1))
        stale = crud.get_order(db, order.id)
        db.execute(
            update(models.Order)
            .where(models.Order.id == order.id)
            .values(version=models.Order.version + 1)
            .execution_options(synchronize_session=False)
        )

        with caplog.at_level(logging.WARNING):
            with pytest.raises(crud.ConcurrentUpdateError):
                crud.claim_order(db, stale)
        db.rollback()

        assert "changed under us" in caplog.text
        assert crud.get_order(db, order.id).version == 0

