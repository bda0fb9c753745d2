"""Order ledger: order headers, their lines, and the stock they hold.

Each public operation is one unit of work. It either commits every change it
made (order row, lines, inventory) or rolls the session back and re-raises.
"""
import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from .. import models, money, schemas
from .errors import (
    AlreadyReversedError,
    ConcurrentUpdateError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    OverpaymentError,
    ValidationError,
    validate_amount,
    validate_input,
)
from .inventory import InventoryGuard

logger = logging.getLogger(__name__)

OrderStatus = models.OrderStatus
PaymentStatus = models.PaymentStatus

ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.REFUNDED},
    OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),
    OrderStatus.REFUNDED: set(),
}

# entering one of these gives the order's stock back
REVERSAL_STATUSES = {OrderStatus.CANCELLED, OrderStatus.REFUNDED}

# lines can only be attached before the order ships
OPEN_STATUSES = {OrderStatus.PENDING, OrderStatus.PROCESSING}


def get_order(db: Session, order_id: int):
    return db.query(models.Order).filter(models.Order.id == order_id).first()


def lock_order(db: Session, order_id: int):
    """Load an order row FOR UPDATE, discarding any stale copy in the session."""
    return (
        db.query(models.Order)
        .filter(models.Order.id == order_id)
        .with_for_update(nowait=False)
        .populate_existing()
        .first()
    )


def claim_order(db: Session, db_order):
    """Compare-and-set the order's version against the copy we just read.

    Every write to an order's lines, payments or status claims it first, so
    two sessions acting on the same snapshot cannot both commit. Backends
    that ignore FOR UPDATE (SQLite) rely on this alone.
    """
    result = db.execute(
        update(models.Order)
        .where(models.Order.id == db_order.id, models.Order.version == db_order.version)
        .values(version=models.Order.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning("Order %s changed under us at version %s", db_order.id, db_order.version)
        raise ConcurrentUpdateError(f"Order {db_order.id} was modified concurrently; retry")


def get_orders_for_customer(db: Session, customer_id: int, status=None):
    query = db.query(models.Order).filter(models.Order.customer_id == customer_id)
    if status is not None:
        query = query.filter(models.Order.status == OrderStatus(status))
    return query.order_by(models.Order.id).all()


def get_order_detail(db: Session, order_id: int):
    db_order = get_order(db, order_id)
    if not db_order:
        return None
    return schemas.OrderDetail.model_validate(db_order)


def completed_total(order):
    return money.to_money(
        sum(
            (p.amount for p in order.payments if p.status == models.PaymentRecordStatus.COMPLETED),
            money.ZERO,
        )
    )


def refunded_total(order):
    return money.to_money(
        sum(
            (p.amount for p in order.payments if p.status == models.PaymentRecordStatus.REFUNDED),
            money.ZERO,
        )
    )


def recompute_totals(order):
    """subtotal = sum of line totals; total = subtotal + shipping + tax."""
    order.subtotal = money.to_money(sum((item.line_total for item in order.items), money.ZERO))
    order.total_amount = money.to_money(order.subtotal + order.shipping_cost + order.tax_amount)
    return order


def sync_payment_status(order):
    """Flip to PAID when completed payments cover the total, back to UNPAID when they no longer do."""
    if order.payment_status == PaymentStatus.REFUNDED:
        return order
    paid = completed_total(order)
    # a zero total is settled without any payment
    if paid >= order.total_amount:
        if order.payment_status != PaymentStatus.PAID:
            order.payment_status = PaymentStatus.PAID
            logger.info("Order %s is fully paid (%s)", order.id, paid)
    elif order.payment_status == PaymentStatus.PAID or (
        paid > 0 and order.payment_status == PaymentStatus.FAILED
    ):
        order.payment_status = PaymentStatus.UNPAID
    return order


def _check_address(db: Session, address_id, customer_id: int):
    if address_id is None:
        return
    address = db.get(models.Address, address_id)
    if not address or address.customer_id != customer_id:
        raise ValidationError(f"Address {address_id} does not belong to customer {customer_id}")


def _build_line(db: Session, item: schemas.OrderItemCreate):
    product = db.get(models.Product, item.product_id)
    if not product:
        raise NotFoundError(f"Product {item.product_id} not found")
    if not product.active:
        raise ValidationError(f"Product {item.product_id} is not active")
    # snapshot: later price changes on the product do not touch this line
    unit_price = money.to_money(product.price if item.unit_price is None else item.unit_price)
    discount = money.to_money(item.discount)
    total = money.line_total(unit_price, item.quantity, discount)
    if total < 0:
        raise ValidationError(f"Discount {discount} exceeds the value of the line for product {item.product_id}")
    return models.OrderItem(
        product_id=item.product_id,
        unit_price=unit_price,
        quantity=item.quantity,
        discount=discount,
        line_total=total,
    )


def _reserve_lines(db: Session, lines):
    guard = InventoryGuard(db)
    # fixed lock order across orders
    for line in sorted(lines, key=lambda line: line.product_id):
        if not guard.reserve(line.product_id, line.quantity):
            raise InsufficientStockError(f"Insufficient stock for product {line.product_id}")


def create_order(db: Session, order: schemas.OrderCreate):
    """Create a pending order, its lines, and the stock reservations for them, atomically."""
    order = validate_input(schemas.OrderCreate, order)
    try:
        if not db.get(models.Customer, order.customer_id):
            raise NotFoundError("Customer not found")
        _check_address(db, order.billing_address_id, order.customer_id)
        _check_address(db, order.shipping_address_id, order.customer_id)

        lines = [_build_line(db, item) for item in order.items]
        _reserve_lines(db, lines)

        db_order = models.Order(
            customer_id=order.customer_id,
            billing_address_id=order.billing_address_id,
            shipping_address_id=order.shipping_address_id,
            shipping_cost=money.to_money(order.shipping_cost),
            tax_amount=money.to_money(order.tax_amount),
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.UNPAID,
            items=lines,
        )
        recompute_totals(db_order)
        db.add(db_order)
        db.flush()
        sync_payment_status(db_order)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_order)
    logger.info(
        "Created order %s for customer %s: %s lines, total %s",
        db_order.id,
        db_order.customer_id,
        len(lines),
        db_order.total_amount,
    )
    return db_order


def add_order_item(db: Session, order_id: int, item: schemas.OrderItemCreate):
    """Attach one more line to an order that has not shipped yet."""
    item = validate_input(schemas.OrderItemCreate, item)
    try:
        db_order = lock_order(db, order_id)
        if not db_order:
            raise NotFoundError("Order not found")
        if db_order.status not in OPEN_STATUSES:
            raise ValidationError(f"Cannot add items to a {db_order.status.value} order")
        if any(line.product_id == item.product_id for line in db_order.items):
            raise ValidationError(f"Product {item.product_id} is already on order {order_id}")
        claim_order(db, db_order)
        line = _build_line(db, item)
        _reserve_lines(db, [line])
        db_order.items.append(line)
        recompute_totals(db_order)
        sync_payment_status(db_order)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_order)
    logger.info("Added product %s x %s to order %s", item.product_id, item.quantity, order_id)
    return db_order


def update_charges(db: Session, order_id: int, shipping_cost=None, tax_amount=None):
    """Change shipping and/or tax on a pending order and recompute its total."""
    try:
        db_order = lock_order(db, order_id)
        if not db_order:
            raise NotFoundError("Order not found")
        if db_order.status != OrderStatus.PENDING:
            raise ValidationError(f"Charges are fixed once an order is {db_order.status.value}")
        claim_order(db, db_order)
        if shipping_cost is not None:
            shipping_cost = validate_amount(shipping_cost, "shipping_cost")
            if shipping_cost < 0:
                raise ValidationError("shipping_cost must be >= 0")
            db_order.shipping_cost = shipping_cost
        if tax_amount is not None:
            tax_amount = validate_amount(tax_amount, "tax_amount")
            if tax_amount < 0:
                raise ValidationError("tax_amount must be >= 0")
            db_order.tax_amount = tax_amount
        recompute_totals(db_order)
        paid = completed_total(db_order)
        if paid > db_order.total_amount:
            raise OverpaymentError(
                f"Order {order_id} total {db_order.total_amount} would fall below the {paid} already paid"
            )
        sync_payment_status(db_order)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_order)
    return db_order


def transition_status(db: Session, order_id: int, new_status):
    """Move an order along its lifecycle.

    Allowed transitions:
    - pending -> processing | cancelled
    - processing -> shipped | cancelled | refunded
    - shipped -> delivered | refunded
    - delivered -> refunded
    - cancelled, refunded -> (no transitions)

    Entering cancelled or refunded gives every line's stock back, once per
    order; a second reversal raises AlreadyReversedError.
    """
    try:
        new_status = OrderStatus(new_status)
    except ValueError:
        raise ValidationError(f"invalid status {new_status!r}") from None
    try:
        db_order = lock_order(db, order_id)
        if not db_order:
            raise NotFoundError("Order not found")
        current = db_order.status
        if new_status in REVERSAL_STATUSES and db_order.inventory_released_at is not None:
            raise AlreadyReversedError(f"Stock for order {order_id} was already restored")
        if new_status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(f"Invalid transition from {current.value} to {new_status.value}")

        claim_order(db, db_order)
        values = {"status": new_status}
        if new_status in REVERSAL_STATUSES:
            guard = InventoryGuard(db)
            for item in db_order.items:
                guard.release(item.product_id, item.quantity)
            values["inventory_released_at"] = datetime.now()

        db.execute(
            update(models.Order)
            .where(models.Order.id == order_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_order)
    if new_status in REVERSAL_STATUSES:
        logger.info("Order %s %s; stock restored for %s lines", order_id, new_status.value, len(db_order.items))
    else:
        logger.info("Order %s %s -> %s", order_id, current.value, new_status.value)
    return db_order
