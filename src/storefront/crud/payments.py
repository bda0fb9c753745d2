"""Order ledger: payments and refunds.

Completed payments on an order never add up to more than its total_amount.
"""
import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, money, schemas
from .errors import NotFoundError, OverpaymentError, ValidationError, validate_amount, validate_input
from .orders import (
    REVERSAL_STATUSES,
    claim_order,
    completed_total,
    lock_order,
    refunded_total,
    sync_payment_status,
)

logger = logging.getLogger(__name__)

PaymentRecordStatus = models.PaymentRecordStatus


def get_payment(db: Session, payment_id: int):
    return db.query(models.Payment).filter(models.Payment.id == payment_id).first()


def get_payments(db: Session, order_id: int):
    return db.query(models.Payment).filter(models.Payment.order_id == order_id).order_by(models.Payment.id).all()


def paid_amount(db: Session, order_id: int):
    """Sum of completed payments on the order (refunds are not subtracted)."""
    db_order = db.get(models.Order, order_id)
    if not db_order:
        raise NotFoundError("Order not found")
    return completed_total(db_order)


def _ensure_payable(db_order):
    if db_order.status in REVERSAL_STATUSES:
        raise ValidationError(f"Order {db_order.id} is {db_order.status.value} and takes no payments")


def _settle(db_order, db_payment):
    """Mark ``db_payment`` completed against ``db_order``, enforcing the total."""
    paid = completed_total(db_order)
    if paid + db_payment.amount > db_order.total_amount:
        logger.warning(
            "Rejected payment of %s on order %s: %s already paid of %s",
            db_payment.amount,
            db_order.id,
            paid,
            db_order.total_amount,
        )
        raise OverpaymentError(
            f"Payment of {db_payment.amount} would bring order {db_order.id} to "
            f"{paid + db_payment.amount}, above its total {db_order.total_amount}"
        )
    db_payment.status = PaymentRecordStatus.COMPLETED
    db_payment.paid_at = datetime.now()
    if db_payment.method:
        db_order.payment_method = db_payment.method


def _mark_failed(db_order, db_payment):
    db_payment.status = PaymentRecordStatus.FAILED
    if completed_total(db_order) == 0 and db_order.payment_status == models.PaymentStatus.UNPAID:
        db_order.payment_status = models.PaymentStatus.FAILED


def _apply_payment(db_order, payment: schemas.PaymentCreate):
    _ensure_payable(db_order)
    db_payment = models.Payment(
        amount=money.to_money(payment.amount),
        method=payment.method,
        transaction_ref=payment.transaction_ref,
        status=PaymentRecordStatus.PENDING,
    )
    if payment.status == PaymentRecordStatus.COMPLETED:
        _settle(db_order, db_payment)
    db_order.payments.append(db_payment)
    if payment.status == PaymentRecordStatus.FAILED:
        _mark_failed(db_order, db_payment)
    sync_payment_status(db_order)
    return db_payment


def record_payment(db: Session, order_id: int, payment: schemas.PaymentCreate):
    """Record a payment against an order.

    A completed payment that would push the order's completed total above
    total_amount raises OverpaymentError; one that reaches it marks the order paid.
    """
    payment = validate_input(schemas.PaymentCreate, payment)
    try:
        db_order = lock_order(db, order_id)
        if not db_order:
            raise NotFoundError("Order not found")
        claim_order(db, db_order)
        db_payment = _apply_payment(db_order, payment)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_payment)
    logger.info(
        "Recorded %s payment %s of %s on order %s",
        db_payment.status.value,
        db_payment.id,
        db_payment.amount,
        order_id,
    )
    return db_payment


def _pending_payment(db: Session, payment_id: int):
    db_payment = get_payment(db, payment_id)
    if not db_payment:
        raise NotFoundError("Payment not found")
    if db_payment.status != PaymentRecordStatus.PENDING:
        raise ValidationError(f"Payment {payment_id} is {db_payment.status.value}, not pending")
    return db_payment


def complete_payment(db: Session, payment_id: int):
    """Settle a pending payment, with the same overpayment rule as record_payment."""
    try:
        db_payment = _pending_payment(db, payment_id)
        db_order = lock_order(db, db_payment.order_id)
        _ensure_payable(db_order)
        claim_order(db, db_order)
        _settle(db_order, db_payment)
        sync_payment_status(db_order)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_payment)
    logger.info("Completed payment %s on order %s", payment_id, db_payment.order_id)
    return db_payment


def fail_payment(db: Session, payment_id: int):
    try:
        db_payment = _pending_payment(db, payment_id)
        db_order = lock_order(db, db_payment.order_id)
        claim_order(db, db_order)
        _mark_failed(db_order, db_payment)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_payment)
    logger.info("Payment %s on order %s failed", payment_id, db_payment.order_id)
    return db_payment


def refund_payment(db: Session, payment_id: int, amount, transaction_ref=None):
    """Give back part or all of a completed payment as a new refund record.

    The refund may not exceed what is left of the original payment after
    earlier refunds of it. Once everything completed on the order has been
    refunded, the order's payment_status becomes refunded.
    """
    try:
        amount = validate_amount(amount)
        if amount <= 0:
            raise ValidationError("refund amount must be > 0")
        original = get_payment(db, payment_id)
        if not original:
            raise NotFoundError("Payment not found")
        if original.status != PaymentRecordStatus.COMPLETED:
            raise ValidationError(f"Payment {payment_id} is {original.status.value}; only completed payments refund")
        db_order = lock_order(db, original.order_id)
        claim_order(db, db_order)
        already = sum((p.amount for p in db_order.payments if p.refund_of_id == original.id), money.ZERO)
        refundable = money.to_money(original.amount - already)
        if amount > refundable:
            raise ValidationError(f"Refund of {amount} exceeds the {refundable} left on payment {payment_id}")
        refund = models.Payment(
            amount=amount,
            method=original.method,
            transaction_ref=transaction_ref or original.transaction_ref,
            status=PaymentRecordStatus.REFUNDED,
            refund_of_id=original.id,
            paid_at=datetime.now(),
        )
        db_order.payments.append(refund)
        if refunded_total(db_order) >= completed_total(db_order):
            db_order.payment_status = models.PaymentStatus.REFUNDED
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(refund)
    logger.info("Refunded %s of payment %s on order %s", amount, payment_id, refund.order_id)
    return refund


def process_payment_event(db: Session, event_id: str, order_id: int, amount, method=None):
    """Idempotent processing of a provider's "payment succeeded" notification.

    - Records the event id to prevent replays.
    - If recorded for the first time, records a completed payment.
    - Returns:
       - the new Payment if processed now
       - None if the event was already seen
       - Raises NotFoundError if the order does not exist
    """
    if not db.get(models.Order, order_id):
        raise NotFoundError("Order not found")
    if db.query(models.PaymentEvent).filter(models.PaymentEvent.event_id == event_id).first():
        logger.info("Ignoring replayed payment event %s", event_id)
        return None
    payment = validate_input(
        schemas.PaymentCreate, {"amount": amount, "method": method, "transaction_ref": event_id}
    )

    db.add(models.PaymentEvent(event_id=event_id))
    try:
        db.flush()
    except IntegrityError:
        # lost a race with another delivery of the same event
        db.rollback()
        return None

    try:
        db_order = lock_order(db, order_id)
        if not db_order:
            raise NotFoundError("Order not found")
        claim_order(db, db_order)
        db_payment = _apply_payment(db_order, payment)
        db.commit()  # event row and payment land together or not at all
    except Exception:
        db.rollback()
        raise
    db.refresh(db_payment)
    logger.info("Processed payment event %s for order %s", event_id, order_id)
    return db_payment
