import logging

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from .errors import NotFoundError, RestrictedDeleteError

logger = logging.getLogger(__name__)


def get_customer(db: Session, customer_id: int):
    return db.query(models.Customer).filter(models.Customer.id == customer_id).first()


def get_customer_by_email(db: Session, email: str):
    return db.query(models.Customer).filter(models.Customer.email == email).first()


def create_customer(db: Session, customer: schemas.CustomerCreate):
    db_customer = models.Customer(**customer.model_dump())
    db.add(db_customer)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    db.refresh(db_customer)
    return db_customer


def delete_customer(db: Session, customer_id: int):
    """Delete a customer together with their addresses and wishlists.

    Refused with RestrictedDeleteError while the customer has orders. Reviews
    they wrote are kept and lose their author.
    """
    db_customer = get_customer(db, customer_id)
    if not db_customer:
        return None
    has_orders = db.query(models.Order.id).filter(models.Order.customer_id == customer_id).first()
    if has_orders:
        raise RestrictedDeleteError(f"Customer {customer_id} has orders")
    try:
        db.execute(
            update(models.ProductReview)
            .where(models.ProductReview.customer_id == customer_id)
            .values(customer_id=None)
            .execution_options(synchronize_session=False)
        )
        db.delete(db_customer)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Deleted customer %s", customer_id)
    return db_customer


def get_address(db: Session, address_id: int):
    return db.query(models.Address).filter(models.Address.id == address_id).first()


def get_addresses(db: Session, customer_id: int):
    return (
        db.query(models.Address)
        .filter(models.Address.customer_id == customer_id)
        .order_by(models.Address.id)
        .all()
    )


def _clear_default(db: Session, customer_id: int, keep_id=None):
    query = update(models.Address).where(
        models.Address.customer_id == customer_id, models.Address.is_default.is_(True)
    )
    if keep_id is not None:
        query = query.where(models.Address.id != keep_id)
    db.execute(query.values(is_default=False).execution_options(synchronize_session=False))


def add_address(db: Session, customer_id: int, address: schemas.AddressCreate):
    """Add an address. A customer's first address, or one flagged default, becomes the only default."""
    if not get_customer(db, customer_id):
        raise NotFoundError("Customer not found")
    is_default = address.is_default or not get_addresses(db, customer_id)
    if is_default:
        _clear_default(db, customer_id)
    db_address = models.Address(customer_id=customer_id, **address.model_dump(exclude={"is_default"}))
    db_address.is_default = is_default
    db.add(db_address)
    db.commit()
    db.refresh(db_address)
    return db_address


def set_default_address(db: Session, address_id: int):
    db_address = get_address(db, address_id)
    if not db_address:
        return None
    _clear_default(db, db_address.customer_id, keep_id=db_address.id)
    db_address.is_default = True
    db.commit()
    db.refresh(db_address)
    return db_address


def delete_address(db: Session, address_id: int):
    """Delete an address. Orders that used it keep existing with a null reference."""
    db_address = get_address(db, address_id)
    if not db_address:
        return None
    try:
        db.execute(
            update(models.Order)
            .where(models.Order.billing_address_id == address_id)
            .values(billing_address_id=None)
            .execution_options(synchronize_session=False)
        )
        db.execute(
            update(models.Order)
            .where(models.Order.shipping_address_id == address_id)
            .values(shipping_address_id=None)
            .execution_options(synchronize_session=False)
        )
        db.delete(db_address)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return db_address


def address_in_use(db: Session, address_id: int) -> bool:
    return (
        db.query(models.Order.id)
        .filter(or_(models.Order.billing_address_id == address_id, models.Order.shipping_address_id == address_id))
        .first()
        is not None
    )
