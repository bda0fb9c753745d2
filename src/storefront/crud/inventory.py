import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from .. import models
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class InventoryGuard:
    """The only code that changes ``quantity_on_hand``.

    Both operations are single conditional UPDATE statements, so the check and
    the change happen in one step on the database row and two sessions can never
    both take the last unit. The guard joins the caller's transaction and never
    commits; the caller decides when the unit of work is done.
    """

    def __init__(self, db: Session):
        self.db = db

    def reserve(self, product_id: int, quantity: int) -> bool:
        """Take ``quantity`` units. Returns False, changing nothing, if stock is short."""
        if quantity <= 0:
            raise ValidationError("quantity must be > 0")
        result = self.db.execute(
            update(models.Inventory)
            .where(
                models.Inventory.product_id == product_id,
                models.Inventory.quantity_on_hand >= quantity,
            )
            .values(quantity_on_hand=models.Inventory.quantity_on_hand - quantity)
            .execution_options(synchronize_session=False)
        )
        reserved = result.rowcount == 1
        if not reserved:
            logger.warning("Reservation of %s x product %s rejected", quantity, product_id)
        return reserved

    def release(self, product_id: int, quantity: int) -> None:
        """Give ``quantity`` units back."""
        if quantity <= 0:
            raise ValidationError("quantity must be > 0")
        result = self.db.execute(
            update(models.Inventory)
            .where(models.Inventory.product_id == product_id)
            .values(quantity_on_hand=models.Inventory.quantity_on_hand + quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFoundError(f"No inventory record for product {product_id}")


def get_inventory(db: Session, product_id: int):
    return db.query(models.Inventory).filter(models.Inventory.product_id == product_id).first()


def replenish(db: Session, product_id: int, quantity: int):
    """Add received stock and return the refreshed inventory record."""
    try:
        InventoryGuard(db).release(product_id, quantity)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Replenished product %s by %s", product_id, quantity)
    inventory = get_inventory(db, product_id)
    db.refresh(inventory)
    return inventory


def set_reorder_level(db: Session, product_id: int, reorder_level: int):
    if reorder_level < 0:
        raise ValidationError("reorder_level must be >= 0")
    inventory = get_inventory(db, product_id)
    if not inventory:
        return None
    inventory.reorder_level = reorder_level
    db.commit()
    db.refresh(inventory)
    return inventory


def get_low_stock(db: Session):
    """Active products at or below their reorder level, lowest stock first."""
    return (
        db.query(models.Inventory)
        .join(models.Product, models.Product.id == models.Inventory.product_id)
        .filter(
            models.Product.active.is_(True),
            models.Inventory.quantity_on_hand <= models.Inventory.reorder_level,
        )
        .order_by(models.Inventory.quantity_on_hand, models.Inventory.product_id)
        .all()
    )
