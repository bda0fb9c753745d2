import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..money import to_money
from .categories import load_categories
from .errors import NotFoundError, RestrictedDeleteError, ValidationError

logger = logging.getLogger(__name__)


def get_product(db: Session, product_id: int):
    return db.query(models.Product).filter(models.Product.id == product_id).first()


def get_product_by_sku(db: Session, sku: str):
    return db.query(models.Product).filter(models.Product.sku == sku).first()


def get_products(db: Session, skip: int = 0, limit: int = 100, active_only: bool = False):
    query = db.query(models.Product)
    if active_only:
        query = query.filter(models.Product.active.is_(True))
    return query.order_by(models.Product.id).offset(skip).limit(limit).all()


def count_products(db: Session):
    return db.query(models.Product).count()


def create_product(db: Session, product: schemas.ProductCreate):
    """Create a product together with its (single) inventory record."""
    db_product = models.Product(
        sku=product.sku,
        name=product.name,
        description=product.description,
        price=to_money(product.price),
        cost_price=to_money(product.cost_price),
        weight_kg=product.weight_kg,
        active=product.active,
    )
    db_product.inventory = models.Inventory(
        quantity_on_hand=product.initial_stock, reorder_level=product.reorder_level
    )
    if product.category_ids:
        db_product.categories = load_categories(db, product.category_ids)
    db.add(db_product)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    db.refresh(db_product)
    logger.info("Created product %s (%s)", db_product.id, db_product.sku)
    return db_product


def update_product(db: Session, product_id: int, product: schemas.ProductBase):
    """Replace the catalog fields of a product. Stock is not touched here."""
    db_product = get_product(db, product_id)
    if not db_product:
        return None
    db_product.sku = product.sku
    db_product.name = product.name
    db_product.description = product.description
    db_product.price = to_money(product.price)
    db_product.cost_price = to_money(product.cost_price)
    db_product.weight_kg = product.weight_kg
    db_product.active = product.active
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    db.refresh(db_product)
    return db_product


def update_product_partial(db: Session, product_id: int, product: schemas.ProductUpdate):
    db_product = get_product(db, product_id)
    if not db_product:
        return None
    # Only update provided fields
    for field, value in product.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        if field in ("price", "cost_price"):
            value = to_money(value)
        setattr(db_product, field, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    db.refresh(db_product)
    return db_product


def delete_product(db: Session, product_id: int):
    """Delete a product with its inventory, reviews, wishlist entries and links.

    Refused with RestrictedDeleteError while any order line references it.
    """
    db_product = get_product(db, product_id)
    if not db_product:
        return None
    referenced = (
        db.query(models.OrderItem.order_id).filter(models.OrderItem.product_id == product_id).first()
    )
    if referenced:
        raise RestrictedDeleteError(f"Product {product_id} is referenced by order {referenced.order_id}")
    try:
        db.query(models.ProductReview).filter(models.ProductReview.product_id == product_id).delete(
            synchronize_session=False
        )
        db.query(models.WishlistItem).filter(models.WishlistItem.product_id == product_id).delete(
            synchronize_session=False
        )
        db.delete(db_product)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Deleted product %s", product_id)
    return db_product


def create_supplier(db: Session, supplier: schemas.SupplierCreate):
    db_supplier = models.Supplier(**supplier.model_dump())
    db.add(db_supplier)
    db.commit()
    db.refresh(db_supplier)
    return db_supplier


def link_supplier(db: Session, product_id: int, supplier_id: int, supplier_sku=None, lead_time_days: int = 0):
    """Record that ``supplier_id`` supplies ``product_id``; re-linking updates the terms."""
    if lead_time_days < 0:
        raise ValidationError("lead_time_days must be >= 0")
    if not get_product(db, product_id):
        raise NotFoundError("Product not found")
    if not db.get(models.Supplier, supplier_id):
        raise NotFoundError("Supplier not found")
    link = db.get(models.ProductSupplier, (product_id, supplier_id))
    if link is None:
        link = models.ProductSupplier(product_id=product_id, supplier_id=supplier_id)
        db.add(link)
    link.supplier_sku = supplier_sku
    link.lead_time_days = lead_time_days
    db.commit()
    db.refresh(link)
    return link


def get_product_suppliers(db: Session, product_id: int):
    return (
        db.query(models.ProductSupplier)
        .filter(models.ProductSupplier.product_id == product_id)
        .order_by(models.ProductSupplier.lead_time_days, models.ProductSupplier.supplier_id)
        .all()
    )
