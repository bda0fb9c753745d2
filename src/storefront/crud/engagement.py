import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from .errors import NotFoundError

logger = logging.getLogger(__name__)


def add_review(db: Session, review: schemas.ReviewCreate):
    if not db.get(models.Product, review.product_id):
        raise NotFoundError("Product not found")
    if review.customer_id is not None and not db.get(models.Customer, review.customer_id):
        raise NotFoundError("Customer not found")
    db_review = models.ProductReview(**review.model_dump())
    db.add(db_review)
    db.commit()
    db.refresh(db_review)
    logger.info("Review %s: %s stars for product %s", db_review.id, db_review.rating, db_review.product_id)
    return db_review


def get_reviews(db: Session, product_id: int, skip: int = 0, limit: int = 100):
    return (
        db.query(models.ProductReview)
        .filter(models.ProductReview.product_id == product_id)
        .order_by(models.ProductReview.created_at.desc(), models.ProductReview.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def average_rating(db: Session, product_id: int) -> Optional[Decimal]:
    """Mean rating to two places, or None when the product has no reviews."""
    value = (
        db.query(func.avg(models.ProductReview.rating))
        .filter(models.ProductReview.product_id == product_id)
        .scalar()
    )
    if value is None:
        return None
    return Decimal(str(value)).quantize(Decimal("0.01"))


def create_wishlist(db: Session, customer_id: int, name: str = "My Wishlist"):
    if not db.get(models.Customer, customer_id):
        raise NotFoundError("Customer not found")
    wishlist = models.Wishlist(customer_id=customer_id, name=name)
    db.add(wishlist)
    db.commit()
    db.refresh(wishlist)
    logger.info("Created wishlist %s for customer %s", wishlist.id, customer_id)
    return wishlist


def get_wishlists(db: Session, customer_id: int):
    return (
        db.query(models.Wishlist)
        .filter(models.Wishlist.customer_id == customer_id)
        .order_by(models.Wishlist.id)
        .all()
    )


def add_to_wishlist(db: Session, wishlist_id: int, product_id: int) -> bool:
    """Add a product to a wishlist. Returns True if added, False if it was already there."""
    if not db.get(models.Wishlist, wishlist_id):
        raise NotFoundError("Wishlist not found")
    if not db.get(models.Product, product_id):
        raise NotFoundError("Product not found")
    if db.get(models.WishlistItem, (wishlist_id, product_id)):
        return False
    db.add(models.WishlistItem(wishlist_id=wishlist_id, product_id=product_id))
    try:
        db.commit()
    except IntegrityError:
        # another session added it first
        db.rollback()
        return False
    logger.info("Added product %s to wishlist %s", product_id, wishlist_id)
    return True


def remove_from_wishlist(db: Session, wishlist_id: int, product_id: int) -> bool:
    deleted = (
        db.query(models.WishlistItem)
        .filter(models.WishlistItem.wishlist_id == wishlist_id, models.WishlistItem.product_id == product_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        logger.info("Removed product %s from wishlist %s", product_id, wishlist_id)
    return deleted > 0


def get_wishlist_products(db: Session, wishlist_id: int):
    return (
        db.query(models.Product)
        .join(models.WishlistItem, models.WishlistItem.product_id == models.Product.id)
        .filter(models.WishlistItem.wishlist_id == wishlist_id)
        .order_by(models.WishlistItem.added_at, models.Product.id)
        .all()
    )
