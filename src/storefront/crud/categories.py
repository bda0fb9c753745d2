"""Category hierarchy.

Categories reference their parent by id. The hierarchy is held as an arena:
one dict keyed by category id, with parent ids and child id lists as the only
links, so walking it never follows object references and a bad parent_id can
be detected instead of looping forever.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class CategoryNode:
    id: int
    name: str
    slug: str
    parent_id: Optional[int] = None
    children: list[int] = field(default_factory=list)


class CategoryTree:
    def __init__(self, nodes: dict[int, CategoryNode]):
        self.nodes = nodes

    @classmethod
    def load(cls, db: Session) -> "CategoryTree":
        nodes = {
            c.id: CategoryNode(id=c.id, name=c.name, slug=c.slug, parent_id=c.parent_id)
            for c in db.query(models.Category).order_by(models.Category.id)
        }
        for node in nodes.values():
            if node.parent_id in nodes:
                nodes[node.parent_id].children.append(node.id)
        return cls(nodes)

    def __contains__(self, category_id) -> bool:
        return category_id in self.nodes

    def roots(self) -> list[int]:
        return [n.id for n in self.nodes.values() if n.parent_id not in self.nodes]

    def ancestors(self, category_id: int) -> list[int]:
        """Parent first, root last. Raises ValidationError if the chain loops."""
        chain = []
        seen = {category_id}
        current = self.nodes[category_id].parent_id
        while current is not None and current in self.nodes:
            if current in seen:
                raise ValidationError(f"Category {category_id} is part of a cycle")
            seen.add(current)
            chain.append(current)
            current = self.nodes[current].parent_id
        return chain

    def descendants(self, category_id: int) -> list[int]:
        result = []
        stack = list(reversed(self.nodes[category_id].children))
        while stack:
            child = stack.pop()
            if child in result:
                continue
            result.append(child)
            stack.extend(reversed(self.nodes[child].children))
        return result

    def would_create_cycle(self, category_id: int, new_parent_id: Optional[int]) -> bool:
        if new_parent_id is None:
            return False
        if new_parent_id == category_id:
            return True
        return category_id in self.ancestors(new_parent_id)

    def path(self, category_id: int) -> list[str]:
        """Names from the root down to ``category_id``."""
        ids = list(reversed(self.ancestors(category_id))) + [category_id]
        return [self.nodes[i].name for i in ids]


def load_categories(db: Session, category_ids):
    wanted = set(category_ids)
    categories = db.query(models.Category).filter(models.Category.id.in_(wanted)).all()
    missing = wanted - {c.id for c in categories}
    if missing:
        raise NotFoundError(f"Unknown categories: {sorted(missing)}")
    return categories


def get_category(db: Session, category_id: int):
    return db.query(models.Category).filter(models.Category.id == category_id).first()


def get_category_by_slug(db: Session, slug: str):
    return db.query(models.Category).filter(models.Category.slug == slug).first()


def create_category(db: Session, category: schemas.CategoryCreate):
    if category.parent_id is not None and not get_category(db, category.parent_id):
        raise NotFoundError("Parent category not found")
    db_category = models.Category(**category.model_dump())
    db.add(db_category)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    db.refresh(db_category)
    return db_category


def move_category(db: Session, category_id: int, new_parent_id: Optional[int]):
    """Re-parent a category, refusing moves that would make the hierarchy cyclic."""
    db_category = get_category(db, category_id)
    if not db_category:
        return None
    tree = CategoryTree.load(db)
    if new_parent_id is not None and new_parent_id not in tree:
        raise NotFoundError("Parent category not found")
    if tree.would_create_cycle(category_id, new_parent_id):
        raise ValidationError(f"Moving category {category_id} under {new_parent_id} would create a cycle")
    db_category.parent_id = new_parent_id
    db.commit()
    db.refresh(db_category)
    logger.info("Moved category %s under %s", category_id, new_parent_id)
    return db_category


def delete_category(db: Session, category_id: int):
    """Delete a category; its children become roots and product links are dropped."""
    db_category = get_category(db, category_id)
    if not db_category:
        return None
    try:
        db.execute(
            update(models.Category)
            .where(models.Category.parent_id == category_id)
            .values(parent_id=None)
            .execution_options(synchronize_session=False)
        )
        db.execute(
            models.product_categories.delete().where(models.product_categories.c.category_id == category_id)
        )
        db.delete(db_category)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Deleted category %s", category_id)
    return db_category


def get_category_path(db: Session, category_id: int) -> list[str]:
    tree = CategoryTree.load(db)
    if category_id not in tree:
        raise NotFoundError("Category not found")
    return tree.path(category_id)


def set_product_categories(db: Session, product_id: int, category_ids: list[int]):
    """Replace the categories a product is filed under."""
    product = db.query(models.Product).filter(models.Product.id == product_id).first()
    if not product:
        raise NotFoundError("Product not found")
    product.categories = load_categories(db, category_ids)
    db.commit()
    db.refresh(product)
    return product


def get_products_in_category(db: Session, category_id: int, include_descendants: bool = True):
    ids = [category_id]
    if include_descendants:
        tree = CategoryTree.load(db)
        if category_id not in tree:
            raise NotFoundError("Category not found")
        ids += tree.descendants(category_id)
    return (
        db.query(models.Product)
        .join(models.product_categories, models.product_categories.c.product_id == models.Product.id)
        .filter(models.product_categories.c.category_id.in_(ids))
        .distinct()
        .order_by(models.Product.id)
        .all()
    )
