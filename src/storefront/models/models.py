from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    Numeric,
    String,
    Text,
    CheckConstraint,
    UniqueConstraint,
    ForeignKey,
    Index,
    Table,
    Enum as SAEnum,
    DateTime,
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime
from decimal import Decimal
import enum

Base = declarative_base()


class OrderStatus(enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(enum.Enum):
    """Order-level payment state."""
    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class PaymentRecordStatus(enum.Enum):
    """State of an individual payment record."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


def _enum(enum_cls, name):
    # store the lowercase values, not the member names
    return SAEnum(enum_cls, name=name, values_callable=lambda e: [m.value for m in e])


def _money(precision=12):
    return Numeric(precision, 2)


class Customer(Base):
    __tablename__ = "customers"
    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(30))
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    addresses = relationship("Address", back_populates="customer", cascade="all, delete-orphan")
    wishlists = relationship("Wishlist", back_populates="customer", cascade="all, delete-orphan")

    __table_args__ = (UniqueConstraint("email", name="uq_customer_email"),)


class Address(Base):
    __tablename__ = "addresses"
    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(String(50), default="home")
    address_line1 = Column(String(255), nullable=False)
    address_line2 = Column(String(255))
    city = Column(String(100), nullable=False)
    state = Column(String(100))
    postal_code = Column(String(20))
    country = Column(String(100), nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    customer = relationship("Customer", back_populates="addresses")


class Category(Base):
    __tablename__ = "categories"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(120), nullable=False)
    description = Column(Text)
    parent_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)

    __table_args__ = (UniqueConstraint("slug", name="uq_category_slug"),)


product_categories = Table(
    "product_categories",
    Base.metadata,
    Column("product_id", Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)


class Supplier(Base):
    __tablename__ = "suppliers"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    contact_email = Column(String(255))
    phone = Column(String(50))
    address = Column(String(255))


class ProductSupplier(Base):
    __tablename__ = "product_suppliers"
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="CASCADE"), primary_key=True)
    supplier_sku = Column(String(100))
    lead_time_days = Column(Integer, nullable=False, default=0)

    supplier = relationship("Supplier")

    __table_args__ = (
        CheckConstraint("lead_time_days >= 0", name="ck_product_supplier_lead_time_non_negative"),
    )


class Product(Base):
    __tablename__ = "products"
    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    price = Column(_money(10), nullable=False)
    cost_price = Column(_money(10), nullable=False, default=Decimal("0.00"))
    weight_kg = Column(Numeric(6, 3), nullable=False, default=Decimal("0.000"))
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    inventory = relationship("Inventory", back_populates="product", uselist=False, cascade="all, delete-orphan")
    categories = relationship("Category", secondary=product_categories)
    suppliers = relationship("ProductSupplier", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("sku", name="uq_product_sku"),
        CheckConstraint("price >= 0", name="ck_product_price_non_negative"),
        Index("idx_products_name", "name"),
    )


class Inventory(Base):
    __tablename__ = "inventory"
    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    quantity_on_hand = Column(Integer, nullable=False, default=0)
    reorder_level = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    product = relationship("Product", back_populates="inventory")

    __table_args__ = (
        UniqueConstraint("product_id", name="uq_inventory_product"),
        CheckConstraint("quantity_on_hand >= 0", name="ck_inventory_quantity_non_negative"),
        CheckConstraint("reorder_level >= 0", name="ck_inventory_reorder_level_non_negative"),
    )


class Order(Base):
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False)
    billing_address_id = Column(Integer, ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True)
    shipping_address_id = Column(Integer, ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True)
    order_date = Column(DateTime, default=datetime.now, nullable=False)
    status = Column(_enum(OrderStatus, "order_status"), nullable=False, default=OrderStatus.PENDING)
    subtotal = Column(_money(), nullable=False, default=Decimal("0.00"))
    shipping_cost = Column(_money(10), nullable=False, default=Decimal("0.00"))
    tax_amount = Column(_money(10), nullable=False, default=Decimal("0.00"))
    total_amount = Column(_money(), nullable=False, default=Decimal("0.00"))
    payment_method = Column(String(50))
    payment_status = Column(_enum(PaymentStatus, "payment_status"), nullable=False, default=PaymentStatus.UNPAID)
    # set once, when the reserved stock is given back on cancel/refund
    inventory_released_at = Column(DateTime, nullable=True)
    # bumped by every ledger write on the order; see crud.orders.claim_order
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    customer = relationship("Customer")
    billing_address = relationship("Address", foreign_keys=[billing_address_id])
    shipping_address = relationship("Address", foreign_keys=[shipping_address_id])
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItem.product_id",
    )
    payments = relationship(
        "Payment",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Payment.id",
    )

    __table_args__ = (
        CheckConstraint("subtotal >= 0", name="ck_order_subtotal_non_negative"),
        CheckConstraint("shipping_cost >= 0", name="ck_order_shipping_non_negative"),
        CheckConstraint("tax_amount >= 0", name="ck_order_tax_non_negative"),
        CheckConstraint("total_amount >= 0", name="ck_order_total_non_negative"),
        Index("idx_orders_customer_status", "customer_id", "status"),
    )


class OrderItem(Base):
    __tablename__ = "order_items"
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), primary_key=True)
    unit_price = Column(_money(10), nullable=False)
    quantity = Column(Integer, nullable=False)
    discount = Column(_money(10), nullable=False, default=Decimal("0.00"))
    line_total = Column(_money(), nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    __table_args__ = (
        CheckConstraint("unit_price >= 0", name="ck_order_item_unit_price_non_negative"),
        CheckConstraint("quantity > 0", name="ck_order_item_quantity_positive"),
        CheckConstraint("discount >= 0", name="ck_order_item_discount_non_negative"),
    )


class Payment(Base):
    __tablename__ = "payments"
    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(_money(), nullable=False)
    method = Column(String(50))
    transaction_ref = Column(String(255))
    status = Column(
        _enum(PaymentRecordStatus, "payment_record_status"), nullable=False, default=PaymentRecordStatus.PENDING
    )
    # refund records point at the payment they give money back from
    refund_of_id = Column(Integer, ForeignKey("payments.id", ondelete="CASCADE"), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    order = relationship("Order", back_populates="payments")

    __table_args__ = (CheckConstraint("amount > 0", name="ck_payment_amount_positive"),)


class ProductReview(Base):
    __tablename__ = "product_reviews"
    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)
    rating = Column(Integer, nullable=False)
    title = Column(String(255))
    body = Column(Text)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    __table_args__ = (CheckConstraint("rating BETWEEN 1 AND 5", name="ck_review_rating_range"),)


class Wishlist(Base):
    __tablename__ = "wishlists"
    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), default="My Wishlist")
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    customer = relationship("Customer", back_populates="wishlists")
    items = relationship("WishlistItem", cascade="all, delete-orphan")


class WishlistItem(Base):
    __tablename__ = "wishlist_items"
    wishlist_id = Column(Integer, ForeignKey("wishlists.id", ondelete="CASCADE"), primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    added_at = Column(DateTime, default=datetime.now, nullable=False)


class PaymentEvent(Base):
    __tablename__ = "payment_events"
    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(String, nullable=False, unique=True, index=True)
    received_at = Column(DateTime, default=datetime.now, nullable=False)
