"""Models package re-exports for easy imports from `storefront.models`."""
from .models import (
    Base,
    OrderStatus,
    PaymentStatus,
    PaymentRecordStatus,
    Customer,
    Address,
    Category,
    product_categories,
    Supplier,
    ProductSupplier,
    Product,
    Inventory,
    Order,
    OrderItem,
    Payment,
    ProductReview,
    Wishlist,
    WishlistItem,
    PaymentEvent,
)

__all__ = [
    "Base",
    "OrderStatus",
    "PaymentStatus",
    "PaymentRecordStatus",
    "Customer",
    "Address",
    "Category",
    "product_categories",
    "Supplier",
    "ProductSupplier",
    "Product",
    "Inventory",
    "Order",
    "OrderItem",
    "Payment",
    "ProductReview",
    "Wishlist",
    "WishlistItem",
    "PaymentEvent",
]
