"""CRUD package re-exports for easy imports from `storefront.crud`."""
from .catalog import (
    get_product,
    get_product_by_sku,
    get_products,
    count_products,
    create_product,
    update_product,
    update_product_partial,
    delete_product,
    create_supplier,
    link_supplier,
    get_product_suppliers,
)
from .categories import (
    CategoryTree,
    get_category,
    get_category_by_slug,
    create_category,
    move_category,
    delete_category,
    get_category_path,
    set_product_categories,
    get_products_in_category,
)
from .customers import (
    get_customer,
    get_customer_by_email,
    create_customer,
    delete_customer,
    get_address,
    get_addresses,
    add_address,
    set_default_address,
    delete_address,
    address_in_use,
)
from .engagement import (
    add_review,
    get_reviews,
    average_rating,
    create_wishlist,
    get_wishlists,
    add_to_wishlist,
    remove_from_wishlist,
    get_wishlist_products,
)
from .inventory import (
    InventoryGuard,
    get_inventory,
    replenish,
    set_reorder_level,
    get_low_stock,
)
from .orders import (
    ALLOWED_TRANSITIONS,
    get_order,
    claim_order,
    get_orders_for_customer,
    get_order_detail,
    recompute_totals,
    create_order,
    add_order_item,
    update_charges,
    transition_status,
)
from .payments import (
    get_payment,
    get_payments,
    paid_amount,
    record_payment,
    complete_payment,
    fail_payment,
    refund_payment,
    process_payment_event,
)

__all__ = [
    "get_product",
    "get_product_by_sku",
    "get_products",
    "count_products",
    "create_product",
    "update_product",
    "update_product_partial",
    "delete_product",
    "create_supplier",
    "link_supplier",
    "get_product_suppliers",
    "CategoryTree",
    "get_category",
    "get_category_by_slug",
    "create_category",
    "move_category",
    "delete_category",
    "get_category_path",
    "set_product_categories",
    "get_products_in_category",
    "get_customer",
    "get_customer_by_email",
    "create_customer",
    "delete_customer",
    "get_address",
    "get_addresses",
    "add_address",
    "set_default_address",
    "delete_address",
    "address_in_use",
    "add_review",
    "get_reviews",
    "average_rating",
    "create_wishlist",
    "get_wishlists",
    "add_to_wishlist",
    "remove_from_wishlist",
    "get_wishlist_products",
    "InventoryGuard",
    "get_inventory",
    "replenish",
    "set_reorder_level",
    "get_low_stock",
    "ALLOWED_TRANSITIONS",
    "get_order",
    "claim_order",
    "get_orders_for_customer",
    "get_order_detail",
    "recompute_totals",
    "create_order",
    "add_order_item",
    "update_charges",
    "transition_status",
    "get_payment",
    "get_payments",
    "paid_amount",
    "record_payment",
    "complete_payment",
    "fail_payment",
    "refund_payment",
    "process_payment_event",
]

# re-export exceptions
from .errors import (  # noqa: E402
    StorefrontError,
    ValidationError,
    NotFoundError,
    InsufficientStockError,
    InvalidTransitionError,
    OverpaymentError,
    AlreadyReversedError,
    RestrictedDeleteError,
    ConcurrentUpdateError,
)
__all__.extend([
    "StorefrontError",
    "ValidationError",
    "NotFoundError",
    "InsufficientStockError",
    "InvalidTransitionError",
    "OverpaymentError",
    "AlreadyReversedError",
    "RestrictedDeleteError",
    "ConcurrentUpdateError",
])
