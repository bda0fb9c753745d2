"""Schemas package re-exports for easy imports from `storefront.schemas`."""
from .schemas import (
    CustomerCreate,
    Customer,
    AddressCreate,
    CategoryCreate,
    SupplierCreate,
    ProductBase,
    ProductCreate,
    ProductUpdate,
    Product,
    InventoryLevel,
    OrderItemCreate,
    OrderCreate,
    OrderItem,
    PaymentCreate,
    Payment,
    Order,
    OrderDetail,
    ReviewCreate,
)

__all__ = [
    "CustomerCreate",
    "Customer",
    "AddressCreate",
    "CategoryCreate",
    "SupplierCreate",
    "ProductBase",
    "ProductCreate",
    "ProductUpdate",
    "Product",
    "InventoryLevel",
    "OrderItemCreate",
    "OrderCreate",
    "OrderItem",
    "PaymentCreate",
    "Payment",
    "Order",
    "OrderDetail",
    "ReviewCreate",
]
