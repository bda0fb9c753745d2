from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal
from ..models import OrderStatus, PaymentStatus, PaymentRecordStatus  # Import from models, not define locally


class CustomerCreate(BaseModel):
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    password_hash: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "first_name": "John",
                "last_name": "Doe",
                "email": "john@example.com",
                "phone": "+254700000000",
                "password_hash": "hash1",
            }
        }
    )


class Customer(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AddressCreate(BaseModel):
    label: str = "home"
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: str
    is_default: bool = False


class CategoryCreate(BaseModel):
    name: str
    slug: str
    description: Optional[str] = None
    parent_id: Optional[int] = None


class SupplierCreate(BaseModel):
    name: str
    contact_email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class ProductBase(BaseModel):
    sku: str
    name: str
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    cost_price: Decimal = Field(Decimal("0.00"), ge=0)
    weight_kg: Decimal = Field(Decimal("0.000"), ge=0)
    active: bool = True


class ProductCreate(ProductBase):
    initial_stock: int = Field(0, ge=0)
    reorder_level: int = Field(0, ge=0)
    category_ids: list[int] = []

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "sku": "SKU-001",
                "name": "Laptop Pro",
                "description": "High performance laptop",
                "price": "1200.00",
                "initial_stock": 10,
                "reorder_level": 2,
            }
        }
    )


class ProductUpdate(BaseModel):
    sku: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    cost_price: Optional[Decimal] = Field(None, ge=0)
    weight_kg: Optional[Decimal] = Field(None, ge=0)
    active: Optional[bool] = None


class Product(ProductBase):
    id: int

    model_config = ConfigDict(from_attributes=True)


class InventoryLevel(BaseModel):
    product_id: int
    quantity_on_hand: int
    reorder_level: int

    model_config = ConfigDict(from_attributes=True)


class OrderItemCreate(BaseModel):
    product_id: int
    quantity: int = Field(..., gt=0)
    # omitted -> the product's current price is snapshotted
    unit_price: Optional[Decimal] = Field(None, ge=0)
    discount: Decimal = Field(Decimal("0.00"), ge=0)


class OrderCreate(BaseModel):
    customer_id: int
    billing_address_id: Optional[int] = None
    shipping_address_id: Optional[int] = None
    shipping_cost: Decimal = Field(Decimal("0.00"), ge=0)
    tax_amount: Decimal = Field(Decimal("0.00"), ge=0)
    items: list[OrderItemCreate] = []

    @field_validator("items")
    @classmethod
    def one_line_per_product(cls, v):
        seen = set()
        for item in v:
            if item.product_id in seen:
                raise ValueError(f"product {item.product_id} appears more than once")
            seen.add(item.product_id)
        return v

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "customer_id": 1,
                "billing_address_id": 1,
                "shipping_address_id": 1,
                "shipping_cost": "10.00",
                "tax_amount": "123.50",
                "items": [
                    {"product_id": 1, "quantity": 1, "unit_price": "1200.00"},
                    {"product_id": 2, "quantity": 1, "unit_price": "25.00"},
                ],
            }
        }
    )


class OrderItem(BaseModel):
    product_id: int
    unit_price: Decimal
    quantity: int
    discount: Decimal
    line_total: Decimal

    model_config = ConfigDict(from_attributes=True)


class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    method: Optional[str] = None
    transaction_ref: Optional[str] = None
    status: PaymentRecordStatus = PaymentRecordStatus.COMPLETED

    @field_validator("status")
    @classmethod
    def not_a_refund(cls, v):
        if v == PaymentRecordStatus.REFUNDED:
            raise ValueError("refunds are recorded with refund_payment")
        return v

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"amount": "1358.50", "method": "card", "transaction_ref": "txn_12345", "status": "completed"}
        }
    )


class Payment(BaseModel):
    id: int
    order_id: int
    amount: Decimal
    method: Optional[str] = None
    transaction_ref: Optional[str] = None
    status: PaymentRecordStatus
    refund_of_id: Optional[int] = None
    paid_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Order(BaseModel):
    id: int
    customer_id: int
    billing_address_id: Optional[int] = None
    shipping_address_id: Optional[int] = None
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: Optional[str] = None
    subtotal: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    order_date: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderDetail(Order):
    items: list[OrderItem] = []
    payments: list[Payment] = []


class ReviewCreate(BaseModel):
    product_id: int
    customer_id: Optional[int] = None
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = None
    body: Optional[str] = None
