from pydantic import BaseModel, ConfigDict, EmailStr, Field
from decimal import Decimal
from typing import Optional, List
from datetime import datetime
from enum import Enum


# Define order status enum
class OrderStatus(str, Enum):
    PENDING = "Pending for delivery"
    DELIVERED = "Order delivered"
    COMPLETED = "Order completed"
    CANCELLED = "Order cancelled"


DEFAULT_ORDER_STATUS = OrderStatus.PENDING


class OrderTotals(BaseModel):
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


# -----------------------------
# Users
# -----------------------------

class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)


class UserOut(BaseModel):
    id: int
    username: str
    email: EmailStr
    role: str

    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str


# -----------------------------
# Products
# -----------------------------

class ProductOut(BaseModel):
    id: int
    name: str
    price: Decimal
    stock: int
    image: Optional[str] = None

    model_config = {"from_attributes": True}


# -----------------------------
# Cart
# -----------------------------

class CartLineOut(BaseModel):
    product_id: int
    name: str
    price: Decimal
    image: Optional[str] = None
    quantity: int
    subtotal: Decimal


class CartOut(BaseModel):
    items: List[CartLineOut] = []
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    messages: List[str] = []


# -----------------------------
# Orders
# -----------------------------

class OrderLineOut(BaseModel):
    product_id: int
    name: str = Field(..., description="Product name at purchase time")
    unit_price: Decimal = Field(..., description="Unit price at purchase time")
    quantity: int
    subtotal: Decimal


class OrderSummary(BaseModel):
    """Invoice view of a placed order: header plus line snapshots."""
    order_id: int
    invoice_number: str
    invoice_date: Optional[datetime] = None
    status: OrderStatus
    lines: List[OrderLineOut] = []
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


class OrderOut(BaseModel):
    id: int
    invoice_number: str
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    status: OrderStatus
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AdminOrderOut(OrderOut):
    user_id: int
    username: Optional[str] = None
    email: Optional[str] = None


# Schema for API responses
class OrderListResponse(BaseModel):
    orders: List[OrderOut]
    total: int


class AdminOrderListResponse(BaseModel):
    orders: List[AdminOrderOut]
    total: int
    skip: int
    limit: int
