"""
Database Schemas for the storefront (restaurant menu + back office)

Each Pydantic model represents a MongoDB collection or an API payload. The
collection name is the lowercase of the stored class name.

Examples:
- Product -> "product"
- Customer -> "customer"
- Order -> "order"
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class PaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    failed = "failed"
    refunded = "refunded"


class PaymentMethod(str, Enum):
    cod = "cod"
    bank_transfer = "bank_transfer"
    card = "card"


class DeliveryMethod(str, Enum):
    standard = "standard"
    express = "express"
    pickup = "pickup"


class Pagination(BaseModel):
    current: int
    pages: int
    total: int


# ---------- Catalog ----------
class Product(BaseModel):
    name: str = Field(..., min_length=1, description="Product name")
    description: Optional[str] = Field("", description="Detailed description")
    price: float = Field(..., ge=0, description="Unit price")
    cost: Optional[float] = Field(None, ge=0, description="Purchase cost")
    category: str = Field(..., min_length=1, description="Menu category")
    brand: Optional[str] = Field(None, description="Brand or supplier")
    sku: Optional[str] = Field(None, description="Unique stock keeping unit, generated if absent")
    stock: int = Field(..., ge=0, description="Units available")
    min_stock: int = Field(5, ge=0, description="Low-stock alert threshold")
    is_active: bool = Field(True, description="Whether the product is on sale")
    tags: List[str] = Field(default_factory=list, description="Searchable tags")
    image: Optional[str] = Field(None, description="Primary image URL")


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    cost: Optional[float] = Field(None, ge=0)
    category: Optional[str] = Field(None, min_length=1)
    brand: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0)
    min_stock: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    tags: Optional[List[str]] = None
    image: Optional[str] = None


class ProductOut(Product):
    id: str
    sku: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductList(BaseModel):
    products: List[ProductOut]
    pagination: Pagination


# ---------- Customers ----------
class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = "VN"


class Customer(BaseModel):
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[Address] = None
    notes: Optional[str] = None
    is_active: bool = True


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[Address] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class CustomerOut(Customer):
    id: str
    total_orders: int = 0
    total_spent: float = 0
    last_order_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CustomerList(BaseModel):
    customers: List[CustomerOut]
    pagination: Pagination


class CustomerStats(BaseModel):
    total_orders: int
    total_spent: float
    last_order_date: Optional[datetime] = None
    average_order_value: float


# ---------- Orders ----------
class CustomerContact(BaseModel):
    name: str = ""
    phone: str = ""
    email: Optional[str] = None
    address: Optional[Address] = None


class CheckoutRequest(BaseModel):
    customer: CustomerContact
    customer_id: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.cod
    delivery_method: DeliveryMethod = DeliveryMethod.standard
    tax: float = Field(0, ge=0)
    discount: float = Field(0, ge=0)
    notes: Optional[str] = None


class OrderItemIn(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)


class OrderCreate(CheckoutRequest):
    items: List[OrderItemIn] = Field(default_factory=list)


class OrderLine(BaseModel):
    product_id: str = Field(..., description="Referenced product _id as string")
    product_name: str = Field(..., description="Snapshot of product name at purchase time")
    sku: Optional[str] = None
    category: Optional[str] = None
    quantity: int = Field(..., ge=1, description="Units purchased")
    unit_price: float = Field(..., ge=0, description="Price at purchase time")
    line_total: float = Field(..., ge=0)


class Order(BaseModel):
    order_number: str
    customer_id: str
    customer_name: str
    items: List[OrderLine]
    subtotal: float = Field(..., ge=0)
    tax: float = Field(0.0, ge=0)
    discount: float = Field(0.0, ge=0)
    shipping_fee: float = Field(0.0, ge=0)
    total: float = Field(..., ge=0)
    status: OrderStatus = OrderStatus.pending
    payment_status: PaymentStatus = PaymentStatus.pending
    payment_method: PaymentMethod
    delivery_method: DeliveryMethod
    shipping_address: Optional[Address] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None


class OrderOut(Order):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderList(BaseModel):
    orders: List[OrderOut]
    pagination: Pagination


class StatusUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None


# ---------- Dashboard ----------
class PeriodStats(BaseModel):
    orders: int = 0
    revenue: float = 0


class TotalStats(PeriodStats):
    average_order_value: float = 0
    customers: int = 0


class Alerts(BaseModel):
    low_stock_products: int = 0


class RecentOrder(BaseModel):
    order_number: str
    customer_name: Optional[str] = None
    total: float
    created_at: Optional[datetime] = None


class TopProduct(BaseModel):
    product_id: str
    product_name: Optional[str] = None
    total_sold: int
    total_revenue: float


class DashboardOverview(BaseModel):
    today: PeriodStats
    month: PeriodStats
    year: PeriodStats
    total: TotalStats
    alerts: Alerts
    recent_orders: List[RecentOrder]
    top_products: List[TopProduct]


class SalesBucket(BaseModel):
    year: int
    month: int
    day: int
    orders: int
    revenue: float


class CategoryRevenue(BaseModel):
    category: str
    revenue: float
    orders: int
