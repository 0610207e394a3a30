# checkout/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List
from decimal import Decimal
from datetime import datetime

from checkout.domain.order_status import OrderStatus, PaymentMethod


class ItemIn(BaseModel):
    """Adding a product to the cart."""

    product_id: str = Field(..., min_length=1, description="Product ID")
    quantity: int = Field(..., gt=0, description="Quantity (must be > 0)")


class QuantityIn(BaseModel):
    """Setting the quantity of a cart entry; 0 or less removes it."""

    quantity: int


class CartItemOut(BaseModel):
    product_id: str
    quantity: int


class CartOut(BaseModel):
    owner_id: str
    items: List[CartItemOut]
    total_items: int
    version: int
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class CheckoutIn(BaseModel):
    """Creating an order from the owner's cart."""

    owner_id: str = Field(..., min_length=1)
    shipping_address: str = Field(..., min_length=1, max_length=500)
    payment_method: PaymentMethod = PaymentMethod.PIX


class OrderItemOut(BaseModel):
    product_id: str
    quantity: int
    unit_price: Decimal


class ShippingOut(BaseModel):
    address: str
    method: str
    cost: Decimal


class PaymentOut(BaseModel):
    method: str
    status: str
    transaction_id: str | None = None


class OrderOut(BaseModel):
    id: int
    owner_id: str
    items: List[OrderItemOut]
    total: Decimal
    status: OrderStatus
    shipping: ShippingOut
    payment: PaymentOut
    created_at: datetime
    updated_at: datetime


class OrderStatusIn(BaseModel):
    status: OrderStatus


class PaymentIn(BaseModel):
    success: bool
    transaction_id: str | None = None


class OrderStatsOut(BaseModel):
    total_orders: int
    total_revenue: Decimal
    orders_by_status: dict[str, int]


class InventoryOut(BaseModel):
    product_id: str
    sku: str
    quantity: int
    reserved: int
    available: int
    low_stock_threshold: int
    location: str | None = None
    last_updated: datetime

    model_config = ConfigDict(from_attributes=True)


class StockBatchIn(BaseModel):
    product_ids: List[str] = Field(..., min_length=1)


class StockAdjustIn(BaseModel):
    delta: int
    reason: str = Field(..., description="sale, return, adjustment, restock or damage")
    reference: str | None = None
    performed_by: str = Field(..., min_length=1)


class ThresholdIn(BaseModel):
    threshold: int = Field(..., ge=0)


class StockAlertOut(BaseModel):
    product_id: str
    type: str
    current_stock: int
    threshold: int | None = None
    message: str

    model_config = ConfigDict(from_attributes=True)


class InventorySummaryOut(BaseModel):
    total_products: int
    total_quantity: int
    low_stock_count: int
    out_of_stock_count: int


