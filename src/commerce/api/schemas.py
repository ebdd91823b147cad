"""Pydantic request/response schemas for the storefront, merchant and maintenance APIs.

These are external contracts, kept separate from the internal Protean
commands. Amounts are integer cents throughout.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    line1: str = Field(min_length=1, max_length=255)
    line2: str | None = Field(default=None, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=100)
    postal_code: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=2, max_length=2, pattern=r"^[A-Za-z]{2}$")


class TotalsSchema(BaseModel):
    subtotal: int
    shipping_cost: int
    tax_amount: int
    total: int
    currency: str


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Catalogue & inventory (merchant)
# ---------------------------------------------------------------------------
class AddProductRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    base_price: int = Field(ge=0)


class ChangePriceRequest(BaseModel):
    base_price: int = Field(ge=0)


class ProductIdResponse(BaseModel):
    product_id: str


class AddVariantRequest(BaseModel):
    sku: str = Field(min_length=1, max_length=64)
    on_hand: int = Field(default=0, ge=0)
    option_values: list[str] = Field(default_factory=list)
    price: int | None = Field(default=None, ge=0)
    low_stock_threshold: int | None = Field(default=None, ge=0)


class VariantIdResponse(BaseModel):
    variant_id: str


class AdjustStockRequest(BaseModel):
    delta: int
    reason: str | None = Field(default=None, max_length=255)


class LowStockThresholdRequest(BaseModel):
    threshold: int = Field(ge=0)


class StockLevelsResponse(BaseModel):
    variant_id: str
    sku: str
    on_hand: int
    reserved: int
    available: int


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    variant_id: str
    quantity: int = Field(default=1, ge=1, le=99)


class UpdateCartLineRequest(BaseModel):
    quantity: int = Field(ge=0)


class MergeCartRequest(BaseModel):
    session_id: str


class CartLineSchema(BaseModel):
    variant_id: str
    product_id: str
    quantity: int
    unit_price: int
    line_total: int


class CartIssueSchema(BaseModel):
    variant_id: str
    reason: str
    requested: int | None = None
    available: int | None = None


class CartResponse(BaseModel):
    cart_id: str | None = None
    lines: list[CartLineSchema] = Field(default_factory=list)
    item_count: int = 0
    subtotal: int = 0
    expires_at: datetime | None = None
    issues: list[CartIssueSchema] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class StartCheckoutRequest(BaseModel):
    shipping_address: AddressSchema
    email: EmailStr
    name: str | None = Field(default=None, max_length=255)


class CheckoutLineSchema(BaseModel):
    name: str
    quantity: int
    unit_price: int
    total_price: int


class CheckoutResponse(BaseModel):
    session_id: str
    client_secret: str
    line_items: list[CheckoutLineSchema]
    totals: TotalsSchema
    expires_at: datetime


class CancelCheckoutResponse(BaseModel):
    cancelled: bool


class WebhookResponse(BaseModel):
    received: bool = True


# ---------------------------------------------------------------------------
# Orders (merchant)
# ---------------------------------------------------------------------------
OrderStatusLiteral = Literal["pending", "processing", "shipped", "delivered", "cancelled"]


class OrderItemSchema(BaseModel):
    variant_id: str
    product_id: str
    sku: str
    product_name: str
    variant_name: str | None = None
    quantity: int
    unit_price: int
    total_price: int


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    status: str
    payment_status: str
    merchant_id: str
    customer_id: str | None = None
    buyer_email: str
    buyer_name: str | None = None
    items: list[OrderItemSchema]
    shipping_address: AddressSchema | None = None
    subtotal: int
    shipping_cost: int
    tax_amount: int
    total: int
    currency: str
    tracking_number: str | None = None
    tracking_carrier: str | None = None
    notes: str | None = None
    paid_at: datetime | None = None
    processed_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    total: int
    page: int
    limit: int
    pages: int


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatusLiteral
    tracking_number: str | None = Field(default=None, max_length=255)
    tracking_carrier: str | None = Field(default=None, max_length=100)
    reason: str | None = Field(default=None, max_length=500)


class ShipOrderRequest(BaseModel):
    tracking_number: str | None = Field(default=None, max_length=255)
    tracking_carrier: str | None = Field(default=None, max_length=100)


class CancelOrderRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class UpdateOrderNotesRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=5000)


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------
class SweepResponse(BaseModel):
    task: str
    processed: int


class LowStockCheckResponse(BaseModel):
    task: str = "low_stock_check"
    merchants: dict[str, int]


class MaintenanceStatusResponse(BaseModel):
    open_checkout_sessions: int
    expired_checkout_sessions: int
    captured_checkout_sessions: int
    stale_checkout_claims: int
    notifications: dict[str, int]
