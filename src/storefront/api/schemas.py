"""Pydantic request/response schemas for the storefront API.

These are external contracts, separate from internal Protean commands.
Business validation (positive quantities, complete addresses) stays in the
core so that every caller gets the same answer.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class LineItemSchema(BaseModel):
    product_id: str
    variant_key: str
    quantity: int
    unit_price: float
    title: str | None = None


class AddressSchema(BaseModel):
    name: str | None = None
    street: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    phone: str | None = None


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    customer_id: str
    items: list[LineItemSchema]
    shipping_address: AddressSchema
    payment_method: str

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "cust-001",
                    "items": [
                        {
                            "product_id": "prod-001",
                            "variant_key": "M",
                            "quantity": 2,
                            "unit_price": 499.0,
                            "title": "Linen Shirt",
                        }
                    ],
                    "shipping_address": {
                        "name": "Asha Rao",
                        "street": "12 MG Road",
                        "city": "Bengaluru",
                        "state": "KA",
                        "postal_code": "560001",
                        "country": "IN",
                    },
                    "payment_method": "upi",
                }
            ]
        }
    }


class CancelOrderRequest(BaseModel):
    reason: str


class RefundOrderRequest(BaseModel):
    amount: float
    reason: str
    items: dict[str, int] | None = None  # item_id -> quantity


class AdvanceStatusRequest(BaseModel):
    status: str
    note: str | None = None


# ---------------------------------------------------------------------------
# Product / Reservation Request Schemas
# ---------------------------------------------------------------------------
class RegisterProductRequest(BaseModel):
    name: str
    stock: dict[str, int]
    low_stock_threshold: int | None = Field(default=None, ge=0)


class ReceiveStockRequest(BaseModel):
    variant_key: str
    quantity: int = Field(gt=0)


class ReserveStockRequest(BaseModel):
    product_id: str
    variant_key: str
    quantity: int = Field(gt=0)
    session_id: str
    ttl_minutes: int | None = Field(default=None, gt=0)


class SweepReservationsRequest(BaseModel):
    product_id: str | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class TotalsResponse(BaseModel):
    subtotal: float
    tax: float
    shipping: float
    total: float
    currency: str


class OrderCreatedResponse(BaseModel):
    order_id: str
    order_number: str
    status: str
    totals: TotalsResponse


class LineItemResponse(BaseModel):
    item_id: str
    product_id: str
    variant_key: str
    title: str | None = None
    quantity: int
    unit_price: float
    refunded_quantity: int = 0


class StatusEntryResponse(BaseModel):
    status: str
    note: str | None = None
    actor: str | None = None
    recorded_at: datetime


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    customer_id: str
    status: str
    payment_status: str | None = None
    payment_method: str | None = None
    payment_details: dict
    items: list[LineItemResponse]
    totals: TotalsResponse
    refunded_amount: float
    status_history: list[StatusEntryResponse]


class StatusResponse(BaseModel):
    status: str


class ProductIdResponse(BaseModel):
    product_id: str


class StockResponse(BaseModel):
    product_id: str
    name: str
    stock: dict[str, int]
    total_sold: int
    low_stock_threshold: int


class ReservationResponse(BaseModel):
    reservation_id: str
    product_id: str
    variant_key: str
    quantity: int
    session_id: str
    expires_at: datetime


class AvailabilityResponse(BaseModel):
    product_id: str
    variant_key: str
    available: int


class SweepResponse(BaseModel):
    removed: int


class WebhookResponse(BaseModel):
    status: str
    outcome: str
    order_status: str | None = None
    payment_status: str | None = None
