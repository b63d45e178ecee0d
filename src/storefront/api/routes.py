"""FastAPI routes for the storefront: orders, products, holds and payment callbacks.

Authentication happens upstream; the requester arrives as ``X-Customer-Id``
and ``X-User-Role`` headers.

Routes that go through the retry loop are plain ``def`` (or hand off to the
threadpool) so a backoff sleep never runs on the event loop.
"""

import json
from datetime import timedelta

import structlog
from fastapi import APIRouter, Header, HTTPException, Request
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain
from starlette.concurrency import run_in_threadpool

from storefront.api.errors import domain_errors
from storefront.api.schemas import (
    AdvanceStatusRequest,
    AvailabilityResponse,
    CancelOrderRequest,
    CreateOrderRequest,
    LineItemResponse,
    OrderCreatedResponse,
    OrderResponse,
    ProductIdResponse,
    ReceiveStockRequest,
    RefundOrderRequest,
    RegisterProductRequest,
    ReservationResponse,
    ReserveStockRequest,
    StatusEntryResponse,
    StatusResponse,
    StockResponse,
    SweepReservationsRequest,
    SweepResponse,
    TotalsResponse,
    WebhookResponse,
)
from storefront.inventory.management import ReceiveStock, RegisterProduct
from storefront.inventory.store import InventoryStore
from storefront.ordering.cancellation import cancel_order, refund_order
from storefront.ordering.creation import OrderCreationOrchestrator
from storefront.ordering.fulfillment import AdvanceOrderStatus
from storefront.ordering.order import load_order
from storefront.payments.gateway import get_verifier
from storefront.payments.reconciliation import PaymentEvent, PaymentEventReconciler
from storefront.reservations.holds import ReservationManager

logger = structlog.get_logger(__name__)

ADMIN_ROLE = "admin"


def _require_admin(role: str) -> None:
    if role != ADMIN_ROLE:
        raise HTTPException(status_code=403, detail="Admin role required")


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderCreatedResponse)
def create_order(body: CreateOrderRequest) -> OrderCreatedResponse:
    """Place an order, committing stock for every line item."""
    with domain_errors():
        receipt = OrderCreationOrchestrator().create(
            {
                "customer_id": body.customer_id,
                "items": [item.model_dump() for item in body.items],
                "shipping_address": body.shipping_address.model_dump(exclude_none=True),
                "payment_method": body.payment_method,
            }
        )
    return OrderCreatedResponse(
        order_id=receipt.order_id,
        order_number=receipt.order_number,
        status=receipt.status,
        totals=TotalsResponse(**receipt.totals),
    )


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    with domain_errors():
        order = load_order(order_id)
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        customer_id=str(order.customer_id),
        status=order.status,
        payment_status=order.payment_status,
        payment_method=order.payment_method,
        payment_details=order.payment_metadata(),
        items=[
            LineItemResponse(
                item_id=str(item.id),
                product_id=str(item.product_id),
                variant_key=item.variant_key,
                title=item.title,
                quantity=item.quantity,
                unit_price=item.unit_price,
                refunded_quantity=item.refunded_quantity or 0,
            )
            for item in order.items
        ],
        totals=TotalsResponse(
            subtotal=order.totals.subtotal,
            tax=order.totals.tax,
            shipping=order.totals.shipping,
            total=order.totals.total,
            currency=order.totals.currency,
        ),
        refunded_amount=order.refunded_amount or 0.0,
        status_history=[
            StatusEntryResponse(
                status=entry.status,
                note=entry.note,
                actor=entry.actor,
                recorded_at=entry.recorded_at,
            )
            for entry in order.status_history
        ],
    )


@order_router.post("/{order_id}/cancel", response_model=StatusResponse)
def cancel(
    order_id: str,
    body: CancelOrderRequest,
    x_customer_id: str = Header(default=""),
    x_user_role: str = Header(default="customer"),
) -> StatusResponse:
    """Cancel an order as its owner or as an admin."""
    with domain_errors():
        status = cancel_order(
            order_id,
            requested_by=x_customer_id,
            reason=body.reason,
            is_admin=x_user_role == ADMIN_ROLE,
        )
    return StatusResponse(status=status)


@order_router.post("/{order_id}/refund", response_model=StatusResponse)
def refund(
    order_id: str,
    body: RefundOrderRequest,
    x_customer_id: str = Header(default=""),
    x_user_role: str = Header(default="customer"),
) -> StatusResponse:
    """Refund all or part of an order (admin only)."""
    _require_admin(x_user_role)
    with domain_errors():
        status = refund_order(
            order_id,
            amount=body.amount,
            reason=body.reason,
            requested_by=x_customer_id or ADMIN_ROLE,
            is_admin=True,
            items=body.items,
        )
    return StatusResponse(status=status)


@order_router.post("/{order_id}/status", response_model=StatusResponse)
async def advance_status(
    order_id: str,
    body: AdvanceStatusRequest,
    x_user_role: str = Header(default="customer"),
) -> StatusResponse:
    """Move an order through fulfillment: Shipped, Delivered, Returned."""
    _require_admin(x_user_role)
    with domain_errors():
        status = current_domain.process(
            AdvanceOrderStatus(order_id=order_id, target_status=body.status, note=body.note),
            asynchronous=False,
        )
    return StatusResponse(status=status)


# ---------------------------------------------------------------------------
# Product Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.post("", status_code=201, response_model=ProductIdResponse)
async def register_product(
    body: RegisterProductRequest,
    x_user_role: str = Header(default="customer"),
) -> ProductIdResponse:
    _require_admin(x_user_role)
    with domain_errors():
        product_id = current_domain.process(
            RegisterProduct(
                name=body.name,
                stock=json.dumps(body.stock),
                low_stock_threshold=body.low_stock_threshold,
            ),
            asynchronous=False,
        )
    return ProductIdResponse(product_id=product_id)


@product_router.post("/{product_id}/stock", response_model=StockResponse)
async def receive_stock(
    product_id: str,
    body: ReceiveStockRequest,
    x_user_role: str = Header(default="customer"),
) -> StockResponse:
    _require_admin(x_user_role)
    with domain_errors():
        current_domain.process(
            ReceiveStock(product_id=product_id, variant_key=body.variant_key, quantity=body.quantity),
            asynchronous=False,
        )
    return await get_stock(product_id)


@product_router.get("/{product_id}/stock", response_model=StockResponse)
async def get_stock(product_id: str) -> StockResponse:
    with domain_errors():
        product = InventoryStore().get(product_id)
    return StockResponse(
        product_id=str(product.id),
        name=product.name,
        stock=product.stock_map(),
        total_sold=product.total_sold or 0,
        low_stock_threshold=product.low_stock_threshold,
    )


# ---------------------------------------------------------------------------
# Reservation Router
# ---------------------------------------------------------------------------
reservation_router = APIRouter(prefix="/reservations", tags=["reservations"])


@reservation_router.post("", status_code=201, response_model=ReservationResponse)
async def reserve(body: ReserveStockRequest) -> ReservationResponse:
    """Hold stock for a checkout session."""
    ttl = timedelta(minutes=body.ttl_minutes) if body.ttl_minutes else None
    with domain_errors():
        hold = ReservationManager().reserve(
            body.product_id,
            body.variant_key,
            body.quantity,
            body.session_id,
            ttl=ttl,
        )
    return ReservationResponse(
        reservation_id=hold.reservation_id,
        product_id=hold.product_id,
        variant_key=hold.variant_key,
        quantity=hold.quantity,
        session_id=hold.session_id,
        expires_at=hold.expires_at,
    )


@reservation_router.delete("/{reservation_id}", response_model=StatusResponse)
async def release(reservation_id: str) -> StatusResponse:
    released = ReservationManager().release(reservation_id)
    return StatusResponse(status="released" if released else "not_found")


@reservation_router.post("/sweep", response_model=SweepResponse)
async def sweep(body: SweepReservationsRequest) -> SweepResponse:
    """Delete expired holds. Called periodically by a scheduler."""
    removed = ReservationManager().sweep_expired(product_id=body.product_id)
    return SweepResponse(removed=removed)


@reservation_router.get("/availability", response_model=AvailabilityResponse)
async def availability(product_id: str, variant_key: str, session_id: str | None = None) -> AvailabilityResponse:
    with domain_errors():
        available = ReservationManager().available(product_id, variant_key, session_id=session_id)
    return AvailabilityResponse(product_id=product_id, variant_key=variant_key, available=available)


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/webhook", response_model=WebhookResponse)
async def payment_webhook(
    request: Request,
    x_payment_signature: str = Header(default=""),
) -> WebhookResponse:
    """Apply a signed gateway callback ``{eventId, type, orderId, payload}``."""
    raw_body = await request.body()
    if not get_verifier().verify(raw_body, x_payment_signature):
        logger.warning("Rejected payment webhook with invalid signature")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        body = json.loads(raw_body)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Malformed JSON body") from exc
    try:
        event = PaymentEvent.from_dict(body)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.messages) from exc

    with domain_errors():
        result = await run_in_threadpool(PaymentEventReconciler().apply, event)

    return WebhookResponse(
        status="duplicate" if result.replayed else "processed",
        outcome=result.outcome,
        order_status=result.order_status,
        payment_status=result.payment_status,
    )
