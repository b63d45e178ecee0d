"""Order creation: command, handler and the retrying orchestrator.

One PlaceOrder command is one atomic unit: every line item's stock is
decremented, the order number is claimed and the order is stored, or none
of it happens. The orchestrator re-runs the whole unit when the event store
reports that a product changed underneath it, and only sends low-stock alerts
and the order-created callback once a unit has committed.
"""

import json
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.exceptions import InsufficientStock, NotFound, StockUnavailable, VariantNotFound
from storefront.inventory.store import InventoryStore
from storefront.notifications.dispatch import emit_alerts, run_callback
from storefront.notifications.port import LowStockAlert
from storefront.ordering.draft import (
    calculate_totals,
    normalize_address,
    normalize_lines,
    validate_draft,
)
from storefront.ordering.numbering import allocate_order_number, record_claim
from storefront.ordering.order import Order
from storefront.utils.retry import RetryPolicy, retry_on_conflict

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class PlaceOrder:
    customer_id = String(max_length=255)
    items = Text()  # JSON: list of {product_id, variant_key, quantity, unit_price, title}
    shipping_address = Text()  # JSON: address dict
    payment_method = String(max_length=20)


def _load_json(raw, field_name):
    if raw is None or not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError({field_name: [f"Malformed JSON: {exc.msg}"]}) from exc


def _unavailable(line, available, reason):
    return {
        "product_id": line["product_id"],
        "variant_key": line["variant_key"],
        "title": line["title"],
        "requested": line["quantity"],
        "available": available,
        "reason": reason,
    }


@storefront.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        draft = {
            "customer_id": command.customer_id,
            "items": _load_json(command.items, "items"),
            "shipping_address": _load_json(command.shipping_address, "shipping_address"),
            "payment_method": command.payment_method,
        }
        validate_draft(draft)
        lines = normalize_lines(draft["items"])

        store = InventoryStore()
        unavailable = []
        for line in lines:
            try:
                store.try_decrement(line["product_id"], line["variant_key"], line["quantity"])
            except NotFound:
                unavailable.append(_unavailable(line, 0, "product_not_found"))
            except VariantNotFound:
                unavailable.append(_unavailable(line, 0, "variant_not_found"))
            except InsufficientStock as exc:
                unavailable.append(_unavailable(line, exc.available, "insufficient_stock"))

        if unavailable:
            logger.info(
                "Order rejected for unavailable stock",
                customer_id=draft["customer_id"],
                unavailable=len(unavailable),
            )
            raise StockUnavailable(unavailable)

        totals = calculate_totals(lines)
        order_number = allocate_order_number()
        order = Order.place(
            order_number=order_number,
            customer_id=draft["customer_id"],
            lines=lines,
            shipping_address=normalize_address(draft["shipping_address"]),
            payment_method=draft["payment_method"],
            totals=totals,
        )
        record_claim(order_number, order.id)

        alerts = store.low_stock_alerts()
        store.save()
        current_domain.repository_for(Order).add(order)

        return {
            "order_id": str(order.id),
            "order_number": order_number,
            "status": order.status,
            "totals": totals,
            "low_stock_alerts": alerts,
        }


@dataclass(frozen=True)
class OrderReceipt:
    order_id: str
    order_number: str
    status: str
    totals: dict
    attempts: int
    low_stock_alerts: tuple[LowStockAlert, ...] = field(default_factory=tuple)


class OrderCreationOrchestrator:
    """Creates orders with bounded retries on contention.

    Args:
        retry_policy: Attempts, backoff and deadline. Defaults to the
            environment-configured policy.
        on_order_created: Optional callable receiving the OrderReceipt after
            commit. Its failures are logged and ignored.
    """

    def __init__(
        self,
        retry_policy: RetryPolicy | None = None,
        on_order_created: Callable[[OrderReceipt], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.retry_policy = retry_policy or RetryPolicy.from_env()
        self.on_order_created = on_order_created
        self._sleep = sleep
        self._clock = clock

    def create(self, draft: dict) -> OrderReceipt:
        """Validate the draft, commit stock and order, and return a receipt.

        Raises:
            ValidationError: malformed draft, nothing changed.
            StockUnavailable: itemized shortfall, nothing changed.
            RetryExhausted / TemporarilyUnavailable: contention persisted.
        """
        validate_draft(draft)
        command = PlaceOrder(
            customer_id=str(draft["customer_id"]),
            items=json.dumps(draft["items"]),
            shipping_address=json.dumps(draft["shipping_address"]),
            payment_method=draft["payment_method"],
        )

        attempts = 0

        def attempt():
            nonlocal attempts
            attempts += 1
            return current_domain.process(command, asynchronous=False)

        result = retry_on_conflict(
            attempt,
            policy=self.retry_policy,
            operation_name="create_order",
            sleep=self._sleep,
            clock=self._clock,
        )

        receipt = OrderReceipt(
            order_id=result["order_id"],
            order_number=result["order_number"],
            status=result["status"],
            totals=result["totals"],
            attempts=attempts,
            low_stock_alerts=tuple(result["low_stock_alerts"]),
        )
        logger.info(
            "Order created",
            order_id=receipt.order_id,
            order_number=receipt.order_number,
            total=receipt.totals["total"],
            attempts=attempts,
        )

        emit_alerts(receipt.low_stock_alerts)
        run_callback(self.on_order_created, receipt)
        return receipt
