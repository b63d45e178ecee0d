"""Cancellation and refund: commands, handlers and retrying entry points.

Both operations return stock to the shelf and move the order along the
lifecycle in one Unit of Work. The store does not deduplicate restores, so
each handler restores exactly the units its own event records: all lines on
cancel, and on refund only the units not already refunded.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.exceptions import PermissionDenied
from storefront.inventory.store import InventoryStore
from storefront.ordering.order import Order, load_order
from storefront.utils.retry import RetryPolicy, retry_on_conflict

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    requested_by = String(required=True, max_length=255)
    is_admin = Boolean(default=False)
    reason = String(max_length=500)


@storefront.command(part_of="Order")
class RefundOrder:
    order_id = Identifier(required=True)
    amount = Float(required=True)
    reason = String(max_length=500)
    requested_by = String(required=True, max_length=255)
    is_admin = Boolean(default=False)
    items = Text()  # JSON: {item_id: quantity}; omitted for a full refund


@storefront.command_handler(part_of=Order)
class CancellationHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = load_order(command.order_id)
        if not command.is_admin and not order.is_owned_by(command.requested_by):
            raise PermissionDenied(f"{command.requested_by} may not cancel order {order.id}")

        cancelled_by = "admin" if command.is_admin else "customer"
        order.cancel(reason=command.reason, cancelled_by=cancelled_by)

        store = InventoryStore()
        for line in order.items:
            store.restore(line.product_id, line.variant_key, line.quantity)
        store.save()
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order cancelled",
            order_id=str(order.id),
            cancelled_by=cancelled_by,
            requested_by=command.requested_by,
        )
        return order.status

    @handle(RefundOrder)
    def refund_order(self, command):
        if not command.is_admin:
            raise PermissionDenied("Only administrators may issue refunds")

        quantities = None
        if command.items:
            try:
                quantities = json.loads(command.items)
            except json.JSONDecodeError as exc:
                raise ValidationError({"items": [f"Malformed JSON: {exc.msg}"]}) from exc
            if not isinstance(quantities, dict):
                raise ValidationError({"items": ["Items must map item ids to quantities"]})

        order = load_order(command.order_id)
        restorations = order.refund(
            amount=command.amount,
            reason=command.reason,
            refunded_by=command.requested_by,
            quantities=quantities,
        )

        store = InventoryStore()
        for line, quantity in restorations:
            store.restore(line.product_id, line.variant_key, quantity)
        store.save()
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order refunded",
            order_id=str(order.id),
            amount=command.amount,
            status=order.status,
            restored_units=sum(q for _, q in restorations),
        )
        return order.status


def cancel_order(order_id, requested_by, reason, is_admin=False, retry_policy: RetryPolicy | None = None):
    """Cancel an order, retrying when a product changed concurrently."""
    command = CancelOrder(order_id=str(order_id), requested_by=str(requested_by), is_admin=is_admin, reason=reason)
    return retry_on_conflict(
        lambda: current_domain.process(command, asynchronous=False),
        policy=retry_policy,
        operation_name="cancel_order",
    )


def refund_order(
    order_id,
    amount,
    reason,
    requested_by,
    is_admin=False,
    items: dict | None = None,
    retry_policy: RetryPolicy | None = None,
):
    """Refund an order, retrying when a product changed concurrently."""
    command = RefundOrder(
        order_id=str(order_id),
        amount=amount,
        reason=reason,
        requested_by=str(requested_by),
        is_admin=is_admin,
        items=json.dumps(items) if items is not None else None,
    )
    return retry_on_conflict(
        lambda: current_domain.process(command, asynchronous=False),
        policy=retry_policy,
        operation_name="refund_order",
    )
