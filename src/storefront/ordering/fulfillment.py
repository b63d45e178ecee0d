"""Fulfillment transitions: shipping, delivery and returns.

Admin-driven status moves that have no stock or money side effects. Each one
goes through the lifecycle table, so asking to ship a cancelled order fails
with InvalidTransition.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.ordering.lifecycle import OrderStatus
from storefront.ordering.order import Order, load_order

logger = structlog.get_logger(__name__)

FULFILLMENT_TARGETS = frozenset({OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.RETURNED})


@storefront.command(part_of="Order")
class AdvanceOrderStatus:
    order_id = Identifier(required=True)
    target_status = String(required=True, max_length=50)
    note = String(max_length=500)
    actor = String(max_length=100, default="admin")


@storefront.command_handler(part_of=Order)
class FulfillmentHandler:
    @handle(AdvanceOrderStatus)
    def advance_order_status(self, command):
        try:
            target = OrderStatus(command.target_status)
        except ValueError as exc:
            raise ValidationError({"target_status": [f"Unknown status {command.target_status}"]}) from exc
        if target not in FULFILLMENT_TARGETS:
            raise ValidationError(
                {"target_status": [f"{target.value} is not a fulfillment status; use its dedicated operation"]}
            )

        order = load_order(command.order_id)
        previous = order.status
        changed = order.change_status(target, note=command.note, actor=command.actor)
        if changed:
            current_domain.repository_for(Order).add(order)
            logger.info(
                "Order status advanced",
                order_id=str(order.id),
                from_status=previous,
                to_status=target.value,
            )
        return order.status
