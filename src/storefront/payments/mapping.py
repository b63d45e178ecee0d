"""Gateway event types and what they mean for an order.

Each known event type maps to a target order status (or None for "leave the
status alone") and a payment status. Payment statuses are ranked so that a
late, reordered delivery can never move the payment backwards.
"""

from dataclasses import dataclass

from storefront.ordering.lifecycle import OrderStatus, can_transition


@dataclass(frozen=True)
class PaymentTransition:
    order_status: OrderStatus | None
    payment_status: str


EVENT_TRANSITIONS = {
    "authorized": PaymentTransition(OrderStatus.PAYMENT_PROCESSING, "authorized"),
    "captured": PaymentTransition(OrderStatus.PROCESSING, "paid"),
    "paid": PaymentTransition(OrderStatus.PROCESSING, "paid"),
    "failed": PaymentTransition(OrderStatus.PAYMENT_FAILED, "failed"),
    "payment_failed": PaymentTransition(OrderStatus.PAYMENT_FAILED, "failed"),
    "refund_initiated": PaymentTransition(None, "refund_initiated"),
    "refunded": PaymentTransition(OrderStatus.REFUNDED, "refunded"),
    # Dotted gateway names
    "payment.authorized": PaymentTransition(OrderStatus.PAYMENT_PROCESSING, "authorized"),
    "payment.captured": PaymentTransition(OrderStatus.PROCESSING, "paid"),
    "payment.failed": PaymentTransition(OrderStatus.PAYMENT_FAILED, "failed"),
    "refund.created": PaymentTransition(None, "refund_initiated"),
    "refund.processed": PaymentTransition(OrderStatus.REFUNDED, "refunded"),
}

PAYMENT_STATUS_RANK = {
    "pending": 0,
    "authorized": 1,
    "failed": 1,
    "paid": 2,
    "refund_initiated": 3,
    "refunded": 4,
}


def resolve(event_type: str) -> PaymentTransition | None:
    return EVENT_TRANSITIONS.get((event_type or "").strip().lower())


def is_stale(current_payment_status: str | None, incoming_payment_status: str) -> bool:
    """True if the incoming status ranks below what the order already has."""
    current_rank = PAYMENT_STATUS_RANK.get(current_payment_status or "pending", 0)
    return PAYMENT_STATUS_RANK[incoming_payment_status] < current_rank


def plan_status_path(current: OrderStatus, target: OrderStatus | None) -> list[OrderStatus] | None:
    """Steps that take an order from ``current`` to ``target``.

    Returns ``[]`` when there is nothing to do, ``[target]`` for a legal
    direct move, ``[Payment_Processing, target]`` when the gateway skipped
    the authorization callback, and None when no legal path exists.
    """
    if target is None or target == current:
        return []
    if can_transition(current, target):
        return [target]
    bridge = OrderStatus.PAYMENT_PROCESSING
    if can_transition(current, bridge) and can_transition(bridge, target):
        return [bridge, target]
    return None
