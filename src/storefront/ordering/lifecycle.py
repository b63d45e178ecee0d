"""Order lifecycle: states and the legal transitions between them.

Pure data and functions, no I/O. Every path that changes an order's status
asks ``can_transition`` first.

    Pending → Payment_Processing → Processing → Shipped → Delivered
    Payment_Processing ⇄ Payment_Failed
    Shipped/Delivered → Returned
    Delivered/Returned → Partially_Refunded → Refunded
    Pending/Payment_Processing/Payment_Failed/Processing → Cancelled → Refunded

Refunded is terminal. Moving to the current status is always legal and is a
no-op for the status history.
"""

from collections import deque
from enum import Enum

from storefront.exceptions import InvalidTransition


class OrderStatus(Enum):
    PENDING = "Pending"
    PAYMENT_PROCESSING = "Payment_Processing"
    PAYMENT_FAILED = "Payment_Failed"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"
    PARTIALLY_REFUNDED = "Partially_Refunded"
    RETURNED = "Returned"


INITIAL_STATUS = OrderStatus.PENDING

_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAYMENT_PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PAYMENT_PROCESSING: {
        OrderStatus.PROCESSING,
        OrderStatus.PAYMENT_FAILED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.PAYMENT_FAILED: {OrderStatus.PAYMENT_PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.RETURNED},
    OrderStatus.DELIVERED: {
        OrderStatus.RETURNED,
        OrderStatus.REFUNDED,
        OrderStatus.PARTIALLY_REFUNDED,
    },
    OrderStatus.CANCELLED: {OrderStatus.REFUNDED},
    OrderStatus.RETURNED: {OrderStatus.REFUNDED, OrderStatus.PARTIALLY_REFUNDED},
    OrderStatus.PARTIALLY_REFUNDED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),  # Terminal
}

# States from which a customer or admin may cancel
CANCELLABLE_STATES = frozenset(
    {
        OrderStatus.PENDING,
        OrderStatus.PAYMENT_PROCESSING,
        OrderStatus.PAYMENT_FAILED,
        OrderStatus.PROCESSING,
    }
)

# States from which a refund is never accepted
NON_REFUNDABLE_STATES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})


def _coerce(status) -> OrderStatus:
    return status if isinstance(status, OrderStatus) else OrderStatus(status)


def allowed_targets(current) -> frozenset[OrderStatus]:
    """Statuses reachable from ``current`` in one step, excluding itself."""
    return frozenset(_VALID_TRANSITIONS[_coerce(current)])


def can_transition(current, target) -> bool:
    """True when ``target`` equals ``current`` or is listed as its successor.

    Accepts OrderStatus members or their string values. Unknown strings are
    never legal.
    """
    try:
        current, target = _coerce(current), _coerce(target)
    except ValueError:
        return False
    return target == current or target in _VALID_TRANSITIONS[current]


def assert_can_transition(current, target) -> None:
    if not can_transition(current, target):
        current_value = current.value if isinstance(current, OrderStatus) else current
        target_value = target.value if isinstance(target, OrderStatus) else target
        raise InvalidTransition(current_value, target_value)


def is_terminal(status) -> bool:
    return not _VALID_TRANSITIONS[_coerce(status)]


def reachable_from(start=INITIAL_STATUS) -> set[OrderStatus]:
    """Every status reachable from ``start`` (inclusive) via the table."""
    start = _coerce(start)
    seen = {start}
    queue = deque([start])
    while queue:
        for nxt in _VALID_TRANSITIONS[queue.popleft()]:
            if nxt not in seen:
                seen.add(nxt)
                queue.append(nxt)
    return seen
