"""Error taxonomy of the storefront core.

Malformed input is reported with ``protean.exceptions.ValidationError`` like
every other field-level check in the domain. The classes below cover the
business and infrastructure outcomes that callers need to tell apart.
"""


class StorefrontError(Exception):
    """Base class for storefront errors."""


class NotFound(StorefrontError):
    """An order or product that does not exist was referenced."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = str(identifier)
        super().__init__(f"{kind} {identifier} not found")


class VariantNotFound(StorefrontError):
    """The product has no stock counter for the requested variant."""

    def __init__(self, product_id: str, variant_key: str):
        self.product_id = str(product_id)
        self.variant_key = variant_key
        super().__init__(f"Variant {variant_key} not found on product {product_id}")


class InsufficientStock(StorefrontError):
    """Fewer units are available than were requested."""

    def __init__(self, product_id: str, variant_key: str, requested: int, available: int):
        self.product_id = str(product_id)
        self.variant_key = variant_key
        self.requested = requested
        self.available = available
        super().__init__(
            f"Only {available} of {variant_key} available on product {product_id}, {requested} requested"
        )


class StockUnavailable(StorefrontError):
    """One or more line items of a draft order could not be fulfilled.

    ``items`` holds one dict per failing line with ``product_id``,
    ``variant_key``, ``title``, ``requested``, ``available`` and ``reason``.
    """

    def __init__(self, items: list[dict]):
        self.items = items
        super().__init__(f"{len(items)} item(s) unavailable")


class InvalidTransition(StorefrontError):
    """An order status change is not allowed by the transition table."""

    def __init__(self, current: str, target: str, message: str | None = None):
        self.current = current
        self.target = target
        super().__init__(message or f"Cannot transition from {current} to {target}")


class PermissionDenied(StorefrontError):
    """The requester is not allowed to perform the operation."""


class ConcurrencyConflict(StorefrontError):
    """The atomic unit lost a race against a concurrent writer."""


class RetryExhausted(StorefrontError):
    """Every retry attempt ended in a concurrency conflict."""

    def __init__(self, operation: str, attempts: int, last_error: Exception | None = None):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{operation} failed after {attempts} attempt(s): {last_error}")


class TemporarilyUnavailable(StorefrontError):
    """The retry deadline elapsed before the operation could commit."""

    def __init__(self, operation: str, elapsed: float, attempts: int):
        self.operation = operation
        self.elapsed = elapsed
        self.attempts = attempts
        super().__init__(f"{operation} temporarily unavailable after {elapsed:.2f}s ({attempts} attempt(s))")


class ReconciliationError(NotFound):
    """A payment event referenced an order that does not exist."""

    def __init__(self, event_id: str, order_id: str):
        self.event_id = event_id
        super().__init__("Order", order_id)


class ExternalSideEffectFailure(StorefrontError):
    """A best-effort side effect (notification, callback) failed."""
