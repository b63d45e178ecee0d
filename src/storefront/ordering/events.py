"""Domain events for the Order aggregate.

Line items, addresses and payment metadata travel as JSON text so that the
events stay flat and replay to exactly the same state.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """A draft order passed validation and its stock was committed."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of line item dicts (with ids)
    shipping_address = Text(required=True)  # JSON: address dict
    payment_method = String(required=True)
    subtotal = Float(required=True)
    tax = Float(required=True)
    shipping = Float(required=True)
    total = Float(required=True)
    currency = String(default="INR")
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderStatusChanged:
    """The order moved along the lifecycle through a validated path."""

    __version__ = 1

    order_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    note = String(max_length=500)
    actor = String(max_length=100)
    changed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class PaymentReconciled:
    """A payment gateway event was applied to the order's payment fields."""

    __version__ = 1

    order_id = Identifier(required=True)
    event_id = String(required=True)
    event_type = String(required=True)
    payment_status = String(required=True)
    payment_details = Text(required=True)  # JSON: merged metadata
    reconciled_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled and its stock returned."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(required=True)
    cancelled_by = String(required=True)
    cancelled_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderRefunded:
    """Money was returned to the customer, optionally for selected items only."""

    __version__ = 1

    order_id = Identifier(required=True)
    amount = Float(required=True)
    reason = String(required=True)
    refunded_by = String(required=True)
    items = Text(required=True)  # JSON: {item_id: quantity restored}
    is_partial = Boolean(default=False)
    refunded_at = DateTime(required=True)
