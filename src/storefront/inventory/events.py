"""Domain events for the Product aggregate.

Each event is an immutable fact about a stock counter. Replaying them in
order rebuilds the per-variant stock map and the total sold counter.
"""

from protean.fields import DateTime, Identifier, Integer, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Product")
class ProductRegistered:
    """A product and its initial per-variant stock were registered."""

    __version__ = 1

    product_id = Identifier(required=True)
    name = String(required=True)
    stock = Text(required=True)  # JSON: {variant_key: quantity}
    low_stock_threshold = Integer(required=True)
    registered_at = DateTime(required=True)


@storefront.event(part_of="Product")
class StockReceived:
    """Units were added to a variant by an administrator."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_key = String(required=True)
    quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    received_at = DateTime(required=True)


@storefront.event(part_of="Product")
class StockDecremented:
    """Units were committed to an order."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_key = String(required=True)
    quantity = Integer(required=True)
    remaining = Integer(required=True)
    total_sold = Integer(required=True)
    decremented_at = DateTime(required=True)


@storefront.event(part_of="Product")
class StockRestored:
    """Units came back from a cancelled or refunded order."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_key = String(required=True)
    quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    total_sold = Integer(required=True)
    restored_at = DateTime(required=True)


@storefront.event(part_of="Product")
class LowStockDetected:
    """A variant dropped to or below the product's low-stock threshold."""

    __version__ = 1

    product_id = Identifier(required=True)
    product_name = String(required=True)
    variant_key = String(required=True)
    remaining = Integer(required=True)
    threshold = Integer(required=True)
    detected_at = DateTime(required=True)
