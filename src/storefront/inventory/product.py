"""Product aggregate (Event Sourced): per-variant stock counters.

A Product owns one VariantStock entity per purchasable variant (a size, a
colour). Counters are only ever changed through the events below, so every
unit that left or returned to the shelf is on record.

Invariant: every variant quantity is >= 0 at all observable points. A
decrement that would break it is rejected before any event is raised.
"""

import json
from datetime import UTC, datetime

from protean import apply
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Integer, String

from storefront.domain import storefront
from storefront.exceptions import InsufficientStock, VariantNotFound
from storefront.inventory.events import (
    LowStockDetected,
    ProductRegistered,
    StockDecremented,
    StockReceived,
    StockRestored,
)
from storefront.notifications.port import LowStockAlert


@storefront.entity(part_of="Product")
class VariantStock:
    """Units on hand for one variant of a product."""

    variant_key = String(required=True, max_length=50)
    quantity = Integer(required=True, min_value=0, default=0)


@storefront.aggregate(is_event_sourced=True)
class Product:
    name = String(required=True, max_length=255)
    stock = HasMany(VariantStock)
    total_sold = Integer(default=0)
    low_stock_threshold = Integer(default=5)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def register(cls, name, stock, low_stock_threshold=5):
        """Register a product with its opening stock map.

        Args:
            name: Display name.
            stock: Dict of variant key to opening quantity.
            low_stock_threshold: Remaining quantity at or below which a
                LowStockDetected event is raised.
        """
        errors = {}
        if not name:
            errors["name"] = ["Name is required"]
        if not isinstance(stock, dict):
            errors["stock"] = ["Stock must be a mapping of variant to quantity"]
        else:
            bad = [k for k, v in stock.items() if not isinstance(v, int) or isinstance(v, bool) or v < 0]
            if bad:
                errors["stock"] = [f"Quantity for {k} must be a non-negative integer" for k in bad]
        if low_stock_threshold is None or low_stock_threshold < 0:
            errors["low_stock_threshold"] = ["Threshold must be non-negative"]
        if errors:
            raise ValidationError(errors)

        product = cls._create_new()
        product.raise_(
            ProductRegistered(
                product_id=str(product.id),
                name=name,
                stock=json.dumps(stock),
                low_stock_threshold=low_stock_threshold,
                registered_at=datetime.now(UTC),
            )
        )
        return product

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def _variant(self, variant_key):
        return next((v for v in (self.stock or []) if v.variant_key == variant_key), None)

    def available(self, variant_key):
        """Units on hand for a variant, or None when the variant is unknown."""
        variant = self._variant(variant_key)
        return variant.quantity if variant else None

    def stock_map(self):
        return {v.variant_key: v.quantity for v in (self.stock or [])}

    def pending_low_stock_alerts(self):
        """Alerts for LowStockDetected events raised but not yet committed."""
        return [
            LowStockAlert(
                product_id=str(event.product_id),
                product_name=event.product_name,
                variant_key=event.variant_key,
                remaining=event.remaining,
                threshold=event.threshold,
            )
            for event in self._events
            if isinstance(event, LowStockDetected)
        ]

    # -------------------------------------------------------------------
    # Stock movements
    # -------------------------------------------------------------------
    def try_decrement(self, variant_key, quantity):
        """Take ``quantity`` units of a variant, or raise without changing anything.

        Raises:
            VariantNotFound: the variant has no counter on this product.
            InsufficientStock: fewer than ``quantity`` units remain; carries
                the current count as ``available``.
        """
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        variant = self._variant(variant_key)
        if variant is None:
            raise VariantNotFound(self.id, variant_key)
        if variant.quantity < quantity:
            raise InsufficientStock(self.id, variant_key, quantity, variant.quantity)

        now = datetime.now(UTC)
        remaining = variant.quantity - quantity
        self.raise_(
            StockDecremented(
                product_id=str(self.id),
                variant_key=variant_key,
                quantity=quantity,
                remaining=remaining,
                total_sold=(self.total_sold or 0) + quantity,
                decremented_at=now,
            )
        )
        if remaining <= self.low_stock_threshold:
            self.raise_(
                LowStockDetected(
                    product_id=str(self.id),
                    product_name=self.name,
                    variant_key=variant_key,
                    remaining=remaining,
                    threshold=self.low_stock_threshold,
                    detected_at=now,
                )
            )
        return remaining

    def restore(self, variant_key, quantity):
        """Put units back. A variant missing from the map gets a fresh counter.

        Does not deduplicate: callers restore exactly once per cancellation
        or refund.
        """
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        current = self.available(variant_key) or 0
        self.raise_(
            StockRestored(
                product_id=str(self.id),
                variant_key=variant_key,
                quantity=quantity,
                new_quantity=current + quantity,
                total_sold=max(0, (self.total_sold or 0) - quantity),
                restored_at=datetime.now(UTC),
            )
        )
        return current + quantity

    def receive_stock(self, variant_key, quantity):
        """Add newly delivered units to a variant, creating it if needed."""
        if not variant_key:
            raise ValidationError({"variant_key": ["Variant is required"]})
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        current = self.available(variant_key) or 0
        self.raise_(
            StockReceived(
                product_id=str(self.id),
                variant_key=variant_key,
                quantity=quantity,
                new_quantity=current + quantity,
                received_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # @apply methods: rebuild state during event replay
    # -------------------------------------------------------------------
    def _set_quantity(self, variant_key, quantity):
        variant = self._variant(variant_key)
        if variant is None:
            self.add_stock(VariantStock(variant_key=variant_key, quantity=quantity))
        else:
            variant.quantity = quantity

    @apply
    def _on_product_registered(self, event: ProductRegistered):
        self.id = event.product_id
        self.name = event.name
        self.low_stock_threshold = event.low_stock_threshold
        self.total_sold = 0
        self.created_at = event.registered_at
        self.updated_at = event.registered_at

        stock = json.loads(event.stock) if isinstance(event.stock, str) else {}
        self.stock = [VariantStock(variant_key=key, quantity=qty) for key, qty in stock.items()]

    @apply
    def _on_stock_received(self, event: StockReceived):
        self._set_quantity(event.variant_key, event.new_quantity)
        self.updated_at = event.received_at

    @apply
    def _on_stock_decremented(self, event: StockDecremented):
        self._set_quantity(event.variant_key, event.remaining)
        self.total_sold = event.total_sold
        self.updated_at = event.decremented_at

    @apply
    def _on_stock_restored(self, event: StockRestored):
        self._set_quantity(event.variant_key, event.new_quantity)
        self.total_sold = event.total_sold
        self.updated_at = event.restored_at

    @apply
    def _on_low_stock_detected(self, event: LowStockDetected):
        """Informational event, no state change."""
