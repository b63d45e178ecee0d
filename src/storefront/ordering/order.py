"""Order aggregate (Event Sourced).

Orders are only ever created by the checkout flow and only ever change
through paths that consult the lifecycle table: payment reconciliation,
fulfillment, cancellation and refund. Orders are never deleted; terminal
orders stay on record.

Invariants:
    - status is reachable from Pending through the transition table
    - the last status history entry carries the current status
    - total == subtotal + tax + shipping (to the cent)
"""

import json
from datetime import UTC, datetime
from uuid import uuid4

from protean import apply
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.exceptions import InvalidTransition, NotFound
from storefront.ordering.events import (
    OrderCancelled,
    OrderPlaced,
    OrderRefunded,
    OrderStatusChanged,
    PaymentReconciled,
)
from storefront.ordering.lifecycle import (
    CANCELLABLE_STATES,
    INITIAL_STATUS,
    NON_REFUNDABLE_STATES,
    OrderStatus,
    assert_can_transition,
)

# Rounding tolerance for money comparisons
_CENT = 0.005


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class ShippingAddress:
    """Where the order ships to, frozen at checkout."""

    name = String(max_length=255)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)
    phone = String(max_length=30)


@storefront.value_object(part_of="Order")
class OrderTotals:
    subtotal = Float(default=0.0)
    tax = Float(default=0.0)
    shipping = Float(default=0.0)
    total = Float(default=0.0)
    currency = String(max_length=3, default="INR")


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class LineItem:
    """One product variant on an order, priced at checkout time."""

    product_id = Identifier(required=True)
    variant_key = String(required=True, max_length=50)
    title = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    refunded_quantity = Integer(default=0)

    @property
    def refundable_quantity(self):
        return self.quantity - (self.refunded_quantity or 0)


@storefront.entity(part_of="Order")
class StatusEntry:
    status = String(required=True, max_length=50)
    note = String(max_length=500)
    actor = String(max_length=100)
    recorded_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root (Event Sourced)
# ---------------------------------------------------------------------------
@storefront.aggregate(is_event_sourced=True)
class Order:
    order_number = String(required=True, max_length=50)
    customer_id = Identifier(required=True)
    items = HasMany(LineItem)
    status = String(choices=OrderStatus, default=INITIAL_STATUS.value)
    payment_status = String(max_length=50, default="pending")
    payment_method = String(max_length=20)
    payment_details = Text()  # JSON: gateway metadata, shallow-merged
    shipping_address = ValueObject(ShippingAddress)
    totals = ValueObject(OrderTotals)
    status_history = HasMany(StatusEntry)
    cancellation_reason = String(max_length=500)
    cancelled_by = String(max_length=100)
    cancelled_at = DateTime()
    refunded_amount = Float(default=0.0)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(cls, order_number, customer_id, lines, shipping_address, payment_method, totals):
        """Create an order in Pending from an already validated draft.

        Args:
            order_number: Human-readable number claimed for this order.
            customer_id: The customer placing the order.
            lines: List of dicts with product_id, variant_key, title,
                quantity, unit_price.
            shipping_address: Address dict.
            payment_method: One of the accepted payment methods.
            totals: Dict with subtotal, tax, shipping, total, currency.
        """
        # Pre-generate item IDs for deterministic replay
        lines_with_ids = [{**line, "id": str(uuid4()), "refunded_quantity": 0} for line in lines]

        order = cls._create_new()
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=str(customer_id),
                items=json.dumps(lines_with_ids),
                shipping_address=json.dumps(shipping_address),
                payment_method=payment_method,
                subtotal=totals["subtotal"],
                tax=totals["tax"],
                shipping=totals["shipping"],
                total=totals["total"],
                currency=totals.get("currency", "INR"),
                placed_at=datetime.now(UTC),
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def current_status(self):
        return OrderStatus(self.status)

    def payment_metadata(self):
        return json.loads(self.payment_details) if self.payment_details else {}

    def item(self, item_id):
        return next((i for i in self.items if str(i.id) == str(item_id)), None)

    def is_owned_by(self, customer_id):
        return customer_id is not None and str(self.customer_id) == str(customer_id)

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def change_status(self, target, note=None, actor="system"):
        """Move to ``target`` if the lifecycle allows it.

        Returns False for a self-transition, which records nothing.
        """
        target = OrderStatus(target) if not isinstance(target, OrderStatus) else target
        assert_can_transition(self.current_status, target)
        if target == self.current_status:
            return False

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                from_status=self.status,
                to_status=target.value,
                note=note,
                actor=actor,
                changed_at=datetime.now(UTC),
            )
        )
        return True

    def record_payment(self, event_id, event_type, payment_status, metadata):
        """Shallow-merge gateway metadata and set the payment status."""
        merged = {**self.payment_metadata(), **(metadata or {})}
        now = datetime.now(UTC)
        merged["updated_at"] = now.isoformat()

        self.raise_(
            PaymentReconciled(
                order_id=str(self.id),
                event_id=event_id,
                event_type=event_type,
                payment_status=payment_status,
                payment_details=json.dumps(merged, default=str),
                reconciled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Cancellation & Refund
    # -------------------------------------------------------------------
    def cancel(self, reason, cancelled_by):
        """Cancel the order. Stock is restored by the caller."""
        current = self.current_status
        if current not in CANCELLABLE_STATES:
            raise InvalidTransition(
                current.value,
                OrderStatus.CANCELLED.value,
                f"Cannot cancel order in {current.value} state",
            )
        if not reason:
            raise ValidationError({"reason": ["Cancellation reason is required"]})

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                cancelled_by=cancelled_by,
                cancelled_at=datetime.now(UTC),
            )
        )

    def refund(self, amount, reason, refunded_by, quantities=None):
        """Refund money and work out which units go back on the shelf.

        Args:
            amount: Money to refund; with earlier refunds it may not exceed
                the order total.
            quantities: Optional {item_id: quantity}. When given, only those
                units are restored (capped at what is still unrefunded) and
                the order becomes Partially_Refunded. Otherwise every
                unrefunded unit is restored and the order becomes Refunded.

        Returns:
            List of (line item, quantity to restore).
        """
        current = self.current_status
        if current in NON_REFUNDABLE_STATES:
            raise InvalidTransition(
                current.value,
                OrderStatus.REFUNDED.value,
                f"Cannot refund order in {current.value} state",
            )

        errors = {}
        if not reason:
            errors["reason"] = ["Refund reason is required"]
        if amount is None or amount <= 0:
            errors["amount"] = ["Refund amount must be positive"]
        elif amount + (self.refunded_amount or 0.0) > self.totals.total + _CENT:
            errors["amount"] = [
                f"Refund amount exceeds order total {self.totals.total:.2f} "
                f"(already refunded {self.refunded_amount or 0.0:.2f})"
            ]

        restorations = []
        if quantities is not None:
            if not quantities:
                errors["items"] = ["At least one item is required for a partial refund"]
            for item_id, requested in quantities.items():
                line = self.item(item_id)
                if line is None:
                    errors.setdefault("items", []).append(f"Item {item_id} is not on this order")
                elif requested is None or requested < 1:
                    errors.setdefault("items", []).append(f"Quantity for item {item_id} must be at least 1")
                else:
                    quantity = min(requested, line.refundable_quantity)
                    if quantity > 0:
                        restorations.append((line, quantity))
            target = OrderStatus.PARTIALLY_REFUNDED
        else:
            restorations = [(line, line.refundable_quantity) for line in self.items if line.refundable_quantity > 0]
            target = OrderStatus.REFUNDED

        if errors:
            raise ValidationError(errors)
        assert_can_transition(current, target)

        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                amount=round(amount, 2),
                reason=reason,
                refunded_by=refunded_by,
                items=json.dumps({str(line.id): quantity for line, quantity in restorations}),
                is_partial=target == OrderStatus.PARTIALLY_REFUNDED,
                refunded_at=datetime.now(UTC),
            )
        )
        return restorations

    # -------------------------------------------------------------------
    # @apply methods: rebuild state during event replay
    # -------------------------------------------------------------------
    def _record_status(self, status, recorded_at, note=None, actor=None):
        """Set the status and append a history entry if it actually changed."""
        if self.status_history and self.status == status:
            return
        self.status = status
        self.add_status_history(
            StatusEntry(
                id=f"{self.id}-{len(self.status_history or []) + 1}",
                status=status,
                note=note,
                actor=actor,
                recorded_at=recorded_at,
            )
        )

    @apply
    def _on_order_placed(self, event: OrderPlaced):
        self.id = event.order_id
        self.order_number = event.order_number
        self.customer_id = event.customer_id
        self.payment_method = event.payment_method
        self.payment_status = "pending"
        self.refunded_amount = 0.0
        self.created_at = event.placed_at
        self.updated_at = event.placed_at

        items_data = json.loads(event.items) if isinstance(event.items, str) else []
        self.items = [LineItem(**item_data) for item_data in items_data]

        ship_data = json.loads(event.shipping_address) if isinstance(event.shipping_address, str) else {}
        if ship_data:
            self.shipping_address = ShippingAddress(**ship_data)

        self.totals = OrderTotals(
            subtotal=event.subtotal,
            tax=event.tax,
            shipping=event.shipping,
            total=event.total,
            currency=event.currency or "INR",
        )
        self._record_status(INITIAL_STATUS.value, event.placed_at, note="Order placed", actor="customer")

    @apply
    def _on_status_changed(self, event: OrderStatusChanged):
        self._record_status(event.to_status, event.changed_at, note=event.note, actor=event.actor)
        self.updated_at = event.changed_at

    @apply
    def _on_payment_reconciled(self, event: PaymentReconciled):
        self.payment_status = event.payment_status
        self.payment_details = event.payment_details
        self.updated_at = event.reconciled_at

    @apply
    def _on_order_cancelled(self, event: OrderCancelled):
        self._record_status(
            OrderStatus.CANCELLED.value,
            event.cancelled_at,
            note=event.reason,
            actor=event.cancelled_by,
        )
        self.cancellation_reason = event.reason
        self.cancelled_by = event.cancelled_by
        self.cancelled_at = event.cancelled_at
        self.updated_at = event.cancelled_at

    @apply
    def _on_order_refunded(self, event: OrderRefunded):
        restored = json.loads(event.items) if event.items else {}
        for item in self.items:
            if str(item.id) in restored:
                item.refunded_quantity = (item.refunded_quantity or 0) + restored[str(item.id)]

        status = OrderStatus.PARTIALLY_REFUNDED if event.is_partial else OrderStatus.REFUNDED
        self._record_status(status.value, event.refunded_at, note=event.reason, actor=event.refunded_by)
        self.refunded_amount = round((self.refunded_amount or 0.0) + event.amount, 2)
        if not event.is_partial:
            self.payment_status = "refunded"
        self.updated_at = event.refunded_at


def load_order(order_id):
    """Fetch an order or raise NotFound."""
    try:
        return current_domain.repository_for(Order).get(str(order_id))
    except ObjectNotFoundError as exc:
        raise NotFound("Order", order_id) from exc
