"""Reservation aggregate: a short-lived soft hold on stock during checkout.

Holds never touch a product's committed counter. They only lower the number
other shoppers see as available until they expire or are released, and are
deleted outright rather than kept for audit.
"""

from datetime import UTC, datetime

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as some providers return them) as UTC."""
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


@storefront.aggregate
class Reservation:
    product_id = Identifier(required=True)
    variant_key = String(required=True, max_length=50)
    quantity = Integer(required=True, min_value=1)
    session_id = String(required=True, max_length=255)
    created_at = DateTime(required=True)
    expires_at = DateTime(required=True)

    def is_expired(self, as_of: datetime) -> bool:
        return as_utc(self.expires_at) < as_utc(as_of)
