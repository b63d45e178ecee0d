"""Human-readable order numbers.

Numbers look like ``ORD-20260118143005-4821``: the placement time to the
second plus four random digits. That alone is not unique, so each number is
claimed by writing an OrderNumberClaim keyed on the number itself inside the
same Unit of Work as the order. A number that is already claimed is
regenerated a bounded number of times.
"""

import random
from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.exceptions import ConcurrencyConflict

logger = structlog.get_logger(__name__)

MAX_ALLOCATION_ATTEMPTS = 5


@storefront.aggregate
class OrderNumberClaim:
    order_number = String(identifier=True, required=True, max_length=50)
    order_id = Identifier(required=True)
    claimed_at = DateTime(required=True)


def generate_order_number(now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    suffix = random.randint(0, 9999)  # nosec B311 - display number, not a secret
    return f"ORD-{now:%Y%m%d%H%M%S}-{suffix:04d}"


def allocate_order_number() -> str:
    """Return a number no existing claim holds.

    Raises:
        ConcurrencyConflict: every generated candidate was already taken.
    """
    repo = current_domain.repository_for(OrderNumberClaim)
    for attempt in range(1, MAX_ALLOCATION_ATTEMPTS + 1):
        candidate = generate_order_number()
        try:
            repo.get(candidate)
        except ObjectNotFoundError:
            return candidate
        logger.warning("Order number collision", order_number=candidate, attempt=attempt)

    raise ConcurrencyConflict(f"Could not allocate a unique order number after {MAX_ALLOCATION_ATTEMPTS} attempts")


def record_claim(order_number, order_id) -> None:
    """Persist the claim in the current Unit of Work, next to the order."""
    current_domain.repository_for(OrderNumberClaim).add(
        OrderNumberClaim(
            order_number=order_number,
            order_id=str(order_id),
            claimed_at=datetime.now(UTC),
        )
    )
