"""Storefront bounded context: inventory, orders, holds and payment reconciliation.

Everything that must commit together lives in this single domain so that one
Unit of Work can span the Product, Order and ledger aggregates touched by a
checkout or a payment callback.
"""

import structlog
from protean.domain import Domain

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
