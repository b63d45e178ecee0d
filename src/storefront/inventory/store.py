"""Inventory Store: get, decrement and restore stock inside one Unit of Work.

A command handler creates one InventoryStore, routes every stock movement
through it, and calls ``save()`` once all business checks have passed. The
store keeps one loaded Product per id, so several lines against the same
product see each other's decrements, and products are only handed to the
repository when the whole unit is known to succeed.

Before handing products over, ``save()`` compares the version each product
was loaded at with the version last committed to its stream. A mismatch means
another unit sold or restored stock in between, and the whole unit is
abandoned with ConcurrencyConflict so the caller can retry against fresh
counters.
"""

import contextvars

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.exceptions import ConcurrencyConflict, NotFound
from storefront.inventory.product import Product

logger = structlog.get_logger(__name__)


def committed_version(product_id) -> int | None:
    """Version of the product as last committed, ignoring any open unit of work.

    Runs in an empty context so the read goes to the event store rather than
    the snapshot the current unit took when it started.
    """

    def _read():
        with storefront.domain_context():
            product = storefront.event_store.store.load_aggregate(Product, str(product_id))
        return None if product is None else product._version

    return contextvars.Context().run(_read)


class InventoryStore:
    def __init__(self):
        self._loaded: dict[str, Product] = {}
        self._touched: set[str] = set()
        self._versions: dict[str, int] = {}

    def get(self, product_id) -> Product:
        """Return the product, loading it once per unit.

        Raises:
            NotFound: no product with this id exists.
        """
        key = str(product_id)
        if key not in self._loaded:
            try:
                self._loaded[key] = current_domain.repository_for(Product).get(key)
                self._versions[key] = self._loaded[key]._version
            except ObjectNotFoundError as exc:
                raise NotFound("Product", key) from exc
        return self._loaded[key]

    def try_decrement(self, product_id, variant_key, quantity) -> int:
        """Decrement a variant counter. Returns the remaining quantity.

        Raises NotFound, VariantNotFound or InsufficientStock with nothing
        changed.
        """
        product = self.get(product_id)
        remaining = product.try_decrement(variant_key, quantity)
        self._touched.add(str(product_id))
        logger.debug(
            "Stock decremented",
            product_id=str(product_id),
            variant_key=variant_key,
            quantity=quantity,
            remaining=remaining,
        )
        return remaining

    def restore(self, product_id, variant_key, quantity) -> int:
        """Add units back to a variant counter. Returns the new quantity."""
        product = self.get(product_id)
        new_quantity = product.restore(variant_key, quantity)
        self._touched.add(str(product_id))
        logger.debug(
            "Stock restored",
            product_id=str(product_id),
            variant_key=variant_key,
            quantity=quantity,
            new_quantity=new_quantity,
        )
        return new_quantity

    def low_stock_alerts(self):
        alerts = []
        for product_id in sorted(self._touched):
            alerts.extend(self._loaded[product_id].pending_low_stock_alerts())
        return alerts

    def save(self) -> None:
        """Register every changed product with the current Unit of Work.

        Raises:
            ConcurrencyConflict: a touched product changed since it was loaded.
        """
        for product_id in sorted(self._touched):
            current = committed_version(product_id)
            if current != self._versions[product_id]:
                logger.info(
                    "Stock changed under this unit",
                    product_id=product_id,
                    loaded_version=self._versions[product_id],
                    committed_version=current,
                )
                raise ConcurrencyConflict(f"Product {product_id} changed since it was loaded")

        repo = current_domain.repository_for(Product)
        for product_id in sorted(self._touched):
            repo.add(self._loaded[product_id])
