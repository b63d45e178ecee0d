"""Product administration: registering products and receiving stock.

These are the only entry points for stock that does not come from an order
being placed, cancelled or refunded.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.config import inventory_settings
from storefront.domain import storefront
from storefront.exceptions import NotFound
from storefront.inventory.product import Product

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Product")
class RegisterProduct:
    name = String(required=True, max_length=255)
    stock = Text(required=True)  # JSON: {variant_key: quantity}
    low_stock_threshold = Integer(min_value=0)


@storefront.command(part_of="Product")
class ReceiveStock:
    product_id = Identifier(required=True)
    variant_key = String(required=True, max_length=50)
    quantity = Integer(required=True, min_value=1)


@storefront.command_handler(part_of=Product)
class ProductManagementHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        try:
            stock = json.loads(command.stock) if isinstance(command.stock, str) else command.stock
        except json.JSONDecodeError as exc:
            raise ValidationError({"stock": [f"Malformed JSON: {exc.msg}"]}) from exc
        threshold = command.low_stock_threshold
        if threshold is None:
            threshold = inventory_settings().low_stock_threshold

        product = Product.register(name=command.name, stock=stock, low_stock_threshold=threshold)
        current_domain.repository_for(Product).add(product)

        logger.info("Product registered", product_id=str(product.id), variants=sorted(stock))
        return str(product.id)

    @handle(ReceiveStock)
    def receive_stock(self, command):
        repo = current_domain.repository_for(Product)
        try:
            product = repo.get(command.product_id)
        except ObjectNotFoundError as exc:
            raise NotFound("Product", command.product_id) from exc

        product.receive_stock(command.variant_key, command.quantity)
        repo.add(product)

        logger.info(
            "Stock received",
            product_id=str(command.product_id),
            variant_key=command.variant_key,
            quantity=command.quantity,
        )
        return product.available(command.variant_key)
