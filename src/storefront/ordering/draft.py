"""Draft order validation and pricing.

Everything here is a pure function of the draft: structural problems are
reported all at once as a protean ValidationError before any stock is
touched.
"""

from protean.exceptions import ValidationError

from storefront.config import CheckoutSettings, checkout_settings

PAYMENT_METHODS = ("cod", "card", "upi")

REQUIRED_ADDRESS_FIELDS = ("street", "city", "postal_code", "country")


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_draft(draft: dict) -> None:
    """Raise ValidationError listing every structural problem with the draft."""
    errors: dict[str, list[str]] = {}

    if not draft.get("customer_id"):
        errors["customer_id"] = ["Customer is required"]

    items = draft.get("items")
    if not isinstance(items, list) or not items:
        errors["items"] = ["Order must contain at least one item"]
    else:
        for position, item in enumerate(items, start=1):
            if not isinstance(item, dict):
                errors.setdefault("items", []).append(f"Item {position}: must be an object")
                continue
            if not item.get("product_id"):
                errors.setdefault("items", []).append(f"Item {position}: product is required")
            if not item.get("variant_key"):
                errors.setdefault("items", []).append(f"Item {position}: variant is required")
            quantity = item.get("quantity")
            if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
                errors.setdefault("items", []).append(f"Item {position}: quantity must be at least 1")
            price = item.get("unit_price")
            if not _is_number(price) or price <= 0:
                errors.setdefault("items", []).append(f"Item {position}: unit price must be positive")

    address = draft.get("shipping_address")
    if not isinstance(address, dict):
        errors["shipping_address"] = ["Shipping address is required"]
    else:
        missing = [f for f in REQUIRED_ADDRESS_FIELDS if not str(address.get(f) or "").strip()]
        if missing:
            errors["shipping_address"] = [f"Missing {', '.join(missing)}"]

    if draft.get("payment_method") not in PAYMENT_METHODS:
        errors["payment_method"] = [f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}"]

    if errors:
        raise ValidationError(errors)


def calculate_totals(items: list[dict], settings: CheckoutSettings | None = None) -> dict:
    """Subtotal, tax, shipping and total for validated line items.

    Shipping is free once the subtotal is strictly above the threshold.
    """
    settings = settings or checkout_settings()
    subtotal = round(sum(item["unit_price"] * item["quantity"] for item in items), 2)
    shipping = 0.0 if subtotal > settings.free_shipping_threshold else settings.shipping_fee
    tax = round(subtotal * settings.tax_rate, 2)
    return {
        "subtotal": subtotal,
        "tax": tax,
        "shipping": round(shipping, 2),
        "total": round(subtotal + tax + shipping, 2),
        "currency": settings.currency,
    }


def normalize_lines(items: list[dict]) -> list[dict]:
    """Keep only the line item fields an order stores."""
    return [
        {
            "product_id": str(item["product_id"]),
            "variant_key": str(item["variant_key"]),
            "title": item.get("title") or "",
            "quantity": item["quantity"],
            "unit_price": float(item["unit_price"]),
        }
        for item in items
    ]


def normalize_address(address: dict) -> dict:
    fields = ("name", "street", "city", "state", "postal_code", "country", "phone")
    return {f: str(address[f]).strip() for f in fields if address.get(f) not in (None, "")}
