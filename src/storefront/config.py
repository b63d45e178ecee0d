"""Environment-driven settings for the storefront core.

Values are read at call time so tests can override them with
``monkeypatch.setenv`` without reloading modules.
"""

import os
from dataclasses import dataclass


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw not in (None, "") else default


@dataclass(frozen=True)
class CheckoutSettings:
    tax_rate: float = 0.18
    shipping_fee: float = 100.0
    free_shipping_threshold: float = 1000.0
    currency: str = "INR"


@dataclass(frozen=True)
class InventorySettings:
    low_stock_threshold: int = 5
    reservation_ttl_minutes: int = 15


def checkout_settings() -> CheckoutSettings:
    return CheckoutSettings(
        tax_rate=_env_float("STOREFRONT_TAX_RATE", 0.18),
        shipping_fee=_env_float("STOREFRONT_SHIPPING_FEE", 100.0),
        free_shipping_threshold=_env_float("STOREFRONT_FREE_SHIPPING_THRESHOLD", 1000.0),
        currency=os.environ.get("STOREFRONT_CURRENCY", "INR"),
    )


def inventory_settings() -> InventorySettings:
    return InventorySettings(
        low_stock_threshold=_env_int("STOREFRONT_LOW_STOCK_THRESHOLD", 5),
        reservation_ttl_minutes=_env_int("STOREFRONT_RESERVATION_TTL_MINUTES", 15),
    )


def webhook_secret() -> str:
    """Shared secret used to sign payment gateway callbacks."""
    return os.environ.get("PAYMENT_WEBHOOK_SECRET", "")
