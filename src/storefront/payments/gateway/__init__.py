"""Webhook verifier factory.

Provides get_verifier() / set_verifier() to swap implementations:
- HmacWebhookVerifier keyed by PAYMENT_WEBHOOK_SECRET by default
- FakeWebhookVerifier for development and testing
"""

from storefront.config import webhook_secret
from storefront.payments.gateway.hmac_adapter import HmacWebhookVerifier
from storefront.payments.gateway.port import WebhookVerifier

_current_verifier: WebhookVerifier | None = None


def get_verifier() -> WebhookVerifier:
    """Return the current verifier. Defaults to HMAC with the configured secret."""
    global _current_verifier
    if _current_verifier is None:
        _current_verifier = HmacWebhookVerifier(webhook_secret())
    return _current_verifier


def set_verifier(verifier: WebhookVerifier) -> None:
    """Override the active verifier (useful for tests)."""
    global _current_verifier
    _current_verifier = verifier


def reset_verifier() -> None:
    """Reset to the default verifier."""
    global _current_verifier
    _current_verifier = None
