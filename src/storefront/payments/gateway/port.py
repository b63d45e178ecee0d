"""Webhook verifier port (abstract interface).

Every payment gateway callback is checked against its signature before the
body is even parsed. Adapters decide how a signature is computed.
"""

from abc import ABC, abstractmethod


class WebhookVerifier(ABC):
    """Abstract signature check for gateway callbacks."""

    @abstractmethod
    def verify(self, raw_body: bytes, signature: str) -> bool:
        """Return True only if ``signature`` authenticates ``raw_body``."""
        ...
