"""Fake webhook verifier for development and testing."""

from storefront.payments.gateway.port import WebhookVerifier


class FakeWebhookVerifier(WebhookVerifier):
    """Accepts exactly one well-known signature and records every check."""

    VALID_SIGNATURE = "test-signature"

    def __init__(self):
        self.calls: list[dict] = []

    def verify(self, raw_body: bytes, signature: str) -> bool:
        self.calls.append({"raw_body": raw_body, "signature": signature})
        return signature == self.VALID_SIGNATURE
