"""HMAC-SHA256 webhook verifier.

The gateway signs the raw request body with the shared secret and sends the
hex digest in a header. An empty secret rejects every callback.
"""

import hashlib
import hmac

from storefront.payments.gateway.port import WebhookVerifier


class HmacWebhookVerifier(WebhookVerifier):
    def __init__(self, secret: str):
        self._secret = secret.encode("utf-8") if secret else b""

    def sign(self, raw_body: bytes) -> str:
        return hmac.new(self._secret, raw_body, hashlib.sha256).hexdigest()

    def verify(self, raw_body: bytes, signature: str) -> bool:
        if not self._secret or not signature:
            return False
        return hmac.compare_digest(self.sign(raw_body), signature.strip().lower())
