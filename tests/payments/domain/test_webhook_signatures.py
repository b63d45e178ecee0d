from storefront.payments.gateway.fake_adapter import FakeWebhookVerifier
from storefront.payments.gateway.hmac_adapter import HmacWebhookVerifier


class TestHmacWebhookVerifier:
    def test_round_trip(self):
        verifier = HmacWebhookVerifier("s3cret")
        body = b'{"eventId":"e1"}'
        assert verifier.verify(body, verifier.sign(body))

    def test_signature_is_case_insensitive_hex(self):
        verifier = HmacWebhookVerifier("s3cret")
        body = b"{}"
        assert verifier.verify(body, verifier.sign(body).upper())

    def test_wrong_secret(self):
        body = b"{}"
        assert not HmacWebhookVerifier("s3cret").verify(body, HmacWebhookVerifier("other").sign(body))

    def test_empty_secret_rejects(self):
        verifier = HmacWebhookVerifier("")
        assert not verifier.verify(b"{}", verifier.sign(b"{}"))

    def test_empty_signature_rejects(self):
        assert not HmacWebhookVerifier("s3cret").verify(b"{}", "")


def test_fake_verifier_records_calls():
    fake = FakeWebhookVerifier()
    assert fake.verify(b"{}", "test-signature")
    assert not fake.verify(b"{}", "nope")
    assert [c["signature"] for c in fake.calls] == ["test-signature", "nope"]
