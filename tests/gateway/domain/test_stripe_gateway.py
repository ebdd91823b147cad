"""Tests for the Stripe adapter with the SDK calls stubbed out."""

import hashlib
import hmac
import json
import time
from types import SimpleNamespace

import pytest
import stripe

from commerce.errors import PaymentGatewayError, SignatureInvalid
from commerce.gateway.port import GatewayEventKind
from commerce.gateway.stripe_adapter import StripeGateway

WEBHOOK_SECRET = "whsec_stripe_test"


@pytest.fixture()
def gateway():
    return StripeGateway(api_key="sk_test_123", webhook_secret=WEBHOOK_SECRET)


def _stripe_signature(body: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{body}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


class TestCreateIntent:
    def test_passes_api_key_per_request(self, gateway, monkeypatch):
        captured = {}

        def fake_create(**params):
            captured.update(params)
            return SimpleNamespace(
                id="pi_123",
                client_secret="pi_123_secret_abc",
                amount=params["amount"],
                currency=params["currency"],
                status="requires_payment_method",
            )

        monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)

        intent = gateway.create_intent(2660, "usd", {"merchant_id": "m-1", "customer_id": None}, "a@example.com")

        assert captured["api_key"] == "sk_test_123"
        assert captured["metadata"] == {"merchant_id": "m-1"}
        assert captured["receipt_email"] == "a@example.com"
        assert intent.id == "pi_123"
        assert intent.client_secret == "pi_123_secret_abc"

    def test_stripe_errors_are_wrapped(self, gateway, monkeypatch):
        def fake_create(**params):
            raise stripe.InvalidRequestError("Amount must be at least 50 cents", param="amount")

        monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)

        with pytest.raises(PaymentGatewayError):
            gateway.create_intent(10, "usd", {})


class TestCancelIntent:
    def test_cancel(self, gateway, monkeypatch):
        calls = []
        monkeypatch.setattr(stripe.PaymentIntent, "cancel", lambda intent_id, **kw: calls.append((intent_id, kw)))

        gateway.cancel_intent("pi_123")

        assert calls == [("pi_123", {"api_key": "sk_test_123"})]

    def test_cancel_failure(self, gateway, monkeypatch):
        def fake_cancel(intent_id, **kw):
            raise stripe.InvalidRequestError("already succeeded", param=None)

        monkeypatch.setattr(stripe.PaymentIntent, "cancel", fake_cancel)

        with pytest.raises(PaymentGatewayError):
            gateway.cancel_intent("pi_123")


class TestVerifyWebhook:
    def _body(self, event_type="payment_intent.succeeded"):
        return json.dumps(
            {
                "id": "evt_1",
                "type": event_type,
                "data": {"object": {"id": "pi_123", "object": "payment_intent", "amount": 2660, "metadata": {}}},
            }
        )

    def test_valid_signature(self, gateway):
        body = self._body()

        event = gateway.verify_webhook(body.encode(), _stripe_signature(body))

        assert event.kind == GatewayEventKind.PAYMENT_SUCCEEDED
        assert event.payment_intent_id == "pi_123"

    def test_wrong_secret(self, gateway):
        body = self._body()
        with pytest.raises(SignatureInvalid):
            gateway.verify_webhook(body.encode(), _stripe_signature(body, secret="whsec_other"))

    def test_stale_timestamp(self, gateway):
        body = self._body()
        with pytest.raises(SignatureInvalid):
            gateway.verify_webhook(body.encode(), _stripe_signature(body, timestamp=int(time.time()) - 3600))

    def test_missing_signature(self, gateway):
        with pytest.raises(SignatureInvalid):
            gateway.verify_webhook(self._body().encode(), "")

    def test_body_that_is_not_utf8(self, gateway):
        with pytest.raises(SignatureInvalid):
            gateway.verify_webhook(b"\xff\xfe\x00", "t=1,v1=abc")

    @pytest.mark.parametrize("body", ["[1, 2]", '"payment_intent.succeeded"', "null"])
    def test_signed_json_that_is_not_an_event(self, gateway, body):
        with pytest.raises(SignatureInvalid):
            gateway.verify_webhook(body.encode(), _stripe_signature(body))
