"""Configurable fake payment gateway for development and testing.

Simulates the processor without any external calls. Intents live in memory,
and webhook payloads are signed with HMAC-SHA256 over the raw body so the
verification path is exercised the same way as in production:

    gateway = FakeGateway()
    body = gateway.build_event("payment_intent.succeeded", intent_id)
    client.post("/webhooks/payments", content=body,
                headers={"Payment-Signature": gateway.sign(body)})
"""

import hashlib
import hmac
import json
import os
from uuid import uuid4

from commerce.errors import PaymentGatewayError, SignatureInvalid
from commerce.gateway.port import (
    GatewayEvent,
    PaymentGateway,
    PaymentIntent,
    decode_payload,
    load_event_envelope,
    parse_event_envelope,
)


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, webhook_secret: str | None = None) -> None:
        self.webhook_secret = webhook_secret or os.environ.get("FAKE_GATEWAY_WEBHOOK_SECRET", "whsec_fake")
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.cancel_should_succeed: bool = True
        self.intents: dict[str, dict] = {}
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Card declined",
        cancel_should_succeed: bool = True,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.cancel_should_succeed = cancel_should_succeed

    def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict,
        receipt_email: str | None = None,
    ) -> PaymentIntent:
        self.calls.append(
            {
                "method": "create_intent",
                "amount": amount,
                "currency": currency,
                "metadata": dict(metadata),
                "receipt_email": receipt_email,
            }
        )
        if not self.should_succeed:
            raise PaymentGatewayError(self.failure_reason)

        intent_id = f"pi_fake_{uuid4().hex[:16]}"
        self.intents[intent_id] = {
            "amount": amount,
            "currency": currency,
            "metadata": dict(metadata),
            "status": "requires_payment_method",
        }
        return PaymentIntent(
            id=intent_id,
            client_secret=f"{intent_id}_secret_{uuid4().hex[:12]}",
            amount=amount,
            currency=currency,
            status="requires_payment_method",
        )

    def cancel_intent(self, intent_id: str) -> None:
        self.calls.append({"method": "cancel_intent", "intent_id": intent_id})
        if not self.cancel_should_succeed:
            raise PaymentGatewayError(f"Could not cancel {intent_id}")
        if intent_id in self.intents:
            self.intents[intent_id]["status"] = "canceled"

    def verify_webhook(self, payload: bytes, signature: str) -> GatewayEvent:
        if not signature or not hmac.compare_digest(self.sign(payload), signature):
            raise SignatureInvalid()
        return parse_event_envelope(load_event_envelope(decode_payload(payload)))

    # -------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------
    def sign(self, payload: bytes) -> str:
        return hmac.new(self.webhook_secret.encode(), payload, hashlib.sha256).hexdigest()

    def build_event(self, event_type: str, intent_id: str, **object_fields) -> bytes:
        """Serialize a processor-shaped event envelope for ``intent_id``."""
        intent = self.intents.get(intent_id, {})
        obj = {
            "id": intent_id,
            "object": "payment_intent",
            "amount": intent.get("amount"),
            "currency": intent.get("currency", "usd"),
            "metadata": intent.get("metadata", {}),
        }
        obj.update(object_fields)
        envelope = {"id": f"evt_{uuid4().hex[:16]}", "type": event_type, "data": {"object": obj}}
        return json.dumps(envelope).encode()
