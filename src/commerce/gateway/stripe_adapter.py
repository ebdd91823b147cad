"""Stripe payment gateway adapter.

Uses the stripe-python SDK with a per-request API key, so the process-wide
``stripe.api_key`` is never touched. Webhook signatures are checked against
the raw body with the endpoint's signing secret before the payload is parsed.
"""

import stripe
import structlog

from commerce.errors import PaymentGatewayError, SignatureInvalid
from commerce.gateway.port import (
    GatewayEvent,
    PaymentGateway,
    PaymentIntent,
    decode_payload,
    load_event_envelope,
    parse_event_envelope,
)

logger = structlog.get_logger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    def __init__(self, api_key: str, webhook_secret: str) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict,
        receipt_email: str | None = None,
    ) -> PaymentIntent:
        params = {
            "amount": amount,
            "currency": currency,
            "metadata": {key: str(value) for key, value in metadata.items() if value is not None},
            "automatic_payment_methods": {"enabled": True},
        }
        if receipt_email:
            params["receipt_email"] = receipt_email

        try:
            intent = stripe.PaymentIntent.create(api_key=self.api_key, **params)
        except stripe.StripeError as exc:
            logger.error("Stripe intent creation failed", amount=amount, error=str(exc))
            raise PaymentGatewayError("Payment processor rejected the payment intent", reason=str(exc)) from exc

        return PaymentIntent(
            id=intent.id,
            client_secret=intent.client_secret,
            amount=intent.amount,
            currency=intent.currency,
            status=intent.status,
        )

    def cancel_intent(self, intent_id: str) -> None:
        try:
            stripe.PaymentIntent.cancel(intent_id, api_key=self.api_key)
        except stripe.StripeError as exc:
            raise PaymentGatewayError(f"Could not cancel payment intent {intent_id}", reason=str(exc)) from exc

    def verify_webhook(self, payload: bytes, signature: str) -> GatewayEvent:
        if not signature:
            raise SignatureInvalid("Missing webhook signature")

        body = decode_payload(payload)
        try:
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                self.webhook_secret,
                tolerance=SIGNATURE_TOLERANCE_SECONDS,
            )
        except stripe.SignatureVerificationError as exc:
            logger.warning("Stripe webhook signature invalid", error=str(exc))
            raise SignatureInvalid() from exc

        return parse_event_envelope(load_event_envelope(body))
