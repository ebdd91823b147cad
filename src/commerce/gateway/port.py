"""Payment gateway port (abstract interface).

Defines the contract every payment processor adapter implements, so that
checkout and settlement never depend on a particular processor SDK.

Webhook envelopes follow the processor's event shape::

    {"id": "evt_...", "type": "payment_intent.succeeded",
     "data": {"object": {"id": "pi_...", "amount": 2660, "metadata": {...}}}}
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from commerce.errors import SignatureInvalid


class GatewayEventKind(Enum):
    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_CANCELED = "payment_canceled"
    IGNORED = "ignored"


_EVENT_KINDS = {
    "payment_intent.succeeded": GatewayEventKind.PAYMENT_SUCCEEDED,
    "payment_intent.payment_failed": GatewayEventKind.PAYMENT_FAILED,
    "payment_intent.canceled": GatewayEventKind.PAYMENT_CANCELED,
}


@dataclass(frozen=True)
class PaymentIntent:
    """An intent opened with the processor; ``client_secret`` goes to the buyer's browser."""

    id: str
    client_secret: str
    amount: int
    currency: str
    status: str | None = None


@dataclass(frozen=True)
class GatewayEvent:
    """A verified webhook event."""

    id: str
    type: str
    kind: GatewayEventKind
    payment_intent_id: str | None = None
    amount: int | None = None
    metadata: dict = field(default_factory=dict)
    failure_message: str | None = None


def decode_payload(payload: bytes) -> str:
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError:
        raise SignatureInvalid("Webhook payload is not UTF-8 text") from None


def load_event_envelope(body: str | bytes) -> dict:
    """Parse a verified webhook body into its envelope.

    Raises:
        SignatureInvalid: the body is not a JSON object.
    """
    try:
        envelope = json.loads(body)
    except ValueError:
        raise SignatureInvalid("Webhook payload is not valid JSON") from None
    if not isinstance(envelope, dict):
        raise SignatureInvalid("Webhook payload is not an event object")
    return envelope


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def parse_event_envelope(envelope: dict) -> GatewayEvent:
    """Map a processor event envelope onto a ``GatewayEvent``."""
    event_type = envelope.get("type") or ""
    kind = _EVENT_KINDS.get(event_type, GatewayEventKind.IGNORED)
    obj = _as_dict(_as_dict(envelope.get("data")).get("object"))

    intent_id = None
    if obj.get("object", "payment_intent") == "payment_intent":
        intent_id = obj.get("id")

    return GatewayEvent(
        id=envelope.get("id", ""),
        type=event_type,
        kind=kind,
        payment_intent_id=intent_id,
        amount=obj.get("amount"),
        metadata=dict(_as_dict(obj.get("metadata"))),
        failure_message=_as_dict(obj.get("last_payment_error")).get("message"),
    )


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict,
        receipt_email: str | None = None,
    ) -> PaymentIntent:
        """Open a payment intent for ``amount`` minor units.

        Raises:
            PaymentGatewayError: the processor refused or could not be reached.
        """
        ...

    @abstractmethod
    def cancel_intent(self, intent_id: str) -> None:
        """Cancel an open intent. Raises PaymentGatewayError on failure."""
        ...

    @abstractmethod
    def verify_webhook(self, payload: bytes, signature: str) -> GatewayEvent:
        """Verify the signature over the raw request body and parse the event.

        Raises:
            SignatureInvalid: the signature is missing or does not match, or the
                body is not a UTF-8 JSON event object.
        """
        ...
