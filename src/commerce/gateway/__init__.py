"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing (default)
- StripeGateway when PAYMENT_GATEWAY=stripe
"""

import os

from commerce.gateway.fake_adapter import FakeGateway
from commerce.gateway.port import GatewayEvent, GatewayEventKind, PaymentGateway, PaymentIntent

_current_gateway: PaymentGateway | None = None


def _gateway_from_environment() -> PaymentGateway:
    if os.environ.get("PAYMENT_GATEWAY", "fake").lower() == "stripe":
        from commerce.gateway.stripe_adapter import StripeGateway

        return StripeGateway(
            api_key=os.environ["STRIPE_SECRET_KEY"],
            webhook_secret=os.environ["STRIPE_WEBHOOK_SECRET"],
        )
    return FakeGateway()


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = _gateway_from_environment()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None


__all__ = [
    "FakeGateway",
    "GatewayEvent",
    "GatewayEventKind",
    "PaymentGateway",
    "PaymentIntent",
    "get_gateway",
    "reset_gateway",
    "set_gateway",
]
