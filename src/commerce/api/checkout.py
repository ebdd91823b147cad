"""FastAPI routes for checkout and the payment processor webhook."""

from fastapi import APIRouter, Depends, Header, Request

from commerce.api.dependencies import buyer_identity
from commerce.api.schemas import (
    CancelCheckoutResponse,
    CheckoutResponse,
    StartCheckoutRequest,
    WebhookResponse,
)
from commerce.cart.cart import BuyerIdentity
from commerce.checkout.orchestrator import get_orchestrator
from commerce.gateway import get_gateway
from commerce.settlement.handler import get_settlement_handler

checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@checkout_router.post("", status_code=201, response_model=CheckoutResponse)
async def start_checkout(
    body: StartCheckoutRequest,
    identity: BuyerIdentity = Depends(buyer_identity),
) -> CheckoutResponse:
    """Reserve the cart and open a payment intent.

    The returned ``client_secret`` is handed to the processor's browser SDK.
    """
    started = get_orchestrator().start_checkout(
        identity,
        shipping_address=body.shipping_address.model_dump(),
        buyer_email=body.email.lower(),
        buyer_name=body.name,
    )
    return CheckoutResponse(
        session_id=started.session_id,
        client_secret=started.client_secret,
        line_items=started.line_items,
        totals=started.totals,
        expires_at=started.expires_at,
    )


@checkout_router.delete("/{session_id}", response_model=CancelCheckoutResponse)
async def cancel_checkout(session_id: str) -> CancelCheckoutResponse:
    """Release a checkout's reservations. Safe to call more than once."""
    return CancelCheckoutResponse(cancelled=get_orchestrator().cancel_checkout(session_id))


@webhook_router.post("/payments", response_model=WebhookResponse)
async def payment_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None),
    payment_signature: str | None = Header(default=None),
) -> WebhookResponse:
    """Payment processor events.

    The signature is checked against the raw body before anything is parsed.
    A missing or invalid signature is the only reason to answer 400; any
    verified event is acknowledged once handled, including ignored kinds.
    """
    payload = await request.body()
    event = get_gateway().verify_webhook(payload, stripe_signature or payment_signature or "")
    get_settlement_handler().handle(event)
    return WebhookResponse(received=True)
