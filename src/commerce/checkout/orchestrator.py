"""Checkout orchestrator — turns a cart into reserved stock and a payment intent.

``start_checkout`` is all-or-nothing: either every cart line is reserved,
priced and covered by a payment intent and an OPEN session is stored, or
every reservation taken during the attempt is released again before the
error reaches the caller.

The orchestrator keeps no state of its own. The ledger, the gateway and the
two repositories are injected, so several instances can serve the same store
and tests can substitute any collaborator.
"""

from dataclasses import dataclass
from datetime import datetime

import structlog
from protean.utils.globals import current_domain

from commerce.cart.cart import BuyerIdentity, ShoppingCart
from commerce.catalogue.lookup import get_variant_with_product
from commerce.checkout.pricing import CURRENCY, price_subtotal
from commerce.checkout.session import CheckoutSession, new_session_id
from commerce.errors import CartEmpty, CartInvalid, PaymentGatewayError
from commerce.gateway import get_gateway
from commerce.inventory import get_ledger
from commerce.shared.address import PostalAddress

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckoutStarted:
    session_id: str
    payment_intent_id: str
    client_secret: str
    line_items: list[dict]
    totals: dict
    expires_at: datetime


class CheckoutOrchestrator:
    def __init__(self, ledger, gateway, sessions=None, carts=None) -> None:
        self.ledger = ledger
        self.gateway = gateway
        self._sessions = sessions
        self._carts = carts

    @property
    def sessions(self):
        return self._sessions or current_domain.repository_for(CheckoutSession)

    @property
    def carts(self):
        return self._carts or current_domain.repository_for(ShoppingCart)

    # -------------------------------------------------------------------
    # Start
    # -------------------------------------------------------------------
    def start_checkout(
        self,
        identity: BuyerIdentity,
        shipping_address: dict | PostalAddress,
        buyer_email: str,
        buyer_name: str | None = None,
    ) -> CheckoutStarted:
        """Reserve the cart, open a payment intent and store the session.

        Raises:
            CartEmpty: there is no cart, or it has no lines.
            CartInvalid: lines reference missing or inactive variants, or the
                cart spans several merchants. Every offending line is listed.
            InsufficientInventory: a line cannot be reserved.
            PaymentGatewayError: the payment intent could not be created.
        """
        address = (
            shipping_address if isinstance(shipping_address, PostalAddress) else PostalAddress.from_dict(shipping_address)
        )

        cart = self.carts.find_for(identity)
        if cart is None or not cart.lines:
            raise CartEmpty()

        cart_lines = sorted(cart.lines, key=lambda line: (line.added_at is None, line.added_at, str(line.variant_id)))
        priced = self._resolve_lines(cart_lines)
        merchant_id = priced[0][1].merchant_id

        reserved = self._reserve_all(priced)

        lines = [
            {
                "variant_id": str(line.variant_id),
                "product_id": str(item.variant.product_id),
                "sku": item.variant.sku,
                "product_name": item.product.name,
                "variant_name": item.variant_name or None,
                "quantity": line.quantity,
                "unit_price": item.unit_price,
            }
            for line, item in priced
        ]
        totals = price_subtotal(sum(line["unit_price"] * line["quantity"] for line in lines))

        session_id = new_session_id()
        metadata = {
            **identity.as_metadata(),
            "checkout_session_id": session_id,
            "merchant_id": merchant_id,
        }
        try:
            intent = self.gateway.create_intent(totals.total, CURRENCY, metadata, receipt_email=buyer_email)
        except PaymentGatewayError:
            self._release_all(reserved)
            raise
        except Exception as exc:
            self._release_all(reserved)
            raise PaymentGatewayError("Payment intent could not be created", reason=str(exc)) from exc

        try:
            session = CheckoutSession.open(
                session_id=session_id,
                payment_intent_id=intent.id,
                identity=identity,
                merchant_id=merchant_id,
                buyer_email=buyer_email,
                buyer_name=buyer_name,
                shipping_address=address,
                lines=lines,
                totals=totals,
            )
            self.sessions.add(session)
        except Exception:
            logger.error("Checkout session could not be stored", session_id=session_id, payment_intent_id=intent.id)
            self._release_all(reserved)
            self._cancel_intent(intent.id)
            raise

        logger.info(
            "Checkout started",
            session_id=session_id,
            payment_intent_id=intent.id,
            buyer=str(identity),
            merchant_id=merchant_id,
            total=totals.total,
            lines=len(lines),
        )
        return CheckoutStarted(
            session_id=session_id,
            payment_intent_id=intent.id,
            client_secret=intent.client_secret,
            line_items=session.redacted_line_items(),
            totals=totals.as_dict(),
            expires_at=session.expires_at,
        )

    def _resolve_lines(self, cart_lines) -> list[tuple]:
        """Pair each cart line with its live catalogue record, or fail listing every bad line."""
        issues = []
        priced = []
        for line in cart_lines:
            item = get_variant_with_product(line.variant_id)
            if item is None:
                issues.append({"variant_id": str(line.variant_id), "reason": "not_found"})
            elif not item.is_purchasable:
                issues.append({"variant_id": str(line.variant_id), "reason": "inactive"})
            else:
                priced.append((line, item))
        if issues:
            raise CartInvalid(issues)

        merchants = {item.merchant_id for _, item in priced}
        if len(merchants) > 1:
            raise CartInvalid(
                [{"variant_id": str(line.variant_id), "reason": "mixed_merchants"} for line, _ in priced],
                message="Items from different merchants must be checked out separately",
            )
        return priced

    def _reserve_all(self, priced) -> list[tuple[str, int]]:
        reserved = []
        for line, _ in priced:
            try:
                self.ledger.reserve(line.variant_id, line.quantity)
            except Exception:
                self._release_all(reserved)
                raise
            reserved.append((str(line.variant_id), line.quantity))
        return reserved

    # -------------------------------------------------------------------
    # Cancel & expiry
    # -------------------------------------------------------------------
    def cancel_checkout(self, session_id) -> bool:
        """Release a live session's reservations and void its intent.

        Returns False, without raising, when the session is missing, expired
        or already being closed by someone else.
        """
        session = self.sessions.get_live(session_id)
        if session is None:
            logger.info("Checkout session not found or expired", session_id=str(session_id))
            return False
        return self._close(session, reason="cancelled")

    def cleanup_expired_sessions(self, as_of: datetime | None = None) -> int:
        """Close every OPEN session past its expiry. Returns how many were closed."""
        closed = 0
        for session in self.sessions.find_expired(as_of):
            try:
                if self._close(session, reason="expired"):
                    closed += 1
            except Exception as exc:
                logger.error("Failed to expire checkout session", session_id=str(session.id), error=str(exc))

        if closed:
            logger.info("Expired checkout sessions cleaned up", count=closed)
        return closed

    def _close(self, session: CheckoutSession, reason: str) -> bool:
        if not self.sessions.claim(session):
            logger.info("Checkout session already being closed", session_id=str(session.id), reason=reason)
            return False

        self._release_all([(str(line.variant_id), line.quantity) for line in session.ordered_lines])
        self._cancel_intent(session.payment_intent_id)
        self.sessions.discard(session)
        logger.info(
            "Checkout session closed",
            session_id=str(session.id),
            payment_intent_id=session.payment_intent_id,
            reason=reason,
        )
        return True

    # -------------------------------------------------------------------
    # Compensation
    # -------------------------------------------------------------------
    def _release_all(self, reserved: list[tuple[str, int]]) -> None:
        for variant_id, quantity in reversed(reserved):
            try:
                self.ledger.release(variant_id, quantity)
            except Exception as exc:
                logger.error("Failed to release reservation", variant_id=variant_id, quantity=quantity, error=str(exc))

    def _cancel_intent(self, intent_id: str) -> None:
        try:
            self.gateway.cancel_intent(intent_id)
        except Exception as exc:
            logger.warning("Payment intent cancellation failed", payment_intent_id=intent_id, error=str(exc))


def get_orchestrator() -> CheckoutOrchestrator:
    """Orchestrator wired to the configured ledger and gateway."""
    return CheckoutOrchestrator(ledger=get_ledger(), gateway=get_gateway())
