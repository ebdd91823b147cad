"""Settlement — turns verified payment events into orders.

The payment processor delivers each event at least once and in no particular
order relative to buyer cancels and the expiry sweep. Settlement therefore:

- treats an existing order for the payment intent as proof the event was
  already handled, and returns it untouched
- claims the checkout session before touching stock, so a session that a
  cancel or the sweep already closed is never released or deducted twice
- never raises once money has moved; anything that goes wrong after capture
  is logged at error level with the payment intent id for an operator

Expired sessions are still settled: the buyer paid inside the window that
the processor allowed, even if the webhook arrived late. A settlement that
fails before its order is stored parks the session as CAPTURED, reservations
intact, so the processor's next delivery of the event can finish the job.
"""

from datetime import datetime

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from commerce.cart.cart import ShoppingCart
from commerce.checkout.session import CheckoutSession
from commerce.errors import SessionNotFound
from commerce.gateway.port import GatewayEvent, GatewayEventKind
from commerce.inventory import get_ledger
from commerce.notification.notification import NotificationKind
from commerce.notification.notifier import merchant_recipient, notify
from commerce.order.numbering import next_order_number
from commerce.order.order import Order

logger = structlog.get_logger(__name__)


class SettlementHandler:
    def __init__(self, ledger, sessions=None, orders=None, carts=None) -> None:
        self.ledger = ledger
        self._sessions = sessions
        self._orders = orders
        self._carts = carts

    @property
    def sessions(self):
        return self._sessions or current_domain.repository_for(CheckoutSession)

    @property
    def orders(self):
        return self._orders or current_domain.repository_for(Order)

    @property
    def carts(self):
        return self._carts or current_domain.repository_for(ShoppingCart)

    def handle(self, event: GatewayEvent) -> Order | None:
        """Dispatch a verified gateway event. Returns the order for a settled payment."""
        if event.kind == GatewayEventKind.PAYMENT_SUCCEEDED:
            return self.payment_succeeded(event.payment_intent_id)
        if event.kind in (GatewayEventKind.PAYMENT_FAILED, GatewayEventKind.PAYMENT_CANCELED):
            self.payment_abandoned(event.payment_intent_id, event.kind)
            return None

        logger.debug("Ignoring gateway event", event_id=event.id, event_type=event.type)
        return None

    # -------------------------------------------------------------------
    # Success
    # -------------------------------------------------------------------
    def payment_succeeded(self, intent_id: str) -> Order | None:
        existing = self.orders.find_by_payment_intent(intent_id)
        if existing is not None:
            logger.info("Duplicate payment event", payment_intent_id=intent_id, order_number=existing.order_number)
            return existing

        try:
            session = self.session_for_payment(intent_id)
        except SessionNotFound:
            logger.error(
                "Payment captured with no matching checkout session",
                payment_intent_id=intent_id,
                anomaly="session_missing",
            )
            return None

        if not self.sessions.claim(session, resume_captured=True):
            settled = self.orders.find_by_payment_intent(intent_id)
            if settled is not None:
                logger.info("Duplicate payment event", payment_intent_id=intent_id, order_number=settled.order_number)
                return settled

            logger.error(
                "Payment captured for a checkout session that is already closing",
                payment_intent_id=intent_id,
                session_id=str(session.id),
                anomaly="session_claim_lost",
            )
            return None

        try:
            return self._settle(session)
        except Exception as exc:
            if self.orders.find_by_payment_intent(intent_id) is None and self.sessions.mark_captured(session):
                logger.error(
                    "Settlement failed after payment capture; session kept for the next delivery",
                    payment_intent_id=intent_id,
                    session_id=str(session.id),
                    error=str(exc),
                    anomaly="settlement_failed",
                    exc_info=True,
                )
            else:
                logger.error(
                    "Settlement failed after payment capture",
                    payment_intent_id=intent_id,
                    session_id=str(session.id),
                    error=str(exc),
                    exc_info=True,
                )
            return None

    def session_for_payment(self, intent_id: str) -> CheckoutSession:
        """The session a payment intent was opened for, expired or not.

        Raises:
            SessionNotFound: no session carries this payment intent.
        """
        session = self.sessions.get_by_payment_intent(intent_id, include_expired=True)
        if session is None:
            raise SessionNotFound(intent_id)
        return session

    def _settle(self, session: CheckoutSession) -> Order:
        intent_id = session.payment_intent_id
        lines = session.ordered_lines

        order = Order.place(
            order_number=next_order_number(),
            payment_intent_id=intent_id,
            merchant_id=session.merchant_id,
            customer_id=session.customer_id,
            buyer_email=session.buyer_email,
            buyer_name=session.buyer_name,
            shipping_address=session.shipping_address,
            items_data=[
                {
                    "variant_id": str(line.variant_id),
                    "product_id": str(line.product_id),
                    "sku": line.sku,
                    "product_name": line.product_name,
                    "variant_name": line.variant_name,
                    "quantity": line.quantity,
                    "unit_price": line.unit_price,
                }
                for line in lines
            ],
            totals=session.totals_dict(),
        )
        try:
            self.orders.add(order)
        except ValidationError:
            duplicate = self.orders.find_by_payment_intent(intent_id)
            if duplicate is None:
                raise
            logger.info("Duplicate payment event", payment_intent_id=intent_id, order_number=duplicate.order_number)
            self.sessions.discard(session)
            return duplicate

        for line in lines:
            try:
                self.ledger.deduct(line.variant_id, line.quantity)
            except Exception as exc:
                logger.error(
                    "Stock deduction failed for settled order",
                    payment_intent_id=intent_id,
                    order_number=order.order_number,
                    variant_id=str(line.variant_id),
                    quantity=line.quantity,
                    error=str(exc),
                )

        self._clear_cart(session)
        self.sessions.discard(session)

        logger.info(
            "Order placed",
            order_number=order.order_number,
            payment_intent_id=intent_id,
            merchant_id=str(order.merchant_id),
            total=order.total,
        )
        self._announce(order)
        return order

    def _clear_cart(self, session: CheckoutSession) -> None:
        try:
            cart = self.carts.find_for(session.identity, include_expired=True)
            if cart is not None:
                self.carts.discard(cart)
        except Exception as exc:
            logger.error(
                "Could not clear cart after settlement",
                payment_intent_id=session.payment_intent_id,
                buyer=str(session.identity),
                error=str(exc),
            )

    def _announce(self, order: Order) -> None:
        items = order.ordered_items
        confirmation = {
            "order_id": str(order.id),
            "order_number": order.order_number,
            "buyer_name": order.buyer_name,
            "items": [
                {"name": item.display_name, "quantity": item.quantity, "total_price": item.total_price}
                for item in items
            ],
            "subtotal": order.subtotal,
            "shipping_cost": order.shipping_cost,
            "tax_amount": order.tax_amount,
            "total": order.total,
        }
        new_order = {
            "order_id": str(order.id),
            "order_number": order.order_number,
            "buyer_email": order.buyer_email,
            "item_count": order.item_count,
            "total": order.total,
        }

        for kind, recipient, payload in (
            (NotificationKind.ORDER_CONFIRMATION.value, order.buyer_email, confirmation),
            (NotificationKind.NEW_ORDER.value, merchant_recipient(order.merchant_id), new_order),
        ):
            try:
                notify(kind, recipient, payload)
            except Exception as exc:
                logger.error(
                    "Order notification failed",
                    kind=kind,
                    order_number=order.order_number,
                    payment_intent_id=order.payment_intent_id,
                    error=str(exc),
                )

    # -------------------------------------------------------------------
    # Failure / cancellation
    # -------------------------------------------------------------------
    def payment_abandoned(self, intent_id: str, kind: GatewayEventKind) -> None:
        """Release the reservations of a session whose payment failed or was voided."""
        session = self.sessions.get_by_payment_intent(intent_id, include_expired=True)
        if session is None:
            logger.info("No checkout session for payment event", payment_intent_id=intent_id, kind=kind.value)
            return

        if not self.sessions.claim(session):
            logger.info("Checkout session already closing", payment_intent_id=intent_id, kind=kind.value)
            return

        for line in session.ordered_lines:
            try:
                self.ledger.release(line.variant_id, line.quantity)
            except Exception as exc:
                logger.error(
                    "Failed to release reservation",
                    payment_intent_id=intent_id,
                    variant_id=str(line.variant_id),
                    quantity=line.quantity,
                    error=str(exc),
                )
        self.sessions.discard(session)
        logger.info("Checkout session closed by payment event", payment_intent_id=intent_id, kind=kind.value)

    # -------------------------------------------------------------------
    # Recovery
    # -------------------------------------------------------------------
    def recover_stale_claims(self, as_of: datetime | None = None) -> int:
        """Resolve sessions left CLOSING by a claimant that never finished.

        A session whose order exists was settled and only needs discarding.
        Any other session goes back to OPEN, where a replayed payment event
        can still settle it and the expiry sweep releases it once it lapses.
        """
        recovered = 0
        for session in self.sessions.find_stale_claims(as_of):
            order = self.orders.find_by_payment_intent(session.payment_intent_id)
            if order is not None:
                self.sessions.discard(session)
                logger.warning(
                    "Discarded checkout session left over from a settled order",
                    session_id=str(session.id),
                    order_number=order.order_number,
                )
            elif self.sessions.reopen(session):
                logger.warning(
                    "Reopened checkout session with a stale claim",
                    session_id=str(session.id),
                    payment_intent_id=session.payment_intent_id,
                )
            else:
                continue
            recovered += 1
        return recovered


def get_settlement_handler() -> SettlementHandler:
    return SettlementHandler(ledger=get_ledger())
