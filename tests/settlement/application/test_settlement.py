"""Application tests for settling verified payment events into orders."""

from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain
from protean.utils.query import Q

from commerce.cart.cart import BuyerIdentity, ShoppingCart
from commerce.checkout.expiry import ExpireCheckoutSessions
from commerce.checkout.orchestrator import get_orchestrator
from commerce.checkout.repository import CheckoutSessionRepository
from commerce.checkout.session import CheckoutSession, CheckoutSessionStatus
from commerce.errors import SequenceContention, SessionNotFound
from commerce.inventory.variant import Variant
from commerce.order.numbering import parse_order_number
from commerce.order.order import Order, OrderStatus, PaymentStatus
from commerce.settlement.handler import SettlementHandler, get_settlement_handler


def _variant(variant_id):
    return current_domain.repository_for(Variant).get(variant_id)


def _orders():
    return current_domain.repository_for(Order)._dao.query.all().items


def _session_count():
    return current_domain.repository_for(CheckoutSession)._dao.query.all().total


@pytest.fixture()
def checked_out(make_variant, add_to_cart, start_checkout):
    """A buyer with an OPEN checkout for 2 of a 10-unit variant at 1000 cents."""
    variant_id = make_variant(on_hand=10, price=1000)
    add_to_cart(variant_id, 2)
    return variant_id, start_checkout()


class TestPaymentSucceeded:
    def test_creates_pending_paid_order(self, checked_out, settle):
        variant_id, started = checked_out

        order = settle(started.payment_intent_id)

        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.PAID.value
        assert order.payment_intent_id == started.payment_intent_id
        assert (order.subtotal, order.shipping_cost, order.tax_amount, order.total) == (2000, 500, 160, 2660)
        assert order.buyer_email == "buyer@example.com"
        assert order.shipping_address.city == "Springfield"
        assert [(item.sku, item.quantity, item.total_price) for item in order.ordered_items] == [("SKU-001", 2, 2000)]

    def test_order_number_format(self, checked_out, settle):
        _, started = checked_out
        order = settle(started.payment_intent_id)

        day, sequence = parse_order_number(order.order_number)
        assert day == datetime.now(UTC).date()
        assert sequence == 1

    def test_stock_is_deducted(self, checked_out, settle):
        variant_id, started = checked_out
        settle(started.payment_intent_id)

        variant = _variant(variant_id)
        assert (variant.on_hand, variant.reserved) == (8, 0)

    def test_cart_and_session_are_removed(self, checked_out, settle, customer):
        _, started = checked_out
        settle(started.payment_intent_id)

        assert current_domain.repository_for(ShoppingCart).find_for(customer, include_expired=True) is None
        assert _session_count() == 0

    def test_buyer_and_merchant_are_notified(self, checked_out, settle, mailer):
        _, started = checked_out
        order = settle(started.payment_intent_id)

        recipients = sorted(email.to for email in mailer.outbox)
        assert recipients == ["buyer@example.com", "merchant:merchant-1"]
        assert any(order.order_number in email.subject for email in mailer.outbox)

    def test_notification_failure_does_not_undo_the_order(self, checked_out, settle, mailer):
        _, started = checked_out
        mailer.reject_with()

        order = settle(started.payment_intent_id)

        assert order is not None
        assert len(_orders()) == 1


class TestIdempotence:
    def test_duplicate_event_returns_same_order(self, checked_out, settle):
        variant_id, started = checked_out

        first = settle(started.payment_intent_id)
        second = settle(started.payment_intent_id)

        assert second.id == first.id
        assert len(_orders()) == 1
        variant = _variant(variant_id)
        assert (variant.on_hand, variant.reserved) == (8, 0)

    def test_sequence_advances_per_order(self, make_variant, add_to_cart, start_checkout, settle):
        variant_id = make_variant(on_hand=10)
        numbers = []
        for customer_id in ("cust-a", "cust-b"):
            identity = BuyerIdentity(customer_id=customer_id)
            add_to_cart(variant_id, identity=identity)
            numbers.append(settle(start_checkout(identity=identity).payment_intent_id).order_number)

        assert [parse_order_number(number)[1] for number in numbers] == [1, 2]


class TestRaces:
    def test_cancel_then_settle_is_logged_not_applied(self, checked_out, settle):
        variant_id, started = checked_out
        get_orchestrator().cancel_checkout(started.session_id)

        assert settle(started.payment_intent_id) is None

        variant = _variant(variant_id)
        assert (variant.on_hand, variant.reserved) == (10, 0)
        assert _orders() == []

    def test_claimed_session_is_not_settled(self, checked_out, settle):
        variant_id, started = checked_out
        repo = current_domain.repository_for(CheckoutSession)
        repo.claim(repo.get_live(started.session_id))

        assert settle(started.payment_intent_id) is None
        assert _variant(variant_id).reserved == 2

    def test_expired_session_is_still_settled(self, checked_out, settle):
        variant_id, started = checked_out
        repo = current_domain.repository_for(CheckoutSession)
        session = repo.get_live(started.session_id)
        session.expires_at = datetime.now(UTC) - timedelta(minutes=5)
        repo.add(session)

        order = settle(started.payment_intent_id)

        assert order is not None
        assert _variant(variant_id).on_hand == 8

    def test_settled_session_cannot_be_swept(self, checked_out, settle):
        variant_id, started = checked_out
        settle(started.payment_intent_id)

        assert get_orchestrator().cleanup_expired_sessions(datetime.now(UTC) + timedelta(hours=1)) == 0
        assert _variant(variant_id).reserved == 0

    def test_unknown_intent(self, settle):
        assert settle("pi_unknown") is None
        assert _orders() == []

    def test_session_lookup_for_unknown_intent_raises(self):
        with pytest.raises(SessionNotFound) as exc:
            get_settlement_handler().session_for_payment("pi_unknown")
        assert exc.value.details == {"session": "pi_unknown"}


class TestPaymentAbandoned:
    @pytest.mark.parametrize("event_type", ["payment_intent.payment_failed", "payment_intent.canceled"])
    def test_releases_reservation(self, checked_out, settle, event_type):
        variant_id, started = checked_out

        assert settle(started.payment_intent_id, event_type=event_type) is None

        assert _variant(variant_id).reserved == 0
        assert _session_count() == 0
        assert _orders() == []

    def test_failure_after_cancel_does_not_double_release(self, checked_out, settle):
        variant_id, started = checked_out
        get_orchestrator().cancel_checkout(started.session_id)

        settle(started.payment_intent_id, event_type="payment_intent.payment_failed")

        assert _variant(variant_id).reserved == 0

    def test_unrelated_events_are_ignored(self, checked_out, settle):
        variant_id, started = checked_out

        assert settle(started.payment_intent_id, event_type="charge.refunded") is None
        assert _variant(variant_id).reserved == 2


class TestFailuresAfterCapture:
    def test_deduction_failure_still_places_order(self, checked_out):
        _, started = checked_out

        class BrokenLedger:
            def deduct(self, variant_id, quantity):
                raise RuntimeError("ledger offline")

        handler = SettlementHandler(ledger=BrokenLedger())
        order = handler.payment_succeeded(started.payment_intent_id)

        assert order is not None
        assert len(_orders()) == 1

    def test_unexpected_error_is_swallowed_after_claim(self, checked_out, monkeypatch):
        _, started = checked_out

        def explode(*args, **kwargs):
            raise RuntimeError("numbering offline")

        monkeypatch.setattr("commerce.settlement.handler.next_order_number", explode)

        assert get_settlement_handler().payment_succeeded(started.payment_intent_id) is None

    def test_failed_settlement_keeps_the_paid_session_for_the_next_delivery(self, checked_out, settle, monkeypatch):
        variant_id, started = checked_out

        def contended():
            raise SequenceContention("20261018")

        with monkeypatch.context() as patched:
            patched.setattr("commerce.settlement.handler.next_order_number", contended)
            assert settle(started.payment_intent_id) is None

        session = current_domain.repository_for(CheckoutSession).get(started.session_id)
        assert session.status == CheckoutSessionStatus.CAPTURED.value
        assert _variant(variant_id).reserved == 2

        swept = current_domain.process(
            ExpireCheckoutSessions(as_of=datetime.now(UTC) + timedelta(days=1)), asynchronous=False
        )
        assert swept == 0
        assert _variant(variant_id).reserved == 2

        order = settle(started.payment_intent_id)

        assert order is not None
        assert len(_orders()) == 1
        assert _session_count() == 0
        variant = _variant(variant_id)
        assert (variant.on_hand, variant.reserved) == (8, 0)

    def test_captured_session_cannot_be_cancelled(self, checked_out, monkeypatch):
        variant_id, started = checked_out
        monkeypatch.setattr("commerce.settlement.handler.next_order_number", lambda: 1 / 0)
        get_settlement_handler().payment_succeeded(started.payment_intent_id)

        assert get_orchestrator().cancel_checkout(started.session_id) is False
        assert _variant(variant_id).reserved == 2


def _settle_without_discarding(settle, intent_id, monkeypatch):
    """Settle, but stop before the session is discarded, as a crashed worker would."""

    def crash(self, session):
        raise RuntimeError("worker stopped")

    with monkeypatch.context() as patched:
        patched.setattr(CheckoutSessionRepository, "discard", crash)
        assert settle(intent_id) is None


class TestLostClaims:
    def test_claim_lost_to_a_concurrent_delivery_returns_its_order(self, checked_out, settle, monkeypatch):
        _, started = checked_out
        _settle_without_discarding(settle, started.payment_intent_id, monkeypatch)
        orders = current_domain.repository_for(Order)
        lookups = iter([None])

        class LateOrders:
            def find_by_payment_intent(self, intent_id):
                return next(lookups, None) or orders.find_by_payment_intent(intent_id)

        handler = SettlementHandler(ledger=get_settlement_handler().ledger, orders=LateOrders())
        order = handler.payment_succeeded(started.payment_intent_id)

        assert order is not None
        assert order.payment_intent_id == started.payment_intent_id
        assert len(_orders()) == 1


class TestStaleClaims:
    def _strand(self, session_id, minutes_ago):
        repo = current_domain.repository_for(CheckoutSession)
        repo._dao._update_all(
            Q(id=str(session_id)),
            status=CheckoutSessionStatus.CLOSING.value,
            claimed_at=datetime.now(UTC) - timedelta(minutes=minutes_ago),
        )
        return repo

    def test_stale_claim_is_reopened_and_swept(self, checked_out):
        variant_id, started = checked_out
        self._strand(started.session_id, minutes_ago=30)

        swept = current_domain.process(
            ExpireCheckoutSessions(as_of=datetime.now(UTC) + timedelta(hours=1)), asynchronous=False
        )

        assert swept == 1
        assert _variant(variant_id).reserved == 0
        assert _session_count() == 0

    def test_reopened_session_can_still_be_settled(self, checked_out, settle):
        variant_id, started = checked_out
        self._strand(started.session_id, minutes_ago=30)

        assert get_settlement_handler().recover_stale_claims() == 1
        order = settle(started.payment_intent_id)

        assert order is not None
        assert _variant(variant_id).on_hand == 8

    def test_fresh_claim_is_left_alone(self, checked_out):
        variant_id, started = checked_out
        repo = self._strand(started.session_id, minutes_ago=1)

        assert get_settlement_handler().recover_stale_claims() == 0
        assert repo.get(started.session_id).status == CheckoutSessionStatus.CLOSING.value
        assert _variant(variant_id).reserved == 2

    def test_leftover_session_of_a_settled_order_is_discarded(self, checked_out, settle, monkeypatch):
        variant_id, started = checked_out
        _settle_without_discarding(settle, started.payment_intent_id, monkeypatch)
        self._strand(started.session_id, minutes_ago=30)

        assert get_settlement_handler().recover_stale_claims() == 1
        assert _session_count() == 0
        assert len(_orders()) == 1
        variant = _variant(variant_id)
        assert (variant.on_hand, variant.reserved) == (8, 0)
