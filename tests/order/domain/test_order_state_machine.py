"""Tests for the Order aggregate and its status transitions."""

import itertools

import pytest

from commerce.errors import CannotCancel, InvalidTransition
from commerce.order.events import OrderCancelled, OrderPlaced, OrderShipped
from commerce.order.order import TERMINAL_STATUSES, Order, OrderStatus, PaymentStatus, can_transition
from commerce.shared.address import PostalAddress

ALLOWED = {
    (OrderStatus.PENDING, OrderStatus.PROCESSING),
    (OrderStatus.PENDING, OrderStatus.CANCELLED),
    (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
    (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
    (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
}


def _place_order(**overrides):
    kwargs = {
        "order_number": "ORD-20260115-001",
        "payment_intent_id": "pi_123",
        "merchant_id": "merchant-1",
        "customer_id": "cust-001",
        "buyer_email": "buyer@example.com",
        "buyer_name": "Ada Buyer",
        "shipping_address": PostalAddress(
            line1="1 Market Street", city="Springfield", state="IL", postal_code="62701", country="US"
        ),
        "items_data": [
            {
                "variant_id": "var-1",
                "product_id": "prod-1",
                "sku": "TEE-BLK-M",
                "product_name": "Trail Tee",
                "variant_name": "Black / M",
                "quantity": 2,
                "unit_price": 1000,
            },
            {
                "variant_id": "var-2",
                "product_id": "prod-2",
                "sku": "CAP-1",
                "product_name": "Trail Cap",
                "variant_name": None,
                "quantity": 1,
                "unit_price": 500,
            },
        ],
        "totals": {"subtotal": 2500, "shipping_cost": 500, "tax_amount": 200, "total": 3200, "currency": "usd"},
    }
    kwargs.update(overrides)
    return Order.place(**kwargs)


def _order_in(status: OrderStatus) -> Order:
    order = _place_order()
    path = {
        OrderStatus.PENDING: [],
        OrderStatus.PROCESSING: [OrderStatus.PROCESSING],
        OrderStatus.SHIPPED: [OrderStatus.PROCESSING, OrderStatus.SHIPPED],
        OrderStatus.DELIVERED: [OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED],
        OrderStatus.CANCELLED: [OrderStatus.CANCELLED],
    }[status]
    for step in path:
        order.transition_to(step.value)
    return order


class TestPlace:
    def test_starts_pending_and_paid(self):
        order = _place_order()
        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.PAID.value
        assert order.paid_at is not None

    def test_items_keep_position_and_totals(self):
        order = _place_order()
        assert [(item.sku, item.total_price) for item in order.ordered_items] == [("TEE-BLK-M", 2000), ("CAP-1", 500)]
        assert order.item_count == 3

    def test_display_names(self):
        assert [item.display_name for item in _place_order().ordered_items] == ["Trail Tee - Black / M", "Trail Cap"]

    def test_raises_order_placed(self):
        order = _place_order()
        event = order._events[-1]
        assert isinstance(event, OrderPlaced)
        assert event.order_number == "ORD-20260115-001"
        assert event.total == 3200


class TestTransitionTable:
    @pytest.mark.parametrize("current,target", list(itertools.product(OrderStatus, repeat=2)))
    def test_every_pair(self, current, target):
        assert can_transition(current, target) == ((current, target) in ALLOWED)

    def test_terminal_statuses(self):
        assert TERMINAL_STATUSES == {OrderStatus.DELIVERED, OrderStatus.CANCELLED}

    @pytest.mark.parametrize("current,target", sorted(ALLOWED, key=lambda pair: (pair[0].value, pair[1].value)))
    def test_allowed_transitions_apply(self, current, target):
        order = _order_in(current)
        order.transition_to(target.value)
        assert order.status == target.value

    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.PENDING, OrderStatus.SHIPPED),
            (OrderStatus.PENDING, OrderStatus.DELIVERED),
            (OrderStatus.PENDING, OrderStatus.PENDING),
            (OrderStatus.PROCESSING, OrderStatus.PENDING),
            (OrderStatus.SHIPPED, OrderStatus.PROCESSING),
            (OrderStatus.DELIVERED, OrderStatus.SHIPPED),
            (OrderStatus.CANCELLED, OrderStatus.PROCESSING),
        ],
    )
    def test_disallowed_transitions_raise(self, current, target):
        order = _order_in(current)
        with pytest.raises(InvalidTransition):
            order.transition_to(target.value)
        assert order.status == current.value

    def test_unknown_status(self):
        with pytest.raises(InvalidTransition):
            _place_order().transition_to("returned")


class TestShip:
    def test_tracking_is_recorded(self):
        order = _order_in(OrderStatus.PROCESSING)
        order.ship(tracking_number="1Z999", tracking_carrier="UPS")

        assert (order.tracking_number, order.tracking_carrier) == ("1Z999", "UPS")
        assert order.shipped_at is not None
        assert isinstance(order._events[-1], OrderShipped)


class TestCancel:
    @pytest.mark.parametrize("status", [OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.SHIPPED])
    def test_cancel_non_terminal(self, status):
        order = _order_in(status)
        order.cancel(reason="Buyer request")

        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancelled_at is not None
        event = order._events[-1]
        assert isinstance(event, OrderCancelled)
        assert event.previous_status == status.value

    @pytest.mark.parametrize("status", [OrderStatus.DELIVERED, OrderStatus.CANCELLED])
    def test_terminal_orders_cannot_be_cancelled(self, status):
        with pytest.raises(CannotCancel):
            _order_in(status).cancel()

    def test_reason_is_appended_to_notes(self):
        order = _place_order()
        order.update_notes("Gift wrap")
        order.cancel(reason="Out of stock")
        assert order.notes == "Gift wrap\nCancelled: Out of stock"

    def test_cannot_cancel_is_an_invalid_transition(self):
        with pytest.raises(InvalidTransition):
            _order_in(OrderStatus.DELIVERED).cancel()
