"""BDD tests for the checkout to settlement flow."""

from datetime import UTC, datetime

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, scenarios, then, when

from commerce.cart.cart import BuyerIdentity
from commerce.checkout.orchestrator import get_orchestrator
from commerce.errors import InsufficientInventory
from commerce.inventory.variant import Variant
from commerce.order.numbering import parse_order_number
from commerce.order.order import Order, OrderStatus

scenarios("features/checkout.feature")

SECOND_BUYER = BuyerIdentity(customer_id="cust-002")


@pytest.fixture()
def flow():
    """Mutable scenario state shared between steps."""
    return {}


def _variant(flow):
    return current_domain.repository_for(Variant).get(flow["variant_id"])


# ---------------------------------------------------------------------------
# Given
# ---------------------------------------------------------------------------
@given(parsers.cfparse("a variant with {on_hand:d} units on hand priced at {price:d} cents"))
def _(flow, make_variant, on_hand, price):
    flow["variant_id"] = make_variant(on_hand=on_hand, price=price)


@given(parsers.cfparse("the buyer has {quantity:d} units in the cart"))
def _(flow, add_to_cart, quantity):
    add_to_cart(flow["variant_id"], quantity)


@given(parsers.cfparse("a second buyer has {quantity:d} units in the cart"))
def _(flow, add_to_cart, quantity):
    add_to_cart(flow["variant_id"], quantity, identity=SECOND_BUYER)


@given("the buyer has started checkout")
def _(flow, start_checkout):
    flow["checkout"] = start_checkout()


@given("the buyer has cancelled checkout")
def _(flow):
    get_orchestrator().cancel_checkout(flow["checkout"].session_id)


# ---------------------------------------------------------------------------
# When
# ---------------------------------------------------------------------------
@when("the buyer starts checkout")
def _(flow, start_checkout):
    flow["checkout"] = start_checkout()


@when("the second buyer starts checkout")
def _(flow, start_checkout):
    try:
        start_checkout(identity=SECOND_BUYER)
    except InsufficientInventory as exc:
        flow["error"] = exc


@when("the buyer cancels checkout")
def _(flow):
    flow["cancelled"] = get_orchestrator().cancel_checkout(flow["checkout"].session_id)


@when("the payment succeeds")
def _(flow, settle):
    flow["order"] = settle(flow["checkout"].payment_intent_id)


# ---------------------------------------------------------------------------
# Then
# ---------------------------------------------------------------------------
@then(parsers.cfparse("{quantity:d} units are reserved"))
def _(flow, quantity):
    assert _variant(flow).reserved == quantity


@then(parsers.cfparse("{quantity:d} units are on hand"))
def _(flow, quantity):
    assert _variant(flow).on_hand == quantity


@then(parsers.cfparse("the checkout total is {total:d} cents"))
def _(flow, total):
    assert flow["checkout"].totals["total"] == total


@then("an order numbered for today is pending")
def _(flow):
    order = flow["order"]
    assert order.status == OrderStatus.PENDING.value
    day, _sequence = parse_order_number(order.order_number)
    assert day == datetime.now(UTC).date()


@then("the buyer receives an order confirmation")
def _(mailer):
    subjects = [email.subject for email in mailer.outbox if email.to == "buyer@example.com"]
    assert len(subjects) == 1
    assert subjects[0].endswith("confirmed")


@then(parsers.re(r"exactly (?P<count>\d+) orders? exists?"), converters={"count": int})
def _(count):
    assert current_domain.repository_for(Order)._dao.query.all().total == count


@then("checkout fails with insufficient inventory")
def _(flow):
    assert isinstance(flow.get("error"), InsufficientInventory)
    assert (flow["error"].requested, flow["error"].available) == (4, 3)
