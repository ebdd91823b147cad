import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def _commerce_domain(request):
    """Initialize the commerce domain once per session."""
    os.environ["PROTEAN_ENV"] = request.config.option.env

    from commerce.domain import commerce

    commerce.init()
    return commerce


@pytest.fixture(scope="session", autouse=True)
def setup_db(_commerce_domain):
    from commerce.utils.db import drop_db, setup_db

    setup_db(_commerce_domain)

    yield

    drop_db(_commerce_domain)


@pytest.fixture(autouse=True)
def run_around_tests(_commerce_domain):
    """Push domain context before each test, cleanup after."""
    from commerce.gateway import FakeGateway, reset_gateway, set_gateway
    from commerce.notification.channel import reset_mailers

    set_gateway(FakeGateway(webhook_secret="whsec_test"))
    ctx = _commerce_domain.domain_context()
    ctx.push()

    yield

    from protean import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    for _, broker in current_domain.brokers.items():
        broker._data_reset()

    current_domain.event_store.store._data_reset()
    ctx.pop()

    reset_gateway()
    reset_mailers()


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def gateway():
    from commerce.gateway import get_gateway

    return get_gateway()


@pytest.fixture()
def mailer():
    """The recording mailer notifications are delivered to."""
    from commerce.notification.channel import get_mailer

    return get_mailer()


@pytest.fixture()
def make_variant():
    """Create a product with one variant and return the variant id."""
    import json

    from protean import current_domain

    from commerce.catalogue.registration import AddProduct
    from commerce.inventory.management import AddVariant

    counter = {"n": 0}

    def _make(
        on_hand=10,
        price=1000,
        merchant_id="merchant-1",
        name="Trail Tee",
        options=("Black", "M"),
        sku=None,
        low_stock_threshold=None,
        variant_price=None,
    ):
        counter["n"] += 1
        product_id = current_domain.process(
            AddProduct(merchant_id=merchant_id, name=name, base_price=price),
            asynchronous=False,
        )
        return current_domain.process(
            AddVariant(
                product_id=product_id,
                sku=sku or f"SKU-{counter['n']:03d}",
                on_hand=on_hand,
                option_values=json.dumps(list(options)),
                price=variant_price,
                low_stock_threshold=low_stock_threshold,
            ),
            asynchronous=False,
        )

    return _make


@pytest.fixture()
def customer():
    from commerce.cart.cart import BuyerIdentity

    return BuyerIdentity(customer_id="cust-001")


@pytest.fixture()
def add_to_cart(customer):
    from protean import current_domain

    from commerce.cart.management import AddToCart

    def _add(variant_id, quantity=1, identity=None):
        identity = identity or customer
        return current_domain.process(
            AddToCart(
                customer_id=identity.customer_id,
                session_id=identity.session_id,
                variant_id=variant_id,
                quantity=quantity,
            ),
            asynchronous=False,
        )

    return _add


@pytest.fixture()
def shipping_address():
    return {
        "line1": "1 Market Street",
        "line2": None,
        "city": "Springfield",
        "state": "IL",
        "postal_code": "62701",
        "country": "US",
    }


@pytest.fixture()
def start_checkout(customer, shipping_address):
    from commerce.checkout.orchestrator import get_orchestrator

    def _start(identity=None, email="buyer@example.com", name="Ada Buyer"):
        return get_orchestrator().start_checkout(
            identity or customer,
            shipping_address=shipping_address,
            buyer_email=email,
            buyer_name=name,
        )

    return _start


@pytest.fixture()
def settle(gateway):
    """Deliver a signed ``payment_intent.succeeded`` event through settlement."""
    from commerce.settlement.handler import get_settlement_handler

    def _settle(intent_id, event_type="payment_intent.succeeded"):
        body = gateway.build_event(event_type, intent_id)
        event = gateway.verify_webhook(body, gateway.sign(body))
        return get_settlement_handler().handle(event)

    return _settle
