"""Integration tests for checkout and the payment webhook."""

from protean import current_domain

from commerce.inventory.variant import Variant
from commerce.order.order import Order

BUYER = {"X-Customer-Id": "cust-001"}


def _reserved(variant_id):
    return current_domain.repository_for(Variant).get(variant_id).reserved


def _start(client, api_variant, checkout_body, quantity=2):
    variant_id = api_variant(on_hand=10, base_price=1000)
    client.post("/cart/items", json={"variant_id": variant_id, "quantity": quantity}, headers=BUYER)
    response = client.post("/checkout", json=checkout_body, headers=BUYER)
    assert response.status_code == 201
    return variant_id, response.json()


def _post_event(client, body, signature=None):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["Payment-Signature"] = signature
    return client.post("/webhooks/payments", content=body, headers=headers)


def _intent_id(client_secret):
    return client_secret.split("_secret_")[0]


class TestStartCheckout:
    def test_returns_client_secret_and_totals(self, client, api_variant, checkout_body):
        variant_id, body = _start(client, api_variant, checkout_body)

        assert body["session_id"].startswith("cs_")
        assert body["client_secret"]
        assert body["totals"] == {
            "subtotal": 2000,
            "shipping_cost": 500,
            "tax_amount": 160,
            "total": 2660,
            "currency": "usd",
        }
        assert body["line_items"] == [
            {"name": "Trail Tee - Black / M", "quantity": 2, "unit_price": 1000, "total_price": 2000}
        ]
        assert _reserved(variant_id) == 2

    def test_empty_cart(self, client, checkout_body):
        response = client.post("/checkout", json=checkout_body, headers=BUYER)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "CART_EMPTY"

    def test_invalid_email(self, client, checkout_body):
        response = client.post("/checkout", json={**checkout_body, "email": "not-an-email"}, headers=BUYER)
        assert response.status_code == 422

    def test_invalid_country(self, client, checkout_body, shipping_address):
        body = {**checkout_body, "shipping_address": {**shipping_address, "country": "USA"}}
        assert client.post("/checkout", json=body, headers=BUYER).status_code == 422

    def test_gateway_failure(self, client, api_variant, checkout_body, gateway):
        variant_id = api_variant()
        client.post("/cart/items", json={"variant_id": variant_id}, headers=BUYER)
        gateway.configure(should_succeed=False)

        response = client.post("/checkout", json=checkout_body, headers=BUYER)

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "PAYMENT_GATEWAY_ERROR"
        assert _reserved(variant_id) == 0


class TestCancelCheckout:
    def test_cancel_is_idempotent(self, client, api_variant, checkout_body):
        variant_id, body = _start(client, api_variant, checkout_body)

        assert client.delete(f"/checkout/{body['session_id']}").json() == {"cancelled": True}
        assert client.delete(f"/checkout/{body['session_id']}").json() == {"cancelled": False}
        assert _reserved(variant_id) == 0


class TestPaymentWebhook:
    def test_success_creates_order(self, client, api_variant, checkout_body, gateway):
        variant_id, body = _start(client, api_variant, checkout_body)
        event = gateway.build_event("payment_intent.succeeded", _intent_id(body["client_secret"]))

        response = _post_event(client, event, gateway.sign(event))

        assert response.status_code == 200
        assert response.json() == {"received": True}
        orders = current_domain.repository_for(Order)._dao.query.all().items
        assert len(orders) == 1
        assert orders[0].buyer_email == "buyer@example.com"
        assert current_domain.repository_for(Variant).get(variant_id).on_hand == 8

    def test_duplicate_delivery_is_acknowledged(self, client, api_variant, checkout_body, gateway):
        _, body = _start(client, api_variant, checkout_body)
        event = gateway.build_event("payment_intent.succeeded", _intent_id(body["client_secret"]))

        for _ in range(2):
            assert _post_event(client, event, gateway.sign(event)).status_code == 200

        assert current_domain.repository_for(Order)._dao.query.all().total == 1

    def test_missing_signature(self, client, gateway):
        event = gateway.build_event("payment_intent.succeeded", "pi_1")
        response = _post_event(client, event)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "SIGNATURE_INVALID"

    def test_bad_signature(self, client, gateway):
        event = gateway.build_event("payment_intent.succeeded", "pi_1")
        assert _post_event(client, event, "deadbeef").status_code == 400

    def test_signed_body_that_is_not_utf8(self, client, gateway):
        body = b"\xff\xfe\x00"
        response = _post_event(client, body, gateway.sign(body))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "SIGNATURE_INVALID"

    def test_signed_json_array(self, client, gateway):
        body = b"[]"
        assert _post_event(client, body, gateway.sign(body)).status_code == 400

    def test_stripe_signature_header_is_accepted(self, client, gateway):
        event = gateway.build_event("charge.refunded", "pi_1")
        response = client.post("/webhooks/payments", content=event, headers={"Stripe-Signature": gateway.sign(event)})
        assert response.status_code == 200

    def test_unknown_intent_is_acknowledged(self, client, gateway):
        event = gateway.build_event("payment_intent.succeeded", "pi_unknown")
        assert _post_event(client, event, gateway.sign(event)).status_code == 200

    def test_failed_payment_releases(self, client, api_variant, checkout_body, gateway):
        variant_id, body = _start(client, api_variant, checkout_body)
        event = gateway.build_event("payment_intent.payment_failed", _intent_id(body["client_secret"]))

        assert _post_event(client, event, gateway.sign(event)).status_code == 200
        assert _reserved(variant_id) == 0
