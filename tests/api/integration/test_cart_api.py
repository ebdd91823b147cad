"""Integration tests for the cart endpoints."""

BUYER = {"X-Customer-Id": "cust-001"}
GUEST = {"X-Session-Id": "sess-guest"}


class TestBuyerHeaders:
    def test_identity_header_is_required(self, client):
        assert client.get("/cart").status_code == 400

    def test_customer_wins_over_session(self, client, api_variant):
        variant_id = api_variant()
        client.post("/cart/items", json={"variant_id": variant_id}, headers={**BUYER, **GUEST})

        assert client.get("/cart", headers=BUYER).json()["item_count"] == 1
        assert client.get("/cart", headers=GUEST).json()["item_count"] == 0


class TestCartEndpoints:
    def test_empty_cart(self, client):
        response = client.get("/cart", headers=BUYER)
        assert response.status_code == 200
        assert response.json()["lines"] == []

    def test_add_item(self, client, api_variant):
        variant_id = api_variant(base_price=1500)

        response = client.post("/cart/items", json={"variant_id": variant_id, "quantity": 2}, headers=BUYER)

        assert response.status_code == 201
        body = response.json()
        assert body["item_count"] == 2
        assert body["subtotal"] == 3000
        assert body["lines"][0]["line_total"] == 3000
        assert body["issues"] == []

    def test_quantity_over_cap(self, client, api_variant):
        variant_id = api_variant(on_hand=500)
        response = client.post("/cart/items", json={"variant_id": variant_id, "quantity": 100}, headers=BUYER)
        assert response.status_code == 422

    def test_insufficient_inventory(self, client, api_variant):
        variant_id = api_variant(on_hand=1)

        response = client.post("/cart/items", json={"variant_id": variant_id, "quantity": 2}, headers=BUYER)

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "INSUFFICIENT_INVENTORY"
        assert error["details"]["available"] == 1

    def test_unknown_variant(self, client):
        response = client.post("/cart/items", json={"variant_id": "missing"}, headers=BUYER)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "CART_INVALID"

    def test_update_and_remove(self, client, api_variant):
        variant_id = api_variant()
        client.post("/cart/items", json={"variant_id": variant_id}, headers=BUYER)

        response = client.put(f"/cart/items/{variant_id}", json={"quantity": 4}, headers=BUYER)
        assert response.json()["item_count"] == 4

        response = client.delete(f"/cart/items/{variant_id}", headers=BUYER)
        assert response.json()["item_count"] == 0

    def test_clear(self, client, api_variant):
        client.post("/cart/items", json={"variant_id": api_variant()}, headers=BUYER)

        assert client.delete("/cart", headers=BUYER).json() == {"status": "cleared"}
        assert client.get("/cart", headers=BUYER).json()["cart_id"] is None

    def test_merge(self, client, api_variant):
        variant_id = api_variant()
        client.post("/cart/items", json={"variant_id": variant_id, "quantity": 3}, headers=GUEST)

        response = client.post("/cart/merge", json={"session_id": "sess-guest"}, headers=BUYER)

        assert response.status_code == 200
        assert response.json()["item_count"] == 3

    def test_guest_cannot_merge(self, client):
        response = client.post("/cart/merge", json={"session_id": "sess-other"}, headers=GUEST)
        assert response.status_code == 400
