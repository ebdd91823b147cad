import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from commerce.api import ROUTERS, register_error_handlers

MERCHANT = {"X-Merchant-Id": "merchant-1"}


@pytest.fixture()
def client():
    app = FastAPI()
    for router in ROUTERS:
        app.include_router(router)
    register_error_handlers(app)
    return TestClient(app)


@pytest.fixture()
def api_variant(client):
    """Create a product and variant through the merchant API; returns the variant id."""

    def _create(on_hand=10, base_price=1000, sku="TEE-BLK-M", headers=MERCHANT):
        response = client.post("/products", json={"name": "Trail Tee", "base_price": base_price}, headers=headers)
        assert response.status_code == 201
        product_id = response.json()["product_id"]

        response = client.post(
            f"/products/{product_id}/variants",
            json={"sku": sku, "on_hand": on_hand, "option_values": ["Black", "M"]},
            headers=headers,
        )
        assert response.status_code == 201
        return response.json()["variant_id"]

    return _create


@pytest.fixture()
def checkout_body(shipping_address):
    return {"shipping_address": shipping_address, "email": "Buyer@Example.com", "name": "Ada Buyer"}
