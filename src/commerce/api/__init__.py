"""HTTP API package."""

from commerce.api.cart import cart_router
from commerce.api.catalogue import catalogue_router
from commerce.api.checkout import checkout_router, webhook_router
from commerce.api.errors import register_error_handlers
from commerce.api.maintenance import maintenance_router
from commerce.api.orders import order_router

ROUTERS = [
    catalogue_router,
    cart_router,
    checkout_router,
    webhook_router,
    order_router,
    maintenance_router,
]

__all__ = [
    "ROUTERS",
    "cart_router",
    "catalogue_router",
    "checkout_router",
    "maintenance_router",
    "order_router",
    "register_error_handlers",
    "webhook_router",
]
