"""Maintenance endpoints for the external scheduler.

Every route requires ``Authorization: Bearer $CRON_SECRET``. Without a
configured secret the routes are open outside production and answer 503 in
production.
"""

import hmac
import os

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from protean.utils.globals import current_domain

from commerce.api.schemas import LowStockCheckResponse, MaintenanceStatusResponse, SweepResponse
from commerce.cart.management import PurgeExpiredCarts
from commerce.checkout.expiry import ExpireCheckoutSessions
from commerce.checkout.session import CheckoutSession, CheckoutSessionStatus
from commerce.inventory.alerts import CheckLowStock
from commerce.notification.retry import RetryFailedNotifications, retry_stats


def require_cron_secret(authorization: str | None = Header(default=None)) -> None:
    secret = os.environ.get("CRON_SECRET")
    if not secret:
        if os.environ.get("PROTEAN_ENV") == "production":
            raise HTTPException(status_code=503, detail="Maintenance endpoints are not configured")
        return

    if not authorization or not hmac.compare_digest(authorization, f"Bearer {secret}"):
        raise HTTPException(status_code=401, detail="Invalid or missing maintenance token")


maintenance_router = APIRouter(
    prefix="/maintenance",
    tags=["maintenance"],
    dependencies=[Depends(require_cron_secret)],
)


@maintenance_router.post("/expire-checkouts", response_model=SweepResponse)
async def expire_checkouts() -> SweepResponse:
    closed = current_domain.process(ExpireCheckoutSessions(), asynchronous=False)
    return SweepResponse(task="expire_checkouts", processed=closed or 0)


@maintenance_router.post("/cleanup-carts", response_model=SweepResponse)
async def cleanup_carts(days: int = Query(default=7)) -> SweepResponse:
    deleted = current_domain.process(PurgeExpiredCarts(older_than_days=days), asynchronous=False)
    return SweepResponse(task="cleanup_carts", processed=deleted or 0)


@maintenance_router.post("/retry-notifications", response_model=SweepResponse)
async def retry_notifications() -> SweepResponse:
    retried = current_domain.process(RetryFailedNotifications(), asynchronous=False)
    return SweepResponse(task="retry_notifications", processed=retried or 0)


@maintenance_router.post("/low-stock-check", response_model=LowStockCheckResponse)
async def low_stock_check() -> LowStockCheckResponse:
    merchants = current_domain.process(CheckLowStock(), asynchronous=False)
    return LowStockCheckResponse(merchants=merchants or {})


@maintenance_router.get("/status", response_model=MaintenanceStatusResponse)
async def maintenance_status() -> MaintenanceStatusResponse:
    repo = current_domain.repository_for(CheckoutSession)
    counts = repo.count_by_status()
    return MaintenanceStatusResponse(
        open_checkout_sessions=counts[CheckoutSessionStatus.OPEN.value],
        expired_checkout_sessions=len(repo.find_expired()),
        captured_checkout_sessions=counts[CheckoutSessionStatus.CAPTURED.value],
        stale_checkout_claims=len(repo.find_stale_claims()),
        notifications=retry_stats(),
    )
