"""Low-stock alerts — the post-deduction hook and the daily sweep.

A variant is low on stock once ``on_hand`` is at or below its threshold
(``low_stock_threshold``, default 5). The ledger alerts the merchant when a
deduction or adjustment crosses that line; the ``CheckLowStock`` sweep sends
each merchant a digest of every variant currently below it.
"""

from collections import defaultdict

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.inventory.variant import Variant
from commerce.notification.notification import NotificationKind
from commerce.notification.notifier import merchant_recipient, notify

logger = structlog.get_logger(__name__)

LOW_STOCK_SCAN_LIMIT = 1000


def _alert_line(variant: Variant, on_hand: int) -> dict:
    return {
        "variant_id": str(variant.id),
        "sku": variant.sku,
        "on_hand": on_hand,
        "threshold": variant.alert_threshold,
    }


def send_low_stock_alert(variant: Variant, levels) -> None:
    logger.info("Low stock detected", variant_id=str(variant.id), sku=variant.sku, on_hand=levels.on_hand)
    notify(
        NotificationKind.LOW_STOCK_ALERT.value,
        merchant_recipient(variant.merchant_id),
        {"merchant_id": str(variant.merchant_id), "items": [_alert_line(variant, levels.on_hand)]},
    )


def find_low_stock(merchant_id=None) -> list[Variant]:
    dao = current_domain.repository_for(Variant)._dao
    query = dao.query.filter(is_active=True)
    if merchant_id:
        query = query.filter(merchant_id=str(merchant_id))
    variants = query.order_by("sku").limit(LOW_STOCK_SCAN_LIMIT).all().items
    return [variant for variant in variants if variant.is_low_stock()]


@commerce.command(part_of="Variant")
class CheckLowStock:
    merchant_id = Identifier()  # Optional: defaults to every merchant


@commerce.command_handler(part_of=Variant)
class LowStockCheckHandler:
    @handle(CheckLowStock)
    def check_low_stock(self, command):
        by_merchant = defaultdict(list)
        for variant in find_low_stock(command.merchant_id):
            by_merchant[str(variant.merchant_id)].append(_alert_line(variant, variant.on_hand))

        for merchant_id, items in by_merchant.items():
            notify(
                NotificationKind.LOW_STOCK_ALERT.value,
                merchant_recipient(merchant_id),
                {"merchant_id": merchant_id, "items": items},
            )

        logger.info("Low stock check complete", merchants=len(by_merchant))
        return {merchant_id: len(items) for merchant_id, items in by_merchant.items()}
