"""Merchant stock management — commands and handler.

Variants are created here and afterwards only ever deactivated. Counter
changes go through the ledger; other attributes are written with targeted
updates so a concurrent reservation is never overwritten with stale counts.
"""

import json
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from commerce.catalogue.product import Product
from commerce.domain import commerce
from commerce.errors import VariantUnavailable
from commerce.inventory import get_ledger
from commerce.inventory.variant import Variant

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Variant")
class AddVariant:
    product_id = Identifier(required=True)
    sku = String(required=True, max_length=64)
    on_hand = Integer(default=0, min_value=0)
    option_values = Text()  # JSON array of option labels
    price = Integer(min_value=0)
    low_stock_threshold = Integer(min_value=0)


@commerce.command(part_of="Variant")
class AdjustVariantStock:
    """Manual on-hand correction (count, shrinkage, receiving)."""

    variant_id = Identifier(required=True)
    delta = Integer(required=True)
    reason = String(max_length=255)


@commerce.command(part_of="Variant")
class DeactivateVariant:
    variant_id = Identifier(required=True)


@commerce.command(part_of="Variant")
class ReactivateVariant:
    variant_id = Identifier(required=True)


@commerce.command(part_of="Variant")
class SetLowStockThreshold:
    variant_id = Identifier(required=True)
    threshold = Integer(required=True, min_value=0)


@commerce.command_handler(part_of=Variant)
class StockManagementHandler:
    @handle(AddVariant)
    def add_variant(self, command):
        try:
            product = current_domain.repository_for(Product).get(command.product_id)
        except ObjectNotFoundError:
            raise ValidationError({"product_id": ["Product does not exist"]}) from None

        option_values = json.loads(command.option_values) if command.option_values else []

        variant = Variant.create(
            product_id=command.product_id,
            merchant_id=product.merchant_id,
            sku=command.sku,
            on_hand=command.on_hand or 0,
            option_values=option_values,
            price=command.price,
            low_stock_threshold=command.low_stock_threshold,
        )
        current_domain.repository_for(Variant).add(variant)
        return str(variant.id)

    @handle(AdjustVariantStock)
    def adjust_stock(self, command):
        new_on_hand = get_ledger().adjust(command.variant_id, command.delta)
        logger.info(
            "Manual stock adjustment",
            variant_id=str(command.variant_id),
            delta=command.delta,
            reason=command.reason,
        )
        return new_on_hand

    @handle(DeactivateVariant)
    def deactivate_variant(self, command):
        _set_attributes(command.variant_id, is_active=False)

    @handle(ReactivateVariant)
    def reactivate_variant(self, command):
        _set_attributes(command.variant_id, is_active=True)

    @handle(SetLowStockThreshold)
    def set_low_stock_threshold(self, command):
        _set_attributes(command.variant_id, low_stock_threshold=command.threshold)


def _set_attributes(variant_id, **changes):
    changes["updated_at"] = datetime.now(UTC)
    if not current_domain.repository_for(Variant).update_attributes(variant_id, **changes):
        raise VariantUnavailable(str(variant_id), reason="not_found")
