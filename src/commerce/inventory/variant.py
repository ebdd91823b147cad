"""Variant aggregate (CQRS) — the sellable unit and its stock counters.

Stock Level Model:
    on_hand:   Physical count the merchant holds
    reserved:  Held by live checkout sessions (not yet paid)
    available: on_hand - reserved (what a new checkout can reserve)

The counters are never written through this aggregate once it exists. Every
change goes through ``InventoryLedger``, which issues conditional updates
against the storage layer. The aggregate is loaded for reading and for the
non-counter attributes merchants manage.
"""

import json
from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text

from commerce.domain import commerce

DEFAULT_LOW_STOCK_THRESHOLD = 5


@commerce.aggregate
class Variant:
    product_id = Identifier(required=True)
    merchant_id = Identifier(required=True)
    sku = String(required=True, max_length=64, unique=True)
    option_values = Text()  # JSON array of option labels, e.g. ["Black", "M"]
    on_hand = Integer(default=0, min_value=0)
    reserved = Integer(default=0, min_value=0)
    price = Integer(min_value=0)  # cents; None falls back to the product price
    low_stock_threshold = Integer(min_value=0)
    is_active = Boolean(default=True)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def reserved_never_exceeds_on_hand(self):
        if (self.reserved or 0) > (self.on_hand or 0):
            raise ValidationError({"reserved": ["Reserved stock cannot exceed on-hand stock"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        product_id,
        merchant_id,
        sku,
        on_hand=0,
        option_values=None,
        price=None,
        low_stock_threshold=None,
    ):
        now = datetime.now(UTC)
        return cls(
            product_id=product_id,
            merchant_id=merchant_id,
            sku=sku.strip().upper(),
            option_values=json.dumps(list(option_values or [])),
            on_hand=on_hand,
            reserved=0,
            price=price,
            low_stock_threshold=low_stock_threshold,
            is_active=True,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def available(self) -> int:
        return (self.on_hand or 0) - (self.reserved or 0)

    @property
    def option_labels(self) -> list[str]:
        return json.loads(self.option_values) if self.option_values else []

    @property
    def alert_threshold(self) -> int:
        if self.low_stock_threshold is None:
            return DEFAULT_LOW_STOCK_THRESHOLD
        return self.low_stock_threshold

    def is_low_stock(self) -> bool:
        return self.on_hand <= self.alert_threshold
