"""Product aggregate — the priced parent of one or more sellable Variants.

Product authoring (descriptions, media, categories) lives outside the
commerce core. This aggregate carries only what checkout needs to price and
gate a purchase: the owning merchant, the display name, the base price and
whether the product is on sale at all.
"""

from datetime import UTC, datetime

from protean.fields import Boolean, DateTime, Identifier, Integer, String

from commerce.domain import commerce


@commerce.aggregate
class Product:
    merchant_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    base_price = Integer(required=True, min_value=0)  # cents
    is_active = Boolean(default=True)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, merchant_id, name, base_price, is_active=True):
        now = datetime.now(UTC)
        return cls(
            merchant_id=merchant_id,
            name=name,
            base_price=base_price,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )

    def deactivate(self):
        self.is_active = False
        self.updated_at = datetime.now(UTC)

    def change_price(self, base_price):
        self.base_price = base_price
        self.updated_at = datetime.now(UTC)
