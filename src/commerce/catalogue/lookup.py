"""Read collaborator: a Variant joined with its Product.

Checkout re-derives every price through ``get_variant_with_product``; it
always reads the live records, so a deactivation or price change made after
an item went into a cart is honoured.
"""

from dataclasses import dataclass

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from commerce.catalogue.product import Product
from commerce.inventory.variant import Variant


@dataclass(frozen=True)
class VariantWithProduct:
    variant: Variant
    product: Product

    @property
    def unit_price(self) -> int:
        """Variant price override, else the product's base price (cents)."""
        if self.variant.price is not None:
            return self.variant.price
        return self.product.base_price

    @property
    def variant_name(self) -> str:
        return " / ".join(self.variant.option_labels)

    @property
    def display_name(self) -> str:
        if self.variant_name:
            return f"{self.product.name} - {self.variant_name}"
        return self.product.name

    @property
    def is_purchasable(self) -> bool:
        return bool(self.variant.is_active and self.product.is_active)

    @property
    def merchant_id(self) -> str:
        return str(self.product.merchant_id)


def get_variant_with_product(variant_id) -> VariantWithProduct | None:
    """Return the variant and its product, or None when either is missing."""
    try:
        variant = current_domain.repository_for(Variant).get(str(variant_id))
        product = current_domain.repository_for(Product).get(str(variant.product_id))
    except ObjectNotFoundError:
        return None
    return VariantWithProduct(variant=variant, product=product)
