"""Repository for the Variant aggregate."""

from protean.utils.query import Q

from commerce.domain import commerce
from commerce.inventory.variant import Variant


@commerce.repository(part_of=Variant)
class VariantRepository:
    def find(self, variant_id) -> Variant | None:
        """Load a variant by id, or None when it does not exist."""
        results = self._dao.query.filter(id=str(variant_id)).all().items
        return results[0] if results else None

    def find_by_sku(self, sku: str) -> Variant | None:
        results = self._dao.query.filter(sku=sku.strip().upper()).all().items
        return results[0] if results else None

    def find_active(self, merchant_id=None) -> list[Variant]:
        query = self._dao.query.filter(is_active=True)
        if merchant_id:
            query = query.filter(merchant_id=str(merchant_id))
        return query.all().items

    def compare_and_set(self, variant: Variant, require_active: bool = False, **changes) -> bool:
        """Apply ``changes`` only if the stored counters still match ``variant``.

        The condition is evaluated by the storage layer in a single
        conditional update. Returns True when exactly this row was updated.
        """
        criteria = {
            "id": str(variant.id),
            "on_hand": variant.on_hand,
            "reserved": variant.reserved,
        }
        if require_active:
            criteria["is_active"] = True

        updated = self._dao._update_all(Q(**criteria), **changes)
        return updated == 1

    def update_attributes(self, variant_id, **changes) -> bool:
        """Write non-counter attributes without touching on_hand or reserved."""
        if {"on_hand", "reserved"} & changes.keys():
            raise ValueError("Stock counters can only be changed through the inventory ledger")
        updated = self._dao._update_all(Q(id=str(variant_id)), **changes)
        return updated == 1
