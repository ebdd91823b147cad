"""Inventory ledger — atomic operations on per-variant stock counters.

Every mutation is a compare-and-swap: read the current ``(on_hand,
reserved)`` pair, decide, then issue one conditional update that only lands
if the stored pair is unchanged. A lost race re-reads and tries again, so
two checkouts competing for the last unit are serialized on that variant's
row alone: one wins, the other sees the new availability and fails cleanly.

Invariants:
    0 <= reserved <= on_hand, always
    reserve:  reserved += qty, only if active and available >= qty
    release:  reserved -= qty (clamped at 0, anomaly logged)
    deduct:   on_hand -= qty and reserved -= qty in one step
    adjust:   on_hand += delta, rejected if it would go below 0 or reserved
    restock:  on_hand += qty (order cancellation)
"""

from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from commerce.errors import InsufficientInventory, InvalidAdjustment, LedgerContention, VariantUnavailable
from commerce.inventory.variant import Variant

logger = structlog.get_logger(__name__)

MAX_SWAP_ATTEMPTS = 25


@dataclass(frozen=True)
class StockLevels:
    """Counters of one variant as left by a ledger operation."""

    variant_id: str
    sku: str
    on_hand: int
    reserved: int

    @property
    def available(self) -> int:
        return self.on_hand - self.reserved


def _levels(variant: Variant, on_hand=None, reserved=None) -> StockLevels:
    return StockLevels(
        variant_id=str(variant.id),
        sku=variant.sku,
        on_hand=variant.on_hand if on_hand is None else on_hand,
        reserved=variant.reserved if reserved is None else reserved,
    )


def _require_positive(quantity: int) -> None:
    if not isinstance(quantity, int) or quantity < 1:
        raise ValueError(f"Ledger quantities must be positive integers, got {quantity!r}")


class InventoryLedger:
    """Reserve, release, deduct, adjust and restock variant stock.

    ``on_low_stock`` is called with the variant and its new levels whenever a
    deduction or a negative adjustment takes ``on_hand`` to or below the
    variant's alert threshold.
    """

    def __init__(self, on_low_stock=None) -> None:
        self.on_low_stock = on_low_stock

    @property
    def _repo(self):
        return current_domain.repository_for(Variant)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def levels(self, variant_id) -> StockLevels | None:
        variant = self._repo.find(variant_id)
        return _levels(variant) if variant else None

    def available(self, variant_id) -> int | None:
        """Current availability, or None for a missing or inactive variant."""
        variant = self._repo.find(variant_id)
        if variant is None or not variant.is_active:
            return None
        return variant.available

    # -------------------------------------------------------------------
    # Reservation
    # -------------------------------------------------------------------
    def reserve(self, variant_id, quantity: int) -> StockLevels:
        """Hold ``quantity`` units for a checkout.

        Raises:
            VariantUnavailable: the variant is missing or inactive.
            InsufficientInventory: it exists but cannot cover ``quantity``.
        """
        _require_positive(quantity)
        variant_id = str(variant_id)

        for _ in range(MAX_SWAP_ATTEMPTS):
            variant = self._repo.find(variant_id)
            if variant is None:
                raise VariantUnavailable(variant_id, reason="not_found")
            if not variant.is_active:
                raise VariantUnavailable(variant_id, reason="inactive")
            if variant.available < quantity:
                raise InsufficientInventory(
                    variant_id=variant_id,
                    sku=variant.sku,
                    requested=quantity,
                    available=max(variant.available, 0),
                )

            new_reserved = variant.reserved + quantity
            if self._repo.compare_and_set(
                variant,
                require_active=True,
                reserved=new_reserved,
                updated_at=datetime.now(UTC),
            ):
                logger.debug("Stock reserved", variant_id=variant_id, sku=variant.sku, quantity=quantity)
                return _levels(variant, reserved=new_reserved)

        raise LedgerContention(variant_id, "reserve")

    def release(self, variant_id, quantity: int) -> StockLevels | None:
        """Give back ``quantity`` reserved units."""
        _require_positive(quantity)
        variant_id = str(variant_id)

        for _ in range(MAX_SWAP_ATTEMPTS):
            variant = self._repo.find(variant_id)
            if variant is None:
                logger.error("Release for unknown variant", variant_id=variant_id, quantity=quantity)
                return None

            new_reserved = variant.reserved - quantity
            if new_reserved < 0:
                logger.error(
                    "Reservation accounting anomaly: release exceeds reserved",
                    variant_id=variant_id,
                    sku=variant.sku,
                    reserved=variant.reserved,
                    quantity=quantity,
                )
                new_reserved = 0

            if self._repo.compare_and_set(variant, reserved=new_reserved, updated_at=datetime.now(UTC)):
                logger.debug("Reservation released", variant_id=variant_id, quantity=quantity)
                return _levels(variant, reserved=new_reserved)

        raise LedgerContention(variant_id, "release")

    def deduct(self, variant_id, quantity: int) -> StockLevels | None:
        """Turn a reservation into a permanent decrement of on-hand stock."""
        _require_positive(quantity)
        variant_id = str(variant_id)

        for _ in range(MAX_SWAP_ATTEMPTS):
            variant = self._repo.find(variant_id)
            if variant is None:
                logger.error("Deduction for unknown variant", variant_id=variant_id, quantity=quantity)
                return None

            new_reserved = variant.reserved - quantity
            if new_reserved < 0:
                logger.error(
                    "Reservation accounting anomaly: deduction exceeds reserved",
                    variant_id=variant_id,
                    sku=variant.sku,
                    reserved=variant.reserved,
                    quantity=quantity,
                )
                new_reserved = 0
            new_on_hand = max(variant.on_hand - quantity, new_reserved)

            if self._repo.compare_and_set(
                variant,
                on_hand=new_on_hand,
                reserved=new_reserved,
                updated_at=datetime.now(UTC),
            ):
                levels = _levels(variant, on_hand=new_on_hand, reserved=new_reserved)
                logger.info(
                    "Stock deducted",
                    variant_id=variant_id,
                    sku=variant.sku,
                    quantity=quantity,
                    on_hand=new_on_hand,
                )
                self._check_low_stock(variant, levels)
                return levels

        raise LedgerContention(variant_id, "deduct")

    # -------------------------------------------------------------------
    # On-hand corrections
    # -------------------------------------------------------------------
    def adjust(self, variant_id, delta: int) -> int:
        """Apply a manual on-hand correction and return the new on-hand count."""
        if not isinstance(delta, int):
            raise ValueError(f"Adjustment delta must be an integer, got {delta!r}")
        variant_id = str(variant_id)

        for _ in range(MAX_SWAP_ATTEMPTS):
            variant = self._repo.find(variant_id)
            if variant is None:
                raise VariantUnavailable(variant_id, reason="not_found")

            new_on_hand = variant.on_hand + delta
            if new_on_hand < 0:
                raise InvalidAdjustment(
                    f"Adjustment of {delta} would make on-hand stock negative",
                    variant_id=variant_id,
                    on_hand=variant.on_hand,
                    delta=delta,
                )
            if new_on_hand < variant.reserved:
                raise InvalidAdjustment(
                    f"Adjustment of {delta} would leave less stock than is reserved",
                    variant_id=variant_id,
                    on_hand=variant.on_hand,
                    reserved=variant.reserved,
                    delta=delta,
                )

            if self._repo.compare_and_set(variant, on_hand=new_on_hand, updated_at=datetime.now(UTC)):
                logger.info("Stock adjusted", variant_id=variant_id, sku=variant.sku, delta=delta, on_hand=new_on_hand)
                if delta < 0:
                    self._check_low_stock(variant, _levels(variant, on_hand=new_on_hand))
                return new_on_hand

        raise LedgerContention(variant_id, "adjust")

    def restock(self, variant_id, quantity: int) -> int | None:
        """Add ``quantity`` back to on-hand stock. Reservations are untouched."""
        _require_positive(quantity)
        variant_id = str(variant_id)

        for _ in range(MAX_SWAP_ATTEMPTS):
            variant = self._repo.find(variant_id)
            if variant is None:
                logger.error("Restock for unknown variant", variant_id=variant_id, quantity=quantity)
                return None

            new_on_hand = variant.on_hand + quantity
            if self._repo.compare_and_set(variant, on_hand=new_on_hand, updated_at=datetime.now(UTC)):
                logger.info("Stock restored", variant_id=variant_id, sku=variant.sku, quantity=quantity)
                return new_on_hand

        raise LedgerContention(variant_id, "restock")

    # -------------------------------------------------------------------
    # Alerts
    # -------------------------------------------------------------------
    def _check_low_stock(self, variant: Variant, levels: StockLevels) -> None:
        threshold = variant.alert_threshold
        crossed = variant.on_hand > threshold >= levels.on_hand
        if not crossed or self.on_low_stock is None:
            return

        try:
            self.on_low_stock(variant, levels)
        except Exception as exc:
            logger.error("Low stock alert failed", variant_id=str(variant.id), error=str(exc))
