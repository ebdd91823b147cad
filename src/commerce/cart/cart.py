"""Shopping Cart aggregate (CQRS) — the lines a buyer intends to purchase.

A cart belongs to exactly one identity: an authenticated customer or an
anonymous storefront session. It is created lazily on the first add, and
every mutation slides its expiry seven days forward. Carts are deleted on
expiry, on an explicit clear, on merge into a customer cart, and once their
checkout settles into an order.

Lines carry a price snapshot for display only. Checkout re-prices every line
from the catalogue.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String

from commerce.domain import commerce

CART_TTL = timedelta(days=7)
MAX_QUANTITY_PER_ADD = 99


@dataclass(frozen=True)
class BuyerIdentity:
    """Who a cart (and a checkout) belongs to. Exactly one field is set."""

    customer_id: str | None = None
    session_id: str | None = None

    def __post_init__(self):
        if bool(self.customer_id) == bool(self.session_id):
            raise ValidationError({"identity": ["Provide either a customer id or a session id"]})

    @property
    def is_guest(self) -> bool:
        return self.customer_id is None

    def as_metadata(self) -> dict:
        if self.customer_id:
            return {"customer_id": str(self.customer_id)}
        return {"session_id": self.session_id}

    def __str__(self) -> str:
        return f"customer:{self.customer_id}" if self.customer_id else f"session:{self.session_id}"


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


@commerce.entity(part_of="ShoppingCart")
class CartLine:
    variant_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    price_snapshot = Integer(required=True, min_value=0)  # cents
    added_at = DateTime()


@commerce.aggregate
class ShoppingCart:
    customer_id = Identifier()  # Nullable for guest carts
    session_id = String(max_length=255)  # Guest cart identification
    lines = HasMany(CartLine)
    expires_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def cart_must_have_exactly_one_owner(self):
        if bool(self.customer_id) == bool(self.session_id):
            raise ValidationError({"cart": ["A cart belongs to either a customer or a session"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, identity: BuyerIdentity):
        now = datetime.now(UTC)
        return cls(
            customer_id=identity.customer_id,
            session_id=identity.session_id,
            expires_at=now + CART_TTL,
            created_at=now,
            updated_at=now,
        )

    @property
    def identity(self) -> BuyerIdentity:
        if self.customer_id:
            return BuyerIdentity(customer_id=str(self.customer_id))
        return BuyerIdentity(session_id=self.session_id)

    def _touch(self):
        now = datetime.now(UTC)
        self.updated_at = now
        self.expires_at = now + CART_TTL

    def is_expired(self, as_of: datetime | None = None) -> bool:
        as_of = as_of or datetime.now(UTC)
        return self.expires_at is not None and _aware(self.expires_at) <= _aware(as_of)

    def line_for(self, variant_id) -> CartLine | None:
        return next((line for line in self.lines if str(line.variant_id) == str(variant_id)), None)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def subtotal_snapshot(self) -> int:
        return sum(line.quantity * line.price_snapshot for line in self.lines)

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def add_line(self, variant_id, product_id, quantity, unit_price):
        """Add ``quantity`` of a variant, merging into an existing line."""
        if quantity < 1 or quantity > MAX_QUANTITY_PER_ADD:
            raise ValidationError({"quantity": [f"Quantity must be between 1 and {MAX_QUANTITY_PER_ADD}"]})

        existing = self.line_for(variant_id)
        if existing:
            existing.quantity += quantity
            existing.price_snapshot = unit_price
        else:
            self.add_lines(
                CartLine(
                    variant_id=variant_id,
                    product_id=product_id,
                    quantity=quantity,
                    price_snapshot=unit_price,
                    added_at=datetime.now(UTC),
                )
            )
        self._touch()

    def set_quantity(self, variant_id, quantity):
        """Set a line's quantity; zero removes the line."""
        if quantity < 0:
            raise ValidationError({"quantity": ["Quantity cannot be negative"]})

        line = self.line_for(variant_id)
        if line is None:
            raise ValidationError({"variant_id": ["Item not found in cart"]})

        if quantity == 0:
            self.remove_lines(line)
        else:
            line.quantity = quantity
        self._touch()

    def remove_line(self, variant_id):
        line = self.line_for(variant_id)
        if line is None:
            raise ValidationError({"variant_id": ["Item not found in cart"]})
        self.remove_lines(line)
        self._touch()

    def clear(self):
        for line in list(self.lines):
            self.remove_lines(line)
        self._touch()

    def merge_line(self, variant_id, product_id, quantity, unit_price):
        """Fold in a line from another cart; the per-add cap does not apply."""
        if quantity < 1:
            return

        existing = self.line_for(variant_id)
        if existing:
            existing.quantity += quantity
        else:
            self.add_lines(
                CartLine(
                    variant_id=variant_id,
                    product_id=product_id,
                    quantity=quantity,
                    price_snapshot=unit_price,
                    added_at=datetime.now(UTC),
                )
            )
        self._touch()
