"""CheckoutSession aggregate (CQRS) — the window between reservation and payment.

A session is opened once every cart line has been reserved and a payment
intent exists for the total. It lives in the store under two keys, its own
``cs_<hex>`` id and the payment intent id, so that both the buyer (cancel)
and the gateway (webhook) can find it.

State Machine:
    OPEN → CLOSING → (discarded)
    CLOSING → CAPTURED → CLOSING    (settlement failed after payment capture)
    CLOSING → OPEN                  (stale claim recovered by the sweep)

Exactly one of cancel, the expiry sweep or settlement moves a session from
OPEN to CLOSING, through a conditional update in the repository. Whoever
wins owns the reservations from then on; everybody else backs off.

A CAPTURED session has been paid for but holds no order yet. Only a
replayed payment event may claim it again; cancel and the expiry sweep
leave its reservations alone.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum
from uuid import uuid4

from protean.fields import DateTime, HasMany, Identifier, Integer, String, ValueObject

from commerce.cart.cart import BuyerIdentity
from commerce.domain import commerce
from commerce.shared.address import PostalAddress

SESSION_TTL = timedelta(minutes=30)
CLAIM_TIMEOUT = timedelta(minutes=15)


class CheckoutSessionStatus(Enum):
    OPEN = "open"
    CLOSING = "closing"
    CAPTURED = "captured"


def new_session_id() -> str:
    return f"cs_{uuid4().hex}"


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


@commerce.entity(part_of="CheckoutSession")
class CheckoutLine:
    """A reserved cart line, priced from the catalogue when the session opened."""

    position = Integer(required=True, min_value=0)
    variant_id = Identifier(required=True)
    product_id = Identifier(required=True)
    sku = String(required=True, max_length=64)
    product_name = String(required=True, max_length=255)
    variant_name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Integer(required=True, min_value=0)  # cents

    @property
    def total_price(self) -> int:
        return self.unit_price * self.quantity

    @property
    def display_name(self) -> str:
        if self.variant_name:
            return f"{self.product_name} - {self.variant_name}"
        return self.product_name


@commerce.aggregate
class CheckoutSession:
    id = String(identifier=True, max_length=64)
    payment_intent_id = String(required=True, max_length=255, unique=True)
    status = String(choices=CheckoutSessionStatus, default=CheckoutSessionStatus.OPEN.value)

    customer_id = Identifier()
    session_id = String(max_length=255)  # storefront session of a guest buyer
    merchant_id = Identifier(required=True)
    buyer_email = String(required=True, max_length=254)
    buyer_name = String(max_length=255)
    shipping_address = ValueObject(PostalAddress)

    lines = HasMany(CheckoutLine)
    subtotal = Integer(default=0, min_value=0)
    shipping_cost = Integer(default=0, min_value=0)
    tax_amount = Integer(default=0, min_value=0)
    total = Integer(default=0, min_value=0)
    currency = String(max_length=3, default="usd")

    created_at = DateTime()
    expires_at = DateTime()
    claimed_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def open(
        cls,
        session_id,
        payment_intent_id,
        identity: BuyerIdentity,
        merchant_id,
        buyer_email,
        buyer_name,
        shipping_address: PostalAddress,
        lines: list[dict],
        totals,
    ):
        """Build an OPEN session; ``lines`` are already reserved, in cart order."""
        now = datetime.now(UTC)
        session = cls(
            id=session_id,
            payment_intent_id=payment_intent_id,
            status=CheckoutSessionStatus.OPEN.value,
            customer_id=identity.customer_id,
            session_id=identity.session_id,
            merchant_id=merchant_id,
            buyer_email=buyer_email,
            buyer_name=buyer_name,
            shipping_address=shipping_address,
            subtotal=totals.subtotal,
            shipping_cost=totals.shipping_cost,
            tax_amount=totals.tax_amount,
            total=totals.total,
            currency=totals.currency,
            created_at=now,
            expires_at=now + SESSION_TTL,
        )
        for position, line in enumerate(lines):
            session.add_lines(CheckoutLine(position=position, **line))
        return session

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def identity(self) -> BuyerIdentity:
        if self.customer_id:
            return BuyerIdentity(customer_id=str(self.customer_id))
        return BuyerIdentity(session_id=self.session_id)

    @property
    def ordered_lines(self) -> list[CheckoutLine]:
        return sorted(self.lines, key=lambda line: line.position)

    def is_expired(self, as_of: datetime | None = None) -> bool:
        as_of = as_of or datetime.now(UTC)
        return _aware(self.expires_at) <= _aware(as_of)

    def redacted_line_items(self) -> list[dict]:
        """Line items as shown to the buyer: no ids, no SKUs."""
        return [
            {
                "name": line.display_name,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "total_price": line.total_price,
            }
            for line in self.ordered_lines
        ]

    def totals_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "shipping_cost": self.shipping_cost,
            "tax_amount": self.tax_amount,
            "total": self.total,
            "currency": self.currency,
        }
