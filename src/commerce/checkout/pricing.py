"""Checkout pricing rules. All amounts are integer cents."""

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal

CURRENCY = "usd"
FREE_SHIPPING_THRESHOLD = 10000
FLAT_SHIPPING_RATE = 500
TAX_RATE = Decimal("0.08")


@dataclass(frozen=True)
class Totals:
    subtotal: int
    shipping_cost: int
    tax_amount: int
    total: int
    currency: str = CURRENCY

    def as_dict(self) -> dict:
        return asdict(self)


def shipping_for(subtotal: int) -> int:
    return 0 if subtotal >= FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING_RATE


def tax_for(subtotal: int) -> int:
    """Sales tax rounded half-up to the cent."""
    return int((Decimal(subtotal) * TAX_RATE).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def price_subtotal(subtotal: int, currency: str = CURRENCY) -> Totals:
    shipping = shipping_for(subtotal)
    tax = tax_for(subtotal)
    return Totals(
        subtotal=subtotal,
        shipping_cost=shipping,
        tax_amount=tax,
        total=subtotal + shipping + tax,
        currency=currency,
    )
