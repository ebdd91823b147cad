"""Order queries for merchants and for buyers checking on their own order."""

from dataclasses import dataclass

from protean.utils.globals import current_domain

from commerce.errors import BuyerVerificationRequired, OrderNotFound
from commerce.order.order import Order, OrderStatus

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class OrderPage:
    orders: list
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.total else 0


def list_orders(merchant_id, status=None, customer_email=None, page=1, limit=DEFAULT_PAGE_SIZE) -> OrderPage:
    """A merchant's orders, newest first."""
    if status is not None:
        status = OrderStatus(status).value
    page = max(page or 1, 1)
    limit = min(max(limit or DEFAULT_PAGE_SIZE, 1), MAX_PAGE_SIZE)

    results = current_domain.repository_for(Order).search(
        merchant_id,
        status=status,
        customer_email=customer_email,
        offset=(page - 1) * limit,
        limit=limit,
    )
    return OrderPage(orders=results.items, total=results.total, page=page, limit=limit)


def order_status_summary(merchant_id) -> dict[str, int]:
    """Order count per status, every status present."""
    counts = current_domain.repository_for(Order).count_by_status(merchant_id)
    counts["total"] = sum(counts.values())
    return counts


def get_order(order_id, merchant_id=None) -> Order:
    order = current_domain.repository_for(Order).get_order(order_id)
    if merchant_id and str(order.merchant_id) != str(merchant_id):
        raise OrderNotFound(str(order_id))
    return order


def get_by_number(order_number, merchant_id=None) -> Order:
    order = current_domain.repository_for(Order).get_by_number(order_number)
    if merchant_id and str(order.merchant_id) != str(merchant_id):
        raise OrderNotFound(order_number)
    return order


def lookup_for_buyer(order_number, customer_id=None, email=None) -> Order:
    """An order as its buyer may see it, for the confirmation page.

    A signed-in customer sees orders placed under their id. A guest proves
    ownership with the e-mail address the order was placed with. Any mismatch
    reads as not found, so order numbers cannot be enumerated.
    """
    email = (email or "").strip().lower()
    if not customer_id and not email:
        raise BuyerVerificationRequired()

    order = current_domain.repository_for(Order).get_by_number(order_number)
    owned_by_customer = bool(customer_id) and str(order.customer_id or "") == str(customer_id)
    owned_by_email = bool(email) and order.buyer_email.lower() == email
    if not (owned_by_customer or owned_by_email):
        raise OrderNotFound(order_number)
    return order
