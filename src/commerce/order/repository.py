"""Repository for the Order aggregate."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.query import Q

from commerce.domain import commerce
from commerce.errors import OrderNotFound
from commerce.order.order import Order, OrderStatus


@commerce.repository(part_of=Order)
class OrderRepository:
    def find_by_payment_intent(self, intent_id) -> Order | None:
        results = self._dao.query.filter(payment_intent_id=str(intent_id)).all().items
        return results[0] if results else None

    def get_by_number(self, order_number: str) -> Order:
        results = self._dao.query.filter(order_number=order_number.strip().upper()).all().items
        if not results:
            raise OrderNotFound(order_number)
        return results[0]

    def get_order(self, order_id) -> Order:
        try:
            return self.get(str(order_id))
        except ObjectNotFoundError:
            raise OrderNotFound(str(order_id)) from None

    def claim_status(self, order: Order, expected_status: str) -> bool:
        """Write ``order.status`` only if the stored status is still ``expected_status``.

        Two merchants acting on the same order concurrently both pass the
        in-memory transition guard; only one of them gets this update.
        """
        updated = self._dao._update_all(
            Q(id=str(order.id), status=expected_status),
            status=order.status,
            updated_at=order.updated_at,
        )
        return updated == 1

    def search(self, merchant_id, status=None, customer_email=None, offset=0, limit=20):
        query = self._dao.query.filter(merchant_id=str(merchant_id))
        if status:
            query = query.filter(status=status)
        if customer_email:
            query = query.filter(buyer_email=customer_email.strip().lower())
        return query.order_by("-created_at").offset(offset).limit(limit).all()

    def count_by_status(self, merchant_id) -> dict[str, int]:
        return {
            status.value: self._dao.query.filter(merchant_id=str(merchant_id), status=status.value).all().total
            for status in OrderStatus
        }
