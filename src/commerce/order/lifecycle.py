"""Order lifecycle — merchant commands and their handler.

Every status change is written with a conditional update on the status the
order had when it was loaded, so a transition is applied at most once even
when two requests race. Cancellation puts each item's quantity back on hand,
and only the request that actually moved the order to CANCELLED does so.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.errors import CannotCancel, InvalidTransition, OrderNotFound
from commerce.inventory import get_ledger
from commerce.order.order import Order, OrderStatus, TERMINAL_STATUSES

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Order")
class MarkOrderProcessing:
    order_id = Identifier(required=True)
    merchant_id = Identifier()


@commerce.command(part_of="Order")
class ShipOrder:
    order_id = Identifier(required=True)
    merchant_id = Identifier()
    tracking_number = String(max_length=255)
    tracking_carrier = String(max_length=100)


@commerce.command(part_of="Order")
class DeliverOrder:
    order_id = Identifier(required=True)
    merchant_id = Identifier()


@commerce.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    merchant_id = Identifier()
    reason = String(max_length=500)


@commerce.command(part_of="Order")
class UpdateOrderStatus:
    """Generic merchant action used by the order dashboard."""

    order_id = Identifier(required=True)
    merchant_id = Identifier()
    status = String(required=True, max_length=20)
    tracking_number = String(max_length=255)
    tracking_carrier = String(max_length=100)
    reason = String(max_length=500)


@commerce.command(part_of="Order")
class UpdateOrderNotes:
    order_id = Identifier(required=True)
    merchant_id = Identifier()
    notes = Text()


def _load(repo, command) -> Order:
    order = repo.get_order(command.order_id)
    if command.merchant_id and str(order.merchant_id) != str(command.merchant_id):
        raise OrderNotFound(str(command.order_id))
    return order


@commerce.command_handler(part_of=Order)
class OrderLifecycleHandler:
    @handle(MarkOrderProcessing)
    def mark_processing(self, command):
        return self._advance(command, lambda order: order.mark_processing())

    @handle(ShipOrder)
    def ship_order(self, command):
        return self._advance(
            command,
            lambda order: order.ship(
                tracking_number=command.tracking_number,
                tracking_carrier=command.tracking_carrier,
            ),
        )

    @handle(DeliverOrder)
    def deliver_order(self, command):
        return self._advance(command, lambda order: order.deliver())

    @handle(CancelOrder)
    def cancel_order(self, command):
        return self._advance(command, lambda order: order.cancel(reason=command.reason))

    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        return self._advance(
            command,
            lambda order: order.transition_to(
                command.status,
                tracking_number=command.tracking_number,
                tracking_carrier=command.tracking_carrier,
                reason=command.reason,
            ),
        )

    @handle(UpdateOrderNotes)
    def update_order_notes(self, command):
        repo = current_domain.repository_for(Order)
        order = _load(repo, command)
        order.update_notes(command.notes)
        repo.add(order)
        return str(order.id)

    def _advance(self, command, action):
        repo = current_domain.repository_for(Order)
        order = _load(repo, command)
        previous_status = order.status

        action(order)

        if not repo.claim_status(order, previous_status):
            current = repo.get_order(order.id).status
            if order.status == OrderStatus.CANCELLED.value and OrderStatus(current) in TERMINAL_STATUSES:
                raise CannotCancel(current)
            raise InvalidTransition(current, order.status)

        repo.add(order)
        logger.info(
            "Order status changed",
            order_id=str(order.id),
            order_number=order.order_number,
            from_status=previous_status,
            to_status=order.status,
        )

        if order.status == OrderStatus.CANCELLED.value:
            _restock(order)
        return str(order.id)


def _restock(order: Order) -> None:
    ledger = get_ledger()
    for item in order.ordered_items:
        try:
            ledger.restock(item.variant_id, item.quantity)
        except Exception as exc:
            logger.error(
                "Failed to restore stock for cancelled order",
                order_number=order.order_number,
                variant_id=str(item.variant_id),
                quantity=item.quantity,
                error=str(exc),
            )
            raise
    logger.info("Stock restored for cancelled order", order_number=order.order_number, items=len(order.items))
