"""Buyer e-mails for order status changes.

Order placement is announced by settlement itself, which has the full line
items at hand; this handler covers the merchant-driven transitions.
"""

from protean.utils.mixins import handle

from commerce.domain import commerce
from commerce.notification.notification import NotificationKind
from commerce.notification.notifier import notify
from commerce.order.events import OrderCancelled, OrderDelivered, OrderProcessing, OrderShipped
from commerce.order.order import Order


@commerce.event_handler(part_of=Order)
class OrderStatusNotifier:
    @handle(OrderProcessing)
    def on_order_processing(self, event: OrderProcessing) -> None:
        notify(
            NotificationKind.ORDER_PROCESSING.value,
            event.buyer_email,
            {"order_id": event.order_id, "order_number": event.order_number},
        )

    @handle(OrderShipped)
    def on_order_shipped(self, event: OrderShipped) -> None:
        notify(
            NotificationKind.SHIPPING_UPDATE.value,
            event.buyer_email,
            {
                "order_id": event.order_id,
                "order_number": event.order_number,
                "tracking_number": event.tracking_number,
                "tracking_carrier": event.tracking_carrier,
            },
        )

    @handle(OrderDelivered)
    def on_order_delivered(self, event: OrderDelivered) -> None:
        notify(
            NotificationKind.ORDER_DELIVERED.value,
            event.buyer_email,
            {"order_id": event.order_id, "order_number": event.order_number},
        )

    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        notify(
            NotificationKind.ORDER_CANCELLED.value,
            event.buyer_email,
            {"order_id": event.order_id, "order_number": event.order_number, "reason": event.reason},
        )
