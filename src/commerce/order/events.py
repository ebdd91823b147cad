"""Domain events for the Order aggregate.

Raised on every state change and consumed by the buyer notification handler.
Each event carries the order number and buyer e-mail so that handlers do not
need to load the order again.
"""

from protean.fields import DateTime, Identifier, Integer, String, Text

from commerce.domain import commerce


@commerce.event(part_of="Order")
class OrderPlaced:
    """A paid checkout session was settled into an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    payment_intent_id = String(required=True)
    merchant_id = Identifier(required=True)
    buyer_email = String(required=True)
    total = Integer(required=True)
    currency = String(default="usd")
    placed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderProcessing:
    """The merchant started preparing the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_email = String(required=True)
    processed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_email = String(required=True)
    tracking_number = String()
    tracking_carrier = String()
    shipped_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_email = String(required=True)
    delivered_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled; its stock goes back on hand."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_email = String(required=True)
    previous_status = String(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderNotesUpdated:
    __version__ = 1

    order_id = Identifier(required=True)
    notes = Text()
    updated_at = DateTime(required=True)
