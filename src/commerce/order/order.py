"""Order aggregate (CQRS) — a settled checkout and its fulfilment lifecycle.

Orders are only ever created by settlement, once the payment processor has
confirmed the charge, so every order starts out PENDING and PAID. Orders are
never deleted.

State Machine:
    PENDING    → PROCESSING | CANCELLED
    PROCESSING → SHIPPED    | CANCELLED
    SHIPPED    → DELIVERED  | CANCELLED
    DELIVERED  → (terminal)
    CANCELLED  → (terminal)

Moving to the current status again is not a transition and is rejected like
any other pair missing from the table.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, HasMany, Identifier, Integer, String, Text, ValueObject

from commerce.domain import commerce
from commerce.errors import CannotCancel, InvalidTransition
from commerce.order.events import (
    OrderCancelled,
    OrderDelivered,
    OrderNotesUpdated,
    OrderPlaced,
    OrderProcessing,
    OrderShipped,
)
from commerce.shared.address import PostalAddress


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    PAID = "paid"
    REFUNDED = "refunded"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

TERMINAL_STATUSES = {status for status, targets in _VALID_TRANSITIONS.items() if not targets}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in _VALID_TRANSITIONS.get(current, set())


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@commerce.entity(part_of="Order")
class OrderItem:
    """A purchased variant, with names and prices frozen at settlement."""

    position = Integer(default=0, min_value=0)
    variant_id = Identifier(required=True)
    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    variant_name = String(max_length=255)
    sku = String(required=True, max_length=64)
    quantity = Integer(required=True, min_value=1)
    unit_price = Integer(required=True, min_value=0)  # cents
    total_price = Integer(required=True, min_value=0)  # cents

    @property
    def display_name(self) -> str:
        if self.variant_name:
            return f"{self.product_name} - {self.variant_name}"
        return self.product_name


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@commerce.aggregate
class Order:
    order_number = String(required=True, max_length=32, unique=True)
    payment_intent_id = String(required=True, max_length=255, unique=True)
    merchant_id = Identifier(required=True)
    customer_id = Identifier()  # Null for guest checkouts
    buyer_email = String(required=True, max_length=254)
    buyer_name = String(max_length=255)

    items = HasMany(OrderItem)
    shipping_address = ValueObject(PostalAddress)

    subtotal = Integer(required=True, min_value=0)
    shipping_cost = Integer(default=0, min_value=0)
    tax_amount = Integer(default=0, min_value=0)
    total = Integer(required=True, min_value=0)
    currency = String(max_length=3, default="usd")

    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PAID.value)
    paid_at = DateTime()
    processed_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    tracking_number = String(max_length=255)
    tracking_carrier = String(max_length=100)
    notes = Text()

    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        payment_intent_id,
        merchant_id,
        customer_id,
        buyer_email,
        buyer_name,
        shipping_address,
        items_data,
        totals: dict,
    ):
        """Create a PENDING, PAID order from a settled checkout.

        Args:
            items_data: List of dicts with variant_id, product_id, sku,
                        product_name, variant_name, quantity, unit_price.
            totals: Dict with subtotal, shipping_cost, tax_amount, total, currency.
        """
        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            payment_intent_id=payment_intent_id,
            merchant_id=merchant_id,
            customer_id=customer_id,
            buyer_email=buyer_email,
            buyer_name=buyer_name,
            shipping_address=shipping_address,
            subtotal=totals["subtotal"],
            shipping_cost=totals.get("shipping_cost", 0),
            tax_amount=totals.get("tax_amount", 0),
            total=totals["total"],
            currency=totals.get("currency", "usd"),
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PAID.value,
            paid_at=now,
            created_at=now,
            updated_at=now,
        )
        for position, item in enumerate(items_data):
            order.add_items(
                OrderItem(
                    position=position,
                    total_price=item["unit_price"] * item["quantity"],
                    **item,
                )
            )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                payment_intent_id=payment_intent_id,
                merchant_id=str(merchant_id),
                buyer_email=buyer_email,
                total=order.total,
                currency=order.currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def ordered_items(self) -> list[OrderItem]:
        return sorted(self.items, key=lambda item: item.position or 0)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_terminal(self) -> bool:
        return OrderStatus(self.status) in TERMINAL_STATUSES

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: OrderStatus):
        current = OrderStatus(self.status)
        if not can_transition(current, target_status):
            raise InvalidTransition(current.value, target_status.value)

    def mark_processing(self):
        self._assert_can_transition(OrderStatus.PROCESSING)

        now = datetime.now(UTC)
        self.status = OrderStatus.PROCESSING.value
        self.processed_at = now
        self.updated_at = now

        self.raise_(
            OrderProcessing(
                order_id=str(self.id),
                order_number=self.order_number,
                buyer_email=self.buyer_email,
                processed_at=now,
            )
        )

    def ship(self, tracking_number=None, tracking_carrier=None):
        self._assert_can_transition(OrderStatus.SHIPPED)

        now = datetime.now(UTC)
        self.status = OrderStatus.SHIPPED.value
        self.shipped_at = now
        self.updated_at = now
        if tracking_number:
            self.tracking_number = tracking_number
        if tracking_carrier:
            self.tracking_carrier = tracking_carrier

        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                order_number=self.order_number,
                buyer_email=self.buyer_email,
                tracking_number=self.tracking_number,
                tracking_carrier=self.tracking_carrier,
                shipped_at=now,
            )
        )

    def deliver(self):
        self._assert_can_transition(OrderStatus.DELIVERED)

        now = datetime.now(UTC)
        self.status = OrderStatus.DELIVERED.value
        self.delivered_at = now
        self.updated_at = now

        self.raise_(
            OrderDelivered(
                order_id=str(self.id),
                order_number=self.order_number,
                buyer_email=self.buyer_email,
                delivered_at=now,
            )
        )

    def cancel(self, reason=None):
        """Cancel a non-terminal order. Stock is restored by the caller."""
        if self.is_terminal:
            raise CannotCancel(self.status)

        previous_status = self.status
        now = datetime.now(UTC)
        self.status = OrderStatus.CANCELLED.value
        self.cancelled_at = now
        self.updated_at = now
        if reason:
            self._append_note(f"Cancelled: {reason}")

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                buyer_email=self.buyer_email,
                previous_status=previous_status,
                reason=reason,
                cancelled_at=now,
            )
        )

    def transition_to(self, status, tracking_number=None, tracking_carrier=None, reason=None):
        """Generic merchant action: move to ``status`` through the matching transition."""
        try:
            target = OrderStatus(status)
        except ValueError:
            raise InvalidTransition(self.status, str(status), message=f"Unknown order status: {status}") from None

        if target == OrderStatus.PROCESSING:
            self.mark_processing()
        elif target == OrderStatus.SHIPPED:
            self.ship(tracking_number=tracking_number, tracking_carrier=tracking_carrier)
        elif target == OrderStatus.DELIVERED:
            self.deliver()
        elif target == OrderStatus.CANCELLED:
            self.cancel(reason=reason)
        else:
            self._assert_can_transition(target)

    # -------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------
    def update_notes(self, notes):
        now = datetime.now(UTC)
        self.notes = notes
        self.updated_at = now
        self.raise_(OrderNotesUpdated(order_id=str(self.id), notes=notes, updated_at=now))

    def _append_note(self, line: str):
        self.notes = f"{self.notes}\n{line}" if self.notes else line
