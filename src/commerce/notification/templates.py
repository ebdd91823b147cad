"""Notification templates — one renderer per notification kind.

Each template turns the payload handed to ``notify`` into a subject and a
plain-text body. Amounts in payloads are integer cents.
"""

from commerce.notification.notification import NotificationKind


def format_money(cents, currency="usd") -> str:
    cents = int(cents or 0)
    symbol = "$" if currency.lower() == "usd" else f"{currency.upper()} "
    return f"{symbol}{cents // 100:,}.{cents % 100:02d}"


class OrderConfirmationTemplate:
    kind = NotificationKind.ORDER_CONFIRMATION.value

    @staticmethod
    def render(payload: dict) -> dict:
        order_number = payload.get("order_number", "N/A")
        lines = "\n".join(
            f"  {item.get('quantity')} x {item.get('name')}  {format_money(item.get('total_price'))}"
            for item in payload.get("items", [])
        )
        return {
            "subject": f"Order {order_number} confirmed",
            "body": (
                f"Hi {payload.get('buyer_name') or 'there'},\n\n"
                f"Thanks for your order {order_number}.\n\n"
                f"{lines}\n\n"
                f"Subtotal: {format_money(payload.get('subtotal'))}\n"
                f"Shipping: {format_money(payload.get('shipping_cost'))}\n"
                f"Tax: {format_money(payload.get('tax_amount'))}\n"
                f"Total: {format_money(payload.get('total'))}\n\n"
                "We'll let you know when it ships."
            ),
        }


class NewOrderTemplate:
    kind = NotificationKind.NEW_ORDER.value

    @staticmethod
    def render(payload: dict) -> dict:
        order_number = payload.get("order_number", "N/A")
        return {
            "subject": f"New order {order_number}",
            "body": (
                f"You received order {order_number} from {payload.get('buyer_email', 'a customer')}.\n\n"
                f"Items: {payload.get('item_count', 0)}\n"
                f"Total: {format_money(payload.get('total'))}"
            ),
        }


class OrderProcessingTemplate:
    kind = NotificationKind.ORDER_PROCESSING.value

    @staticmethod
    def render(payload: dict) -> dict:
        order_number = payload.get("order_number", "N/A")
        return {
            "subject": f"Order {order_number} is being prepared",
            "body": f"Good news: the merchant has started preparing order {order_number}.",
        }


class ShippingUpdateTemplate:
    kind = NotificationKind.SHIPPING_UPDATE.value

    @staticmethod
    def render(payload: dict) -> dict:
        order_number = payload.get("order_number", "N/A")
        tracking = ""
        if payload.get("tracking_number"):
            carrier = payload.get("tracking_carrier") or "the carrier"
            tracking = f"\n\nTrack it with {carrier}: {payload['tracking_number']}"
        return {
            "subject": f"Order {order_number} has shipped",
            "body": f"Your order {order_number} is on its way.{tracking}",
        }


class OrderDeliveredTemplate:
    kind = NotificationKind.ORDER_DELIVERED.value

    @staticmethod
    def render(payload: dict) -> dict:
        order_number = payload.get("order_number", "N/A")
        return {
            "subject": f"Order {order_number} delivered",
            "body": f"Your order {order_number} has been delivered. Enjoy!",
        }


class OrderCancelledTemplate:
    kind = NotificationKind.ORDER_CANCELLED.value

    @staticmethod
    def render(payload: dict) -> dict:
        order_number = payload.get("order_number", "N/A")
        reason = f"\n\nReason: {payload['reason']}" if payload.get("reason") else ""
        return {
            "subject": f"Order {order_number} cancelled",
            "body": f"Your order {order_number} has been cancelled.{reason}",
        }


class LowStockAlertTemplate:
    kind = NotificationKind.LOW_STOCK_ALERT.value

    @staticmethod
    def render(payload: dict) -> dict:
        items = payload.get("items", [])
        lines = "\n".join(
            f"  {item.get('sku')}: {item.get('on_hand')} on hand (threshold {item.get('threshold')})" for item in items
        )
        subject = f"[Low Stock] {items[0].get('sku')}" if len(items) == 1 else f"[Low Stock] {len(items)} variants"
        return {
            "subject": subject,
            "body": f"The following variants are running low:\n\n{lines}\n\nPlease review and restock as needed.",
        }


TEMPLATE_REGISTRY: dict[str, type] = {
    template.kind: template
    for template in (
        OrderConfirmationTemplate,
        NewOrderTemplate,
        OrderProcessingTemplate,
        ShippingUpdateTemplate,
        OrderDeliveredTemplate,
        OrderCancelledTemplate,
        LowStockAlertTemplate,
    )
}


def get_template(kind: str):
    """Look up a template class by notification kind."""
    template_cls = TEMPLATE_REGISTRY.get(kind)
    if template_cls is None:
        raise ValueError(f"No template registered for notification kind: {kind}")
    return template_cls
