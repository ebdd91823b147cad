"""Commerce error taxonomy.

Every failure the checkout core reports to a caller is a ``CommerceError``
subclass with a stable ``code``, an HTTP ``status_code`` and structured
``details`` (SKU, available quantity, offending lines) so that a client can
take a corrective action. Field-level input problems keep using Protean's
``ValidationError``.
"""


class CommerceError(Exception):
    """Base class for all commerce errors."""

    code = "COMMERCE_ERROR"
    status_code = 400

    def __init__(self, message: str, **details) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, {self.details!r})"


# ---------------------------------------------------------------------------
# Cart & checkout
# ---------------------------------------------------------------------------
class CartEmpty(CommerceError):
    code = "CART_EMPTY"

    def __init__(self, message: str = "Cart is empty") -> None:
        super().__init__(message)


class CartInvalid(CommerceError):
    """One or more cart lines reference a missing or inactive variant.

    ``lines`` is a list of ``{"variant_id", "reason"}`` dicts; nothing is
    dropped from the cart on the caller's behalf.
    """

    code = "CART_INVALID"

    def __init__(self, lines: list[dict], message: str = "Cart contains items that can no longer be purchased") -> None:
        super().__init__(message, lines=lines)
        self.lines = lines


class VariantUnavailable(CartInvalid):
    """The variant does not exist or has been deactivated."""

    def __init__(self, variant_id: str, reason: str = "unavailable") -> None:
        super().__init__(
            lines=[{"variant_id": variant_id, "reason": reason}],
            message=f"Variant {variant_id} is not available",
        )
        self.variant_id = variant_id
        self.reason = reason


class InsufficientInventory(CommerceError):
    code = "INSUFFICIENT_INVENTORY"
    status_code = 409

    def __init__(self, variant_id: str, sku: str, requested: int, available: int) -> None:
        super().__init__(
            f"Insufficient inventory for {sku}: requested {requested}, available {available}",
            variant_id=variant_id,
            sku=sku,
            requested=requested,
            available=available,
        )
        self.variant_id = variant_id
        self.sku = sku
        self.requested = requested
        self.available = available


class InvalidAdjustment(CommerceError):
    code = "INVALID_ADJUSTMENT"


class SessionNotFound(CommerceError):
    code = "SESSION_NOT_FOUND"
    status_code = 404

    def __init__(self, session_ref: str) -> None:
        super().__init__(f"Checkout session {session_ref} not found or expired", session=session_ref)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderNotFound(CommerceError):
    code = "ORDER_NOT_FOUND"
    status_code = 404

    def __init__(self, order_ref: str) -> None:
        super().__init__(f"Order {order_ref} not found", order=order_ref)


class BuyerVerificationRequired(CommerceError):
    """A buyer looked up an order without saying who they are."""

    code = "EMAIL_REQUIRED"

    def __init__(self, message: str = "Email is required to look up guest orders") -> None:
        super().__init__(message)


class InvalidTransition(CommerceError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, current: str, requested: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Cannot transition order from {current} to {requested}",
            current=current,
            requested=requested,
        )
        self.current = current
        self.requested = requested


class CannotCancel(InvalidTransition):
    code = "CANNOT_CANCEL"

    def __init__(self, current: str) -> None:
        super().__init__(current, "cancelled", message=f"Cannot cancel an order that is {current}")


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
class SignatureInvalid(CommerceError):
    code = "SIGNATURE_INVALID"

    def __init__(self, message: str = "Invalid webhook signature") -> None:
        super().__init__(message)


class PaymentGatewayError(CommerceError):
    code = "PAYMENT_GATEWAY_ERROR"
    status_code = 502


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------
class LedgerContention(CommerceError):
    """A stock counter kept changing underneath a compare-and-swap loop."""

    code = "INVENTORY_BUSY"
    status_code = 503

    def __init__(self, variant_id: str, operation: str) -> None:
        super().__init__(
            f"Inventory for variant {variant_id} is busy, retry the {operation}",
            variant_id=variant_id,
            operation=operation,
        )


class SequenceContention(CommerceError):
    """The day's order number counter kept changing underneath its compare-and-swap loop."""

    code = "SEQUENCE_BUSY"
    status_code = 503

    def __init__(self, day: str) -> None:
        super().__init__(f"Could not allocate an order number for {day}", day=day)
