"""Cart management — commands and handler.

Handles line changes for a buyer identity, guest cart merging at login,
explicit clears, and the purge of carts left untouched past their TTL.
Adding to a cart reads availability from the inventory ledger but never
reserves anything; reservation only happens at checkout.
"""

from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from commerce.cart.cart import BuyerIdentity, ShoppingCart
from commerce.catalogue.lookup import get_variant_with_product
from commerce.domain import commerce
from commerce.errors import InsufficientInventory, VariantUnavailable
from commerce.inventory import get_ledger

logger = structlog.get_logger(__name__)

PURGE_BATCH_SIZE = 500


@commerce.command(part_of="ShoppingCart")
class AddToCart:
    customer_id = Identifier()
    session_id = String(max_length=255)
    variant_id = Identifier(required=True)
    quantity = Integer(default=1)


@commerce.command(part_of="ShoppingCart")
class UpdateCartLine:
    customer_id = Identifier()
    session_id = String(max_length=255)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=0)


@commerce.command(part_of="ShoppingCart")
class RemoveFromCart:
    customer_id = Identifier()
    session_id = String(max_length=255)
    variant_id = Identifier(required=True)


@commerce.command(part_of="ShoppingCart")
class ClearCart:
    customer_id = Identifier()
    session_id = String(max_length=255)


@commerce.command(part_of="ShoppingCart")
class MergeGuestCart:
    """Fold a guest session's cart into a customer's cart after login."""

    customer_id = Identifier(required=True)
    session_id = String(required=True, max_length=255)


@commerce.command(part_of="ShoppingCart")
class PurgeExpiredCarts:
    older_than_days = Integer(default=7)


def _identity(command) -> BuyerIdentity:
    return BuyerIdentity(
        customer_id=str(command.customer_id) if command.customer_id else None,
        session_id=command.session_id or None,
    )


def _live_cart(repo, identity: BuyerIdentity) -> ShoppingCart | None:
    """The identity's cart; an expired one is deleted and treated as absent."""
    cart = repo.find_for(identity, include_expired=True)
    if cart is not None and cart.is_expired():
        repo.discard(cart)
        return None
    return cart


@commerce.command_handler(part_of=ShoppingCart)
class CartManagementHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        identity = _identity(command)
        item = get_variant_with_product(command.variant_id)
        if item is None:
            raise VariantUnavailable(str(command.variant_id), reason="not_found")
        if not item.is_purchasable:
            raise VariantUnavailable(str(command.variant_id), reason="inactive")

        repo = current_domain.repository_for(ShoppingCart)
        cart = _live_cart(repo, identity) or ShoppingCart.create(identity)

        line = cart.line_for(command.variant_id)
        requested = (line.quantity if line else 0) + command.quantity
        available = get_ledger().available(command.variant_id) or 0
        if requested > available:
            raise InsufficientInventory(
                variant_id=str(command.variant_id),
                sku=item.variant.sku,
                requested=requested,
                available=available,
            )

        cart.add_line(
            variant_id=command.variant_id,
            product_id=item.variant.product_id,
            quantity=command.quantity,
            unit_price=item.unit_price,
        )
        repo.add(cart)
        return str(cart.id)

    @handle(UpdateCartLine)
    def update_cart_line(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = _require_cart(repo, _identity(command))

        if command.quantity > 0:
            available = get_ledger().available(command.variant_id)
            if available is None:
                raise VariantUnavailable(str(command.variant_id), reason="inactive")
            if command.quantity > available:
                item = get_variant_with_product(command.variant_id)
                raise InsufficientInventory(
                    variant_id=str(command.variant_id),
                    sku=item.variant.sku if item else "",
                    requested=command.quantity,
                    available=available,
                )

        cart.set_quantity(command.variant_id, command.quantity)
        repo.add(cart)
        return str(cart.id)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = _require_cart(repo, _identity(command))
        cart.remove_line(command.variant_id)
        repo.add(cart)
        return str(cart.id)

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.find_for(_identity(command), include_expired=True)
        if cart is not None:
            repo.discard(cart)

    @handle(MergeGuestCart)
    def merge_guest_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        guest_cart = _live_cart(repo, BuyerIdentity(session_id=command.session_id))
        customer_identity = BuyerIdentity(customer_id=str(command.customer_id))
        cart = _live_cart(repo, customer_identity)

        if guest_cart is None or not guest_cart.lines:
            return str(cart.id) if cart else None

        cart = cart or ShoppingCart.create(customer_identity)
        ledger = get_ledger()

        for guest_line in guest_cart.lines:
            available = ledger.available(guest_line.variant_id)
            if available is None:
                logger.info("Skipping unavailable variant in guest cart", variant_id=str(guest_line.variant_id))
                continue

            existing = cart.line_for(guest_line.variant_id)
            room = available - (existing.quantity if existing else 0)
            quantity = min(guest_line.quantity, room)
            if quantity < guest_line.quantity:
                logger.info(
                    "Clamped merged cart line to available stock",
                    variant_id=str(guest_line.variant_id),
                    requested=guest_line.quantity,
                    merged=max(quantity, 0),
                )
            cart.merge_line(
                variant_id=guest_line.variant_id,
                product_id=guest_line.product_id,
                quantity=quantity,
                unit_price=guest_line.price_snapshot,
            )

        repo.add(cart)
        repo.discard(guest_cart)
        logger.info("Guest cart merged", customer_id=str(command.customer_id), cart_id=str(cart.id))
        return str(cart.id)

    @handle(PurgeExpiredCarts)
    def purge_expired_carts(self, command):
        days = command.older_than_days if command.older_than_days is not None else 7
        days = min(max(days, 1), 365)
        cutoff = datetime.now(UTC) - timedelta(days=days)
        repo = current_domain.repository_for(ShoppingCart)

        stale = repo.find_stale(cutoff, limit=PURGE_BATCH_SIZE)
        for cart in stale:
            repo.discard(cart)

        logger.info("Stale carts purged", deleted=len(stale), older_than_days=days)
        return len(stale)


def _require_cart(repo, identity: BuyerIdentity) -> ShoppingCart:
    cart = _live_cart(repo, identity)
    if cart is None:
        raise ObjectNotFoundError(f"No cart for {identity}")
    return cart
