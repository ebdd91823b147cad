"""Repository for the ShoppingCart aggregate."""

from datetime import datetime

from commerce.cart.cart import BuyerIdentity, ShoppingCart
from commerce.domain import commerce


@commerce.repository(part_of=ShoppingCart)
class CartRepository:
    def find_for(self, identity: BuyerIdentity, include_expired: bool = False) -> ShoppingCart | None:
        """The identity's cart. An expired cart counts as absent unless asked for."""
        if identity.customer_id:
            carts = self._dao.query.filter(customer_id=str(identity.customer_id)).all().items
        else:
            carts = self._dao.query.filter(session_id=identity.session_id).all().items

        cart = carts[0] if carts else None
        if cart is not None and not include_expired and cart.is_expired():
            return None
        return cart

    def find_stale(self, cutoff: datetime, limit: int = 100) -> list[ShoppingCart]:
        """Carts not touched since ``cutoff``."""
        return self._dao.query.filter(updated_at__lt=cutoff).order_by("updated_at").limit(limit).all().items

    def discard(self, cart: ShoppingCart) -> None:
        """Delete the cart together with its lines."""
        if cart.lines:
            cart.clear()
            self.add(cart)
        self._dao.delete(cart)
