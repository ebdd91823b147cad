"""Cart line validation against the live catalogue and ledger."""

from commerce.cart.cart import ShoppingCart
from commerce.catalogue.lookup import get_variant_with_product


def unpurchasable_lines(cart: ShoppingCart) -> list[dict]:
    """Lines whose variant (or product) is gone or inactive."""
    issues = []
    for line in cart.lines:
        item = get_variant_with_product(line.variant_id)
        if item is None:
            issues.append({"variant_id": str(line.variant_id), "reason": "not_found"})
        elif not item.is_purchasable:
            issues.append({"variant_id": str(line.variant_id), "reason": "inactive"})
    return issues


def validate_cart(cart: ShoppingCart) -> list[dict]:
    """Every problem a buyer should fix before checking out.

    Adds ``insufficient_stock`` issues, with the quantity currently
    available, to the unpurchasable lines.
    """
    issues = unpurchasable_lines(cart)
    flagged = {issue["variant_id"] for issue in issues}

    for line in cart.lines:
        if str(line.variant_id) in flagged:
            continue
        item = get_variant_with_product(line.variant_id)
        if item.variant.available < line.quantity:
            issues.append(
                {
                    "variant_id": str(line.variant_id),
                    "reason": "insufficient_stock",
                    "requested": line.quantity,
                    "available": max(item.variant.available, 0),
                }
            )
    return issues
