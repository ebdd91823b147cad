"""FastAPI routes for the buyer's cart."""

from fastapi import APIRouter, Depends, HTTPException
from protean.utils.globals import current_domain

from commerce.api.dependencies import buyer_identity
from commerce.api.schemas import (
    AddToCartRequest,
    CartResponse,
    MergeCartRequest,
    StatusResponse,
    UpdateCartLineRequest,
)
from commerce.cart.cart import BuyerIdentity, ShoppingCart
from commerce.cart.management import AddToCart, ClearCart, MergeGuestCart, RemoveFromCart, UpdateCartLine
from commerce.cart.validation import validate_cart

cart_router = APIRouter(prefix="/cart", tags=["cart"])


def _cart_response(identity: BuyerIdentity) -> CartResponse:
    cart = current_domain.repository_for(ShoppingCart).find_for(identity)
    if cart is None:
        return CartResponse()

    lines = sorted(cart.lines, key=lambda line: (line.added_at is None, line.added_at))
    return CartResponse(
        cart_id=str(cart.id),
        lines=[
            {
                "variant_id": str(line.variant_id),
                "product_id": str(line.product_id),
                "quantity": line.quantity,
                "unit_price": line.price_snapshot,
                "line_total": line.quantity * line.price_snapshot,
            }
            for line in lines
        ],
        item_count=cart.item_count,
        subtotal=cart.subtotal_snapshot,
        expires_at=cart.expires_at,
        issues=validate_cart(cart),
    )


@cart_router.get("", response_model=CartResponse)
async def get_cart(identity: BuyerIdentity = Depends(buyer_identity)) -> CartResponse:
    return _cart_response(identity)


@cart_router.post("/items", status_code=201, response_model=CartResponse)
async def add_cart_item(body: AddToCartRequest, identity: BuyerIdentity = Depends(buyer_identity)) -> CartResponse:
    command = AddToCart(
        customer_id=identity.customer_id,
        session_id=identity.session_id,
        variant_id=body.variant_id,
        quantity=body.quantity,
    )
    current_domain.process(command, asynchronous=False)
    return _cart_response(identity)


@cart_router.put("/items/{variant_id}", response_model=CartResponse)
async def update_cart_item(
    variant_id: str,
    body: UpdateCartLineRequest,
    identity: BuyerIdentity = Depends(buyer_identity),
) -> CartResponse:
    command = UpdateCartLine(
        customer_id=identity.customer_id,
        session_id=identity.session_id,
        variant_id=variant_id,
        quantity=body.quantity,
    )
    current_domain.process(command, asynchronous=False)
    return _cart_response(identity)


@cart_router.delete("/items/{variant_id}", response_model=CartResponse)
async def remove_cart_item(variant_id: str, identity: BuyerIdentity = Depends(buyer_identity)) -> CartResponse:
    command = RemoveFromCart(
        customer_id=identity.customer_id,
        session_id=identity.session_id,
        variant_id=variant_id,
    )
    current_domain.process(command, asynchronous=False)
    return _cart_response(identity)


@cart_router.delete("", response_model=StatusResponse)
async def clear_cart(identity: BuyerIdentity = Depends(buyer_identity)) -> StatusResponse:
    command = ClearCart(customer_id=identity.customer_id, session_id=identity.session_id)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="cleared")


@cart_router.post("/merge", response_model=CartResponse)
async def merge_guest_cart(body: MergeCartRequest, identity: BuyerIdentity = Depends(buyer_identity)) -> CartResponse:
    """Fold the guest session's cart into the signed-in customer's cart."""
    if identity.is_guest:
        raise HTTPException(status_code=400, detail="Merging requires X-Customer-Id")

    command = MergeGuestCart(customer_id=identity.customer_id, session_id=body.session_id)
    current_domain.process(command, asynchronous=False)
    return _cart_response(identity)
