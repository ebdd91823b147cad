"""Request-scoped identities taken from headers set by the upstream auth layer."""

from fastapi import Header, HTTPException

from commerce.cart.cart import BuyerIdentity


def buyer_identity(
    x_customer_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> BuyerIdentity:
    """A signed-in customer wins over the storefront session."""
    if x_customer_id:
        return BuyerIdentity(customer_id=x_customer_id)
    if x_session_id:
        return BuyerIdentity(session_id=x_session_id)
    raise HTTPException(status_code=400, detail="X-Customer-Id or X-Session-Id header is required")


def merchant_id(x_merchant_id: str | None = Header(default=None)) -> str:
    if not x_merchant_id:
        raise HTTPException(status_code=401, detail="X-Merchant-Id header is required")
    return x_merchant_id
