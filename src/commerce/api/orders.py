"""FastAPI routes for merchants working through their orders, plus the buyer's own order lookup."""

from fastapi import APIRouter, Depends, Header, Query
from protean.utils.globals import current_domain

from commerce.api.dependencies import merchant_id
from commerce.api.schemas import (
    CancelOrderRequest,
    OrderListResponse,
    OrderResponse,
    OrderStatusLiteral,
    ShipOrderRequest,
    UpdateOrderNotesRequest,
    UpdateOrderStatusRequest,
)
from commerce.order.lifecycle import (
    CancelOrder,
    DeliverOrder,
    MarkOrderProcessing,
    ShipOrder,
    UpdateOrderNotes,
    UpdateOrderStatus,
)
from commerce.order.order import Order
from commerce.order.queries import get_by_number, get_order, list_orders, lookup_for_buyer, order_status_summary

order_router = APIRouter(prefix="/orders", tags=["orders"])


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        status=order.status,
        payment_status=order.payment_status,
        merchant_id=str(order.merchant_id),
        customer_id=str(order.customer_id) if order.customer_id else None,
        buyer_email=order.buyer_email,
        buyer_name=order.buyer_name,
        items=[
            {
                "variant_id": str(item.variant_id),
                "product_id": str(item.product_id),
                "sku": item.sku,
                "product_name": item.product_name,
                "variant_name": item.variant_name,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "total_price": item.total_price,
            }
            for item in order.ordered_items
        ],
        shipping_address=order.shipping_address.to_dict() if order.shipping_address else None,
        subtotal=order.subtotal,
        shipping_cost=order.shipping_cost,
        tax_amount=order.tax_amount,
        total=order.total,
        currency=order.currency,
        tracking_number=order.tracking_number,
        tracking_carrier=order.tracking_carrier,
        notes=order.notes,
        paid_at=order.paid_at,
        processed_at=order.processed_at,
        shipped_at=order.shipped_at,
        delivered_at=order.delivered_at,
        cancelled_at=order.cancelled_at,
        created_at=order.created_at,
    )


def _process_and_reload(command, order_id: str, merchant: str) -> OrderResponse:
    current_domain.process(command, asynchronous=False)
    return _order_response(get_order(order_id, merchant_id=merchant))


@order_router.get("", response_model=OrderListResponse)
async def list_merchant_orders(
    merchant: str = Depends(merchant_id),
    status: OrderStatusLiteral | None = None,
    customer_email: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> OrderListResponse:
    result = list_orders(merchant, status=status, customer_email=customer_email, page=page, limit=limit)
    return OrderListResponse(
        orders=[_order_response(order) for order in result.orders],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


@order_router.get("/summary", response_model=dict[str, int])
async def order_summary(merchant: str = Depends(merchant_id)) -> dict[str, int]:
    return order_status_summary(merchant)


@order_router.get("/lookup/{order_number}", response_model=OrderResponse, response_model_exclude={"notes"})
async def lookup_own_order(
    order_number: str,
    email: str | None = Query(default=None),
    x_customer_id: str | None = Header(default=None),
) -> OrderResponse:
    """Buyer-facing lookup; needs the signed-in customer's id or the order's e-mail."""
    return _order_response(lookup_for_buyer(order_number, customer_id=x_customer_id, email=email))


@order_router.get("/by-number/{order_number}", response_model=OrderResponse)
async def get_order_by_number(order_number: str, merchant: str = Depends(merchant_id)) -> OrderResponse:
    return _order_response(get_by_number(order_number, merchant_id=merchant))


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_merchant_order(order_id: str, merchant: str = Depends(merchant_id)) -> OrderResponse:
    return _order_response(get_order(order_id, merchant_id=merchant))


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    merchant: str = Depends(merchant_id),
) -> OrderResponse:
    command = UpdateOrderStatus(
        order_id=order_id,
        merchant_id=merchant,
        status=body.status,
        tracking_number=body.tracking_number,
        tracking_carrier=body.tracking_carrier,
        reason=body.reason,
    )
    return _process_and_reload(command, order_id, merchant)


@order_router.post("/{order_id}/processing", response_model=OrderResponse)
async def mark_processing(order_id: str, merchant: str = Depends(merchant_id)) -> OrderResponse:
    return _process_and_reload(MarkOrderProcessing(order_id=order_id, merchant_id=merchant), order_id, merchant)


@order_router.post("/{order_id}/ship", response_model=OrderResponse)
async def ship_order(order_id: str, body: ShipOrderRequest, merchant: str = Depends(merchant_id)) -> OrderResponse:
    command = ShipOrder(
        order_id=order_id,
        merchant_id=merchant,
        tracking_number=body.tracking_number,
        tracking_carrier=body.tracking_carrier,
    )
    return _process_and_reload(command, order_id, merchant)


@order_router.post("/{order_id}/deliver", response_model=OrderResponse)
async def deliver_order(order_id: str, merchant: str = Depends(merchant_id)) -> OrderResponse:
    return _process_and_reload(DeliverOrder(order_id=order_id, merchant_id=merchant), order_id, merchant)


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest, merchant: str = Depends(merchant_id)) -> OrderResponse:
    command = CancelOrder(order_id=order_id, merchant_id=merchant, reason=body.reason)
    return _process_and_reload(command, order_id, merchant)


@order_router.put("/{order_id}/notes", response_model=OrderResponse)
async def update_order_notes(
    order_id: str,
    body: UpdateOrderNotesRequest,
    merchant: str = Depends(merchant_id),
) -> OrderResponse:
    command = UpdateOrderNotes(order_id=order_id, merchant_id=merchant, notes=body.notes)
    return _process_and_reload(command, order_id, merchant)
