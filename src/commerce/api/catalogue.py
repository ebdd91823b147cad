"""FastAPI routes for merchants managing products, variants and stock."""

import json

from fastapi import APIRouter, Depends, HTTPException
from protean.utils.globals import current_domain

from commerce.api.dependencies import merchant_id
from commerce.api.schemas import (
    AddProductRequest,
    AddVariantRequest,
    ChangePriceRequest,
    AdjustStockRequest,
    LowStockThresholdRequest,
    ProductIdResponse,
    StatusResponse,
    StockLevelsResponse,
    VariantIdResponse,
)
from commerce.catalogue.product import Product
from commerce.catalogue.registration import AddProduct, ChangeProductPrice, DeactivateProduct
from commerce.inventory import get_ledger
from commerce.inventory.management import (
    AddVariant,
    AdjustVariantStock,
    DeactivateVariant,
    ReactivateVariant,
    SetLowStockThreshold,
)
from commerce.inventory.variant import Variant

catalogue_router = APIRouter(tags=["catalogue"])


def _owned_product(product_id: str, merchant: str) -> Product:
    products = current_domain.repository_for(Product)._dao.query.filter(id=product_id).all().items
    if not products or str(products[0].merchant_id) != merchant:
        raise HTTPException(status_code=404, detail=f"Product {product_id} not found")
    return products[0]


def _owned_variant(variant_id: str, merchant: str) -> Variant:
    variant = current_domain.repository_for(Variant).find(variant_id)
    if variant is None or str(variant.merchant_id) != merchant:
        raise HTTPException(status_code=404, detail=f"Variant {variant_id} not found")
    return variant


@catalogue_router.post("/products", status_code=201, response_model=ProductIdResponse)
async def add_product(body: AddProductRequest, merchant: str = Depends(merchant_id)) -> ProductIdResponse:
    command = AddProduct(merchant_id=merchant, name=body.name, base_price=body.base_price)
    result = current_domain.process(command, asynchronous=False)
    return ProductIdResponse(product_id=result)


@catalogue_router.post("/products/{product_id}/deactivate", response_model=StatusResponse)
async def deactivate_product(product_id: str, merchant: str = Depends(merchant_id)) -> StatusResponse:
    _owned_product(product_id, merchant)
    current_domain.process(DeactivateProduct(product_id=product_id), asynchronous=False)
    return StatusResponse(status="deactivated")


@catalogue_router.put("/products/{product_id}/price", response_model=StatusResponse)
async def change_product_price(
    product_id: str,
    body: ChangePriceRequest,
    merchant: str = Depends(merchant_id),
) -> StatusResponse:
    _owned_product(product_id, merchant)
    current_domain.process(ChangeProductPrice(product_id=product_id, base_price=body.base_price), asynchronous=False)
    return StatusResponse(status="updated")


@catalogue_router.post("/products/{product_id}/variants", status_code=201, response_model=VariantIdResponse)
async def add_variant(
    product_id: str,
    body: AddVariantRequest,
    merchant: str = Depends(merchant_id),
) -> VariantIdResponse:
    _owned_product(product_id, merchant)
    command = AddVariant(
        product_id=product_id,
        sku=body.sku,
        on_hand=body.on_hand,
        option_values=json.dumps(body.option_values),
        price=body.price,
        low_stock_threshold=body.low_stock_threshold,
    )
    result = current_domain.process(command, asynchronous=False)
    return VariantIdResponse(variant_id=result)


@catalogue_router.get("/variants/{variant_id}/stock", response_model=StockLevelsResponse)
async def get_stock(variant_id: str, merchant: str = Depends(merchant_id)) -> StockLevelsResponse:
    _owned_variant(variant_id, merchant)
    levels = get_ledger().levels(variant_id)
    return StockLevelsResponse(
        variant_id=levels.variant_id,
        sku=levels.sku,
        on_hand=levels.on_hand,
        reserved=levels.reserved,
        available=levels.available,
    )


@catalogue_router.post("/variants/{variant_id}/adjustments", response_model=StockLevelsResponse)
async def adjust_stock(
    variant_id: str,
    body: AdjustStockRequest,
    merchant: str = Depends(merchant_id),
) -> StockLevelsResponse:
    _owned_variant(variant_id, merchant)
    current_domain.process(
        AdjustVariantStock(variant_id=variant_id, delta=body.delta, reason=body.reason),
        asynchronous=False,
    )
    return await get_stock(variant_id, merchant)


@catalogue_router.put("/variants/{variant_id}/low-stock-threshold", response_model=StatusResponse)
async def set_low_stock_threshold(
    variant_id: str,
    body: LowStockThresholdRequest,
    merchant: str = Depends(merchant_id),
) -> StatusResponse:
    _owned_variant(variant_id, merchant)
    current_domain.process(SetLowStockThreshold(variant_id=variant_id, threshold=body.threshold), asynchronous=False)
    return StatusResponse(status="updated")


@catalogue_router.post("/variants/{variant_id}/deactivate", response_model=StatusResponse)
async def deactivate_variant(variant_id: str, merchant: str = Depends(merchant_id)) -> StatusResponse:
    _owned_variant(variant_id, merchant)
    current_domain.process(DeactivateVariant(variant_id=variant_id), asynchronous=False)
    return StatusResponse(status="deactivated")


@catalogue_router.post("/variants/{variant_id}/reactivate", response_model=StatusResponse)
async def reactivate_variant(variant_id: str, merchant: str = Depends(merchant_id)) -> StatusResponse:
    _owned_variant(variant_id, merchant)
    current_domain.process(ReactivateVariant(variant_id=variant_id), asynchronous=False)
    return StatusResponse(status="reactivated")
