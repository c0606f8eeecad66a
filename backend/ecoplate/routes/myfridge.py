"""
EcoPlate Backend — MyFridge Routes
===================================

    GET    /api/v1/myfridge/products
    POST   /api/v1/myfridge/products
    GET    /api/v1/myfridge/products/{id}
    PATCH  /api/v1/myfridge/products/{id}
    DELETE /api/v1/myfridge/products/{id}
    POST   /api/v1/myfridge/products/{id}/consume
    POST   /api/v1/myfridge/receipt/scan          (placeholder)
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ecoplate.auth import get_current_user
from ecoplate.database import get_db_session
from ecoplate.models.user import User
from ecoplate.schemas.common import ErrorResponse, MessageResponse
from ecoplate.schemas.product import (
    ConsumeRequest,
    ConsumeResponse,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    ReceiptScanResponse,
)
from ecoplate.services.product_service import product_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/myfridge", tags=["MyFridge"])

_NOT_FOUND = {404: {"description": "Product not found", "model": ErrorResponse}}


@router.get("/products", response_model=List[ProductResponse], summary="List fridge products")
async def list_products(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[ProductResponse]:
    products = await product_service.list_products(db, user.id)
    return [ProductResponse.model_validate(p) for p in products]


@router.post("/products", status_code=201, response_model=ProductResponse, summary="Add a product")
async def create_product(
    body: ProductCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ProductResponse:
    product = await product_service.create_product(db, user.id, body.to_model_fields())
    return ProductResponse.model_validate(product)


@router.get("/products/{product_id}", response_model=ProductResponse, responses=_NOT_FOUND)
async def get_product(
    product_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ProductResponse:
    product = await product_service.get_product(db, user.id, product_id)
    return ProductResponse.model_validate(product)


@router.patch(
    "/products/{product_id}",
    response_model=ProductResponse,
    responses=_NOT_FOUND,
    summary="Partially update a product",
)
async def update_product(
    product_id: int,
    body: ProductUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ProductResponse:
    changes = body.to_model_fields(exclude_unset=True)
    # name and quantity are NOT NULL columns
    for required in ("product_name", "quantity"):
        if changes.get(required, ...) is None:
            changes.pop(required)
    product = await product_service.update_product(db, user.id, product_id, changes)
    return ProductResponse.model_validate(product)


@router.delete("/products/{product_id}", response_model=MessageResponse, responses=_NOT_FOUND)
async def delete_product(
    product_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await product_service.delete_product(db, user.id, product_id)
    return MessageResponse(message="Product deleted")


@router.post(
    "/products/{product_id}/consume",
    response_model=ConsumeResponse,
    responses=_NOT_FOUND,
    summary="Log a product as consumed, wasted, shared or sold",
    description="Records the action, awards points and removes the product from the fridge.",
)
async def consume_product(
    product_id: int,
    body: ConsumeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ConsumeResponse:
    result = await product_service.consume_product(db, user.id, product_id, body.action)
    return ConsumeResponse(
        message=f"Product marked as {body.action}",
        points_awarded=result["amount"],
        new_total=result["new_total"],
        new_badges=result["new_badges"],
    )


@router.post("/receipt/scan", response_model=ReceiptScanResponse, summary="Scan a receipt (not yet available)")
async def scan_receipt(user: User = Depends(get_current_user)) -> ReceiptScanResponse:
    return ReceiptScanResponse(message="Receipt scanning is not yet implemented", products=[])
