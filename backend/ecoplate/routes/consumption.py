"""
EcoPlate Backend — Consumption Routes
======================================

Photo-assisted meal logging:

    POST /api/v1/consumption/identify             ingredients seen in a photo
    POST /api/v1/consumption/confirm-ingredients  log consumption, open pending record
    POST /api/v1/consumption/analyze-waste        waste estimate from a photo (read-only)
    POST /api/v1/consumption/confirm-waste        log waste, close pending record
    GET  /api/v1/consumption/pending              records still waiting for a waste photo
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ecoplate.auth import get_current_user
from ecoplate.database import get_db_session
from ecoplate.models.product import Product
from ecoplate.models.user import User
from ecoplate.schemas.common import ErrorResponse
from ecoplate.schemas.consumption import (
    AnalyzeWasteRequest,
    AnalyzeWasteResponse,
    ConfirmIngredientsRequest,
    ConfirmIngredientsResponse,
    ConfirmWasteRequest,
    ConfirmWasteResponse,
    IdentifyRequest,
    IdentifyResponse,
    PendingRecordListResponse,
    PendingRecordResponse,
)
from ecoplate.services.consumption_service import calculate_waste_metrics, consumption_service
from ecoplate.services.gemini_service import gemini_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/consumption", tags=["Consumption"])

_VISION_ERRORS = {
    400: {"description": "Missing or invalid image", "model": ErrorResponse},
    503: {"description": "Food recognition unavailable", "model": ErrorResponse},
}


@router.post(
    "/identify",
    response_model=IdentifyResponse,
    responses=_VISION_ERRORS,
    summary="Identify ingredients in a photo",
    description="Matches what is visible in the photo against the user's unconsumed fridge items.",
)
async def identify_ingredients(
    body: IdentifyRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> IdentifyResponse:
    result = await db.execute(
        select(Product).where(Product.user_id == user.id, Product.is_consumed.is_(False))
    )
    fridge_items = [
        {
            "product_id": p.id,
            "product_name": p.product_name,
            "quantity": p.quantity,
            "unit": p.unit,
            "category": p.category,
            "unit_price": p.unit_price or 0.0,
            "co2_emission": p.co2_emission or 0.0,
        }
        for p in result.scalars().all()
    ]

    ingredients = await gemini_service.identify_ingredients(body.image_base64, fridge_items)
    logger.info("Identified %d ingredients for user %d", len(ingredients), user.id)
    return IdentifyResponse(ingredients=ingredients)


@router.post(
    "/confirm-ingredients",
    response_model=ConfirmIngredientsResponse,
    summary="Log the ingredients used in a meal",
)
async def confirm_ingredients(
    body: ConfirmIngredientsRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ConfirmIngredientsResponse:
    result = await consumption_service.confirm_ingredients(db, user.id, body.ingredients)
    pending = await consumption_service.create_pending_record(db, user.id, body.raw_photo, body.ingredients)
    return ConfirmIngredientsResponse(**result, pending_id=pending.id)


@router.post(
    "/analyze-waste",
    response_model=AnalyzeWasteResponse,
    responses=_VISION_ERRORS,
    summary="Estimate leftovers from a photo",
    description="Nothing is recorded; send the reviewed result to /confirm-waste.",
)
async def analyze_waste(
    body: AnalyzeWasteRequest,
    user: User = Depends(get_current_user),
) -> AnalyzeWasteResponse:
    ingredients = [i.model_dump() for i in body.ingredients]
    analysis = await gemini_service.analyze_waste(body.image_base64, ingredients)
    metrics = calculate_waste_metrics(body.ingredients, analysis["waste_items"], body.disposal_method)
    return AnalyzeWasteResponse(metrics=metrics, waste_analysis=analysis)


@router.post(
    "/confirm-waste",
    response_model=ConfirmWasteResponse,
    responses={404: {"description": "Pending record not found", "model": ErrorResponse}},
    summary="Log the food that was wasted",
)
async def confirm_waste(
    body: ConfirmWasteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ConfirmWasteResponse:
    result = await consumption_service.confirm_waste(
        db,
        user.id,
        body.ingredients,
        body.waste_items,
        disposal_method=body.disposal_method,
        pending_id=body.pending_id,
    )
    return ConfirmWasteResponse(**result)


@router.get("/pending", response_model=PendingRecordListResponse, summary="Meals waiting for a waste photo")
async def list_pending(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> PendingRecordListResponse:
    records = await consumption_service.list_pending_records(db, user.id)
    return PendingRecordListResponse(records=[PendingRecordResponse.model_validate(r) for r in records])
