"""
EcoPlate Backend — Maps Routes
===============================

Server-side proxy for Google Places so the API key never reaches clients.
"""

from fastapi import APIRouter, Depends

from ecoplate.auth import get_current_user
from ecoplate.models.user import User
from ecoplate.schemas.common import ErrorResponse
from ecoplate.schemas.maps import (
    AutocompleteRequest,
    AutocompleteResponse,
    PlaceDetailsRequest,
    PlaceDetailsResponse,
)
from ecoplate.services.maps_service import maps_service

router = APIRouter(prefix="/api/v1/maps", tags=["Maps"])

_UPSTREAM_ERRORS = {
    400: {"description": "Missing query or place id", "model": ErrorResponse},
    500: {"description": "Maps key not configured", "model": ErrorResponse},
    502: {"description": "Google Maps error or unreachable", "model": ErrorResponse},
}


@router.post("/autocomplete", response_model=AutocompleteResponse, responses=_UPSTREAM_ERRORS)
async def autocomplete(
    body: AutocompleteRequest,
    user: User = Depends(get_current_user),
) -> AutocompleteResponse:
    return AutocompleteResponse(predictions=await maps_service.autocomplete(body.query, body.country))


@router.post(
    "/place-details",
    response_model=PlaceDetailsResponse,
    responses={**_UPSTREAM_ERRORS, 404: {"description": "Place not found", "model": ErrorResponse}},
)
async def place_details(
    body: PlaceDetailsRequest,
    user: User = Depends(get_current_user),
) -> PlaceDetailsResponse:
    return PlaceDetailsResponse(**await maps_service.place_details(body.place_id))
