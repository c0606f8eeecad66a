"""
EcoPlate Backend — Marketplace Routes
======================================

    GET    /api/v1/marketplace/listings                 active listings (filterable)
    POST   /api/v1/marketplace/listings
    GET    /api/v1/marketplace/listings/nearby?lat&lng&radius
    GET    /api/v1/marketplace/my-listings
    GET    /api/v1/marketplace/listings/{id}
    PATCH  /api/v1/marketplace/listings/{id}            seller only
    DELETE /api/v1/marketplace/listings/{id}            seller only
    POST   /api/v1/marketplace/listings/{id}/reserve
    POST   /api/v1/marketplace/listings/{id}/unreserve
    POST   /api/v1/marketplace/listings/{id}/complete   seller only

/listings/nearby is declared before /listings/{listing_id} so "nearby" is
never parsed as an id.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ecoplate.auth import get_current_user
from ecoplate.database import get_db_session
from ecoplate.models.user import User
from ecoplate.schemas.common import ErrorResponse, MessageResponse
from ecoplate.schemas.marketplace import (
    CompleteRequest,
    CompleteResponse,
    ListingCreate,
    ListingListResponse,
    ListingResponse,
    ListingUpdate,
    NearbyListingsResponse,
    ReserveResponse,
)
from ecoplate.services.image_upload_service import image_upload_service
from ecoplate.services.marketplace_service import marketplace_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/marketplace", tags=["Marketplace"])

_LISTING_ERRORS = {
    400: {"description": "Invalid status transition", "model": ErrorResponse},
    403: {"description": "Not the seller", "model": ErrorResponse},
    404: {"description": "Listing not found", "model": ErrorResponse},
}


@router.get("/listings", response_model=ListingListResponse, summary="Browse listings")
async def list_listings(
    status: Optional[str] = Query(default="active", description="active, reserved or sold"),
    category: Optional[str] = None,
    search: Optional[str] = Query(default=None, max_length=200),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ListingListResponse:
    page = await marketplace_service.list_listings(
        db, status=status, category=category, search=search, limit=limit, offset=offset
    )
    return ListingListResponse(
        listings=[ListingResponse.model_validate(item) for item in page["items"]],
        total=page["total"],
        limit=page["limit"],
        offset=page["offset"],
    )


@router.post("/listings", status_code=201, response_model=ListingResponse, summary="Create a listing")
async def create_listing(
    body: ListingCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ListingResponse:
    listing = await marketplace_service.create_listing(db, user.id, body.model_dump())
    return ListingResponse.model_validate(listing)


@router.get(
    "/listings/nearby",
    response_model=NearbyListingsResponse,
    summary="Active listings near a point",
    description="Only listings whose pickup location carries coordinates are considered.",
)
async def nearby_listings(
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    radius: float = Query(default=10.0, gt=0, le=100, description="Search radius in km"),
    limit: int = Query(default=50, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> NearbyListingsResponse:
    nearby = await marketplace_service.get_nearby_listings(db, lat, lng, radius_km=radius, limit=limit)
    listings = [
        ListingResponse.model_validate(entry["listing"]).model_copy(update={"distance_km": entry["distance_km"]})
        for entry in nearby
    ]
    return NearbyListingsResponse(listings=listings, count=len(listings))


@router.get("/my-listings", response_model=List[ListingResponse], summary="Listings created by the current user")
async def my_listings(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[ListingResponse]:
    listings = await marketplace_service.list_my_listings(db, user.id)
    return [ListingResponse.model_validate(listing) for listing in listings]


@router.get("/listings/{listing_id}", response_model=ListingResponse, responses=_LISTING_ERRORS)
async def get_listing(
    listing_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ListingResponse:
    return ListingResponse.model_validate(await marketplace_service.get_listing(db, listing_id))


@router.patch("/listings/{listing_id}", response_model=ListingResponse, responses=_LISTING_ERRORS)
async def update_listing(
    listing_id: int,
    body: ListingUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ListingResponse:
    changes = body.model_dump(exclude_unset=True)
    if changes.get("title", ...) is None:
        changes.pop("title")
    listing = await marketplace_service.update_listing(db, listing_id, user.id, changes)
    return ListingResponse.model_validate(listing)


@router.delete("/listings/{listing_id}", response_model=MessageResponse, responses=_LISTING_ERRORS)
async def delete_listing(
    listing_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    images = await marketplace_service.delete_listing(db, listing_id, user.id)
    # Background tasks run after the session dependency has committed
    background_tasks.add_task(image_upload_service.delete_images, images)
    return MessageResponse(message="Listing deleted")


@router.post("/listings/{listing_id}/reserve", response_model=ReserveResponse, responses=_LISTING_ERRORS)
async def reserve_listing(
    listing_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ReserveResponse:
    listing = await marketplace_service.reserve_listing(db, listing_id, user.id)
    return ReserveResponse(message="Listing reserved", listing=ListingResponse.model_validate(listing))


@router.post("/listings/{listing_id}/unreserve", response_model=ReserveResponse, responses=_LISTING_ERRORS)
async def unreserve_listing(
    listing_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ReserveResponse:
    listing = await marketplace_service.unreserve_listing(db, listing_id, user.id)
    return ReserveResponse(message="Reservation cancelled", listing=ListingResponse.model_validate(listing))


@router.post(
    "/listings/{listing_id}/complete",
    response_model=CompleteResponse,
    responses=_LISTING_ERRORS,
    summary="Mark a listing as sold",
    description="Awards the seller points and credits the listing's CO2 saving to seller and buyer.",
)
async def complete_listing(
    listing_id: int,
    body: Optional[CompleteRequest] = Body(default=None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> CompleteResponse:
    buyer_id = body.buyer_id if body is not None else None
    result = await marketplace_service.complete_listing(db, listing_id, user.id, buyer_id=buyer_id)
    points = result["points"]
    return CompleteResponse(
        message="Listing marked as sold",
        listing=ListingResponse.model_validate(result["listing"]),
        points_awarded=points["amount"],
        new_total=points["new_total"],
        co2_saved=points["co2_saved"],
        new_badges=points["new_badges"],
    )
