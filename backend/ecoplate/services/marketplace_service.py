"""
EcoPlate Backend — Marketplace Service
=======================================

What:  Surplus-food listings: CRUD, the reservation workflow and the
       nearby search.
How:   Listing status is a single linear field:

           active ──reserve──▶ reserved ──complete──▶ sold
             ▲                    │
             └─────unreserve──────┘
           active ─────────────complete──────────────▶ sold

       Any other transition is a 400. Completing a sale awards the seller
       "sold" points and credits the listing's CO2 to both parties.
Who:   /api/v1/marketplace routes.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ecoplate.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from ecoplate.models.marketplace import (
    LISTING_ACTIVE,
    LISTING_RESERVED,
    LISTING_SOLD,
    LISTING_STATUSES,
    MarketplaceListing,
)
from ecoplate.models.product import Product
from ecoplate.services.gamification_service import gamification_service
from ecoplate.services.user_points import ACTION_SOLD
from ecoplate.utils.dates import utcnow
from ecoplate.utils.distance import Coordinates, calculate_distance, parse_coordinates

logger = logging.getLogger(__name__)

# Fields a seller may change through update_listing
UPDATABLE_FIELDS = (
    "title",
    "description",
    "category",
    "quantity",
    "unit",
    "price",
    "original_price",
    "expiry_date",
    "pickup_location",
    "images",
)


class MarketplaceService:

    # ── Queries ───────────────────────────────────────────────────────────

    async def get_listing(self, db: AsyncSession, listing_id: int) -> MarketplaceListing:
        """Raises NotFoundError("Listing") when missing."""
        result = await db.execute(
            select(MarketplaceListing)
            .options(selectinload(MarketplaceListing.seller), selectinload(MarketplaceListing.buyer))
            .where(MarketplaceListing.id == listing_id)
            .execution_options(populate_existing=True)
        )
        listing = result.scalar_one_or_none()
        if listing is None:
            raise NotFoundError(resource="Listing", resource_id=listing_id)
        return listing

    async def list_listings(
        self,
        db: AsyncSession,
        status: Optional[str] = LISTING_ACTIVE,
        category: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """
        Newest-first page of listings.

        `search` matches title or description, case-insensitively.
        Returns {items, total, limit, offset}.
        """
        if status is not None and status not in LISTING_STATUSES:
            raise ValidationError(message=f"Invalid status: {status}", field="status")

        filters = []
        if status is not None:
            filters.append(MarketplaceListing.status == status)
        if category:
            filters.append(MarketplaceListing.category == category)
        if search:
            pattern = f"%{search.strip().lower()}%"
            filters.append(
                or_(
                    func.lower(MarketplaceListing.title).like(pattern),
                    func.lower(func.coalesce(MarketplaceListing.description, "")).like(pattern),
                )
            )

        total = (
            await db.execute(select(func.count(MarketplaceListing.id)).where(*filters))
        ).scalar_one()

        result = await db.execute(
            select(MarketplaceListing)
            .options(selectinload(MarketplaceListing.seller), selectinload(MarketplaceListing.buyer))
            .where(*filters)
            .order_by(desc(MarketplaceListing.created_at), desc(MarketplaceListing.id))
            .limit(limit)
            .offset(offset)
        )
        return {
            "items": list(result.scalars().all()),
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    async def list_my_listings(self, db: AsyncSession, seller_id: int) -> List[MarketplaceListing]:
        result = await db.execute(
            select(MarketplaceListing)
            .options(selectinload(MarketplaceListing.seller), selectinload(MarketplaceListing.buyer))
            .where(MarketplaceListing.seller_id == seller_id)
            .order_by(desc(MarketplaceListing.created_at), desc(MarketplaceListing.id))
        )
        return list(result.scalars().all())

    async def get_nearby_listings(
        self,
        db: AsyncSession,
        latitude: float,
        longitude: float,
        radius_km: float = 10.0,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        """
        Active listings within radius_km of the point, nearest first.

        Listings without a parseable pickup location are skipped. Each
        result is {"listing": MarketplaceListing, "distance_km": float}.
        """
        origin = Coordinates(latitude=latitude, longitude=longitude)
        result = await db.execute(
            select(MarketplaceListing)
            .options(selectinload(MarketplaceListing.seller), selectinload(MarketplaceListing.buyer))
            .where(
                MarketplaceListing.status == LISTING_ACTIVE,
                MarketplaceListing.pickup_location.is_not(None),
            )
        )

        nearby = []
        for listing in result.scalars().all():
            coords = parse_coordinates(listing.pickup_location)
            if coords is None:
                continue
            distance = round(calculate_distance(origin, coords), 2)
            if distance <= radius_km:
                nearby.append({"listing": listing, "distance_km": distance})

        nearby.sort(key=lambda entry: entry["distance_km"])
        return nearby[:limit]

    # ── Mutations ─────────────────────────────────────────────────────────

    async def create_listing(self, db: AsyncSession, seller_id: int, data: Dict[str, Any]) -> MarketplaceListing:
        """
        Create an active listing.

        When product_id is given it must be one of the seller's products; the
        listing's CO2 saving then defaults to the product's per-unit emission
        times the listing quantity.
        """
        product_id = data.get("product_id")
        product: Optional[Product] = None
        if product_id is not None:
            product = await db.get(Product, product_id)
            if product is None or product.user_id != seller_id:
                raise NotFoundError(resource="Product", resource_id=product_id)

        quantity = data.get("quantity") or (product.quantity if product else 1.0)
        co2_saved = data.get("co2_saved")
        if co2_saved is None:
            co2_saved = (product.co2_emission or 0.0) * quantity if product else 0.0

        listing = MarketplaceListing(
            seller_id=seller_id,
            product_id=product_id,
            title=data["title"],
            description=data.get("description"),
            category=data.get("category") or (product.category if product else None),
            quantity=quantity,
            unit=data.get("unit") or (product.unit if product else None),
            price=data.get("price"),
            original_price=data.get("original_price"),
            expiry_date=data.get("expiry_date"),
            pickup_location=data.get("pickup_location"),
            images=list(data.get("images") or []),
            status=LISTING_ACTIVE,
            co2_saved=round(co2_saved, 3),
        )
        db.add(listing)
        await db.flush()
        logger.info("Listing %d created by user %d", listing.id, seller_id)
        return await self.get_listing(db, listing.id)

    async def update_listing(
        self,
        db: AsyncSession,
        listing_id: int,
        seller_id: int,
        changes: Dict[str, Any],
    ) -> MarketplaceListing:
        listing = await self.get_listing(db, listing_id)
        self._require_seller(listing, seller_id)
        if listing.status == LISTING_SOLD:
            raise ValidationError(message="Cannot update a sold listing", field="status")

        for field, value in changes.items():
            if field in UPDATABLE_FIELDS:
                setattr(listing, field, list(value) if field == "images" and value is not None else value)

        await db.flush()
        logger.info("Listing %d updated (%s)", listing_id, ", ".join(sorted(changes)))
        return listing

    async def delete_listing(self, db: AsyncSession, listing_id: int, seller_id: int) -> List[str]:
        """
        Delete the listing row and return its image URLs.

        The files are left on disk: the caller removes them once the
        transaction has committed, so a rollback never points a surviving
        listing at missing images.
        """
        listing = await self.get_listing(db, listing_id)
        self._require_seller(listing, seller_id)

        images = list(listing.images or [])
        await db.delete(listing)
        await db.flush()
        logger.info("Listing %d deleted", listing_id)
        return images

    async def reserve_listing(self, db: AsyncSession, listing_id: int, buyer_id: int) -> MarketplaceListing:
        listing = await self.get_listing(db, listing_id)
        if listing.seller_id == buyer_id:
            raise ValidationError(message="Cannot reserve your own listing")
        self._require_status(listing, (LISTING_ACTIVE,), "reserve")

        listing.status = LISTING_RESERVED
        listing.buyer_id = buyer_id
        await db.flush()
        logger.info("Listing %d reserved by user %d", listing_id, buyer_id)
        return await self.get_listing(db, listing.id)

    async def unreserve_listing(self, db: AsyncSession, listing_id: int, user_id: int) -> MarketplaceListing:
        listing = await self.get_listing(db, listing_id)
        if user_id not in (listing.seller_id, listing.buyer_id):
            raise PermissionDeniedError(message="Only the buyer or seller can cancel a reservation")
        self._require_status(listing, (LISTING_RESERVED,), "unreserve")

        listing.status = LISTING_ACTIVE
        listing.buyer_id = None
        await db.flush()
        logger.info("Listing %d reservation cancelled by user %d", listing_id, user_id)
        return await self.get_listing(db, listing.id)

    async def complete_listing(
        self,
        db: AsyncSession,
        listing_id: int,
        seller_id: int,
        buyer_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Mark a listing sold and award the seller.

        Returns {"listing": MarketplaceListing, "points": award_points result}.
        """
        listing = await self.get_listing(db, listing_id)
        self._require_seller(listing, seller_id)
        self._require_status(listing, (LISTING_ACTIVE, LISTING_RESERVED), "complete")

        final_buyer = buyer_id if buyer_id is not None else listing.buyer_id
        if final_buyer == seller_id:
            raise ValidationError(message="Seller cannot be the buyer", field="buyer_id")

        listing.status = LISTING_SOLD
        listing.buyer_id = final_buyer
        listing.completed_at = utcnow()
        await db.flush()

        points = await gamification_service.award_points(
            db,
            seller_id,
            ACTION_SOLD,
            product_id=listing.product_id,
            quantity=listing.quantity or 1,
            unit=listing.unit,
            listing_data={"co2_saved": listing.co2_saved or 0.0, "buyer_id": final_buyer},
        )
        logger.info("Listing %d sold by user %d to %s", listing_id, seller_id, final_buyer)
        return {"listing": await self.get_listing(db, listing.id), "points": points}

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    def _require_seller(listing: MarketplaceListing, user_id: int) -> None:
        if listing.seller_id != user_id:
            raise PermissionDeniedError(message="Only the seller can modify this listing")

    @staticmethod
    def _require_status(listing: MarketplaceListing, allowed: tuple, action: str) -> None:
        if listing.status not in allowed:
            raise ValidationError(
                message=f"Cannot {action} a listing that is {listing.status}",
                field="status",
                context={"status": listing.status},
            )


marketplace_service = MarketplaceService()
