"""
EcoPlate Backend — Marketplace Service Tests
=============================================

Listing CRUD, the active → reserved → sold workflow and the nearby search.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from ecoplate.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from ecoplate.models.gamification import UserPoints
from ecoplate.services.marketplace_service import marketplace_service

MARINA_BAY = "10 Bayfront Ave|1.2834,103.8607"
ORCHARD = "Orchard Rd|1.3048,103.8318"
CHANGI = "Changi Airport|1.3644,103.9915"


class TestListingCrud:

    @pytest.mark.asyncio
    async def test_create_from_product_defaults(self, db_session, make_user, make_product):
        seller = await make_user("seller")
        product = await make_product(seller, "Bread", quantity=2.0, category="bakery", unit="loaf", co2_emission=0.8)

        listing = await marketplace_service.create_listing(
            db_session, seller.id, {"title": "Fresh bread", "product_id": product.id}
        )

        assert listing.status == "active"
        assert listing.quantity == 2.0
        assert listing.category == "bakery"
        assert listing.unit == "loaf"
        assert listing.co2_saved == pytest.approx(1.6)
        assert listing.seller.name == "Seller"
        assert listing.images == []

    @pytest.mark.asyncio
    async def test_create_with_foreign_product(self, db_session, make_user, make_product):
        seller = await make_user("seller")
        other = await make_user("other")
        product = await make_product(other)

        with pytest.raises(NotFoundError):
            await marketplace_service.create_listing(
                db_session, seller.id, {"title": "Not mine", "product_id": product.id}
            )

    @pytest.mark.asyncio
    async def test_get_missing_listing(self, db_session):
        with pytest.raises(NotFoundError, match="Listing not found"):
            await marketplace_service.get_listing(db_session, 12345)

    @pytest.mark.asyncio
    async def test_update_requires_seller(self, db_session, make_user):
        seller = await make_user("seller")
        stranger = await make_user("stranger")
        listing = await marketplace_service.create_listing(db_session, seller.id, {"title": "Apples"})

        with pytest.raises(PermissionDeniedError):
            await marketplace_service.update_listing(db_session, listing.id, stranger.id, {"price": 1.0})

        updated = await marketplace_service.update_listing(
            db_session, listing.id, seller.id, {"price": 1.5, "status": "sold"}
        )
        assert updated.price == 1.5
        # status is not an updatable field
        assert updated.status == "active"

    @pytest.mark.asyncio
    async def test_delete_returns_images_without_touching_files(self, db_session, make_user):
        seller = await make_user("seller")
        listing = await marketplace_service.create_listing(
            db_session, seller.id, {"title": "Apples", "images": ["/uploads/marketplace/a.jpg"]}
        )

        with patch(
            "ecoplate.services.image_upload_service.image_upload_service.delete_images",
            AsyncMock(return_value=1),
        ) as mock_delete:
            images = await marketplace_service.delete_listing(db_session, listing.id, seller.id)

        assert images == ["/uploads/marketplace/a.jpg"]
        mock_delete.assert_not_awaited()
        with pytest.raises(NotFoundError):
            await marketplace_service.get_listing(db_session, listing.id)

    @pytest.mark.asyncio
    async def test_list_filters_and_paging(self, db_session, make_user):
        seller = await make_user("seller")
        await marketplace_service.create_listing(
            db_session, seller.id, {"title": "Sourdough loaf", "category": "bakery"}
        )
        await marketplace_service.create_listing(
            db_session, seller.id, {"title": "Apples", "description": "Crunchy and SWEET", "category": "produce"}
        )
        await marketplace_service.create_listing(db_session, seller.id, {"title": "Pears", "category": "produce"})

        produce = await marketplace_service.list_listings(db_session, category="produce")
        assert produce["total"] == 2

        sweet = await marketplace_service.list_listings(db_session, search="sweet")
        assert [l.title for l in sweet["items"]] == ["Apples"]

        page = await marketplace_service.list_listings(db_session, limit=1, offset=1)
        assert page["total"] == 3
        assert len(page["items"]) == 1

        with pytest.raises(ValidationError):
            await marketplace_service.list_listings(db_session, status="expired")

    @pytest.mark.asyncio
    async def test_my_listings(self, db_session, make_user):
        seller = await make_user("seller")
        other = await make_user("other")
        await marketplace_service.create_listing(db_session, seller.id, {"title": "Mine"})
        await marketplace_service.create_listing(db_session, other.id, {"title": "Theirs"})

        mine = await marketplace_service.list_my_listings(db_session, seller.id)
        assert [l.title for l in mine] == ["Mine"]


class TestReservationWorkflow:

    @pytest.mark.asyncio
    async def test_reserve_and_unreserve(self, db_session, make_user):
        seller = await make_user("seller")
        buyer = await make_user("buyer")
        listing = await marketplace_service.create_listing(db_session, seller.id, {"title": "Milk"})

        reserved = await marketplace_service.reserve_listing(db_session, listing.id, buyer.id)
        assert reserved.status == "reserved"
        assert reserved.buyer.name == "Buyer"

        with pytest.raises(ValidationError, match="Cannot reserve a listing that is reserved"):
            await marketplace_service.reserve_listing(db_session, listing.id, buyer.id)

        released = await marketplace_service.unreserve_listing(db_session, listing.id, buyer.id)
        assert released.status == "active"
        assert released.buyer_id is None

    @pytest.mark.asyncio
    async def test_cannot_reserve_own_listing(self, db_session, make_user):
        seller = await make_user("seller")
        listing = await marketplace_service.create_listing(db_session, seller.id, {"title": "Milk"})

        with pytest.raises(ValidationError, match="Cannot reserve your own listing"):
            await marketplace_service.reserve_listing(db_session, listing.id, seller.id)

    @pytest.mark.asyncio
    async def test_unreserve_rules(self, db_session, make_user):
        seller = await make_user("seller")
        buyer = await make_user("buyer")
        stranger = await make_user("stranger")
        listing = await marketplace_service.create_listing(db_session, seller.id, {"title": "Milk"})

        with pytest.raises(ValidationError):
            await marketplace_service.unreserve_listing(db_session, listing.id, seller.id)

        await marketplace_service.reserve_listing(db_session, listing.id, buyer.id)
        with pytest.raises(PermissionDeniedError):
            await marketplace_service.unreserve_listing(db_session, listing.id, stranger.id)

        released = await marketplace_service.unreserve_listing(db_session, listing.id, seller.id)
        assert released.status == "active"

    @pytest.mark.asyncio
    async def test_complete_reserved_sale(self, db_session, make_user):
        seller = await make_user("seller")
        buyer = await make_user("buyer")
        listing = await marketplace_service.create_listing(
            db_session, seller.id, {"title": "Milk", "quantity": 2, "co2_saved": 3.0}
        )
        await marketplace_service.reserve_listing(db_session, listing.id, buyer.id)

        result = await marketplace_service.complete_listing(db_session, listing.id, seller.id)

        sold = result["listing"]
        assert sold.status == "sold"
        assert sold.buyer_id == buyer.id
        assert sold.completed_at is not None
        assert result["points"]["amount"] == 8
        assert result["points"]["new_total"] == 8 + 25 + 25
        assert result["points"]["co2_saved"] == 3.0

        buyer_points = (
            await db_session.execute(select(UserPoints).where(UserPoints.user_id == buyer.id))
        ).scalar_one()
        assert buyer_points.total_co2_saved == pytest.approx(3.0)

        with pytest.raises(ValidationError, match="Cannot complete a listing that is sold"):
            await marketplace_service.complete_listing(db_session, listing.id, seller.id)
        with pytest.raises(ValidationError, match="Cannot update a sold listing"):
            await marketplace_service.update_listing(db_session, listing.id, seller.id, {"price": 1})

    @pytest.mark.asyncio
    async def test_complete_active_with_explicit_buyer(self, db_session, make_user):
        seller = await make_user("seller")
        buyer = await make_user("buyer")
        listing = await marketplace_service.create_listing(db_session, seller.id, {"title": "Milk"})

        result = await marketplace_service.complete_listing(db_session, listing.id, seller.id, buyer.id)
        assert result["listing"].buyer_id == buyer.id

    @pytest.mark.asyncio
    async def test_complete_rules(self, db_session, make_user):
        seller = await make_user("seller")
        buyer = await make_user("buyer")
        listing = await marketplace_service.create_listing(db_session, seller.id, {"title": "Milk"})

        with pytest.raises(PermissionDeniedError):
            await marketplace_service.complete_listing(db_session, listing.id, buyer.id)
        with pytest.raises(ValidationError, match="Seller cannot be the buyer"):
            await marketplace_service.complete_listing(db_session, listing.id, seller.id, seller.id)


class TestNearby:

    @pytest.mark.asyncio
    async def test_nearby_sorted_and_filtered(self, db_session, make_user):
        seller = await make_user("seller")
        buyer = await make_user("buyer")
        for title, location in (
            ("Orchard", ORCHARD),
            ("Marina", MARINA_BAY),
            ("Changi", CHANGI),
            ("Nowhere", "somewhere vague"),
            ("Unknown", None),
        ):
            await marketplace_service.create_listing(
                db_session, seller.id, {"title": title, "pickup_location": location}
            )
        reserved = await marketplace_service.create_listing(
            db_session, seller.id, {"title": "Reserved", "pickup_location": MARINA_BAY}
        )
        await marketplace_service.reserve_listing(db_session, reserved.id, buyer.id)

        nearby = await marketplace_service.get_nearby_listings(db_session, 1.2834, 103.8607, radius_km=5)

        assert [entry["listing"].title for entry in nearby] == ["Marina", "Orchard"]
        assert nearby[0]["distance_km"] == 0
        assert 0 < nearby[1]["distance_km"] <= 5

        closest = await marketplace_service.get_nearby_listings(db_session, 1.2834, 103.8607, radius_km=50, limit=1)
        assert [entry["listing"].title for entry in closest] == ["Marina"]
