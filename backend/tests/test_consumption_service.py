"""
EcoPlate Backend — Consumption Service Tests
=============================================

calculate_waste_metrics is pure; the confirm_* flows run against SQLite.
"""

import pytest
from sqlalchemy import select

from ecoplate.exceptions import NotFoundError
from ecoplate.models.consumption import COMPLETED, PENDING_WASTE_PHOTO
from ecoplate.models.gamification import ProductSustainabilityMetric, UserPoints
from ecoplate.services.consumption_service import (
    IngredientInput,
    WasteItem,
    calculate_waste_metrics,
    consumption_service,
)


def _ingredient(product_id, name, used, price=0.0, co2=None):
    return {
        "product_id": product_id,
        "product_name": name,
        "quantity_used": used,
        "unit_price": price,
        "co2_emission": co2,
    }


class TestCalculateWasteMetrics:

    def setup_method(self):
        self.ingredients = [
            _ingredient(1, "Rice", 2, price=3.0, co2=1.5),
            _ingredient(None, "Egg", 4, price=0.5, co2=0.2),
        ]

    def test_matches_by_id_then_name_and_applies_factor(self):
        waste = [
            {"product_id": 1, "product_name": "rice", "quantity_wasted": 0.5},
            {"product_id": None, "product_name": " EGG ", "quantity_wasted": 10},
        ]

        metrics = calculate_waste_metrics(self.ingredients, waste, "compost")

        assert metrics["disposal_method"] == "compost"
        assert metrics["total_cost"] == 8.0
        assert metrics["wasted_cost"] == 3.5
        assert metrics["total_co2"] == 3.8
        # 0.5 × 1.5 × 0.2 + 4 × 0.2 × 0.2
        assert metrics["wasted_co2"] == 0.31
        assert metrics["waste_percentage"] == 75.0

        rice, egg = metrics["items"]
        assert rice["quantity_wasted"] == 0.5
        # Clamped to the quantity used
        assert egg["quantity_wasted"] == 4

    def test_unknown_disposal_falls_back_to_landfill(self):
        waste = [WasteItem(product_id=1, product_name="Rice", quantity_wasted=1)]
        metrics = calculate_waste_metrics(self.ingredients, waste, "incinerator")

        assert metrics["disposal_method"] == "landfill"
        assert metrics["wasted_co2"] == 1.5

    def test_no_waste(self):
        metrics = calculate_waste_metrics(self.ingredients, [])
        assert metrics["wasted_cost"] == 0
        assert metrics["waste_percentage"] == 0

    def test_empty_meal(self):
        metrics = calculate_waste_metrics([], [])
        assert metrics["total_cost"] == 0
        assert metrics["waste_percentage"] == 0.0
        assert metrics["items"] == []

    def test_negative_values_clamped(self):
        ingredients = [IngredientInput(product_id=1, product_name="Rice", quantity_used=-2, unit_price=1)]
        waste = [{"product_id": 1, "product_name": "Rice", "quantity_wasted": -1}]

        metrics = calculate_waste_metrics(ingredients, waste)
        assert metrics["items"][0]["quantity_used"] == 0
        assert metrics["items"][0]["quantity_wasted"] == 0


class TestConfirmFlows:

    @pytest.mark.asyncio
    async def test_confirm_ingredients_draws_down_fridge(self, db_session, make_user, make_product):
        user = await make_user()
        rice = await make_product(user, "Rice", quantity=2.0, unit="kg")
        egg = await make_product(user, "Egg", quantity=1.0, unit="pcs")

        result = await consumption_service.confirm_ingredients(
            db_session,
            user.id,
            [_ingredient(rice.id, "Rice", 0.5), _ingredient(egg.id, "Egg", 1)],
        )

        assert result["success"] is True
        assert len(result["interaction_ids"]) == 2
        assert {b["code"] for b in result["new_badges"]} == {"first_action", "first_consume"}

        assert rice.quantity == 1.5
        assert rice.is_consumed is False
        assert egg.quantity == 0
        assert egg.is_consumed is True

        metric = await db_session.get(ProductSustainabilityMetric, result["interaction_ids"][0])
        assert metric.unit == "kg"
        assert metric.type == "consumed"

    @pytest.mark.asyncio
    async def test_foreign_product_is_logged_without_link(self, db_session, make_user, make_product):
        user = await make_user("alice")
        other = await make_user("mallory")
        theirs = await make_product(other, "Cheese", quantity=3.0)

        result = await consumption_service.confirm_ingredients(
            db_session, user.id, [_ingredient(theirs.id, "Cheese", 1)]
        )

        metric = await db_session.get(ProductSustainabilityMetric, result["interaction_ids"][0])
        assert metric.product_id is None
        assert theirs.quantity == 3.0

    @pytest.mark.asyncio
    async def test_confirm_waste_closes_pending_record(self, db_session, make_user, make_product):
        user = await make_user()
        rice = await make_product(user, "Rice", quantity=2.0, unit_price=3.0, co2_emission=1.5)
        ingredients = [_ingredient(rice.id, "Rice", 1, price=3.0, co2=1.5)]

        await consumption_service.confirm_ingredients(db_session, user.id, ingredients)
        pending = await consumption_service.create_pending_record(db_session, user.id, None, ingredients)
        assert pending.status == PENDING_WASTE_PHOTO

        result = await consumption_service.confirm_waste(
            db_session,
            user.id,
            ingredients,
            [{"product_id": rice.id, "product_name": "Rice", "quantity_wasted": 0.5}],
            disposal_method="landfill",
            pending_id=pending.id,
        )

        assert result["metrics"]["wasted_cost"] == 1.5
        assert result["metrics"]["waste_percentage"] == 50.0
        assert pending.status == COMPLETED
        assert await consumption_service.list_pending_records(db_session, user.id) == []

        points = (
            await db_session.execute(select(UserPoints).where(UserPoints.user_id == user.id))
        ).scalar_one()
        assert points.total_points == 55 - 3

    @pytest.mark.asyncio
    async def test_zero_waste_items_are_not_logged(self, db_session, make_user):
        user = await make_user()
        result = await consumption_service.confirm_waste(
            db_session,
            user.id,
            [_ingredient(None, "Soup", 1)],
            [{"product_id": None, "product_name": "Soup", "quantity_wasted": 0}],
        )

        assert result["success"] is True
        rows = (
            await db_session.execute(
                select(ProductSustainabilityMetric).where(ProductSustainabilityMetric.user_id == user.id)
            )
        ).scalars().all()
        assert rows == []

    @pytest.mark.asyncio
    async def test_pending_record_of_other_user(self, db_session, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        record = await consumption_service.create_pending_record(db_session, bob.id, "photo", [])

        with pytest.raises(NotFoundError):
            await consumption_service.confirm_waste(db_session, alice.id, [], [], pending_id=record.id)

    @pytest.mark.asyncio
    async def test_pending_records_listed_newest_first(self, db_session, make_user):
        user = await make_user()
        first = await consumption_service.create_pending_record(
            db_session, user.id, None, [_ingredient(None, "Bread", 1)]
        )
        second = await consumption_service.create_pending_record(db_session, user.id, None, [])

        records = await consumption_service.list_pending_records(db_session, user.id)

        assert [r.id for r in records] == [second.id, first.id]
        assert first.ingredients[0]["product_name"] == "Bread"
        assert first.ingredients[0]["category"] == "other"
