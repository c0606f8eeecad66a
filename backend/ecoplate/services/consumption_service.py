"""
EcoPlate Backend — Consumption Service
=======================================

What:  Two-step meal logging. Confirmed ingredients become "consumed"
       events; leftovers seen in the waste photo become "wasted" events.
How:   calculate_waste_metrics() is a pure function over the ingredient and
       waste lists; the confirm_* methods write metrics, adjust fridge
       quantities and award points through GamificationService.
Who:   /api/v1/consumption routes.

Flow:
    identify (photo) → confirm-ingredients → [pending record]
                    → analyze-waste (photo, read-only) → confirm-waste

Disposal factors scale the CO2 of wasted food by how it was disposed of:
    landfill 1.0, compost 0.2, animal_feed 0.1, other 0.8
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from ecoplate.exceptions import NotFoundError
from ecoplate.models.consumption import COMPLETED, PENDING_WASTE_PHOTO, PendingConsumptionRecord
from ecoplate.models.product import Product
from ecoplate.services.badge_service import badge_service
from ecoplate.services.gamification_service import gamification_service
from ecoplate.services.user_points import ACTION_CONSUMED, ACTION_WASTED

logger = logging.getLogger(__name__)

DISPOSAL_FACTORS = {
    "landfill": 1.0,
    "compost": 0.2,
    "animal_feed": 0.1,
    "other": 0.8,
}
DEFAULT_DISPOSAL_METHOD = "landfill"


@dataclass
class IngredientInput:
    product_id: Optional[int]
    product_name: str
    quantity_used: float
    category: str = "other"
    unit_price: float = 0.0
    unit: Optional[str] = None
    co2_emission: Optional[float] = None


@dataclass
class WasteItem:
    product_id: Optional[int]
    product_name: str
    quantity_wasted: float


def _as_ingredient(value: Any) -> IngredientInput:
    if isinstance(value, IngredientInput):
        return value
    if isinstance(value, dict):
        return IngredientInput(**value)
    # pydantic models
    return IngredientInput(**value.model_dump())


def _as_waste_item(value: Any) -> WasteItem:
    if isinstance(value, WasteItem):
        return value
    if isinstance(value, dict):
        return WasteItem(
            product_id=value.get("product_id"),
            product_name=value.get("product_name", ""),
            quantity_wasted=value.get("quantity_wasted", 0.0),
        )
    return WasteItem(**value.model_dump())


def calculate_waste_metrics(
    ingredients: Iterable[Any],
    waste_items: Iterable[Any],
    disposal_method: str = DEFAULT_DISPOSAL_METHOD,
) -> Dict[str, Any]:
    """
    Cost and CO2 breakdown of a meal.

    Waste items are matched to ingredients by product_id, falling back to a
    case-insensitive product name match when the id is missing. The wasted
    quantity of an ingredient is clamped to [0, quantity_used].

    Returns:
        {total_cost, wasted_cost, total_co2, wasted_co2, waste_percentage,
         disposal_method, items: [...]}; money/CO2 values rounded to 2 dp.
    """
    method = disposal_method if disposal_method in DISPOSAL_FACTORS else DEFAULT_DISPOSAL_METHOD
    factor = DISPOSAL_FACTORS[method]

    ingredient_list = [_as_ingredient(i) for i in ingredients]
    waste_list = [_as_waste_item(w) for w in waste_items]

    total_used = 0.0
    total_wasted = 0.0
    total_cost = 0.0
    wasted_cost = 0.0
    total_co2 = 0.0
    wasted_co2 = 0.0
    items = []

    for ingredient in ingredient_list:
        name_key = ingredient.product_name.strip().lower()
        raw_wasted = sum(
            w.quantity_wasted
            for w in waste_list
            if (
                (ingredient.product_id is not None and w.product_id == ingredient.product_id)
                or (w.product_id is None and w.product_name.strip().lower() == name_key)
            )
        )
        used = max(0.0, ingredient.quantity_used)
        wasted = min(max(0.0, raw_wasted), used)

        price = ingredient.unit_price or 0.0
        co2 = ingredient.co2_emission or 0.0

        cost = used * price
        item_wasted_cost = wasted * price
        item_co2 = used * co2
        item_wasted_co2 = wasted * co2 * factor

        total_used += used
        total_wasted += wasted
        total_cost += cost
        wasted_cost += item_wasted_cost
        total_co2 += item_co2
        wasted_co2 += item_wasted_co2

        items.append({
            "product_id": ingredient.product_id,
            "product_name": ingredient.product_name,
            "quantity_used": used,
            "quantity_wasted": wasted,
            "cost": round(cost, 2),
            "wasted_cost": round(item_wasted_cost, 2),
            "co2": round(item_co2, 2),
            "wasted_co2": round(item_wasted_co2, 2),
        })

    waste_percentage = (total_wasted / total_used * 100) if total_used > 0 else 0.0

    return {
        "total_cost": round(total_cost, 2),
        "wasted_cost": round(wasted_cost, 2),
        "total_co2": round(total_co2, 2),
        "wasted_co2": round(wasted_co2, 2),
        "waste_percentage": round(waste_percentage, 2),
        "disposal_method": method,
        "items": items,
    }


class ConsumptionService:
    """Database side of meal logging."""

    async def _owned_product(self, db: AsyncSession, user_id: int, product_id: Optional[int]) -> Optional[Product]:
        if product_id is None:
            return None
        product = await db.get(Product, product_id)
        if product is None or product.user_id != user_id:
            return None
        return product

    async def confirm_ingredients(
        self,
        db: AsyncSession,
        user_id: int,
        ingredients: Iterable[Any],
    ) -> Dict[str, Any]:
        """
        Log each ingredient as consumed and draw it down in the fridge.

        Ingredients that reference someone else's (or a deleted) product are
        still logged, with product_id None, but no quantity is decremented.
        """
        interaction_ids: List[int] = []
        new_badges: List[Dict[str, Any]] = []

        for ingredient in (_as_ingredient(i) for i in ingredients):
            product = await self._owned_product(db, user_id, ingredient.product_id)
            if product is not None:
                product.quantity = max(0.0, (product.quantity or 0.0) - ingredient.quantity_used)
                if product.quantity == 0:
                    product.is_consumed = True
            elif ingredient.product_id is not None:
                logger.info(
                    "Ingredient references product %s not owned by user %d; logging without product",
                    ingredient.product_id,
                    user_id,
                )

            result = await gamification_service.award_points(
                db,
                user_id,
                ACTION_CONSUMED,
                product_id=product.id if product is not None else None,
                quantity=ingredient.quantity_used,
                unit=ingredient.unit or (product.unit if product is not None else None),
            )
            new_badges.extend(result["new_badges"])
            interaction_ids.append(result["metric_id"])

        await db.flush()
        logger.info("User %d confirmed %d ingredients", user_id, len(interaction_ids))
        return {
            "success": True,
            "interaction_ids": interaction_ids,
            "new_badges": new_badges,
        }

    async def confirm_waste(
        self,
        db: AsyncSession,
        user_id: int,
        ingredients: Iterable[Any],
        waste_items: Iterable[Any],
        disposal_method: str = DEFAULT_DISPOSAL_METHOD,
        pending_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Log leftovers as wasted events, apply the penalty, and close the
        pending record if one was given.

        Raises:
            NotFoundError: pending_id does not belong to the user.
        """
        ingredient_list = [_as_ingredient(i) for i in ingredients]
        waste_list = [_as_waste_item(w) for w in waste_items]

        pending: Optional[PendingConsumptionRecord] = None
        if pending_id is not None:
            pending = await self.get_pending_record(db, user_id, pending_id)
            if pending is None:
                raise NotFoundError(resource="Pending consumption record", resource_id=pending_id)

        new_badges: List[Dict[str, Any]] = []
        for item in waste_list:
            if item.quantity_wasted <= 0:
                continue
            product = await self._owned_product(db, user_id, item.product_id)
            result = await gamification_service.award_points(
                db,
                user_id,
                ACTION_WASTED,
                product_id=product.id if product is not None else None,
                quantity=item.quantity_wasted,
            )
            new_badges.extend(result["new_badges"])

        metrics = calculate_waste_metrics(ingredient_list, waste_list, disposal_method)

        if pending is not None:
            pending.status = COMPLETED

        # Covers the case where nothing was wasted and no award ran
        for badge in await badge_service.check_and_award_badges(db, user_id):
            new_badges.append(asdict(badge))

        await db.flush()
        logger.info(
            "User %d confirmed waste: %.2f%% wasted (%s)",
            user_id,
            metrics["waste_percentage"],
            metrics["disposal_method"],
        )
        return {"success": True, "metrics": metrics, "new_badges": new_badges}

    # ── Pending records ───────────────────────────────────────────────────

    async def create_pending_record(
        self,
        db: AsyncSession,
        user_id: int,
        raw_photo: Optional[str],
        ingredients: Iterable[Any],
    ) -> PendingConsumptionRecord:
        record = PendingConsumptionRecord(
            user_id=user_id,
            raw_photo=raw_photo,
            ingredients=[asdict(_as_ingredient(i)) for i in ingredients],
            status=PENDING_WASTE_PHOTO,
        )
        db.add(record)
        await db.flush()
        logger.info("Pending consumption record %d created for user %d", record.id, user_id)
        return record

    async def get_pending_record(
        self,
        db: AsyncSession,
        user_id: int,
        record_id: int,
    ) -> Optional[PendingConsumptionRecord]:
        record = await db.get(PendingConsumptionRecord, record_id)
        if record is None or record.user_id != user_id:
            return None
        return record

    async def list_pending_records(self, db: AsyncSession, user_id: int) -> List[PendingConsumptionRecord]:
        result = await db.execute(
            select(PendingConsumptionRecord)
            .where(
                PendingConsumptionRecord.user_id == user_id,
                PendingConsumptionRecord.status == PENDING_WASTE_PHOTO,
            )
            .order_by(desc(PendingConsumptionRecord.created_at), desc(PendingConsumptionRecord.id))
        )
        return list(result.scalars().all())


consumption_service = ConsumptionService()
