"""
EcoPlate Backend — Gamification Service
========================================

What:  Points, sustainability metrics, the EcoBoard summary and leaderboard.
How:   Every consume/waste/share/sell event is written to
       product_sustainability_metrics; points are applied to user_points and
       the badge engine is re-evaluated in the same transaction.
Who:   MyFridge consume route, consumption confirmations, marketplace
       completion, EcoBoard routes.

Award flow (award_points):
    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐    ┌──────────┐
    │ record metric│───▶│ apply points │───▶│ CO2 / streak │───▶│  badges  │
    └──────────────┘    └──────────────┘    └──────────────┘    └──────────┘

Points never go below zero: a "wasted" penalty on a 0-point account is a no-op.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ecoplate.exceptions import DatabaseError, ValidationError
from ecoplate.models.gamification import ProductSustainabilityMetric, UserPoints
from ecoplate.models.product import Product
from ecoplate.models.user import User
from ecoplate.services.badge_service import badge_service
from ecoplate.services.user_points import (
    ACTION_CONSUMED,
    ACTION_SHARED,
    ACTION_SOLD,
    ACTION_WASTED,
    POINT_VALUES,
    POSITIVE_ACTIONS,
    get_or_create_user_points,
    load_streaks,
    normalize_action_type,
)
from ecoplate.utils.dates import today_str

logger = logging.getLogger(__name__)

# Rough per-item estimates shown on the EcoBoard
CO2_PER_SAVED_ITEM_KG = 0.5
MONEY_PER_SAVED_ITEM = 5.0


class GamificationService:
    """Stateless; every method receives the request's session."""

    async def record_product_sustainability_metrics(
        self,
        db: AsyncSession,
        product_id: Optional[int],
        user_id: int,
        quantity: float,
        type: str,
        unit: Optional[str] = None,
        co2_emission: Optional[float] = None,
    ) -> ProductSustainabilityMetric:
        """
        Insert one event row dated today (UTC).

        When the caller does not pass a per-unit co2_emission the product's
        current value is snapshotted, so the dashboard keeps the figure after
        the product is deleted.
        """
        if co2_emission is None and product_id is not None:
            product = await db.get(Product, product_id)
            if product is not None:
                co2_emission = product.co2_emission
                if unit is None:
                    unit = product.unit

        metric = ProductSustainabilityMetric(
            product_id=product_id,
            user_id=user_id,
            today_date=today_str(),
            quantity=quantity,
            unit=unit,
            type=type,
            co2_emission=co2_emission,
        )
        db.add(metric)
        await db.flush()
        return metric

    async def award_points(
        self,
        db: AsyncSession,
        user_id: int,
        action: str,
        product_id: Optional[int] = None,
        quantity: float = 1,
        listing_data: Optional[Dict[str, Any]] = None,
        unit: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Apply an action's points, log the event and run the badge check.

        Args:
            action: consumed, wasted, shared or sold.
            listing_data: for "sold", {"co2_saved": float, "buyer_id": int|None}.
                The CO2 is credited to the seller and, when known, the buyer.

        Returns:
            {action, amount, new_total, new_badges, co2_saved, metric_id}

        Raises:
            ValidationError: unknown action.
        """
        if action not in POINT_VALUES:
            raise ValidationError(
                message=f"Invalid action: {action}",
                field="action",
                context={"allowed": sorted(POINT_VALUES)},
            )

        amount = POINT_VALUES[action]
        co2_saved = 0.0

        try:
            metric_co2: Optional[float] = None
            if action == ACTION_SOLD and listing_data:
                co2_saved = float(listing_data.get("co2_saved") or 0.0)
                if quantity:
                    metric_co2 = co2_saved / quantity

            metric = await self.record_product_sustainability_metrics(
                db,
                product_id=product_id,
                user_id=user_id,
                quantity=quantity,
                type=action,
                unit=unit,
                co2_emission=metric_co2,
            )

            points = await get_or_create_user_points(db, user_id)
            points.total_points = max(0, points.total_points + amount)

            if co2_saved > 0:
                points.total_co2_saved += co2_saved
                buyer_id = listing_data.get("buyer_id") if listing_data else None
                if buyer_id and buyer_id != user_id:
                    buyer_points = await get_or_create_user_points(db, buyer_id)
                    buyer_points.total_co2_saved += co2_saved

            if action in POSITIVE_ACTIONS:
                current_streak, _ = await load_streaks(db, user_id)
                points.current_streak = current_streak

            await db.flush()
            new_badges = await badge_service.check_and_award_badges(db, user_id)

        except SQLAlchemyError as e:
            logger.error("Failed to award %s points to user %d: %s", action, user_id, str(e))
            raise DatabaseError(
                message="Failed to update points",
                context={"action": action, "error_type": type(e).__name__},
            )

        logger.info(
            "User %d %s (product=%s qty=%s): %+d points, total=%d",
            user_id,
            action,
            product_id,
            quantity,
            amount,
            points.total_points,
        )
        return {
            "action": action,
            "amount": amount,
            "new_total": points.total_points,
            "new_badges": [
                {"code": b.code, "name": b.name, "points_awarded": b.points_awarded}
                for b in new_badges
            ],
            "co2_saved": co2_saved,
            "metric_id": metric.id,
        }

    async def get_user_metrics(self, db: AsyncSession, user_id: int) -> Dict[str, Any]:
        """Action counts and derived savings for the EcoBoard."""
        result = await db.execute(
            select(ProductSustainabilityMetric.type, func.count(ProductSustainabilityMetric.id))
            .where(ProductSustainabilityMetric.user_id == user_id)
            .group_by(ProductSustainabilityMetric.type)
        )
        counts = {ACTION_CONSUMED: 0, ACTION_WASTED: 0, ACTION_SHARED: 0, ACTION_SOLD: 0}
        for raw_type, count in result.all():
            action = normalize_action_type(raw_type)
            if action is not None:
                counts[action] += count

        saved = counts[ACTION_CONSUMED] + counts[ACTION_SHARED] + counts[ACTION_SOLD]
        total = saved + counts[ACTION_WASTED]
        rate = round(saved / total * 100, 1) if total > 0 else 100.0

        return {
            "total_items_consumed": counts[ACTION_CONSUMED],
            "total_items_wasted": counts[ACTION_WASTED],
            "total_items_shared": counts[ACTION_SHARED],
            "total_items_sold": counts[ACTION_SOLD],
            "total_items": total,
            "waste_reduction_rate": rate,
            "estimated_co2_saved": round(saved * CO2_PER_SAVED_ITEM_KG, 2),
            "estimated_money_saved": round(saved * MONEY_PER_SAVED_ITEM, 2),
        }

    async def get_points_summary(self, db: AsyncSession, user_id: int) -> Dict[str, Any]:
        points = await get_or_create_user_points(db, user_id)
        current_streak, longest_streak = await load_streaks(db, user_id)
        if points.current_streak != current_streak:
            # Stored streak goes stale once a day passes without an action
            points.current_streak = current_streak
            await db.flush()
        return {
            "total_points": points.total_points,
            "current_streak": current_streak,
            "longest_streak": longest_streak,
            "total_co2_saved": round(points.total_co2_saved, 2),
        }

    async def get_recent_transactions(
        self,
        db: AsyncSession,
        user_id: int,
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(ProductSustainabilityMetric)
            .where(ProductSustainabilityMetric.user_id == user_id)
            .order_by(desc(ProductSustainabilityMetric.id))
            .limit(limit)
        )
        transactions = []
        for metric in result.scalars().all():
            action = normalize_action_type(metric.type)
            transactions.append({
                "id": metric.id,
                "type": action or metric.type,
                "product_id": metric.product_id,
                "quantity": metric.quantity,
                "points": POINT_VALUES.get(action, 0),
                "date": metric.today_date,
            })
        return transactions

    async def get_leaderboard(self, db: AsyncSession, limit: int = 10) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(UserPoints, User)
            .join(User, User.id == UserPoints.user_id)
            .order_by(desc(UserPoints.total_points), UserPoints.user_id)
            .limit(limit)
        )
        return [
            {
                "rank": rank,
                "user_id": user.id,
                "name": user.name,
                "avatar_url": user.avatar_url,
                "points": points.total_points,
                "streak": points.current_streak,
            }
            for rank, (points, user) in enumerate(result.all(), start=1)
        ]


# ── Singleton Instance ────────────────────────────────────────────────────
gamification_service = GamificationService()
