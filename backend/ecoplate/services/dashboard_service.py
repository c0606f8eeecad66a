"""
EcoPlate Backend — Dashboard Service
=====================================

What:  Aggregates a user's sustainability history into totals and chart
       series for the dashboard (CO2 avoided, food saved, money earned).
How:   Reads consumed/sold metrics and completed marketplace sales inside
       the period window and buckets them by day, month or year.

Periods:
    day     last 30 days, bucketed YYYY-MM-DD
    month   last 12 months from the 1st, bucketed YYYY-MM   (default)
    annual  last 5 years from Jan 1, bucketed YYYY
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ecoplate.models.gamification import ProductSustainabilityMetric
from ecoplate.models.marketplace import LISTING_SOLD, MarketplaceListing
from ecoplate.models.product import Product
from ecoplate.services.user_points import ACTION_CONSUMED, ACTION_SOLD, normalize_action_type
from ecoplate.utils.dates import DATE_FORMAT, subtract_months, utcnow

logger = logging.getLogger(__name__)

PERIOD_DAY = "day"
PERIOD_MONTH = "month"
PERIOD_ANNUAL = "annual"
PERIODS = (PERIOD_DAY, PERIOD_MONTH, PERIOD_ANNUAL)

# kg CO2 equivalences
CAR_KM_PER_KG_CO2 = 6.0
KG_CO2_PER_TREE_YEAR = 21.0
KWH_PER_KG_CO2 = 3.6

POINTS_PER_SAVED_ITEM = 10
POINTS_PER_SALE = 25


def normalize_period(period: Optional[str]) -> str:
    return period if period in PERIODS else PERIOD_MONTH


def get_range_start(period: str, now: Optional[datetime] = None) -> datetime:
    now = (now or utcnow()).replace(hour=0, minute=0, second=0, microsecond=0)
    if period == PERIOD_DAY:
        return now - timedelta(days=30)
    if period == PERIOD_ANNUAL:
        return now.replace(year=now.year - 5, month=1, day=1)
    return subtract_months(now, 12)


def bucket_key(moment: datetime, period: str) -> str:
    if period == PERIOD_DAY:
        return moment.strftime(DATE_FORMAT)
    if period == PERIOD_ANNUAL:
        return moment.strftime("%Y")
    return moment.strftime("%Y-%m")


def _to_chart(buckets: Dict[str, float]) -> List[Dict[str, Any]]:
    return [{"date": key, "value": round(value, 2)} for key, value in sorted(buckets.items())]


def impact_equivalence(co2_kg: float) -> Dict[str, float]:
    return {
        "car_km_avoided": round(co2_kg * CAR_KM_PER_KG_CO2, 1),
        "trees_planted": round(co2_kg / KG_CO2_PER_TREE_YEAR, 1),
        "electricity_saved": round(co2_kg * KWH_PER_KG_CO2, 1),
    }


class DashboardService:

    async def get_dashboard_stats(
        self,
        db: AsyncSession,
        user_id: int,
        period: Optional[str] = PERIOD_MONTH,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Totals and chart series for one period window.

        CO2 per event is quantity × per-unit emission, taken from the metric's
        own snapshot and falling back to the linked product; events with
        neither count as 0.
        """
        period = normalize_period(period)
        range_start = get_range_start(period, now)
        start_str = range_start.strftime(DATE_FORMAT)

        result = await db.execute(
            select(ProductSustainabilityMetric, Product.co2_emission)
            .outerjoin(Product, Product.id == ProductSustainabilityMetric.product_id)
            .where(
                ProductSustainabilityMetric.user_id == user_id,
                ProductSustainabilityMetric.today_date >= start_str,
            )
        )

        co2_buckets: Dict[str, float] = defaultdict(float)
        food_buckets: Dict[str, float] = defaultdict(float)
        total_co2 = 0.0
        total_food = 0.0
        saved_count = 0

        for metric, product_co2 in result.all():
            if normalize_action_type(metric.type) not in (ACTION_CONSUMED, ACTION_SOLD):
                continue
            try:
                day = datetime.strptime(metric.today_date, DATE_FORMAT)
            except ValueError:
                logger.warning("Metric %d has malformed date %r", metric.id, metric.today_date)
                continue

            per_unit = metric.co2_emission if metric.co2_emission is not None else product_co2
            co2 = (per_unit or 0.0) * (metric.quantity or 0.0)
            key = bucket_key(day, period)

            co2_buckets[key] += co2
            food_buckets[key] += metric.quantity or 0.0
            total_co2 += co2
            total_food += metric.quantity or 0.0
            saved_count += 1

        sales = await db.execute(
            select(MarketplaceListing.price, MarketplaceListing.completed_at)
            .where(
                MarketplaceListing.seller_id == user_id,
                MarketplaceListing.status == LISTING_SOLD,
                MarketplaceListing.completed_at.is_not(None),
                MarketplaceListing.completed_at >= range_start,
            )
        )
        money_buckets: Dict[str, float] = defaultdict(float)
        total_money = 0.0
        sale_count = 0
        for price, completed_at in sales.all():
            money_buckets[bucket_key(completed_at, period)] += price or 0.0
            total_money += price or 0.0
            sale_count += 1

        logger.debug(
            "Dashboard for user %d (%s): %d saved events, %d sales",
            user_id,
            period,
            saved_count,
            sale_count,
        )

        return {
            "period": period,
            "summary": {
                "total_co2_reduced": round(total_co2, 2),
                "total_food_saved": round(total_food, 2),
                "total_money_saved": round(total_money, 2),
                "eco_points_earned": saved_count * POINTS_PER_SAVED_ITEM + sale_count * POINTS_PER_SALE,
            },
            "co2_chart_data": _to_chart(co2_buckets),
            "food_chart_data": _to_chart(food_buckets),
            "money_chart_data": _to_chart(money_buckets),
            "impact_equivalence": impact_equivalence(total_co2),
        }


dashboard_service = DashboardService()
