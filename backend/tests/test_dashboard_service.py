"""
EcoPlate Backend — Dashboard Service Tests
===========================================
"""

from datetime import datetime, timedelta, timezone

import pytest

from ecoplate.models.gamification import ProductSustainabilityMetric
from ecoplate.models.marketplace import LISTING_SOLD, MarketplaceListing
from ecoplate.services.dashboard_service import (
    bucket_key,
    dashboard_service,
    get_range_start,
    impact_equivalence,
    normalize_period,
)

NOW = datetime(2024, 6, 15, 10, 30, tzinfo=timezone.utc)


def _metric(user, action, quantity, day, co2=None, product=None):
    return ProductSustainabilityMetric(
        user_id=user.id,
        product_id=product.id if product else None,
        type=action,
        quantity=quantity,
        today_date=day,
        co2_emission=co2,
    )


class TestPeriodHelpers:

    def test_normalize_period(self):
        assert normalize_period("day") == "day"
        assert normalize_period("annual") == "annual"
        assert normalize_period("week") == "month"
        assert normalize_period(None) == "month"

    def test_range_starts(self):
        assert get_range_start("day", NOW) == datetime(2024, 5, 16, tzinfo=timezone.utc)
        assert get_range_start("month", NOW) == datetime(2023, 6, 1, tzinfo=timezone.utc)
        assert get_range_start("annual", NOW) == datetime(2019, 1, 1, tzinfo=timezone.utc)

    def test_bucket_keys(self):
        assert bucket_key(NOW, "day") == "2024-06-15"
        assert bucket_key(NOW, "month") == "2024-06"
        assert bucket_key(NOW, "annual") == "2024"

    def test_impact_equivalence(self):
        assert impact_equivalence(5.0) == {
            "car_km_avoided": 30.0,
            "trees_planted": 0.2,
            "electricity_saved": 18.0,
        }


class TestDashboardStats:

    @pytest.mark.asyncio
    async def test_month_totals_and_charts(self, db_session, make_user, make_product):
        user = await make_user()
        product = await make_product(user, "Beef", co2_emission=1.2)
        db_session.add_all([
            _metric(user, "consumed", 2, "2024-06-10", co2=1.5),
            # No snapshot: falls back to the product's emission
            _metric(user, "consumed", 1, "2024-05-02", product=product),
            _metric(user, "sold", 1, "2024-06-11", co2=2.0),
            _metric(user, "wasted", 5, "2024-06-12", co2=9.0),
            # Outside the 12-month window
            _metric(user, "consumed", 3, "2023-01-05", co2=1.0),
        ])
        db_session.add(MarketplaceListing(
            seller_id=user.id,
            title="Bread",
            price=4.0,
            status=LISTING_SOLD,
            images=[],
            completed_at=NOW - timedelta(days=1),
        ))
        await db_session.flush()

        stats = await dashboard_service.get_dashboard_stats(db_session, user.id, "month", now=NOW)

        assert stats["period"] == "month"
        summary = stats["summary"]
        assert summary["total_co2_reduced"] == 6.2
        assert summary["total_food_saved"] == 4.0
        assert summary["total_money_saved"] == 4.0
        assert summary["eco_points_earned"] == 3 * 10 + 25

        assert stats["co2_chart_data"] == [
            {"date": "2024-05", "value": 1.2},
            {"date": "2024-06", "value": 5.0},
        ]
        assert stats["money_chart_data"] == [{"date": "2024-06", "value": 4.0}]

    @pytest.mark.asyncio
    async def test_day_period_buckets_by_date(self, db_session, make_user):
        user = await make_user()
        db_session.add_all([
            _metric(user, "consumed", 1, "2024-06-14", co2=1.0),
            _metric(user, "Consume", 2, "2024-06-14", co2=1.0),
            _metric(user, "consumed", 1, "2024-05-01", co2=1.0),
        ])
        await db_session.flush()

        stats = await dashboard_service.get_dashboard_stats(db_session, user.id, "day", now=NOW)

        assert stats["food_chart_data"] == [{"date": "2024-06-14", "value": 3.0}]

    @pytest.mark.asyncio
    async def test_other_users_are_excluded(self, db_session, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        db_session.add(_metric(bob, "consumed", 1, "2024-06-14", co2=1.0))
        await db_session.flush()

        stats = await dashboard_service.get_dashboard_stats(db_session, alice.id, "month", now=NOW)

        assert stats["summary"]["total_co2_reduced"] == 0
        assert stats["co2_chart_data"] == []
