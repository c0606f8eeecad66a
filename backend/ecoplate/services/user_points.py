"""
EcoPlate Backend — Points Ledger Primitives
============================================

What:  Shared building blocks of the gamification layer:
       the per-action point table, action-type normalization, the
       user_points row accessor, and streak calculation.
Who:   Used by GamificationService and BadgeService.
"""

import logging
from datetime import date, timedelta
from typing import Iterable, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ecoplate.models.gamification import ProductSustainabilityMetric, UserPoints
from ecoplate.utils.dates import parse_date_str, utcnow

logger = logging.getLogger(__name__)

ACTION_CONSUMED = "consumed"
ACTION_WASTED = "wasted"
ACTION_SHARED = "shared"
ACTION_SOLD = "sold"

POINT_VALUES = {
    ACTION_CONSUMED: 5,
    ACTION_SHARED: 10,
    ACTION_SOLD: 8,
    ACTION_WASTED: -3,
}

# Actions that keep food out of the bin; they count toward streaks and
# the waste-reduction rate.
POSITIVE_ACTIONS = (ACTION_CONSUMED, ACTION_SHARED, ACTION_SOLD)


def normalize_action_type(raw: Optional[str]) -> Optional[str]:
    """
    Map a stored metric type onto one of the four canonical actions.

    Older rows use "consume"/"Consumed"/"waste"; matching is by prefix and
    case-insensitive. Unknown types map to None.
    """
    if not raw:
        return None
    value = raw.strip().lower()
    if value.startswith("consum"):
        return ACTION_CONSUMED
    if value.startswith("wast"):
        return ACTION_WASTED
    if value.startswith("shar"):
        return ACTION_SHARED
    if value.startswith("sold") or value.startswith("sell"):
        return ACTION_SOLD
    return None


async def get_or_create_user_points(db: AsyncSession, user_id: int) -> UserPoints:
    """Return the user's points row, inserting a zeroed one on first use."""
    result = await db.execute(select(UserPoints).where(UserPoints.user_id == user_id))
    points = result.scalar_one_or_none()
    if points is None:
        points = UserPoints(
            user_id=user_id,
            total_points=0,
            current_streak=0,
            total_co2_saved=0.0,
        )
        db.add(points)
        await db.flush()
        logger.debug("Created user_points row for user %d", user_id)
    return points


def calculate_streaks(action_dates: Iterable[date], today: date) -> Tuple[int, int]:
    """
    Return (current_streak, longest_streak) in days.

    A streak is a run of consecutive calendar days with at least one
    positive action. The current streak is the run ending today, or
    yesterday if nothing has been logged yet today; otherwise it is 0.
    """
    days = sorted(set(action_dates))
    if not days:
        return 0, 0

    longest = 1
    run = 1
    for previous, current in zip(days, days[1:]):
        if current - previous == timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)

    last_day = days[-1]
    if today - last_day > timedelta(days=1):
        return 0, longest

    # `run` is the length of the final run, which ends on last_day
    return run, longest


async def load_streaks(db: AsyncSession, user_id: int, today: Optional[date] = None) -> Tuple[int, int]:
    """Compute (current, longest) streaks from the user's metric history."""
    result = await db.execute(
        select(ProductSustainabilityMetric.today_date, ProductSustainabilityMetric.type)
        .where(ProductSustainabilityMetric.user_id == user_id)
        .distinct()
    )
    action_dates = []
    for day_str, action_type in result.all():
        if normalize_action_type(action_type) not in POSITIVE_ACTIONS:
            continue
        try:
            action_dates.append(parse_date_str(day_str))
        except ValueError:
            logger.warning("Skipping metric with malformed date %r for user %d", day_str, user_id)
    return calculate_streaks(action_dates, today or utcnow().date())
