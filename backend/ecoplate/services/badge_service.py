"""
EcoPlate Backend — Badge Engine
================================

What:  Evaluates a fixed table of badge rules against a user's aggregated
       activity counters and awards any newly satisfied badges.
How:   1. Aggregate the user's sustainability metrics into BadgeMetrics
       2. Walk BADGE_DEFINITIONS in sort order
       3. For each unearned badge whose condition holds: insert user_badges,
          add the badge's bonus to total_points
Who:   Called after every points-affecting action (GamificationService,
       ConsumptionService) and by the EcoBoard badge endpoints.

Counting rules:
    total_actions  = consumed + shared + sold
    total_items    = total_actions + wasted
    waste_reduction_rate = total_actions / total_items * 100   (0 when no items)

Concurrency:
    Two requests can race to award the same badge. The (user_id, badge_id)
    unique constraint rejects the second insert; the loser skips that badge
    inside a SAVEPOINT so the surrounding transaction survives.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ecoplate.models.gamification import Badge, ProductSustainabilityMetric, UserBadge
from ecoplate.services.user_points import (
    ACTION_CONSUMED,
    ACTION_SHARED,
    ACTION_SOLD,
    ACTION_WASTED,
    get_or_create_user_points,
    load_streaks,
    normalize_action_type,
)

logger = logging.getLogger(__name__)


@dataclass
class BadgeMetrics:
    total_consumed: int = 0
    total_wasted: int = 0
    total_shared: int = 0
    total_sold: int = 0
    total_actions: int = 0
    total_items: int = 0
    waste_reduction_rate: float = 0.0
    total_points: int = 0
    current_streak: int = 0
    longest_streak: int = 0


# (current, target, percentage); current is what the EcoBoard displays
Progress = Tuple[float, float, int]


@dataclass(frozen=True)
class BadgeDefinition:
    code: str
    name: str
    description: str
    category: str
    points_awarded: int
    sort_order: int
    condition: Callable[[BadgeMetrics], bool]
    progress: Callable[[BadgeMetrics], Progress]


@dataclass
class AwardedBadge:
    code: str
    name: str
    points_awarded: int


def _percentage(value: float, target: float) -> int:
    return min(100, round(value / target * 100)) if target else 100


def _count_progress(value: float, target: float) -> Progress:
    return min(value, target), target, _percentage(value, target)


def _rate_badge_progress(min_items: int, min_rate: float) -> Callable[[BadgeMetrics], Progress]:
    # Progress is measured in items until enough have been logged, then in rate
    def progress(m: BadgeMetrics) -> Progress:
        if m.total_items < min_items:
            return _count_progress(m.total_items, min_items)
        return min(round(m.waste_reduction_rate), 100), min_rate, _percentage(m.waste_reduction_rate, min_rate)
    return progress


BADGE_DEFINITIONS: List[BadgeDefinition] = [
    # ── Milestones ────────────────────────────────────────────────────────
    BadgeDefinition(
        code="first_action",
        name="First Steps",
        description="Log your first sustainable action",
        category="milestones",
        points_awarded=25,
        sort_order=1,
        condition=lambda m: m.total_actions >= 1,
        progress=lambda m: _count_progress(m.total_actions, 1),
    ),
    BadgeDefinition(
        code="eco_starter",
        name="Eco Starter",
        description="Complete 10 sustainable actions",
        category="milestones",
        points_awarded=50,
        sort_order=2,
        condition=lambda m: m.total_actions >= 10,
        progress=lambda m: _count_progress(m.total_actions, 10),
    ),
    BadgeDefinition(
        code="eco_enthusiast",
        name="Eco Enthusiast",
        description="Complete 50 sustainable actions",
        category="milestones",
        points_awarded=100,
        sort_order=3,
        condition=lambda m: m.total_actions >= 50,
        progress=lambda m: _count_progress(m.total_actions, 50),
    ),
    BadgeDefinition(
        code="eco_champion",
        name="Eco Champion",
        description="Complete 100 sustainable actions",
        category="milestones",
        points_awarded=200,
        sort_order=4,
        condition=lambda m: m.total_actions >= 100,
        progress=lambda m: _count_progress(m.total_actions, 100),
    ),
    # ── Waste reduction ───────────────────────────────────────────────────
    BadgeDefinition(
        code="first_consume",
        name="Clean Plate",
        description="Consume your first item before it goes to waste",
        category="waste-reduction",
        points_awarded=25,
        sort_order=5,
        condition=lambda m: m.total_consumed >= 1,
        progress=lambda m: _count_progress(m.total_consumed, 1),
    ),
    BadgeDefinition(
        code="mindful_eater",
        name="Mindful Eater",
        description="Consume 25 items",
        category="waste-reduction",
        points_awarded=75,
        sort_order=6,
        condition=lambda m: m.total_consumed >= 25,
        progress=lambda m: _count_progress(m.total_consumed, 25),
    ),
    BadgeDefinition(
        code="waste_warrior",
        name="Waste Warrior",
        description="Keep an 80% waste reduction rate over at least 20 items",
        category="waste-reduction",
        points_awarded=100,
        sort_order=7,
        condition=lambda m: m.waste_reduction_rate >= 80 and m.total_items >= 20,
        progress=_rate_badge_progress(20, 80),
    ),
    BadgeDefinition(
        code="zero_waste_hero",
        name="Zero Waste Hero",
        description="Keep a 95% waste reduction rate over at least 50 items",
        category="waste-reduction",
        points_awarded=250,
        sort_order=8,
        condition=lambda m: m.waste_reduction_rate >= 95 and m.total_items >= 50,
        progress=_rate_badge_progress(50, 95),
    ),
    # ── Sharing ───────────────────────────────────────────────────────────
    BadgeDefinition(
        code="first_sale",
        name="First Sale",
        description="Sell your first item on the marketplace",
        category="sharing",
        points_awarded=25,
        sort_order=9,
        condition=lambda m: m.total_sold >= 1,
        progress=lambda m: _count_progress(m.total_sold, 1),
    ),
    BadgeDefinition(
        code="generous_neighbor",
        name="Generous Neighbor",
        description="Share 5 items with others",
        category="sharing",
        points_awarded=50,
        sort_order=10,
        condition=lambda m: m.total_shared >= 5,
        progress=lambda m: _count_progress(m.total_shared, 5),
    ),
    BadgeDefinition(
        code="marketplace_pro",
        name="Marketplace Pro",
        description="Sell 10 items on the marketplace",
        category="sharing",
        points_awarded=100,
        sort_order=11,
        condition=lambda m: m.total_sold >= 10,
        progress=lambda m: _count_progress(m.total_sold, 10),
    ),
    # ── Streaks ───────────────────────────────────────────────────────────
    BadgeDefinition(
        code="streak_3",
        name="On a Roll",
        description="Log sustainable actions 3 days in a row",
        category="streaks",
        points_awarded=30,
        sort_order=12,
        condition=lambda m: m.longest_streak >= 3,
        progress=lambda m: _count_progress(m.longest_streak, 3),
    ),
    BadgeDefinition(
        code="streak_7",
        name="Week Warrior",
        description="Log sustainable actions 7 days in a row",
        category="streaks",
        points_awarded=75,
        sort_order=13,
        condition=lambda m: m.longest_streak >= 7,
        progress=lambda m: _count_progress(m.longest_streak, 7),
    ),
    BadgeDefinition(
        code="streak_30",
        name="Habit Master",
        description="Log sustainable actions 30 days in a row",
        category="streaks",
        points_awarded=300,
        sort_order=14,
        condition=lambda m: m.longest_streak >= 30,
        progress=lambda m: _count_progress(m.longest_streak, 30),
    ),
]

BADGES_BY_CODE: Dict[str, BadgeDefinition] = {b.code: b for b in BADGE_DEFINITIONS}


class BadgeService:
    """Badge metrics, catalogue sync, awarding and progress reporting."""

    async def get_user_badge_metrics(self, db: AsyncSession, user_id: int) -> BadgeMetrics:
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

        total_actions = counts[ACTION_CONSUMED] + counts[ACTION_SHARED] + counts[ACTION_SOLD]
        total_items = total_actions + counts[ACTION_WASTED]
        rate = (total_actions / total_items * 100) if total_items > 0 else 0.0

        points = await get_or_create_user_points(db, user_id)
        current_streak, longest_streak = await load_streaks(db, user_id)

        return BadgeMetrics(
            total_consumed=counts[ACTION_CONSUMED],
            total_wasted=counts[ACTION_WASTED],
            total_shared=counts[ACTION_SHARED],
            total_sold=counts[ACTION_SOLD],
            total_actions=total_actions,
            total_items=total_items,
            waste_reduction_rate=rate,
            total_points=points.total_points,
            current_streak=current_streak,
            longest_streak=max(longest_streak, points.current_streak),
        )

    async def sync_badge_catalogue(self, db: AsyncSession) -> Dict[str, Badge]:
        """
        Make sure every BADGE_DEFINITIONS entry has a `badges` row and that
        names/points match the code table. Returns badges keyed by code.
        """
        result = await db.execute(select(Badge))
        existing = {badge.code: badge for badge in result.scalars().all()}

        changed = False
        for definition in BADGE_DEFINITIONS:
            badge = existing.get(definition.code)
            if badge is None:
                badge = Badge(code=definition.code)
                db.add(badge)
                existing[definition.code] = badge
                changed = True
            for attr in ("name", "description", "category", "points_awarded", "sort_order"):
                value = getattr(definition, attr)
                if getattr(badge, attr) != value:
                    setattr(badge, attr, value)
                    changed = True

        if changed:
            await db.flush()
            logger.info("Badge catalogue synchronised (%d badges)", len(BADGE_DEFINITIONS))
        return existing

    async def get_earned_badge_ids(self, db: AsyncSession, user_id: int) -> Dict[int, UserBadge]:
        result = await db.execute(select(UserBadge).where(UserBadge.user_id == user_id))
        return {ub.badge_id: ub for ub in result.scalars().all()}

    async def check_and_award_badges(self, db: AsyncSession, user_id: int) -> List[AwardedBadge]:
        """
        Award every badge whose condition the user now satisfies.

        Returns only the badges awarded by this call; bonus points are added
        to the user's total in the same transaction.
        """
        catalogue = await self.sync_badge_catalogue(db)
        earned = await self.get_earned_badge_ids(db, user_id)
        metrics = await self.get_user_badge_metrics(db, user_id)

        awarded: List[AwardedBadge] = []
        for definition in BADGE_DEFINITIONS:
            badge = catalogue[definition.code]
            if badge.id in earned or not definition.condition(metrics):
                continue

            try:
                async with db.begin_nested():
                    db.add(UserBadge(user_id=user_id, badge_id=badge.id))
            except IntegrityError:
                logger.info(
                    "Badge %s already awarded to user %d by a concurrent request",
                    definition.code,
                    user_id,
                )
                continue

            awarded.append(
                AwardedBadge(
                    code=definition.code,
                    name=definition.name,
                    points_awarded=definition.points_awarded,
                )
            )

        if awarded:
            bonus = sum(b.points_awarded for b in awarded)
            points = await get_or_create_user_points(db, user_id)
            points.total_points += bonus
            await db.flush()
            logger.info(
                "User %d earned badges %s (+%d points)",
                user_id,
                ", ".join(b.code for b in awarded),
                bonus,
            )
        return awarded

    async def get_badge_progress(self, db: AsyncSession, user_id: int) -> Dict[str, Dict[str, float]]:
        """
        {code: {current, target, percentage}}. Counts are capped at the target;
        in the rate phase current is the rounded rate (max 100). percentage is
        rounded and capped at 100.
        """
        metrics = await self.get_user_badge_metrics(db, user_id)
        return {
            definition.code: self._progress_entry(definition, metrics)
            for definition in BADGE_DEFINITIONS
        }

    async def list_badges_for_user(self, db: AsyncSession, user_id: int) -> List[dict]:
        """Full catalogue with earned flag, earned_at and progress for the EcoBoard."""
        catalogue = await self.sync_badge_catalogue(db)
        earned = await self.get_earned_badge_ids(db, user_id)
        metrics = await self.get_user_badge_metrics(db, user_id)

        items = []
        for definition in BADGE_DEFINITIONS:
            badge = catalogue[definition.code]
            user_badge = earned.get(badge.id)
            items.append({
                "code": definition.code,
                "name": definition.name,
                "description": definition.description,
                "category": definition.category,
                "points_awarded": definition.points_awarded,
                "sort_order": definition.sort_order,
                "badge_image_url": badge.badge_image_url,
                "earned": user_badge is not None,
                "earned_at": user_badge.earned_at if user_badge else None,
                "progress": self._progress_entry(definition, metrics),
            })
        return items

    @staticmethod
    def _progress_entry(definition: BadgeDefinition, metrics: BadgeMetrics) -> Dict[str, float]:
        current, target, percentage = definition.progress(metrics)
        return {"current": current, "target": target, "percentage": percentage}


badge_service = BadgeService()
