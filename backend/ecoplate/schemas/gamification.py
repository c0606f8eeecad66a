"""
EcoPlate Backend — EcoBoard Schemas
====================================
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class AwardedBadgeResponse(BaseModel):
    code: str
    name: str
    points_awarded: int


class TransactionItem(BaseModel):
    id: int
    type: str
    product_id: Optional[int] = None
    quantity: float
    points: int
    date: str = Field(description="YYYY-MM-DD")


class PointsResponse(BaseModel):
    total_points: int
    current_streak: int
    longest_streak: int
    total_co2_saved: float
    recent_transactions: List[TransactionItem] = Field(default_factory=list)


class MetricsResponse(BaseModel):
    total_items_consumed: int
    total_items_wasted: int
    total_items_shared: int
    total_items_sold: int
    total_items: int
    waste_reduction_rate: float = Field(description="Percent of items kept out of the bin")
    estimated_co2_saved: float
    estimated_money_saved: float


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    name: str
    avatar_url: Optional[str] = None
    points: int
    streak: int


class LeaderboardResponse(BaseModel):
    leaderboard: List[LeaderboardEntry]


class BadgeProgress(BaseModel):
    current: float
    target: float
    percentage: int


class BadgeItem(BaseModel):
    code: str
    name: str
    description: str
    category: str
    points_awarded: int
    sort_order: int
    badge_image_url: Optional[str] = None
    earned: bool
    earned_at: Optional[datetime] = None
    progress: BadgeProgress


class BadgesResponse(BaseModel):
    badges: List[BadgeItem]
    total_earned: int
    total_available: int


class BadgeProgressResponse(BaseModel):
    progress: Dict[str, BadgeProgress]
