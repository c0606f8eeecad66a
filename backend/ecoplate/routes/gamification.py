"""
EcoPlate Backend — EcoBoard Routes
===================================

Points, streaks, the leaderboard and badges.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ecoplate.auth import get_current_user
from ecoplate.database import get_db_session
from ecoplate.models.user import User
from ecoplate.schemas.gamification import (
    BadgeProgressResponse,
    BadgesResponse,
    LeaderboardResponse,
    MetricsResponse,
    PointsResponse,
)
from ecoplate.services.badge_service import badge_service
from ecoplate.services.gamification_service import gamification_service

router = APIRouter(prefix="/api/v1/gamification", tags=["Gamification"])


@router.get("/points", response_model=PointsResponse, summary="Points, streaks and recent activity")
async def get_points(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> PointsResponse:
    summary = await gamification_service.get_points_summary(db, user.id)
    transactions = await gamification_service.get_recent_transactions(db, user.id)
    return PointsResponse(**summary, recent_transactions=transactions)


@router.get("/metrics", response_model=MetricsResponse, summary="Lifetime sustainability metrics")
async def get_metrics(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MetricsResponse:
    return MetricsResponse(**await gamification_service.get_user_metrics(db, user.id))


@router.get("/leaderboard", response_model=LeaderboardResponse, summary="Top users by points")
async def get_leaderboard(
    limit: int = Query(default=10, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> LeaderboardResponse:
    return LeaderboardResponse(leaderboard=await gamification_service.get_leaderboard(db, limit))


@router.get("/badges", response_model=BadgesResponse, summary="All badges with earned state and progress")
async def get_badges(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> BadgesResponse:
    badges = await badge_service.list_badges_for_user(db, user.id)
    return BadgesResponse(
        badges=badges,
        total_earned=sum(1 for b in badges if b["earned"]),
        total_available=len(badges),
    )


@router.get("/badges/progress", response_model=BadgeProgressResponse, summary="Progress toward every badge")
async def get_badge_progress(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> BadgeProgressResponse:
    return BadgeProgressResponse(progress=await badge_service.get_badge_progress(db, user.id))
