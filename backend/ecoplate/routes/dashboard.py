"""
EcoPlate Backend — Dashboard Routes
====================================

All endpoints accept ?period=day|month|annual (anything else means month).
/co2, /financial and /food are slices of /stats.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ecoplate.auth import get_current_user
from ecoplate.database import get_db_session
from ecoplate.models.user import User
from ecoplate.schemas.dashboard import (
    Co2Response,
    DashboardStatsResponse,
    FinancialResponse,
    FoodResponse,
)
from ecoplate.services.dashboard_service import PERIOD_MONTH, dashboard_service

router = APIRouter(prefix="/api/v1/dashboard", tags=["Dashboard"])

PeriodQuery = Query(default=PERIOD_MONTH, description="day, month or annual")


@router.get("/stats", response_model=DashboardStatsResponse, summary="Impact summary and charts")
async def get_stats(
    period: str = PeriodQuery,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DashboardStatsResponse:
    return DashboardStatsResponse(**await dashboard_service.get_dashboard_stats(db, user.id, period))


@router.get("/co2", response_model=Co2Response)
async def get_co2(
    period: str = PeriodQuery,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> Co2Response:
    stats = await dashboard_service.get_dashboard_stats(db, user.id, period)
    return Co2Response(
        period=stats["period"],
        total_co2_reduced=stats["summary"]["total_co2_reduced"],
        co2_chart_data=stats["co2_chart_data"],
        impact_equivalence=stats["impact_equivalence"],
    )


@router.get("/financial", response_model=FinancialResponse)
async def get_financial(
    period: str = PeriodQuery,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> FinancialResponse:
    stats = await dashboard_service.get_dashboard_stats(db, user.id, period)
    return FinancialResponse(
        period=stats["period"],
        total_money_saved=stats["summary"]["total_money_saved"],
        money_chart_data=stats["money_chart_data"],
    )


@router.get("/food", response_model=FoodResponse)
async def get_food(
    period: str = PeriodQuery,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> FoodResponse:
    stats = await dashboard_service.get_dashboard_stats(db, user.id, period)
    return FoodResponse(
        period=stats["period"],
        total_food_saved=stats["summary"]["total_food_saved"],
        food_chart_data=stats["food_chart_data"],
    )
