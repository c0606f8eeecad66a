"""
EcoPlate Backend — Dashboard Schemas
=====================================
"""

from typing import List

from pydantic import BaseModel


class ChartPoint(BaseModel):
    date: str
    value: float


class ImpactEquivalence(BaseModel):
    car_km_avoided: float
    trees_planted: float
    electricity_saved: float


class DashboardSummary(BaseModel):
    total_co2_reduced: float
    total_food_saved: float
    total_money_saved: float
    eco_points_earned: int


class DashboardStatsResponse(BaseModel):
    period: str
    summary: DashboardSummary
    co2_chart_data: List[ChartPoint]
    food_chart_data: List[ChartPoint]
    money_chart_data: List[ChartPoint]
    impact_equivalence: ImpactEquivalence


class Co2Response(BaseModel):
    period: str
    total_co2_reduced: float
    co2_chart_data: List[ChartPoint]
    impact_equivalence: ImpactEquivalence


class FinancialResponse(BaseModel):
    period: str
    total_money_saved: float
    money_chart_data: List[ChartPoint]


class FoodResponse(BaseModel):
    period: str
    total_food_saved: float
    food_chart_data: List[ChartPoint]
