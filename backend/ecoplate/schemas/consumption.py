"""
EcoPlate Backend — Consumption Schemas
=======================================

Images are sent as base64 strings (a data URL prefix is accepted).
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class IngredientSchema(BaseModel):
    product_id: Optional[int] = None
    product_name: str = Field(min_length=1, max_length=200)
    quantity_used: float = Field(gt=0)
    unit: Optional[str] = Field(default=None, max_length=30)
    category: str = Field(default="other", max_length=100)
    unit_price: float = Field(default=0.0, ge=0)
    co2_emission: Optional[float] = Field(default=None, ge=0)


class WasteItemSchema(BaseModel):
    product_id: Optional[int] = None
    product_name: str = Field(default="", max_length=200)
    quantity_wasted: float = Field(ge=0)


class IdentifyRequest(BaseModel):
    image_base64: str = Field(default="", validate_default=True)

    @field_validator("image_base64")
    @classmethod
    def require_image(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Image is required")
        return v


class IdentifiedIngredient(BaseModel):
    product_id: Optional[int] = None
    name: str
    matched_product_name: str
    estimated_quantity: float
    category: str
    unit_price: float
    co2_emission: float
    confidence: str


class IdentifyResponse(BaseModel):
    ingredients: List[IdentifiedIngredient]


class ConfirmIngredientsRequest(BaseModel):
    ingredients: List[IngredientSchema] = Field(min_length=1)
    raw_photo: Optional[str] = Field(default=None, description="Optional photo kept with the pending record")


class ConfirmIngredientsResponse(BaseModel):
    success: bool
    interaction_ids: List[int]
    new_badges: List[dict] = Field(default_factory=list)
    pending_id: int


class AnalyzeWasteRequest(BaseModel):
    image_base64: str = Field(default="", validate_default=True)
    ingredients: List[IngredientSchema] = Field(default_factory=list, validate_default=True)
    disposal_method: str = "landfill"

    @field_validator("image_base64")
    @classmethod
    def require_image(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Image is required")
        return v

    @field_validator("ingredients")
    @classmethod
    def require_ingredients(cls, v: List[IngredientSchema]) -> List[IngredientSchema]:
        if not v:
            raise ValueError("Ingredients are required")
        return v


class WasteAnalysis(BaseModel):
    waste_items: List[WasteItemSchema]
    overall_observation: str


class WasteMetricItem(BaseModel):
    product_id: Optional[int] = None
    product_name: str
    quantity_used: float
    quantity_wasted: float
    cost: float
    wasted_cost: float
    co2: float
    wasted_co2: float


class WasteMetrics(BaseModel):
    total_cost: float
    wasted_cost: float
    total_co2: float
    wasted_co2: float
    waste_percentage: float
    disposal_method: str
    items: List[WasteMetricItem]


class AnalyzeWasteResponse(BaseModel):
    metrics: WasteMetrics
    waste_analysis: WasteAnalysis


class ConfirmWasteRequest(BaseModel):
    ingredients: List[IngredientSchema] = Field(default_factory=list)
    waste_items: List[WasteItemSchema] = Field(default_factory=list)
    disposal_method: str = "landfill"
    pending_id: Optional[int] = None


class ConfirmWasteResponse(BaseModel):
    success: bool
    metrics: WasteMetrics
    new_badges: List[dict] = Field(default_factory=list)


class PendingRecordResponse(BaseModel):
    id: int
    raw_photo: Optional[str] = None
    ingredients: List[IngredientSchema]
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PendingRecordListResponse(BaseModel):
    records: List[PendingRecordResponse]
