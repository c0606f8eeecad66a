"""
EcoPlate Backend — MyFridge Schemas
====================================

The API calls a product's name `name`; the column is `product_name`.
"""

from datetime import date, datetime, timezone
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field

ConsumeAction = Literal["consumed", "wasted", "shared", "sold"]


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    category: Optional[str] = Field(default=None, max_length=100)
    quantity: float = Field(default=1.0, gt=0)
    unit: Optional[str] = Field(default=None, max_length=30)
    unit_price: Optional[float] = Field(default=None, ge=0)
    purchase_date: Optional[date] = None
    description: Optional[str] = Field(default=None, max_length=2000)
    co2_emission: Optional[float] = Field(default=None, ge=0, description="kg CO2e per unit")

    def to_model_fields(self, exclude_unset: bool = False) -> dict:
        data = self.model_dump(exclude_unset=exclude_unset)
        if "name" in data:
            data["product_name"] = data.pop("name")
        if data.get("purchase_date") is not None:
            d = data["purchase_date"]
            data["purchase_date"] = datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
        return data


class ProductUpdate(ProductCreate):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    quantity: Optional[float] = Field(default=None, gt=0)


class ProductResponse(BaseModel):
    id: int
    name: str = Field(validation_alias=AliasChoices("product_name", "name"))
    category: Optional[str] = None
    quantity: float
    unit: Optional[str] = None
    unit_price: Optional[float] = None
    purchase_date: Optional[datetime] = None
    description: Optional[str] = None
    co2_emission: Optional[float] = None
    is_consumed: bool = False
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ConsumeRequest(BaseModel):
    action: ConsumeAction


class ConsumeResponse(BaseModel):
    message: str
    points_awarded: int
    new_total: int
    new_badges: List[dict] = Field(default_factory=list)


class ReceiptScanResponse(BaseModel):
    message: str
    products: List[ProductResponse] = Field(default_factory=list)
