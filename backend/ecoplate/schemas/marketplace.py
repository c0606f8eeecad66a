"""
EcoPlate Backend — Marketplace Schemas
=======================================

pickup_location uses the "address|lat,lng" format understood by
ecoplate.utils.distance; a price of null means the item is free.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class UserSummary(BaseModel):
    id: int
    name: str
    avatar_url: Optional[str] = None

    model_config = {"from_attributes": True}


class ListingCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    category: Optional[str] = Field(default=None, max_length=100)
    quantity: Optional[float] = Field(default=None, gt=0)
    unit: Optional[str] = Field(default=None, max_length=30)
    price: Optional[float] = Field(default=None, ge=0)
    original_price: Optional[float] = Field(default=None, ge=0)
    expiry_date: Optional[datetime] = None
    pickup_location: Optional[str] = Field(default=None, max_length=500)
    images: List[str] = Field(default_factory=list, max_length=5)
    product_id: Optional[int] = None
    co2_saved: Optional[float] = Field(default=None, ge=0)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v


class ListingUpdate(BaseModel):
    """Partial update; only fields present in the body are changed."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    category: Optional[str] = Field(default=None, max_length=100)
    quantity: Optional[float] = Field(default=None, gt=0)
    unit: Optional[str] = Field(default=None, max_length=30)
    price: Optional[float] = Field(default=None, ge=0)
    original_price: Optional[float] = Field(default=None, ge=0)
    expiry_date: Optional[datetime] = None
    pickup_location: Optional[str] = Field(default=None, max_length=500)
    images: Optional[List[str]] = Field(default=None, max_length=5)


class ListingResponse(BaseModel):
    id: int
    seller_id: int
    buyer_id: Optional[int] = None
    product_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    quantity: float
    unit: Optional[str] = None
    price: Optional[float] = None
    original_price: Optional[float] = None
    expiry_date: Optional[datetime] = None
    pickup_location: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    status: str
    created_at: datetime
    completed_at: Optional[datetime] = None
    co2_saved: Optional[float] = None
    seller: Optional[UserSummary] = None
    buyer: Optional[UserSummary] = None
    distance_km: Optional[float] = None

    model_config = {"from_attributes": True}


class ListingListResponse(BaseModel):
    listings: List[ListingResponse]
    total: int
    limit: int
    offset: int


class NearbyListingsResponse(BaseModel):
    listings: List[ListingResponse]
    count: int


class ReserveResponse(BaseModel):
    message: str
    listing: ListingResponse


class CompleteRequest(BaseModel):
    buyer_id: Optional[int] = None


class CompleteResponse(BaseModel):
    message: str
    listing: ListingResponse
    points_awarded: int
    new_total: int
    co2_saved: float
    new_badges: List[dict] = Field(default_factory=list)
