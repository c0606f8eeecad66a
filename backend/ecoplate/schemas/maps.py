"""EcoPlate Backend — Maps Proxy Schemas"""

from typing import List, Optional

from pydantic import BaseModel, Field


class AutocompleteRequest(BaseModel):
    query: str = Field(default="", max_length=200)
    country: Optional[str] = Field(default="sg", min_length=2, max_length=2)


class Prediction(BaseModel):
    place_id: str
    description: str
    main_text: str
    secondary_text: str


class AutocompleteResponse(BaseModel):
    predictions: List[Prediction]


class PlaceDetailsRequest(BaseModel):
    place_id: str = Field(default="", max_length=500)


class PlaceDetailsResponse(BaseModel):
    address: str
    latitude: float
    longitude: float
