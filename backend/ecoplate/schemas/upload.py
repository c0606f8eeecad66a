"""EcoPlate Backend — Upload Schemas"""

from typing import List

from pydantic import BaseModel


class ImageUploadResponse(BaseModel):
    image_url: str
    message: str = "Image uploaded successfully"


class ImagesUploadResponse(BaseModel):
    image_urls: List[str]
    message: str
