"""
EcoPlate Backend — Upload Routes
=================================

    POST /api/v1/upload/image    multipart field "file"
    POST /api/v1/upload/images   multipart field "files" (max 5)
    GET  /uploads/{path}         serves stored images
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import FileResponse

from ecoplate.auth import get_current_user
from ecoplate.exceptions import NotFoundError
from ecoplate.models.user import User
from ecoplate.schemas.common import ErrorResponse
from ecoplate.schemas.upload import ImagesUploadResponse, ImageUploadResponse
from ecoplate.services.image_upload_service import URL_PREFIX, image_upload_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/upload", tags=["Uploads"])
files_router = APIRouter(prefix=URL_PREFIX, tags=["Uploads"])

_UPLOAD_ERRORS = {
    400: {"description": "Missing file, wrong type, too large, or content mismatch", "model": ErrorResponse},
    500: {"description": "Storage failure", "model": ErrorResponse},
}


@router.post(
    "/image",
    response_model=ImageUploadResponse,
    responses=_UPLOAD_ERRORS,
    summary="Upload one listing image",
    description="Accepts JPEG, PNG or WebP up to 5MB. The file content must match its declared type.",
)
async def upload_image(
    file: Optional[UploadFile] = File(default=None),
    user: User = Depends(get_current_user),
) -> ImageUploadResponse:
    image_url = await image_upload_service.upload_product_image(file)
    logger.info("User %d uploaded %s", user.id, image_url)
    return ImageUploadResponse(image_url=image_url, message="Image uploaded successfully")


@router.post("/images", response_model=ImagesUploadResponse, responses=_UPLOAD_ERRORS, summary="Upload several images")
async def upload_images(
    files: Optional[List[UploadFile]] = File(default=None),
    user: User = Depends(get_current_user),
) -> ImagesUploadResponse:
    image_urls = await image_upload_service.upload_product_images(files or [])
    logger.info("User %d uploaded %d images", user.id, len(image_urls))
    return ImagesUploadResponse(
        image_urls=image_urls,
        message=f"{len(image_urls)} images uploaded successfully",
    )


@files_router.get(
    "/{file_path:path}",
    response_class=FileResponse,
    responses={404: {"description": "File not found", "model": ErrorResponse}},
    include_in_schema=False,
)
async def serve_upload(file_path: str) -> FileResponse:
    path = image_upload_service.resolve_url(f"{URL_PREFIX}/{file_path}")
    if path is None or not path.is_file():
        raise NotFoundError(resource="File", resource_id=file_path)
    return FileResponse(path)
