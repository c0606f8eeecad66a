"""
EcoPlate Backend — Marketplace Image Upload Service
====================================================

What:  Validates, stores and deletes listing photos.
How:   Declared MIME type → size → magic bytes, then an async write with
       aiofiles to {upload_root}/marketplace/{epoch_ms}-{uuid}.{ext}.
Who:   /api/v1/upload routes; the listing DELETE route after its commit.

Returned URLs are relative to the API host:
    /uploads/marketplace/1718000000000-0b6c...e1.jpg

Storage layout:
    uploads/
    └── marketplace/
        ├── 1718000000000-0b6c8f0e-....jpg
        └── 1718000004211-77d1a2b4-....png
"""

import logging
import time
import uuid
from pathlib import Path
from typing import Iterable, List, Optional

import aiofiles
from fastapi import UploadFile

from ecoplate.config import settings
from ecoplate.exceptions import FileStorageError, ValidationError
from ecoplate.utils.file_utils import MIME_TO_IMAGE_TYPE, validate_image_magic_bytes

logger = logging.getLogger(__name__)

ALLOWED_UPLOAD_MIME_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")

MIME_TO_EXTENSION = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}

URL_PREFIX = "/uploads"
MARKETPLACE_DIR = "marketplace"


class ImageUploadService:
    """Local-disk storage for marketplace images."""

    def __init__(self, upload_root: Optional[str] = None, max_size: Optional[int] = None):
        self.upload_root = Path(upload_root or settings.upload_root).resolve()
        self.max_size = max_size or settings.max_image_size
        self.max_files = settings.max_images_per_request

    @property
    def marketplace_dir(self) -> Path:
        return self.upload_root / MARKETPLACE_DIR

    def initialize_upload_dir(self) -> None:
        """Create uploads/marketplace; idempotent, called at startup."""
        try:
            self.marketplace_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Could not create upload directory %s: %s", self.marketplace_dir, str(e))
            raise FileStorageError(
                message="Upload directory is not writable",
                context={"path": str(self.marketplace_dir)},
            )
        logger.info("Upload directory ready at %s", self.marketplace_dir)

    def validate(self, content: bytes, content_type: Optional[str]) -> str:
        """
        Check one upload and return the file extension to store it under.

        Raises:
            ValidationError with the user-facing reason.
        """
        if content_type not in ALLOWED_UPLOAD_MIME_TYPES:
            raise ValidationError(
                message=f"Invalid file type. Allowed: {', '.join(ALLOWED_UPLOAD_MIME_TYPES)}",
                field="file",
                context={"content_type": content_type},
            )

        if len(content) > self.max_size:
            max_mb = self.max_size / (1024 * 1024)
            raise ValidationError(
                message=f"File too large (max {max_mb:g}MB)",
                field="file",
                context={"size": len(content)},
            )

        detected = validate_image_magic_bytes(content)
        if detected is None or detected != MIME_TO_IMAGE_TYPE[content_type]:
            raise ValidationError(
                message="File content does not match declared type",
                field="file",
                context={"declared": content_type, "detected": detected},
            )

        return MIME_TO_EXTENSION[content_type]

    def _new_filename(self, extension: str) -> str:
        return f"{int(time.time() * 1000)}-{uuid.uuid4()}.{extension}"

    async def _read_bounded(self, file: UploadFile) -> bytes:
        # One byte past the limit is enough for validate() to reject it
        return await file.read(self.max_size + 1)

    async def store(self, content: bytes, extension: str) -> str:
        """Write validated bytes to disk and return the public URL."""
        filename = self._new_filename(extension)
        path = self.marketplace_dir / filename

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store image at %s: %s", path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"os_error": str(e)},
            )

        logger.info("Image stored: %s (%d bytes)", filename, len(content))
        return f"{URL_PREFIX}/{MARKETPLACE_DIR}/{filename}"

    async def upload_product_image(self, file: Optional[UploadFile]) -> str:
        if file is None or not file.filename:
            raise ValidationError(message="No file provided", field="file")

        content = await self._read_bounded(file)
        extension = self.validate(content, file.content_type)
        return await self.store(content, extension)

    async def upload_product_images(self, files: List[UploadFile]) -> List[str]:
        """
        Validate every file before writing any of them, so a bad file in the
        batch leaves nothing behind.
        """
        if not files:
            raise ValidationError(message="No file provided", field="files")
        if len(files) > self.max_files:
            raise ValidationError(
                message=f"Maximum {self.max_files} images allowed",
                field="files",
                context={"count": len(files)},
            )

        validated = []
        for file in files:
            if file is None or not file.filename:
                raise ValidationError(message="No file provided", field="files")
            content = await self._read_bounded(file)
            validated.append((content, self.validate(content, file.content_type)))

        return [await self.store(content, ext) for content, ext in validated]

    def resolve_url(self, image_url: str) -> Optional[Path]:
        """
        Map an /uploads/... URL back to a path inside upload_root.
        Returns None for external URLs or anything escaping the root.
        """
        if not image_url or image_url.startswith(("http://", "https://")):
            return None

        relative = image_url
        if relative.startswith(URL_PREFIX + "/"):
            relative = relative[len(URL_PREFIX) + 1:]
        relative = relative.lstrip("/")

        candidate = (self.upload_root / relative).resolve()
        if not candidate.is_relative_to(self.upload_root):
            logger.warning("Refusing path outside upload root: %s", image_url)
            return None
        return candidate

    async def delete_image(self, image_url: str) -> bool:
        """Remove a stored image; returns False when there was nothing to delete."""
        path = self.resolve_url(image_url)
        if path is None or not path.is_file():
            return False
        try:
            path.unlink()
        except OSError as e:
            logger.warning("Failed to delete image %s: %s", path.name, str(e))
            return False
        logger.info("Deleted image: %s", path.name)
        return True

    async def delete_images(self, image_urls: Iterable[str]) -> int:
        deleted = 0
        for url in image_urls or []:
            if await self.delete_image(url):
                deleted += 1
        return deleted


# ── Singleton Instance ────────────────────────────────────────────────────
image_upload_service = ImageUploadService()
