"""
EcoPlate Backend — Image Upload Service Tests
==============================================

Uses a per-test temporary upload root; FastAPI UploadFile objects are
built over in-memory buffers.
"""

import io
import os

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from ecoplate.exceptions import ValidationError
from ecoplate.services.image_upload_service import ImageUploadService

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _upload(content: bytes, filename: str = "photo.jpg", content_type: str = "image/jpeg") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


class TestValidation:

    def setup_method(self):
        self.service = ImageUploadService(upload_root="/tmp/ecoplate-unused", max_size=1024)

    def test_accepts_matching_jpeg(self, sample_image_bytes):
        assert self.service.validate(sample_image_bytes, "image/jpeg") == "jpg"
        assert self.service.validate(sample_image_bytes, "image/jpg") == "jpg"
        assert self.service.validate(PNG_BYTES, "image/png") == "png"

    def test_rejects_disallowed_type(self, sample_image_bytes):
        with pytest.raises(ValidationError, match="Invalid file type"):
            self.service.validate(sample_image_bytes, "image/gif")
        with pytest.raises(ValidationError, match="Invalid file type"):
            self.service.validate(sample_image_bytes, None)

    def test_rejects_oversized(self):
        with pytest.raises(ValidationError, match="File too large"):
            self.service.validate(b"\xff\xd8\xff" + b"\x00" * 2048, "image/jpeg")

    def test_rejects_spoofed_content(self, sample_image_bytes):
        with pytest.raises(ValidationError, match="does not match declared type"):
            self.service.validate(sample_image_bytes, "image/png")
        with pytest.raises(ValidationError, match="does not match declared type"):
            self.service.validate(b"<?php echo 1; ?>", "image/jpeg")


class TestStorage:

    @pytest.mark.asyncio
    async def test_single_upload_written_to_marketplace_dir(self, temp_storage, sample_image_bytes):
        service = ImageUploadService(upload_root=temp_storage)
        service.initialize_upload_dir()

        url = await service.upload_product_image(_upload(sample_image_bytes))

        assert url.startswith("/uploads/marketplace/")
        assert url.endswith(".jpg")
        path = service.resolve_url(url)
        assert path.parent == service.marketplace_dir
        with open(path, "rb") as f:
            assert f.read() == sample_image_bytes

    @pytest.mark.asyncio
    async def test_missing_file(self, temp_storage):
        service = ImageUploadService(upload_root=temp_storage)
        with pytest.raises(ValidationError, match="No file provided"):
            await service.upload_product_image(None)

    @pytest.mark.asyncio
    async def test_oversized_upload_read_stops_past_limit(self, temp_storage):
        service = ImageUploadService(upload_root=temp_storage, max_size=1024)
        upload = _upload(b"\xff\xd8\xff" + b"\x00" * 64 * 1024)

        with pytest.raises(ValidationError, match="File too large") as exc_info:
            await service.upload_product_image(upload)

        assert exc_info.value.context["size"] == 1025
        assert upload.file.tell() == 1025

    @pytest.mark.asyncio
    async def test_oversized_file_in_batch_rejected(self, temp_storage, sample_image_bytes):
        service = ImageUploadService(upload_root=temp_storage, max_size=1024)
        service.initialize_upload_dir()
        big = _upload(b"\xff\xd8\xff" + b"\x00" * 4096, "big.jpg")

        with pytest.raises(ValidationError, match="File too large"):
            await service.upload_product_images([_upload(sample_image_bytes), big])
        assert big.file.tell() == 1025
        assert os.listdir(service.marketplace_dir) == []

    @pytest.mark.asyncio
    async def test_batch_is_all_or_nothing(self, temp_storage, sample_image_bytes):
        service = ImageUploadService(upload_root=temp_storage)
        service.initialize_upload_dir()

        files = [_upload(sample_image_bytes), _upload(b"not an image", "notes.png", "image/png")]
        with pytest.raises(ValidationError):
            await service.upload_product_images(files)
        assert os.listdir(service.marketplace_dir) == []

    @pytest.mark.asyncio
    async def test_batch_limit(self, temp_storage, sample_image_bytes):
        service = ImageUploadService(upload_root=temp_storage)
        files = [_upload(sample_image_bytes) for _ in range(service.max_files + 1)]

        with pytest.raises(ValidationError, match=f"Maximum {service.max_files} images allowed"):
            await service.upload_product_images(files)

    @pytest.mark.asyncio
    async def test_batch_upload(self, temp_storage, sample_image_bytes):
        service = ImageUploadService(upload_root=temp_storage)
        urls = await service.upload_product_images([_upload(sample_image_bytes), _upload(PNG_BYTES, "b.png", "image/png")])

        assert len(urls) == 2
        assert len(set(urls)) == 2
        assert urls[1].endswith(".png")


class TestResolveAndDelete:

    def test_resolve_rejects_external_and_traversal(self, temp_storage):
        service = ImageUploadService(upload_root=temp_storage)

        assert service.resolve_url("https://cdn.example.com/a.jpg") is None
        assert service.resolve_url("/uploads/../../etc/passwd") is None
        assert service.resolve_url("") is None
        assert service.resolve_url("/uploads/marketplace/a.jpg") == service.marketplace_dir / "a.jpg"

    @pytest.mark.asyncio
    async def test_delete_images(self, temp_storage, sample_image_bytes):
        service = ImageUploadService(upload_root=temp_storage)
        url = await service.upload_product_image(_upload(sample_image_bytes))

        deleted = await service.delete_images([url, "/uploads/marketplace/missing.jpg", "https://x/y.jpg"])

        assert deleted == 1
        assert not service.resolve_url(url).exists()
        assert await service.delete_image(url) is False
