"""
EcoPlate Backend — Upload File Helpers
=======================================

What:  Filename generation and image validation for user uploads.
How:   Validation runs cheapest-first: size → declared MIME type →
       extension → magic bytes (the first bytes of the file must match a
       known image signature, and agree with the declared type).

Magic byte signatures:
    JPEG  FF D8 FF
    PNG   89 50 4E 47
    GIF   47 49 46 38            ("GIF8")
    WEBP  52 49 46 46 ?? ?? ?? ?? 57 45 42 50   ("RIFF....WEBP")
"""

import secrets
import time
from dataclasses import dataclass
from typing import Optional

ALLOWED_IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp"})
ALLOWED_IMAGE_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})

DEFAULT_MAX_IMAGE_SIZE = 5 * 1024 * 1024

# Declared MIME type → the magic-byte type it must match
MIME_TO_IMAGE_TYPE = {
    "image/jpeg": "jpeg",
    "image/jpg": "jpeg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


@dataclass
class ImageValidationResult:
    valid: bool
    error: Optional[str] = None
    detected_type: Optional[str] = None


def generate_secure_random(num_bytes: int = 16) -> str:
    """Cryptographically secure random hex string (2 characters per byte)."""
    return secrets.token_hex(num_bytes)


def get_file_extension(filename: str) -> str:
    """
    Lower-case extension without the dot.

    "PHOTO.JPG" → "jpg", "noextension" → "bin", "file." → ""
    """
    if "." not in filename:
        return "bin"
    return filename.rsplit(".", 1)[1].lower()


def generate_secure_filename(user_id: int, original_filename: str, prefix: Optional[str] = None) -> str:
    """
    Unguessable storage name: "[prefix-]{user_id}-{epoch_ms}-{32 hex}.{ext}".
    Nothing from the original name but its extension is kept.
    """
    ext = get_file_extension(original_filename) or "bin"
    timestamp = int(time.time() * 1000)
    name = f"{user_id}-{timestamp}-{generate_secure_random(16)}.{ext}"
    return f"{prefix}-{name}" if prefix else name


def is_allowed_image_extension(filename: str) -> bool:
    return get_file_extension(filename) in ALLOWED_IMAGE_EXTENSIONS


def is_allowed_image_mime_type(mime_type: str) -> bool:
    return mime_type in ALLOWED_IMAGE_MIME_TYPES


def validate_image_magic_bytes(data: bytes) -> Optional[str]:
    """Detect the image type from its leading bytes; None when unknown or too short."""
    if len(data) >= 3 and data[:3] == b"\xff\xd8\xff":
        return "jpeg"
    if len(data) >= 4:
        if data[:4] == b"\x89PNG":
            return "png"
        if data[:4] == b"GIF8":
            return "gif"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    return None


def validate_image_file(
    data: bytes,
    filename: str,
    content_type: Optional[str],
    max_size: int = DEFAULT_MAX_IMAGE_SIZE,
) -> ImageValidationResult:
    """Run every upload check and report the first failure."""
    if len(data) > max_size:
        max_mb = max_size / (1024 * 1024)
        return ImageValidationResult(
            valid=False,
            error=f"File size exceeds maximum of {max_mb:g}MB",
        )

    if not content_type or not is_allowed_image_mime_type(content_type):
        return ImageValidationResult(
            valid=False,
            error="Only JPEG, PNG, GIF, and WebP images are allowed",
        )

    if not is_allowed_image_extension(filename):
        return ImageValidationResult(valid=False, error="Invalid file extension")

    detected = validate_image_magic_bytes(data)
    if detected is None:
        return ImageValidationResult(
            valid=False,
            error="File content does not match an allowed image type",
        )
    if MIME_TO_IMAGE_TYPE.get(content_type) != detected:
        return ImageValidationResult(
            valid=False,
            error="File content does not match declared type",
        )

    return ImageValidationResult(valid=True, detected_type=detected)


def sanitize_filename(filename: str) -> str:
    """Strip path separators, NUL bytes and '..' sequences from a client filename."""
    cleaned = filename.replace("/", "").replace("\\", "").replace("\x00", "")
    while ".." in cleaned:
        cleaned = cleaned.replace("..", "")
    return cleaned
