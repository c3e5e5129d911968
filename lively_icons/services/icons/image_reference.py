"""
Validation for reference images uploaded for image-to-icon generation.
"""

from dataclasses import dataclass, field
import struct
from typing import List, Optional, Tuple

ALLOWED_MIME_TYPES = ("image/png", "image/jpeg", "image/svg+xml", "image/webp")

MAX_FILE_SIZE = 5 * 1024 * 1024
MIN_DIMENSION = 64
MAX_DIMENSION = 4096

_PNG_SIGNATURE = b"\x89PNG"

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/svg+xml": "svg",
    "image/webp": "webp",
}


@dataclass
class ImageValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


def get_png_dimensions(data: bytes) -> Optional[Tuple[int, int]]:
    """Width and height from the IHDR chunk (bytes 16-24, big-endian)."""
    if len(data) < 24 or data[:4] != _PNG_SIGNATURE:
        return None
    width, height = struct.unpack(">II", data[16:24])
    return width, height


def validate_image_dimensions(data: bytes, content_type: str) -> ImageValidationResult:
    """Only PNG headers are inspected; other formats pass."""
    errors: List[str] = []
    if content_type == "image/png":
        dimensions = get_png_dimensions(data)
        if dimensions:
            width, height = dimensions
            if width < MIN_DIMENSION or height < MIN_DIMENSION:
                errors.append(
                    f"Image too small: {width}x{height}. Minimum is {MIN_DIMENSION}x{MIN_DIMENSION}."
                )
            if width > MAX_DIMENSION or height > MAX_DIMENSION:
                errors.append(
                    f"Image too large: {width}x{height}. Maximum is {MAX_DIMENSION}x{MAX_DIMENSION}."
                )
    return ImageValidationResult(not errors, errors)


def validate_reference_image(data: bytes, content_type: str) -> ImageValidationResult:
    errors: List[str] = []
    if content_type not in ALLOWED_MIME_TYPES:
        errors.append(f"Invalid file type: {content_type}. Allowed types: PNG, JPG, SVG, WebP.")
    if len(data) > MAX_FILE_SIZE:
        errors.append(
            f"File too large: {len(data) / 1024 / 1024:.1f}MB. Maximum size is 5MB."
        )
    if not data:
        errors.append("File is empty.")
    if not errors:
        errors.extend(validate_image_dimensions(data, content_type).errors)
    return ImageValidationResult(not errors, errors)


def get_extension_from_mime(content_type: str) -> str:
    return _EXTENSIONS.get(content_type, "bin")


def get_reference_image_key(user_id: str, icon_id: str, content_type: str) -> str:
    return f"references/{user_id}/{icon_id}.{get_extension_from_mime(content_type)}"
