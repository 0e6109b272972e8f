"""Image checks and pre-processing for analysis uploads.

Validates size, declared MIME type and magic bytes, then downsizes large
images with Pillow before they are sent to the model. Processing failures
fall back to the original bytes.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Optional

from PIL import Image, ImageOps

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------
# Constants
# ------------------------------------------------------------------

DEFAULT_MAX_DIMENSION = 2048
DEFAULT_QUALITY = 85

# Files larger than this are re-compressed even when within the dimension limit.
COMPRESS_THRESHOLD = 1024 * 1024  # 1 MB


@dataclass
class ImageValidation:
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class ProcessedImage:
    """Bytes handed to the model plus what happened to them."""

    content: bytes
    mime_type: str
    width: Optional[int] = None
    height: Optional[int] = None
    was_processed: bool = False
    original_size: int = 0


def sniff_image_type(content: bytes) -> Optional[str]:
    """Return the MIME type implied by the magic bytes, or ``None``."""
    if not content or len(content) < 4:
        return None
    if content[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if content[:4] == b"\x89PNG":
        return "image/png"
    if content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return "image/webp"
    if content[:4] == b"GIF8":
        return "image/gif"
    return None


def validate_image(
    content: bytes,
    content_type: Optional[str],
    *,
    max_file_size: int,
    allowed_types: list[str],
) -> ImageValidation:
    result = ImageValidation()

    if not content:
        result.errors.append("No image file provided")
        return result

    if len(content) > max_file_size:
        result.errors.append(f"File exceeds the size limit ({max_file_size // (1024 * 1024)}MB)")

    if (content_type or "").lower() not in allowed_types:
        result.errors.append(f"Unsupported file type: {content_type}")

    if sniff_image_type(content) is None:
        result.errors.append("File content is not a supported image format")

    return result


def optimize_for_analysis(
    content: bytes,
    content_type: str,
    *,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    quality: int = DEFAULT_QUALITY,
) -> ProcessedImage:
    """Shrink *content* to fit ``max_dimension`` and re-encode large files as JPEG.

    Small images within the limit are passed through untouched.
    """
    try:
        img = Image.open(io.BytesIO(content))
        img = ImageOps.exif_transpose(img)  # auto-orient
        width, height = img.size

        too_large = width > max_dimension or height > max_dimension
        if not too_large and len(content) <= COMPRESS_THRESHOLD:
            return ProcessedImage(
                content=content,
                mime_type=content_type,
                width=width,
                height=height,
                original_size=len(content),
            )

        resized = img.copy()
        resized.thumbnail((max_dimension, max_dimension), Image.LANCZOS)
        if resized.mode not in ("RGB", "L"):
            resized = resized.convert("RGB")

        buf = io.BytesIO()
        resized.save(buf, format="JPEG", quality=quality, optimize=True, progressive=True)
        processed = buf.getvalue()

        logger.info(
            "Optimized image %dx%d -> %dx%d, %d -> %d bytes",
            width,
            height,
            resized.width,
            resized.height,
            len(content),
            len(processed),
        )
        return ProcessedImage(
            content=processed,
            mime_type="image/jpeg",
            width=resized.width,
            height=resized.height,
            was_processed=True,
            original_size=len(content),
        )

    except Exception:
        logger.warning("Failed to optimize image, using original", exc_info=True)
        return ProcessedImage(content=content, mime_type=content_type, original_size=len(content))
