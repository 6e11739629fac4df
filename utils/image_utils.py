"""
Image utilities for the report engine.
Handles decoding, validation, resizing and re-encoding of raster payloads.
"""

import base64
import binascii
import io
import re
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from utils.config import config
from utils.logger import get_logger

logger = get_logger(__name__, component="IMAGE_UTILS")

# Media type, optional parameters (charset=..., name=...), then the base64 marker
DATA_URI_PATTERN = re.compile(
    r"^data:image/[a-zA-Z0-9.+-]+(?:;[a-zA-Z0-9._+-]+=[^;,]*)*;base64,", re.IGNORECASE
)

# Formats every writer (reportlab, openpyxl, python-docx) embeds natively
EMBEDDABLE_FORMATS = ("PNG", "JPEG")


def is_data_uri(value: str) -> bool:
    """Check whether a string is an inline base64 image."""
    return bool(DATA_URI_PATTERN.match(value.strip()))


def decode_data_uri(value: str) -> bytes:
    """
    Decode a ``data:image/...;base64,`` URI into raw bytes.

    Raises:
        ValueError: If the payload is not valid base64
    """
    payload = DATA_URI_PATTERN.sub("", value.strip(), count=1)
    # Line-wrapped (MIME style) payloads
    payload = "".join(payload.split())
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 image payload: {e}") from e


def load_image_bytes(data: bytes) -> Image.Image:
    """
    Open image bytes with Pillow.

    Raises:
        ValueError: If the bytes are empty or not a decodable image
    """
    if not data:
        raise ValueError("Empty image payload")

    try:
        img = Image.open(io.BytesIO(data))
        img.load()  # Force load to catch corrupt images
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Failed to decode image: {e}")

    logger.debug(f"Decoded image: format={img.format}, size={img.size}, mode={img.mode}")
    return img


def get_image_dimensions(data: bytes) -> Tuple[int, int]:
    """Native pixel (width, height) of an encoded image."""
    img = load_image_bytes(data)
    return img.size


def resize_image(
    img: Image.Image,
    max_dimension: Optional[int] = None
) -> Image.Image:
    """
    Resize image to fit within max dimension while preserving aspect ratio.

    Args:
        img: PIL Image
        max_dimension: Maximum width or height (defaults to config)

    Returns:
        Resized PIL Image (or the original if already small enough)
    """
    max_dimension = max_dimension or config.max_image_dimension

    width, height = img.size

    if width <= max_dimension and height <= max_dimension:
        return img

    if width > height:
        new_width = max_dimension
        new_height = max(1, int(height * (max_dimension / width)))
    else:
        new_height = max_dimension
        new_width = max(1, int(width * (max_dimension / height)))

    resized = img.resize((new_width, new_height), Image.Resampling.LANCZOS)
    logger.debug(f"Resized image from {img.size} to {resized.size}")
    return resized


def to_embeddable(data: bytes) -> Tuple[bytes, int, int, str]:
    """
    Normalize an encoded image for embedding in report documents.

    PNG and JPEG payloads within the size limit pass through untouched.
    Anything else (WEBP, GIF, BMP, oversized photos...) is re-encoded to PNG.

    Returns:
        Tuple of (bytes, width, height, format)
    """
    img = load_image_bytes(data)
    fmt = (img.format or "").upper()
    resized = resize_image(img)

    if fmt in EMBEDDABLE_FORMATS and resized is img:
        return data, img.width, img.height, fmt

    if resized.mode not in ("RGB", "RGBA", "L"):
        resized = resized.convert("RGBA")

    buffer = io.BytesIO()
    resized.save(buffer, format="PNG")
    logger.debug(f"Re-encoded {fmt or 'unknown'} image as PNG {resized.size}")
    return buffer.getvalue(), resized.width, resized.height, "PNG"
