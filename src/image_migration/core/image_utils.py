"""Image and key utilities for the image migration pipeline."""

import io
import re
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from PIL import Image, ImageOps

UPLOAD_FORMAT = "JPEG"
UPLOAD_EXTENSION = "jpg"
UPLOAD_CONTENT_TYPE = "image/jpeg"

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def crop_to_aspect(img: Image.Image, aspect_ratio: float) -> Image.Image:
    """Centre-crop an image so that width / height equals ``aspect_ratio``."""
    if aspect_ratio <= 0:
        raise ValueError(f"Invalid aspect ratio: {aspect_ratio}")

    width, height = img.size
    if width == 0 or height == 0:
        return img

    if width / height > aspect_ratio:
        target_size = (max(1, round(height * aspect_ratio)), height)
    else:
        target_size = (width, max(1, round(width / aspect_ratio)))

    if target_size == (width, height):
        return img
    return ImageOps.fit(img, target_size, centering=(0.5, 0.5))


def apply_upload_profile(
    image_bytes: bytes,
    quality: int = 85,
    aspect_ratio: Optional[float] = None,
) -> Tuple[bytes, Dict[str, Any]]:
    """
    Normalise an image before it is uploaded.

    Fixes EXIF orientation, converts to RGB, optionally centre-crops to
    ``aspect_ratio`` and re-encodes as JPEG at ``quality``.

    Args:
        image_bytes: Original encoded image
        quality: JPEG quality (1-100)
        aspect_ratio: Target width / height ratio, or None to keep the original

    Returns:
        Tuple of (encoded bytes, info dict with width, height, format and bytes)
    """
    with Image.open(io.BytesIO(image_bytes)) as original:
        original.load()
        img = ImageOps.exif_transpose(original)

    if img.mode != "RGB":
        img = img.convert("RGB")

    if aspect_ratio:
        img = crop_to_aspect(img, aspect_ratio)

    output = io.BytesIO()
    img.save(output, format=UPLOAD_FORMAT, quality=quality, optimize=True)
    data = output.getvalue()

    return data, {
        "width": img.width,
        "height": img.height,
        "format": UPLOAD_EXTENSION,
        "bytes": len(data),
    }


def _safe_key_part(value: Union[str, int]) -> str:
    cleaned = _UNSAFE_KEY_CHARS.sub("-", str(value)).strip("-")
    if not cleaned:
        raise ValueError(f"Cannot build a remote key from {value!r}")
    return cleaned


def build_remote_key(
    prefix: str,
    property_id: str,
    image_index: int,
    image_id: str,
    extension: str = UPLOAD_EXTENSION,
) -> str:
    """
    Derive the object key for an image.

    The key only depends on the image's identity, so re-running an upload
    overwrites the same object instead of creating a new one.

    Examples:
        >>> build_remote_key("inmobiliaria/properties", "12", 3, "img_7")
        'inmobiliaria/properties/property_12_3_img_7.jpg'
    """
    name = (
        f"property_{_safe_key_part(property_id)}_{int(image_index)}_"
        f"{_safe_key_part(image_id)}.{extension}"
    )
    prefix = prefix.strip("/")
    if prefix:
        return f"{prefix}/{name}"
    return name


def build_remote_url(public_base_url: str, key: str) -> str:
    """Public CDN URL for an object key."""
    if not public_base_url:
        raise ValueError("public_base_url is required to build remote URLs")
    return f"{public_base_url.rstrip('/')}/{key.lstrip('/')}"


def resolve_local_path(local_path: str, image_root: str) -> Path:
    """
    Locate a record's image on disk.

    Site-relative paths such as ``/images/properties/property-1-1.jpg`` live
    under ``image_root``; other absolute paths are used as they are.
    """
    path = Path(local_path)
    root = Path(image_root)
    if path.is_absolute():
        site_relative = root / local_path.lstrip("/")
        if not path.exists() and site_relative.exists():
            return site_relative
        return path
    return root / path


def resolve_image_url(record: Any) -> str:
    """
    URL a page should render for an image record.

    Migrated records are served from the CDN, everything else from the
    local path.
    """
    remote_url = getattr(record, "remote_url", None)
    if remote_url and getattr(record, "migrated", False):
        return remote_url
    return getattr(record, "local_path")


def create_self_test_image(width: int = 64, height: int = 36) -> bytes:
    """Small JPEG used to check that uploads work end to end."""
    img = Image.new("RGB", (width, height), color=(200, 200, 200))
    output = io.BytesIO()
    img.save(output, format=UPLOAD_FORMAT, quality=75)
    return output.getvalue()
