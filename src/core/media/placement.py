"""
Storage placement: orientation buckets and object key generation.
"""

import base64
import secrets
from typing import Optional

from .models import Geometry

LANDSCAPE_RATIO = "16:9"
PORTRAIT_RATIO = "9:16"

THUMBNAIL_PREFIX = "thumbnails/"

# 32 bytes -> 43 url-safe characters once the padding is dropped
KEY_ENTROPY_BYTES = 32

_PREFIXES = {
    Geometry.LANDSCAPE: "landscape/",
    Geometry.PORTRAIT: "portrait/",
    Geometry.OTHER: "other/",
}


def classify_aspect_ratio(aspect_ratio: Optional[str]) -> Geometry:
    """Map a display aspect ratio string to an orientation bucket."""
    if aspect_ratio == LANDSCAPE_RATIO:
        return Geometry.LANDSCAPE
    if aspect_ratio == PORTRAIT_RATIO:
        return Geometry.PORTRAIT
    return Geometry.OTHER


def placement_prefix(geometry: Geometry) -> str:
    return _PREFIXES[geometry]


def prefix_for_aspect_ratio(aspect_ratio: Optional[str]) -> str:
    return placement_prefix(classify_aspect_ratio(aspect_ratio))


def random_object_id(num_bytes: int = KEY_ENTROPY_BYTES) -> str:
    """URL-safe random identifier, no padding, safe in a key without escaping."""
    raw = secrets.token_bytes(num_bytes)
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def build_object_key(prefix: str, extension: str) -> str:
    """
    Build "<prefix><random id>.<extension>".

    e.g. build_object_key("portrait/", "mp4") -> "portrait/3q2-...Xw.mp4"
    """
    return f"{prefix}{random_object_id()}.{extension.lstrip('.')}"
