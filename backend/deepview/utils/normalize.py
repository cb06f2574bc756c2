"""
Media payload normalization for streamed chat deltas.

Providers and the gateway describe generated media in several shapes:
    "https://..."                              bare string
    {"image_url": {"url": "https://..."}}      nested (OpenAI content-part style)
    {"url": "https://..."}                     flat object
and a video payload may be a single value instead of a list. This module
resolves all of them to a plain List[str].
"""

import logging
from enum import Enum
from typing import Any, List, Optional, Tuple

logger = logging.getLogger(__name__)


class MediaShape(str, Enum):
    """Accepted shapes of a single media entry."""

    BARE = "bare"  # "https://..."
    NESTED = "nested"  # {"image_url": {"url": ...}} / {"video_url": {"url": ...}}
    FLAT = "flat"  # {"url": ...}
    UNKNOWN = "unknown"


def classify_media_entry(entry: Any, nested_key: str) -> Tuple[MediaShape, Optional[str]]:
    """
    Tag a media entry with its shape and extract its URL.

    Args:
        entry: One element of an images/videos payload
        nested_key: "image_url" or "video_url"

    Returns:
        (shape, url) where url is None for unusable entries
    """
    if isinstance(entry, str):
        return MediaShape.BARE, entry.strip() or None

    if isinstance(entry, dict):
        nested = entry.get(nested_key)
        if isinstance(nested, dict) and isinstance(nested.get("url"), str) and nested["url"]:
            return MediaShape.NESTED, nested["url"]
        if isinstance(entry.get("url"), str) and entry["url"]:
            return MediaShape.FLAT, entry["url"]

    return MediaShape.UNKNOWN, None


def normalize_media_urls(value: Any, nested_key: str = "image_url") -> List[str]:
    """
    Normalize an images/videos payload to a list of URL strings.

    Args:
        value: A list of entries, or a single entry (scalar payload)
        nested_key: "image_url" for images, "video_url" for videos

    Returns:
        List[str] of resolved URLs, order preserved, unusable entries dropped

    Examples:
        >>> normalize_media_urls(["https://a"])
        ["https://a"]

        >>> normalize_media_urls([{"image_url": {"url": "https://a"}}, {"url": "https://b"}])
        ["https://a", "https://b"]

        >>> normalize_media_urls("https://v.mp4", "video_url")
        ["https://v.mp4"]
    """
    if value is None:
        return []

    entries = value if isinstance(value, list) else [value]

    urls: List[str] = []
    dropped = 0
    for entry in entries:
        shape, url = classify_media_entry(entry, nested_key)
        if url:
            urls.append(url)
        else:
            dropped += 1

    if dropped:
        logger.debug(f"{nested_key}: dropped {dropped}/{len(entries)} unrecognized media entries")

    return urls
