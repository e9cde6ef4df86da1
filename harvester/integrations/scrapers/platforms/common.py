"""Coercion and media-selection helpers shared by the platform normalizers.

Vendor payloads are loosely typed JSON. These helpers read a value and return
``None`` (or an empty collection) when it is missing or malformed, so a bad
optional sub-structure never fails the whole record.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from ..core.models import PostMedia

logger = logging.getLogger(__name__)

TARGET_IMAGE_WIDTH = 1080


def as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def as_str(value: Any) -> Optional[str]:
    """Non-empty string, numbers stringified; anything else is ``None``."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value or None
    return None


def as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    try:
        if isinstance(value, float):
            return int(value)
        if isinstance(value, str):
            return int(float(value.strip()))
    except (ValueError, OverflowError):
        return None
    return None


def as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    return None


def count(value: Any) -> Optional[int]:
    """Non-negative counter or ``None``."""
    number = as_int(value)
    return number if number is not None and number >= 0 else None


def counter(value: Any) -> int:
    """Engagement counter; absent or invalid values count as zero."""
    return count(value) or 0


def edge_count(container: Any) -> Optional[int]:
    """GraphQL-style ``{"count": n}`` edge."""
    return count(as_mapping(container).get("count"))


def first_url(url_list: Any) -> Optional[str]:
    for url in as_list(url_list):
        if isinstance(url, str) and url:
            return url
    return None


def from_unix_seconds(value: Any) -> Optional[datetime]:
    epoch = as_float(value)
    if epoch is None or epoch <= 0:
        return None
    try:
        return datetime.fromtimestamp(epoch, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def seconds(value: Any) -> Optional[float]:
    """Non-negative duration in seconds or ``None``."""
    number = as_float(value)
    return number if number is not None and number >= 0 else None


def millis_to_seconds(value: Any) -> Optional[float]:
    millis = seconds(value)
    return millis / 1000 if millis is not None else None


def _dimensioned(items: Iterable[Any]) -> List[Mapping[str, Any]]:
    return [item for item in items if isinstance(item, Mapping) and as_str(item.get("url"))]


def select_image(candidates: Any, target_width: int = TARGET_IMAGE_WIDTH) -> Optional[PostMedia]:
    """Candidate whose width is closest to ``target_width``; first seen wins ties."""
    best: Optional[Mapping[str, Any]] = None
    best_distance: Optional[int] = None
    for candidate in _dimensioned(as_list(candidates)):
        width = as_int(candidate.get("width"))
        distance = abs(width - target_width) if width is not None else None
        if best is None or (distance is not None and (best_distance is None or distance < best_distance)):
            best, best_distance = candidate, distance
    if best is None:
        return None
    return PostMedia(
        url=best["url"],
        type="image",
        width=as_int(best.get("width")),
        height=as_int(best.get("height")),
    )


def select_video(versions: Any) -> Optional[PostMedia]:
    """Version with the greatest height; first seen wins ties."""
    best: Optional[Mapping[str, Any]] = None
    best_height = -1
    for version in _dimensioned(as_list(versions)):
        height = as_int(version.get("height"))
        score = height if height is not None else -1
        if best is None or score > best_height:
            best, best_height = version, score
    if best is None:
        return None
    return PostMedia(
        url=best["url"],
        type="video",
        width=as_int(best.get("width")),
        height=as_int(best.get("height")),
    )


def items_with_id(items: Sequence[Any], id_field: str, *, platform: str) -> List[Mapping[str, Any]]:
    """Drop list entries that are not objects or carry no id, logging each skip."""
    kept: List[Mapping[str, Any]] = []
    for index, item in enumerate(items):
        if isinstance(item, Mapping) and as_str(item.get(id_field)):
            kept.append(item)
            continue
        logger.warning(
            "Skipping %s post at index %s without %s",
            platform,
            index,
            id_field,
            extra={"event": "normalize.item_skipped", "extra_fields": {"platform": platform, "index": index}},
        )
    return kept
