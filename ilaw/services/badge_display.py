# ilaw/services/badge_display.py
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional

from ilaw.utils.config import settings
from ilaw.utils.timeutils import parse_timestamp, to_epoch_ms

# Checked in order; earned-badge payloads arrive in either casing
AWARDED_AT_FIELDS = ("awardedAt", "awarded_at", "createdAt", "created_at")


def _field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def best_available_timestamp(badge: Any) -> int:
    """
    Epoch milliseconds of when a badge was earned, taken from the first
    timestamp field that is present and readable. 0 when none is.
    """
    for name in AWARDED_AT_FIELDS:
        value = _field(badge, name)
        if parse_timestamp(value) is not None:
            return to_epoch_ms(value)
    return 0


def order_badges_for_display(badges: Iterable[Any]) -> List[Any]:
    """Newest first. Badges with equal timestamps keep their incoming order."""
    return sorted(badges, key=best_available_timestamp, reverse=True)


def badge_icon_url(badge: Any, cloud_name: Optional[str] = None, width: Optional[int] = None) -> Optional[str]:
    """
    A direct icon URL when the badge has one, otherwise a square Cloudinary
    rendition of its public id (needs a cloud name), otherwise None.
    """
    if not badge:
        return None
    direct = _field(badge, "iconUrl") or _field(badge, "icon_url")
    if direct:
        return direct

    cloud_name = cloud_name if cloud_name is not None else settings.cloudinary_cloud_name
    width = width or settings.badge_icon_width
    public_id = _field(badge, "iconPublicId") or _field(badge, "icon_public_id")
    if public_id and cloud_name:
        return f"https://res.cloudinary.com/{cloud_name}/image/upload/c_fill,w_{width},h_{width},q_auto,f_auto/{public_id}"
    return None
