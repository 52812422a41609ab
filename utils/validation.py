"""
Input validation helpers: video references, volumes, time fields.
"""

import re
import math
from typing import Optional

from config import MIN_VOLUME, MAX_VOLUME, VIDEO_ID_LENGTH

_ID_CHARS = r"[A-Za-z0-9_-]"

# Order matters: path-style URLs first, then watch URLs where v= is not the
# first query parameter, then a bare id.
_VIDEO_ID_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/)([^&?/#\s]+)"),
    re.compile(r"youtube\.com/watch\?.*?\bv=([^&#\s]+)"),
    re.compile(rf"^({_ID_CHARS}{{{VIDEO_ID_LENGTH}}})$"),
]

_VALID_ID = re.compile(rf"^{_ID_CHARS}{{{VIDEO_ID_LENGTH}}}$")


def extract_video_id(reference) -> Optional[str]:
    """
    Resolve a video reference to its identifier.

    Accepts full watch URLs, youtu.be short URLs, embed URLs and bare
    11-character ids.

    Returns:
        The id, or None if the reference is not recognised
    """
    if not isinstance(reference, str):
        return None
    text = reference.strip()
    if not text:
        return None

    for pattern in _VIDEO_ID_PATTERNS:
        match = pattern.search(text)
        if match:
            video_id = match.group(1)
            return video_id if _VALID_ID.match(video_id) else None
    return None


def is_number(value) -> bool:
    """True for int/float values, excluding bools and NaN/inf."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def coerce_seconds(value) -> float:
    """
    Read a time field the way a number input does: anything that is not a
    non-negative number becomes 0.
    """
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return 0
    if not is_number(value) or value < 0:
        return 0
    return value


def clamp_volume(value) -> int:
    """Clamp a volume to the 0-100 range (non-numbers become 0)."""
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return MIN_VOLUME
    if not is_number(value):
        return MIN_VOLUME
    return int(max(MIN_VOLUME, min(MAX_VOLUME, math.floor(value))))
