"""
Volume mixer: per-track volume scaled by master volume, zeroed when muted.

Effective volume is always computed from its inputs, never stored.
"""

import math

from config import MIN_VOLUME, MAX_VOLUME


def effective_volume(track, master_volume: int) -> int:
    """
    Volume to send to a track's backend.

    Args:
        track: Anything with .volume and .muted
        master_volume: Session master volume (0-100)

    Returns:
        0 if muted, else floor(volume * master / 100) clamped to 0-100
    """
    if track.muted:
        return 0
    value = math.floor(track.volume * master_volume / 100)
    return max(MIN_VOLUME, min(MAX_VOLUME, value))
