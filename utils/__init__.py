"""
Utility functions for Endurance Loop.
"""

from .formatting import format_time, format_clock, parse_time, split_minutes
from .validation import extract_video_id, clamp_volume

__all__ = [
    'format_time',
    'format_clock',
    'parse_time',
    'split_minutes',
    'extract_video_id',
    'clamp_volume',
]
