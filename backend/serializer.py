"""
Session Serializer: session state <-> portable JSON config document.

Two document forms exist:

Multi-track form (a list, one entry per track):
    {"url", "videoId", "startMin", "startSec", "endMin", "endSec",
     "showMv", "volume", "isMuted"}          (+ "stats" on request)

Single-track form (one object):
    {"videoId", "videoUrl", "startTime", "endTime", "loopDuration",
     "stats": {"loopCount", "totalSeconds"}, "createdAt"}

Export reads track config only and never touches a backend. Import
validates the whole document before changing anything, so a malformed
document leaves the session exactly as it was.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from config import EXPORT_JSON_INDENT, WATCH_URL_TEMPLATE
from utils.formatting import split_minutes
from utils.validation import extract_video_id, is_number, clamp_volume
from .errors import DocumentParseError
from .track import Track, TrackConfig

logger = logging.getLogger("EnduranceLoop.Serializer")

# Alternative spellings accepted on import
_ALIASES = {
    'videoId': ('videoId', 'videoReference'),
    'videoUrl': ('videoUrl', 'videoUrlOrId'),
    'startTime': ('startTime', 'startTimeSeconds'),
    'endTime': ('endTime', 'endTimeSeconds'),
}


# =============================================================================
# EXPORT
# =============================================================================

def _stats_dict(track: Track) -> Dict[str, int]:
    return {'loopCount': track.loop_count, 'totalSeconds': track.elapsed_seconds}


def export_entry(track: Track, include_stats: bool = False) -> Dict[str, Any]:
    """One multi-track entry."""
    entry = {
        'url': track.watch_url,
        'videoId': track.video_id,
        'startMin': track.start_min,
        'startSec': track.start_sec,
        'endMin': track.end_min,
        'endSec': track.end_sec,
        'showMv': track.show_mv,
        'volume': track.volume,
        'isMuted': track.muted,
    }
    if include_stats:
        entry['stats'] = _stats_dict(track)
    return entry


def export_session(session, include_stats: bool = False) -> List[Dict[str, Any]]:
    """
    Export every track, in session order, in the multi-track form.

    Args:
        session: Session to read
        include_stats: Also write each track's loop count and elapsed time
    """
    return [export_entry(track, include_stats) for track in session.tracks]


def export_track(track: Track, include_stats: bool = True) -> Dict[str, Any]:
    """Export one track in the single-track form."""
    document = {
        'videoId': track.video_id,
        'videoUrl': track.watch_url,
        'startTime': track.loop_start,
        'endTime': track.loop_end,
        'loopDuration': track.loop_duration,
    }
    if include_stats:
        document['stats'] = _stats_dict(track)
    document['createdAt'] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return document


def dumps(document) -> str:
    """Pretty JSON text of a document."""
    return json.dumps(document, indent=EXPORT_JSON_INDENT, ensure_ascii=False)


# =============================================================================
# IMPORT
# =============================================================================

def _get(data: dict, key: str, default=None):
    for name in _ALIASES.get(key, (key,)):
        if name in data:
            return data[name]
    return default


def _number(data: dict, key: str, where: str, default=0):
    value = _get(data, key)
    if value is None:
        return default
    if isinstance(value, str):
        try:
            value = float(value.strip()) if value.strip() else default
        except ValueError:
            raise DocumentParseError(f"{where}: '{key}' is not a number: {value!r}")
    if not is_number(value) or value < 0:
        raise DocumentParseError(f"{where}: '{key}' must be a non-negative number, got {value!r}")
    return value


def _flag(data: dict, key: str, where: str, default: bool) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise DocumentParseError(f"{where}: '{key}' must be true or false, got {value!r}")
    return value


def _reference(data: dict, where: str, *keys: str) -> str:
    """First non-empty reference among keys; it must resolve to a video id."""
    for key in keys:
        value = _get(data, key)
        if value is None or value == "":
            continue
        if not isinstance(value, str):
            raise DocumentParseError(f"{where}: '{key}' must be a string")
        if not extract_video_id(value):
            raise DocumentParseError(f"{where}: '{key}' is not a valid video URL or id: {value!r}")
        if key == 'videoId':
            # A bare id is normalised to a watch URL
            return WATCH_URL_TEMPLATE.format(video_id=extract_video_id(value))
        return value.strip()
    return ""


def _stats(data: dict, where: str):
    stats = data.get('stats')
    if stats is None:
        return None, None
    if not isinstance(stats, dict):
        raise DocumentParseError(f"{where}: 'stats' must be an object")
    counts = []
    for key in ('loopCount', 'totalSeconds'):
        value = stats.get(key, 0)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise DocumentParseError(f"{where}: stats '{key}' must be a non-negative integer")
        counts.append(value)
    return counts[0], counts[1]


def _parse_entry(data, index: int) -> TrackConfig:
    where = f"track {index + 1}"
    if not isinstance(data, dict):
        raise DocumentParseError(f"{where}: expected an object, got {type(data).__name__}")

    loop_count, elapsed = _stats(data, where)
    volume = _number(data, 'volume', where, default=100)
    return TrackConfig(
        video_ref=_reference(data, where, 'url', 'videoId'),
        start_min=_number(data, 'startMin', where),
        start_sec=_number(data, 'startSec', where),
        end_min=_number(data, 'endMin', where),
        end_sec=_number(data, 'endSec', where),
        volume=clamp_volume(volume),
        muted=_flag(data, 'isMuted', where, False),
        show_mv=_flag(data, 'showMv', where, True),
        loop_count=loop_count,
        elapsed_seconds=elapsed,
    )


def _parse_single(data: dict) -> TrackConfig:
    where = "document"
    known = [name for names in _ALIASES.values() for name in names] + ['stats']
    if not any(key in data for key in known):
        raise DocumentParseError("Object does not look like a config document")
    start_min, start_sec = split_minutes(_number(data, 'startTime', where))
    end_min, end_sec = split_minutes(_number(data, 'endTime', where))
    loop_count, elapsed = _stats(data, where)
    return TrackConfig(
        video_ref=_reference(data, where, 'videoUrl', 'videoId'),
        start_min=start_min,
        start_sec=start_sec,
        end_min=end_min,
        end_sec=end_sec,
        loop_count=loop_count,
        elapsed_seconds=elapsed,
    )


def parse_document(document) -> List[TrackConfig]:
    """
    Validate a config document and turn it into track configs.

    Args:
        document: JSON text, a list (multi-track form) or a dict
            (single-track form)

    Raises:
        DocumentParseError: the document is malformed in any way
    """
    if isinstance(document, (str, bytes)):
        text = document
        if isinstance(document, bytes):
            try:
                text = document.decode('utf-8')
            except UnicodeDecodeError as e:
                raise DocumentParseError(f"Document is not UTF-8 text: {e}")
        if not text.strip():
            raise DocumentParseError("Document is empty")
        try:
            document = json.loads(text)
        except ValueError as e:
            raise DocumentParseError(f"Document is not valid JSON: {e}")

    if isinstance(document, list):
        return [_parse_entry(entry, i) for i, entry in enumerate(document)]
    if isinstance(document, dict):
        return [_parse_single(document)]
    raise DocumentParseError(f"Expected a list or an object, got {type(document).__name__}")


def import_session(document, session) -> List[Track]:
    """
    Replace the session's tracks with the ones described by a document.

    The document is fully validated first. On success every existing track
    is destroyed, id numbering restarts, and one track per entry is added
    in order and bound to its video.

    Raises:
        DocumentParseError: the session was left untouched
    """
    configs = parse_document(document)

    session.clear()
    tracks = [session.add_track(config) for config in configs]
    logger.info(f"Imported {len(tracks)} track(s)")
    session.notify(f"Imported {len(tracks)} track(s)", "success")
    return tracks


def import_session_file(path: str, session) -> List[Track]:
    """Import a document from a JSON file on disk."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            text = f.read()
    except OSError as e:
        raise DocumentParseError(f"Could not read {path}: {e}")
    except UnicodeDecodeError as e:
        raise DocumentParseError(f"{path} is not UTF-8 text: {e}")
    return import_session(text, session)


def export_session_file(path: str, session, include_stats: bool = False) -> str:
    """Write the multi-track document to disk. Returns the path written."""
    with open(path, 'w', encoding='utf-8') as f:
        f.write(dumps(export_session(session, include_stats)))
    logger.info(f"Exported {len(session)} track(s) to {path}")
    return path
