"""
Session: the ordered registry of tracks plus master transport and volume.

Tracks are kept in creation (or import) order. Ids come from a counter
that only grows, so a removed track's id is never handed out again.
Only clear() (used by import) starts the numbering over.

Master operations reach every track in order. A track that fails (for
example an empty loop window on start) is reported and skipped; the
remaining tracks still get the command.

Available Events:
- 'track_added': (track)
- 'track_removed': (track_id)
- 'tracks_changed': (tracks_list)
- 'master_volume_changed': (master_volume)
- 'notify': (message, kind)  kind is one of info/success/warn/error
"""

import logging
from typing import Callable, Dict, Iterator, List, Optional

from config import DEFAULT_MASTER_VOLUME
from utils.validation import extract_video_id, clamp_volume
from .errors import EnduranceError, InvalidReference
from .events import EventEmitter
from .player import PlayerFactory
from .track import Track, TrackConfig

logger = logging.getLogger("EnduranceLoop.Session")


class Session(EventEmitter):
    """
    Track registry.

    Args:
        scheduler: Timeline shared by every track
        player_factory: Backend factory handed to every track
        master_volume: Initial master volume (0-100)
    """

    def __init__(self, scheduler, player_factory: PlayerFactory,
                 master_volume: int = DEFAULT_MASTER_VOLUME):
        self._init_events([
            'track_added', 'track_removed', 'tracks_changed',
            'master_volume_changed', 'notify',
        ])
        self.scheduler = scheduler
        self.player_factory = player_factory
        self.master_volume: int = clamp_volume(master_volume)
        self.tracks: List[Track] = []
        self.next_id: int = 1

        logger.info("Session initialized")

    def __len__(self) -> int:
        return len(self.tracks)

    def __iter__(self) -> Iterator[Track]:
        return iter(list(self.tracks))

    # =========================================================================
    # REGISTRY
    # =========================================================================

    def add_track(self, config: Optional[TrackConfig] = None) -> Track:
        """
        Create a track, optionally pre-populated, and append it.

        Raises:
            InvalidReference: config names a video that cannot be resolved;
                no id is consumed and nothing is added
        """
        if config is not None and config.video_ref and not extract_video_id(config.video_ref):
            raise InvalidReference(config.video_ref)

        track = Track(self.next_id, self.scheduler, self.player_factory,
                      master_volume=lambda: self.master_volume)
        self.next_id += 1

        if config is not None:
            track.apply_config(config)
            if config.video_ref:
                track.bind(config.video_ref)

        self.tracks.append(track)
        logger.info(f"Added track {track.id} ({len(self.tracks)} total)")
        self._emit('track_added', track)
        self._emit('tracks_changed', self.tracks)
        return track

    def get_track(self, track_id: int) -> Optional[Track]:
        for track in self.tracks:
            if track.id == track_id:
                return track
        return None

    def remove_track(self, track_id: int) -> bool:
        """Destroy and remove a track. Unknown ids are ignored."""
        track = self.get_track(track_id)
        if track is None:
            return False

        track.destroy()
        self.tracks.remove(track)
        logger.info(f"Removed track {track_id}")
        self._emit('track_removed', track_id)
        self._emit('tracks_changed', self.tracks)
        return True

    def clear(self) -> None:
        """Destroy every track and restart id numbering at 1."""
        for track in self.tracks:
            track.destroy()
        self.tracks = []
        self.next_id = 1
        logger.info("Session cleared")
        self._emit('tracks_changed', self.tracks)

    # =========================================================================
    # MASTER CONTROLS
    # =========================================================================

    def _broadcast(self, label: str, action: Callable[[Track], object]) -> Dict[int, Exception]:
        """Run action on every track in order, collecting per-track errors."""
        failures: Dict[int, Exception] = {}
        for track in list(self.tracks):
            try:
                action(track)
            except EnduranceError as e:
                logger.warning(f"{label}: track {track.id} failed: {e}")
                failures[track.id] = e
            except Exception as e:
                logger.exception(f"{label}: track {track.id} player error: {e}")
                failures[track.id] = e

        if failures:
            ids = ", ".join(str(i) for i in failures)
            self.notify(f"{label}: {len(failures)} track(s) skipped ({ids})", "warn")
        return failures

    def start_all(self) -> Dict[int, Exception]:
        """
        Start every track.

        Returns:
            Map of track id -> error for tracks that could not start
        """
        logger.info(f"MASTER: START ({len(self.tracks)} tracks)")
        return self._broadcast("Start all", lambda t: t.start())

    def pause_all(self) -> Dict[int, Exception]:
        logger.info(f"MASTER: PAUSE ({len(self.tracks)} tracks)")
        return self._broadcast("Pause all", lambda t: t.pause())

    def reset_all(self) -> Dict[int, Exception]:
        logger.info(f"MASTER: RESET ({len(self.tracks)} tracks)")
        return self._broadcast("Reset all", lambda t: t.reset())

    def set_master_volume(self, volume) -> int:
        """Set master volume and push new effective volumes to every track."""
        self.master_volume = clamp_volume(volume)
        logger.debug(f"MASTER: volume {self.master_volume}")
        self._broadcast("Master volume", lambda t: t.apply_volume())
        self._emit('master_volume_changed', self.master_volume)
        return self.master_volume

    def set_all_mv_visibility(self, visible: bool) -> None:
        self._broadcast("Video visibility", lambda t: t.set_mv_visibility(visible))

    # =========================================================================
    # STATE
    # =========================================================================

    def snapshot(self) -> dict:
        """Plain-dict state of the whole session (web monitor)."""
        return {
            'master_volume': self.master_volume,
            'next_id': self.next_id,
            'tracks': [track.snapshot() for track in self.tracks],
        }

    def notify(self, message: str, kind: str = "info") -> None:
        """Pass a user-facing message to whoever shows notifications."""
        self._emit('notify', message, kind)
