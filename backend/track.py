"""
Track: one independently looping video.

A track bundles the loop window (minute + second fields, fractions
allowed), volume / mute / video visibility, the playback statistics and
the backend handle, and hands transport work to its LoopController.

The backend handle can be recreated at any time (re-binding to another
video) without touching the window, volume, mute or statistics.

Available Events (register with track.on(event, callback)):
- 'state_change': (track, TrackState)
- 'ready': (track, duration)
- 'backend_state_change': (track, PlayerState)
- 'loop': (track, loop_count)
- 'loop_signal_cleared': (track)
- 'position_update': (track, position)
- 'stats_update': (track)
- 'loop_window_changed': (track, loop_start, loop_end)
- 'volume_changed': (track, effective_volume)
- 'mv_visibility_changed': (track, visible)
- 'bound': (track, video_id)
- 'destroyed': (track)
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from config import (
    DEFAULT_LOOP_END_CAP, DEFAULT_TRACK_VOLUME, DEFAULT_MASTER_VOLUME,
    PLAYER_CONTAINER_PREFIX, WATCH_URL_TEMPLATE, LOOP_CHECK_INTERVAL,
)
from utils.formatting import split_minutes, format_duration
from utils.validation import extract_video_id, coerce_seconds, clamp_volume
from .errors import InvalidReference, BackendUnavailable
from .events import EventEmitter
from .loop_controller import LoopController, TrackState
from .mixer import effective_volume
from .player import PlayerState, PlaybackBackend, PlayerFactory

logger = logging.getLogger("EnduranceLoop.Track")


@dataclass
class TrackConfig:
    """
    Portable configuration of one track (what an import document carries).

    video_ref may be empty for a track that is not bound to a video yet.
    Stats are None when the document did not include them.
    """
    video_ref: str = ""
    start_min: float = 0
    start_sec: float = 0
    end_min: float = 0
    end_sec: float = 0
    volume: int = DEFAULT_TRACK_VOLUME
    muted: bool = False
    show_mv: bool = True
    loop_count: Optional[int] = None
    elapsed_seconds: Optional[int] = None


class Track(EventEmitter):
    """
    One playback unit with its own loop window, volume and backend.

    Args:
        track_id: Unique id assigned by the session
        scheduler: Timeline the controller schedules its tasks on
        player_factory: Creates the playback backend on bind()
        master_volume: Callable returning the current master volume
    """

    def __init__(self, track_id: int, scheduler, player_factory: PlayerFactory,
                 master_volume: Callable[[], int] = lambda: DEFAULT_MASTER_VOLUME):
        self._init_events([
            'state_change', 'ready', 'backend_state_change', 'loop',
            'loop_signal_cleared', 'position_update', 'stats_update',
            'loop_window_changed', 'volume_changed', 'mv_visibility_changed',
            'bound', 'destroyed',
        ])
        self.id = track_id
        self.scheduler = scheduler
        self._player_factory = player_factory
        self._master_volume = master_volume

        # Video
        self.video_id: str = ""
        self.video_url: str = ""
        self.container_ref = f"{PLAYER_CONTAINER_PREFIX}{track_id}"

        # Loop window (minute + second fields, like the input form)
        self.start_min: float = 0
        self.start_sec: float = 0
        self.end_min: float = 0
        self.end_sec: float = 0

        # Mix
        self.volume: int = DEFAULT_TRACK_VOLUME
        self.muted: bool = False
        self.show_mv: bool = True

        # Statistics
        self.loop_count: int = 0
        self.elapsed_seconds: int = 0
        self.last_position: float = 0.0
        self.loop_signal: bool = False

        # Playback
        self.state = TrackState.IDLE
        self.backend: Optional[PlaybackBackend] = None
        self.backend_state = PlayerState.OTHER
        self.destroyed = False
        self._generation = 0

        self.controller = LoopController(self, scheduler)

    # =========================================================================
    # DERIVED VALUES
    # =========================================================================

    @property
    def loop_start(self) -> float:
        return self.start_min * 60 + self.start_sec

    @property
    def loop_end(self) -> float:
        return self.end_min * 60 + self.end_sec

    @property
    def loop_duration(self) -> float:
        return self.loop_end - self.loop_start

    @property
    def is_bound(self) -> bool:
        return self.backend is not None

    @property
    def is_ready(self) -> bool:
        return self.backend is not None and self.state != TrackState.IDLE

    @property
    def is_playing(self) -> bool:
        return self.state == TrackState.PLAYING

    @property
    def effective_volume(self) -> int:
        return effective_volume(self, self._master_volume())

    # =========================================================================
    # BINDING
    # =========================================================================

    def bind(self, reference: str) -> Optional[str]:
        """
        Point this track at a video, (re)creating its backend.

        Args:
            reference: Watch / short / embed URL or bare video id

        Returns:
            The resolved video id, or None if the track was already destroyed

        Raises:
            InvalidReference: nothing was changed
        """
        if self.destroyed:
            logger.warning(f"Track {self.id}: ignoring bind after destroy")
            return None

        video_id = extract_video_id(reference)
        if not video_id:
            raise InvalidReference(reference)

        logger.info(f"Track {self.id}: binding to video {video_id}")
        self.controller.halt()
        self._release_backend()

        self.video_id = video_id
        self.video_url = reference.strip()
        self._set_state(TrackState.IDLE)

        self._generation += 1
        generation = self._generation
        self.backend = self._player_factory.create(
            self.container_ref, video_id,
            lambda: self._on_backend_ready(generation),
            lambda state: self._on_backend_state_change(generation, state),
        )
        self._emit('bound', self, video_id)
        return video_id

    @property
    def watch_url(self) -> str:
        """Reference to export: the URL as entered, else a canonical one."""
        if self.video_url:
            return self.video_url
        if self.video_id:
            return WATCH_URL_TEMPLATE.format(video_id=self.video_id)
        return ""

    def _on_backend_ready(self, generation: int) -> None:
        if generation != self._generation or self.backend is None:
            logger.debug(f"Track {self.id}: ignoring ready from a replaced player")
            return

        duration = self.backend.get_duration()
        if self.loop_end == 0:
            default_end = int(min(DEFAULT_LOOP_END_CAP, duration))
            self.end_min, self.end_sec = divmod(default_end, 60)
            logger.info(f"Track {self.id}: loop end defaulted to {default_end}s")
            self._emit('loop_window_changed', self, self.loop_start, self.loop_end)

        self._set_state(TrackState.READY)
        self.apply_volume()
        logger.info(f"Track {self.id}: player ready ({format_duration(duration)})")
        self._emit('ready', self, duration)

    def _on_backend_state_change(self, generation: int, state: PlayerState) -> None:
        if generation != self._generation:
            return
        self.backend_state = state
        self._emit('backend_state_change', self, state)

    def _release_backend(self) -> None:
        """Destroy the backend handle, tolerating one that is already gone."""
        backend, self.backend = self.backend, None
        self._generation += 1
        if backend is None:
            return
        try:
            backend.destroy()
        except Exception as e:
            logger.warning(f"Track {self.id}: player destroy failed: {e}")

    def _set_state(self, state: TrackState) -> None:
        if self.state != state:
            self.state = state
            self._emit('state_change', self, state)

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    def start(self) -> bool:
        """
        Start looping from loop start.

        Returns:
            True if playback started. False if the player is not ready yet
            (silently ignored) or the track is already playing.

        Raises:
            InvalidLoopWindow: loop end is not after loop start
        """
        try:
            return self.controller.start()
        except BackendUnavailable as e:
            logger.debug(f"Ignoring start: {e}")
            return False

    def pause(self) -> bool:
        try:
            self.controller.pause()
            return True
        except BackendUnavailable as e:
            logger.debug(f"Ignoring pause: {e}")
            return False

    def reset(self) -> bool:
        """Zero the statistics and park at loop start (paused)."""
        try:
            self.controller.reset()
            return True
        except BackendUnavailable as e:
            logger.debug(f"Reset without player: {e}")
            return False

    def destroy(self) -> None:
        """Tear down timers and backend. Idempotent."""
        if self.destroyed:
            return
        self.controller.destroy()
        self.destroyed = True
        self._set_state(TrackState.IDLE)
        logger.info(f"Track {self.id}: destroyed")
        self._emit('destroyed', self)

    # =========================================================================
    # LOOP WINDOW
    # =========================================================================

    def set_loop_window(self, start_min=None, start_sec=None, end_min=None, end_sec=None) -> None:
        """
        Update any of the four window fields. None leaves a field unchanged.

        The window is not validated here; start() rejects an empty one.
        """
        if start_min is not None:
            self.start_min = coerce_seconds(start_min)
        if start_sec is not None:
            self.start_sec = coerce_seconds(start_sec)
        if end_min is not None:
            self.end_min = coerce_seconds(end_min)
        if end_sec is not None:
            self.end_sec = coerce_seconds(end_sec)
        self._window_changed()

    def set_loop_start(self, seconds: float) -> None:
        self.start_min, self.start_sec = split_minutes(coerce_seconds(seconds))
        self._window_changed()

    def set_loop_end(self, seconds: float) -> None:
        self.end_min, self.end_sec = split_minutes(coerce_seconds(seconds))
        self._window_changed()

    def set_start_from_current(self) -> bool:
        """Copy the current position (whole seconds) into loop start."""
        if not self.is_ready:
            return False
        self.set_loop_start(int(self.backend.get_current_time()))
        return True

    def set_end_from_current(self) -> bool:
        """Copy the current position (whole seconds) into loop end."""
        if not self.is_ready:
            return False
        self.set_loop_end(int(self.backend.get_current_time()))
        return True

    def _window_changed(self) -> None:
        start, end = self.loop_start, self.loop_end
        if not (float(start).is_integer() and float(end).is_integer()):
            logger.debug(f"Track {self.id}: window {start}-{end} is finer than the "
                         f"{LOOP_CHECK_INTERVAL}s poll interval")
        self._emit('loop_window_changed', self, start, end)

    # =========================================================================
    # VOLUME / VISIBILITY
    # =========================================================================

    def set_volume(self, volume) -> None:
        self.volume = clamp_volume(volume)
        self.apply_volume()

    def set_muted(self, muted: bool) -> None:
        self.muted = bool(muted)
        self.apply_volume()

    def toggle_mute(self) -> bool:
        """Flip mute. Returns the new mute state."""
        self.set_muted(not self.muted)
        return self.muted

    def apply_volume(self) -> int:
        """Recompute the effective volume and push it to a ready backend."""
        value = self.effective_volume
        if self.is_ready:
            self.backend.set_volume(value)
        self._emit('volume_changed', self, value)
        return value

    def set_mv_visibility(self, visible: bool) -> None:
        self.show_mv = bool(visible)
        self._emit('mv_visibility_changed', self, self.show_mv)

    # =========================================================================
    # CONFIG
    # =========================================================================

    def apply_config(self, config: TrackConfig) -> None:
        """
        Pre-populate a freshly created track. Binding is left to the caller.
        """
        self.start_min = coerce_seconds(config.start_min)
        self.start_sec = coerce_seconds(config.start_sec)
        self.end_min = coerce_seconds(config.end_min)
        self.end_sec = coerce_seconds(config.end_sec)
        self.volume = clamp_volume(config.volume)
        self.muted = bool(config.muted)
        self.show_mv = bool(config.show_mv)
        if config.loop_count is not None:
            self.loop_count = config.loop_count
        if config.elapsed_seconds is not None:
            self.elapsed_seconds = config.elapsed_seconds

    def snapshot(self) -> dict:
        """Plain-dict view for the web monitor."""
        return {
            'id': self.id,
            'video_id': self.video_id,
            'url': self.watch_url,
            'state': self.state.name.lower(),
            'backend_state': self.backend_state.name.lower(),
            'loop_start': self.loop_start,
            'loop_end': self.loop_end,
            'loop_count': self.loop_count,
            'elapsed_seconds': self.elapsed_seconds,
            'position': self.last_position,
            'looping': self.loop_signal,
            'volume': self.volume,
            'muted': self.muted,
            'effective_volume': self.effective_volume,
            'show_mv': self.show_mv,
        }

    def __repr__(self):
        return (f"<Track {self.id} {self.video_id or '-'} {self.state.name} "
                f"{self.loop_start:g}-{self.loop_end:g}s loops={self.loop_count}>")
