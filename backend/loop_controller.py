"""
Loop Controller for Endurance Loop.

Keeps one track's playback inside its loop window. The backend can only be
polled, so the controller runs two independent periodic tasks while the
track plays:

- position poll (LOOP_CHECK_INTERVAL): seeks back to loop start whenever
  the reported position reaches loop end, counting one loop per crossing
- statistics tick (STATS_INTERVAL): adds one elapsed second per tick

The trigger may overshoot loop end by up to one poll interval. Elapsed
time counts seconds spent in the PLAYING state, not backend time, so
buffering stalls are not corrected for.
"""

import logging
from enum import Enum, auto
from typing import Optional

from config import LOOP_CHECK_INTERVAL, STATS_INTERVAL, LOOP_SIGNAL_DURATION
from utils.formatting import format_time
from .errors import BackendUnavailable, InvalidLoopWindow
from .scheduler import TimerHandle

logger = logging.getLogger("EnduranceLoop.LoopController")


class TrackState(Enum):
    """Track playback state."""
    IDLE = auto()       # unbound, or waiting for the backend to load
    READY = auto()
    PLAYING = auto()
    PAUSED = auto()


class LoopController:
    """
    Transport and loop state machine for a single track.

    The controller works on its track's fields directly (window, stats,
    state, backend handle) and owns the track's timers.
    """

    def __init__(self, track, scheduler):
        self.track = track
        self.scheduler = scheduler

        self._poll_timer: Optional[TimerHandle] = None
        self._stats_timer: Optional[TimerHandle] = None
        self._signal_timer: Optional[TimerHandle] = None

        # Cleared when a loop fires; set again once the position reads below
        # loop end. A late seek keeps reporting pre-seek positions.
        self._armed = True

    @property
    def is_running(self) -> bool:
        """True while the periodic tasks are scheduled."""
        return self._poll_timer is not None or self._stats_timer is not None

    def _require_backend(self):
        backend = self.track.backend
        if backend is None or not self.track.is_ready:
            raise BackendUnavailable(f"Track {self.track.id}: player not ready")
        return backend

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    def start(self) -> bool:
        """
        Seek to loop start and play, then begin polling.

        Returns:
            True if playback started, False if the track was already playing

        Raises:
            BackendUnavailable: the player has not reported ready yet
            InvalidLoopWindow: loop end is not after loop start
        """
        track = self.track
        backend = self._require_backend()

        if track.is_playing:
            return False

        start, end = track.loop_start, track.loop_end
        if end <= start:
            raise InvalidLoopWindow(start, end)

        logger.info(f"Track {track.id}: START loop {format_time(start)} -> {format_time(end)}")
        backend.seek_to(start, True)
        backend.play_video()
        track._set_state(TrackState.PLAYING)
        self._armed = True

        self._cancel_periodic()
        self._poll_timer = self.scheduler.call_every(
            LOOP_CHECK_INTERVAL, self.check_loop, name=f"poll:{track.id}")
        self._stats_timer = self.scheduler.call_every(
            STATS_INTERVAL, self.statistics_tick, name=f"stats:{track.id}")
        return True

    def pause(self) -> None:
        """Pause the backend and stop both periodic tasks. Stats are kept."""
        backend = self._require_backend()
        logger.info(f"Track {self.track.id}: PAUSE")
        backend.pause_video()
        self._cancel_periodic()
        self.track._set_state(TrackState.PAUSED)

    def reset(self) -> None:
        """
        Pause, zero the statistics and return to loop start.

        Stats are zeroed even before the backend is ready; the backend
        commands and the PAUSED state need a ready backend.
        """
        track = self.track
        self._cancel_periodic()
        self._clear_signal()

        track.loop_count = 0
        track.elapsed_seconds = 0
        track.last_position = track.loop_start
        self._armed = True
        track._emit('stats_update', track)

        backend = self._require_backend()
        logger.info(f"Track {track.id}: RESET")
        backend.pause_video()
        backend.seek_to(track.loop_start, True)
        track._set_state(TrackState.PAUSED)

    def halt(self) -> None:
        """Stop the periodic tasks without commanding the backend."""
        self._cancel_periodic()

    def destroy(self) -> None:
        """Cancel every timer and release the backend. Safe to call twice."""
        self._cancel_periodic()
        if self._signal_timer is not None:
            self._signal_timer.cancel()
            self._signal_timer = None
        self.track._release_backend()

    # =========================================================================
    # PERIODIC TASKS
    # =========================================================================

    def check_loop(self) -> None:
        """Position poll: seek back to loop start once loop end is reached."""
        track = self.track
        backend = track.backend
        if backend is None or not track.is_playing:
            return

        position = backend.get_current_time()
        start, end = track.loop_start, track.loop_end

        if position < end:
            self._armed = True
        elif end > start and self._armed:
            self._armed = False
            track.loop_count += 1
            backend.seek_to(start, True)
            logger.debug(f"Track {track.id}: LOOP #{track.loop_count} at {position:.3f}s "
                         f"(end={end:.3f}s) -> {start:.3f}s")
            self._raise_signal()
            track._emit('loop', track, track.loop_count)

        track.last_position = position
        track._emit('position_update', track, position)

    def statistics_tick(self) -> None:
        """Stats tick: one more second spent playing."""
        track = self.track
        if not track.is_playing:
            return
        track.elapsed_seconds += 1
        track._emit('stats_update', track)

    def _cancel_periodic(self) -> None:
        if self._poll_timer is not None:
            self._poll_timer.cancel()
            self._poll_timer = None
        if self._stats_timer is not None:
            self._stats_timer.cancel()
            self._stats_timer = None

    # =========================================================================
    # LOOP SIGNAL
    # =========================================================================

    def _raise_signal(self) -> None:
        if self._signal_timer is not None:
            self._signal_timer.cancel()
        self.track.loop_signal = True
        self._signal_timer = self.scheduler.call_later(
            LOOP_SIGNAL_DURATION, self._clear_signal, name=f"signal:{self.track.id}")

    def _clear_signal(self) -> None:
        if self._signal_timer is not None:
            self._signal_timer.cancel()
            self._signal_timer = None
        if self.track.loop_signal:
            self.track.loop_signal = False
            self.track._emit('loop_signal_cleared', self.track)
