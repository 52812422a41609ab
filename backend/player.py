"""
Playback backend contract for Endurance Loop.

The embedded video player is an external collaborator. The core only ever:
- asks it for the current position and the duration
- sends it fire-and-forget commands (seek, play, pause, volume, destroy)
- receives asynchronous ready / state-change notifications

PlaybackBackend and PlayerFactory describe that contract. SimulatedPlayer
implements it on the scheduler clock so the whole system runs headless
(CLI, tests, the web remote) without a real player.
"""

import logging
from enum import Enum, auto
from typing import Callable, Optional

from config import SIMULATED_VIDEO_DURATION, SIMULATED_LOAD_DELAY

logger = logging.getLogger("EnduranceLoop.Player")


class PlayerState(Enum):
    """Backend states the core distinguishes. Everything else is OTHER."""
    PLAYING = auto()
    PAUSED = auto()
    OTHER = auto()

    @classmethod
    def from_code(cls, code) -> "PlayerState":
        """Map the embedded player's numeric state (1 playing, 2 paused)."""
        if code == 1:
            return cls.PLAYING
        if code == 2:
            return cls.PAUSED
        return cls.OTHER


class PlaybackBackend:
    """
    Handle to one embedded player instance.

    Commands are fire-and-forget: the player applies them asynchronously
    and only position queries return data.
    """

    def get_current_time(self) -> float:
        raise NotImplementedError

    def get_duration(self) -> float:
        raise NotImplementedError

    def seek_to(self, seconds: float, allow_seek_ahead: bool = True) -> None:
        raise NotImplementedError

    def play_video(self) -> None:
        raise NotImplementedError

    def pause_video(self) -> None:
        raise NotImplementedError

    def set_volume(self, volume: int) -> None:
        raise NotImplementedError

    def destroy(self) -> None:
        raise NotImplementedError


class PlayerFactory:
    """Creates backends. on_ready() and on_state_change(PlayerState) fire later."""

    def create(self, container_ref: str, video_id: str,
               on_ready: Callable[[], None],
               on_state_change: Callable[[PlayerState], None]) -> PlaybackBackend:
        raise NotImplementedError


# =============================================================================
# SIMULATED PLAYER
# =============================================================================

class SimulatedPlayer(PlaybackBackend):
    """
    Clock-driven stand-in for an embedded player.

    Position is tracked the same way a streaming transport does it: an
    offset plus the time elapsed since playback (re)started, clamped to
    the video duration. Notifications are delivered through the scheduler
    so they arrive asynchronously, like a real player's events.
    """

    def __init__(self, scheduler, video_id: str, on_ready: Callable, on_state_change: Callable,
                 duration: float = SIMULATED_VIDEO_DURATION, load_delay: float = SIMULATED_LOAD_DELAY):
        self.scheduler = scheduler
        self.video_id = video_id
        self.duration = duration
        self._on_ready = on_ready
        self._on_state_change = on_state_change

        self.offset = 0.0
        self.started_at: Optional[float] = None
        self.volume = 100
        self.destroyed = False
        self.ready = False

        self._ready_timer = scheduler.call_later(load_delay, self._become_ready,
                                                 name=f"ready:{video_id}")

    def _become_ready(self) -> None:
        if self.destroyed:
            return
        self.ready = True
        logger.debug(f"Simulated player {self.video_id} ready ({self.duration:.1f}s)")
        self._on_ready()

    def _notify(self, state: PlayerState) -> None:
        if not self.destroyed:
            self.scheduler.call_later(0, self._deliver_state, state)

    def _deliver_state(self, state: PlayerState) -> None:
        if not self.destroyed:
            self._on_state_change(state)

    @property
    def is_playing(self) -> bool:
        return self.started_at is not None

    def get_current_time(self) -> float:
        if self.started_at is None:
            return self.offset
        return min(self.offset + (self.scheduler.now() - self.started_at), self.duration)

    def get_duration(self) -> float:
        return self.duration

    def seek_to(self, seconds: float, allow_seek_ahead: bool = True) -> None:
        if self.destroyed:
            return
        self.offset = max(0.0, min(seconds, self.duration))
        if self.started_at is not None:
            self.started_at = self.scheduler.now()

    def play_video(self) -> None:
        if self.destroyed or self.started_at is not None:
            return
        self.started_at = self.scheduler.now()
        self._notify(PlayerState.PLAYING)

    def pause_video(self) -> None:
        if self.destroyed:
            return
        if self.started_at is not None:
            self.offset = self.get_current_time()
            self.started_at = None
        self._notify(PlayerState.PAUSED)

    def set_volume(self, volume: int) -> None:
        if not self.destroyed:
            self.volume = volume

    def destroy(self) -> None:
        if self.destroyed:
            return
        self.destroyed = True
        self.started_at = None
        self._ready_timer.cancel()


class SimulatedPlayerFactory(PlayerFactory):
    """Factory handing out SimulatedPlayers bound to one scheduler."""

    def __init__(self, scheduler, duration: float = SIMULATED_VIDEO_DURATION,
                 load_delay: float = SIMULATED_LOAD_DELAY):
        self.scheduler = scheduler
        self.duration = duration
        self.load_delay = load_delay

    def create(self, container_ref, video_id, on_ready, on_state_change):
        logger.info(f"Creating simulated player for {video_id} in {container_ref}")
        return SimulatedPlayer(self.scheduler, video_id, on_ready, on_state_change,
                               duration=self.duration, load_delay=self.load_delay)
