"""Shared fixtures: a manual clock, a scheduler on it, and a recording fake player."""

from __future__ import annotations

import pytest

from backend import Scheduler, Session, PlaybackBackend, PlayerFactory, PlayerState

VIDEO_A = "dQw4w9WgXcQ"
VIDEO_B = "9bZkp7q19f0"
VIDEO_C = "kJQP7kiw5Fk"


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def run_for(scheduler: Scheduler, clock: ManualClock, seconds: float, step: float = 0.01) -> None:
    """Advance the clock in small steps, running due timers after each."""
    steps = int(round(seconds / step))
    for _ in range(steps):
        clock.advance(step)
        scheduler.run_pending()


class FakePlayer(PlaybackBackend):
    """
    Records every command. Position comes from a scripted queue of samples
    (each query pops one) or, once the queue is empty, from .position.
    """

    def __init__(self, container_ref, video_id, on_ready, on_state_change, duration=300.0):
        self.container_ref = container_ref
        self.video_id = video_id
        self.on_ready = on_ready
        self.on_state_change = on_state_change
        self.duration = duration
        self.position = 0.0
        self.samples: list[float] = []
        self.calls: list[tuple] = []
        self.volume = None
        self.destroyed = False
        self.fail_on_destroy = False
        # Polls a seek stays invisible for (a real player applies seeks late)
        self.seek_lag = 0
        self._pending_seek = None

    # --- test controls ---

    def fire_ready(self):
        self.on_ready()

    def fire_state(self, state: PlayerState):
        self.on_state_change(state)

    def seeks(self):
        return [c[1] for c in self.calls if c[0] == 'seek_to']

    def commands(self):
        return [c[0] for c in self.calls]

    # --- backend contract ---

    def get_current_time(self):
        if self._pending_seek is not None:
            target, remaining = self._pending_seek
            if remaining <= 0:
                self.position = target
                self._pending_seek = None
            else:
                self._pending_seek = (target, remaining - 1)
        if self.samples:
            self.position = self.samples.pop(0)
        return self.position

    def get_duration(self):
        return self.duration

    def seek_to(self, seconds, allow_seek_ahead=True):
        self.calls.append(('seek_to', seconds, allow_seek_ahead))
        if self.seek_lag:
            self._pending_seek = (seconds, self.seek_lag)
        else:
            self.position = seconds

    def play_video(self):
        self.calls.append(('play_video',))

    def pause_video(self):
        self.calls.append(('pause_video',))

    def set_volume(self, volume):
        self.calls.append(('set_volume', volume))
        self.volume = volume

    def destroy(self):
        self.calls.append(('destroy',))
        if self.fail_on_destroy:
            raise RuntimeError("player element already removed")
        self.destroyed = True


class FakePlayerFactory(PlayerFactory):
    def __init__(self, duration=300.0):
        self.duration = duration
        self.created: list[FakePlayer] = []

    def create(self, container_ref, video_id, on_ready, on_state_change):
        player = FakePlayer(container_ref, video_id, on_ready, on_state_change, self.duration)
        self.created.append(player)
        return player

    @property
    def last(self) -> FakePlayer:
        return self.created[-1]


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def scheduler(clock):
    return Scheduler(clock=clock)


@pytest.fixture
def factory():
    return FakePlayerFactory()


@pytest.fixture
def session(scheduler, factory):
    return Session(scheduler, factory)


@pytest.fixture
def ready_track(session, factory):
    """A bound, ready track looping 10s-15s."""
    track = session.add_track()
    track.set_loop_window(0, 10, 0, 15)
    track.bind(VIDEO_A)
    factory.last.fire_ready()
    return track
