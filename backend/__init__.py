"""
Backend module for Endurance Loop.

Contains the loop controller, tracks, the session registry, volume mixing
and config document serialization. These modules are UI-agnostic and can
be used independently for testing.
"""

from .errors import (
    EnduranceError, InvalidReference, InvalidLoopWindow,
    DocumentParseError, BackendUnavailable,
)
from .scheduler import Scheduler, TimerHandle
from .player import (
    PlayerState, PlaybackBackend, PlayerFactory,
    SimulatedPlayer, SimulatedPlayerFactory,
)
from .loop_controller import LoopController, TrackState
from .track import Track, TrackConfig
from .mixer import effective_volume
from .session import Session

__all__ = [
    'EnduranceError',
    'InvalidReference',
    'InvalidLoopWindow',
    'DocumentParseError',
    'BackendUnavailable',
    'Scheduler',
    'TimerHandle',
    'PlayerState',
    'PlaybackBackend',
    'PlayerFactory',
    'SimulatedPlayer',
    'SimulatedPlayerFactory',
    'LoopController',
    'TrackState',
    'Track',
    'TrackConfig',
    'effective_volume',
    'Session',
]
