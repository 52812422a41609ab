"""
Callback registry shared by tracks and the session.

Event-driven architecture:
- UI (or the web remote) registers callbacks for events it cares about
- The emitter calls them when its state changes
- A failing callback is logged and never breaks the emitter
"""

import logging
from typing import Callable, Dict, List, Iterable

logger = logging.getLogger("EnduranceLoop.Events")


class EventEmitter:
    """
    Mixin providing on/off/_emit.

    Subclasses call _init_events() with the names of the events they emit.
    Registering for an unknown event only logs a warning.
    """

    def _init_events(self, names: Iterable[str]) -> None:
        self._callbacks: Dict[str, List[Callable]] = {name: [] for name in names}

    def on(self, event: str, callback: Callable) -> None:
        """
        Register a callback for an event.

        Args:
            event: Event name
            callback: Function to call when event occurs
        """
        if event in self._callbacks:
            self._callbacks[event].append(callback)
        else:
            logger.warning(f"Unknown event: {event}. Available: {list(self._callbacks.keys())}")

    def off(self, event: str, callback: Callable) -> None:
        """Unregister a callback for an event."""
        if event in self._callbacks and callback in self._callbacks[event]:
            self._callbacks[event].remove(callback)

    def _emit(self, event: str, *args) -> None:
        """Emit an event to all registered callbacks."""
        for callback in list(self._callbacks.get(event, [])):
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"Error in callback for {event}: {e}")
