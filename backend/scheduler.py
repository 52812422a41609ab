"""
Cooperative scheduler for Endurance Loop.

All track logic runs on ONE thread. Periodic work (position polls,
statistics ticks) and backend notifications are timers on this scheduler;
each callback runs to completion before the next one starts, so no
locking is needed anywhere in the core.

Other threads (the web remote) never touch tracks directly. They hand
work to the timeline with call_soon_threadsafe() or submit().

Usage:
    scheduler = Scheduler()
    handle = scheduler.call_every(0.1, poll)
    scheduler.call_later(1.0, clear_flag)
    scheduler.run_forever()      # blocks; or scheduler.start() for a thread
    ...
    handle.cancel()              # idempotent
"""

import time
import queue
import logging
import threading
import itertools
from concurrent.futures import Future
from typing import Callable, Optional, List

from config import SCHEDULER_TICK

logger = logging.getLogger("EnduranceLoop.Scheduler")


class TimerHandle:
    """
    A scheduled callback. One-shot (call_later) or repeating (call_every).

    Attributes:
        name: Label used in log messages
        interval: Repeat interval in seconds (None for one-shot timers)
        due: Clock time of the next firing
    """

    def __init__(self, scheduler, callback: Callable, args: tuple,
                 due: float, interval: Optional[float], name: str, seq: int):
        self._scheduler = scheduler
        self._callback = callback
        self._args = args
        self.due = due
        self.interval = interval
        self.name = name
        self.seq = seq
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> bool:
        return not self._cancelled

    def cancel(self) -> None:
        """Stop the timer. Calling this more than once is a no-op."""
        if self._cancelled:
            return
        self._cancelled = True
        self._scheduler._discard(self)

    def _run(self) -> None:
        self._callback(*self._args)

    def __repr__(self):
        state = "cancelled" if self._cancelled else f"due={self.due:.3f}"
        return f"<TimerHandle {self.name or self._callback!r} {state}>"


class Scheduler:
    """
    Single-threaded timer loop.

    Args:
        clock: Monotonic clock function (replaceable for tests)
        tick: Sleep between passes of run_forever()
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, tick: float = SCHEDULER_TICK):
        self._clock = clock
        self.tick = tick
        self._timers: List[TimerHandle] = []
        self._inbox: "queue.Queue" = queue.Queue()
        self._seq = itertools.count()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._loop_ident: Optional[int] = None

    # =========================================================================
    # SCHEDULING
    # =========================================================================

    def now(self) -> float:
        return self._clock()

    def call_later(self, delay: float, callback: Callable, *args, name: str = "") -> TimerHandle:
        """Run callback once, delay seconds from now."""
        handle = TimerHandle(self, callback, args, self.now() + max(0.0, delay),
                             None, name, next(self._seq))
        self._timers.append(handle)
        return handle

    def call_every(self, interval: float, callback: Callable, *args, name: str = "") -> TimerHandle:
        """
        Run callback every interval seconds, first firing one interval from now.
        """
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")
        handle = TimerHandle(self, callback, args, self.now() + interval,
                             interval, name, next(self._seq))
        self._timers.append(handle)
        return handle

    def call_soon_threadsafe(self, callback: Callable, *args) -> None:
        """Queue a callback from any thread; it runs on the next pass."""
        self._inbox.put((callback, args))

    def submit(self, fn: Callable, *args) -> Future:
        """
        Run fn on the timeline and return a Future with its result.

        Runs inline when called from the timeline thread itself, or when no
        loop is running (setup code, tests).
        """
        future: Future = Future()
        if self._loop_ident is None or threading.get_ident() == self._loop_ident:
            self._resolve(future, fn, args)
        else:
            self._inbox.put((self._resolve, (future, fn, args)))
        return future

    @staticmethod
    def _resolve(future: Future, fn: Callable, args: tuple) -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(fn(*args))
        except Exception as e:
            future.set_exception(e)

    def _discard(self, handle: TimerHandle) -> None:
        try:
            self._timers.remove(handle)
        except ValueError:
            pass

    @property
    def timers(self) -> List[TimerHandle]:
        """Live (not cancelled) timers, soonest first."""
        return sorted(self._timers, key=lambda h: (h.due, h.seq))

    # =========================================================================
    # RUN LOOP
    # =========================================================================

    def run_pending(self) -> int:
        """
        Drain the inbox and fire every timer that is due.

        A repeating timer fires at most once per pass. If it fell behind
        (the loop stalled), it is rescheduled one interval from now rather
        than firing a burst to catch up.

        Returns:
            Number of callbacks executed
        """
        executed = 0

        while True:
            try:
                callback, args = self._inbox.get_nowait()
            except queue.Empty:
                break
            self._invoke(callback, args, "inbox")
            executed += 1

        now = self.now()
        due = [h for h in self._timers if h.due <= now]
        due.sort(key=lambda h: (h.due, h.seq))

        for handle in due:
            # An earlier callback in this pass may have cancelled it
            if handle.cancelled:
                continue
            if handle.interval is None:
                handle.cancel()
            else:
                handle.due += handle.interval
                if handle.due <= now:
                    handle.due = now + handle.interval
            self._invoke(handle._run, (), handle.name)
            executed += 1

        return executed

    def _invoke(self, callback: Callable, args: tuple, label: str) -> None:
        try:
            callback(*args)
        except Exception as e:
            logger.exception(f"Error in scheduled callback {label or callback!r}: {e}")

    def run_forever(self) -> None:
        """Run passes until stop() is called. Blocks the calling thread."""
        self._loop_ident = threading.get_ident()
        self._stop.clear()
        logger.debug("Scheduler loop started")
        try:
            while not self._stop.is_set():
                self.run_pending()
                time.sleep(self.tick)
        finally:
            self._loop_ident = None
            logger.debug("Scheduler loop exiting")

    def start(self) -> None:
        """Run the loop in a daemon thread if not already running."""
        if self._thread is None or not self._thread.is_alive():
            self._thread = threading.Thread(target=self.run_forever, daemon=True,
                                            name="EnduranceLoopScheduler")
            self._thread.start()

    def stop(self) -> None:
        """Ask the loop to exit after the current pass."""
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=1.0)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._loop_ident is not None
