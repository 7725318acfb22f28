"""
One-shot, cancellable timers driven from the control thread.

Timers never fire on their own: the owner of the control loop calls
run_pending() once per iteration and due timers are fired there, in due
order. This keeps every state mutation on a single thread, so the
confirmation gate and the navigator refresh need no locking.

The clock is injectable so tests can advance time deterministically.
"""

import heapq
import itertools
import logging
import time
from typing import Callable, Optional

from core.events import TimerEvent

logger = logging.getLogger(__name__)


class TimerHandle:
    """Handle returned by Scheduler.call_later()."""

    __slots__ = ("name", "due", "callback", "cancelled", "fired")

    def __init__(self, name: str, due: float, callback: Callable[[], None]):
        self.name = name
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def fire(self):
        """Invoke the callback once. Cancelled or already fired handles are skipped."""
        if not self.active:
            return
        self.fired = True
        self.callback()

    def __repr__(self):
        state = "cancelled" if self.cancelled else "fired" if self.fired else "live"
        return f"TimerHandle({self.name!r}, due={self.due:.3f}, {state})"


class Scheduler:
    """Cooperative timer queue."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._queue = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._clock()

    def call_later(self, delay_s: float, callback: Callable[[], None],
                   name: str = "") -> TimerHandle:
        """Schedule ``callback`` to fire ``delay_s`` seconds from now."""
        handle = TimerHandle(name, self._clock() + max(0.0, delay_s), callback)
        heapq.heappush(self._queue, (handle.due, next(self._counter), handle))
        logger.debug("Timer scheduled: %s in %.3fs", name or "<anon>", delay_s)
        return handle

    def cancel(self, handle: Optional[TimerHandle]) -> bool:
        """Cancel a live timer. Returns True if it had not fired yet."""
        if handle is None or not handle.active:
            return False
        handle.cancelled = True
        logger.debug("Timer cancelled: %s", handle.name or "<anon>")
        return True

    def run_pending(self, dispatch: Optional[Callable[[TimerEvent], None]] = None) -> int:
        """Fire every timer that is due.

        Args:
            dispatch: Optional event handler. When given, each due timer is
                      wrapped in a TimerEvent and passed to it instead of
                      being fired directly.

        Returns:
            Number of timers fired
        """
        fired = 0
        now = self._clock()
        while self._queue and self._queue[0][0] <= now:
            _, _, handle = heapq.heappop(self._queue)
            if not handle.active:
                continue
            if dispatch is not None:
                dispatch(TimerEvent(handle))
            else:
                handle.fire()
            fired += 1
        return fired

    def cancel_all(self):
        for _, _, handle in self._queue:
            handle.cancelled = True
        self._queue.clear()

    @property
    def pending_count(self) -> int:
        return sum(1 for _, _, h in self._queue if h.active)

    @property
    def next_due(self) -> Optional[float]:
        live = [h.due for _, _, h in self._queue if h.active]
        return min(live) if live else None
