"""
Lightweight event bus and typed control-loop events.

The bus carries notifications (gesture pending/confirmed, navigation
changes) to loosely coupled listeners such as the gesture logger.
The three typed events are the inputs of the pipeline's step function:
camera delivery, timer firings and element-tree changes.

Usage:
    bus = EventBus()
    bus.subscribe(Events.GESTURE_CONFIRMED, my_handler)
    bus.emit(Events.GESTURE_CONFIRMED, label="fist")
"""

import time
import logging
import threading
from collections import defaultdict, deque
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class EventBus:
    """Process-wide publish/subscribe bus.

    Dispatch is synchronous, highest priority first. A failing handler is
    logged and skipped; the emitter and the remaining handlers never see
    the exception. Subscriptions may come from any thread.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._listeners = defaultdict(list)  # event_name -> [(priority, callback)]
        self._lock = threading.Lock()
        self._history = deque(maxlen=100)
        self._initialized = True

    def subscribe(self, event_name: str, callback: Callable, priority: int = 0):
        """Register ``callback(**kwargs)`` for ``event_name``.

        Args:
            event_name: One of the Events constants
            callback: Receives the keyword arguments given to emit()
            priority: Higher runs first; equal priorities keep subscription order
        """
        with self._lock:
            listeners = self._listeners[event_name]
            listeners.append((priority, callback))
            listeners.sort(key=lambda entry: -entry[0])
        logger.debug("Subscribed to '%s': %s (priority=%d)",
                     event_name, _callback_name(callback), priority)

    def unsubscribe(self, event_name: str, callback: Callable):
        # Bound methods compare equal but are never identical
        with self._lock:
            self._listeners[event_name] = [
                (p, cb) for p, cb in self._listeners[event_name] if cb != callback
            ]

    def emit(self, event_name: str, **kwargs):
        with self._lock:
            listeners = list(self._listeners.get(event_name, ()))
        self._history.append({
            "event": event_name,
            "time": time.time(),
            "label": kwargs.get("label"),
        })

        for _, callback in listeners:
            try:
                callback(**kwargs)
            except Exception as e:
                logger.error("Event handler error [%s -> %s]: %s",
                             event_name, _callback_name(callback), e)

    def clear(self, event_name: str = None):
        """Drop all listeners, or only those of ``event_name``."""
        with self._lock:
            if event_name:
                self._listeners.pop(event_name, None)
            else:
                self._listeners.clear()

    @property
    def registered_events(self) -> list:
        with self._lock:
            return [name for name, cbs in self._listeners.items() if cbs]

    @property
    def listener_count(self) -> int:
        with self._lock:
            return sum(len(cbs) for cbs in self._listeners.values())

    def get_history(self, last_n: int = 10) -> list:
        """Most recent emits, oldest first."""
        return list(self._history)[-last_n:]

    def reset(self):
        """Forget every listener and the history (for tests)."""
        with self._lock:
            self._listeners.clear()
        self._history.clear()


def _callback_name(callback) -> str:
    return getattr(callback, "__qualname__", None) or repr(callback)


# =============================================================================
# Standard Event Names (constants to avoid typos)
# =============================================================================

class Events:
    """Standard event names used throughout the system."""

    # Recognition
    GESTURE_DETECTED = "gesture_detected"
    GESTURE_PENDING = "gesture_pending"
    GESTURE_CONFIRMED = "gesture_confirmed"
    GESTURE_CANCELLED = "gesture_cancelled"
    ACTION_FAILED = "action_failed"

    # Training
    COLLECTION_STARTED = "collection_started"
    COLLECTION_STOPPED = "collection_stopped"
    MODEL_TRAINED = "model_trained"

    # Navigation
    NAVIGATION_STARTED = "navigation_started"
    NAVIGATION_STOPPED = "navigation_stopped"
    FOCUS_CHANGED = "focus_changed"
    TARGET_ACTIVATED = "target_activated"

    # Lifecycle
    PIPELINE_STARTED = "pipeline_started"
    PIPELINE_STOPPED = "pipeline_stopped"
    PIPELINE_DISABLED = "pipeline_disabled"


# =============================================================================
# Control-loop events
# =============================================================================

class FrameEvent:
    """A landmark frame or motion sample delivered by the source."""

    __slots__ = ("sample", "timestamp")

    def __init__(self, sample, timestamp: Optional[float] = None):
        self.sample = sample
        self.timestamp = time.time() if timestamp is None else timestamp


class TimerEvent:
    """A due one-shot timer, produced by Scheduler.run_pending()."""

    __slots__ = ("handle",)

    def __init__(self, handle):
        self.handle = handle

    @property
    def name(self) -> str:
        return self.handle.name


class TreeChangeEvent:
    """The host element tree changed or its viewport scrolled."""

    __slots__ = ("scrolled_only",)

    def __init__(self, scrolled_only: bool = False):
        self.scrolled_only = scrolled_only
