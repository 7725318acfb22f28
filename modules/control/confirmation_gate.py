"""
Confirmation gate: one debounced dispatch per stable detection.

A detection does not act immediately. The gate announces it, waits for
the confirmation delay and only then dispatches, so the user can cancel
or change the gesture first.

States:
    Idle            nothing pending
    Pending(label)  one confirmation timer live for ``label``

Lifecycle:
    detect(label)   Idle → Pending(label); a different label while pending
                    restarts the wait for the new label; the same label is
                    ignored
    timer fires     dispatch, history, current-gesture indicator → Idle
    cancel()        Pending → Idle without dispatching
    shutdown()      drop every timer and all UI state
"""

import logging
from collections import deque
from typing import List, Optional, Tuple

from core.events import EventBus, Events
from core.scheduler import Scheduler
from core.types import PendingGesture

logger = logging.getLogger(__name__)


def spoken_label(label: str) -> str:
    return label.replace("_", " ")


class ConfirmationGate:
    """Debounces gesture detections before they reach the dispatcher."""

    def __init__(self, scheduler: Scheduler, dispatcher, feedback=None,
                 config: dict = None, event_bus: EventBus = None):
        config = config or {}
        self._scheduler = scheduler
        self._dispatcher = dispatcher
        self._feedback = feedback
        self._bus = event_bus or EventBus()

        self._delay_s = config.get("confirmation_delay_ms", 1500) / 1000.0
        self._indicator_s = config.get("indicator_clear_ms", 2000) / 1000.0
        self._suppress_repeat = config.get("suppress_repeat", True)

        self._pending: Optional[PendingGesture] = None
        self._current_gesture: Optional[str] = None
        self._indicator_timer = None
        self._history = deque(maxlen=config.get("history_size", 5))

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def pending(self) -> Optional[PendingGesture]:
        return self._pending

    @property
    def pending_label(self) -> Optional[str]:
        return self._pending.label if self._pending is not None else None

    @property
    def is_pending(self) -> bool:
        return self._pending is not None

    @property
    def current_gesture(self) -> Optional[str]:
        """Label shown by the current-gesture indicator, if any."""
        return self._current_gesture

    @property
    def history(self) -> List[Tuple[str, float]]:
        """(label, timestamp) of the most recent dispatches, oldest first."""
        return list(self._history)

    @property
    def confirmation_delay(self) -> float:
        return self._delay_s

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def detect(self, label: str) -> bool:
        """Feed a classified label.

        Returns:
            True if a new confirmation wait was started
        """
        if self._pending is not None and self._pending.label == label:
            return False
        if self._suppress_repeat and self._current_gesture == label:
            return False

        if self._pending is not None:
            self._scheduler.cancel(self._pending.timer_handle)
            logger.debug("Pending '%s' replaced by '%s'", self._pending.label, label)

        handle = self._scheduler.call_later(
            self._delay_s, lambda: self._confirm(label), name=f"confirm:{label}"
        )
        self._pending = PendingGesture(label, self._scheduler.now(), handle)

        self._say(f"Detected {spoken_label(label)}. Confirming in {self._delay_s:g} seconds")
        self._bus.emit(Events.GESTURE_PENDING, label=label, delay=self._delay_s)
        return True

    def cancel(self) -> bool:
        """Drop the pending gesture. Returns whether anything was pending."""
        if self._pending is None:
            return False
        label = self._pending.label
        self._scheduler.cancel(self._pending.timer_handle)
        self._pending = None
        logger.info("Gesture cancelled: %s", label)
        self._say("Gesture cancelled")
        self._bus.emit(Events.GESTURE_CANCELLED, label=label)
        return True

    def shutdown(self):
        """Cancel every timer the gate owns and clear UI state. Silent."""
        if self._pending is not None:
            self._scheduler.cancel(self._pending.timer_handle)
            self._pending = None
        self._scheduler.cancel(self._indicator_timer)
        self._indicator_timer = None
        self._current_gesture = None

    # ------------------------------------------------------------------
    # Timer callbacks
    # ------------------------------------------------------------------

    def _confirm(self, label: str):
        # Only the live pending label may confirm
        if self._pending is None or self._pending.label != label:
            return
        self._pending = None

        try:
            dispatched = self._dispatcher.dispatch(label)
        except Exception as e:
            logger.error("Action for '%s' failed: %s", label, e, exc_info=True)
            self._say(f"{spoken_label(label)} failed")
            self._bus.emit(Events.ACTION_FAILED, label=label, error=str(e))
            return

        if not dispatched:
            return

        now = self._scheduler.now()
        self._history.append((label, now))
        self._set_indicator(label)
        self._bus.emit(Events.GESTURE_CONFIRMED, label=label, timestamp=now)

    def _set_indicator(self, label: str):
        self._scheduler.cancel(self._indicator_timer)
        self._current_gesture = label
        self._indicator_timer = self._scheduler.call_later(
            self._indicator_s, self._clear_indicator, name="indicator_clear"
        )

    def _clear_indicator(self):
        self._current_gesture = None
        self._indicator_timer = None

    def _say(self, text: str):
        if self._feedback is not None:
            self._feedback.speak(text)
