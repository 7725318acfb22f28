"""
Logging setup and the gesture event log.
"""

import os
import logging
import logging.handlers
import time

from core.events import EventBus, Events


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3):
    """Configure console (and optional rotating file) logging."""
    console_format = "%(asctime)s  %(levelname)-5s  %(message)s"
    file_format = "%(asctime)s [%(levelname)-7s] %(name)-25s | %(message)s"
    date_format = "%H:%M:%S"

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    root_logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    console.setFormatter(logging.Formatter(console_format, datefmt=date_format))
    root_logger.addHandler(console)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(file_format, datefmt=date_format))
        root_logger.addHandler(file_handler)

    return root_logger


class GestureLogger:
    """Records confirmed gestures and failed actions from the event bus."""

    def __init__(self, event_bus: EventBus = None, max_history: int = 500):
        self.logger = logging.getLogger("gesture_events")
        self._bus = event_bus or EventBus()
        self._max_history = max_history
        self._gesture_history = []
        self._failures = 0

    def attach(self):
        self._bus.subscribe(Events.GESTURE_CONFIRMED, self._on_confirmed)
        self._bus.subscribe(Events.ACTION_FAILED, self._on_failed)

    def detach(self):
        self._bus.unsubscribe(Events.GESTURE_CONFIRMED, self._on_confirmed)
        self._bus.unsubscribe(Events.ACTION_FAILED, self._on_failed)

    def _on_confirmed(self, label, timestamp=None, **kwargs):
        self.log_gesture(label)

    def _on_failed(self, label, error="", **kwargs):
        self._failures += 1
        self.logger.warning("Action failed: %-15s | %s", label, error)

    def log_gesture(self, gesture_name, confidence=None):
        """Record one executed gesture."""
        self._gesture_history.append({
            "timestamp": time.time(),
            "gesture": gesture_name,
            "confidence": confidence,
        })
        if len(self._gesture_history) > self._max_history:
            self._gesture_history = self._gesture_history[-self._max_history:]
        self.logger.info(
            "Gesture: %-15s | Confidence: %s",
            gesture_name,
            f"{confidence:.2f}" if confidence is not None else "N/A",
        )

    def get_history(self, last_n=None):
        if last_n:
            return self._gesture_history[-last_n:]
        return self._gesture_history.copy()

    @property
    def total_gestures(self):
        return len(self._gesture_history)

    @property
    def failures(self):
        return self._failures
