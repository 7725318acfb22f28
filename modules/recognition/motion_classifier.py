"""
Motion pattern analyzer for the frame-differencing producer.

Looks at the recent part of the motion-centroid window and reports
directional swipes from the first-to-last displacement, or a
``center_hold`` when the motion centroid stays still near the middle of
the frame. A minimum interval between reports keeps one sweep of the
hand from producing a burst of detections.
"""

import math
import logging
from typing import List, Optional

from core.types import GestureResult, MotionSample, Observation

logger = logging.getLogger(__name__)


class MotionPatternClassifier:
    """Classifies a window of motion samples into swipe / hold gestures."""

    name = "motion"

    def __init__(self, config: dict = None):
        config = config or {}
        self._min_samples = config.get("min_samples", 10)
        self._analysis_span = config.get("analysis_span", 20)
        self._min_distance = config.get("min_distance", 0.3)
        self._min_axis_delta = config.get("min_axis_delta", 0.2)
        self._center_low = config.get("center_low", 0.4)
        self._center_high = config.get("center_high", 0.6)
        self._max_hold_variance = config.get("max_hold_variance", 0.01)
        self._spam_interval_s = config.get("spam_interval_ms", 2000) / 1000.0
        self._swipe_confidence = config.get("swipe_confidence", 0.8)
        self._hold_confidence = config.get("hold_confidence", 0.85)

        self._last_report_time = None

    @property
    def is_trained(self) -> bool:
        return True

    def classify(self, observation: Observation) -> Optional[GestureResult]:
        if not observation.window:
            return None
        return self.analyze(observation.window)

    def analyze(self, window: List[MotionSample]) -> Optional[GestureResult]:
        """Analyze a motion window; returns a gesture or None."""
        if len(window) < self._min_samples:
            return None

        recent = window[-self._analysis_span:]
        first, last = recent[0], recent[-1]
        now = last.timestamp

        if (self._last_report_time is not None
                and now - self._last_report_time < self._spam_interval_s):
            return None

        dx = last.x - first.x
        dy = last.y - first.y
        distance = math.hypot(dx, dy)

        label = None
        if distance > self._min_distance:
            if abs(dx) > abs(dy):
                if dx > self._min_axis_delta:
                    label = "swipe_right"
                elif dx < -self._min_axis_delta:
                    label = "swipe_left"
            else:
                if dy > self._min_axis_delta:
                    label = "swipe_down"
                elif dy < -self._min_axis_delta:
                    label = "swipe_up"
        if label is not None:
            return self._report(label, self._swipe_confidence, now)

        avg_x = sum(s.x for s in recent) / len(recent)
        avg_y = sum(s.y for s in recent) / len(recent)
        if (self._center_low < avg_x < self._center_high
                and self._center_low < avg_y < self._center_high):
            variance = sum((s.x - avg_x) ** 2 + (s.y - avg_y) ** 2 for s in recent) / len(recent)
            if variance < self._max_hold_variance:
                return self._report("center_hold", self._hold_confidence, now)

        return None

    def _report(self, label: str, confidence: float, now: float) -> GestureResult:
        self._last_report_time = now
        logger.debug("Motion pattern: %s", label)
        return GestureResult(label, confidence, source=self.name)

    def reset(self):
        self._last_report_time = None
