"""
Frame-path timing for the control loop.

Tracks the camera delivery rate, frames that produced no usable sample
(no hand found, no motion) and the latency of the extraction and
classification stages over rolling windows. The clock is injectable like
the scheduler's so rates can be checked deterministically.
"""

import time
import threading
import logging
from collections import deque
from contextlib import contextmanager

logger = logging.getLogger(__name__)

STAGES = ("extraction", "classification")


class PerformanceMonitor:
    """Rolling FPS, drop count and per-stage latency."""

    def __init__(self, window_size=100, clock=time.perf_counter):
        self._window_size = window_size
        self._clock = clock
        self._lock = threading.Lock()
        self._intervals = deque(maxlen=window_size)
        self._stage_times = {name: deque(maxlen=window_size) for name in STAGES}
        self._reset_counters()

    def _reset_counters(self):
        self._last_tick = None
        self._frame_count = 0
        self._dropped_frames = 0
        self._started_at = self._clock()

    @contextmanager
    def measure(self, stage_name: str):
        """Time one stage of the frame path; recorded even if the stage raises."""
        start = self._clock()
        try:
            yield
        finally:
            elapsed_ms = (self._clock() - start) * 1000
            with self._lock:
                times = self._stage_times.setdefault(stage_name, deque(maxlen=self._window_size))
                times.append(elapsed_ms)

    def tick(self):
        """One camera frame arrived."""
        now = self._clock()
        with self._lock:
            if self._last_tick is not None:
                self._intervals.append(now - self._last_tick)
            self._last_tick = now
            self._frame_count += 1

    def record_drop(self):
        """The frame produced no sample for the classifier."""
        with self._lock:
            self._dropped_frames += 1

    @property
    def fps(self) -> float:
        with self._lock:
            if len(self._intervals) < 2:
                return 0.0
            mean = sum(self._intervals) / len(self._intervals)
        return 1.0 / mean if mean > 0 else 0.0

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def drop_rate(self) -> float:
        """Share of frames without a usable sample, in percent."""
        return self._dropped_frames / max(self._frame_count, 1) * 100

    def get_stage_latency(self, stage_name: str) -> float:
        """Mean latency of a stage in ms (0.0 before the first measurement)."""
        with self._lock:
            times = self._stage_times.get(stage_name)
            return sum(times) / len(times) if times else 0.0

    def get_report(self) -> dict:
        return {
            "fps": round(self.fps, 1),
            "total_frames": self._frame_count,
            "dropped_frames": self._dropped_frames,
            "uptime_seconds": round(self._clock() - self._started_at, 1),
            "latencies_ms": {name: round(self.get_stage_latency(name), 2)
                             for name in list(self._stage_times)},
        }

    def print_report(self):
        report = self.get_report()
        logger.info("=" * 60)
        logger.info("FRAME PATH")
        logger.info("=" * 60)
        logger.info("Camera FPS:      %.1f", report["fps"])
        logger.info("Frames:          %d", report["total_frames"])
        logger.info("Without sample:  %d (%.1f%%)", report["dropped_frames"], self.drop_rate)
        logger.info("Uptime:          %.1fs", report["uptime_seconds"])
        logger.info("-" * 40)
        for stage, latency in report["latencies_ms"].items():
            logger.info("  %-18s %7.2f ms", stage, latency)
        logger.info("=" * 60)

    def reset(self):
        with self._lock:
            self._intervals.clear()
            for times in self._stage_times.values():
                times.clear()
            self._reset_counters()
