"""
Training-data collection for the trainable gesture classifiers.

TrainingSet holds labelled feature vectors across sessions.
TrainingCollector is the small idle → collecting(label) → idle state
machine: every feature vector seen while collecting becomes a sample
under the active label, and stopping flushes the session into the set.
"""

import time
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

import numpy as np

from core.events import EventBus, Events
from core.errors import ModelFormatError
from core.types import GestureSample

logger = logging.getLogger(__name__)

SAMPLES_FORMAT_VERSION = "1.0"


class TrainingSet:
    """Mapping label → list of GestureSample."""

    def __init__(self, samples: Iterable[GestureSample] = ()):
        self._samples: Dict[str, List[GestureSample]] = OrderedDict()
        self.extend(samples)

    def add(self, sample: GestureSample):
        self._samples.setdefault(sample.label, []).append(sample)

    def extend(self, samples: Iterable[GestureSample]):
        for sample in samples:
            self.add(sample)

    def samples_for(self, label: str) -> List[GestureSample]:
        return list(self._samples.get(label, []))

    @property
    def labels(self) -> List[str]:
        return [label for label, samples in self._samples.items() if samples]

    def count(self, label: str = None) -> int:
        if label is not None:
            return len(self._samples.get(label, []))
        return sum(len(s) for s in self._samples.values())

    def counts(self) -> Dict[str, int]:
        return {label: len(s) for label, s in self._samples.items()}

    def __len__(self):
        return self.count()

    def __iter__(self):
        for samples in self._samples.values():
            yield from samples

    def clear(self):
        self._samples.clear()

    def to_dict(self) -> dict:
        """Serializable form used by sample export."""
        return {
            "trainingData": [
                {
                    "label": s.label,
                    "features": [float(v) for v in s.features],
                    "timestamp": s.timestamp,
                }
                for s in self
            ],
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": SAMPLES_FORMAT_VERSION,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "TrainingSet":
        if not isinstance(payload, dict) or not isinstance(payload.get("trainingData"), list):
            raise ModelFormatError("Sample payload has no 'trainingData' list")
        training_set = cls()
        for entry in payload["trainingData"]:
            try:
                training_set.add(GestureSample(
                    features=np.asarray(entry["features"], dtype=np.float64),
                    label=str(entry["label"]),
                    timestamp=float(entry.get("timestamp", 0.0)),
                ))
            except (KeyError, TypeError, ValueError) as e:
                raise ModelFormatError(f"Bad sample entry: {e}") from e
        return training_set


class TrainingCollector:
    """Collects labelled feature vectors during a training session."""

    def __init__(self, training_set: TrainingSet = None, feedback=None,
                 event_bus: EventBus = None, clock=time.time):
        self._training_set = training_set if training_set is not None else TrainingSet()
        self._feedback = feedback
        self._bus = event_bus or EventBus()
        self._clock = clock

        self._active_label: Optional[str] = None
        self._session: List[GestureSample] = []
        self._session_start = 0.0

    @property
    def training_set(self) -> TrainingSet:
        return self._training_set

    @property
    def is_collecting(self) -> bool:
        return self._active_label is not None

    @property
    def active_label(self) -> Optional[str]:
        return self._active_label

    @property
    def session_count(self) -> int:
        return len(self._session)

    def start(self, label: str):
        """Begin collecting samples for ``label``.

        A session already running for another label is flushed first.
        """
        if self.is_collecting:
            if label == self._active_label:
                return
            self.stop()

        self._active_label = label
        self._session = []
        self._session_start = self._clock()
        logger.info("Collecting samples for '%s'", label)
        self._say(f"Starting data collection for {label.replace('_', ' ')} gesture. "
                  "Please perform the gesture repeatedly.")
        self._bus.emit(Events.COLLECTION_STARTED, label=label)

    def add(self, features) -> bool:
        """Record one feature vector under the active label. False when idle."""
        if not self.is_collecting or features is None:
            return False
        self._session.append(GestureSample(
            features=np.asarray(features, dtype=np.float64).copy(),
            label=self._active_label,
            timestamp=self._clock(),
        ))
        return True

    def stop(self) -> int:
        """Flush the session into the training set and go idle.

        Returns:
            Number of samples flushed
        """
        if not self.is_collecting:
            return 0
        label = self._active_label
        flushed = len(self._session)
        self._training_set.extend(self._session)
        self._session = []
        self._active_label = None

        logger.info("Collected %d samples for '%s' (%.1fs, %d total)",
                    flushed, label, self._clock() - self._session_start,
                    len(self._training_set))
        self._say(f"Collected {flushed} samples for {label.replace('_', ' ')}")
        self._bus.emit(Events.COLLECTION_STOPPED, label=label, count=flushed)
        return flushed

    def get_status(self) -> dict:
        return {
            "collecting": self._active_label,
            "session_samples": len(self._session),
            "total_samples": len(self._training_set),
            "per_gesture": self._training_set.counts(),
        }

    def print_status(self):
        """Log formatted collection status."""
        status = self.get_status()
        logger.info("=" * 50)
        logger.info("TRAINING DATA STATUS")
        logger.info("=" * 50)
        logger.info("Total samples: %d", status["total_samples"])
        logger.info("-" * 30)
        for gesture, count in sorted(status["per_gesture"].items()):
            bar = "#" * min(count // 5, 30)
            logger.info("  %-15s %4d %s", gesture, count, bar)
        logger.info("=" * 50)

    def _say(self, text: str):
        if self._feedback is not None:
            self._feedback.speak(text)
