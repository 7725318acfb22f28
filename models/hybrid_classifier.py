"""
HybridClassifier: trained classifier first, rule-based fallback.

Priority order:
    1. Primary trainable classifier (centroid or neural), once it has a model
    2. Fallback classifier (heuristic for landmarks, motion analyzer for motion)

The fallback answers whenever the primary is untrained or rejects the
input (below its acceptance threshold or wrong vector length).
"""

import logging
from typing import Optional

from core.types import GestureResult, Observation

logger = logging.getLogger(__name__)


class HybridClassifier:
    """ML-first gesture classifier with automatic fallback.

    Usage::

        hybrid = HybridClassifier(CentroidClassifier(cfg), HeuristicClassifier())
        result = hybrid.classify(observation)
    """

    name = "auto"

    def __init__(self, primary, fallback=None):
        """
        Args:
            primary: trainable classifier exposing ``is_trained`` and
                     ``classify(observation)``
            fallback: always-available classifier used when the primary
                      has no model or rejects the input
        """
        self._primary = primary
        self._fallback = fallback

        self._primary_calls = 0
        self._fallback_calls = 0

    @property
    def primary(self):
        return self._primary

    @property
    def fallback(self):
        return self._fallback

    @property
    def backend(self) -> str:
        """Name of the strategy that currently answers first."""
        if self._primary is not None and self._primary.is_trained:
            return self._primary.name
        return self._fallback.name if self._fallback is not None else "none"

    @property
    def is_trained(self) -> bool:
        return self._primary is not None and self._primary.is_trained

    @property
    def stats(self):
        total = self._primary_calls + self._fallback_calls
        return {
            "backend": self.backend,
            "primary_calls": self._primary_calls,
            "fallback_calls": self._fallback_calls,
            "primary_ratio": self._primary_calls / max(total, 1),
        }

    def classify(self, observation: Observation) -> Optional[GestureResult]:
        if self._primary is not None and self._primary.is_trained:
            result = self._primary.classify(observation)
            if result is not None:
                self._primary_calls += 1
                return result
            logger.debug("Primary classifier rejected input, falling back")

        if self._fallback is not None:
            self._fallback_calls += 1
            return self._fallback.classify(observation)
        return None

    def train(self, training_set):
        """Train the primary classifier."""
        return self._primary.train(training_set)

    def reset(self):
        for clf in (self._primary, self._fallback):
            if clf is not None and hasattr(clf, "reset"):
                clf.reset()
