"""
Trainable nearest-centroid gesture classifier.

Training averages each label's collected feature vectors into a centroid.
Inference measures the Euclidean distance from the input vector to every
centroid, maps it to a similarity of 1 / (1 + distance) and accepts the
best label only when that similarity clears the threshold.
"""

import logging
from typing import Dict, Optional

import numpy as np

from core.errors import TrainingError
from core.types import GestureResult, Observation, ProducerType
from data.collector.dataset_collector import TrainingSet

logger = logging.getLogger(__name__)

DEFAULT_MIN_SAMPLES = {
    ProducerType.LANDMARK: 50,
    ProducerType.MOTION: 20,
}


def resolve_min_samples(config: dict, producer: ProducerType) -> int:
    """``min_training_samples`` may be a plain int or a per-producer mapping."""
    value = config.get("min_training_samples")
    if isinstance(value, dict):
        value = value.get(producer.value)
    if value is None:
        return DEFAULT_MIN_SAMPLES[producer]
    return int(value)


class CentroidClassifier:
    """Nearest-mean matcher over previously collected labelled samples.

    Example:
        >>> clf = CentroidClassifier({"min_training_samples": 20})
        >>> clf.train(training_set)
        >>> result = clf.classify_features(vector)
    """

    name = "centroid"

    def __init__(self, config: dict = None, producer: ProducerType = ProducerType.LANDMARK):
        config = config or {}
        self._producer = producer
        self._threshold = config.get("similarity_threshold", 0.7)
        self._min_samples = resolve_min_samples(config, producer)
        self._centroids: Dict[str, np.ndarray] = {}
        self._dim: Optional[int] = None

    @property
    def is_trained(self) -> bool:
        return bool(self._centroids)

    @property
    def min_samples(self) -> int:
        return self._min_samples

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def labels(self):
        return list(self._centroids.keys())

    @property
    def model(self) -> Dict[str, np.ndarray]:
        """Copy of the current label → centroid mapping (empty if untrained)."""
        return {label: c.copy() for label, c in self._centroids.items()}

    def train(self, training_set: TrainingSet) -> Dict[str, np.ndarray]:
        """Build a centroid per label.

        Raises:
            TrainingError: too few samples overall, or vectors of
                           inconsistent length. The previous model is kept.
        """
        total = len(training_set)
        if total < self._min_samples:
            raise TrainingError(
                f"Need at least {self._min_samples} training samples, have {total}"
            )

        centroids = {}
        dim = None
        for label in training_set.labels:
            samples = training_set.samples_for(label)
            if not samples:
                continue
            lengths = {len(s.features) for s in samples}
            if dim is not None:
                lengths.add(dim)
            if len(lengths) != 1:
                raise TrainingError(
                    f"Inconsistent feature lengths for '{label}': {sorted(lengths)}"
                )
            dim = lengths.pop()
            matrix = np.vstack([np.asarray(s.features, dtype=np.float64) for s in samples])
            centroids[label] = matrix.mean(axis=0)

        self._centroids = centroids
        self._dim = dim
        logger.info("Centroid model trained: %d labels from %d samples",
                    len(centroids), total)
        return self.model

    def load_model(self, centroids: Dict[str, object]):
        """Install a previously saved label → centroid mapping."""
        loaded = {label: np.asarray(vec, dtype=np.float64) for label, vec in centroids.items()}
        dims = {len(v) for v in loaded.values()}
        if len(dims) > 1:
            raise TrainingError(f"Saved centroids have inconsistent lengths: {sorted(dims)}")
        self._centroids = loaded
        self._dim = dims.pop() if dims else None
        logger.info("Centroid model loaded: %d labels", len(loaded))

    def reset(self):
        self._centroids = {}
        self._dim = None

    def classify(self, observation: Observation) -> Optional[GestureResult]:
        if observation.features is None:
            return None
        return self.classify_features(observation.features)

    def classify_features(self, features) -> Optional[GestureResult]:
        if not self._centroids:
            return None
        vector = np.asarray(features, dtype=np.float64)
        if vector.ndim != 1 or len(vector) != self._dim:
            logger.debug("Feature length %s does not match model (%s)", vector.shape, self._dim)
            return None

        best_label, best_similarity = None, 0.0
        for label, centroid in self._centroids.items():
            distance = float(np.linalg.norm(vector - centroid))
            similarity = 1.0 / (1.0 + distance)
            if similarity > best_similarity:
                best_label, best_similarity = label, similarity

        if best_label is None or best_similarity <= self._threshold:
            return None
        return GestureResult(best_label, best_similarity, source=self.name)
