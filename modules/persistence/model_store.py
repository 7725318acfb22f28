"""
JSON persistence for centroid models and collected training samples.

Layout under ``storage_dir``:
    centroid_<producer>.json   label → centroid model, one per producer
    samples_<producer>.json    exported TrainingSet

Model payload::

    {"version": "1.0", "timestamp": ..., "producer": "landmark",
     "centroids": {"fist": [..], "point": [..]}}

Sample payload::

    {"trainingData": [{"label": .., "features": [..], "timestamp": ..}],
     "timestamp": "<iso8601>", "version": "1.0"}
"""

import os
import json
import time
import logging
from typing import Dict, Optional

import numpy as np

from core.errors import ModelFormatError
from core.types import ProducerType
from data.collector.dataset_collector import TrainingSet

logger = logging.getLogger(__name__)

MODEL_FORMAT_VERSION = "1.0"


class ModelStore:
    """Reads and writes model and sample files."""

    def __init__(self, config: dict = None):
        config = config or {}
        self._storage_dir = config.get("storage_dir", "data/models")

    @property
    def storage_dir(self) -> str:
        return self._storage_dir

    def model_path(self, producer: ProducerType) -> str:
        return os.path.join(self._storage_dir, f"centroid_{producer.value}.json")

    def samples_path(self, producer: ProducerType) -> str:
        return os.path.join(self._storage_dir, f"samples_{producer.value}.json")

    # ------------------------------------------------------------------
    # Models
    # ------------------------------------------------------------------

    def save_model(self, centroids: Dict[str, np.ndarray],
                   producer: ProducerType = ProducerType.LANDMARK,
                   path: str = None) -> str:
        """Write a label → centroid mapping. Returns the file path."""
        path = path or self.model_path(producer)
        payload = {
            "version": MODEL_FORMAT_VERSION,
            "timestamp": time.time(),
            "producer": producer.value,
            "centroids": {label: [float(v) for v in vec] for label, vec in centroids.items()},
        }
        self._write(path, payload)
        logger.info("Model saved: %s (%d labels)", path, len(centroids))
        return path

    def load_model(self, producer: ProducerType = ProducerType.LANDMARK,
                   path: str = None) -> Optional[Dict[str, np.ndarray]]:
        """Read a saved model.

        Returns:
            label → centroid mapping, or None when no model file exists

        Raises:
            ModelFormatError: the file exists but is not a model payload
        """
        path = path or self.model_path(producer)
        payload = self._read(path)
        if payload is None:
            logger.info("No saved model at %s", path)
            return None

        centroids = payload.get("centroids") if isinstance(payload, dict) else None
        if not isinstance(centroids, dict):
            raise ModelFormatError(f"{path}: missing 'centroids' mapping")
        saved_producer = payload.get("producer", producer.value)
        if saved_producer != producer.value:
            raise ModelFormatError(
                f"{path}: model was trained on {saved_producer} samples, not {producer.value}"
            )
        try:
            model = {str(label): np.asarray(vec, dtype=np.float64)
                     for label, vec in centroids.items()}
        except (TypeError, ValueError) as e:
            raise ModelFormatError(f"{path}: bad centroid: {e}") from e
        logger.info("Model loaded: %s (%d labels)", path, len(model))
        return model

    # ------------------------------------------------------------------
    # Samples
    # ------------------------------------------------------------------

    def export_samples(self, training_set: TrainingSet,
                       producer: ProducerType = ProducerType.LANDMARK,
                       path: str = None) -> str:
        path = path or self.samples_path(producer)
        self._write(path, training_set.to_dict())
        logger.info("Exported %d training samples to %s", len(training_set), path)
        return path

    def import_samples(self, path: str, into: TrainingSet = None) -> TrainingSet:
        """Read exported samples, appending them to ``into`` when given.

        Raises:
            FileNotFoundError: no such file
            ModelFormatError: not a sample payload
        """
        payload = self._read(path)
        if payload is None:
            raise FileNotFoundError(path)
        imported = TrainingSet.from_dict(payload)
        logger.info("Imported %d training samples from %s", len(imported), path)
        if into is None:
            return imported
        into.extend(imported)
        return into

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    @staticmethod
    def _write(path: str, payload: dict):
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        tmp_path = path + ".tmp"
        with open(tmp_path, "w") as f:
            json.dump(payload, f, indent=2)
        os.replace(tmp_path, path)

    @staticmethod
    def _read(path: str):
        try:
            with open(path, "r") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            raise ModelFormatError(f"{path}: not valid JSON: {e}") from e
