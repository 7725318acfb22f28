#!/usr/bin/env python3
"""
Offline training for the trainable gesture classifiers.

Usage::

    # Train the configured classifier from exported samples
    python -m training.train

    # Pick the producer, samples file and classifier explicitly
    python -m training.train --producer motion --samples data/models/samples_motion.json
    python -m training.train --kind neural

Trained models are saved under ``persistence.storage_dir``:
    - centroid_<producer>.json   (centroid matcher)
    - neural_<producer>.pth      (GestureNet checkpoint, needs PyTorch)
"""

import os
import sys
import time
import logging
import argparse
import numpy as np

from core.errors import GestureControlError
from core.types import ProducerType
from modules.persistence.model_store import ModelStore
from modules.recognition.classifier_factory import create_trainable_classifier
from modules.utils.config import Config
from modules.utils.logger import setup_logging

logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description="Train a gesture classifier from collected samples")
    parser.add_argument("--config", type=str, default=None,
                        help="Path to config.yaml")
    parser.add_argument("--producer", choices=[p.value for p in ProducerType], default=None,
                        help="Sample kind the model is trained on (default: system.producer)")
    parser.add_argument("--samples", type=str, default=None,
                        help="Exported samples file (default: samples_<producer>.json)")
    parser.add_argument("--kind", choices=["centroid", "neural"], default=None,
                        help="Classifier to train (default: recognition.trainable)")
    return parser.parse_args()


def model_path(classifier, store: ModelStore, producer: ProducerType) -> str:
    """Where a trained classifier of this kind is stored."""
    if classifier.name == "neural":
        return os.path.join(store.storage_dir, f"neural_{producer.value}.pth")
    return store.model_path(producer)


def save_trained(classifier, store: ModelStore, producer: ProducerType) -> str:
    path = model_path(classifier, store, producer)
    if classifier.name == "neural":
        classifier.save(path)
        return path
    return store.save_model(classifier.model, producer, path)


def load_trained(classifier, store: ModelStore, producer: ProducerType) -> bool:
    """Load a previously saved model into ``classifier``.

    Returns:
        False when nothing has been saved for this producer yet

    Raises:
        ModelFormatError: the saved file is unreadable
    """
    path = model_path(classifier, store, producer)
    if classifier.name == "neural":
        if not os.path.exists(path):
            return False
        classifier.load(path)
        return True

    centroids = store.load_model(producer, path)
    if centroids is None:
        return False
    classifier.load_model(centroids)
    return True


def compute_confusion_matrix(classifier, training_set):
    """Classify every sample; the extra last column counts rejections."""
    class_names = training_set.labels
    index = {name: i for i, name in enumerate(class_names)}
    matrix = np.zeros((len(class_names), len(class_names) + 1), dtype=np.int64)

    for sample in training_set:
        result = classifier.classify_features(sample.features)
        col = index.get(result.label, len(class_names)) if result is not None else len(class_names)
        matrix[index[sample.label]][col] += 1

    return matrix, class_names


def print_confusion_matrix(matrix, class_names):
    """Log the confusion matrix with per-class recall."""
    header = "%-14s" % "True \\ Pred"
    for name in class_names:
        header += " %6s" % name[:6]
    header += " %6s  Recall" % "none"
    logger.info(header)
    logger.info("-" * len(header))

    for i, name in enumerate(class_names):
        row = "%-14s" % name[:14]
        for count in matrix[i]:
            row += " %6d" % count
        recall = matrix[i][i] / max(matrix[i].sum(), 1)
        row += "  %.3f" % recall
        logger.info(row)


def train_from_samples(config: Config, producer: ProducerType, samples_path: str = None,
                       kind: str = None):
    """Import samples, train, save and report.

    Raises:
        FileNotFoundError: no samples file
        ModelFormatError: the samples file is malformed
        TrainingError: the classifier refused the data
        CapabilityError: ``neural`` without PyTorch
    """
    store = ModelStore(config.persistence)
    samples_path = samples_path or store.samples_path(producer)
    training_set = store.import_samples(samples_path)
    logger.info("Samples per gesture: %s", training_set.counts())

    classifier = create_trainable_classifier(config.recognition, producer, kind)

    start_time = time.time()
    classifier.train(training_set)
    elapsed = time.time() - start_time

    path = save_trained(classifier, store, producer)

    logger.info("=" * 60)
    logger.info("Trained %s classifier on %d samples in %.2f seconds",
                classifier.name, len(training_set), elapsed)
    logger.info("Model saved to: %s", path)

    matrix, class_names = compute_confusion_matrix(classifier, training_set)
    logger.info("Confusion matrix (training samples):")
    print_confusion_matrix(matrix, class_names)
    logger.info("=" * 60)
    return classifier


def main():
    args = parse_args()

    config = Config()
    config.load(config_path=args.config)
    log_cfg = config.get_section("logging")
    setup_logging(level=log_cfg.get("level", "INFO"))

    producer = ProducerType.from_string(args.producer or config.get("system.producer", "landmark"))
    try:
        train_from_samples(config, producer, args.samples, args.kind)
    except FileNotFoundError as e:
        logger.error("No samples file: %s", e)
        logger.error("Collect data first: python main.py --mode collect")
        sys.exit(1)
    except GestureControlError as e:
        logger.error("Training failed: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
