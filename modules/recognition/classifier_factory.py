"""
Builds the configured classification strategy.

Strategies:
    heuristic   finger-state rule table (landmark producer)
    motion      motion pattern analyzer (motion producer)
    centroid    trainable nearest-centroid matcher
    neural      trainable MLP (needs PyTorch)
    auto        trainable first, rule-based fallback for the producer
"""

import logging

from core.errors import CapabilityError
from core.types import ProducerType
from models.hybrid_classifier import HybridClassifier
from modules.recognition.centroid_classifier import CentroidClassifier
from modules.recognition.gesture_classifier import HeuristicClassifier
from modules.recognition.motion_classifier import MotionPatternClassifier

logger = logging.getLogger(__name__)

STRATEGIES = ("heuristic", "motion", "centroid", "neural", "auto")


def create_rule_classifier(config: dict, producer: ProducerType):
    """The always-available classifier for a producer."""
    if producer is ProducerType.MOTION:
        return MotionPatternClassifier(config.get("motion", {}))
    return HeuristicClassifier(config.get("heuristic", {}))


def create_trainable_classifier(config: dict, producer: ProducerType, kind: str = None):
    """Centroid or neural classifier, per ``trainable`` in the config."""
    kind = kind or config.get("trainable", "centroid")
    if kind == "neural":
        try:
            from models.gesture_net import NeuralClassifier
        except ImportError as e:
            raise CapabilityError(f"Neural classifier needs PyTorch: {e}") from e
        neural_config = dict(config)
        neural_config.update(config.get("neural", {}))
        return NeuralClassifier(neural_config, producer)
    if kind != "centroid":
        raise ValueError(f"Unknown trainable classifier: {kind}")
    return CentroidClassifier(config, producer)


def create_classifier(config: dict = None, producer: ProducerType = ProducerType.LANDMARK):
    """Build the strategy named by ``strategy`` (default ``auto``).

    Args:
        config: ``recognition`` section from config.yaml
        producer: Which sample kind the classifier will see

    Raises:
        ValueError: Unknown strategy name
        CapabilityError: ``neural`` requested without PyTorch installed
    """
    config = config or {}
    strategy = str(config.get("strategy", "auto")).lower()

    if strategy == "heuristic":
        if producer is ProducerType.MOTION:
            logger.warning("Heuristic strategy needs landmarks; using motion analyzer")
            return MotionPatternClassifier(config.get("motion", {}))
        classifier = HeuristicClassifier(config.get("heuristic", {}))
    elif strategy == "motion":
        classifier = MotionPatternClassifier(config.get("motion", {}))
    elif strategy in ("centroid", "neural"):
        classifier = create_trainable_classifier(config, producer, kind=strategy)
    elif strategy in ("auto", "hybrid"):
        classifier = HybridClassifier(
            create_trainable_classifier(config, producer),
            create_rule_classifier(config, producer),
        )
    else:
        raise ValueError(f"Unknown classifier strategy '{strategy}', expected one of {STRATEGIES}")

    logger.info("Classifier strategy: %s (%s producer)", classifier.name, producer.value)
    return classifier
