"""
Rule-based static gesture classifier over finger extension state.

Each finger gets a boolean "extended" flag from simple keypoint geometry,
then an ordered rule table maps the flags to a label. First match wins;
the order is part of the behavior: ``point`` shadows the positional
``swipe_left``/``swipe_right`` rules for a lone index finger unless
``swipe_priority`` is enabled.
"""

import logging
from typing import Dict, Optional

from core.types import GestureResult, Observation
from models.feature_extractor import (
    landmarks_array, FINGER_NAMES, FINGER_TIPS, FINGER_PIPS, INDEX_TIP,
)

logger = logging.getLogger(__name__)


def finger_states(landmarks, handedness: str = "right") -> Dict[str, bool]:
    """Extended flag per finger.

    Thumb: tip x beyond the IP joint x, on the side given by handedness.
    Other fingers: tip y above (numerically less than) the PIP joint y.
    """
    states = {}
    for name, tip, pip in zip(FINGER_NAMES, FINGER_TIPS, FINGER_PIPS):
        if name == "thumb":
            if handedness == "left":
                states[name] = bool(landmarks[tip][0] < landmarks[pip][0])
            else:
                states[name] = bool(landmarks[tip][0] > landmarks[pip][0])
        else:
            states[name] = bool(landmarks[tip][1] < landmarks[pip][1])
    return states


class HeuristicClassifier:
    """Deterministic finger-state classifier. Needs no training.

    Example:
        >>> classifier = HeuristicClassifier()
        >>> result = classifier.classify_frame(frame)
        >>> if result:
        ...     print(result.label, result.confidence)
    """

    name = "heuristic"

    def __init__(self, config: dict = None):
        config = config or {}
        self._default_handedness = str(config.get("handedness", "right")).lower()
        self._swipe_left_x = config.get("swipe_left_x", 0.3)
        self._swipe_right_x = config.get("swipe_right_x", 0.7)
        # A lone index finger matches ``point`` first; with swipe_priority
        # the positional swipe check runs before the rule table instead.
        self._swipe_priority = bool(config.get("swipe_priority", False))

    @property
    def is_trained(self) -> bool:
        return True

    def classify(self, observation: Observation) -> Optional[GestureResult]:
        return self.classify_frame(observation.sample)

    def classify_frame(self, frame) -> Optional[GestureResult]:
        landmarks = landmarks_array(frame)
        if landmarks is None:
            return None

        handedness = getattr(frame, "handedness", None) or self._default_handedness
        fingers = finger_states(landmarks, handedness)
        thumb, index, middle, ring, pinky = (fingers[n] for n in FINGER_NAMES)
        up_count = sum(fingers.values())

        if self._swipe_priority and index and up_count == 1:
            swipe = self._positional_swipe(landmarks)
            if swipe is not None:
                return swipe

        label, confidence = None, 0.0
        if up_count == 0:
            label, confidence = "fist", 0.95
        elif up_count == 1 and index:
            label, confidence = "point", 0.95
        elif up_count == 2 and index and middle:
            label, confidence = "peace", 0.95
        elif up_count == 5:
            label, confidence = "open_hand", 0.95
        elif up_count == 2 and thumb and pinky:
            label, confidence = "rock_on", 0.95
        elif thumb and not (index or middle or ring or pinky):
            label, confidence = "thumbs_up", 0.9
        elif up_count == 3 and index and middle and ring:
            label, confidence = "three", 0.9
        elif up_count == 4 and not thumb:
            label, confidence = "four", 0.9

        if label is None:
            return None
        return GestureResult(label, confidence, source=self.name)

    def _positional_swipe(self, landmarks) -> Optional[GestureResult]:
        tip_x = landmarks[INDEX_TIP][0]
        if tip_x < self._swipe_left_x:
            return GestureResult("swipe_left", 0.8, source=self.name)
        if tip_x > self._swipe_right_x:
            return GestureResult("swipe_right", 0.8, source=self.name)
        return None
