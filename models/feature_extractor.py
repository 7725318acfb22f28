"""
Feature extraction: one frame's raw sample → fixed-length feature vector.

Landmark layout (73 dimensions):
    [0:63]   Wrist-relative landmarks (21 × 3): x - wx, y - wy, z - wz
    [63:73]  Per fingertip (thumb, index, middle, ring, pinky):
             Euclidean distance to the wrist, atan2(dy, dx) from the wrist

Motion layout (6 dimensions, over the recent part of the rolling window):
    dx, dy, distance, mean_x, mean_y, variance

No per-dimension scaling is applied beyond the wrist-relative centring,
so centroid distances are plain Euclidean distances.
"""

import logging
import math
from typing import List, Optional

import numpy as np

from core.types import (
    LandmarkFrame, MotionSample, ProducerType,
    NUM_LANDMARKS, LANDMARK_FEATURE_DIM, MOTION_FEATURE_DIM,
)

logger = logging.getLogger(__name__)

# MediaPipe landmark indices
WRIST = 0
THUMB_CMC, THUMB_MCP, THUMB_IP, THUMB_TIP = 1, 2, 3, 4
INDEX_MCP, INDEX_PIP, INDEX_DIP, INDEX_TIP = 5, 6, 7, 8
MIDDLE_MCP, MIDDLE_PIP, MIDDLE_DIP, MIDDLE_TIP = 9, 10, 11, 12
RING_MCP, RING_PIP, RING_DIP, RING_TIP = 13, 14, 15, 16
PINKY_MCP, PINKY_PIP, PINKY_DIP, PINKY_TIP = 17, 18, 19, 20

FINGER_NAMES = ("thumb", "index", "middle", "ring", "pinky")
FINGER_TIPS = [THUMB_TIP, INDEX_TIP, MIDDLE_TIP, RING_TIP, PINKY_TIP]
# Joint each tip is compared against for the extended test (IP for the thumb)
FINGER_PIPS = [THUMB_IP, INDEX_PIP, MIDDLE_PIP, RING_PIP, PINKY_PIP]


def landmarks_array(frame) -> Optional[np.ndarray]:
    """Validate a landmark frame and return it as a (21, 3) array.

    Returns None for anything malformed: wrong point count, wrong shape
    or non-finite coordinates.
    """
    try:
        if isinstance(frame, LandmarkFrame):
            arr = frame.to_numpy()
        else:
            arr = np.asarray(frame, dtype=np.float64)
    except (TypeError, ValueError):
        return None
    if arr.shape != (NUM_LANDMARKS, 3):
        return None
    if not np.all(np.isfinite(arr)):
        return None
    return arr


class LandmarkFeatureExtractor:
    """Converts 21 hand keypoints into the 73-value feature vector. Pure."""

    feature_dim = LANDMARK_FEATURE_DIM

    def extract(self, frame) -> Optional[np.ndarray]:
        """Convert one landmark frame → (73,) feature vector, or None if malformed."""
        landmarks = landmarks_array(frame)
        if landmarks is None:
            logger.debug("Dropping malformed landmark frame")
            return None

        features = np.zeros(self.feature_dim, dtype=np.float64)

        wrist = landmarks[WRIST]
        features[0:63] = (landmarks - wrist).flatten()

        for i, tip_idx in enumerate(FINGER_TIPS):
            delta = landmarks[tip_idx] - wrist
            features[63 + 2 * i] = float(np.linalg.norm(delta))
            features[64 + 2 * i] = math.atan2(delta[1], delta[0])

        return features


class MotionWindow:
    """Rolling window of motion-centroid samples.

    Grows up to ``max_samples``; once exceeded it is cut back to the most
    recent ``trim_to`` samples. Features are only available once
    ``min_samples`` are present.
    """

    def __init__(self, min_samples: int = 10, analysis_span: int = 20,
                 max_samples: int = 50, trim_to: int = 30):
        self._min_samples = min_samples
        self._analysis_span = analysis_span
        self._max_samples = max_samples
        self._trim_to = trim_to
        self._samples: List[MotionSample] = []

    def push(self, sample: MotionSample):
        self._samples.append(sample)
        if len(self._samples) > self._max_samples:
            self._samples = self._samples[-self._trim_to:]

    @property
    def ready(self) -> bool:
        return len(self._samples) >= self._min_samples

    def recent(self) -> List[MotionSample]:
        """The part of the window a pattern analyzer should look at."""
        return list(self._samples[-self._analysis_span:])

    def features(self) -> Optional[np.ndarray]:
        """(6,) vector of displacement and spread, or None until ready."""
        if not self.ready:
            return None
        recent = self.recent()
        xs = np.array([s.x for s in recent], dtype=np.float64)
        ys = np.array([s.y for s in recent], dtype=np.float64)
        dx = xs[-1] - xs[0]
        dy = ys[-1] - ys[0]
        mean_x = xs.mean()
        mean_y = ys.mean()
        variance = float(np.mean((xs - mean_x) ** 2 + (ys - mean_y) ** 2))
        return np.array([dx, dy, math.hypot(dx, dy), mean_x, mean_y, variance])

    def clear(self):
        self._samples = []

    def __len__(self):
        return len(self._samples)


class FeatureExtractor:
    """Producer-tagged facade over the landmark extractor and motion window.

    ``extract`` returns None whenever no feature vector is available for
    this sample, which means no classification attempt for the frame.
    """

    def __init__(self, producer: ProducerType = ProducerType.LANDMARK, config: dict = None):
        config = config or {}
        self._producer = producer
        self._landmarks = LandmarkFeatureExtractor()
        self._window = MotionWindow(
            min_samples=config.get("min_samples", 10),
            analysis_span=config.get("analysis_span", 20),
            max_samples=config.get("max_window", 50),
            trim_to=config.get("trim_to", 30),
        )

    @property
    def producer(self) -> ProducerType:
        return self._producer

    @property
    def feature_dim(self) -> int:
        if self._producer is ProducerType.MOTION:
            return MOTION_FEATURE_DIM
        return LANDMARK_FEATURE_DIM

    @property
    def window(self) -> MotionWindow:
        return self._window

    def extract(self, sample) -> Optional[np.ndarray]:
        if self._producer is ProducerType.LANDMARK:
            return self._landmarks.extract(sample)

        if not isinstance(sample, MotionSample):
            logger.debug("Dropping non-motion sample for motion producer: %r", type(sample))
            return None
        if not all(math.isfinite(v) for v in (sample.x, sample.y, sample.intensity)):
            return None
        self._window.push(sample)
        return self._window.features()

    def reset(self):
        self._window.clear()
