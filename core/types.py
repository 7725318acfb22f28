"""
Shared domain types for the touchless gesture control core.

Centralizes enums, data classes, and type definitions used across modules
to eliminate circular imports and ensure type consistency.
"""

import time
from enum import Enum
from typing import Optional, List, NamedTuple
import numpy as np


NUM_LANDMARKS = 21

# Landmark producer -> feature vector length
LANDMARK_FEATURE_DIM = 73
MOTION_FEATURE_DIM = 6


# =============================================================================
# Enums
# =============================================================================

class ProducerType(Enum):
    """Which kind of sample the landmark source delivers."""
    LANDMARK = "landmark"
    MOTION = "motion"

    @classmethod
    def from_string(cls, name: str) -> 'ProducerType':
        try:
            return cls(str(name).lower())
        except ValueError:
            return cls.LANDMARK


class TargetKind(Enum):
    """Kinds of interactive targets the focus navigator can select."""
    BUTTON = "button"
    LINK = "link"
    INPUT = "input"
    CARD = "card"
    OTHER = "other"

    @property
    def is_input(self) -> bool:
        return self is TargetKind.INPUT


# =============================================================================
# Samples
# =============================================================================

class Point3D(NamedTuple):
    x: float
    y: float
    z: float = 0.0


class LandmarkFrame:
    """One frame of 21 normalized hand keypoints.

    Uses __slots__ since one instance is produced and discarded per frame.
    ``points`` is kept exactly as delivered; validation happens in the
    feature extractor so malformed frames can be dropped there.
    """

    __slots__ = ("points", "handedness", "timestamp")

    def __init__(self, points, handedness: str = "right",
                 timestamp: Optional[float] = None):
        self.points = tuple(Point3D(*p) for p in points)
        self.handedness = (handedness or "right").lower()
        self.timestamp = time.time() if timestamp is None else timestamp

    def __len__(self):
        return len(self.points)

    def __getitem__(self, index) -> Point3D:
        return self.points[index]

    def to_numpy(self) -> np.ndarray:
        """(N, 3) float array of the keypoints."""
        return np.asarray(self.points, dtype=np.float64).reshape(-1, 3)

    def __repr__(self):
        return f"LandmarkFrame({len(self.points)} pts, {self.handedness})"


class MotionSample(NamedTuple):
    """Motion-centroid sample from frame differencing."""
    x: float
    y: float
    intensity: float
    timestamp: float


class GestureSample(NamedTuple):
    """One labelled feature vector collected during a training session."""
    features: np.ndarray
    label: str
    timestamp: float


# =============================================================================
# Classification
# =============================================================================

class Observation:
    """Everything a classifier may look at for one frame.

    The heuristic strategy reads ``sample`` (raw keypoints), the motion
    analyzer reads ``window`` and the trainable strategies read
    ``features``.
    """

    __slots__ = ("producer", "sample", "features", "window")

    def __init__(self, producer: ProducerType, sample, features: Optional[np.ndarray] = None,
                 window: Optional[List[MotionSample]] = None):
        self.producer = producer
        self.sample = sample
        self.features = features
        self.window = window


class GestureResult:
    """Container for gesture classification output."""

    __slots__ = ("label", "confidence", "source", "timestamp")

    def __init__(self, label: str, confidence: float, source: str = ""):
        self.label = label
        self.confidence = float(confidence)
        self.source = source
        self.timestamp = time.time()

    def as_tuple(self):
        return (self.label, self.confidence)

    def __eq__(self, other):
        if isinstance(other, GestureResult):
            return self.as_tuple() == other.as_tuple()
        if isinstance(other, tuple):
            return self.as_tuple() == other
        return NotImplemented

    def __hash__(self):
        return hash(self.as_tuple())

    def __repr__(self):
        return f"GestureResult({self.label}, conf={self.confidence:.2f})"


class PendingGesture:
    """The one gesture currently waiting for confirmation."""

    __slots__ = ("label", "started_at", "timer_handle")

    def __init__(self, label: str, started_at: float, timer_handle):
        self.label = label
        self.started_at = started_at
        self.timer_handle = timer_handle

    def __repr__(self):
        return f"PendingGesture({self.label}, started_at={self.started_at:.3f})"


# =============================================================================
# Navigation
# =============================================================================

class Rect(NamedTuple):
    """Axis-aligned box. ``left``/``top`` grow right/down."""
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def offset(self, dx: float = 0.0, dy: float = 0.0) -> 'Rect':
        return Rect(self.left + dx, self.top + dy, self.width, self.height)

    def inflate(self, margin: float) -> 'Rect':
        return Rect(self.left - margin, self.top - margin,
                    self.width + 2 * margin, self.height + 2 * margin)


class FocusableTarget:
    """An interactive element eligible for touchless selection."""

    __slots__ = ("handle", "rect", "index", "kind")

    def __init__(self, handle, rect: Rect, index: int, kind: TargetKind):
        self.handle = handle
        self.rect = rect
        self.index = index
        self.kind = kind

    def __repr__(self):
        return f"FocusableTarget({self.kind.value}, index={self.index}, rect={tuple(self.rect)})"


class ScrollState(NamedTuple):
    position: float = 0.0
    max_scroll: float = 0.0

    @property
    def can_scroll_up(self) -> bool:
        return self.position > 0

    @property
    def can_scroll_down(self) -> bool:
        return self.position < self.max_scroll


class NavigationState:
    """Mutable navigation state, owned exclusively by the FocusNavigator."""

    def __init__(self):
        self.is_active: bool = False
        self.current_index: int = -1
        self.targets: List[FocusableTarget] = []
        self.scroll: ScrollState = ScrollState()

    @property
    def current_target(self) -> Optional[FocusableTarget]:
        if 0 <= self.current_index < len(self.targets):
            return self.targets[self.current_index]
        return None

    def to_dict(self) -> dict:
        return {
            "is_active": self.is_active,
            "current_index": self.current_index,
            "target_count": len(self.targets),
            "can_scroll_up": self.scroll.can_scroll_up,
            "can_scroll_down": self.scroll.can_scroll_down,
        }
