"""
Shared fixtures: a controllable clock, recording feedback sinks and
synthetic hand poses.
"""

import pytest

from core.events import EventBus
from core.scheduler import Scheduler
from core.types import LandmarkFrame, Rect, TargetKind
from modules.control.feedback_manager import FeedbackManager
from modules.navigation.element_registry import TargetRegistry
from modules.utils.config import Config


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingSpeech:
    def __init__(self):
        self.spoken = []

    def speak(self, text):
        self.spoken.append(text)


class RecordingHaptics:
    def __init__(self):
        self.patterns = []

    def vibrate(self, pattern):
        self.patterns.append(list(pattern))


FINGER_X = {"index": 0.45, "middle": 0.50, "ring": 0.55, "pinky": 0.60}


def create_mock_hand(extended=(), handedness="right", index_x=None):
    """
    Build a 21-point hand with the given fingers extended.

    Args:
        extended: finger names ("thumb", "index", "middle", "ring", "pinky")
        handedness: "right" or "left"
        index_x: optional absolute x for every index-finger joint

    Returns:
        LandmarkFrame
    """
    extended = set(extended)
    points = [(0.5, 0.85, 0.0)]  # Wrist

    # Thumb (1-4): CMC, MCP, IP, TIP
    ip_x = 0.37
    points += [(0.44, 0.80, 0.0), (0.40, 0.74, 0.0), (ip_x, 0.68, 0.0)]
    outward = 0.06 if "thumb" in extended else -0.04
    if handedness == "left":
        outward = -outward
    points.append((ip_x + outward, 0.62, 0.0))

    # Index, middle, ring, pinky: MCP, PIP, DIP, TIP
    for finger, x in FINGER_X.items():
        if finger == "index" and index_x is not None:
            x = index_x
        tip_y = 0.40 if finger in extended else 0.60
        points += [(x, 0.65, 0.0), (x, 0.55, 0.0), (x, 0.50, 0.0), (x, tip_y, 0.0)]

    return LandmarkFrame(points, handedness=handedness, timestamp=0.0)


@pytest.fixture(autouse=True)
def reset_singletons():
    """EventBus and Config are process-wide; isolate every test."""
    EventBus().reset()
    Config.reset()
    yield
    EventBus().reset()
    Config.reset()


@pytest.fixture
def make_hand():
    return create_mock_hand


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return Scheduler(clock=clock)


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def speech():
    return RecordingSpeech()


@pytest.fixture
def haptics():
    return RecordingHaptics()


@pytest.fixture
def feedback(speech, haptics):
    return FeedbackManager({}, speech=speech, haptics=haptics)


@pytest.fixture
def registry():
    """Three targets: two sharing a row (tops 4 apart) and one below."""
    reg = TargetRegistry(viewport_width=1280, viewport_height=720)
    reg.register_target(TargetKind.CARD, "card", Rect(300, 100, 200, 100), label="Energy card")
    reg.register_target(TargetKind.BUTTON, "button", Rect(10, 104, 120, 40), label="Lights")
    reg.register_target(TargetKind.INPUT, "search", Rect(10, 300, 400, 40), label="Search")
    return reg
