"""
Tests for Feature Extraction
=============================
"""

import math

import numpy as np
import pytest

from core.types import MotionSample, ProducerType
from models.feature_extractor import (
    FeatureExtractor, LandmarkFeatureExtractor, MotionWindow, landmarks_array,
    WRIST, INDEX_TIP,
)


class TestLandmarkFeatureExtractor:
    """Test suite for the 73-value landmark features."""

    @pytest.fixture
    def extractor(self):
        return LandmarkFeatureExtractor()

    @pytest.mark.parametrize("fingers", [(), ("index",), ("thumb", "pinky"),
                                         ("thumb", "index", "middle", "ring", "pinky")])
    def test_vector_length(self, extractor, make_hand, fingers):
        """Every valid frame yields exactly 73 values."""
        features = extractor.extract(make_hand(fingers))
        assert features.shape == (73,)

    def test_wrist_relative(self, extractor, make_hand):
        """The wrist maps to the origin and other points are offsets from it."""
        frame = make_hand(("index",))
        features = extractor.extract(frame)
        assert np.allclose(features[0:3], 0.0)

        tip = frame[INDEX_TIP]
        wrist = frame[WRIST]
        offset = features[INDEX_TIP * 3:INDEX_TIP * 3 + 3]
        assert np.allclose(offset, [tip.x - wrist.x, tip.y - wrist.y, tip.z - wrist.z])

    def test_fingertip_distance_and_angle(self, extractor, make_hand):
        """Index fingertip is the second (distance, angle) pair."""
        frame = make_hand(("index",))
        features = extractor.extract(frame)
        dx = frame[INDEX_TIP].x - frame[WRIST].x
        dy = frame[INDEX_TIP].y - frame[WRIST].y
        assert features[65] == pytest.approx(math.sqrt(dx * dx + dy * dy))
        assert features[66] == pytest.approx(math.atan2(dy, dx))

    def test_accepts_plain_sequences(self, extractor):
        """A bare list of 21 triples works as well as a LandmarkFrame."""
        points = [(0.1 * (i % 5), 0.05 * i, 0.0) for i in range(21)]
        assert extractor.extract(points).shape == (73,)

    def test_wrong_point_count_dropped(self, extractor):
        assert extractor.extract([(0.5, 0.5, 0.0)] * 20) is None

    def test_non_finite_dropped(self, extractor, make_hand):
        points = [tuple(p) for p in make_hand().points]
        points[3] = (float("nan"), 0.5, 0.0)
        assert extractor.extract(points) is None

    def test_garbage_dropped(self, extractor):
        assert extractor.extract("not a frame") is None
        assert landmarks_array(None) is None


class TestMotionWindow:
    """Test suite for the rolling motion-centroid window."""

    def _sample(self, i, x=0.5, y=0.5):
        return MotionSample(x, y, 30.0, i * 0.033)

    def test_not_ready_below_minimum(self):
        window = MotionWindow(min_samples=10)
        for i in range(9):
            window.push(self._sample(i))
        assert not window.ready
        assert window.features() is None

    def test_trims_after_cap(self):
        window = MotionWindow(max_samples=50, trim_to=30)
        for i in range(51):
            window.push(self._sample(i))
        assert len(window) == 30

    def test_features_describe_displacement(self):
        window = MotionWindow(min_samples=10, analysis_span=20)
        for i in range(20):
            window.push(self._sample(i, x=0.2 + 0.03 * i))
        dx, dy, distance, mean_x, mean_y, variance = window.features()
        assert dx == pytest.approx(0.57)
        assert dy == pytest.approx(0.0)
        assert distance == pytest.approx(0.57)
        assert mean_y == pytest.approx(0.5)
        assert variance > 0


class TestFeatureExtractor:
    """Test suite for the producer-tagged facade."""

    def test_landmark_producer(self, make_hand):
        extractor = FeatureExtractor(ProducerType.LANDMARK)
        assert extractor.feature_dim == 73
        assert extractor.extract(make_hand()).shape == (73,)

    def test_motion_producer_waits_for_window(self):
        extractor = FeatureExtractor(ProducerType.MOTION, {"min_samples": 10})
        results = [extractor.extract(MotionSample(0.5, 0.5, 20.0, i * 0.03)) for i in range(10)]
        assert all(r is None for r in results[:9])
        assert results[9].shape == (6,)
        assert extractor.feature_dim == 6

    def test_motion_producer_rejects_landmarks(self, make_hand):
        extractor = FeatureExtractor(ProducerType.MOTION)
        assert extractor.extract(make_hand()) is None
        assert len(extractor.window) == 0

    def test_motion_producer_rejects_nan(self):
        extractor = FeatureExtractor(ProducerType.MOTION)
        assert extractor.extract(MotionSample(float("nan"), 0.5, 1.0, 0.0)) is None
        assert len(extractor.window) == 0

    def test_reset_clears_window(self):
        extractor = FeatureExtractor(ProducerType.MOTION)
        extractor.extract(MotionSample(0.5, 0.5, 20.0, 0.0))
        extractor.reset()
        assert len(extractor.window) == 0
