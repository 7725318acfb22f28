"""
Tests for Training Data and Model Persistence
==============================================
"""

import json
import os

import numpy as np
import pytest

from core.errors import ModelFormatError, TrainingError
from core.events import Events
from core.types import GestureSample, ProducerType
from data.collector.dataset_collector import TrainingCollector, TrainingSet
from models.feature_extractor import LandmarkFeatureExtractor
from modules.persistence.model_store import ModelStore
from modules.recognition.centroid_classifier import CentroidClassifier
from modules.utils.config import Config
from training.train import (
    compute_confusion_matrix, load_trained, model_path, save_trained, train_from_samples,
)


def hand_training_set(make_hand, per_label=30):
    extractor = LandmarkFeatureExtractor()
    poses = {"fist": (), "point": ("index",), "peace": ("index", "middle")}
    samples = []
    for label, fingers in poses.items():
        features = extractor.extract(make_hand(fingers))
        samples += [GestureSample(features, label, float(i)) for i in range(per_label)]
    return TrainingSet(samples)


class TestTrainingSet:
    """Test suite for the labelled sample container."""

    def test_counts(self):
        training_set = TrainingSet([
            GestureSample(np.zeros(3), "fist", 0.0),
            GestureSample(np.ones(3), "fist", 1.0),
            GestureSample(np.ones(3), "point", 2.0),
        ])
        assert len(training_set) == 3
        assert training_set.labels == ["fist", "point"]
        assert training_set.counts() == {"fist": 2, "point": 1}
        assert training_set.count("fist") == 2

    def test_export_format(self):
        payload = TrainingSet([GestureSample(np.array([0.5, 1.0]), "fist", 12.0)]).to_dict()
        assert payload["version"] == "1.0"
        assert payload["trainingData"] == [
            {"label": "fist", "features": [0.5, 1.0], "timestamp": 12.0}
        ]
        assert "T" in payload["timestamp"]

    def test_from_dict_rejects_garbage(self):
        with pytest.raises(ModelFormatError):
            TrainingSet.from_dict({"samples": []})
        with pytest.raises(ModelFormatError):
            TrainingSet.from_dict({"trainingData": [{"label": "fist"}]})


class TestTrainingCollector:
    """Test suite for the collection state machine."""

    @pytest.fixture
    def collector(self, feedback, bus, clock):
        return TrainingCollector(feedback=feedback, event_bus=bus, clock=clock)

    def test_idle_ignores_samples(self, collector):
        assert not collector.is_collecting
        assert not collector.add(np.zeros(4))
        assert len(collector.training_set) == 0

    def test_session(self, collector, speech, bus):
        stopped = []
        bus.subscribe(Events.COLLECTION_STOPPED, lambda **kw: stopped.append(kw))

        collector.start("thumbs_up")
        assert collector.active_label == "thumbs_up"
        for _ in range(4):
            assert collector.add(np.ones(4))
        assert collector.session_count == 4
        assert len(collector.training_set) == 0

        assert collector.stop() == 4
        assert collector.training_set.count("thumbs_up") == 4
        assert speech.spoken == [
            "Starting data collection for thumbs up gesture. Please perform the gesture repeatedly.",
            "Collected 4 samples for thumbs up",
        ]
        assert stopped == [{"label": "thumbs_up", "count": 4}]

    def test_switching_label_flushes(self, collector):
        collector.start("fist")
        collector.add(np.zeros(4))
        collector.start("point")
        collector.add(np.ones(4))
        collector.stop()
        assert collector.training_set.counts() == {"fist": 1, "point": 1}

    def test_samples_are_copied(self, collector):
        features = np.zeros(4)
        collector.start("fist")
        collector.add(features)
        features[0] = 9.0
        collector.stop()
        assert collector.training_set.samples_for("fist")[0].features[0] == 0.0

    def test_stop_when_idle(self, collector, speech):
        assert collector.stop() == 0
        assert speech.spoken == []

    def test_status(self, collector):
        collector.start("fist")
        collector.add(np.zeros(4))
        status = collector.get_status()
        assert status["collecting"] == "fist"
        assert status["session_samples"] == 1
        assert status["total_samples"] == 0


class TestModelStore:
    """Test suite for JSON model and sample files."""

    @pytest.fixture
    def store(self, tmp_path):
        return ModelStore({"storage_dir": str(tmp_path)})

    def test_model_round_trip(self, store):
        path = store.save_model({"fist": np.array([0.1, 0.2]), "point": np.array([0.3, 0.4])})
        assert os.path.basename(path) == "centroid_landmark.json"

        model = store.load_model()
        assert sorted(model) == ["fist", "point"]
        assert np.allclose(model["point"], [0.3, 0.4])

    def test_missing_model(self, store):
        assert store.load_model(ProducerType.MOTION) is None

    def test_invalid_json(self, store):
        with open(store.model_path(ProducerType.LANDMARK), "w") as f:
            f.write("{not json")
        with pytest.raises(ModelFormatError):
            store.load_model()

    def test_missing_centroids(self, store):
        with open(store.model_path(ProducerType.LANDMARK), "w") as f:
            json.dump({"version": "1.0"}, f)
        with pytest.raises(ModelFormatError):
            store.load_model()

    def test_producer_mismatch(self, store):
        path = store.save_model({"swipe_left": np.zeros(6)}, ProducerType.MOTION)
        with pytest.raises(ModelFormatError):
            store.load_model(ProducerType.LANDMARK, path)

    def test_samples_round_trip(self, store, make_hand):
        training_set = hand_training_set(make_hand, per_label=2)
        store.export_samples(training_set)
        imported = store.import_samples(store.samples_path(ProducerType.LANDMARK))
        assert imported.counts() == training_set.counts()

    def test_import_appends(self, store):
        path = store.export_samples(TrainingSet([GestureSample(np.ones(2), "fist", 0.0)]))
        existing = TrainingSet([GestureSample(np.zeros(2), "point", 0.0)])
        merged = store.import_samples(path, into=existing)
        assert merged is existing
        assert existing.counts() == {"point": 1, "fist": 1}

    def test_import_missing_file(self, store, tmp_path):
        with pytest.raises(FileNotFoundError):
            store.import_samples(str(tmp_path / "nope.json"))


class TestOfflineTraining:
    """Test suite for training/train.py."""

    @pytest.fixture
    def config(self, tmp_path):
        config = Config()
        config._data["persistence"]["storage_dir"] = str(tmp_path)
        return config

    def test_train_from_samples(self, config, make_hand, tmp_path):
        store = ModelStore(config.persistence)
        store.export_samples(hand_training_set(make_hand))

        classifier = train_from_samples(config, ProducerType.LANDMARK)
        assert classifier.name == "centroid"
        assert sorted(classifier.labels) == ["fist", "peace", "point"]
        assert os.path.exists(tmp_path / "centroid_landmark.json")

        fresh = CentroidClassifier(config.recognition)
        assert load_trained(fresh, store, ProducerType.LANDMARK)
        assert sorted(fresh.labels) == ["fist", "peace", "point"]

    def test_train_without_samples(self, config):
        with pytest.raises(FileNotFoundError):
            train_from_samples(config, ProducerType.LANDMARK)

    def test_train_refuses_small_set(self, config, make_hand):
        store = ModelStore(config.persistence)
        store.export_samples(hand_training_set(make_hand, per_label=5))
        with pytest.raises(TrainingError):
            train_from_samples(config, ProducerType.LANDMARK)

    def test_load_trained_without_file(self, config):
        store = ModelStore(config.persistence)
        assert not load_trained(CentroidClassifier(), store, ProducerType.MOTION)

    def test_model_path_per_kind(self, config, tmp_path):
        store = ModelStore(config.persistence)
        assert model_path(CentroidClassifier(), store, ProducerType.MOTION) == \
            str(tmp_path / "centroid_motion.json")

    def test_save_trained(self, config, make_hand, tmp_path):
        classifier = CentroidClassifier({"min_training_samples": 10})
        classifier.train(hand_training_set(make_hand, per_label=5))
        path = save_trained(classifier, ModelStore(config.persistence), ProducerType.LANDMARK)
        assert path == str(tmp_path / "centroid_landmark.json")

    def test_confusion_matrix(self, make_hand):
        training_set = hand_training_set(make_hand, per_label=4)
        classifier = CentroidClassifier({"min_training_samples": 10})
        classifier.train(training_set)

        matrix, class_names = compute_confusion_matrix(classifier, training_set)
        assert class_names == ["fist", "point", "peace"]
        assert matrix.shape == (3, 4)
        assert np.array_equal(np.diag(matrix), [4, 4, 4])
        assert matrix[:, 3].sum() == 0

    def test_confusion_matrix_counts_rejections(self):
        training_set = TrainingSet([
            GestureSample(np.zeros(2), "fist", 0.0),
            GestureSample(np.full(2, 50.0), "fist", 1.0),
        ])
        classifier = CentroidClassifier({"min_training_samples": 1})
        classifier.load_model({"fist": np.zeros(2)})
        matrix, _ = compute_confusion_matrix(classifier, training_set)
        assert matrix.tolist() == [[1, 1]]
