"""
GestureNet: small MLP drop-in for the centroid matcher.

Architecture:
    Input  : feature_dim (73 landmark / 6 motion)
    FC1    : 128 units, ReLU, Dropout(0.2)
    FC2    : 64 units, ReLU, Dropout(0.2)
    FC3    : 32 units, ReLU
    Output : num_classes logits (softmax at inference)

NeuralClassifier wraps the network behind the same train/classify
interface as CentroidClassifier: training is refused below the minimum
sample count, and a prediction is accepted only when its softmax
probability clears the threshold.

Requires PyTorch (``pip install .[ml]``). The classifier factory only
imports this module when the ``neural`` strategy is configured.
"""

import os
import logging
from typing import List, Optional

import numpy as np
import torch
import torch.nn as nn
import torch.optim as optim
from torch.utils.data import DataLoader

from core.errors import TrainingError, ModelFormatError
from core.types import GestureResult, Observation, ProducerType
from data.collector.dataset_collector import TrainingSet
from modules.recognition.centroid_classifier import resolve_min_samples
from training.dataset import GestureDataset

logger = logging.getLogger(__name__)


class GestureNet(nn.Module):
    """Lightweight MLP for gesture feature vectors."""

    def __init__(self, input_dim, num_classes, dropout=0.2):
        super(GestureNet, self).__init__()

        self.features = nn.Sequential(
            nn.Linear(input_dim, 128),
            nn.ReLU(inplace=True),
            nn.Dropout(dropout),

            nn.Linear(128, 64),
            nn.ReLU(inplace=True),
            nn.Dropout(dropout),

            nn.Linear(64, 32),
            nn.ReLU(inplace=True),
        )

        self.classifier = nn.Linear(32, num_classes)

        self._init_weights()

    def _init_weights(self):
        for m in self.modules():
            if isinstance(m, nn.Linear):
                nn.init.kaiming_normal_(m.weight, nonlinearity="relu")
                if m.bias is not None:
                    nn.init.zeros_(m.bias)

    def forward(self, x):
        """Raw logits of shape (batch, num_classes)."""
        x = self.features(x)
        x = self.classifier(x)
        return x

    def predict_proba(self, x):
        """Softmax probabilities of shape (batch, num_classes)."""
        self.eval()
        with torch.no_grad():
            logits = self.forward(x)
            return torch.softmax(logits, dim=1)


def train_one_epoch(model, loader, criterion, optimizer, device):
    """Train for one epoch, return (avg_loss, accuracy)."""
    model.train()
    running_loss = 0.0
    correct = 0
    total = 0

    for features, labels in loader:
        features = features.to(device)
        labels = labels.to(device)

        optimizer.zero_grad()
        outputs = model(features)
        loss = criterion(outputs, labels)
        loss.backward()
        optimizer.step()

        running_loss += loss.item() * features.size(0)
        _, predicted = outputs.max(1)
        total += labels.size(0)
        correct += predicted.eq(labels).sum().item()

    return running_loss / max(total, 1), correct / max(total, 1)


class NeuralClassifier:
    """Trainable MLP classifier with the CentroidClassifier interface.

    Example:
        >>> clf = NeuralClassifier({"epochs": 50}, ProducerType.LANDMARK)
        >>> clf.train(training_set)
        >>> result = clf.classify_features(vector)
    """

    name = "neural"

    def __init__(self, config: dict = None, producer: ProducerType = ProducerType.LANDMARK):
        config = config or {}
        self._producer = producer
        self._threshold = config.get("confidence_threshold",
                                     config.get("similarity_threshold", 0.7))
        self._min_samples = resolve_min_samples(config, producer)
        self._epochs = config.get("epochs", 50)
        self._batch_size = config.get("batch_size", 32)
        self._lr = config.get("learning_rate", 0.001)
        self._dropout = config.get("dropout", 0.2)
        self._seed = config.get("seed", 42)

        self._device = torch.device("cuda" if torch.cuda.is_available() else "cpu")
        self._model: Optional[GestureNet] = None
        self._class_names: List[str] = []
        self._input_dim: Optional[int] = None

    @property
    def is_trained(self) -> bool:
        return self._model is not None

    @property
    def min_samples(self) -> int:
        return self._min_samples

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def labels(self):
        return list(self._class_names)

    def train(self, training_set: TrainingSet) -> dict:
        """Fit a fresh network on the collected samples.

        Raises:
            TrainingError: too few samples, fewer than two labels, or
                           vectors of inconsistent length. The previous
                           model is kept.

        Returns:
            Summary dict with final loss and accuracy
        """
        total = len(training_set)
        if total < self._min_samples:
            raise TrainingError(
                f"Need at least {self._min_samples} training samples, have {total}"
            )
        if len(training_set.labels) < 2:
            raise TrainingError("Need samples for at least two gestures")
        lengths = {len(s.features) for s in training_set}
        if len(lengths) != 1:
            raise TrainingError(f"Inconsistent feature lengths: {sorted(lengths)}")

        torch.manual_seed(self._seed)
        dataset = GestureDataset(training_set)
        loader = DataLoader(dataset, batch_size=self._batch_size, shuffle=True,
                            num_workers=0)

        model = GestureNet(dataset.feature_dim, dataset.num_classes,
                           dropout=self._dropout).to(self._device)
        criterion = nn.CrossEntropyLoss(weight=dataset.class_weights().to(self._device))
        optimizer = optim.Adam(model.parameters(), lr=self._lr)

        logger.info("Training GestureNet: %d samples, %d classes, %d epochs",
                    total, dataset.num_classes, self._epochs)
        loss, acc = 0.0, 0.0
        for epoch in range(1, self._epochs + 1):
            loss, acc = train_one_epoch(model, loader, criterion, optimizer, self._device)
            if epoch % 10 == 0 or epoch == self._epochs:
                logger.debug("Epoch %3d/%d | loss=%.4f acc=%.3f",
                             epoch, self._epochs, loss, acc)

        model.eval()
        self._model = model
        self._class_names = dataset.class_names
        self._input_dim = dataset.feature_dim
        logger.info("GestureNet trained: loss=%.4f acc=%.3f", loss, acc)
        return {"loss": loss, "accuracy": acc, "classes": self.labels}

    def classify(self, observation: Observation) -> Optional[GestureResult]:
        if observation.features is None:
            return None
        return self.classify_features(observation.features)

    def classify_features(self, features) -> Optional[GestureResult]:
        if self._model is None:
            return None
        vector = np.asarray(features, dtype=np.float32)
        if vector.ndim != 1 or len(vector) != self._input_dim:
            return None

        tensor = torch.from_numpy(vector).unsqueeze(0).to(self._device)
        probs = self._model.predict_proba(tensor).cpu().numpy().squeeze(0)
        class_idx = int(np.argmax(probs))
        confidence = float(probs[class_idx])
        if confidence <= self._threshold:
            return None
        return GestureResult(self._class_names[class_idx], confidence, source=self.name)

    def reset(self):
        self._model = None
        self._class_names = []
        self._input_dim = None

    def save(self, path: str):
        """Write a checkpoint with the weights and the class order."""
        if self._model is None:
            raise TrainingError("No trained model to save")
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        torch.save({
            "model_state_dict": self._model.state_dict(),
            "num_classes": len(self._class_names),
            "input_dim": self._input_dim,
            "class_names": self._class_names,
            "producer": self._producer.value,
        }, path)
        logger.info("GestureNet saved to %s", path)

    def load(self, path: str):
        """Load a checkpoint written by save()."""
        checkpoint = torch.load(path, map_location=self._device)
        if not isinstance(checkpoint, dict) or "model_state_dict" not in checkpoint:
            raise ModelFormatError(f"Not a GestureNet checkpoint: {path}")

        model = GestureNet(checkpoint["input_dim"], checkpoint["num_classes"],
                           dropout=self._dropout)
        model.load_state_dict(checkpoint["model_state_dict"])
        model.to(self._device)
        model.eval()
        self._model = model
        self._class_names = list(checkpoint["class_names"])
        self._input_dim = checkpoint["input_dim"]
        logger.info("Loaded GestureNet (%d classes) from %s", len(self._class_names), path)
