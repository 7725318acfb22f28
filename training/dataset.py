"""
PyTorch Dataset over collected gesture samples.

Wraps a TrainingSet (labelled feature vectors gathered by the
TrainingCollector) and provides the standard Dataset/DataLoader interface
for the neural classifier. Class indices follow the sorted label order so
a checkpoint can be decoded from its stored ``class_names``.
"""

import logging
import numpy as np

import torch
from torch.utils.data import Dataset

from data.collector.dataset_collector import TrainingSet

logger = logging.getLogger(__name__)


class GestureDataset(Dataset):
    """(features, label) pairs where:
        - features: FloatTensor of shape (feature_dim,)
        - label: LongTensor scalar (index into ``class_names``)
    """

    def __init__(self, training_set: TrainingSet, transform=None):
        """
        Args:
            training_set: Collected samples
            transform: Optional callable(features_tensor) → features_tensor
        """
        self._transform = transform
        self._class_names = sorted(training_set.labels)
        self._label_map = {name: idx for idx, name in enumerate(self._class_names)}

        features, labels = [], []
        for sample in training_set:
            features.append(np.asarray(sample.features, dtype=np.float32))
            labels.append(self._label_map[sample.label])

        if features:
            self._features = np.stack(features)
            self._labels = np.array(labels, dtype=np.int64)
        else:
            self._features = np.zeros((0, 0), dtype=np.float32)
            self._labels = np.zeros(0, dtype=np.int64)

        logger.info("GestureDataset: %d samples, %d classes",
                    len(self._labels), len(self._class_names))
        for name in self._class_names:
            logger.debug("  %-15s %d samples", name, training_set.count(name))

    def __len__(self):
        return len(self._labels)

    def __getitem__(self, idx):
        features_tensor = torch.from_numpy(self._features[idx])
        if self._transform is not None:
            features_tensor = self._transform(features_tensor)
        return features_tensor, torch.tensor(self._labels[idx], dtype=torch.long)

    @property
    def feature_dim(self):
        return self._features.shape[1] if len(self._features) else 0

    @property
    def num_classes(self):
        return len(self._class_names)

    @property
    def class_names(self):
        return list(self._class_names)

    def class_weights(self):
        """Inverse-frequency class weights for imbalanced data.

        Returns:
            FloatTensor of shape (num_classes,)
        """
        counts = np.bincount(self._labels, minlength=self.num_classes).astype(np.float32)
        counts = np.maximum(counts, 1.0)
        weights = 1.0 / counts
        weights = weights / weights.sum() * self.num_classes
        return torch.from_numpy(weights)
