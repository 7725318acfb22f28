"""
Feature extraction and trainable models for gesture classification.

Provides:
    - FeatureExtractor: producer-tagged sample → feature vector
    - GestureNet / NeuralClassifier: PyTorch MLP variant (optional extra)
    - HybridClassifier: trained classifier first, rule-based fallback
"""

__all__ = [
    "FeatureExtractor",
    "GestureNet",
    "NeuralClassifier",
    "HybridClassifier",
]
