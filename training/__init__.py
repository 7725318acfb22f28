"""
Training package for the trainable gesture classifiers.

Provides:
    - GestureDataset: PyTorch Dataset over collected gesture samples
    - train.py: offline training entry point, model save/load helpers and
      the confusion-matrix report
"""
