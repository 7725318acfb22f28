"""
Exception hierarchy for the gesture control core.

Per-frame problems never raise out of the pipeline; only capability
failures reach the caller, and training refusals are raised
synchronously to whoever asked for training.
"""


class GestureControlError(Exception):
    """Base class for all gesture control errors."""


class CapabilityError(GestureControlError):
    """Camera, permission or vision engine unavailable.

    The pipeline disables itself when this is raised during start-up.
    """


class TrainingError(GestureControlError):
    """Training was refused. ``reason`` explains why."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ModelFormatError(GestureControlError):
    """A persisted model or sample file could not be understood."""
