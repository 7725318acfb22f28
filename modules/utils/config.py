"""
Centralized configuration manager.
Loads YAML configs over built-in defaults and provides dot-path access.

Files:
    config/config.yaml    runtime settings per component section
    config/gestures.yaml  gesture → command bindings per producer
"""

import os
import copy
import yaml
import logging

logger = logging.getLogger(__name__)

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
_CONFIG_DIR = os.path.join(_BASE_DIR, "config")

DEFAULTS = {
    "system": {
        "version": "1.0.0",
        "producer": "landmark",
        "show_preview": True,
        "window_name": "Touchless Gesture Control",
    },
    "logging": {
        "level": "INFO",
        "file": None,
        "max_size_mb": 10,
        "backup_count": 3,
    },
    "camera": {
        "device_id": 0,
        "width": 640,
        "height": 480,
        "fps": 30,
        "backend": "auto",
        "flip_horizontal": True,
    },
    "hand_detection": {
        "model_complexity": 0,
        "min_detection_confidence": 0.6,
        "min_tracking_confidence": 0.5,
    },
    "motion": {
        "sensitivity": 15,
        "analysis_width": 320,
        "analysis_height": 240,
        "min_samples": 10,
        "analysis_span": 20,
        "max_window": 50,
        "trim_to": 30,
    },
    "recognition": {
        "strategy": "auto",
        "trainable": "centroid",
        "similarity_threshold": 0.7,
        "min_training_samples": {"landmark": 50, "motion": 20},
        "heuristic": {"handedness": "right", "swipe_priority": False},
        "motion": {"spam_interval_ms": 2000},
        "neural": {"epochs": 50, "batch_size": 32, "learning_rate": 0.001, "dropout": 0.2},
    },
    "confirmation": {
        "confirmation_delay_ms": 1500,
        "indicator_clear_ms": 2000,
        "history_size": 5,
        "suppress_repeat": True,
    },
    "navigation": {
        "refresh_interval_ms": 1000,
        "scroll_step": 150,
        "row_tolerance": 10,
        "highlight_margin": 5,
    },
    "feedback": {
        "voice_enabled": True,
        "haptic_enabled": True,
        "speech_rate": 175,
        "speech_volume": 1.0,
    },
    "persistence": {
        "storage_dir": "data/models",
    },
}

# Schema: expected types of the fields that components rely on
_CONFIG_SCHEMA = {
    "camera": {
        "device_id": int,
        "width": int,
        "height": int,
        "fps": int,
    },
    "motion": {
        "sensitivity": int,
    },
    "recognition": {
        "strategy": str,
        "similarity_threshold": float,
    },
    "confirmation": {
        "confirmation_delay_ms": int,
        "indicator_clear_ms": int,
        "history_size": int,
    },
    "navigation": {
        "refresh_interval_ms": int,
        "scroll_step": int,
        "row_tolerance": int,
    },
    "feedback": {
        "voice_enabled": bool,
        "haptic_enabled": bool,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Singleton configuration manager."""

    _instance = None
    _data = copy.deepcopy(DEFAULTS)

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def load(self, config_path=None, gestures_path=None):
        """Load configuration from YAML files over the defaults."""
        config_path = config_path or os.path.join(_CONFIG_DIR, "config.yaml")
        gestures_path = gestures_path or os.path.join(_CONFIG_DIR, "gestures.yaml")

        data = copy.deepcopy(DEFAULTS)
        try:
            with open(config_path, "r") as f:
                data = _deep_merge(data, yaml.safe_load(f) or {})
            logger.info("Loaded config from %s", config_path)
        except FileNotFoundError:
            logger.warning("Config file not found: %s, using defaults", config_path)

        try:
            with open(gestures_path, "r") as f:
                data["gestures"] = yaml.safe_load(f) or {}
            logger.info("Loaded gestures from %s", gestures_path)
        except FileNotFoundError:
            logger.warning("Gestures file not found: %s", gestures_path)
            data.setdefault("gestures", {})

        self._data = data
        self._validate()
        return self

    def _validate(self):
        """Validate critical config fields against schema."""
        warnings = []
        for section_name, fields in _CONFIG_SCHEMA.items():
            section = self._data.get(section_name)
            if not isinstance(section, dict):
                warnings.append(f"Section '{section_name}' should be a dict, got {type(section).__name__}")
                continue
            for field_name, expected_type in fields.items():
                if field_name in section:
                    value = section[field_name]
                    # Allow int where float is expected
                    if expected_type is float and isinstance(value, (int, float)):
                        continue
                    if expected_type is int and isinstance(value, bool):
                        warnings.append(f"{section_name}.{field_name}: expected int, got bool")
                        continue
                    if not isinstance(value, expected_type):
                        warnings.append(
                            f"{section_name}.{field_name}: expected {expected_type.__name__}, "
                            f"got {type(value).__name__} ({value!r})"
                        )

        for w in warnings:
            logger.warning("Config validation: %s", w)
        if not warnings:
            logger.debug("Config validation passed")
        return warnings

    def get(self, key_path: str, default=None):
        """Get nested config value using dot notation: 'camera.width'."""
        keys = key_path.split(".")
        value = self._data
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def get_section(self, section: str) -> dict:
        """Get an entire config section."""
        return self._data.get(section, {})

    @property
    def system(self) -> dict:
        return self._data.get("system", {})

    @property
    def camera(self) -> dict:
        return self._data.get("camera", {})

    @property
    def hand_detection(self) -> dict:
        return self._data.get("hand_detection", {})

    @property
    def motion(self) -> dict:
        return self._data.get("motion", {})

    @property
    def recognition(self) -> dict:
        return self._data.get("recognition", {})

    @property
    def confirmation(self) -> dict:
        return self._data.get("confirmation", {})

    @property
    def navigation(self) -> dict:
        return self._data.get("navigation", {})

    @property
    def feedback(self) -> dict:
        return self._data.get("feedback", {})

    @property
    def persistence(self) -> dict:
        return self._data.get("persistence", {})

    @property
    def gestures(self) -> dict:
        return self._data.get("gestures", {})

    @property
    def base_dir(self) -> str:
        return _BASE_DIR

    @classmethod
    def reset(cls):
        """Reset singleton instance (for testing)."""
        cls._instance = None
        cls._data = copy.deepcopy(DEFAULTS)
