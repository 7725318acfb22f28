#!/usr/bin/env python3
"""
Touchless Gesture Control
Main application entry point.

Architecture:
    - core.GesturePipeline handles the sample → label → confirm → act cycle
    - core.EventBus for decoupled module communication
    - FocusNavigator moves a highlight through a demo dashboard of targets
    - No God Object: TouchlessGestureControl only wires and renders

Usage:
    python main.py                          # Control mode (landmark producer)
    python main.py --producer motion        # Frame-differencing producer
    python main.py --mode collect           # Record labelled training samples
    python main.py --mode train             # Train from exported samples
"""

import sys
import os
import time
import signal
import argparse
import logging

import cv2

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from core.errors import GestureControlError
from core.events import EventBus, Events
from core.pipeline import create_pipeline
from core.types import ProducerType, Rect, TargetKind
from data.collector.dataset_collector import TrainingCollector
from models.hybrid_classifier import HybridClassifier
from modules.capture.motion_detector import MotionSource
from modules.control.feedback_manager import FeedbackManager
from modules.detection.hand_detector import HandLandmarkSource
from modules.navigation.element_registry import TargetRegistry
from modules.persistence.model_store import ModelStore
from modules.utils.config import Config
from modules.utils.logger import setup_logging, GestureLogger
from training.train import load_trained, save_trained, train_from_samples

logger = logging.getLogger(__name__)

# Demo dashboard: a 3-column grid of cards taller than the viewport
DEMO_COLUMNS = 3
DEMO_ROWS = 4
DEMO_CARD_SIZE = (360, 220)
DEMO_GAP = 40
DEMO_VIEWPORT = (1280, 720)

COLLECT_KEYS = "1234567890"


def build_demo_registry() -> TargetRegistry:
    """A dashboard of cards plus a search field and a settings button."""
    registry = TargetRegistry(*DEMO_VIEWPORT)
    card_w, card_h = DEMO_CARD_SIZE

    registry.register_target(
        TargetKind.INPUT, "search", Rect(DEMO_GAP, 20, 800, 60), label="Search",
        on_focus=lambda: logger.info("Search field focused"),
    )
    registry.register_target(
        TargetKind.BUTTON, "settings", Rect(1100, 20, 140, 60), label="Settings",
        on_trigger=lambda: logger.info("Settings opened"),
    )
    for row in range(DEMO_ROWS):
        for col in range(DEMO_COLUMNS):
            number = row * DEMO_COLUMNS + col + 1
            rect = Rect(DEMO_GAP + col * (card_w + DEMO_GAP),
                        120 + row * (card_h + DEMO_GAP), card_w, card_h)
            registry.register_target(
                TargetKind.CARD, f"card{number}", rect, label=f"Card {number}",
                on_trigger=lambda n=number: logger.info("Card %d opened", n),
            )
    return registry


def build_source(config: Config, producer: ProducerType):
    if producer is ProducerType.MOTION:
        return MotionSource(config.camera, config.motion)
    return HandLandmarkSource(config.camera, config.hand_detection)


def draw_targets(frame, registry: TargetRegistry):
    """Outline every visible target on the preview, scaled to the frame."""
    h, w = frame.shape[:2]
    view = registry.viewport
    sx, sy = w / float(view.width), h / float(view.height)
    for handle, _kind in registry.query_visible_interactive_elements():
        rect = registry.get_bounding_box(handle)
        x1, y1 = int(rect.left * sx), int(rect.top * sy)
        x2, y2 = int(rect.right * sx), int(rect.bottom * sy)
        cv2.rectangle(frame, (x1, y1), (x2, y2), (200, 200, 200), 1)
        cv2.putText(frame, registry.get_label(handle), (x1 + 4, y1 + 16),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.4, (200, 200, 200), 1, cv2.LINE_AA)
    return frame


class TouchlessGestureControl:
    """Main application wiring the pipeline to a camera and a preview window.

    Delegates gesture logic to core.GesturePipeline and uses EventBus for
    on-screen feedback.
    """

    def __init__(self, config: Config, mode: str = "control"):
        self._config = config
        self._mode = mode
        self._running = False
        self._producer = ProducerType.from_string(config.get("system.producer", "landmark"))

        # --- Event Bus ---
        self._bus = EventBus()

        # --- Host surface ---
        self._registry = build_demo_registry()
        self._feedback = FeedbackManager(config.feedback)
        self._store = ModelStore(config.persistence)

        # --- Pipeline ---
        self._collector = TrainingCollector(feedback=self._feedback, event_bus=self._bus)
        self._pipeline = create_pipeline(
            config, self._registry, self._feedback,
            collector=self._collector, event_bus=self._bus,
        )
        self._source = build_source(config, self._producer)
        self._load_saved_model()

        self._gesture_logger = GestureLogger(self._bus)
        self._gesture_logger.attach()

        # --- Wire Event Callbacks ---
        self._bus.subscribe(Events.GESTURE_PENDING, self._on_gesture_pending)
        self._bus.subscribe(Events.GESTURE_CONFIRMED, self._on_gesture_confirmed)
        self._bus.subscribe(Events.GESTURE_CANCELLED, self._on_gesture_cancelled)
        self._bus.subscribe(Events.COLLECTION_STOPPED, self._on_collection_stopped)

        self._collect_labels = self._labels_for_collection()

        logger.info("TouchlessGestureControl initialized (mode=%s, producer=%s)",
                    mode, self._producer.value)

    @property
    def _trainable(self):
        """The classifier that learns from samples, if the strategy has one."""
        classifier = self._pipeline.classifier
        if isinstance(classifier, HybridClassifier):
            return classifier.primary
        return classifier if hasattr(classifier, "train") else None

    def _load_saved_model(self):
        trainable = self._trainable
        if trainable is None:
            return
        try:
            if load_trained(trainable, self._store, self._producer):
                logger.info("Saved %s model loaded", trainable.name)
        except GestureControlError as e:
            logger.warning("Ignoring saved model: %s", e)

    def _labels_for_collection(self):
        labels = self._config.gestures.get("labels", {}).get(self._producer.value, [])
        keyed = dict(zip(COLLECT_KEYS, labels))
        if len(labels) > len(COLLECT_KEYS):
            logger.warning("Only the first %d gesture labels get a collection key",
                           len(COLLECT_KEYS))
        return keyed

    # ------------------------------------------------------------------
    # Event callbacks
    # ------------------------------------------------------------------

    def _on_gesture_pending(self, label, **kwargs):
        self._feedback.trigger(f"{label}?", color=(0, 200, 255))

    def _on_gesture_confirmed(self, label, **kwargs):
        self._feedback.trigger(label)

    def _on_gesture_cancelled(self, label, **kwargs):
        self._feedback.trigger("cancelled", color=(0, 0, 255))

    def _on_collection_stopped(self, label, count, **kwargs):
        self._feedback.trigger(f"{label}: +{count}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """Start the camera and run the mode loop until quit."""
        if not self._pipeline.start(self._source):
            logger.error("Gesture control unavailable: %s", self._pipeline.disabled_reason)
            self._feedback.close()
            return False

        self._running = True
        logger.info("Starting main loop (mode=%s)", self._mode)
        if self._mode == "collect":
            self._collector.print_status()
            logger.info("Keys: %s", ", ".join(f"{k}={v}" for k, v in self._collect_labels.items()))
            logger.info("SPACE=stop session  s=save samples  t=train now  q=quit")

        self._run_main_loop()
        return True

    def _run_main_loop(self):
        window_name = self._config.get("system.window_name", "Touchless Gesture Control")
        show_preview = self._config.get("system.show_preview", True)

        try:
            while self._running:
                frame = self._pipeline.step()
                if frame is None:
                    time.sleep(0.002)
                    continue

                if show_preview:
                    cv2.imshow(window_name, self._render(frame))
                key = cv2.waitKey(1) & 0xFF
                if key != 0xFF:
                    self._handle_key(key)
        finally:
            self._shutdown()

    def _render(self, frame):
        frame = self._source.annotate(frame)
        draw_targets(frame, self._registry)
        highlight = self._pipeline.navigator.highlight
        if highlight is not None:
            view = self._registry.viewport
            highlight.render(frame, (view.width, view.height))
        if self._collector.is_collecting:
            cv2.putText(frame, f"REC {self._collector.active_label}: {self._collector.session_count}",
                        (10, frame.shape[0] - 15), cv2.FONT_HERSHEY_SIMPLEX, 0.6,
                        (0, 0, 255), 2, cv2.LINE_AA)
        return self._feedback.render(frame)

    def _handle_key(self, key: int):
        char = chr(key)
        if char == "q":
            self._running = False
        elif char == "n":
            self._pipeline.navigator.toggle()
        elif char == "c":
            self._pipeline.gate.cancel()
        elif char == "v":
            self._feedback.set_voice_enabled(not self._feedback.voice_enabled)
        elif char == "p":
            self._pipeline.performance.print_report()
        elif self._mode == "collect":
            self._handle_collect_key(char)

    def _handle_collect_key(self, char: str):
        if char in self._collect_labels:
            self._collector.start(self._collect_labels[char])
        elif char == " ":
            self._collector.stop()
            self._collector.print_status()
        elif char == "s":
            self._collector.stop()
            self._store.export_samples(self._collector.training_set, self._producer)
        elif char == "t":
            self._train_now()

    def _train_now(self):
        """Train on what has been collected this run and save the model."""
        self._collector.stop()
        try:
            self._pipeline.train()
            save_trained(self._trainable, self._store, self._producer)
        except GestureControlError as e:
            logger.warning("Training refused: %s", e)
            self._feedback.speak(f"Training failed. {e}")
            return
        self._feedback.speak("Training complete")

    def _shutdown(self):
        """Clean shutdown of all modules."""
        logger.info("Shutting down...")
        self._running = False
        self._pipeline.stop()
        self._gesture_logger.detach()
        self._feedback.close()
        cv2.destroyAllWindows()

        self._pipeline.performance.print_report()
        logger.info("Gestures confirmed: %d, failed actions: %d",
                    self._gesture_logger.total_gestures, self._gesture_logger.failures)
        logger.info("Shutdown complete.")

    def handle_signal(self, signum, frame):
        """Handle SIGINT/SIGTERM for graceful shutdown."""
        logger.info("Signal %d received, shutting down...", signum)
        self._running = False


def parse_args():
    parser = argparse.ArgumentParser(
        description="Touchless Gesture Control - camera gestures drive focus navigation"
    )
    parser.add_argument(
        "--mode", choices=["control", "collect", "train"],
        default="control", help="Operating mode"
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to config.yaml"
    )
    parser.add_argument(
        "--gestures", type=str, default=None,
        help="Path to gestures.yaml"
    )
    parser.add_argument(
        "--camera", type=int, default=None,
        help="Camera device ID"
    )
    parser.add_argument(
        "--producer", choices=[p.value for p in ProducerType], default=None,
        help="Sample producer: hand landmarks or frame differencing"
    )
    parser.add_argument(
        "--strategy", choices=["heuristic", "motion", "centroid", "neural", "auto"], default=None,
        help="Classification strategy"
    )
    parser.add_argument(
        "--samples", type=str, default=None,
        help="Samples file for --mode train"
    )
    return parser.parse_args()


def main():
    args = parse_args()

    # Load configuration
    config = Config()
    config.load(config_path=args.config, gestures_path=args.gestures)

    # Command-line overrides
    if args.camera is not None:
        config._data.setdefault("camera", {})["device_id"] = args.camera
    if args.producer is not None:
        config._data.setdefault("system", {})["producer"] = args.producer
    if args.strategy is not None:
        config._data.setdefault("recognition", {})["strategy"] = args.strategy

    # Setup logging
    log_cfg = config.get_section("logging")
    setup_logging(
        level=log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
        max_size_mb=log_cfg.get("max_size_mb", 10),
        backup_count=log_cfg.get("backup_count", 3),
    )

    logger.info("=" * 60)
    logger.info("  TOUCHLESS GESTURE CONTROL")
    logger.info("  Version: %s", config.get("system.version", "1.0.0"))
    logger.info("  Mode: %s  Producer: %s", args.mode, config.get("system.producer"))
    logger.info("=" * 60)

    if args.mode == "train":
        producer = ProducerType.from_string(config.get("system.producer", "landmark"))
        try:
            train_from_samples(config, producer, args.samples)
        except FileNotFoundError as e:
            logger.error("No samples file: %s", e)
            sys.exit(1)
        except GestureControlError as e:
            logger.error("Training failed: %s", e)
            sys.exit(1)
        return

    # Create and start application
    try:
        app = TouchlessGestureControl(config, mode=args.mode)
    except GestureControlError as e:
        logger.error("Cannot build the gesture pipeline: %s", e)
        sys.exit(1)

    # Register signal handlers
    signal.signal(signal.SIGINT, app.handle_signal)
    signal.signal(signal.SIGTERM, app.handle_signal)

    if not app.start():
        sys.exit(1)


if __name__ == "__main__":
    main()
