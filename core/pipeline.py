"""
Gesture control pipeline: sample → features → label → confirmation → action.

Architecture:
    Source -> FeatureExtractor -> Classifier -> ConfirmationGate
    -> CommandDispatcher -> action (usually a FocusNavigator operation)

Everything runs on one control thread. Three kinds of event enter through
handle(): FrameEvent (a new sample from the source), TimerEvent (a due
scheduler timer) and TreeChangeEvent (the host element tree changed or
scrolled). step() is one loop iteration: fire due timers, then pull the
newest sample from the source.
"""

import logging
from typing import Optional

from core.errors import CapabilityError, TrainingError
from core.events import EventBus, Events, FrameEvent, TimerEvent, TreeChangeEvent
from core.scheduler import Scheduler
from core.types import GestureResult, Observation, ProducerType
from models.feature_extractor import FeatureExtractor
from modules.control.command_dispatcher import CommandDispatcher
from modules.control.confirmation_gate import ConfirmationGate
from modules.control.default_commands import install_default_commands
from modules.navigation.focus_navigator import FocusNavigator
from modules.recognition.classifier_factory import create_classifier
from modules.utils.performance_monitor import PerformanceMonitor

logger = logging.getLogger(__name__)


class GesturePipeline:
    """Single-threaded gesture control loop.

    Manages the full sample → action cycle with:
    - Per-stage timing
    - Event bus notifications
    - Training-mode capture (no dispatch while collecting)
    """

    def __init__(
        self,
        producer: ProducerType,
        extractor: FeatureExtractor,
        classifier,
        gate: ConfirmationGate,
        scheduler: Scheduler,
        navigator: FocusNavigator = None,
        collector=None,
        performance_monitor: PerformanceMonitor = None,
        event_bus: EventBus = None,
    ):
        self._producer = producer
        self._extractor = extractor
        self._classifier = classifier
        self._gate = gate
        self._scheduler = scheduler
        self._navigator = navigator
        self._collector = collector
        self._perf = performance_monitor or PerformanceMonitor()
        self._bus = event_bus or EventBus()

        self._source = None
        self._active = False
        self._disabled_reason: Optional[str] = None
        self._last_result: Optional[GestureResult] = None
        self._frame_errors = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def producer(self) -> ProducerType:
        return self._producer

    @property
    def classifier(self):
        return self._classifier

    @property
    def gate(self) -> ConfirmationGate:
        return self._gate

    @property
    def navigator(self) -> Optional[FocusNavigator]:
        return self._navigator

    @property
    def collector(self):
        return self._collector

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def performance(self) -> PerformanceMonitor:
        return self._perf

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def disabled_reason(self) -> Optional[str]:
        return self._disabled_reason

    @property
    def last_result(self) -> Optional[GestureResult]:
        return self._last_result

    @property
    def frame_errors(self) -> int:
        return self._frame_errors

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, source=None) -> bool:
        """Start the source (if any) and begin accepting frames.

        Returns:
            False when the camera or vision engine is unavailable; the
            pipeline then stays inactive and reports why.
        """
        if self._active:
            return True
        if source is not None:
            try:
                source.start()
            except CapabilityError as e:
                self._disabled_reason = str(e)
                logger.error("Gesture control disabled: %s", e)
                self._bus.emit(Events.PIPELINE_DISABLED, reason=str(e))
                return False
            self._source = source

        self._active = True
        self._disabled_reason = None
        logger.info("Pipeline started (%s producer, %s classifier)",
                    self._producer.value, getattr(self._classifier, "name", "?"))
        self._bus.emit(Events.PIPELINE_STARTED, producer=self._producer.value)
        return True

    def stop(self):
        """Cancel every timer, hide highlights and release the source."""
        if self._collector is not None and self._collector.is_collecting:
            self._collector.stop()
        self._gate.shutdown()
        if self._navigator is not None:
            self._navigator.shutdown()
        self._scheduler.cancel_all()
        if self._source is not None:
            self._source.stop()
            self._source = None

        was_active = self._active
        self._active = False
        if was_active:
            logger.info("Pipeline stopped")
            self._bus.emit(Events.PIPELINE_STOPPED)

    # ------------------------------------------------------------------
    # Control loop
    # ------------------------------------------------------------------

    def step(self):
        """One loop iteration: due timers, then the newest source sample.

        Returns:
            The camera frame read this iteration (None if none arrived)
        """
        self._scheduler.run_pending(self.handle)
        if self._source is None or not self._active:
            return None

        try:
            frame, sample = self._source.read()
        except CapabilityError:
            raise
        except Exception as e:
            self._frame_errors += 1
            logger.error("Source read error: %s", e, exc_info=True)
            return None
        if frame is None:
            return None
        self._perf.tick()
        if sample is None:
            self._perf.record_drop()
        else:
            self.handle(FrameEvent(sample))
        return frame

    def handle(self, event):
        """Route one control-loop event to its component."""
        if isinstance(event, FrameEvent):
            return self.on_frame(event.sample)
        if isinstance(event, TimerEvent):
            try:
                event.handle.fire()
            except Exception as e:
                logger.error("Timer '%s' failed: %s", event.name, e, exc_info=True)
            return None
        if isinstance(event, TreeChangeEvent):
            if self._navigator is not None:
                if event.scrolled_only:
                    self._navigator.on_scroll()
                else:
                    self._navigator.refresh()
            return None
        raise TypeError(f"Unknown pipeline event: {type(event).__name__}")

    def on_frame(self, sample) -> Optional[GestureResult]:
        """Process one sample. Never raises.

        Returns:
            The classification result for this sample, if any
        """
        if self._disabled_reason is not None:
            return None
        try:
            return self._process(sample)
        except Exception as e:
            self._frame_errors += 1
            logger.error("Frame processing error: %s", e, exc_info=True)
            return None

    def _process(self, sample) -> Optional[GestureResult]:
        with self._perf.measure("extraction"):
            features = self._extractor.extract(sample)

        if features is None:
            return None

        if self._collector is not None and self._collector.is_collecting:
            self._collector.add(features)
            return None

        window = None
        if self._producer is ProducerType.MOTION:
            window = self._extractor.window.recent()
        observation = Observation(self._producer, sample, features, window)

        with self._perf.measure("classification"):
            result = self._classifier.classify(observation)

        self._last_result = result
        if result is None:
            return None

        self._bus.emit(Events.GESTURE_DETECTED, label=result.label,
                       confidence=result.confidence, source=result.source)
        self._gate.detect(result.label)
        return result

    # ------------------------------------------------------------------
    # Host wiring
    # ------------------------------------------------------------------

    def attach_registry(self, registry):
        """Turn registry change notifications into TreeChangeEvents."""
        registry.add_listener(lambda scrolled_only: self.handle(TreeChangeEvent(scrolled_only)))

    def train(self, training_set=None):
        """Train the classifier on ``training_set`` (default: the collector's set).

        Raises:
            TrainingError: the strategy is not trainable or refused the data
        """
        train = getattr(self._classifier, "train", None)
        if train is None:
            raise TrainingError(f"Strategy '{self._classifier.name}' is not trainable")
        if training_set is None:
            if self._collector is None:
                raise TrainingError("No training samples available")
            training_set = self._collector.training_set
        result = train(training_set)
        self._bus.emit(Events.MODEL_TRAINED, samples=len(training_set))
        return result


def create_pipeline(config, registry, feedback=None, scheduler: Scheduler = None,
                    collector=None, event_bus: EventBus = None) -> GesturePipeline:
    """Assemble a pipeline from a loaded Config.

    Builds the extractor and classifier for the configured producer, the
    navigator over ``registry``, the dispatcher with the default commands
    and the confirmation gate.
    """
    bus = event_bus or EventBus()
    scheduler = scheduler or Scheduler()
    producer = ProducerType.from_string(config.get("system.producer", "landmark"))

    extractor = FeatureExtractor(producer, config.motion)
    classifier = create_classifier(config.recognition, producer)

    navigator = FocusNavigator(registry, scheduler, feedback, config.navigation, bus)
    dispatcher = CommandDispatcher()
    install_default_commands(dispatcher, navigator, producer, feedback, config.gestures)
    gate = ConfirmationGate(scheduler, dispatcher, feedback, config.confirmation, bus)

    pipeline = GesturePipeline(
        producer=producer,
        extractor=extractor,
        classifier=classifier,
        gate=gate,
        scheduler=scheduler,
        navigator=navigator,
        collector=collector,
        event_bus=bus,
    )
    pipeline.attach_registry(registry)
    return pipeline
