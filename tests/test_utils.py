"""
Tests for Core Utilities
=========================
"""

import logging
import time

import pytest
import yaml

from core.events import EventBus, Events, TimerEvent
from modules.utils.config import Config, _deep_merge
from modules.utils.logger import GestureLogger, setup_logging
from modules.utils.performance_monitor import PerformanceMonitor


class TestConfig:
    """Test suite for the YAML configuration layer."""

    def test_defaults_without_files(self, tmp_path):
        config = Config().load(str(tmp_path / "missing.yaml"), str(tmp_path / "missing.yaml"))
        assert config.get("confirmation.confirmation_delay_ms") == 1500
        assert config.get("navigation.scroll_step") == 150
        assert config.gestures == {}

    def test_yaml_overrides_defaults(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.safe_dump({
            "confirmation": {"confirmation_delay_ms": 800},
            "system": {"producer": "motion"},
        }))
        gestures_path = tmp_path / "gestures.yaml"
        gestures_path.write_text(yaml.safe_dump({"bindings": {"motion": {"swipe_up": "activate"}}}))

        config = Config().load(str(config_path), str(gestures_path))
        assert config.confirmation["confirmation_delay_ms"] == 800
        assert config.confirmation["indicator_clear_ms"] == 2000
        assert config.get("system.producer") == "motion"
        assert config.gestures["bindings"]["motion"] == {"swipe_up": "activate"}

    def test_shipped_config_loads_cleanly(self):
        config = Config().load()
        assert config._validate() == []
        assert "point" in config.gestures["bindings"]["landmark"]

    def test_validation_warnings(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.safe_dump({
            "camera": {"width": "wide"},
            "feedback": {"voice_enabled": "yes"},
        }))
        config = Config().load(str(config_path), str(tmp_path / "gestures.yaml"))
        warnings = config._validate()
        assert len(warnings) == 2
        assert any("camera.width" in w for w in warnings)

    def test_dot_path_default(self):
        assert Config().get("navigation.missing.key", 42) == 42

    def test_deep_merge(self):
        merged = _deep_merge({"a": {"b": 1, "c": 2}, "d": 3}, {"a": {"b": 10}, "e": 5})
        assert merged == {"a": {"b": 10, "c": 2}, "d": 3, "e": 5}

    def test_singleton_reset(self):
        config = Config()
        config._data["system"]["producer"] = "motion"
        assert Config().get("system.producer") == "motion"
        Config.reset()
        assert Config().get("system.producer") == "landmark"


class TestScheduler:
    """Test suite for the cooperative timer queue."""

    def test_fires_when_due(self, scheduler, clock):
        fired = []
        scheduler.call_later(0.5, lambda: fired.append("a"))
        scheduler.run_pending()
        assert fired == []
        clock.advance(0.5)
        assert scheduler.run_pending() == 1
        assert fired == ["a"]
        assert scheduler.pending_count == 0

    def test_due_order(self, scheduler, clock):
        fired = []
        scheduler.call_later(2.0, lambda: fired.append("late"))
        scheduler.call_later(1.0, lambda: fired.append("early"))
        clock.advance(3.0)
        scheduler.run_pending()
        assert fired == ["early", "late"]

    def test_cancel(self, scheduler, clock):
        fired = []
        handle = scheduler.call_later(1.0, lambda: fired.append(1))
        assert scheduler.cancel(handle)
        assert not scheduler.cancel(handle)
        assert not scheduler.cancel(None)
        clock.advance(2.0)
        assert scheduler.run_pending() == 0
        assert fired == []

    def test_dispatch_wraps_timer_events(self, scheduler, clock):
        events = []
        scheduler.call_later(0.25, lambda: None, name="refresh")
        clock.advance(0.25)
        scheduler.run_pending(events.append)
        assert len(events) == 1
        assert isinstance(events[0], TimerEvent)
        assert events[0].name == "refresh"

    def test_cancel_all(self, scheduler):
        scheduler.call_later(1.0, lambda: None)
        scheduler.call_later(2.0, lambda: None)
        scheduler.cancel_all()
        assert scheduler.pending_count == 0
        assert scheduler.next_due is None

    def test_next_due(self, scheduler, clock):
        clock.now = 10.0
        scheduler.call_later(2.0, lambda: None)
        assert scheduler.next_due == 12.0


class TestEventBus:
    """Test suite for the publish/subscribe bus."""

    def test_singleton(self):
        assert EventBus() is EventBus()

    def test_priority_order(self, bus):
        order = []
        bus.subscribe("evt", lambda **kw: order.append("low"), priority=0)
        bus.subscribe("evt", lambda **kw: order.append("high"), priority=10)
        bus.emit("evt")
        assert order == ["high", "low"]

    def test_handler_errors_are_contained(self, bus):
        received = []

        def broken(**kwargs):
            raise RuntimeError("handler")

        bus.subscribe("evt", broken, priority=1)
        bus.subscribe("evt", lambda **kw: received.append(kw))
        bus.emit("evt", value=1)
        assert received == [{"value": 1}]

    def test_unsubscribe_bound_method(self, bus):
        gesture_logger = GestureLogger(bus)
        gesture_logger.attach()
        gesture_logger.detach()
        bus.emit(Events.GESTURE_CONFIRMED, label="fist", timestamp=0.0)
        assert gesture_logger.total_gestures == 0

    def test_history(self, bus):
        bus.emit(Events.GESTURE_PENDING, label="fist", delay=1.5)
        bus.emit(Events.PIPELINE_STOPPED)
        history = bus.get_history(last_n=2)
        assert [h["event"] for h in history] == [Events.GESTURE_PENDING, Events.PIPELINE_STOPPED]
        assert history[0]["label"] == "fist"
        assert history[1]["label"] is None


class TestGestureLogger:
    """Test suite for the confirmed-gesture log."""

    def test_records_confirmed_and_failed(self, bus):
        gesture_logger = GestureLogger(bus)
        gesture_logger.attach()
        bus.emit(Events.GESTURE_CONFIRMED, label="point", timestamp=1.0)
        bus.emit(Events.ACTION_FAILED, label="fist", error="boom")
        assert gesture_logger.total_gestures == 1
        assert gesture_logger.failures == 1
        assert gesture_logger.get_history()[0]["gesture"] == "point"

    def test_history_is_capped(self, bus):
        gesture_logger = GestureLogger(bus, max_history=3)
        for i in range(5):
            gesture_logger.log_gesture(f"g{i}", confidence=0.9)
        assert [h["gesture"] for h in gesture_logger.get_history()] == ["g2", "g3", "g4"]
        assert len(gesture_logger.get_history(last_n=1)) == 1


class TestSetupLogging:

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "gesture.log"
        root = setup_logging(level="DEBUG", log_file=str(log_file))
        try:
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 2
            assert log_file.parent.is_dir()
        finally:
            for handler in list(root.handlers):
                handler.close()
                root.removeHandler(handler)


class TestPerformanceMonitor:
    """Test suite for frame timing."""

    def test_measure_records_latency(self):
        monitor = PerformanceMonitor()
        with monitor.measure("classification"):
            time.sleep(0.01)
        assert monitor.get_stage_latency("classification") >= 5.0

    def test_measure_records_on_error(self):
        monitor = PerformanceMonitor()
        with pytest.raises(ValueError):
            with monitor.measure("extraction"):
                raise ValueError("bad frame")
        assert monitor.get_report()["latencies_ms"]["extraction"] >= 0.0

    def test_fps_from_injected_clock(self, clock):
        monitor = PerformanceMonitor(clock=clock)
        for _ in range(5):
            monitor.tick()
            clock.advance(0.0625)
        assert monitor.fps == pytest.approx(16.0)
        assert monitor.get_report()["uptime_seconds"] == pytest.approx(0.3)

    def test_drop_rate(self):
        monitor = PerformanceMonitor()
        for _ in range(4):
            monitor.tick()
        monitor.record_drop()
        assert monitor.drop_rate == pytest.approx(25.0)

    def test_frames_and_drops(self):
        monitor = PerformanceMonitor()
        for _ in range(3):
            monitor.tick()
        monitor.record_drop()
        report = monitor.get_report()
        assert report["total_frames"] == 3
        assert report["dropped_frames"] == 1
        assert set(report) == {"fps", "total_frames", "dropped_frames",
                               "uptime_seconds", "latencies_ms"}

    def test_reset(self):
        monitor = PerformanceMonitor()
        monitor.tick()
        monitor.record_drop()
        monitor.reset()
        assert monitor.frame_count == 0
        assert monitor.get_report()["dropped_frames"] == 0
