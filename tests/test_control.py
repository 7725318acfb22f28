"""
Tests for Confirmation, Dispatch and Commands
==============================================
"""

from unittest.mock import MagicMock

import numpy as np
import pytest

from core.events import Events
from core.types import ProducerType
from modules.control.command_dispatcher import CommandDispatcher
from modules.control.confirmation_gate import ConfirmationGate, spoken_label
from modules.control.default_commands import (
    DEFAULT_BINDINGS, bindings_for, build_commands, install_default_commands,
)
from modules.control.feedback_manager import DEFAULT_VIBRATION_PATTERN, FeedbackManager


def advance(clock, scheduler, seconds):
    clock.advance(seconds)
    scheduler.run_pending()


class TestConfirmationGate:
    """Test suite for the debounce/confirm state machine."""

    @pytest.fixture
    def actions(self):
        return {label: MagicMock(name=label) for label in ("fist", "point", "peace", "a", "b",
                                                           "c", "d", "e", "f", "g")}

    @pytest.fixture
    def dispatcher(self, actions):
        dispatcher = CommandDispatcher()
        for label, action in actions.items():
            dispatcher.register(label, action)
        return dispatcher

    @pytest.fixture
    def gate(self, scheduler, dispatcher, feedback, bus):
        return ConfirmationGate(scheduler, dispatcher, feedback, {}, bus)

    def test_detect_starts_pending(self, gate, speech, scheduler):
        assert gate.detect("fist")
        assert gate.pending_label == "fist"
        assert scheduler.pending_count == 1
        assert speech.spoken == ["Detected fist. Confirming in 1.5 seconds"]

    def test_dispatch_exactly_at_delay(self, gate, clock, scheduler, actions):
        """Dispatches at t=1500ms and not before."""
        gate.detect("fist")
        advance(clock, scheduler, 1.25)
        clock.now = 1.4999
        scheduler.run_pending()
        actions["fist"].assert_not_called()

        clock.now = 1.5
        scheduler.run_pending()
        actions["fist"].assert_called_once_with()
        assert not gate.is_pending

    def test_same_label_is_noop(self, gate, clock, scheduler, actions):
        gate.detect("fist")
        advance(clock, scheduler, 1.0)
        assert not gate.detect("fist")
        assert scheduler.pending_count == 1

        # The first timer is kept, not restarted
        advance(clock, scheduler, 0.5)
        actions["fist"].assert_called_once_with()

    def test_cancel_before_delay_never_dispatches(self, gate, clock, scheduler, actions, speech):
        gate.detect("fist")
        advance(clock, scheduler, 1.0)
        assert gate.cancel()
        advance(clock, scheduler, 5.0)
        actions["fist"].assert_not_called()
        assert speech.spoken[-1] == "Gesture cancelled"
        assert scheduler.pending_count == 0

    def test_cancel_when_idle(self, gate, speech):
        assert not gate.cancel()
        assert speech.spoken == []

    def test_superseding_label(self, gate, clock, scheduler, actions):
        """X then Y: exactly one dispatch, for Y, after Y's own full delay."""
        gate.detect("fist")
        advance(clock, scheduler, 1.0)
        gate.detect("point")
        assert scheduler.pending_count == 1

        advance(clock, scheduler, 1.0)     # t=2.0: past X's deadline
        actions["fist"].assert_not_called()
        actions["point"].assert_not_called()

        advance(clock, scheduler, 0.5)     # t=2.5: Y's full delay
        actions["point"].assert_called_once_with()
        actions["fist"].assert_not_called()

    def test_history_keeps_last_five(self, gate, clock, scheduler):
        labels = ["a", "b", "c", "d", "e", "f", "g"]
        for label in labels:
            gate.detect(label)
            advance(clock, scheduler, 1.5)
        history = gate.history
        assert [label for label, _ in history] == labels[-5:]
        assert history[-1][1] == pytest.approx(clock.now)

    def test_indicator_clears_after_two_seconds(self, gate, clock, scheduler):
        gate.detect("fist")
        advance(clock, scheduler, 1.5)
        assert gate.current_gesture == "fist"
        advance(clock, scheduler, 1.5)
        assert gate.current_gesture == "fist"
        advance(clock, scheduler, 0.5)
        assert gate.current_gesture is None

    def test_repeat_suppressed_while_indicator_shown(self, gate, clock, scheduler):
        gate.detect("fist")
        advance(clock, scheduler, 1.5)
        assert not gate.detect("fist")
        advance(clock, scheduler, 2.0)
        assert gate.detect("fist")

    def test_repeat_allowed_when_not_suppressed(self, scheduler, dispatcher, clock):
        gate = ConfirmationGate(scheduler, dispatcher, config={"suppress_repeat": False})
        gate.detect("fist")
        advance(clock, scheduler, 1.5)
        assert gate.detect("fist")

    def test_configured_delay(self, scheduler, dispatcher, clock, actions, speech, feedback):
        gate = ConfirmationGate(scheduler, dispatcher, feedback, {"confirmation_delay_ms": 500})
        gate.detect("peace")
        assert speech.spoken == ["Detected peace. Confirming in 0.5 seconds"]
        advance(clock, scheduler, 0.5)
        actions["peace"].assert_called_once_with()

    def test_action_error_returns_to_idle(self, gate, clock, scheduler, actions, speech, bus):
        failures = []
        bus.subscribe(Events.ACTION_FAILED, lambda **kw: failures.append(kw))
        actions["fist"].side_effect = RuntimeError("boom")

        gate.detect("fist")
        advance(clock, scheduler, 1.5)

        assert not gate.is_pending
        assert gate.history == []
        assert speech.spoken[-1] == "fist failed"
        assert failures == [{"label": "fist", "error": "boom"}]

        # Gate still works afterwards
        actions["fist"].side_effect = None
        assert gate.detect("fist")
        advance(clock, scheduler, 1.5)
        assert actions["fist"].call_count == 2

    def test_unbound_label_records_nothing(self, gate, clock, scheduler, bus):
        confirmed = []
        bus.subscribe(Events.GESTURE_CONFIRMED, lambda **kw: confirmed.append(kw))
        gate.detect("wave")
        advance(clock, scheduler, 1.5)
        assert gate.history == []
        assert confirmed == []
        assert gate.current_gesture is None

    def test_events(self, gate, clock, scheduler, bus):
        seen = []
        for name in (Events.GESTURE_PENDING, Events.GESTURE_CONFIRMED, Events.GESTURE_CANCELLED):
            bus.subscribe(name, lambda _n=name, **kw: seen.append((_n, kw.get("label"))))
        gate.detect("fist")
        gate.cancel()
        gate.detect("point")
        advance(clock, scheduler, 1.5)
        assert seen == [
            (Events.GESTURE_PENDING, "fist"),
            (Events.GESTURE_CANCELLED, "fist"),
            (Events.GESTURE_PENDING, "point"),
            (Events.GESTURE_CONFIRMED, "point"),
        ]

    def test_shutdown_is_total_and_silent(self, gate, clock, scheduler, actions, speech):
        gate.detect("fist")
        advance(clock, scheduler, 1.5)
        gate.detect("point")
        spoken_before = list(speech.spoken)

        gate.shutdown()
        assert scheduler.pending_count == 0
        assert not gate.is_pending
        assert gate.current_gesture is None
        assert speech.spoken == spoken_before

        advance(clock, scheduler, 5.0)
        actions["point"].assert_not_called()

    def test_spoken_label(self):
        assert spoken_label("thumbs_up") == "thumbs up"


class TestCommandDispatcher:
    """Test suite for the label → action registry."""

    @pytest.fixture
    def dispatcher(self):
        return CommandDispatcher()

    def test_dispatch_registered(self, dispatcher):
        action = MagicMock()
        dispatcher.register("fist", action)
        assert dispatcher.dispatch("fist")
        action.assert_called_once_with()
        assert dispatcher.last_label == "fist"
        assert dispatcher.dispatch_count == 1

    def test_unbound_is_noop(self, dispatcher):
        assert not dispatcher.dispatch("fist")
        assert dispatcher.dispatch_count == 0

    def test_last_write_wins(self, dispatcher):
        first, second = MagicMock(), MagicMock()
        dispatcher.register("fist", first)
        dispatcher.register("fist", second)
        dispatcher.dispatch("fist")
        first.assert_not_called()
        second.assert_called_once_with()

    def test_unregister(self, dispatcher):
        dispatcher.register("fist", MagicMock())
        assert dispatcher.unregister("fist")
        assert not dispatcher.unregister("fist")
        assert not dispatcher.is_registered("fist")

    def test_rejects_non_callable(self, dispatcher):
        with pytest.raises(TypeError):
            dispatcher.register("fist", "scroll_down")

    def test_action_errors_propagate(self, dispatcher):
        dispatcher.register("fist", MagicMock(side_effect=ValueError("bad")))
        with pytest.raises(ValueError):
            dispatcher.dispatch("fist")

    def test_bind_skips_unknown_commands(self, dispatcher):
        commands = {"activate": MagicMock()}
        applied = dispatcher.bind({"thumbs_up": "activate", "wave": "teleport"}, commands)
        assert applied == 1
        assert dispatcher.labels == ["thumbs_up"]

    def test_clear(self, dispatcher):
        dispatcher.register("fist", MagicMock())
        dispatcher.clear()
        assert dispatcher.labels == []


class TestDefaultCommands:
    """Test suite for the built-in navigation commands."""

    @pytest.fixture
    def navigator(self):
        navigator = MagicMock()
        navigator.is_active = False
        return navigator

    def test_selection_enters_navigation(self, navigator):
        commands = build_commands(navigator)
        commands["select_next"]()
        navigator.start.assert_called_once_with()
        navigator.select_next.assert_called_once_with()

    def test_selection_when_active(self, navigator):
        navigator.is_active = True
        build_commands(navigator)["select_previous"]()
        navigator.start.assert_not_called()
        navigator.select_previous.assert_called_once_with()

    @pytest.mark.parametrize("command, method", [
        ("activate", "activate_selected"),
        ("scroll_up", "scroll_up"),
        ("scroll_down", "scroll_down"),
        ("escape", "stop"),
        ("start_navigation", "start"),
        ("stop_navigation", "stop"),
        ("toggle_navigation", "toggle"),
    ])
    def test_command_targets(self, navigator, command, method):
        build_commands(navigator)[command]()
        getattr(navigator, method).assert_called_once_with()

    def test_every_command_vibrates(self, navigator, feedback, haptics):
        commands = build_commands(navigator, feedback)
        for action in commands.values():
            action()
        assert haptics.patterns == [list(DEFAULT_VIBRATION_PATTERN)] * len(commands)

    def test_default_bindings(self):
        assert bindings_for(ProducerType.LANDMARK) == DEFAULT_BINDINGS[ProducerType.LANDMARK]
        assert bindings_for(ProducerType.MOTION, {"bindings": {}})["center_hold"] == "activate"

    def test_gestures_yaml_bindings(self):
        config = {"bindings": {"landmark": {"fist": "escape"}}}
        assert bindings_for(ProducerType.LANDMARK, config) == {"fist": "escape"}

    def test_install(self, navigator):
        dispatcher = CommandDispatcher()
        applied = install_default_commands(dispatcher, navigator, ProducerType.MOTION)
        assert applied == len(DEFAULT_BINDINGS[ProducerType.MOTION])
        dispatcher.dispatch("swipe_down")
        navigator.scroll_down.assert_called_once_with()


class TestFeedbackManager:
    """Test suite for speech, vibration and the preview banner."""

    def test_speak_and_vibrate(self, feedback, speech, haptics):
        feedback.speak("hello")
        feedback.vibrate([200])
        assert speech.spoken == ["hello"]
        assert haptics.patterns == [[200]]

    def test_disabled_sinks(self, speech, haptics):
        feedback = FeedbackManager({"voice_enabled": False, "haptic_enabled": False},
                                   speech=speech, haptics=haptics)
        feedback.speak("hello")
        feedback.vibrate()
        assert speech.spoken == []
        assert haptics.patterns == []

    def test_toggle_voice(self, feedback, speech):
        feedback.set_voice_enabled(False)
        feedback.speak("quiet")
        feedback.set_voice_enabled(True)
        feedback.speak("loud")
        assert speech.spoken == ["loud"]

    def test_sink_errors_are_contained(self, haptics):
        speech = MagicMock()
        speech.speak.side_effect = OSError("no audio device")
        feedback = FeedbackManager({}, speech=speech, haptics=haptics)
        feedback.speak("hello")
        speech.speak.assert_called_once_with("hello")

    def test_banner(self, feedback):
        assert feedback.banner_text is None
        feedback.trigger("point")
        assert feedback.banner_text == "point"
        frame = np.zeros((240, 320, 3), dtype=np.uint8)
        rendered = feedback.render(frame)
        assert rendered.shape == (240, 320, 3)
        assert rendered.any()
