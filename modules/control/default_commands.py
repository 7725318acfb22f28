"""
Built-in navigation commands and their default gesture bindings.

Every command is a zero-argument callable suitable for
CommandDispatcher.register(); each finishes with a short vibration.
Selection commands enter navigation mode first when it is not active,
so a single swipe is enough to start moving through the page.
"""

import logging
from typing import Callable, Dict

from core.types import ProducerType
from modules.control.feedback_manager import DEFAULT_VIBRATION_PATTERN

logger = logging.getLogger(__name__)

# Used when config/gestures.yaml has no bindings for the producer
DEFAULT_BINDINGS = {
    ProducerType.LANDMARK: {
        "point": "select_next",
        "peace": "select_previous",
        "thumbs_up": "activate",
        "open_hand": "scroll_up",
        "fist": "scroll_down",
        "rock_on": "toggle_navigation",
        "four": "escape",
        "swipe_left": "select_previous",
        "swipe_right": "select_next",
    },
    ProducerType.MOTION: {
        "swipe_up": "scroll_up",
        "swipe_down": "scroll_down",
        "swipe_left": "select_previous",
        "swipe_right": "select_next",
        "center_hold": "activate",
    },
}


def build_commands(navigator, feedback=None,
                   vibration_pattern=DEFAULT_VIBRATION_PATTERN) -> Dict[str, Callable[[], None]]:
    """Command name → action over the given navigator."""

    def with_haptic(fn):
        def action():
            fn()
            if feedback is not None:
                feedback.vibrate(vibration_pattern)
        action.__name__ = fn.__name__
        return action

    def ensure_navigation():
        if not navigator.is_active:
            navigator.start()

    def select_next():
        ensure_navigation()
        navigator.select_next()

    def select_previous():
        ensure_navigation()
        navigator.select_previous()

    def activate():
        navigator.activate_selected()

    def scroll_up():
        navigator.scroll_up()

    def scroll_down():
        navigator.scroll_down()

    def escape():
        navigator.stop()

    def start_navigation():
        navigator.start()

    def stop_navigation():
        navigator.stop()

    def toggle_navigation():
        navigator.toggle()

    commands = {
        "select_next": select_next,
        "select_previous": select_previous,
        "activate": activate,
        "scroll_up": scroll_up,
        "scroll_down": scroll_down,
        "escape": escape,
        "start_navigation": start_navigation,
        "stop_navigation": stop_navigation,
        "toggle_navigation": toggle_navigation,
    }
    return {name: with_haptic(fn) for name, fn in commands.items()}


def bindings_for(producer: ProducerType, gestures_config: dict = None) -> Dict[str, str]:
    """Gesture label → command name for a producer.

    ``gestures_config`` is the parsed gestures.yaml; its ``bindings``
    section is keyed by producer name.
    """
    section = ((gestures_config or {}).get("bindings") or {}).get(producer.value)
    if section:
        return dict(section)
    return dict(DEFAULT_BINDINGS[producer])


def install_default_commands(dispatcher, navigator, producer: ProducerType,
                             feedback=None, gestures_config: dict = None) -> int:
    """Register the built-in commands on ``dispatcher`` for ``producer``."""
    commands = build_commands(navigator, feedback)
    applied = dispatcher.bind(bindings_for(producer, gestures_config), commands)
    logger.info("Installed %d gesture bindings for %s producer", applied, producer.value)
    return applied
