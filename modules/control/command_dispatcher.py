"""
Gesture label → action registry.

Actions are zero-argument callables that issue their own feedback.
Dispatch of an unbound label is a silent no-op; exceptions raised by an
action propagate to the caller (the confirmation gate decides what to do
with them).
"""

import logging
from typing import Callable, Dict, List, Mapping

logger = logging.getLogger(__name__)

Action = Callable[[], None]


class CommandDispatcher:
    """Maps confirmed gesture labels to actions."""

    def __init__(self):
        self._actions: Dict[str, Action] = {}
        self._last_label = None
        self._dispatch_count = 0

    def register(self, label: str, action: Action):
        """Bind ``label`` to ``action``. Re-registering replaces the old binding."""
        if not callable(action):
            raise TypeError(f"Action for '{label}' is not callable")
        if label in self._actions:
            logger.debug("Rebinding gesture '%s'", label)
        self._actions[label] = action

    def unregister(self, label: str) -> bool:
        return self._actions.pop(label, None) is not None

    def is_registered(self, label: str) -> bool:
        return label in self._actions

    @property
    def labels(self) -> List[str]:
        return list(self._actions.keys())

    def clear(self):
        self._actions.clear()

    def bind(self, bindings: Mapping[str, str], commands: Mapping[str, Action]) -> int:
        """Layer a label → command-name map over the current bindings.

        Args:
            bindings: e.g. ``{"swipe_right": "select_next"}``
            commands: command name → action

        Returns:
            Number of bindings applied. Unknown command names are skipped
            with a warning.
        """
        applied = 0
        for label, command in bindings.items():
            action = commands.get(command)
            if action is None:
                logger.warning("Gesture '%s' bound to unknown command '%s'", label, command)
                continue
            self.register(label, action)
            applied += 1
        logger.debug("Applied %d gesture bindings", applied)
        return applied

    def dispatch(self, label: str) -> bool:
        """Run the action bound to ``label``.

        Returns:
            True if an action ran, False if the label is unbound
        """
        action = self._actions.get(label)
        if action is None:
            logger.debug("No action bound to gesture: %s", label)
            return False

        action()
        self._last_label = label
        self._dispatch_count += 1
        logger.info("Dispatched: %s (#%d)", label, self._dispatch_count)
        return True

    @property
    def last_label(self):
        return self._last_label

    @property
    def dispatch_count(self) -> int:
        return self._dispatch_count
