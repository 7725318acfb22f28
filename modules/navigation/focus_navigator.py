"""
Focus navigation over the host's interactive targets.

While active, the navigator keeps an ordered list of visible targets
(top-to-bottom, then left-to-right; tops within ``row_tolerance`` count as
one row) and one selected index. Selection wraps in both directions.
The list is rebuilt on start, on every tree change and by a background
refresh timer while navigation is active.

Registry failures never escape: a failed query leaves the target list
empty and every selection operation becomes a no-op until the next
successful refresh.
"""

import logging
from functools import cmp_to_key
from typing import List, Optional

from core.events import EventBus, Events
from core.scheduler import Scheduler
from core.types import FocusableTarget, NavigationState, ScrollState
from modules.navigation.highlight import HighlightOverlay

logger = logging.getLogger(__name__)


class FocusNavigator:
    """Next/previous/activate/scroll state machine over focusable targets."""

    def __init__(self, registry, scheduler: Scheduler, feedback=None,
                 config: dict = None, event_bus: EventBus = None):
        config = config or {}
        self._registry = registry
        self._scheduler = scheduler
        self._feedback = feedback
        self._bus = event_bus or EventBus()

        self._refresh_s = config.get("refresh_interval_ms", 1000) / 1000.0
        self._scroll_step = config.get("scroll_step", 150)
        self._row_tolerance = config.get("row_tolerance", 10)
        self._highlight_margin = config.get("highlight_margin", 5)

        self._state = NavigationState()
        self._highlight: Optional[HighlightOverlay] = None
        self._refresh_timer = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> NavigationState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state.is_active

    @property
    def current_index(self) -> int:
        return self._state.current_index

    @property
    def targets(self) -> List[FocusableTarget]:
        return list(self._state.targets)

    @property
    def current_target(self) -> Optional[FocusableTarget]:
        return self._state.current_target

    @property
    def scroll_state(self) -> ScrollState:
        return self._state.scroll

    @property
    def highlight(self) -> Optional[HighlightOverlay]:
        return self._highlight

    @property
    def scroll_step(self):
        return self._scroll_step

    # ------------------------------------------------------------------
    # Mode
    # ------------------------------------------------------------------

    def start(self):
        self._state.is_active = True
        self._rebuild_targets()
        self._update_scroll_state()

        if self._state.targets:
            self._state.current_index = 0
            self._show_current(announce=True)
        else:
            self._state.current_index = -1

        self._say("Navigation mode activated. Use gestures to scroll and select elements.")
        self._arm_refresh()
        logger.info("Navigation started: %d targets", len(self._state.targets))
        self._bus.emit(Events.NAVIGATION_STARTED, target_count=len(self._state.targets))

    def stop(self) -> bool:
        """Leave navigation mode. Returns False if it was not active."""
        self._scheduler.cancel(self._refresh_timer)
        self._refresh_timer = None
        if not self._state.is_active:
            return False

        self._state.is_active = False
        self._state.current_index = -1
        self._hide_highlight()
        self._say("Navigation mode deactivated")
        logger.info("Navigation stopped")
        self._bus.emit(Events.NAVIGATION_STOPPED)
        return True

    def toggle(self):
        if self._state.is_active:
            self.stop()
        else:
            self.start()

    def shutdown(self):
        """Silent teardown: cancel the refresh timer and hide the highlight."""
        self._scheduler.cancel(self._refresh_timer)
        self._refresh_timer = None
        self._state.is_active = False
        self._state.current_index = -1
        self._hide_highlight()

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_next(self) -> bool:
        count = len(self._state.targets)
        if not self._state.is_active or count == 0:
            return False
        index = self._state.current_index
        new_index = 0 if index >= count - 1 or index < 0 else index + 1
        return self._select(new_index)

    def select_previous(self) -> bool:
        count = len(self._state.targets)
        if not self._state.is_active or count == 0:
            return False
        index = self._state.current_index
        new_index = count - 1 if index <= 0 else index - 1
        return self._select(new_index)

    def activate_selected(self) -> bool:
        """Focus an input target, trigger anything else.

        Returns:
            True if a target was activated
        """
        target = self._state.current_target
        if not self._state.is_active or target is None:
            return False

        try:
            if target.kind.is_input:
                self._registry.focus(target.handle)
                message = "Input field activated"
            else:
                self._registry.trigger(target.handle)
                message = "Element activated"
        except Exception as e:
            logger.warning("Activating %r failed: %s", target.handle, e)
            self.refresh()
            return False

        self._say(message)
        self._bus.emit(Events.TARGET_ACTIVATED, index=target.index, kind=target.kind.value)
        return True

    # ------------------------------------------------------------------
    # Scrolling
    # ------------------------------------------------------------------

    def scroll_up(self, amount: float = None) -> bool:
        amount = self._scroll_step if amount is None else amount
        self._update_scroll_state()
        if not self._state.scroll.can_scroll_up:
            return False
        return self._scroll(-amount, "Scrolling up")

    def scroll_down(self, amount: float = None) -> bool:
        amount = self._scroll_step if amount is None else amount
        self._update_scroll_state()
        if not self._state.scroll.can_scroll_down:
            return False
        return self._scroll(amount, "Scrolling down")

    def on_scroll(self):
        """The viewport scrolled: recompute bounds and move the highlight."""
        self._update_scroll_state()
        if self._state.is_active and self._state.current_target is not None:
            self._show_current(announce=False)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self):
        """Rebuild targets and scroll state, keeping the selection if possible."""
        previous = self._state.current_target
        self._rebuild_targets()
        self._update_scroll_state()
        if not self._state.is_active:
            return

        targets = self._state.targets
        if previous is not None:
            for i, target in enumerate(targets):
                if target.handle == previous.handle:
                    self._state.current_index = i
                    break
            else:
                self._state.current_index = min(self._state.current_index, len(targets) - 1)
        elif self._state.current_index >= len(targets):
            self._state.current_index = len(targets) - 1

        if self._state.current_target is not None:
            self._show_current(announce=False)
        else:
            self._hide_highlight()

    def _arm_refresh(self):
        self._scheduler.cancel(self._refresh_timer)
        self._refresh_timer = self._scheduler.call_later(
            self._refresh_s, self._on_refresh_timer, name="navigation_refresh"
        )

    def _on_refresh_timer(self):
        self._refresh_timer = None
        if not self._state.is_active:
            return
        self.refresh()
        self._arm_refresh()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _select(self, new_index: int) -> bool:
        self._state.current_index = new_index
        target = self._state.targets[new_index]
        try:
            self._registry.scroll_into_view(target.handle)
        except Exception as e:
            logger.warning("Scrolling %r into view failed: %s", target.handle, e)
            self.refresh()
            return False

        self._show_current(announce=True)
        self._bus.emit(Events.FOCUS_CHANGED, index=new_index, kind=target.kind.value)
        return True

    def _scroll(self, dy: float, message: str) -> bool:
        try:
            self._registry.scroll_by(dy)
        except Exception as e:
            logger.warning("Scroll failed: %s", e)
            return False
        self._say(message)
        self.on_scroll()
        return True

    def _rebuild_targets(self):
        try:
            found = []
            for handle, kind in self._registry.query_visible_interactive_elements():
                rect = self._registry.get_bounding_box(handle)
                if rect.is_empty:
                    continue
                found.append(FocusableTarget(handle, rect, -1, kind))
        except Exception as e:
            logger.warning("Element query failed: %s", e)
            found = []

        found.sort(key=cmp_to_key(self._reading_order))
        # Index is the position in reading order
        for index, target in enumerate(found):
            target.index = index
        self._state.targets = found
        if not found:
            self._state.current_index = -1

    def _reading_order(self, a: FocusableTarget, b: FocusableTarget) -> float:
        top_diff = a.rect.top - b.rect.top
        if abs(top_diff) > self._row_tolerance:
            return top_diff
        return a.rect.left - b.rect.left

    def _update_scroll_state(self):
        try:
            self._state.scroll = self._registry.get_scroll_state()
        except Exception as e:
            logger.warning("Scroll state query failed: %s", e)
            self._state.scroll = ScrollState()

    def _show_current(self, announce: bool):
        target = self._state.current_target
        if target is None:
            return
        try:
            rect = self._registry.get_bounding_box(target.handle)
            label = self._registry.get_label(target.handle) if announce else None
        except Exception as e:
            logger.warning("Target %r vanished: %s", target.handle, e)
            self._hide_highlight()
            return

        if self._highlight is None:
            self._highlight = HighlightOverlay(margin=self._highlight_margin)
        self._highlight.show(rect)
        if announce:
            self._say(f"Focused on {label}")

    def _hide_highlight(self):
        if self._highlight is not None:
            self._highlight.hide()

    def _say(self, text: str):
        if self._feedback is not None:
            self._feedback.speak(text)
