"""
Host element registry: the navigator's view of the interactive UI.

ElementRegistry is the interface the host UI implements. TargetRegistry
is the concrete in-process registry: the host registers each interactive
element explicitly with its kind, document-space rectangle and callbacks,
and the registry models the scrolling viewport over them.

Coordinates: document rects grow right/down from the top of the content.
Rects handed to the navigator are viewport-relative (document rect shifted
by the scroll position), which is what the highlight overlay draws.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Hashable, List, Optional, Tuple

from core.types import Rect, ScrollState, TargetKind

logger = logging.getLogger(__name__)


class ElementRegistry(ABC):
    """Abstract host element tree."""

    @abstractmethod
    def query_visible_interactive_elements(self) -> List[Tuple[Hashable, TargetKind]]:
        """Enabled interactive elements intersecting the viewport.

        Returns:
            (handle, kind) pairs in tree order
        """

    @abstractmethod
    def get_bounding_box(self, handle) -> Rect:
        """Viewport-relative rectangle of an element."""

    @abstractmethod
    def scroll_into_view(self, handle):
        """Scroll so the element is vertically centred where possible."""

    @abstractmethod
    def focus(self, handle):
        """Give keyboard focus to an input element."""

    @abstractmethod
    def trigger(self, handle):
        """Activate (click) an element."""

    @abstractmethod
    def get_scroll_state(self) -> ScrollState:
        """Current scroll position and bound."""

    @abstractmethod
    def scroll_by(self, dy: float):
        """Scroll the viewport by ``dy`` (negative is up)."""

    def get_label(self, handle) -> str:
        """Spoken name of an element."""
        return "element"


class _Entry:
    __slots__ = ("handle", "kind", "rect", "label", "enabled", "on_trigger", "on_focus")

    def __init__(self, handle, kind, rect, label, enabled, on_trigger, on_focus):
        self.handle = handle
        self.kind = kind
        self.rect = rect
        self.label = label
        self.enabled = enabled
        self.on_trigger = on_trigger
        self.on_focus = on_focus


class TargetRegistry(ElementRegistry):
    """Explicitly populated registry with a scrolling viewport model.

    Example:
        >>> registry = TargetRegistry(viewport_width=1280, viewport_height=720)
        >>> registry.register_target(TargetKind.BUTTON, "lights", Rect(20, 40, 120, 40),
        ...                          label="Living room lights", on_trigger=toggle_lights)
    """

    def __init__(self, viewport_width: float = 1280, viewport_height: float = 720,
                 content_height: Optional[float] = None):
        self._viewport_width = viewport_width
        self._viewport_height = viewport_height
        self._content_height = content_height
        self._scroll_y = 0.0
        self._entries: Dict[Hashable, _Entry] = {}
        self._focused = None
        self._listeners: List[Callable[[bool], None]] = []

    # ------------------------------------------------------------------
    # Host side
    # ------------------------------------------------------------------

    def register_target(self, kind: TargetKind, handle: Hashable, rect: Rect,
                        label: str = None, enabled: bool = True,
                        on_trigger: Callable[[], None] = None,
                        on_focus: Callable[[], None] = None) -> Hashable:
        """Add an interactive element. Re-registering a handle replaces it."""
        if not isinstance(kind, TargetKind):
            kind = TargetKind(kind)
        self._entries[handle] = _Entry(handle, kind, Rect(*rect), label, enabled,
                                       on_trigger, on_focus)
        self._clamp_scroll()
        self._notify(scrolled_only=False)
        return handle

    def unregister_target(self, handle) -> bool:
        removed = self._entries.pop(handle, None) is not None
        if removed:
            if self._focused == handle:
                self._focused = None
            self._clamp_scroll()
            self._notify(scrolled_only=False)
        return removed

    def set_enabled(self, handle, enabled: bool):
        self._entry(handle).enabled = enabled
        self._notify(scrolled_only=False)

    def move_target(self, handle, rect: Rect):
        self._entry(handle).rect = Rect(*rect)
        self._clamp_scroll()
        self._notify(scrolled_only=False)

    def resize_viewport(self, width: float, height: float):
        self._viewport_width = width
        self._viewport_height = height
        self._clamp_scroll()
        self._notify(scrolled_only=True)

    def add_listener(self, callback: Callable[[bool], None]):
        """``callback(scrolled_only)`` runs after every tree or scroll change."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[bool], None]):
        self._listeners = [cb for cb in self._listeners if cb != callback]

    @property
    def viewport(self) -> Rect:
        """Visible part of the document, in document coordinates."""
        return Rect(0.0, self._scroll_y, self._viewport_width, self._viewport_height)

    @property
    def focused(self):
        return self._focused

    def __len__(self):
        return len(self._entries)

    def __contains__(self, handle):
        return handle in self._entries

    # ------------------------------------------------------------------
    # ElementRegistry
    # ------------------------------------------------------------------

    def query_visible_interactive_elements(self):
        visible = []
        for entry in self._entries.values():
            if not entry.enabled:
                continue
            rect = self._to_viewport(entry.rect)
            if rect.is_empty:
                continue
            if rect.top < self._viewport_height and rect.bottom > 0:
                visible.append((entry.handle, entry.kind))
        return visible

    def get_bounding_box(self, handle) -> Rect:
        return self._to_viewport(self._entry(handle).rect)

    def scroll_into_view(self, handle):
        rect = self._entry(handle).rect
        target = rect.top + rect.height / 2.0 - self._viewport_height / 2.0
        self._set_scroll(target)

    def focus(self, handle):
        entry = self._entry(handle)
        self._focused = handle
        if entry.on_focus is not None:
            entry.on_focus()

    def trigger(self, handle):
        entry = self._entry(handle)
        if entry.on_trigger is not None:
            entry.on_trigger()
        else:
            logger.debug("Target %r has no trigger callback", handle)

    def get_scroll_state(self) -> ScrollState:
        return ScrollState(self._scroll_y, self._max_scroll())

    def scroll_by(self, dy: float):
        self._set_scroll(self._scroll_y + dy)

    def get_label(self, handle) -> str:
        entry = self._entry(handle)
        return entry.label or f"{entry.kind.value} element"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _entry(self, handle) -> _Entry:
        try:
            return self._entries[handle]
        except KeyError:
            raise KeyError(f"Unknown target: {handle!r}") from None

    def _to_viewport(self, rect: Rect) -> Rect:
        return rect.offset(dy=-self._scroll_y)

    def _document_height(self) -> float:
        if self._content_height is not None:
            return self._content_height
        bottoms = [e.rect.bottom for e in self._entries.values()]
        return max(bottoms) if bottoms else 0.0

    def _max_scroll(self) -> float:
        return max(0.0, self._document_height() - self._viewport_height)

    def _set_scroll(self, y: float):
        y = min(max(0.0, y), self._max_scroll())
        if y == self._scroll_y:
            return
        self._scroll_y = y
        self._notify(scrolled_only=True)

    def _clamp_scroll(self):
        self._scroll_y = min(max(0.0, self._scroll_y), self._max_scroll())

    def _notify(self, scrolled_only: bool):
        for callback in list(self._listeners):
            try:
                callback(scrolled_only)
            except Exception as e:
                logger.error("Registry listener error: %s", e)
