"""
Focus highlight overlay.

Owned by the FocusNavigator, which is the only caller of show()/hide().
The overlay holds the rectangle to outline; render() draws it onto the
OpenCV preview, scaled from viewport units to the preview frame.
"""

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from core.types import Rect

logger = logging.getLogger(__name__)


class HighlightOverlay:
    """Outline around the currently focused target."""

    def __init__(self, margin: float = 5.0, color: Tuple[int, int, int] = (246, 130, 59),
                 thickness: int = 3):
        self._margin = margin
        self._color = color
        self._thickness = thickness
        self._rect: Optional[Rect] = None

    @property
    def visible(self) -> bool:
        return self._rect is not None

    @property
    def rect(self) -> Optional[Rect]:
        """Outlined rectangle including the margin, or None when hidden."""
        return self._rect

    def show(self, rect: Rect):
        self._rect = Rect(*rect).inflate(self._margin)

    def hide(self):
        self._rect = None

    def render(self, frame: np.ndarray, viewport_size: Tuple[float, float]) -> np.ndarray:
        """Draw the outline onto a BGR frame (in place).

        Args:
            frame: Preview frame
            viewport_size: (width, height) of the viewport the rect lives in
        """
        if self._rect is None:
            return frame

        h, w = frame.shape[:2]
        vw, vh = viewport_size
        if vw <= 0 or vh <= 0:
            return frame
        sx, sy = w / float(vw), h / float(vh)

        x1 = int(round(self._rect.left * sx))
        y1 = int(round(self._rect.top * sy))
        x2 = int(round(self._rect.right * sx))
        y2 = int(round(self._rect.bottom * sy))

        overlay = frame.copy()
        cv2.rectangle(overlay, (x1, y1), (x2, y2), self._color, -1)
        cv2.addWeighted(overlay, 0.1, frame, 0.9, 0, frame)
        cv2.rectangle(frame, (x1, y1), (x2, y2), self._color, self._thickness)
        return frame
