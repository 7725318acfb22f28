"""
Frame-differencing motion source.

Each frame is downscaled (320x240 by default) and compared with the
previous one. Pixels whose summed absolute BGR change exceeds the
sensitivity threshold count as motion; their centroid, normalized to the
frame size, becomes a MotionSample with the mean change as intensity.
Frames without motion produce no sample.
"""

import time
import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from core.types import MotionSample, ProducerType
from modules.capture.camera_manager import CameraManager

logger = logging.getLogger(__name__)


class MotionDetector:
    """Stateful frame differencer. Pure numpy apart from the resize."""

    def __init__(self, config: dict = None):
        config = config or {}
        self._sensitivity = config.get("sensitivity", 15)
        self._width = config.get("analysis_width", 320)
        self._height = config.get("analysis_height", 240)
        self._previous: Optional[np.ndarray] = None

    def process(self, bgr_frame: np.ndarray, timestamp: float = None) -> Optional[MotionSample]:
        """Compare ``bgr_frame`` with the previous frame.

        Returns:
            MotionSample, or None for the first frame and motionless frames
        """
        small = cv2.resize(bgr_frame, (self._width, self._height), interpolation=cv2.INTER_AREA)
        current = small.astype(np.int16)
        previous, self._previous = self._previous, current
        if previous is None:
            return None

        diff = np.abs(current - previous).sum(axis=2)
        mask = diff > self._sensitivity
        count = int(mask.sum())
        if count == 0:
            return None

        ys, xs = np.nonzero(mask)
        return MotionSample(
            x=float(xs.mean()) / self._width,
            y=float(ys.mean()) / self._height,
            intensity=float(diff[mask].mean()),
            timestamp=time.time() if timestamp is None else timestamp,
        )

    def reset(self):
        self._previous = None


class MotionSource:
    """Camera + frame differencing producer of MotionSample values."""

    producer = ProducerType.MOTION

    def __init__(self, camera_config: dict = None, motion_config: dict = None,
                 camera: CameraManager = None, detector: MotionDetector = None):
        self._camera = camera or CameraManager(camera_config)
        self._detector = detector or MotionDetector(motion_config)
        self._last_frame_id = None

    def start(self):
        """Open the camera.

        Raises:
            CapabilityError: the camera is unavailable
        """
        self._detector.reset()
        self._camera.open()
        self._camera.start_async()

    def read(self) -> Tuple[Optional[np.ndarray], Optional[MotionSample]]:
        frame_id, frame = self._camera.read()
        if frame is None or frame_id == self._last_frame_id:
            return None, None
        self._last_frame_id = frame_id
        return frame, self._detector.process(frame, time.time())

    def annotate(self, frame: np.ndarray) -> np.ndarray:
        return frame

    def stop(self):
        self._camera.stop()
