"""
Threaded OpenCV camera capture.

A background thread keeps only the newest frame, so the control loop
always processes the latest image instead of a backlog.
"""

import time
import threading
import logging
import cv2

from core.errors import CapabilityError

logger = logging.getLogger(__name__)

BACKENDS = {
    "v4l2": cv2.CAP_V4L2,
    "gstreamer": cv2.CAP_GSTREAMER,
    "dshow": cv2.CAP_DSHOW,
    "auto": cv2.CAP_ANY,
}


class CameraManager:
    """Camera capture with threaded frame acquisition."""

    def __init__(self, config: dict = None):
        config = config or {}
        self._device_id = config.get("device_id", 0)
        self._width = config.get("width", 640)
        self._height = config.get("height", 480)
        self._fps = config.get("fps", 30)
        self._backend = config.get("backend", "auto")
        self._flip_h = config.get("flip_horizontal", True)
        self._warmup_frames = config.get("warmup_frames", 5)

        self._cap = None
        self._frame = None
        self._frame_id = 0
        self._lock = threading.Lock()
        self._running = False
        self._thread = None

    def open(self):
        """Open the device.

        Raises:
            CapabilityError: the camera cannot be opened (missing, busy or
                             permission denied)
        """
        backend = BACKENDS.get(self._backend, cv2.CAP_ANY)
        self._cap = cv2.VideoCapture(self._device_id, backend)
        if not self._cap.isOpened():
            self._cap.release()
            self._cap = None
            raise CapabilityError(
                f"Cannot open camera {self._device_id} (backend {self._backend})"
            )

        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
        self._cap.set(cv2.CAP_PROP_FPS, self._fps)
        self._cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        logger.info(
            "Camera opened: %dx%d @ %.0f FPS (requested %dx%d @ %d)",
            int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            self._cap.get(cv2.CAP_PROP_FPS),
            self._width, self._height, self._fps,
        )

        # Let auto-exposure settle
        for _ in range(self._warmup_frames):
            self._cap.read()

    def start_async(self):
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._capture_loop, daemon=True, name="camera")
        self._thread.start()
        logger.debug("Async capture started")

    def _capture_loop(self):
        while self._running:
            ret, frame = self._cap.read()
            if ret and frame is not None:
                if self._flip_h:
                    frame = cv2.flip(frame, 1)
                with self._lock:
                    self._frame = frame
                    self._frame_id += 1
            else:
                time.sleep(0.005)

    def read(self):
        """Newest frame, non-blocking.

        Returns:
            (frame_id, BGR array), or (None, None) before the first frame
        """
        with self._lock:
            if self._frame is not None:
                return self._frame_id, self._frame.copy()
            return None, None

    @property
    def resolution(self) -> tuple:
        return (self._width, self._height)

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def stop(self):
        """Stop capture and release the device."""
        self._running = False
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)
        self._thread = None
        if self._cap:
            self._cap.release()
            self._cap = None
        logger.info("Camera stopped")

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *args):
        self.stop()

