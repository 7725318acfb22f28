"""
MediaPipe hand landmark source.

Reads frames from the camera, runs MediaPipe Hands and turns the first
detected hand into a LandmarkFrame (21 normalized keypoints plus
handedness). One hand is tracked; multi-hand input is not disambiguated.
"""

import time
import logging
from typing import Optional, Tuple

import cv2
import numpy as np
import mediapipe as mp

from core.errors import CapabilityError
from core.types import LandmarkFrame, ProducerType
from modules.capture.camera_manager import CameraManager

logger = logging.getLogger(__name__)


class HandDetector:
    """MediaPipe Hands wrapper."""

    def __init__(self, config: dict = None):
        config = config or {}
        self._model_complexity = config.get("model_complexity", 0)
        self._min_detect_conf = config.get("min_detection_confidence", 0.6)
        self._min_track_conf = config.get("min_tracking_confidence", 0.5)

        self._hands = None
        self._mp_hands = None
        self._mp_drawing = None

    def initialize(self):
        """Create the MediaPipe Hands graph.

        Raises:
            CapabilityError: the installed MediaPipe has no Hands solution
                             or it fails to initialise
        """
        try:
            self._mp_hands = mp.solutions.hands
            self._mp_drawing = mp.solutions.drawing_utils
            self._hands = self._mp_hands.Hands(
                static_image_mode=False,
                model_complexity=self._model_complexity,
                max_num_hands=1,
                min_detection_confidence=self._min_detect_conf,
                min_tracking_confidence=self._min_track_conf,
            )
        except (AttributeError, RuntimeError, ValueError) as e:
            raise CapabilityError(f"MediaPipe Hands unavailable: {e}") from e

        logger.info(
            "MediaPipe Hands initialized (complexity=%d, detect_conf=%.2f, track_conf=%.2f)",
            self._model_complexity, self._min_detect_conf, self._min_track_conf,
        )

    def detect(self, bgr_frame: np.ndarray):
        """Run detection on a BGR frame; returns the MediaPipe results object."""
        if self._hands is None:
            self.initialize()
        rgb = cv2.cvtColor(bgr_frame, cv2.COLOR_BGR2RGB)
        rgb.flags.writeable = False
        return self._hands.process(rgb)

    @staticmethod
    def to_landmark_frame(results, timestamp: float = None) -> Optional[LandmarkFrame]:
        """First detected hand as a LandmarkFrame, or None."""
        if not results or not results.multi_hand_landmarks:
            return None
        hand = results.multi_hand_landmarks[0]
        handedness = "right"
        if results.multi_handedness:
            handedness = results.multi_handedness[0].classification[0].label.lower()
        points = [(lm.x, lm.y, lm.z) for lm in hand.landmark]
        return LandmarkFrame(points, handedness=handedness, timestamp=timestamp)

    def draw_landmarks(self, frame: np.ndarray, results) -> np.ndarray:
        """Draw hand keypoints and connections onto a BGR frame."""
        if self._mp_drawing is not None and results and results.multi_hand_landmarks:
            for hand_landmarks in results.multi_hand_landmarks:
                self._mp_drawing.draw_landmarks(
                    frame, hand_landmarks, self._mp_hands.HAND_CONNECTIONS,
                )
        return frame

    def close(self):
        if self._hands is not None:
            self._hands.close()
            self._hands = None
            logger.info("MediaPipe Hands closed")


class HandLandmarkSource:
    """Camera + MediaPipe producer of LandmarkFrame samples."""

    producer = ProducerType.LANDMARK

    def __init__(self, camera_config: dict = None, detector_config: dict = None,
                 camera: CameraManager = None, detector: HandDetector = None):
        self._camera = camera or CameraManager(camera_config)
        self._detector = detector or HandDetector(detector_config)
        self._last_frame_id = None
        self._last_results = None

    def start(self):
        """Open the camera and the vision engine.

        Raises:
            CapabilityError: either one is unavailable
        """
        self._detector.initialize()
        try:
            self._camera.open()
        except CapabilityError:
            self._detector.close()
            raise
        self._camera.start_async()

    def read(self) -> Tuple[Optional[np.ndarray], Optional[LandmarkFrame]]:
        """Newest camera frame and its hand landmarks.

        Returns:
            (frame, sample). ``frame`` is None when no new frame arrived;
            ``sample`` is None when no hand was found.
        """
        frame_id, frame = self._camera.read()
        if frame is None or frame_id == self._last_frame_id:
            return None, None
        self._last_frame_id = frame_id
        self._last_results = self._detector.detect(frame)
        return frame, self._detector.to_landmark_frame(self._last_results, time.time())

    def annotate(self, frame: np.ndarray) -> np.ndarray:
        return self._detector.draw_landmarks(frame, self._last_results)

    def stop(self):
        self._camera.stop()
        self._detector.close()
