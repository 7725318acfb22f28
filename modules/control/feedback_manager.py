"""
Spoken, haptic and visual feedback for gestures and navigation.

Speech goes through pyttsx3 on a background worker so a long utterance
never stalls the control loop. Vibration has no portable backend on a
desktop host, so the default sink only logs the pattern. Both are best
effort: a sink that cannot start disables itself and feedback continues
without it.
"""

import queue
import time
import logging
import threading
from typing import Optional, Sequence

import cv2
import numpy as np
import pyttsx3

logger = logging.getLogger(__name__)

DEFAULT_VIBRATION_PATTERN = (100, 50, 100)


class SpeechSink:
    """Queue-backed pyttsx3 text-to-speech."""

    def __init__(self, rate: int = 175, volume: float = 1.0):
        self._rate = rate
        self._volume = volume
        self._queue = queue.Queue(maxsize=16)
        self._thread = None
        self._available = True

    @property
    def available(self) -> bool:
        return self._available

    def speak(self, text: str):
        if not self._available:
            return
        if self._thread is None:
            self._thread = threading.Thread(target=self._run, daemon=True, name="speech")
            self._thread.start()
        try:
            self._queue.put_nowait(text)
        except queue.Full:
            logger.debug("Speech queue full, dropping: %s", text)

    def _run(self):
        try:
            engine = pyttsx3.init()
            engine.setProperty("rate", self._rate)
            engine.setProperty("volume", self._volume)
        except Exception as e:
            logger.warning("Speech engine unavailable: %s", e)
            self._available = False
            return

        while True:
            text = self._queue.get()
            if text is None:
                break
            try:
                engine.say(text)
                engine.runAndWait()
            except Exception as e:
                logger.warning("Speech failed: %s", e)

    def close(self):
        if self._thread is not None and self._thread.is_alive():
            try:
                self._queue.put_nowait(None)
            except queue.Full:
                pass
            self._thread.join(timeout=1.0)
        self._thread = None


class LoggingVibrationSink:
    """Vibration sink for hosts without a haptic device."""

    def vibrate(self, pattern: Sequence[int]):
        logger.debug("Vibrate %s", list(pattern))


class FeedbackManager:
    """Routes feedback to the speech and vibration sinks.

    Also keeps a short-lived on-screen banner for the preview window.
    """

    def __init__(self, config: dict = None, speech=None, haptics=None):
        config = config or {}
        self._voice_enabled = config.get("voice_enabled", True)
        self._haptic_enabled = config.get("haptic_enabled", True)
        self._speech = speech if speech is not None else SpeechSink(
            rate=config.get("speech_rate", 175),
            volume=config.get("speech_volume", 1.0),
        )
        self._haptics = haptics if haptics is not None else LoggingVibrationSink()

        self._banner = None
        self._banner_duration = config.get("banner_duration", 1.0)
        self._fade_duration = 0.3

    # ------------------------------------------------------------------
    # Sinks
    # ------------------------------------------------------------------

    def speak(self, text: str):
        logger.info("Say: %s", text)
        if not self._voice_enabled or self._speech is None:
            return
        try:
            self._speech.speak(text)
        except Exception as e:
            logger.warning("Speech sink error: %s", e)

    def vibrate(self, pattern: Sequence[int] = DEFAULT_VIBRATION_PATTERN):
        if not self._haptic_enabled or self._haptics is None:
            return
        try:
            self._haptics.vibrate(list(pattern))
        except Exception as e:
            logger.warning("Vibration sink error: %s", e)

    @property
    def voice_enabled(self) -> bool:
        return self._voice_enabled

    @property
    def haptic_enabled(self) -> bool:
        return self._haptic_enabled

    def set_voice_enabled(self, enabled: bool):
        self._voice_enabled = bool(enabled)
        logger.info("Voice feedback %s", "on" if enabled else "off")

    def set_haptic_enabled(self, enabled: bool):
        self._haptic_enabled = bool(enabled)
        logger.info("Haptic feedback %s", "on" if enabled else "off")

    def close(self):
        close = getattr(self._speech, "close", None)
        if close is not None:
            close()

    # ------------------------------------------------------------------
    # Preview banner
    # ------------------------------------------------------------------

    def trigger(self, text: str, color=(0, 255, 0)):
        """Show ``text`` in the preview banner for a moment."""
        self._banner = {"text": text, "color": color, "start_time": time.time()}

    def render(self, frame: np.ndarray) -> np.ndarray:
        """Draw the active banner onto a BGR frame (in place)."""
        if self._banner is None:
            return frame

        elapsed = time.time() - self._banner["start_time"]
        if elapsed > self._banner_duration:
            self._banner = None
            return frame

        if elapsed > self._banner_duration - self._fade_duration:
            fade_progress = (elapsed - (self._banner_duration - self._fade_duration)) / self._fade_duration
            opacity = 1.0 - fade_progress
        else:
            opacity = 1.0

        h, w = frame.shape[:2]
        box_w, box_h = min(300, w - 20), 60
        x1 = (w - box_w) // 2
        y1 = h - box_h - 20

        overlay = frame.copy()
        cv2.rectangle(overlay, (x1, y1), (x1 + box_w, y1 + box_h), (40, 40, 40), -1)
        cv2.rectangle(overlay, (x1, y1), (x1 + box_w, y1 + box_h), self._banner["color"], 2)
        cv2.addWeighted(overlay, opacity * 0.8, frame, 1 - opacity * 0.8, 0, frame)

        if opacity > 0.3:
            cv2.putText(
                frame, self._banner["text"],
                (x1 + 15, y1 + 38),
                cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 255), 2,
            )
        return frame

    @property
    def banner_text(self) -> Optional[str]:
        if self._banner is None:
            return None
        if time.time() - self._banner["start_time"] > self._banner_duration:
            return None
        return self._banner["text"]
