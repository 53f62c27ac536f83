"""
Spoken feedback using pyttsx3 (offline).

Playback runs on one worker thread that owns the pyttsx3 engine. Every
utterance that starts playing reports on_start, and on_end always follows,
including when playback fails, so the microphone is never left muted.
"""
import logging
import queue
import threading
import warnings
from typing import Callable, Optional

import pyttsx3

from utils.config import TTS
from voice.engine import SpeechSynthesizer

logger = logging.getLogger(__name__)

Callback = Optional[Callable[[], None]]


class Pyttsx3Synthesizer:
    def __init__(self, rate_scale: float = TTS["RATE_SCALE"], volume: float = TTS["VOLUME"]):
        self.rate_scale = rate_scale
        self.volume = volume
        self._engine = None
        self._q: "queue.Queue" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def _ensure_engine(self):
        if self._engine is None:
            engine = pyttsx3.init()
            try:
                rate = engine.getProperty("rate")
                engine.setProperty("rate", int(rate * self.rate_scale))
                engine.setProperty("volume", self.volume)
            except Exception as e:
                logger.debug("[tts] Could not tune voice: %s", e)
            self._engine = engine
        return self._engine

    def speak(self, text: str, on_start: Callback = None, on_end: Callback = None) -> None:
        with self._lock:
            if self._thread is None or not self._thread.is_alive():
                self._thread = threading.Thread(target=self._run, daemon=True)
                self._thread.start()
        self._q.put((text, on_start, on_end))

    def close(self) -> None:
        with self._lock:
            thread, self._thread = self._thread, None
        if thread is not None:
            self._q.put(None)
            # close() may run from an on_start/on_end hook on the worker itself
            if thread is not threading.current_thread():
                thread.join(timeout=2.0)
        if self._engine is not None:
            try:
                self._engine.stop()
            finally:
                self._engine = None

    def _run(self) -> None:
        while True:
            item = self._q.get()
            if item is None:
                return
            text, on_start, on_end = item
            try:
                engine = self._ensure_engine()
            except Exception as e:
                logger.error("[tts] Speech engine unavailable: %s", e)
                continue
            if on_start:
                on_start()
            try:
                with warnings.catch_warnings():
                    warnings.simplefilter("ignore")  # espeak callback noise
                    engine.say(text)
                    engine.runAndWait()
            except Exception as e:
                logger.warning("[tts] Speech output failed (%s)", e)
            finally:
                if on_end:
                    on_end()


class SpeechFeedback:
    """Confirmation speech with start/end hooks for the microphone interlock."""

    def __init__(self, synthesizer: SpeechSynthesizer, enabled: bool = True):
        self.synthesizer = synthesizer
        self.enabled = enabled

    def speak(self, text: str, on_start: Callback = None, on_end: Callback = None) -> bool:
        """Queue `text`. Returns False when feedback is off or the synthesizer refused it."""
        if not self.enabled or not text:
            return False

        state = {"started": False, "ended": False}
        guard = threading.Lock()

        def _start():
            with guard:
                state["started"] = True
            if on_start:
                on_start()

        def _end():
            with guard:
                if not state["started"] or state["ended"]:
                    return
                state["ended"] = True
            if on_end:
                on_end()

        try:
            self.synthesizer.speak(text, on_start=_start, on_end=_end)
        except Exception as e:
            logger.warning("[tts] Could not speak %r: %s", text, e)
            _end()
            return False
        logger.debug("[tts] %s", text)
        return True

    def close(self) -> None:
        self.synthesizer.close()
