# voice/audio.py
import logging
from typing import Callable, Optional

import sounddevice as sd

from utils.config import AUDIO
from voice.engine import PermissionDeniedError

logger = logging.getLogger(__name__)


class MicrophoneStream:
    """
    Mono int16 capture feeding raw blocks to one callback.

    Runs at the input device's own default rate (the recognizer is built for
    that rate), in blocks of sr/32 frames but never under 1024. Setting
    `enabled = False` mutes it: blocks are dropped but the stream stays open.
    """
    def __init__(self, device: Optional[int] = None, sample_rate_fallback: int = AUDIO["SAMPLE_RATE_FALLBACK"]):
        self.device = device if device is not None else AUDIO["DEVICE"]
        self.sample_rate = self._detect_sample_rate(int(sample_rate_fallback))
        self.enabled = True
        self._stream: Optional[sd.RawInputStream] = None
        self._callback: Optional[Callable[[bytes], None]] = None

    def _detect_sample_rate(self, fallback: int) -> int:
        try:
            info = sd.query_devices(self.device, kind="input")
            return int(info.get("default_samplerate") or fallback)
        except Exception as e:
            logger.warning("[audio] Could not query input device %s (%s); using %d Hz", self.device, e, fallback)
            return fallback

    def _audio_cb(self, indata, frames, time_info, status):
        if status:
            logger.debug("[audio] %s", status)
        if not self.enabled or self._callback is None:
            return
        self._callback(bytes(indata))

    def open(self, callback: Callable[[bytes], None]) -> None:
        self._callback = callback
        blocksize = max(AUDIO["MIN_BLOCKSIZE"], int(self.sample_rate / AUDIO["BLOCKSIZE_DIVISOR"]))
        try:
            self._stream = sd.RawInputStream(
                samplerate=self.sample_rate,
                blocksize=blocksize,
                dtype="int16",
                channels=1,
                callback=self._audio_cb,
                device=self.device,
            )
            self._stream.start()
        except sd.PortAudioError as e:
            self._stream = None
            raise PermissionDeniedError(f"Microphone unavailable: {e}") from e
        logger.info("[audio] Listening on device=%s @ %d Hz (blocksize=%d)",
                    self.device if self.device is not None else "default", self.sample_rate, blocksize)

    def close(self) -> None:
        stream, self._stream = self._stream, None
        self._callback = None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()
