# voice/vosk_engine.py
import json
import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from vosk import KaldiRecognizer, Model

from voice.engine import EngineErrorKind, EngineInitError, RecognitionListener
from voice.grammar import UNKNOWN_TOKEN, grammar_json

logger = logging.getLogger(__name__)

AUDIO_QUEUE_MAXSIZE = 200
JOIN_TIMEOUT_S = 1.0


@dataclass
class VoskHandle:
    recognizer: Any
    listener: RecognitionListener
    q: "queue.Queue[bytes]" = field(default_factory=lambda: queue.Queue(maxsize=AUDIO_QUEUE_MAXSIZE))
    stop_flag: threading.Event = field(default_factory=threading.Event)
    thread: Optional[threading.Thread] = None
    last_partial: str = ""

    @property
    def running(self) -> bool:
        return self.thread is not None and self.thread.is_alive() and not self.stop_flag.is_set()


def _clean(text: str) -> str:
    return " ".join(w for w in text.split() if w != UNKNOWN_TOKEN)


class VoskEngine:
    """
    Offline recognizer using Vosk, constrained to the order-navigation grammar.
    Audio arrives through feed(); a worker thread runs the recognizer and
    reports FINAL and PARTIAL results to the listener.
    """
    def __init__(self, model_path: str):
        self.model_path = model_path
        self._model: Optional[Model] = None

    def _load_model(self) -> Model:
        if self._model is None:
            try:
                self._model = Model(self.model_path)
            except Exception as e:
                raise EngineInitError(f"Could not load Vosk model at {self.model_path!r}: {e}") from e
        return self._model

    def initialize(self, vocabulary: List[str], sample_rate: int, listener: RecognitionListener) -> VoskHandle:
        model = self._load_model()
        try:
            rec = KaldiRecognizer(model, sample_rate, grammar_json(vocabulary))
            rec.SetWords(True)
        except Exception as e:
            raise EngineInitError(f"Could not create recognizer: {e}") from e
        logger.info("[vosk] Recognizer ready (%d grammar phrases @ %d Hz)", len(vocabulary), sample_rate)
        return VoskHandle(recognizer=rec, listener=listener)

    def start(self, handle: VoskHandle) -> None:
        if handle.running:
            return
        if not self._join(handle):
            raise RuntimeError("Vosk worker still busy in the recognizer")
        # each run gets its own flag; a finished worker never sees the next run's
        handle.stop_flag = threading.Event()
        self._flush(handle)
        handle.last_partial = ""
        handle.thread = threading.Thread(target=self._run, args=(handle, handle.stop_flag), daemon=True)
        handle.thread.start()

    def stop(self, handle: VoskHandle) -> None:
        """Stop recognition and report the end so the session can decide whether to restart."""
        if not handle.running:
            return
        if self._join(handle):
            handle.recognizer.Reset()
        else:
            # recognizers are not thread-safe; never reset under a busy worker
            logger.warning("[vosk] Worker still busy after stop; recognizer not reset")
        handle.listener.on_end()

    def feed(self, handle: VoskHandle, data: bytes) -> None:
        if handle.stop_flag.is_set():
            return
        try:
            handle.q.put_nowait(data)
        except queue.Full:
            pass

    def release(self, handle: VoskHandle) -> None:
        self._join(handle)
        self._flush(handle)

    def engine_info(self) -> Dict[str, Any]:
        return {"engine": "vosk", "offline": True, "model": self.model_path}

    # ---- worker ----
    def _join(self, handle: VoskHandle) -> bool:
        """Stop the worker. False if it is still inside the recognizer after the timeout."""
        handle.stop_flag.set()
        thread = handle.thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=JOIN_TIMEOUT_S)
            if thread.is_alive():
                return False
        handle.thread = None
        return True

    def _flush(self, handle: VoskHandle) -> None:
        try:
            while True:
                handle.q.get_nowait()
        except queue.Empty:
            pass

    def _run(self, handle: VoskHandle, stop_flag: threading.Event) -> None:
        rec, listener = handle.recognizer, handle.listener
        while not stop_flag.is_set():
            try:
                data = handle.q.get(timeout=0.2)
            except queue.Empty:
                continue

            try:
                if rec.AcceptWaveform(data):
                    text = _clean(json.loads(rec.Result()).get("text") or "")
                    handle.last_partial = ""
                    logger.debug("[vosk] FINAL: %r", text)
                    if text:
                        listener.on_final_transcript(text)
                    else:
                        listener.on_error(EngineErrorKind.NO_SPEECH)
                else:
                    partial = _clean(json.loads(rec.PartialResult()).get("partial") or "")
                    if partial and partial != handle.last_partial:
                        handle.last_partial = partial
                        listener.on_partial_transcript(partial)
            except Exception:
                logger.exception("[vosk] Recognizer failed")
                stop_flag.set()
                listener.on_error(EngineErrorKind.UNKNOWN)
                listener.on_end()
                return
