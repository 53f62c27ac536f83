"""
Voice session controller: the listening/speaking state machine.

    IDLE -> INITIALIZING -> LISTENING <-> SPEAKING -> STOPPED
    ERROR from anywhere; IDLE again on teardown (close()).

Every state change runs through one serial event queue, so a transition
(including acquiring or releasing the microphone and recognizer) finishes
before the next event is looked at. Engine, audio, TTS and timer threads
only post events; they never touch session state directly. Events carry
the id of the session that produced them and are dropped once that session
is gone, which is what makes a late heartbeat or recognizer callback
harmless after a stop.
"""
from __future__ import annotations

import itertools
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from utils.config import VOICE
from voice.commands import (
    ERROR,
    INFO,
    CommandDispatcher,
    NavigationCallbacks,
    RecognitionResult,
)
from voice.engine import (
    EngineErrorKind,
    EngineInitError,
    Microphone,
    PermissionDeniedError,
    RecognitionEngine,
)
from voice.grammar import build_vocabulary
from voice.timers import Scheduler, ThreadingScheduler, TimerHandle
from voice.tts import SpeechFeedback

logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    LISTENING = "listening"
    SPEAKING = "speaking"
    STOPPED = "stopped"
    ERROR = "error"


S = SessionState

ALLOWED_TRANSITIONS: Dict[SessionState, Tuple[SessionState, ...]] = {
    S.IDLE: (S.INITIALIZING, S.IDLE),
    S.INITIALIZING: (S.LISTENING, S.STOPPED, S.ERROR, S.IDLE),
    S.LISTENING: (S.LISTENING, S.SPEAKING, S.STOPPED, S.ERROR, S.IDLE),
    S.SPEAKING: (S.LISTENING, S.STOPPED, S.ERROR, S.IDLE),
    S.STOPPED: (S.INITIALIZING, S.IDLE),
    S.ERROR: (S.INITIALIZING, S.STOPPED, S.IDLE),
}

ACTIVE_STATES = (S.INITIALIZING, S.LISTENING, S.SPEAKING)


class InvalidTransition(RuntimeError):
    pass


@dataclass(frozen=True)
class VoiceStatus:
    text: str
    kind: str = INFO


@dataclass(frozen=True)
class SessionSettings:
    heartbeat_interval: float = 30.0
    retry_delay: float = 2.0
    network_retry_delay: float = 3.0
    restart_attempts: int = 2
    speak_feedback: bool = True

    @classmethod
    def from_config(cls) -> "SessionSettings":
        return cls(
            heartbeat_interval=float(VOICE["HEARTBEAT_S"]),
            retry_delay=float(VOICE["RETRY_DELAY_S"]),
            network_retry_delay=float(VOICE["NETWORK_RETRY_DELAY_S"]),
            restart_attempts=int(VOICE["RESTART_ATTEMPTS"]),
            speak_feedback=bool(VOICE["SPEAK_FEEDBACK"]),
        )


@dataclass
class VoiceSession:
    """Handles owned by one listening session. Only the controller touches these."""
    id: int
    vocabulary: List[str] = field(default_factory=list)
    microphone: Optional[Microphone] = None
    handle: Any = None
    heartbeat: Optional[TimerHandle] = None
    restart_timer: Optional[TimerHandle] = None
    restart_failures: int = 0
    muted: bool = False


class _SessionListener:
    """Recognition events for one session, forwarded into the controller queue."""

    def __init__(self, controller: "VoiceSessionController", session_id: int):
        self._c = controller
        self._sid = session_id

    def on_final_transcript(self, text: str) -> None:
        self._c._post(self._c._handle_final, self._sid, text)

    def on_partial_transcript(self, text: str) -> None:
        self._c._post(self._c._handle_partial, self._sid, text)

    def on_error(self, kind: EngineErrorKind) -> None:
        self._c._post(self._c._handle_engine_error, self._sid, kind)

    def on_end(self) -> None:
        self._c._post(self._c._handle_engine_end, self._sid)


class VoiceSessionController:
    """
    Owns the microphone and recognizer for one voice session at a time.

    Usage:
        controller = VoiceSessionController(engine, callbacks, MicrophoneStream, feedback)
        controller.orders_length = len(orders)
        controller.toggle()      # mic button: start / stop
        ...
        controller.close()       # teardown
    """

    def __init__(
        self,
        engine: RecognitionEngine,
        callbacks: NavigationCallbacks,
        microphone_factory: Callable[[], Microphone],
        feedback: Optional[SpeechFeedback] = None,
        settings: Optional[SessionSettings] = None,
        scheduler: Optional[Scheduler] = None,
        orders_length: int = 0,
        on_status: Optional[Callable[[VoiceStatus], None]] = None,
        on_result: Optional[Callable[[RecognitionResult], None]] = None,
    ):
        self.engine = engine
        self.dispatcher = CommandDispatcher(callbacks)
        self.microphone_factory = microphone_factory
        self.feedback = feedback
        self.settings = settings or SessionSettings.from_config()
        self.scheduler = scheduler or ThreadingScheduler()
        self.orders_length = orders_length
        self.on_status = on_status
        self.on_result = on_result

        self._state = S.IDLE
        self._status = VoiceStatus("Voice commands off")
        self._last_result: Optional[RecognitionResult] = None
        self._session: Optional[VoiceSession] = None
        self._ids = itertools.count(1)
        self._stop_requested = threading.Event()

        # serial event queue
        self._lock = threading.Lock()
        self._events: Deque[Tuple[Callable[..., None], tuple, Optional[threading.Event]]] = deque()
        self._drainer: Optional[threading.Thread] = None

    # ---- read-only surface ----
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def status(self) -> VoiceStatus:
        return self._status

    @property
    def last_result(self) -> Optional[RecognitionResult]:
        return self._last_result

    @property
    def is_active(self) -> bool:
        return self._state in ACTIVE_STATES

    def engine_info(self) -> Dict[str, Any]:
        try:
            return dict(self.engine.engine_info())
        except Exception as e:
            logger.warning("[voice] engine_info failed: %s", e)
            return {"engine": "unknown", "offline": False}

    # ---- user actions ----
    def start(self) -> None:
        """Start listening. While a session is already running this acts as stop."""
        self._post(self._handle_start, wait=True)

    def toggle(self) -> None:
        """Mic button."""
        self.start()

    def stop(self) -> None:
        """Stop listening and release the microphone and recognizer. Safe to call repeatedly."""
        self._stop_requested.set()
        self._post(self._handle_stop, wait=True)

    def close(self) -> None:
        """Teardown: release everything regardless of state and go back to IDLE."""
        self._stop_requested.set()
        self._post(self._handle_teardown, wait=True)

    # ---- event queue ----
    def _post(self, fn: Callable[..., None], *args: Any, wait: bool = False) -> None:
        done = threading.Event() if wait else None
        with self._lock:
            self._events.append((fn, args, done))
            if self._drainer is not None:
                # nested post from inside a handler runs after the current one
                if done is None or self._drainer is threading.current_thread():
                    return
                must_wait = True
            else:
                self._drainer = threading.current_thread()
                must_wait = False
        if must_wait:
            done.wait()
            return
        self._drain()

    def _drain(self) -> None:
        while True:
            with self._lock:
                if not self._events:
                    self._drainer = None
                    return
                fn, args, done = self._events.popleft()
            try:
                fn(*args)
            except Exception:
                logger.exception("[voice] %s failed", getattr(fn, "__name__", fn))
            finally:
                if done is not None:
                    done.set()

    # ---- transitions ----
    def _transition(self, new_state: SessionState, text: Optional[str] = None, kind: str = INFO) -> None:
        old = self._state
        if new_state not in ALLOWED_TRANSITIONS[old]:
            raise InvalidTransition(f"{old.value} -> {new_state.value}")
        session = self._session

        if session is not None:
            if old is S.LISTENING and new_state is not S.LISTENING:
                self._cancel_heartbeat(session)
            if old is S.SPEAKING and new_state is not S.SPEAKING:
                self._unmute(session)

        self._state = new_state
        if old is not new_state:
            logger.info("[voice] %s -> %s", old.value, new_state.value)

        if session is not None and new_state is S.LISTENING and old is not S.LISTENING:
            self._start_heartbeat(session)
        if text is not None:
            self._set_status(text, kind)

    def _set_status(self, text: str, kind: str = INFO) -> None:
        self._status = VoiceStatus(text, kind)
        if self.on_status:
            try:
                self.on_status(self._status)
            except Exception:
                logger.exception("[voice] on_status callback failed")

    def _current(self, session_id: int) -> Optional[VoiceSession]:
        session = self._session
        if session is None or session.id != session_id:
            return None
        return session

    # ---- handlers (run serially) ----
    def _handle_start(self) -> None:
        if self._state in ACTIVE_STATES:
            self._handle_stop()
            return

        self._stop_requested.clear()
        session = VoiceSession(id=next(self._ids))
        self._session = session
        self._transition(S.INITIALIZING, "Starting voice recognition")

        try:
            session.vocabulary = build_vocabulary()
            session.microphone = self.microphone_factory()
            session.handle = self.engine.initialize(
                session.vocabulary,
                session.microphone.sample_rate,
                _SessionListener(self, session.id),
            )
            if self._cancelled(session):
                return
            handle = session.handle
            session.microphone.open(lambda data: self.engine.feed(handle, data))
            if self._cancelled(session):
                return
            self.engine.start(handle)
            if self._cancelled(session):
                return
        except PermissionDeniedError as e:
            logger.error("[voice] Microphone access denied: %s", e)
            self._fail(session, "Access denied")
            return
        except EngineInitError as e:
            logger.error("[voice] Engine init failed: %s", e)
            self._fail(session, f"Voice recognition unavailable: {e}")
            return
        except Exception as e:
            logger.exception("[voice] Failed to start voice recognition")
            self._fail(session, f"Failed to start voice recognition: {e}")
            return

        self._transition(S.LISTENING, "Listening")

    def _cancelled(self, session: VoiceSession) -> bool:
        """A stop arrived while initializing: drop what was acquired so far."""
        if not self._stop_requested.is_set():
            return False
        logger.info("[voice] Stop requested during initialization")
        self._release(session)
        self._session = None
        self._transition(S.STOPPED, "Voice recognition stopped")
        return True

    def _handle_stop(self) -> None:
        self._stop_requested.set()
        if self._state in (S.IDLE, S.STOPPED):
            return
        session, self._session = self._session, None
        if session is not None:
            self._release(session)
        self._transition(S.STOPPED, "Voice recognition stopped")

    def _handle_teardown(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            self._release(session)
        if self.feedback is not None:
            try:
                self.feedback.close()
            except Exception as e:
                logger.warning("[voice] Closing speech feedback failed: %s", e)
        self._transition(S.IDLE, "Voice commands off")

    def _fail(self, session: VoiceSession, text: str) -> None:
        self._release(session)
        if self._session is session:
            self._session = None
        self._transition(S.ERROR, text, ERROR)

    def _handle_final(self, session_id: int, text: str) -> None:
        session = self._current(session_id)
        if session is None:
            return
        if self._state is not S.LISTENING:
            logger.debug("[voice] Ignoring %r while %s", text, self._state.value)
            return

        logger.info("[voice] Heard: %r", text)
        self._set_status(f'Heard: "{text}"')
        try:
            result = self.dispatcher.process(text, self.orders_length)
        except Exception:
            logger.exception("[voice] Command %r failed", text)
            result = RecognitionResult(success=False, message=f'"{text}" - command failed', kind=ERROR)

        self._last_result = result
        self._transition(S.LISTENING, result.message, result.kind)
        if self.on_result:
            try:
                self.on_result(result)
            except Exception:
                logger.exception("[voice] on_result callback failed")

        if result.success and self.settings.speak_feedback and self.feedback is not None:
            self.feedback.speak(
                result.message,
                on_start=lambda: self._post(self._handle_speech_start, session_id),
                on_end=lambda: self._post(self._handle_speech_end, session_id),
            )

    def _handle_partial(self, session_id: int, text: str) -> None:
        if self._current(session_id) is None or self._state is not S.LISTENING:
            return
        logger.debug("[voice] PARTIAL: %r", text)
        self._set_status(f'Listening: "{text}"')

    def _handle_speech_start(self, session_id: int) -> None:
        session = self._current(session_id)
        if session is None or self._state is not S.LISTENING:
            return
        if session.microphone is not None:
            session.microphone.enabled = False
            session.muted = True
        self._transition(S.SPEAKING)

    def _handle_speech_end(self, session_id: int) -> None:
        if self._current(session_id) is None or self._state is not S.SPEAKING:
            return
        self._transition(S.LISTENING)

    def _handle_heartbeat(self, session_id: int) -> None:
        session = self._current(session_id)
        if session is None or self._state is not S.LISTENING or self._stop_requested.is_set():
            return
        logger.debug("[voice] Heartbeat restart")
        try:
            # the engine reports on_end, which restarts it
            self.engine.stop(session.handle)
        except Exception as e:
            logger.warning("[voice] Heartbeat stop failed: %s", e)
            self._restart(session)

    def _handle_engine_end(self, session_id: int) -> None:
        session = self._current(session_id)
        if session is None or self._state not in (S.LISTENING, S.SPEAKING):
            return
        if self._stop_requested.is_set():
            return
        self._restart(session)

    def _handle_engine_error(self, session_id: int, kind: EngineErrorKind) -> None:
        session = self._current(session_id)
        if session is None:
            return
        if kind is EngineErrorKind.NO_SPEECH:
            # silent stretches end in an empty final; keep the last outcome on screen
            logger.debug("[voice] No speech")
            result = self._last_result
            if result is None or self._status.text != result.message:
                self._set_status("No speech detected")
            return

        logger.info("[voice] Recognition error: %s", kind.value)
        if kind.fatal:
            self._fail(session, "Access denied")
        elif kind is EngineErrorKind.ABORTED:
            if not self._stop_requested.is_set():
                self._set_status("Recognition aborted - restarting")
        elif kind is EngineErrorKind.NETWORK:
            self._set_status("Network error - retrying...", ERROR)
            self._restart(session, delay=self.settings.network_retry_delay)
        else:
            self._set_status("Recognition error", ERROR)

    def _handle_delayed_restart(self, session_id: int) -> None:
        session = self._current(session_id)
        if session is None:
            return
        session.restart_timer = None
        if self._state not in (S.LISTENING, S.SPEAKING) or self._stop_requested.is_set():
            return
        self._restart(session)

    # ---- restarts ----
    def _restart(self, session: VoiceSession, delay: Optional[float] = None) -> None:
        if session.restart_timer is not None:
            return
        if delay:
            session.restart_timer = self.scheduler.call_later(
                delay, lambda sid=session.id: self._post(self._handle_delayed_restart, sid)
            )
            return
        try:
            self.engine.start(session.handle)
        except Exception as e:
            session.restart_failures += 1
            logger.warning("[voice] Auto-restart failed (%d/%d): %s",
                           session.restart_failures, self.settings.restart_attempts, e)
            if session.restart_failures >= self.settings.restart_attempts:
                self._fail(session, "Auto-restart failed")
            else:
                self._restart(session, delay=self.settings.retry_delay)
            return
        session.restart_failures = 0

    # ---- resources ----
    def _start_heartbeat(self, session: VoiceSession) -> None:
        self._cancel_heartbeat(session)
        if self.settings.heartbeat_interval > 0:
            session.heartbeat = self.scheduler.call_every(
                self.settings.heartbeat_interval,
                lambda sid=session.id: self._post(self._handle_heartbeat, sid),
            )

    def _cancel_heartbeat(self, session: VoiceSession) -> None:
        timer, session.heartbeat = session.heartbeat, None
        if timer is not None:
            timer.cancel()

    def _unmute(self, session: VoiceSession) -> None:
        if session.muted and session.microphone is not None:
            session.microphone.enabled = True
        session.muted = False

    def _release(self, session: VoiceSession) -> None:
        self._cancel_heartbeat(session)
        timer, session.restart_timer = session.restart_timer, None
        if timer is not None:
            timer.cancel()
        self._unmute(session)

        mic, session.microphone = session.microphone, None
        if mic is not None:
            try:
                mic.close()
            except Exception as e:
                logger.warning("[voice] Closing microphone failed: %s", e)

        handle, session.handle = session.handle, None
        if handle is not None:
            try:
                self.engine.release(handle)
            except Exception as e:
                logger.warning("[voice] Releasing recognizer failed: %s", e)
