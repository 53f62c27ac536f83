"""Structural interfaces for the speech capabilities the session controller consumes."""
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol


class EngineErrorKind(Enum):
    PERMISSION_DENIED = "permission-denied"
    NO_SPEECH = "no-speech"
    ABORTED = "aborted"
    NETWORK = "network"
    UNKNOWN = "unknown"

    @property
    def fatal(self) -> bool:
        return self is EngineErrorKind.PERMISSION_DENIED


class EngineInitError(RuntimeError):
    """The recognition engine (model, recognizer) could not be set up."""


class PermissionDeniedError(RuntimeError):
    """Microphone access was refused or the input device is unavailable."""


class RecognitionListener(Protocol):
    """Events an engine reports back. May be called from any thread."""

    def on_final_transcript(self, text: str) -> None: ...

    def on_partial_transcript(self, text: str) -> None: ...

    def on_error(self, kind: EngineErrorKind) -> None: ...

    def on_end(self) -> None: ...


class RecognitionEngine(Protocol):
    """A constrained-vocabulary recognizer fed with raw int16 mono audio."""

    def initialize(self, vocabulary: List[str], sample_rate: int, listener: RecognitionListener) -> Any: ...

    def start(self, handle: Any) -> None: ...

    def stop(self, handle: Any) -> None: ...

    def feed(self, handle: Any, data: bytes) -> None: ...

    def release(self, handle: Any) -> None: ...

    def engine_info(self) -> Dict[str, Any]: ...


class Microphone(Protocol):
    """Audio input whose callback runs on the audio thread."""

    sample_rate: int
    enabled: bool

    def open(self, callback: Callable[[bytes], None]) -> None: ...

    def close(self) -> None: ...


class SpeechSynthesizer(Protocol):
    """Text-to-speech. on_end must fire after playback and after a failed playback."""

    def speak(
        self,
        text: str,
        on_start: Optional[Callable[[], None]] = None,
        on_end: Optional[Callable[[], None]] = None,
    ) -> None: ...

    def close(self) -> None: ...
