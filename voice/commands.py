"""
Voice command intents for order navigation.

An intent is a list of regex surface forms plus an action. Intents are tried
in table order and the first one with a matching pattern wins, so the table
order is the priority order: "open first" must hit the first-order intent
before the generic "open <number>" catch-all gets a chance to parse it.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from re import Match, Pattern
from typing import Callable, List, Optional, Sequence, Tuple

from voice.numbers import extract_order_number

logger = logging.getLogger(__name__)

SUCCESS = "success"
ERROR = "error"
INFO = "info"

HELP_TEXT = "Say: next, previous, open [number], first, last, or help"


# ---- Errors raised by intent actions ----
class NavigationError(Exception):
    """An intent matched but its navigation could not be carried out."""


class NoOrdersAvailable(NavigationError):
    def __init__(self):
        super().__init__("No orders available")


class NumberUnclear(NavigationError):
    def __init__(self, text: str):
        self.text = text
        super().__init__(f'Could not understand number in: "{text}"')


class OrderIndexOutOfRange(NavigationError):
    def __init__(self, number: int, orders_length: int):
        self.number = number
        self.orders_length = orders_length
        super().__init__(f"Order {number} not found (1-{orders_length})")


# ---- Data ----
@dataclass(frozen=True)
class RecognitionResult:
    success: bool
    message: str
    kind: str  # "success" | "error" | "info"


@dataclass(frozen=True)
class CommandIntent:
    id: str
    patterns: Tuple[Pattern[str], ...]
    action: Callable[[Match[str]], str]

    def match(self, text: str) -> Optional[Match[str]]:
        for pattern in self.patterns:
            m = pattern.search(text)
            if m:
                return m
        return None


@dataclass(frozen=True)
class NavigationCallbacks:
    """Hooks owned by the order list UI."""
    on_next_order: Callable[[], None]
    on_prev_order: Callable[[], None]
    on_select_order: Callable[[int], None]


def _compile(*patterns: str) -> Tuple[Pattern[str], ...]:
    return tuple(re.compile(p) for p in patterns)


_VERB = r"(?:open|show|select|go\s+to|goto|go)"

FIRST_PATTERNS = _compile(
    r"^first\s+order$",
    rf"^{_VERB}\s+(?:the\s+)?first(?:\s+order)?$",
    r"^first$",
)
LAST_PATTERNS = _compile(
    r"^last\s+order$",
    rf"^{_VERB}\s+(?:the\s+)?last(?:\s+order)?$",
    r"^last$",
)
NEXT_PATTERNS = _compile(
    r"\bnext\s+orders?\b",
    r"\b(?:go|move|open)\s+(?:to\s+)?next\b",
    r"^(?:next|forward)(?:\s+(?:page|item))?$",
)
PREVIOUS_PATTERNS = _compile(
    r"\b(?:previous|prev)\s+orders?\b",
    r"\b(?:go|move|open)\s+(?:to\s+)?(?:back|previous|prev)\b",
    r"^(?:previous|prev|back|backward)(?:\s+(?:page|item))?$",
)
HELP_PATTERNS = _compile(
    r"^help$",
    r"\bwhat\s+can\s+i\s+say\b",
    r"^(?:voice\s+)?commands$",
)
OPEN_PATTERNS = _compile(
    r"^(?:open|show|select|go\s+to|goto|go|order|number|item)\s+(?!first\b|last\b)(.+)$",
)

_STRIP_RE = re.compile(r"[^\w\s]")


def normalize_transcript(transcript: str) -> str:
    return " ".join(_STRIP_RE.sub(" ", transcript.lower()).split())


def build_order_intents(callbacks: NavigationCallbacks, orders_length: int) -> List[CommandIntent]:
    """Intent table for one orders list, in priority order."""

    def first_order(_m: Match[str]) -> str:
        if orders_length <= 0:
            raise NoOrdersAvailable()
        callbacks.on_select_order(0)
        return "Opening first order"

    def last_order(_m: Match[str]) -> str:
        if orders_length <= 0:
            raise NoOrdersAvailable()
        callbacks.on_select_order(orders_length - 1)
        return "Opening last order"

    def next_order(_m: Match[str]) -> str:
        callbacks.on_next_order()
        return "Moving to next order"

    def previous_order(_m: Match[str]) -> str:
        callbacks.on_prev_order()
        return "Moving to previous order"

    def help_commands(_m: Match[str]) -> str:
        return HELP_TEXT

    def open_order(m: Match[str]) -> str:
        number = extract_order_number(m.string)
        if number is None:
            raise NumberUnclear(m.string)
        # spoken numbers are 1-based
        index = number - 1
        if not 0 <= index < orders_length:
            raise OrderIndexOutOfRange(number, orders_length)
        callbacks.on_select_order(index)
        return f"Opening order {number}"

    return [
        CommandIntent("first", FIRST_PATTERNS, first_order),
        CommandIntent("last", LAST_PATTERNS, last_order),
        CommandIntent("next", NEXT_PATTERNS, next_order),
        CommandIntent("previous", PREVIOUS_PATTERNS, previous_order),
        CommandIntent("help", HELP_PATTERNS, help_commands),
        CommandIntent("open", OPEN_PATTERNS, open_order),
    ]


def process_command(transcript: str, intents: Sequence[CommandIntent]) -> RecognitionResult:
    """Run the first matching intent; navigation failures become error results."""
    text = normalize_transcript(transcript)
    for intent in intents:
        m = intent.match(text)
        if not m:
            continue
        try:
            message = intent.action(m)
        except NavigationError as e:
            logger.info("[voice] %s: %s", intent.id, e)
            return RecognitionResult(success=False, message=str(e), kind=ERROR)
        logger.info("[voice] %s -> %s", intent.id, message)
        return RecognitionResult(success=True, message=message, kind=SUCCESS)

    return RecognitionResult(success=False, message=f'"{transcript}" - not recognized', kind=INFO)


class CommandDispatcher:
    """Binds the UI callbacks; the intent table is rebuilt per call from the current orders count."""

    def __init__(self, callbacks: NavigationCallbacks):
        self.callbacks = callbacks

    def intents(self, orders_length: int) -> List[CommandIntent]:
        return build_order_intents(self.callbacks, orders_length)

    def process(self, transcript: str, orders_length: int) -> RecognitionResult:
        return process_command(transcript, self.intents(orders_length))
