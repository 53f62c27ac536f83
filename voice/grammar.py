"""
Closed vocabulary for the constrained recognizer.

Vosk only returns phrases from this list (plus "[unk]"), which keeps
"open order forty two" from turning into free dictation.
"""
import json
from typing import List

from voice.numbers import MAX_NUMBER, number_to_words

# Navigation keywords in addition to the spelled-out numbers
COMMAND_KEYWORDS: List[str] = [
    "next", "previous", "prev", "forward", "backward", "back",
    "go to", "goto", "select", "open", "show",
    "order", "orders", "first", "last", "page", "item",
]

UNKNOWN_TOKEN = "[unk]"


def build_vocabulary() -> List[str]:
    """Every number 0..1000 spelled out, then the command keywords, no duplicates."""
    vocab: List[str] = []
    seen = set()
    for phrase in [number_to_words(i) for i in range(MAX_NUMBER + 1)] + COMMAND_KEYWORDS:
        if phrase not in seen:
            seen.add(phrase)
            vocab.append(phrase)
    return vocab


def grammar_json(vocabulary: List[str]) -> str:
    """Grammar string for KaldiRecognizer; "[unk]" lets off-grammar speech through as unknown."""
    return json.dumps(list(vocabulary) + [UNKNOWN_TOKEN])
