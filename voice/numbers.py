"""
Spoken number handling for order navigation (0-1000).

parse_spoken_number() understands what the constrained recognizer can emit:
digits, single words, compound tens ("thirty one") and hundreds with an
optional remainder ("five hundred and sixty seven"). number_to_words() is
its inverse and is only used to build the recognizer grammar.
"""
import re
from typing import Dict, List, Optional

MAX_NUMBER = 1000

_ONES: List[str] = ["", "one", "two", "three", "four", "five", "six", "seven", "eight", "nine"]
_TEENS: List[str] = [
    "ten", "eleven", "twelve", "thirteen", "fourteen",
    "fifteen", "sixteen", "seventeen", "eighteen", "nineteen",
]
_TENS: List[str] = ["", "", "twenty", "thirty", "forty", "fifty", "sixty", "seventy", "eighty", "ninety"]

# Number lexicon: zero..nineteen, the tens, and the two multipliers
NUMBER_WORDS: Dict[str, int] = {"zero": 0}
NUMBER_WORDS.update({w: i for i, w in enumerate(_ONES) if w})
NUMBER_WORDS.update({w: 10 + i for i, w in enumerate(_TEENS)})
NUMBER_WORDS.update({w: 10 * i for i, w in enumerate(_TENS) if w})
NUMBER_WORDS["hundred"] = 100
NUMBER_WORDS["thousand"] = 1000

# Recognizers often hear "two"/"four" as these
HOMOPHONES: Dict[str, int] = {"to": 2, "for": 4}

_DIGITS_RE = re.compile(r"\d+")
_HUNDRED_WORD = r"\b(one|two|three|four|five|six|seven|eight|nine)"
_HUNDRED_WITH_REST_RE = re.compile(_HUNDRED_WORD + r"\s*hundred\s*(?:and\s*)?(.+)")
_HUNDRED_ONLY_RE = re.compile(_HUNDRED_WORD + r"\s*hundred\s*$")
_COMPOUND_RE = re.compile(
    r"\b(twenty|thirty|forty|fifty|sixty|seventy|eighty|ninety)\s+"
    r"(one|two|three|four|five|six|seven|eight|nine)\b"
)
_NON_WORD_RE = re.compile(r"[^\w]")

# Leading command words stripped before looking for an order number
_TRIGGERS_RE = re.compile(
    r"^(?:(?:open|show|select|go\s+to|goto|go|order|orders|number|item|page)\s+)+"
)


def parse_spoken_number(text: Optional[str]) -> Optional[int]:
    """Parse a number in [0, 1000] out of a transcript fragment, or None."""
    if not text:
        return None
    clean = " ".join(text.lower().split())
    if not clean:
        return None

    m = _DIGITS_RE.search(clean)
    if m:
        n = int(m.group(0))
        return n if n <= MAX_NUMBER else None

    if "thousand" in clean:
        return MAX_NUMBER

    m = _HUNDRED_WITH_REST_RE.search(clean)
    if m:
        rest = parse_spoken_number(m.group(2))
        value = NUMBER_WORDS[m.group(1)] * 100 + (rest or 0)
        return value if value <= MAX_NUMBER else None

    m = _HUNDRED_ONLY_RE.search(clean)
    if m:
        return NUMBER_WORDS[m.group(1)] * 100

    m = _COMPOUND_RE.search(clean)
    if m:
        return NUMBER_WORDS[m.group(1)] + NUMBER_WORDS[m.group(2)]

    words = [_NON_WORD_RE.sub("", w) for w in clean.split()]
    for word in words:
        if word in NUMBER_WORDS:
            return NUMBER_WORDS[word]
    # homophones only when no real number word was heard ("go to twenty")
    for word in words:
        if word in HOMOPHONES:
            return HOMOPHONES[word]
    return None


def number_to_words(n: int) -> str:
    """Spell out 0..1000 the way the grammar lists it ("five hundred sixty seven")."""
    if not 0 <= n <= MAX_NUMBER:
        raise ValueError(f"number out of range 0-{MAX_NUMBER}: {n}")
    if n == 0:
        return "zero"
    if n == MAX_NUMBER:
        return "one thousand"

    parts: List[str] = []
    hundreds, rest = divmod(n, 100)
    if hundreds:
        parts += [_ONES[hundreds], "hundred"]
    if 10 <= rest < 20:
        parts.append(_TEENS[rest - 10])
    else:
        tens, ones = divmod(rest, 10)
        if tens:
            parts.append(_TENS[tens])
        if ones:
            parts.append(_ONES[ones])
    return " ".join(parts)


def extract_order_number(text: str) -> Optional[int]:
    """
    Pull the spoken order number out of an "open ..." style phrase.
    "open order five" -> 5, "go to 12" -> 12, "show banana" -> None.
    """
    clean = " ".join(text.lower().split())
    remainder = _TRIGGERS_RE.sub("", clean + " ").strip()
    return parse_spoken_number(remainder)
