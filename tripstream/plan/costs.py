"""
Cost normalization.

Maps free-form price text coming from the generator (or from
suggestion metadata) to one of three canonical forms:

- "free"
- "$N"       (non-negative integer)
- "$A–$B"    (integer range, A < B, en dash)

Anything that cannot be normalized yields None, meaning the field is
omitted from the item.
"""

import re
from typing import List, Optional

EN_DASH = "–"

_FREE_WORD = re.compile(r"\bfree\b")
_ZERO_DOLLARS = re.compile(r"\$0\b")
_DASHES = re.compile("[–—]")
_TO_WORD = re.compile(r"\bto\b")
_NUMBER = re.compile(r"\d{1,6}")

# Symbolic price tiers ("$$", "$$$" ...) checked in order
_TIERS = (
    (re.compile(r"^\${2}$"), 10, 25),
    (re.compile(r"^\${3}$"), 25, 50),
    (re.compile(r"^\${4,}\+?$"), 50, 100),
)


def _format_range(low: int, high: int) -> str:
    if low == high:
        return f"${low}"
    return f"${low}{EN_DASH}${high}"


def normalize_cost(raw: Optional[str]) -> Optional[str]:
    """
    Normalize a price string to its canonical form.

    Args:
        raw: Free-form cost text (e.g. "$25 to $40", "Free entry", "$$")

    Returns:
        "free", "$N", "$A–$B", or None when the input is empty or unrecognized
    """
    if not raw:
        return None

    text = str(raw).strip().lower()
    if not text:
        return None

    if _FREE_WORD.search(text) or _ZERO_DOLLARS.search(text):
        return "free"

    # Separators collapse to a single hyphen before numbers are pulled out
    separated = _DASHES.sub("-", text)
    separated = _TO_WORD.sub("-", separated)
    separated = separated.replace("~", "-")
    separated = re.sub(r"\s+", " ", separated).strip()

    # Only the first two numbers bound the range
    numbers: List[int] = sorted(int(n) for n in _NUMBER.findall(separated)[:2])
    if len(numbers) == 1:
        return f"${numbers[0]}"
    if len(numbers) == 2:
        return _format_range(numbers[0], numbers[1])

    for pattern, low, high in _TIERS:
        if pattern.match(text):
            return _format_range(low, high)

    return None
