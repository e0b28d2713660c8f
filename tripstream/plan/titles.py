"""
Title canonicalization.

Produces the dedup key for an activity title. Two items whose keys are
equal are treated as the same real-world activity ("Visit Balboa Park"
and "Balboa Park"). Keys are never shown to users.
"""

import re
from typing import Callable, Tuple

# Generic leading verbs, stripped once from the start of a title
GENERIC_PREFIXES: Tuple[str, ...] = (
    "visit",
    "explore",
    "walk",
    "tour",
    "see",
    "go to",
    "discover",
)

_PREFIX_PATTERN = re.compile(
    r"^\s*(?:" + "|".join(re.escape(p) for p in GENERIC_PREFIXES) + r")\s+"
)
_PUNCTUATION = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def _lower(text: str) -> str:
    return text.lower()


def _strip_generic_prefix(text: str) -> str:
    return _PREFIX_PATTERN.sub("", text, count=1)


def _replace_ampersand(text: str) -> str:
    return text.replace("&", "and")


def _strip_punctuation(text: str) -> str:
    return _PUNCTUATION.sub("", text)


def _collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


# Applied in order; each rule sees the previous rule's output
NORMALIZATION_RULES: Tuple[Callable[[str], str], ...] = (
    _lower,
    _strip_generic_prefix,
    _replace_ampersand,
    _strip_punctuation,
    _collapse_whitespace,
)


def dedup_key(title: str) -> str:
    """
    Compute the dedup key for an activity title.

    Args:
        title: Display title of the activity

    Returns:
        Normalized identity string
    """
    key = title
    for rule in NORMALIZATION_RULES:
        key = rule(key)
    return key
