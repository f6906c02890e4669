"""
text_transforms.py - Built-in text transforms for the clippop action popup.

Every function takes the captured text and returns the transformed text.
No state; safe to call from anywhere.
"""

import re

_WHITESPACE = re.compile(r"\s+")


def upper(text: str) -> str:
    return text.upper()


def lower(text: str) -> str:
    return text.lower()


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace (newlines and tabs included) to one space and trim."""
    return _WHITESPACE.sub(" ", text).strip()


def title_case(text: str) -> str:
    """
    Capitalise the first character of every word and lowercase the rest.
    Words are split on runs of whitespace and re-joined with single spaces,
    so "hello   WORLD" becomes "Hello World".
    """
    words = normalize_whitespace(text).split(" ")
    return " ".join(_capitalise(w) for w in words if w)


def _capitalise(word: str) -> str:
    # one-to-one mappings only; "ŉ" -> "ʼN" would not survive a second pass
    first = word[:1].title()
    if len(first) != 1:
        first = word[:1]
    return first + word[1:].lower()


def preview(text: str, limit: int = 80) -> str:
    """One-line preview for log output."""
    out = text.replace("\n", "\\n").replace("\r", "\\r")
    if len(out) > limit:
        return out[:limit] + "..."
    return out
