from __future__ import annotations

import hashlib
import re

_DIGIT_WORDS = (
    "zero",
    "one",
    "two",
    "three",
    "four",
    "five",
    "six",
    "seven",
    "eight",
    "nine",
)

_NON_LETTERS = re.compile(r"[^a-z]+", re.IGNORECASE)


def compute_hash(text: str) -> str:
    """Opaque change-detection token for a file's contents."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def sanitize_name_for_id(name: str) -> str:
    """Turn a file or folder name into a Datasworn id key.

    >>> sanitize_name_for_id("Ask the Oracle 2")
    'ask_the_oracle_two'
    """
    spelled = re.sub(r"[0-9]", lambda m: _DIGIT_WORDS[int(m.group())], name)
    return _NON_LETTERS.sub("_", spelled).strip("_").lower()
