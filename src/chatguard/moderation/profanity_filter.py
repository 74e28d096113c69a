"""
Whole-word profanity masking.

Each denylisted term is matched case-insensitively and only as a whole word:
the characters on both sides of a match must not be word characters, so a
term embedded in a longer word ("class" for "ass") is left alone. Matches are
replaced by the same number of asterisks, so censoring never changes the
length of a message.
"""

from __future__ import annotations

import re
from typing import Iterable

from chatguard.util.constants import DEFAULT_DENYLIST

MASK_CHAR = "*"


def _build_pattern(terms: Iterable[str]) -> re.Pattern[str] | None:
    # Longest first so a phrase wins over a single word it starts with.
    unique = sorted({term.strip().lower() for term in terms if term.strip()}, key=lambda t: (-len(t), t))
    if not unique:
        return None
    alternation = "|".join(re.escape(term).replace(r"\ ", r"\s+") for term in unique)
    return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)", re.IGNORECASE)


class ProfanityFilter:
    """Pure text transform masking denylisted terms.

    Args:
        denylist: Terms to mask. Multi-word terms match across any run of
            whitespace. Defaults to the built-in list.
    """

    def __init__(self, denylist: Iterable[str] | None = None) -> None:
        self._terms: tuple[str, ...] = tuple(denylist) if denylist is not None else DEFAULT_DENYLIST
        self._pattern = _build_pattern(self._terms)

    @property
    def terms(self) -> tuple[str, ...]:
        return self._terms

    def censor(self, text: str) -> str:
        """Return ``text`` with every denylisted whole word replaced by asterisks."""
        if self._pattern is None or not text:
            return text
        return self._pattern.sub(lambda match: MASK_CHAR * len(match.group(0)), text)

    def contains_profanity(self, text: str) -> bool:
        return bool(self._pattern and text and self._pattern.search(text))
