"""Literal blocklist filter run before the toxicity model."""

from __future__ import annotations

import re
from typing import Iterable, Optional


BLOCKED_WORDS: tuple[str, ...] = (
    "fuck", "shit", "ass", "bitch", "cunt", "dick", "cock", "pussy",
    "asshole", "bastard", "damn", "fag", "faggot", "nigger", "nigga",
    "retard", "slut", "whore", "twat",
)


class BlocklistFilter:
    """Whole-word, case-insensitive match: "ass" blocks "ass" but not "assistant" or "classic"."""

    def __init__(self, words: Iterable[str] = BLOCKED_WORDS) -> None:
        # Longest first so "asshole" is reported rather than a shorter overlapping entry
        ordered = sorted({w.lower() for w in words}, key=len, reverse=True)
        self._pattern = re.compile(r"\b(?:" + "|".join(re.escape(w) for w in ordered) + r")\b", re.IGNORECASE)

    def scan(self, text: str) -> Optional[str]:
        """Return the first blocked term found, lower-cased, or None."""
        if not text:
            return None
        found = self._pattern.search(text)
        return found.group(0).lower() if found else None


default_filter = BlocklistFilter()
