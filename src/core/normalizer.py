"""Text normalization (core domain).

Both message text and keywords go through the same pipeline, so anything the
pipeline discards can never take part in a comparison.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Mapping, Optional

from core.config import MatcherConfig

_EMOJI_RE = re.compile(
    "["
    "\U0001F600-\U0001F64F"
    "\U0001F300-\U0001F5FF"
    "\U0001F680-\U0001F6FF"
    "\U0001F1E0-\U0001F1FF"
    "\U0001F900-\U0001F9FF"
    "\U0001FA70-\U0001FAFF"
    "\u2600-\u26FF"
    "\u2700-\u27BF"
    "\uFE0F\u200D"
    "]"
)

_SEPARATOR_RE = re.compile(r"[-_+]")

# Latin letters and digits plus the Hebrew, Cyrillic and Arabic blocks.
_DISALLOWED_RE = re.compile(r"[^a-z0-9\s\u0590-\u05FF\u0400-\u04FF\u0600-\u06FF]")

_WHITESPACE_RE = re.compile(r"\s+")

# 1, 2, 3, 6 and 9 are left alone so codes like 911 or 112 survive.
CONFUSABLES: Mapping[str, str] = {
    "@": "a",
    "4": "a",
    "0": "o",
    "5": "s",
    "7": "t",
    "8": "b",
    "$": "s",
    "#": "h",
}

ABBREVIATIONS: Mapping[str, str] = {
    "bday": "birthday",
    "bd": "birthday",
    "msg": "message",
    "msgs": "messages",
    "mtg": "meeting",
    "mtgs": "meetings",
    "meet": "meeting",
    "evt": "event",
    "evts": "events",
    "hlp": "help",
    "supp": "support",
    "urg": "urgent",
    "asap": "as soon as possible",
    "stat": "immediately",
    "lst": "list",
    "chklst": "checklist",
    "emrg": "emergency",
    "emrgncy": "emergency",
    "911": "emergency",
    "imp": "important",
    "impnt": "important",
    "ddl": "deadline",
    "due": "deadline",
    "pty": "party",
    "celeb": "celebration",
    "snax": "snacks",
    "app": "appetizer",
    "apps": "appetizers",
    "tmrw": "tomorrow",
    "tmw": "tomorrow",
    "wknd": "weekend",
    "wk": "week",
    "hr": "hour",
    "min": "minute",
    "sec": "second",
    "loc": "location",
    "addr": "address",
    "dir": "directions",
    "lol": "laugh out loud",
    "omg": "oh my god",
    "btw": "by the way",
    "fyi": "for your information",
    "tbh": "to be honest",
    "imo": "in my opinion",
    "imho": "in my humble opinion",
    "idk": "i do not know",
    "idc": "i do not care",
    "irl": "in real life",
    "f2f": "face to face",
}

_CONFUSABLE_TABLE = str.maketrans(dict(CONFUSABLES))


def strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


class Normalizer:
    """Canonicalize text before tokenization and comparison.

    The result is idempotent: feeding the output back in returns it unchanged.
    That holds because every expansion in the abbreviation table is made of
    words that are not themselves abbreviation keys.
    """

    def __init__(
        self,
        config: Optional[MatcherConfig] = None,
        abbreviations: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._config = config or MatcherConfig()
        self._abbreviations = dict(ABBREVIATIONS if abbreviations is None else abbreviations)

    @property
    def abbreviations(self) -> Mapping[str, str]:
        return self._abbreviations

    def normalize(self, text: str) -> str:
        if not text or not isinstance(text, str):
            return ""

        config = self._config
        normalized = text
        if config.remove_emojis:
            normalized = _EMOJI_RE.sub("", normalized)
        if config.normalize_diacritics:
            normalized = strip_diacritics(normalized)
        normalized = normalized.lower()
        # Separators become spaces first so "birthday-party" keeps two words.
        normalized = _SEPARATOR_RE.sub(" ", normalized)
        if config.handle_leetspeak:
            normalized = normalized.translate(_CONFUSABLE_TABLE)
        normalized = _DISALLOWED_RE.sub("", normalized)
        if config.expand_abbreviations and self._abbreviations:
            words = normalized.split()
            normalized = " ".join(self._abbreviations.get(word, word) for word in words)
        return _WHITESPACE_RE.sub(" ", normalized).strip()
