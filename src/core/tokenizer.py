"""Tokenization of normalized text (core domain)."""

from __future__ import annotations

from typing import AbstractSet, List

# Latin-script function words only; other scripts pass through untouched.
STOP_WORDS: frozenset[str] = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
        "is", "are", "was", "were", "be", "been", "have", "has", "had", "do", "does", "did",
        "will", "would", "could", "should", "may", "might", "can", "this", "that", "these", "those",
    }
)


def tokenize(normalized: str, stop_words: AbstractSet[str] = STOP_WORDS) -> List[str]:
    """Split normalized text on whitespace and drop stop words."""

    return [token for token in normalized.split() if token and token not in stop_words]
