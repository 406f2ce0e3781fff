"""Word-level similarity rules used by the match engine (core domain).

Every rule here compares one normalized token against one normalized keyword
word. Phrase handling lives in the matcher.
"""

from __future__ import annotations

import re
from typing import Optional

from core.config import FuzzyThresholds, MatcherConfig

# Extra characters allowed around an exact keyword inside a longer token.
SUBSTRING_MIN_MARGIN = 2
SUBSTRING_MAX_MARGIN = 3


def levenshtein(source: str, target: str) -> int:
    """Classic insert/delete/substitute edit distance."""

    if source == target:
        return 0
    if not source:
        return len(target)
    if not target:
        return len(source)

    previous = list(range(len(target) + 1))
    for i, source_char in enumerate(source, start=1):
        current = [i]
        for j, target_char in enumerate(target, start=1):
            cost = 0 if source_char == target_char else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def damerau_levenshtein(source: str, target: str) -> int:
    """Edit distance that also counts one adjacent transposition as a single step.

    This is the optimal string alignment variant: a substring is never edited
    twice, which is all a typo checker needs.
    """

    if source == target:
        return 0
    if not source:
        return len(target)
    if not target:
        return len(source)

    before_previous: list[int] = []
    previous = list(range(len(target) + 1))
    for i in range(1, len(source) + 1):
        current = [i] + [0] * len(target)
        for j in range(1, len(target) + 1):
            cost = 0 if source[i - 1] == target[j - 1] else 1
            current[j] = min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost)
            if (
                i > 1
                and j > 1
                and source[i - 1] == target[j - 2]
                and source[i - 2] == target[j - 1]
            ):
                current[j] = min(current[j], before_previous[j - 2] + 1)
        before_previous, previous = previous, current
    return previous[-1]


def edit_distance(source: str, target: str) -> int:
    return min(levenshtein(source, target), damerau_levenshtein(source, target))


def is_single_transposition(word: str, keyword: str) -> bool:
    """True when swapping exactly one adjacent pair turns word into keyword."""

    if len(word) != len(keyword) or word == keyword:
        return False
    diffs = [i for i, (a, b) in enumerate(zip(word, keyword)) if a != b]
    if len(diffs) != 2 or diffs[1] != diffs[0] + 1:
        return False
    i = diffs[0]
    return word[i] == keyword[i + 1] and word[i + 1] == keyword[i]


def reduce_plural(word: str) -> str:
    """Heuristic English singular form; words of three letters or less are kept."""

    if len(word) <= 3:
        return word
    if word.endswith("ies") and len(word) > 4:
        return word[:-3] + "y"
    if word.endswith("es"):
        base = word[:-2]
        if base.endswith(("s", "sh", "ch", "x", "z")):
            return base
    if word.endswith("s"):
        return word[:-1]
    return word


def numeric_suffix_pattern(keyword: str) -> re.Pattern:
    """Pattern for `keyword` directly followed by digits, e.g. urgent123."""

    return re.compile(rf"^{re.escape(keyword)}\d")


def within_edit_threshold(word: str, keyword: str, thresholds: FuzzyThresholds) -> bool:
    """Length-aware edit distance check between one token and one keyword."""

    threshold = thresholds.for_length(len(keyword))
    if abs(len(word) - len(keyword)) > threshold:
        return False

    distance = edit_distance(word, keyword)
    if distance == 0:
        return True
    if distance > threshold:
        return False
    if distance > min(len(word), len(keyword)) // 2:
        return False
    if len(keyword) <= 4 and distance > 1:
        return is_single_transposition(word, keyword)
    return True


def contains_with_margin(word: str, keyword: str) -> bool:
    """Keyword found verbatim inside a slightly longer token (prefix or suffix)."""

    margin = len(word) - len(keyword)
    if margin < SUBSTRING_MIN_MARGIN or margin > SUBSTRING_MAX_MARGIN:
        return False
    return keyword in word


def is_similar(
    word: str,
    keyword: str,
    config: MatcherConfig,
    *,
    reduced_keyword: Optional[str] = None,
    suffix_pattern: Optional[re.Pattern] = None,
) -> bool:
    """Return True when `word` should count as an occurrence of `keyword`.

    Both arguments must already be normalized single words. Callers that match
    the same keyword many times pass its precomputed reduced form and suffix
    pattern.
    """

    if word == keyword:
        return True
    if not config.fuzzy_matching or not word or not keyword:
        return False

    denied = config.denylist.get(keyword, frozenset())
    if word in denied:
        return False

    if suffix_pattern is None:
        suffix_pattern = numeric_suffix_pattern(keyword)
    if suffix_pattern.match(word):
        return True

    word_form, keyword_form = word, keyword
    if config.handle_plurals:
        word_form = reduce_plural(word)
        keyword_form = reduced_keyword if reduced_keyword is not None else reduce_plural(keyword)
        if word_form == keyword_form:
            return True
        if word_form in denied:
            return False

    return within_edit_threshold(word_form, keyword_form, config.thresholds) or contains_with_margin(
        word_form, keyword_form
    )
