"""Keyword compilation and matching logic (core domain)."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
import re
from typing import Iterable, List, Optional, Sequence, Tuple

from core.config import MatcherConfig
from core.models import Keyword, KeywordScope, Match, MatchType
from core.normalizer import Normalizer
from core.similarity import is_similar, numeric_suffix_pattern, reduce_plural
from core.tokenizer import STOP_WORDS, tokenize

# Compiled patterns kept per engine; the least recently used are dropped first.
COMPILED_CACHE_SIZE = 1024


@dataclass(frozen=True)
class _CompiledPattern:
    """Per-pattern data computed once and shared by every scope using it."""

    normalized: str
    tokens: Tuple[str, ...]
    words: Tuple[str, ...]
    reduced: str
    suffix_pattern: re.Pattern
    separator_pattern: Optional[re.Pattern]
    abbreviation_patterns: Tuple[Tuple[str, re.Pattern], ...]

    @property
    def is_phrase(self) -> bool:
        return len(self.words) > 1


@dataclass(frozen=True)
class _MessageView:
    raw: str
    lowered: str
    tokens: Tuple[str, ...]
    all_tokens: Tuple[str, ...]


class MatchEngine:
    """Compare message text against keywords with exact and fuzzy rules.

    Keyword matchers are built once per pattern and cached, so repeated calls
    only pay for normalizing the message.
    """

    def __init__(
        self,
        config: Optional[MatcherConfig] = None,
        normalizer: Optional[Normalizer] = None,
        cache_size: int = COMPILED_CACHE_SIZE,
    ) -> None:
        self._config = config or MatcherConfig()
        self._normalizer = normalizer or Normalizer(self._config)
        self._stop_words = STOP_WORDS if self._config.remove_stop_words else frozenset()
        self._cache_size = max(cache_size, 1)
        self._compiled: OrderedDict[str, _CompiledPattern] = OrderedDict()

    @property
    def normalizer(self) -> Normalizer:
        return self._normalizer

    def normalize(self, text: str) -> str:
        return self._normalizer.normalize(text)

    def tokenize(self, text: str) -> List[str]:
        return tokenize(self._normalizer.normalize(text), self._stop_words)

    def compile_keyword(
        self,
        pattern: str,
        scope: KeywordScope = KeywordScope.GLOBAL,
        user_id: Optional[str] = None,
    ) -> Keyword:
        compiled = self._compile(pattern)
        return Keyword(
            pattern=pattern,
            normalized=compiled.normalized,
            tokens=compiled.tokens,
            scope=scope,
            user_id=user_id,
        )

    def compile_keywords(
        self,
        patterns: Iterable[str],
        scope: KeywordScope = KeywordScope.GLOBAL,
        user_id: Optional[str] = None,
    ) -> List[Keyword]:
        keywords: List[Keyword] = []
        for pattern in patterns:
            if not isinstance(pattern, str) or not pattern.strip():
                continue
            keyword = self.compile_keyword(pattern, scope, user_id)
            if keyword.normalized:
                keywords.append(keyword)
        return keywords

    def match(self, text: str, keywords: Iterable[Keyword]) -> List[Match]:
        """Return at most one match per keyword, in keyword order."""

        if not isinstance(text, str) or not text.strip():
            return []

        normalized = self._normalizer.normalize(text)
        if not normalized:
            return []
        view = _MessageView(
            raw=text,
            lowered=text.lower(),
            tokens=tuple(tokenize(normalized, self._stop_words)),
            all_tokens=tuple(normalized.split()),
        )

        matches: List[Match] = []
        seen: set[Tuple[str, KeywordScope, Optional[str]]] = set()
        for keyword in keywords:
            identity = (keyword.pattern, keyword.scope, keyword.user_id)
            if identity in seen:
                continue
            compiled = self._compile(keyword.pattern)
            if not compiled.normalized:
                continue
            if compiled.is_phrase and self._config.multi_word_keywords:
                hit = self._match_phrase(compiled, view)
            else:
                hit = self._match_word(compiled, view)
            if hit is None:
                continue
            match_type, token = hit
            seen.add(identity)
            matches.append(
                Match(
                    keyword=keyword.pattern,
                    match_type=match_type,
                    matched_token=token,
                    scope=keyword.scope,
                    user_id=keyword.user_id,
                )
            )
        return matches

    def _compile(self, pattern: str) -> _CompiledPattern:
        cached = self._compiled.get(pattern)
        if cached is not None:
            self._compiled.move_to_end(pattern)
            return cached

        normalized = self._normalizer.normalize(pattern)
        words = tuple(normalized.split())
        tokens = tuple(tokenize(normalized, self._stop_words))

        separator_pattern = None
        abbreviation_patterns: Tuple[Tuple[str, re.Pattern], ...] = ()
        if len(words) > 1:
            joined = r"[\s\-_+]+".join(re.escape(word) for word in words)
            separator_pattern = re.compile(joined, re.IGNORECASE)
            abbreviation_patterns = tuple(
                (abbreviation, re.compile(rf"(?<![^\W_]){re.escape(abbreviation)}(?![^\W_])"))
                for abbreviation, expansion in self._normalizer.abbreviations.items()
                if expansion == normalized
            )

        compiled = _CompiledPattern(
            normalized=normalized,
            tokens=tokens,
            words=words,
            reduced=reduce_plural(normalized),
            suffix_pattern=numeric_suffix_pattern(normalized),
            separator_pattern=separator_pattern,
            abbreviation_patterns=abbreviation_patterns,
        )
        self._compiled[pattern] = compiled
        while len(self._compiled) > self._cache_size:
            self._compiled.popitem(last=False)
        return compiled

    def cached_patterns(self) -> List[str]:
        return list(self._compiled)

    def _match_word(self, compiled: _CompiledPattern, view: _MessageView) -> Optional[Tuple[MatchType, str]]:
        # Exact hits anywhere in the message win over an earlier fuzzy hit.
        # A keyword that is itself a stop word ("may", "will") is only found
        # among the unfiltered tokens; stop words never count as fuzzy hits.
        exact_pool = view.all_tokens if compiled.normalized in self._stop_words else view.tokens
        if compiled.normalized in exact_pool:
            return MatchType.EXACT, compiled.normalized
        if not self._config.fuzzy_matching:
            return None
        for token in view.tokens:
            if is_similar(
                token,
                compiled.normalized,
                self._config,
                reduced_keyword=compiled.reduced,
                suffix_pattern=compiled.suffix_pattern,
            ):
                return MatchType.FUZZY, token
        return None

    def _match_phrase(self, compiled: _CompiledPattern, view: _MessageView) -> Optional[Tuple[MatchType, str]]:
        for abbreviation, pattern in compiled.abbreviation_patterns:
            if pattern.search(view.lowered):
                return MatchType.ABBREVIATION, abbreviation

        # Phrases made mostly of stop words ("by the way") are compared in full.
        if len(compiled.tokens) >= 2:
            phrase, haystack = compiled.tokens, view.tokens
        else:
            phrase, haystack = compiled.words, view.all_tokens
        window = self._find_window(phrase, haystack)
        if window is not None:
            return MatchType.PHRASE, window

        if compiled.separator_pattern is not None:
            found = compiled.separator_pattern.search(view.raw)
            if found:
                return MatchType.PHRASE, found.group(0)
        return None

    def _find_window(self, phrase: Sequence[str], haystack: Sequence[str]) -> Optional[str]:
        size = len(phrase)
        for start in range(len(haystack) - size + 1):
            candidate = haystack[start : start + size]
            if all(self._word_equal(token, word) for token, word in zip(candidate, phrase)):
                return " ".join(candidate)
        return None

    def _word_equal(self, token: str, word: str) -> bool:
        if token == word:
            return True
        return is_similar(token, word, self._config)
