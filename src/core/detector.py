"""Scope resolution between the keyword registry and the match engine."""

from __future__ import annotations

import logging
from typing import List, Optional

from core.matcher import MatchEngine
from core.models import Keyword, KeywordScope, Match
from core.ports import KeywordRegistryPort

LOGGER = logging.getLogger(__name__)


class KeywordDetector:
    """Detect global keywords everywhere and personal keywords per subscription.

    The registry is read on every call, so keyword edits made through the bot
    commands or the config panel apply to the next message without a restart.
    """

    def __init__(self, engine: MatchEngine, registry: KeywordRegistryPort) -> None:
        self._engine = engine
        self._registry = registry

    @property
    def engine(self) -> MatchEngine:
        return self._engine

    def active_keywords(self, group: Optional[str] = None) -> List[Keyword]:
        keywords = self._engine.compile_keywords(self._registry.global_keywords(), KeywordScope.GLOBAL)
        if group is None:
            return keywords
        for user_id in self._registry.subscribers(group):
            keywords.extend(
                self._engine.compile_keywords(
                    self._registry.personal_keywords(user_id),
                    KeywordScope.PERSONAL,
                    user_id,
                )
            )
        return keywords

    def detect_keywords(self, text: str, group: Optional[str] = None) -> List[Match]:
        if not isinstance(text, str) or not text.strip():
            return []
        matches = self._engine.match(text, self.active_keywords(group))
        if matches:
            LOGGER.debug(
                "Detected %s in group %s",
                ", ".join(f"{m.keyword} ({m.match_type.value})" for m in matches),
                group,
            )
        return matches
