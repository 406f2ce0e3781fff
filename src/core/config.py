"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping, Optional, Tuple

DEFAULT_INTERVAL_MINUTES = (1, 2, 5, 15, 60, 90)

# Known short-word collisions that edit distance alone would accept.
DEFAULT_DENYLIST: dict[str, frozenset[str]] = {
    "cake": frozenset({"make", "take", "wake"}),
    "help": frozenset({"held", "hell", "heel"}),
    "list": frozenset({"last", "lost", "lift"}),
    "urgent": frozenset({"argent", "regent"}),
}


@dataclass(frozen=True)
class FuzzyThresholds:
    """Maximum edit distance by keyword length bucket."""

    short: int = 1
    medium: int = 2
    long: int = 3

    def for_length(self, length: int) -> int:
        if length < 5:
            return self.short
        if length <= 8:
            return self.medium
        return self.long


@dataclass(frozen=True)
class MatcherConfig:
    """Switches for the normalization pipeline and fuzzy matching."""

    fuzzy_matching: bool = True
    thresholds: FuzzyThresholds = field(default_factory=FuzzyThresholds)
    normalize_diacritics: bool = True
    remove_emojis: bool = True
    handle_leetspeak: bool = True
    expand_abbreviations: bool = True
    remove_stop_words: bool = True
    handle_plurals: bool = True
    multi_word_keywords: bool = True
    denylist: Mapping[str, frozenset[str]] = field(default_factory=lambda: dict(DEFAULT_DENYLIST))


@dataclass(frozen=True)
class ReminderConfig:
    """Escalation schedule and bookkeeping windows for the scheduler."""

    intervals: Tuple[timedelta, ...] = tuple(timedelta(minutes=m) for m in DEFAULT_INTERVAL_MINUTES)
    race_window: timedelta = timedelta(seconds=2)
    purge_interval: timedelta = timedelta(days=7)
    history_retention: timedelta = timedelta(days=7)


@dataclass(frozen=True)
class NotificationConfig:
    """Notification formatting settings consumed by notifier adapters."""

    snippet_chars: int
    retry_attempts: int = 3
    retry_delay_seconds: float = 1.0


def build_matcher_config(raw: Optional[Mapping[str, Any]]) -> MatcherConfig:
    """Build a MatcherConfig from the `matching` section of config.json.

    Missing keys fall back to the defaults; the denylist from the file is
    merged over the built-in one so a partial table does not drop entries.
    """

    raw = raw or {}
    thresholds_raw = raw.get("fuzzy_threshold", {}) or {}
    thresholds = FuzzyThresholds(
        short=int(thresholds_raw.get("short", 1)),
        medium=int(thresholds_raw.get("medium", 2)),
        long=int(thresholds_raw.get("long", 3)),
    )
    denylist = dict(DEFAULT_DENYLIST)
    for keyword, words in (raw.get("denylist", {}) or {}).items():
        denylist[keyword.lower()] = frozenset(word.lower() for word in words)

    return MatcherConfig(
        fuzzy_matching=bool(raw.get("fuzzy_matching", True)),
        thresholds=thresholds,
        normalize_diacritics=bool(raw.get("normalize_diacritics", True)),
        remove_emojis=bool(raw.get("remove_emojis", True)),
        handle_leetspeak=bool(raw.get("handle_leetspeak", True)),
        expand_abbreviations=bool(raw.get("expand_abbreviations", True)),
        remove_stop_words=bool(raw.get("remove_stop_words", True)),
        handle_plurals=bool(raw.get("handle_plurals", True)),
        multi_word_keywords=bool(raw.get("multi_word_keywords", True)),
        denylist=denylist,
    )


def build_reminder_config(raw: Optional[Mapping[str, Any]]) -> ReminderConfig:
    """Build a ReminderConfig from the `reminders` section of config.json."""

    raw = raw or {}
    minutes = raw.get("intervals_minutes") or DEFAULT_INTERVAL_MINUTES
    intervals = tuple(timedelta(minutes=float(value)) for value in minutes)
    if any(interval <= timedelta(0) for interval in intervals):
        raise ValueError("reminders.intervals_minutes must be positive")

    return ReminderConfig(
        intervals=intervals,
        race_window=timedelta(seconds=float(raw.get("race_window_seconds", 2))),
        purge_interval=timedelta(hours=float(raw.get("purge_interval_hours", 24 * 7))),
        history_retention=timedelta(days=float(raw.get("history_retention_days", 7))),
    )
