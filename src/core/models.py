"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Tuple


class KeywordScope(str, Enum):
    GLOBAL = "global"
    PERSONAL = "personal"


class MatchType(str, Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"
    PHRASE = "phrase"
    ABBREVIATION = "abbreviation"


class ReminderStatus(str, Enum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Attachment:
    """Media attached to a message; only the metadata is searched."""

    kind: str
    filename: Optional[str] = None
    size: Optional[int] = None


@dataclass(frozen=True)
class MessageContext:
    """Minimal message context used by the core processing pipeline."""

    source_key: str
    chat_id: int
    message_id: int
    date: datetime
    text: str
    sender: Optional[str] = None
    group: Optional[str] = None
    permalink: Optional[str] = None
    attachment: Optional[Attachment] = None

    @property
    def searchable_text(self) -> str:
        """Message text plus the attachment file name, one per line."""

        if self.attachment is None or not self.attachment.filename:
            return self.text
        if not self.text:
            return self.attachment.filename
        return f"{self.text}\n{self.attachment.filename}"


@dataclass(frozen=True)
class Keyword:
    """A configured keyword with its precomputed normalized form."""

    pattern: str
    normalized: str
    tokens: Tuple[str, ...]
    scope: KeywordScope = KeywordScope.GLOBAL
    user_id: Optional[str] = None

    @property
    def is_phrase(self) -> bool:
        return " " in self.normalized


@dataclass(frozen=True)
class Match:
    """A single keyword hit inside one message."""

    keyword: str
    match_type: MatchType
    matched_token: str
    scope: KeywordScope = KeywordScope.GLOBAL
    user_id: Optional[str] = None


@dataclass(frozen=True)
class DetectionRecord:
    """Persisted representation of a single keyword detection."""

    keyword: str
    match_type: str
    matched_token: str
    scope: str
    user_id: Optional[str]
    text_snippet: str


@dataclass(frozen=True)
class ReminderPayload:
    """Everything a notifier needs to re-deliver the original alert."""

    message: str
    sender: Optional[str] = None
    group: Optional[str] = None
    message_id: Optional[int] = None
    channel_id: Optional[str] = None
    attachment: Optional[Attachment] = None
    permalink: Optional[str] = None


@dataclass
class Reminder:
    """Mutable escalation record owned by the ReminderStore."""

    id: str
    user_id: str
    keyword: str
    payload: ReminderPayload
    first_detected_at: datetime
    next_fire_at: datetime
    interval_schedule: Tuple[timedelta, ...]
    scope: KeywordScope = KeywordScope.GLOBAL
    status: ReminderStatus = ReminderStatus.ACTIVE
    fire_count: int = 0
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    acknowledged_at: Optional[datetime] = None

    @property
    def max_fires(self) -> int:
        # One extra fire past the last interval closes the record.
        return len(self.interval_schedule) + 1

    def next_interval(self) -> timedelta:
        index = min(self.fire_count, len(self.interval_schedule) - 1)
        return self.interval_schedule[index]


@dataclass(frozen=True)
class AcknowledgeResult:
    """Outcome of an acknowledgment, grouped by the state each record was in."""

    has_active: bool
    summary: str
    stopped: Tuple[str, ...] = field(default_factory=tuple)
    overridden: Tuple[str, ...] = field(default_factory=tuple)
    expired: Tuple[str, ...] = field(default_factory=tuple)
