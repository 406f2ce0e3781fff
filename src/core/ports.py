"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for keyword storage, delivery, persistence
and diagnostics so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Protocol

from core.models import DetectionRecord, Match, MessageContext, Reminder


class KeywordRegistryPort(Protocol):
    """Keyword and subscription data supplied to the detector."""

    def global_keywords(self) -> Iterable[str]:
        ...

    def personal_keywords(self, user_id: str) -> Iterable[str]:
        ...

    def subscribers(self, group: str) -> Iterable[str]:
        ...

    def authorized_users(self) -> Iterable[str]:
        ...


class ReminderSinkPort(Protocol):
    """Receives every escalation fired by the scheduler."""

    async def reminder_due(self, reminder: Reminder) -> None:
        ...


class NotifierPort(ReminderSinkPort, Protocol):
    """Delivery operations required by the core pipeline."""

    async def send_alert(self, user_id: str, context: MessageContext, match: Match, snippet: str) -> None:
        ...


class SnapshotPort(Protocol):
    """Write-only diagnostic dump of the scheduler state."""

    def write(self, snapshot: Mapping[str, Mapping[str, Any]]) -> None:
        ...


class StoragePort(Protocol):
    """Storage operations required by the core pipeline."""

    def get_last_id(self, source_key: str) -> Optional[int]:
        ...

    def set_last_id(self, source_key: str, last_message_id: int) -> None:
        ...

    def save_detection(self, context: MessageContext, detection: DetectionRecord) -> None:
        ...
