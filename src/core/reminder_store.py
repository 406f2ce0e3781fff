"""In-memory reminder records and the single-active-per-user index."""

from __future__ import annotations

from datetime import datetime
import itertools
import logging
from typing import Any, Dict, Iterator, List, Optional

from core.models import Reminder, ReminderStatus

LOGGER = logging.getLogger(__name__)

_TRANSITIONS: Dict[ReminderStatus, frozenset[ReminderStatus]] = {
    ReminderStatus.ACTIVE: frozenset(
        {ReminderStatus.ACKNOWLEDGED, ReminderStatus.CANCELLED, ReminderStatus.COMPLETED}
    ),
    ReminderStatus.CANCELLED: frozenset({ReminderStatus.ACKNOWLEDGED}),
    ReminderStatus.COMPLETED: frozenset({ReminderStatus.ACKNOWLEDGED}),
    ReminderStatus.ACKNOWLEDGED: frozenset(),
}


class ReminderTransitionError(ValueError):
    """Raised when a reminder is moved to a status its current one does not allow."""


class ReminderStore:
    """Owns every reminder record; the scheduler is its only writer."""

    def __init__(self) -> None:
        self._records: Dict[str, Reminder] = {}
        self._active: Dict[str, str] = {}
        self._counter = itertools.count(1)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Reminder]:
        return iter(list(self._records.values()))

    def next_id(self, user_id: str) -> str:
        return f"reminder_{next(self._counter)}_{user_id}"

    def add(self, reminder: Reminder) -> None:
        if reminder.status is not ReminderStatus.ACTIVE:
            raise ValueError(f"New reminder {reminder.id} must be active")
        current = self._active.get(reminder.user_id)
        if current is not None and current != reminder.id:
            raise ValueError(f"User {reminder.user_id} already has active reminder {current}")
        self._records[reminder.id] = reminder
        self._active[reminder.user_id] = reminder.id

    def get(self, reminder_id: str) -> Optional[Reminder]:
        return self._records.get(reminder_id)

    def active_for(self, user_id: str) -> Optional[Reminder]:
        reminder_id = self._active.get(user_id)
        if reminder_id is None:
            return None
        reminder = self._records.get(reminder_id)
        if reminder is None or reminder.status is not ReminderStatus.ACTIVE:
            # Index drifted from the record; drop the stale pointer.
            self._active.pop(user_id, None)
            return None
        return reminder

    def records_for(self, user_id: str, since: Optional[datetime] = None) -> List[Reminder]:
        """All records of a user detected at or after `since`, oldest first."""

        return [
            reminder
            for reminder in self._records.values()
            if reminder.user_id == user_id and (since is None or reminder.first_detected_at >= since)
        ]

    def has_acknowledged(self, user_id: str, keyword: str) -> bool:
        return any(
            reminder.user_id == user_id
            and reminder.keyword == keyword
            and reminder.status is ReminderStatus.ACKNOWLEDGED
            for reminder in self._records.values()
        )

    def transition(self, reminder: Reminder, status: ReminderStatus, at: datetime) -> None:
        allowed = _TRANSITIONS[reminder.status]
        if status not in allowed:
            raise ReminderTransitionError(
                f"Reminder {reminder.id} cannot move from {reminder.status.value} to {status.value}"
            )
        reminder.status = status
        if status is ReminderStatus.CANCELLED:
            reminder.cancelled_at = at
        elif status is ReminderStatus.COMPLETED:
            reminder.completed_at = at
        elif status is ReminderStatus.ACKNOWLEDGED:
            reminder.acknowledged_at = at
        self.release_active(reminder)

    def release_active(self, reminder: Reminder) -> None:
        """Clear the user's active pointer if it still points at `reminder`."""

        if self._active.get(reminder.user_id) == reminder.id:
            del self._active[reminder.user_id]

    def remove(self, reminder_id: str) -> Optional[Reminder]:
        reminder = self._records.pop(reminder_id, None)
        if reminder is not None:
            self.release_active(reminder)
        return reminder

    def purge_acknowledged(self) -> int:
        stale = [rid for rid, r in self._records.items() if r.status is ReminderStatus.ACKNOWLEDGED]
        for reminder_id in stale:
            self.remove(reminder_id)
        if stale:
            LOGGER.info("Purged %s acknowledged reminder(s)", len(stale))
        return len(stale)

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """JSON-ready view of every record, keyed by reminder id."""

        return {
            reminder.id: {
                "reminderId": reminder.id,
                "userId": reminder.user_id,
                "keyword": reminder.keyword,
                "status": reminder.status.value,
                "firstDetectedAt": reminder.first_detected_at.isoformat(),
                "nextReminderAt": reminder.next_fire_at.isoformat(),
                "reminderCount": reminder.fire_count,
            }
            for reminder in self._records.values()
        }
