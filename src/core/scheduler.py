"""Reminder escalation scheduler.

A single asyncio task owns every reminder timer. Timers live in one min-heap of
``(fire_at, token, reminder_id)`` entries; the handle table maps each reminder
to its one live token, so cancelling a timer is just forgetting the token and
the stale heap entry is dropped when it surfaces.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import heapq
import itertools
import logging
from typing import Callable, Dict, List, Optional, Set, Tuple

from core.config import ReminderConfig
from core.models import (
    AcknowledgeResult,
    KeywordScope,
    Reminder,
    ReminderPayload,
    ReminderStatus,
)
from core.ports import ReminderSinkPort, SnapshotPort
from core.reminder_store import ReminderStore

LOGGER = logging.getLogger(__name__)

NO_PENDING_SUMMARY = "No active reminders to acknowledge"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _quoted(keywords: List[str]) -> str:
    return ", ".join(f'"{keyword}"' for keyword in keywords)


def build_acknowledge_summary(stopped: List[str], overridden: List[str], expired: List[str]) -> str:
    if not (stopped or overridden or expired):
        return NO_PENDING_SUMMARY
    lines = ["Reminder acknowledged and stopped.", ""]
    if stopped:
        lines.append(f"Active reminders stopped: {_quoted(stopped)}")
    if overridden:
        lines.append(f"Overridden reminders (cancelled early): {_quoted(overridden)}")
    if expired:
        lines.append(f"Expired reminders (schedule completed without /ok): {_quoted(expired)}")
    return "\n".join(lines)


class ReminderScheduler:
    """Escalate reminders per user until they are acknowledged.

    `create` and `acknowledge` never await, so within one event loop they run
    atomically with respect to timer callbacks. A callback that is awaiting the
    sink re-checks the record status before it reschedules.
    """

    def __init__(
        self,
        sink: ReminderSinkPort,
        config: Optional[ReminderConfig] = None,
        store: Optional[ReminderStore] = None,
        snapshot: Optional[SnapshotPort] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._sink = sink
        self._config = config or ReminderConfig()
        if not self._config.intervals:
            raise ValueError("Reminder schedule needs at least one interval")
        self._store = store or ReminderStore()
        self._snapshot = snapshot
        self._clock = clock

        self._heap: List[Tuple[datetime, int, str]] = []
        self._timers: Dict[str, int] = {}
        self._tokens = itertools.count()
        self._in_flight: Set[str] = set()
        self._last_ack_at: Dict[str, datetime] = {}

        self._wakeup = asyncio.Event()
        self._stopping = False

    @property
    def store(self) -> ReminderStore:
        return self._store

    def active_for(self, user_id: str) -> Optional[Reminder]:
        return self._store.active_for(user_id)

    def has_timer(self, reminder_id: str) -> bool:
        return reminder_id in self._timers

    def next_wakeup(self) -> Optional[datetime]:
        """Fire time of the earliest live timer, dropping stale heap entries."""

        while self._heap:
            fire_at, token, reminder_id = self._heap[0]
            if self._timers.get(reminder_id) == token:
                return fire_at
            heapq.heappop(self._heap)
        return None

    def create(
        self,
        user_id: str,
        keyword: str,
        payload: ReminderPayload,
        scope: KeywordScope = KeywordScope.GLOBAL,
    ) -> Optional[Reminder]:
        """Start escalating `keyword` for `user_id`, replacing any active reminder.

        Returns None when the user acknowledged within the race window or the
        (user, keyword) pair still has an acknowledged record.
        """

        now = self._clock()
        last_ack = self._last_ack_at.get(user_id)
        if last_ack is not None and now - last_ack < self._config.race_window:
            LOGGER.info("User %s acknowledged %.1fs ago; not starting a reminder for %r",
                        user_id, (now - last_ack).total_seconds(), keyword)
            return None
        if self._store.has_acknowledged(user_id, keyword):
            LOGGER.info("User %s already acknowledged %r; not starting a reminder", user_id, keyword)
            return None

        existing = self._store.active_for(user_id)
        if existing is not None:
            self._cancel_timer(existing.id)
            self._store.transition(existing, ReminderStatus.CANCELLED, now)
            LOGGER.info("Reminder %s (%r) overridden by %r", existing.id, existing.keyword, keyword)

        reminder = Reminder(
            id=self._store.next_id(user_id),
            user_id=user_id,
            keyword=keyword,
            payload=payload,
            first_detected_at=now,
            next_fire_at=now + self._config.intervals[0],
            interval_schedule=tuple(self._config.intervals),
            scope=scope,
        )
        self._store.add(reminder)
        self._schedule(reminder)
        self._write_snapshot()
        LOGGER.info("Reminder %s started for user %s (%r), next at %s",
                    reminder.id, user_id, keyword, reminder.next_fire_at.isoformat())
        return reminder

    def acknowledge(self, user_id: str) -> AcknowledgeResult:
        """Acknowledge everything pending for a user and forget those records."""

        now = self._clock()
        records = self._store.records_for(user_id, self._last_ack_at.get(user_id))
        active = self._store.active_for(user_id)
        if active is not None and active not in records:
            records.append(active)

        stopped: List[str] = []
        overridden: List[str] = []
        expired: List[str] = []
        buckets = {
            ReminderStatus.ACTIVE: stopped,
            ReminderStatus.CANCELLED: overridden,
            ReminderStatus.COMPLETED: expired,
        }
        acknowledged: List[Reminder] = []
        for reminder in records:
            bucket = buckets.get(reminder.status)
            if bucket is None:
                continue
            if reminder.keyword not in bucket:
                bucket.append(reminder.keyword)
            self._cancel_timer(reminder.id)
            self._store.transition(reminder, ReminderStatus.ACKNOWLEDGED, now)
            acknowledged.append(reminder)

        self._last_ack_at[user_id] = now
        summary = build_acknowledge_summary(stopped, overridden, expired)

        # Removing the records right away lets the same keyword trigger again.
        for reminder in acknowledged:
            self._store.remove(reminder.id)
        if acknowledged:
            self._write_snapshot()
            LOGGER.info("User %s acknowledged %s reminder(s)", user_id, len(acknowledged))
        else:
            LOGGER.info("User %s acknowledged with nothing pending", user_id)

        return AcknowledgeResult(
            has_active=bool(stopped),
            summary=summary,
            stopped=tuple(stopped),
            overridden=tuple(overridden),
            expired=tuple(expired),
        )

    async def fire_due(self) -> int:
        """Run every timer due at the current clock time; return how many ran."""

        now = self._clock()
        due: List[str] = []
        while self._heap and self._heap[0][0] <= now:
            _, token, reminder_id = heapq.heappop(self._heap)
            if self._timers.get(reminder_id) != token:
                continue
            del self._timers[reminder_id]
            due.append(reminder_id)
        if due:
            await asyncio.gather(*(self._fire(reminder_id) for reminder_id in due))
        return len(due)

    def purge(self) -> int:
        """Drop leftover acknowledged records and old acknowledgment stamps."""

        removed = self._store.purge_acknowledged()
        cutoff = self._clock() - self._config.history_retention
        for user_id, stamp in list(self._last_ack_at.items()):
            if stamp < cutoff:
                del self._last_ack_at[user_id]
        if removed:
            self._write_snapshot()
        return removed

    async def run(self) -> None:
        """Sleep until the earliest timer, fire it, repeat until `stop()`."""

        self._stopping = False
        purge_interval = self._config.purge_interval
        next_purge = self._clock() + purge_interval
        LOGGER.info("Reminder scheduler started")
        while not self._stopping:
            self._wakeup.clear()
            await self.fire_due()

            now = self._clock()
            if now >= next_purge:
                self.purge()
                next_purge = now + purge_interval

            wake_at = self.next_wakeup()
            deadline = next_purge if wake_at is None else min(wake_at, next_purge)
            timeout = max((deadline - now).total_seconds(), 0.0)
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                pass
        LOGGER.info("Reminder scheduler stopped")

    def stop(self) -> None:
        self._stopping = True
        self._wakeup.set()

    async def _fire(self, reminder_id: str) -> None:
        try:
            await self._fire_once(reminder_id)
        except Exception:
            LOGGER.exception("Reminder timer for %s failed", reminder_id)
            # Keep an active record on the schedule so it can still complete.
            reminder = self._store.get(reminder_id)
            if (
                reminder is not None
                and reminder.status is ReminderStatus.ACTIVE
                and reminder_id not in self._timers
                and reminder_id not in self._in_flight
            ):
                reminder.next_fire_at = self._clock() + reminder.next_interval()
                self._schedule(reminder)

    async def _fire_once(self, reminder_id: str) -> None:
        reminder = self._store.get(reminder_id)
        if reminder is None or reminder.status is not ReminderStatus.ACTIVE:
            return
        if reminder_id in self._in_flight:
            LOGGER.debug("Reminder %s is still being delivered; skipping this tick", reminder_id)
            return
        self._in_flight.add(reminder_id)
        try:
            reminder.fire_count += 1
            if reminder.fire_count >= reminder.max_fires:
                self._store.transition(reminder, ReminderStatus.COMPLETED, self._clock())
                self._write_snapshot()
                LOGGER.info("Reminder %s completed its schedule for user %s", reminder.id, reminder.user_id)
                return

            LOGGER.info("Sending reminder %s/%s for user %s (%r)",
                        reminder.fire_count, reminder.max_fires - 1, reminder.user_id, reminder.keyword)
            try:
                await self._sink.reminder_due(reminder)
            except Exception:
                LOGGER.exception("Reminder delivery failed for %s", reminder.id)

            # Acknowledgment or an override may have landed while we awaited the sink.
            if reminder.status is ReminderStatus.ACTIVE and self._store.get(reminder_id) is reminder:
                reminder.next_fire_at = self._clock() + reminder.next_interval()
                self._schedule(reminder)
            self._write_snapshot()
        finally:
            self._in_flight.discard(reminder_id)

    def _schedule(self, reminder: Reminder) -> None:
        token = next(self._tokens)
        self._timers[reminder.id] = token
        heapq.heappush(self._heap, (reminder.next_fire_at, token, reminder.id))
        self._wakeup.set()

    def _cancel_timer(self, reminder_id: str) -> None:
        if self._timers.pop(reminder_id, None) is not None:
            LOGGER.debug("Cancelled timer for %s", reminder_id)

    def _write_snapshot(self) -> None:
        if self._snapshot is None:
            return
        try:
            self._snapshot.write(self._store.snapshot())
        except Exception:
            LOGGER.exception("Failed to write reminder snapshot")

