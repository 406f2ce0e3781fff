from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from core.models import Reminder, ReminderPayload, ReminderStatus
from core.reminder_store import ReminderStore, ReminderTransitionError

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _reminder(store: ReminderStore, user_id: str = "1", keyword: str = "urgent", at: datetime = T0) -> Reminder:
    return Reminder(
        id=store.next_id(user_id),
        user_id=user_id,
        keyword=keyword,
        payload=ReminderPayload(message=f"{keyword}!"),
        first_detected_at=at,
        next_fire_at=at + timedelta(minutes=1),
        interval_schedule=(timedelta(minutes=1), timedelta(minutes=2)),
    )


def test_ids_are_unique_and_carry_the_user() -> None:
    store = ReminderStore()
    assert store.next_id("7") == "reminder_1_7"
    assert store.next_id("7") == "reminder_2_7"


def test_one_active_reminder_per_user() -> None:
    store = ReminderStore()
    first = _reminder(store)
    store.add(first)
    assert store.active_for("1") is first
    with pytest.raises(ValueError):
        store.add(_reminder(store, keyword="cake"))


def test_transition_releases_the_active_slot() -> None:
    store = ReminderStore()
    first = _reminder(store)
    store.add(first)
    store.transition(first, ReminderStatus.CANCELLED, T0)
    assert first.cancelled_at == T0
    assert store.active_for("1") is None
    second = _reminder(store, keyword="cake")
    store.add(second)
    assert store.active_for("1") is second


def test_invalid_transitions_are_rejected() -> None:
    store = ReminderStore()
    reminder = _reminder(store)
    store.add(reminder)
    store.transition(reminder, ReminderStatus.COMPLETED, T0)
    with pytest.raises(ReminderTransitionError):
        store.transition(reminder, ReminderStatus.ACTIVE, T0)
    store.transition(reminder, ReminderStatus.ACKNOWLEDGED, T0)
    with pytest.raises(ReminderTransitionError):
        store.transition(reminder, ReminderStatus.CANCELLED, T0)


def test_records_for_filters_by_user_and_time() -> None:
    store = ReminderStore()
    old = _reminder(store, at=T0)
    store.add(old)
    store.transition(old, ReminderStatus.CANCELLED, T0)
    new = _reminder(store, keyword="cake", at=T0 + timedelta(minutes=5))
    store.add(new)
    store.add(_reminder(store, user_id="2"))
    assert store.records_for("1") == [old, new]
    assert store.records_for("1", since=T0 + timedelta(minutes=1)) == [new]


def test_acknowledged_records_block_and_purge() -> None:
    store = ReminderStore()
    reminder = _reminder(store)
    store.add(reminder)
    store.transition(reminder, ReminderStatus.ACKNOWLEDGED, T0)
    assert store.has_acknowledged("1", "urgent")
    assert not store.has_acknowledged("1", "cake")
    assert store.purge_acknowledged() == 1
    assert len(store) == 0


def test_snapshot_is_json_ready() -> None:
    store = ReminderStore()
    reminder = _reminder(store)
    store.add(reminder)
    assert store.snapshot() == {
        reminder.id: {
            "reminderId": reminder.id,
            "userId": "1",
            "keyword": "urgent",
            "status": "active",
            "firstDetectedAt": T0.isoformat(),
            "nextReminderAt": (T0 + timedelta(minutes=1)).isoformat(),
            "reminderCount": 0,
        }
    }
