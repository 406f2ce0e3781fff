from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from adapters.telegram_notifier import TelegramSavedMessagesNotifier
from core.config import NotificationConfig
from core.models import KeywordScope, Match, MatchType, MessageContext, Reminder, ReminderPayload

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClient:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    async def send_message(self, entity, text, parse_mode=None) -> None:
        self.sent.append((entity, text, parse_mode))


def test_alerts_and_reminders_go_to_saved_messages() -> None:
    client = FakeClient()
    notifier = TelegramSavedMessagesNotifier(client, {"@family": "Home"}, NotificationConfig(snippet_chars=100))
    context = MessageContext(
        source_key="@family",
        chat_id=-100123,
        message_id=7,
        date=T0,
        text="urgent call mom",
        group="Family",
    )
    match = Match(keyword="urgent", match_type=MatchType.EXACT, matched_token="urgent", scope=KeywordScope.GLOBAL)
    reminder = Reminder(
        id="r1",
        user_id="42",
        keyword="urgent",
        payload=ReminderPayload(message="urgent call mom", group="Family", channel_id="@family"),
        first_detected_at=T0,
        next_fire_at=T0 + timedelta(minutes=1),
        interval_schedule=(timedelta(minutes=1),),
        fire_count=1,
    )

    asyncio.run(notifier.send_alert("42", context, match, "urgent call mom"))
    asyncio.run(notifier.reminder_due(reminder))

    assert [(entity, mode) for entity, _, mode in client.sent] == [("me", "Markdown"), ("me", "Markdown")]
    assert "Home (@family)" in client.sent[0][1]
    assert not hasattr(notifier, "send_text")
