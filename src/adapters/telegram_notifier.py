"""Telegram notification adapter for Saved Messages.

Formats a human-readable Markdown message and sends it to Saved Messages. The
account owner is the only recipient, so the user id is ignored.
"""

from __future__ import annotations

from adapters.notification_formatting import format_alert, format_reminder
from core.config import NotificationConfig
from core.models import Match, MessageContext, Reminder


class TelegramSavedMessagesNotifier:
    """Notifier adapter that sends messages to the user's Saved Messages."""

    def __init__(self, client, source_aliases: dict[str, str], config: NotificationConfig) -> None:
        self._client = client
        self._source_aliases = source_aliases
        self._config = config

    async def send_alert(self, user_id: str, context: MessageContext, match: Match, snippet: str) -> None:
        message = format_alert(match, context, snippet, self._source_aliases, mode="markdown")
        await self._client.send_message("me", message, parse_mode="Markdown")

    async def reminder_due(self, reminder: Reminder) -> None:
        message = format_reminder(reminder, self._config.snippet_chars, self._source_aliases, mode="markdown")
        await self._client.send_message("me", message, parse_mode="Markdown")
