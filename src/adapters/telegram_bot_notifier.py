"""Telegram Bot API notification adapter.

Uses the Bot API for delivery so each user gets alerts in their own bot chat.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.request

from adapters.notification_formatting import format_alert, format_reminder
from core.config import NotificationConfig
from core.models import Match, MessageContext, Reminder

LOGGER = logging.getLogger(__name__)


class TelegramBotNotifier:
    """Notifier adapter that sends messages via the Telegram Bot API."""

    def __init__(
        self,
        bot_token: str,
        source_aliases: dict[str, str],
        config: NotificationConfig,
    ) -> None:
        self._bot_token = bot_token
        self._source_aliases = source_aliases
        self._config = config

    def _endpoint(self) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"https://api.telegram.org/bot{self._bot_token}/sendMessage"

    def _post(self, chat_id: str, text: str) -> None:
        payload = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(self._endpoint(), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=10):
                pass
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise RuntimeError(f"Bot API error {e.code}: {body}") from e

    async def send_text(self, chat_id: str, text: str) -> None:
        """Deliver one HTML message, retrying transient failures."""

        attempts = max(1, self._config.retry_attempts)
        for attempt in range(1, attempts + 1):
            try:
                # urllib blocks, so the request runs in a worker thread.
                await asyncio.to_thread(self._post, chat_id, text)
                return
            except (RuntimeError, urllib.error.URLError, OSError) as e:
                if attempt == attempts:
                    raise
                LOGGER.warning(
                    "Bot API send to %s failed (attempt %s/%s): %s", chat_id, attempt, attempts, e
                )
                await asyncio.sleep(self._config.retry_delay_seconds * attempt)

    async def send_alert(self, user_id: str, context: MessageContext, match: Match, snippet: str) -> None:
        message = format_alert(match, context, snippet, self._source_aliases, mode="html")
        await self.send_text(user_id, message)

    async def reminder_due(self, reminder: Reminder) -> None:
        message = format_reminder(reminder, self._config.snippet_chars, self._source_aliases, mode="html")
        await self.send_text(reminder.user_id, message)
