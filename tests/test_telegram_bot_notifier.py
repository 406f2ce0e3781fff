import asyncio

import pytest

from adapters.telegram_bot_notifier import TelegramBotNotifier
from core.config import NotificationConfig


def _notifier(attempts: int) -> TelegramBotNotifier:
    config = NotificationConfig(snippet_chars=100, retry_attempts=attempts, retry_delay_seconds=0)
    return TelegramBotNotifier("token", {}, config)


def test_send_text_retries_until_delivered(monkeypatch, caplog) -> None:
    notifier = _notifier(3)
    calls = []

    def flaky_post(chat_id: str, text: str) -> None:
        calls.append((chat_id, text))
        if len(calls) < 3:
            raise RuntimeError("Bot API error 502: bad gateway")

    monkeypatch.setattr(notifier, "_post", flaky_post)

    asyncio.run(notifier.send_text("42", "hello"))

    assert calls == [("42", "hello")] * 3
    assert "attempt 1/3" in caplog.text
    assert "attempt 2/3" in caplog.text


def test_send_text_raises_after_last_attempt(monkeypatch) -> None:
    notifier = _notifier(2)
    calls = []

    def broken_post(chat_id: str, text: str) -> None:
        calls.append(chat_id)
        raise OSError("network unreachable")

    monkeypatch.setattr(notifier, "_post", broken_post)

    with pytest.raises(OSError):
        asyncio.run(notifier.send_text("42", "hello"))
    assert len(calls) == 2


def test_endpoint_is_derived_from_token() -> None:
    assert _notifier(1)._endpoint() == "https://api.telegram.org/bottoken/sendMessage"
