"""Telegram client factories for nagwatch.

We explicitly manage the clients' lifecycle (start/run_until_disconnected)
so it is obvious when a session is created and when it ends. This avoids
implicit context-manager behavior for a long-running watcher.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient


def _credentials() -> tuple[int, str]:
    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")

    # Fail fast on missing credentials to avoid an ambiguous login prompt.
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")
    return int(api_id), api_hash


def build_client() -> TelegramClient:
    """Create the user-account client that watches the monitored groups.

    We read API_ID/API_HASH via python-dotenv to keep secrets out of the repo.
    The session name defaults to "nagwatch" to create a local .session file.
    """

    api_id, api_hash = _credentials()
    session_name = os.getenv("SESSION_NAME", "nagwatch")

    logging.getLogger(__name__).info("Initializing Telegram client")

    return TelegramClient(session_name, api_id, api_hash)


def build_bot_client() -> TelegramClient:
    """Create the bot client that receives /ok and the other commands.

    The bot gets its own session file so it never shares auth state with the
    user account. Call ``start(bot_token=...)`` on the result.
    """

    api_id, api_hash = _credentials()
    session_name = os.getenv("BOT_SESSION_NAME") or f"{os.getenv('SESSION_NAME', 'nagwatch')}-bot"

    logging.getLogger(__name__).info("Initializing Telegram bot client")

    return TelegramClient(session_name, api_id, api_hash)
