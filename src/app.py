"""Application entry point for the nagwatch watcher."""

from __future__ import annotations

import argparse
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from art import tprint
from dotenv import load_dotenv
from telethon import events

import settings
from adapters.json_registry import JsonKeywordRegistry
from adapters.json_snapshot import JsonReminderSnapshot
from adapters.sqlite_storage import SQLiteStorage
from adapters.telegram_bot_notifier import TelegramBotNotifier
from adapters.telegram_commands import CommandHandler
from adapters.telegram_mapper import build_context
from adapters.telegram_notifier import TelegramSavedMessagesNotifier
from client import build_bot_client, build_client
from core.detector import KeywordDetector
from core.matcher import MatchEngine
from core.processor import MessageProcessor
from core.scheduler import ReminderScheduler
from get_session import authorize

NAME = "NAGWATCH"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _redacted_values(config: dict) -> list[str]:
    """Values of the configured env vars, longest first so substrings redact cleanly."""

    redact = config.get("redact") or {}
    if not redact.get("enabled", False):
        return []
    values = {os.getenv(name) for name in redact.get("patterns", [])}
    return sorted((value for value in values if value), key=len, reverse=True)


def _log_file_handler(file_cfg: dict) -> Optional[logging.Handler]:
    if not file_cfg.get("enabled", False):
        return None
    path = file_cfg.get("path", "logs/nagwatch.log")
    if not os.path.isabs(path):
        path = os.path.join(settings.PROJECT_ROOT, path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
        backupCount=int(file_cfg.get("backup_count", 5)),
        encoding="utf-8",
    )


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level = getattr(logging, str(config.get("level", "INFO")).upper(), logging.INFO)
    formatter = _RedactingFormatter(
        _redacted_values(config),
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    if config.get("console", True):
        handlers.append(logging.StreamHandler())
    file_handler = _log_file_handler(config.get("file") or {})
    if file_handler is not None:
        handlers.append(file_handler)
    if not handlers:
        return

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers)
    # Telethon logs every reconnect at INFO.
    logging.getLogger("telethon").setLevel(max(level, logging.WARNING))


class _CountingNotifier:
    """Wrap a notifier to count alerts during the catch-up scan."""

    def __init__(self, wrapped) -> None:
        self._wrapped = wrapped
        self.alerts_sent = 0

    async def send_alert(self, user_id, context, match, snippet) -> None:
        await self._wrapped.send_alert(user_id, context, match, snippet)
        self.alerts_sent += 1

    async def reminder_due(self, reminder) -> None:
        await self._wrapped.reminder_due(reminder)


async def _catch_up_scan(
    client,
    storage: SQLiteStorage,
    processor: MessageProcessor,
    counting_notifier: _CountingNotifier,
) -> None:
    """Run a startup catch-up scan before registering real-time handlers."""

    if not settings.CATCH_UP_ENABLED:
        return

    # Only sources seen before have a last_message_id to resume from.
    tracked_sources = storage.list_sources_state()
    sources_to_scan = {source_key for source_key in settings.SOURCES if source_key in tracked_sources}
    if not sources_to_scan:
        return

    logger = logging.getLogger(__name__)
    messages_checked = 0

    for source_key in sources_to_scan:
        try:
            if source_key.startswith("@"):
                entity = await client.get_entity(source_key)
            else:
                chat_id = int(source_key.split("chat_id:", 1)[1])
                entity = await client.get_entity(chat_id)
        except Exception:
            logger.exception("Failed to resolve source %s during catchup", source_key)
            continue

        last_id = storage.get_last_id(source_key) or 0
        messages = [
            message
            async for message in client.iter_messages(
                entity, limit=settings.CATCH_UP_MESSAGES_PER_SOURCE, min_id=last_id
            )
        ]

        for message in reversed(messages):
            messages_checked += 1
            context = await build_context(message)
            await processor.handle(context)

    logger.info(
        "Catch-up scan complete: sources=%s, messages=%s, alerts=%s",
        len(sources_to_scan),
        messages_checked,
        counting_notifier.alerts_sent,
    )


def _build_detector() -> tuple[JsonKeywordRegistry, KeywordDetector]:
    registry = JsonKeywordRegistry(settings.KEYWORDS_PATH)
    engine = MatchEngine(settings.MATCHING)
    return registry, KeywordDetector(engine, registry)


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting nagwatch")

    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    if settings.DETECTION_RETENTION_DAYS > 0:
        removed = storage.cleanup_detections(settings.DETECTION_RETENTION_DAYS)
        logger.info("Detection cleanup removed %s rows", removed)

    registry, detector = _build_detector()

    # Timers never survive a restart; a leftover snapshot is only noise.
    snapshot = JsonReminderSnapshot(settings.SNAPSHOT_PATH)
    snapshot.discard_stale()

    client = build_client()
    client.loop.run_until_complete(client.connect())
    client.loop.run_until_complete(authorize(client))

    # Select the notification adapter based on configuration to keep the core
    # processor independent from delivery details.
    recipients: Optional[list[str]] = None
    bot_client = None
    bot_token = os.getenv("BOT_API")
    if settings.NOTIFICATION_METHOD == "bot":
        if not bot_token:
            raise RuntimeError("BOT_API is required when notification_method=bot")
        notifier = TelegramBotNotifier(bot_token, settings.SOURCE_ALIASES, settings.NOTIFICATIONS)
        mode = "html"
    elif settings.NOTIFICATION_METHOD == "saved_messages":
        notifier = TelegramSavedMessagesNotifier(client, settings.SOURCE_ALIASES, settings.NOTIFICATIONS)
        me = client.loop.run_until_complete(client.get_me())
        recipients = [str(me.id)]
        mode = "markdown"
    else:
        raise RuntimeError("notification_method must be 'saved_messages' or 'bot'")
    logger.info("Selected notification method - %s", settings.NOTIFICATION_METHOD)

    scheduler = ReminderScheduler(notifier, settings.REMINDERS, snapshot=snapshot)
    processor = MessageProcessor(
        detector=detector,
        registry=registry,
        scheduler=scheduler,
        storage=storage,
        notifier=notifier,
        allowed_sources=settings.SOURCES,
        snippet_chars=settings.SNIPPET_CHARS,
        recipients=recipients,
    )

    if settings.NOTIFICATION_METHOD == "bot":
        bot_client = build_bot_client()
        bot_client.start(bot_token=bot_token)
        commands = CommandHandler(scheduler, registry, settings.SOURCES, mode=mode)
        commands.register(bot_client)
    else:
        # In Saved Messages mode the owner types /ok into their own chat and
        # is the only user, so they are also the admin.
        owner_id = recipients[0]
        is_owner = lambda user_id: user_id == owner_id  # noqa: E731
        commands = CommandHandler(
            scheduler,
            registry,
            settings.SOURCES,
            mode=mode,
            authorize=is_owner,
            is_admin=is_owner,
        )
        commands.register(client, chats="me", outgoing=True)

    # Run catch-up before wiring real-time handlers to avoid missing messages
    # during a long scan and to keep history processing explicit.
    catch_up_notifier = _CountingNotifier(notifier)
    catch_up_processor = MessageProcessor(
        detector=detector,
        registry=registry,
        scheduler=scheduler,
        storage=storage,
        notifier=catch_up_notifier,
        allowed_sources=settings.SOURCES,
        snippet_chars=settings.SNIPPET_CHARS,
        recipients=recipients,
    )
    client.loop.run_until_complete(_catch_up_scan(client, storage, catch_up_processor, catch_up_notifier))

    # Single handler keeps Telethon integration minimal and defers all filtering
    # to our core processor for consistency and testability.
    @client.on(events.NewMessage(incoming=True))
    async def handler(event) -> None:
        try:
            # When using bot notifications, ignore bot-sent messages to avoid
            # loops or accidental processing of our own alerts.
            if settings.NOTIFICATION_METHOD == "bot":
                sender = await event.get_sender()
                if event.is_private and sender and getattr(sender, "bot", False):
                    return
            registry.reload_if_changed()
            context = await build_context(event.message)
            await processor.handle(context)
        except Exception:
            logger.exception("Error while processing message")

    scheduler_task = client.loop.create_task(scheduler.run())

    # Explicit lifecycle management makes start/shutdown behavior obvious.
    client.start()
    logger.info("Client connected. Listening for incoming messages...")
    try:
        client.run_until_disconnected()
    finally:
        scheduler.stop()
        client.loop.run_until_complete(scheduler_task)
        if bot_client is not None:
            client.loop.run_until_complete(bot_client.disconnect())


def _setup() -> None:
    _print_banner()
    from frontend.app import ConfigPanelApp

    ConfigPanelApp().run()


def _check(text: str, group: Optional[str]) -> None:
    """Print what the configured keywords would detect in `text`."""

    logging.basicConfig(level=logging.WARNING)
    _, detector = _build_detector()
    matches = detector.detect_keywords(text, group)
    if not matches:
        print("No keywords detected.")
        return
    for index, match in enumerate(matches, start=1):
        owner = f"user {match.user_id}" if match.user_id else "all users"
        print(
            f"{index}. {match.keyword} | {match.match_type.value} | "
            f"{match.matched_token} | {match.scope.value} ({owner})"
        )


def _dialog_kind(dialog: Any) -> str:
    entity = getattr(dialog, "entity", None)
    if getattr(dialog, "is_channel", False) and not getattr(entity, "megagroup", False):
        return "channel"
    return "group"


def _dialog_source_key(dialog: Any) -> str:
    username = getattr(dialog.entity, "username", None)
    if username:
        return f"@{str(username).lower()}"
    return f"chat_id:{dialog.id}"


async def _print_group_dialogs(client, archived_only: bool, private_only: bool) -> None:
    """List group chats with the source key to paste into config.json."""

    monitored = settings.SOURCES
    found = 0
    folder = 1 if archived_only else None
    async for dialog in client.iter_dialogs(folder=folder):
        # Keywords are watched in groups only.
        if dialog.is_user:
            continue
        source_key = _dialog_source_key(dialog)
        # Chats without a username can only be configured as chat_id:<id>.
        if private_only and source_key.startswith("@"):
            continue
        found += 1
        marker = "*" if source_key in monitored else " "
        title = getattr(dialog.entity, "title", None) or dialog.name or str(dialog.id)
        print(f"{marker} {_dialog_kind(dialog):<7} | {title} | {source_key}")

    if not found:
        print("No group chats match the current filter.")
    else:
        print("\n* already monitored")


def _discover(archived_only: bool, private_only: bool) -> None:
    _print_banner()
    client = build_client()

    async def _run_discover() -> None:
        await client.connect()
        try:
            if not await client.is_user_authorized():
                print("Authorization required. Starting login...")
                await authorize(client)
            await _print_group_dialogs(client, archived_only, private_only)
        finally:
            await client.disconnect()

    client.loop.run_until_complete(_run_discover())


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="nagwatch")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the watcher (default)")
    subparsers.add_parser("config", help="Open the config panel")
    discover_parser = subparsers.add_parser("discover", help="List group chats and their source keys")
    discover_parser.add_argument("--archived", action="store_true", help="Only list archived chats")
    discover_parser.add_argument(
        "--private", action="store_true", help="Only list chats without a public username"
    )
    check_parser = subparsers.add_parser("check", help="Show which keywords a text would trigger")
    check_parser.add_argument("text", help="Message text to test")
    check_parser.add_argument(
        "--group",
        default=None,
        help="Source key of the group, to include subscribers' personal keywords",
    )

    args = parser.parse_args(argv)
    if args.command == "config":
        _setup()
    elif args.command == "discover":
        _discover(args.archived, args.private)
    elif args.command == "check":
        _check(args.text, args.group)
    else:
        _run()


if __name__ == "__main__":
    main()
