"""Static configuration for nagwatch.

All user-editable settings (sources, matching, reminders, notifications) live
in a single JSON file for quick edits without touching Python. Keywords and
subscriptions live in their own file because the bot commands rewrite it.
"""

import json
import os

from core.config import NotificationConfig, build_matcher_config, build_reminder_config
from core.source_keys import expand_source_key_variants

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Where to store the SQLite database.
DB_PATH = os.path.join(os.path.dirname(__file__), "nagwatch.db")

CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _project_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


def _normalize_sources(raw_sources: list[dict]) -> tuple[set[str], dict[str, str]]:
    """Normalize sources and build an alias map keyed by source_key."""

    sources: set[str] = set()
    aliases: dict[str, str] = {}
    for entry in raw_sources:
        source_key = entry.get("source_key")
        if not source_key:
            continue
        if not entry.get("enabled", True):
            continue
        expanded_keys = expand_source_key_variants(source_key)
        sources.update(expanded_keys)
        alias = entry.get("alias")
        if alias:
            # Preserve explicit aliases for the configured key.
            aliases[source_key] = alias
            # Mirror aliases onto equivalent chat_id forms to avoid mismatches.
            for key in expanded_keys:
                if key == source_key:
                    continue
                aliases.setdefault(key, alias)
    return sources, aliases


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Enabled sources are used for filtering in the core processor.
SOURCES, SOURCE_ALIASES = _normalize_sources(_CONFIG.get("sources", []))

# Global keywords, personal keywords, subscriptions and authorized users.
KEYWORDS_PATH = _project_path(_CONFIG.get("keywords_path", "keywords.json"))

# Normalization and fuzzy matching switches, plus the false-positive denylist.
MATCHING = build_matcher_config(_CONFIG.get("matching", {}))

# Escalation schedule, race window and purge cadence.
REMINDERS = build_reminder_config(_CONFIG.get("reminders", {}))
SNAPSHOT_PATH = _project_path(_CONFIG.get("reminders", {}).get("snapshot_path", "active-reminders.json"))

# Notification snippet size used by all notifier adapters.
_notifications = _CONFIG.get("notifications", {})
SNIPPET_CHARS = int(_notifications.get("snippet_chars", 400))
# Notification method switches adapters without changing core logic.
NOTIFICATION_METHOD = _notifications.get("notification_method", "saved_messages")
NOTIFICATIONS = NotificationConfig(
    snippet_chars=SNIPPET_CHARS,
    retry_attempts=int(_notifications.get("retry_attempts", 3)),
    retry_delay_seconds=float(_notifications.get("retry_delay_seconds", 1.0)),
)

# Detection log retention; 0 keeps everything.
DETECTION_RETENTION_DAYS = int(_CONFIG.get("storage", {}).get("detection_retention_days", 90))

# Catch-up scan settings for startup backfill.
_catch_up = _CONFIG.get("catch_up", {})
CATCH_UP_ENABLED = bool(_catch_up.get("enabled", False))
CATCH_UP_MESSAGES_PER_SOURCE = int(_catch_up.get("messages_per_source", 50))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
