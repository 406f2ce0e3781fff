"""Helpers for working with nagwatch source keys.

A source key names one monitored group: ``@username`` for public groups or
``chat_id:<id>`` for private ones. The same key also identifies the group in
keyword subscriptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True)
class SourceKeyInfo:
    normalized: Optional[str]
    kind: str
    error: Optional[str] = None


def parse_source_key(raw_value: str) -> SourceKeyInfo:
    """Validate and normalize a user-entered source key."""

    raw_value = raw_value.strip()
    if not raw_value:
        return SourceKeyInfo(None, "invalid", "source_key is required")

    if raw_value.startswith("@"):
        username = raw_value[1:]
        if not username or not username.replace("_", "a").isalnum():
            return SourceKeyInfo(None, "invalid", "username is invalid")
        return SourceKeyInfo(f"@{username.lower()}", "username")

    if raw_value.startswith("chat_id:"):
        chat_value = raw_value[len("chat_id:") :]
        try:
            chat_id = int(chat_value)
        except ValueError:
            return SourceKeyInfo(None, "invalid", "chat_id must be numeric")
        return SourceKeyInfo(f"chat_id:{chat_id}", "chat_id")

    return SourceKeyInfo(None, "invalid", "source_key must start with @ or chat_id:")


def _expand_chat_id_variants(raw_chat_id: int) -> set[int]:
    """Return equivalent chat id variants (peer id, chat id, channel id)."""

    variants: set[int] = {raw_chat_id}
    if raw_chat_id < 0:
        raw_text = str(raw_chat_id)
        if raw_text.startswith("-100"):
            # Channel/supergroup peer id: -100<channel_id>
            channel_part = raw_text[4:]
            if channel_part.isdigit():
                variants.add(int(channel_part))
        else:
            variants.add(abs(raw_chat_id))
        return variants

    # Positive ids may be either a basic chat or a channel; add both peer forms.
    variants.add(-raw_chat_id)
    variants.add(-1000000000000 - raw_chat_id)
    return variants


def expand_source_key_variants(source_key: str) -> set[str]:
    """Expand a source key to include equivalent chat_id variants."""

    if not source_key.startswith("chat_id:"):
        return {source_key}
    try:
        raw_chat_id = int(source_key.split("chat_id:", 1)[1])
    except ValueError:
        return {source_key}
    return {f"chat_id:{variant}" for variant in _expand_chat_id_variants(raw_chat_id)}


def expand_source_keys(source_keys: Iterable[str]) -> set[str]:
    expanded: set[str] = set()
    for source_key in source_keys:
        expanded.update(expand_source_key_variants(source_key))
    return expanded
