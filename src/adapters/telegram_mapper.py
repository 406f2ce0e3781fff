"""Telegram-to-core message mapping adapter.

This keeps Telethon-specific details out of the core pipeline.
"""

from __future__ import annotations

import logging
from typing import Optional

from telethon.tl.custom import Message
from telethon.tl.types import PeerChannel, PeerChat

from core.models import Attachment, MessageContext

LOGGER = logging.getLogger(__name__)


def source_key_from_message(message: Message) -> str:
    """Normalize a source key using a single rule enforced across the app."""

    chat = getattr(message, "chat", None)
    username = getattr(chat, "username", None)

    if isinstance(username, str) and username:
        return f"@{username.lower()}"

    # Fallback: always stable and universal
    return f"chat_id:{message.chat_id}"


def display_name(entity) -> Optional[str]:
    """Best human label for a user, chat or channel entity."""

    if entity is None:
        return None
    title = getattr(entity, "title", None)
    if title:
        return title
    parts = [getattr(entity, "first_name", None), getattr(entity, "last_name", None)]
    name = " ".join(part for part in parts if part)
    if name:
        return name
    username = getattr(entity, "username", None)
    if username:
        return f"@{username}"
    return None


def attachment_from_message(message: Message) -> Optional[Attachment]:
    """Describe the attached media; the file name is what gets searched."""

    file = getattr(message, "file", None)
    if file is None:
        return None
    if getattr(message, "photo", None) is not None:
        kind = "photo"
    elif getattr(message, "video", None) is not None:
        kind = "video"
    elif getattr(message, "voice", None) is not None:
        kind = "voice"
    elif getattr(message, "audio", None) is not None:
        kind = "audio"
    elif getattr(message, "sticker", None) is not None:
        kind = "sticker"
    else:
        kind = "document"
    return Attachment(kind=kind, filename=getattr(file, "name", None), size=getattr(file, "size", None))


def build_permalink(message: Message) -> Optional[str]:
    peer_id = message.peer_id
    # Prefer public usernames for permalinks when available.
    if message.chat and getattr(message.chat, "username", None):
        return f"https://t.me/{message.chat.username}/{message.id}"
    if isinstance(peer_id, PeerChannel):
        # Private groups/supergroups/channels can use the /c/ links.
        return f"https://t.me/c/{peer_id.channel_id}/{message.id}"
    if isinstance(peer_id, PeerChat):
        return f"https://t.me/c/{peer_id.chat_id}/{message.id}"
    # PeerUser has no chat/channel id; no permalink is possible.
    return None


async def build_context(message: Message) -> MessageContext:
    """Build a core MessageContext from a Telethon Message."""

    try:
        sender = await message.get_sender()
    except Exception:
        LOGGER.debug("Could not resolve sender for message %s", message.id, exc_info=True)
        sender = None

    return MessageContext(
        source_key=source_key_from_message(message),
        chat_id=message.chat_id,
        message_id=message.id,
        date=message.date,
        text=message.raw_text or "",
        sender=display_name(sender),
        group=display_name(getattr(message, "chat", None)),
        permalink=build_permalink(message),
        attachment=attachment_from_message(message),
    )
