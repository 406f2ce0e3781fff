from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from telethon.tl.types import PeerChannel, PeerChat, PeerUser

from adapters.telegram_mapper import (
    attachment_from_message,
    build_context,
    build_permalink,
    display_name,
    source_key_from_message,
)


class DummyChat:
    def __init__(self, username: "str | None" = None, title: "str | None" = None) -> None:
        self.username = username
        self.title = title


class DummyUser:
    def __init__(self, first_name=None, last_name=None, username=None) -> None:
        self.first_name = first_name
        self.last_name = last_name
        self.username = username


class DummyFile:
    def __init__(self, name: "str | None", size: int) -> None:
        self.name = name
        self.size = size


class DummyMessage:
    def __init__(
        self,
        *,
        chat_id: int = -1001234567890,
        message_id: int = 10,
        text: str = "hello",
        chat: "DummyChat | None" = None,
        peer_id=None,
        sender=None,
        file: "DummyFile | None" = None,
        **media,
    ) -> None:
        self.chat_id = chat_id
        self.id = message_id
        self.raw_text = text
        self.chat = chat
        self.peer_id = peer_id
        self.file = file
        self.date = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._sender = sender
        for kind in ("photo", "video", "voice", "audio", "sticker"):
            setattr(self, kind, media.get(kind))

    async def get_sender(self):
        if isinstance(self._sender, Exception):
            raise self._sender
        return self._sender


def test_source_key_prefers_username() -> None:
    assert source_key_from_message(DummyMessage(chat=DummyChat(username="Family"))) == "@family"
    assert source_key_from_message(DummyMessage(chat=DummyChat())) == "chat_id:-1001234567890"


def test_permalinks() -> None:
    public = DummyMessage(chat=DummyChat(username="family"), peer_id=PeerChannel(1234567890))
    assert build_permalink(public) == "https://t.me/family/10"
    private = DummyMessage(chat=DummyChat(), peer_id=PeerChannel(1234567890))
    assert build_permalink(private) == "https://t.me/c/1234567890/10"
    basic = DummyMessage(chat=DummyChat(), peer_id=PeerChat(42))
    assert build_permalink(basic) == "https://t.me/c/42/10"
    direct = DummyMessage(chat=None, peer_id=PeerUser(7))
    assert build_permalink(direct) is None


def test_display_name() -> None:
    assert display_name(None) is None
    assert display_name(DummyChat(title="Family")) == "Family"
    assert display_name(DummyUser(first_name="Ann", last_name="Lee")) == "Ann Lee"
    assert display_name(DummyUser(username="ann")) == "@ann"
    assert display_name(DummyUser()) is None


def test_attachment_kind_and_file_name() -> None:
    assert attachment_from_message(DummyMessage()) is None
    document = attachment_from_message(DummyMessage(file=DummyFile("invoice.pdf", 2048)))
    assert (document.kind, document.filename, document.size) == ("document", "invoice.pdf", 2048)
    photo = attachment_from_message(DummyMessage(file=DummyFile(None, 100), photo=object()))
    assert photo.kind == "photo"
    assert photo.filename is None


def test_build_context_maps_message_fields() -> None:
    message = DummyMessage(
        text="urgent!",
        chat=DummyChat(title="Family"),
        peer_id=PeerChannel(1234567890),
        sender=DummyUser(first_name="Mom"),
    )
    context = asyncio.run(build_context(message))
    assert context.source_key == "chat_id:-1001234567890"
    assert context.chat_id == -1001234567890
    assert context.message_id == 10
    assert context.text == "urgent!"
    assert context.sender == "Mom"
    assert context.group == "Family"
    assert context.permalink == "https://t.me/c/1234567890/10"
    assert context.attachment is None


def test_build_context_survives_sender_lookup_failure() -> None:
    message = DummyMessage(chat=DummyChat(username="family"), sender=ValueError("no access"))
    context = asyncio.run(build_context(message))
    assert context.sender is None
    assert context.source_key == "@family"
