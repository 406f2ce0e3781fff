"""Core message processing pipeline.

This module is integration-agnostic. It only relies on ports for storage and
notifications, enabling future frontends or adapters without changes here.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from core.detector import KeywordDetector
from core.models import DetectionRecord, KeywordScope, Match, MessageContext, ReminderPayload
from core.ports import KeywordRegistryPort, NotifierPort, StoragePort
from core.scheduler import ReminderScheduler

LOGGER = logging.getLogger(__name__)


def build_payload(context: MessageContext) -> ReminderPayload:
    return ReminderPayload(
        message=context.text,
        sender=context.sender,
        group=context.group,
        message_id=context.message_id,
        channel_id=context.source_key,
        attachment=context.attachment,
        permalink=context.permalink,
    )


class MessageProcessor:
    """Orchestrates detection, first alerts, reminders and persistence."""

    def __init__(
        self,
        detector: KeywordDetector,
        registry: KeywordRegistryPort,
        scheduler: ReminderScheduler,
        storage: StoragePort,
        notifier: NotifierPort,
        allowed_sources: set[str],
        snippet_chars: int,
        recipients: Optional[Iterable[str]] = None,
    ) -> None:
        self._detector = detector
        self._registry = registry
        self._scheduler = scheduler
        self._storage = storage
        self._notifier = notifier
        self._allowed_sources = allowed_sources
        self._snippet_chars = snippet_chars
        # Saved Messages delivery has a single reader: the account owner.
        self._recipients = list(recipients) if recipients is not None else None

    def recipients_for(self, match: Match) -> List[str]:
        if self._recipients is not None:
            return list(self._recipients)
        if match.scope is KeywordScope.PERSONAL:
            return [match.user_id] if match.user_id else []
        return [str(user_id) for user_id in self._registry.authorized_users()]

    async def handle(self, context: MessageContext) -> None:
        """Process one message context through the core pipeline."""

        if context.source_key not in self._allowed_sources:
            return

        searchable = context.searchable_text
        # Media without caption or file name has nothing to match.
        if not searchable.strip():
            return

        # Message-level idempotency: Telegram message ids are monotonically increasing
        # per chat, so we can safely skip anything we've already processed.
        last_id = self._storage.get_last_id(context.source_key) or 0
        if context.message_id <= last_id:
            return

        matches = self._detector.detect_keywords(searchable, context.source_key)
        if not matches:
            self._storage.set_last_id(context.source_key, context.message_id)
            return

        snippet = searchable[: self._snippet_chars].strip()
        payload = build_payload(context)
        for match in matches:
            delivered = 0
            for user_id in self.recipients_for(match):
                try:
                    await self._notifier.send_alert(user_id, context, match, snippet)
                except Exception:
                    LOGGER.exception("Alert delivery failed for user %s (%s)", user_id, match.keyword)
                    continue
                delivered += 1
                # Only users who actually got the first alert are nagged about it.
                self._scheduler.create(user_id, match.keyword, payload, match.scope)

            self._storage.save_detection(
                context,
                DetectionRecord(
                    keyword=match.keyword,
                    match_type=match.match_type.value,
                    matched_token=match.matched_token,
                    scope=match.scope.value,
                    user_id=match.user_id,
                    text_snippet=snippet,
                ),
            )
            LOGGER.info(
                "Keyword %r (%s via %r) in %s, alerted %s user(s)",
                match.keyword,
                match.match_type.value,
                match.matched_token,
                context.source_key,
                delivered,
            )

        # Update the last_message_id after all match handling to ensure restart safety.
        self._storage.set_last_id(context.source_key, context.message_id)
