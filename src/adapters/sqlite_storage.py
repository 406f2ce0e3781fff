"""SQLite storage adapter.

Implements the core StoragePort using a simple SQLite database.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from core.models import DetectionRecord, MessageContext


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the StoragePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - sources_state: per-source last_message_id for idempotency
        - detections: append-only log of keyword detections
        """

        with self._connect() as conn:
            # One counter per source so a restart never re-alerts old messages.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sources_state (
                    source_key TEXT PRIMARY KEY,
                    last_message_id INTEGER NOT NULL
                )
                """
            )
            # detections is denormalized on purpose: it is read by the history
            # tab and by people grepping the file, never joined.
            # Fields:
            # - source_key / chat_id / message_id: where the message came from
            # - date: original message timestamp from Telegram
            # - keyword / match_type / matched_token: what fired and how
            # - scope / user_id: global keyword, or the personal keyword owner
            # - sender / group_title: display names at detection time
            # - text_snippet: clipped portion of the searchable text
            # - permalink: t.me link
            # - created_at: when the detection was recorded
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS detections (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source_key TEXT,
                    chat_id INTEGER,
                    message_id INTEGER,
                    date TIMESTAMP,
                    keyword TEXT,
                    match_type TEXT,
                    matched_token TEXT,
                    scope TEXT,
                    user_id TEXT,
                    sender TEXT,
                    group_title TEXT,
                    text_snippet TEXT,
                    permalink TEXT,
                    created_at TIMESTAMP NOT NULL
                )
                """
            )

    def get_last_id(self, source_key: str) -> Optional[int]:
        """Return the last processed message_id for a source, if any."""

        with self._connect() as conn:
            row = conn.execute(
                "SELECT last_message_id FROM sources_state WHERE source_key = ?",
                (source_key,),
            ).fetchone()
        return int(row["last_message_id"]) if row else None

    def set_last_id(self, source_key: str, last_message_id: int) -> None:
        """Upsert the last processed message_id for a source."""

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO sources_state (source_key, last_message_id)
                VALUES (?, ?)
                ON CONFLICT(source_key) DO UPDATE SET last_message_id = excluded.last_message_id
                """,
                (source_key, last_message_id),
            )

    def save_detection(self, context: MessageContext, detection: DetectionRecord) -> None:
        """Persist a detection to the append-only detections table."""

        created_at = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO detections (
                    source_key,
                    chat_id,
                    message_id,
                    date,
                    keyword,
                    match_type,
                    matched_token,
                    scope,
                    user_id,
                    sender,
                    group_title,
                    text_snippet,
                    permalink,
                    created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    context.source_key,
                    context.chat_id,
                    context.message_id,
                    context.date.isoformat(),
                    detection.keyword,
                    detection.match_type,
                    detection.matched_token,
                    detection.scope,
                    detection.user_id,
                    context.sender,
                    context.group,
                    detection.text_snippet,
                    context.permalink,
                    created_at.isoformat(),
                ),
            )

    def recent_detections(self, limit: int = 200) -> List[sqlite3.Row]:
        """Return the newest detections first."""

        with self._connect() as conn:
            return conn.execute(
                """
                SELECT id, source_key, chat_id, message_id, date, keyword, match_type,
                       matched_token, scope, user_id, sender, group_title,
                       text_snippet, permalink, created_at
                FROM detections
                ORDER BY id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()

    def cleanup_detections(self, retention_days: int) -> int:
        """Delete detections older than the retention window and return the count."""

        cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM detections WHERE created_at < ?",
                (cutoff.isoformat(),),
            )
            return cur.rowcount

    def list_sources_state(self) -> set[str]:
        """Return all source_key values currently tracked in sources_state."""

        with self._connect() as conn:
            rows = conn.execute("SELECT source_key FROM sources_state").fetchall()
        return {row["source_key"] for row in rows}
