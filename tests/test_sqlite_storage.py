import sqlite3
from datetime import datetime, timezone

from adapters.sqlite_storage import SQLiteStorage
from core.models import DetectionRecord, MessageContext


def _context(message_id: int) -> MessageContext:
    return MessageContext(
        source_key="@family",
        chat_id=-1001234567890,
        message_id=message_id,
        date=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
        text="this is urgent",
        sender="Alice",
        group="Family",
        permalink=f"https://t.me/family/{message_id}",
    )


def _detection(user_id=None) -> DetectionRecord:
    return DetectionRecord(
        keyword="urgent",
        match_type="exact",
        matched_token="urgent",
        scope="personal" if user_id else "global",
        user_id=user_id,
        text_snippet="this is urgent",
    )


def test_last_id_round_trip(tmp_path) -> None:
    storage = SQLiteStorage(str(tmp_path / "nagwatch.db"))
    storage.init_db()

    assert storage.get_last_id("@family") is None
    storage.set_last_id("@family", 10)
    storage.set_last_id("@family", 12)

    assert storage.get_last_id("@family") == 12
    assert storage.list_sources_state() == {"@family"}


def test_recent_detections_newest_first(tmp_path) -> None:
    storage = SQLiteStorage(str(tmp_path / "nagwatch.db"))
    storage.init_db()
    storage.save_detection(_context(1), _detection())
    storage.save_detection(_context(2), _detection(user_id="42"))

    rows = storage.recent_detections(limit=10)

    assert [row["permalink"] for row in rows] == ["https://t.me/family/2", "https://t.me/family/1"]
    assert rows[0]["scope"] == "personal"
    assert rows[0]["user_id"] == "42"
    assert rows[1]["group_title"] == "Family"
    assert len(storage.recent_detections(limit=1)) == 1


def test_cleanup_detections_respects_retention(tmp_path) -> None:
    db_path = tmp_path / "nagwatch.db"
    storage = SQLiteStorage(str(db_path))
    storage.init_db()
    storage.save_detection(_context(1), _detection())
    storage.save_detection(_context(2), _detection())

    with sqlite3.connect(db_path) as conn:
        conn.execute(
            "UPDATE detections SET created_at = ? WHERE message_id = 1",
            ("2000-01-01T00:00:00+00:00",),
        )

    assert storage.cleanup_detections(30) == 1
    assert [row["permalink"] for row in storage.recent_detections()] == ["https://t.me/family/2"]
