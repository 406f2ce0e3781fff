from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from adapters.notification_formatting import (
    describe_attachment,
    escape_text,
    format_acknowledgment,
    format_alert,
    format_reminder,
    format_source_label,
)
from core.models import (
    AcknowledgeResult,
    Attachment,
    KeywordScope,
    Match,
    MatchType,
    MessageContext,
    Reminder,
    ReminderPayload,
)

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _context(**kwargs) -> MessageContext:
    values = dict(
        source_key="@family",
        chat_id=-100123,
        message_id=7,
        date=T0,
        text="<b>urgent</b> call mom",
        sender="Dad",
        group="Family",
        permalink="https://t.me/family/7",
    )
    values.update(kwargs)
    return MessageContext(**values)


def _match(scope: KeywordScope = KeywordScope.GLOBAL) -> Match:
    return Match(
        keyword="urgent",
        match_type=MatchType.EXACT,
        matched_token="urgent",
        scope=scope,
        user_id="1" if scope is KeywordScope.PERSONAL else None,
    )


def test_format_source_label_prefers_alias() -> None:
    assert format_source_label("@family", "Family", {"@family": "Home"}) == "Home (@family)"
    assert format_source_label("@family", "Family", {}) == "Family (@family)"
    assert format_source_label("@family", None, {}) == "@family"
    assert format_source_label(None, "Family", {}) == "Family"
    assert format_source_label(None, None, {}) == "unknown group"


def test_describe_attachment() -> None:
    assert describe_attachment(None) is None
    assert describe_attachment(Attachment(kind="photo")) == "photo"
    assert describe_attachment(Attachment(kind="document", filename="a.pdf", size=512)) == "a.pdf (512 B)"
    assert describe_attachment(Attachment(kind="document", filename="a.pdf", size=4096)) == "a.pdf (4 KB)"


def test_escape_text_modes() -> None:
    assert escape_text("<a & b>", "html") == "&lt;a &amp; b&gt;"
    assert escape_text("*bold* [x]", "markdown") == "\\*bold\\* \\[x]"
    with pytest.raises(ValueError):
        escape_text("x", "rst")


def test_alert_html_escapes_message_text() -> None:
    text = format_alert(_match(), _context(), "<b>urgent</b> call mom", {}, mode="html")
    assert "<b>Keyword detected</b>" in text
    assert "&lt;b&gt;urgent&lt;/b&gt; call mom" in text
    assert "<b>Group:</b> Family (@family)" in text
    assert "<b>From:</b> Dad" in text
    assert '<a href="https://t.me/family/7">' in text
    assert "Reply /ok to acknowledge." in text


def test_personal_alert_heading_and_attachment() -> None:
    context = _context(attachment=Attachment(kind="document", filename="plan.pdf"), permalink=None)
    text = format_alert(_match(KeywordScope.PERSONAL), context, "plan", {}, mode="markdown")
    assert "**Personal keyword detected**" in text
    assert "**File:** plan.pdf" in text
    assert "Link" not in text


def test_reminder_shows_progress_and_elapsed_time() -> None:
    reminder = Reminder(
        id="reminder_1_1",
        user_id="1",
        keyword="urgent",
        payload=ReminderPayload(message="urgent call mom", sender="Dad", group="Family", channel_id="@family"),
        first_detected_at=T0,
        next_fire_at=T0 + timedelta(minutes=8),
        interval_schedule=tuple(timedelta(minutes=m) for m in (1, 2, 5, 15, 60, 90)),
        fire_count=3,
    )
    text = format_reminder(reminder, 6, {"@family": "Home"}, mode="html")
    assert "<b>Reminder 3/6</b>" in text
    assert "<b>Group:</b> Home (@family)" in text
    assert "\nurgent\n" in text
    assert "Unacknowledged for about 8 min." in text
    assert "Reply /ok to acknowledge and stop." in text


def test_acknowledgment_rendering() -> None:
    empty = AcknowledgeResult(has_active=False, summary="No active reminders to acknowledge")
    assert format_acknowledgment(empty, "html") == "<b>No active reminders to acknowledge</b>"

    result = AcknowledgeResult(
        has_active=True,
        summary="",
        stopped=("cake",),
        overridden=("a<b",),
        expired=(),
    )
    text = format_acknowledgment(result, "html")
    assert text.startswith("<b>Reminder acknowledged and stopped.</b>")
    assert '<b>Active reminders stopped:</b> "cake"' in text
    assert '"a&lt;b"' in text
    assert "Expired" not in text
