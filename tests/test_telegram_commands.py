from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from adapters.json_registry import JsonKeywordRegistry
from adapters.telegram_commands import ADMIN_HELP_TEXT, ADMIN_ONLY, HELP_TEXT, NOT_AUTHORIZED, CommandHandler
from core.models import ReminderPayload
from core.scheduler import ReminderScheduler

MONITORED = {"@family", "chat_id:-1001234567890"}


class NullSink:
    async def reminder_due(self, reminder) -> None:
        return None


def _handler(tmp_path, mode: str = "html", monitored=None, authorize=None, admins=("9",)):
    path = tmp_path / "keywords.json"
    path.write_text(
        json.dumps(
            {
                "global": ["urgent"],
                "personal": {"1": ["cake"]},
                "authorized_users": ["1"],
                "admins": list(admins),
            }
        ),
        encoding="utf-8",
    )
    registry = JsonKeywordRegistry(str(path))
    clock = lambda: datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)  # noqa: E731
    scheduler = ReminderScheduler(NullSink(), clock=clock)
    handler = CommandHandler(
        scheduler,
        registry,
        monitored if monitored is not None else MONITORED,
        mode=mode,
        authorize=authorize,
    )
    return handler, scheduler, registry


def test_non_commands_and_unknown_commands_are_ignored(tmp_path) -> None:
    handler, _, _ = _handler(tmp_path)
    assert handler.handle_command("1", "hello") is None
    assert handler.handle_command("1", "") is None
    assert handler.handle_command("1", "/dance") is None


def test_unauthorized_users_are_refused(tmp_path) -> None:
    handler, _, _ = _handler(tmp_path)
    assert handler.handle_command("2", "/ok") == NOT_AUTHORIZED
    assert handler.handle_command("2", "/approve 2") == NOT_AUTHORIZED


def test_ok_acknowledges_the_active_reminder(tmp_path) -> None:
    handler, scheduler, _ = _handler(tmp_path)
    scheduler.create("1", "urgent", ReminderPayload(message="urgent"))
    reply = handler.handle_command("1", "/ok")
    assert "<b>Active reminders stopped:</b> \"urgent\"" in reply
    assert scheduler.active_for("1") is None
    assert handler.handle_command("1", "/ok@nag_bot") == "<b>No active reminders to acknowledge</b>"


def test_status(tmp_path) -> None:
    handler, scheduler, _ = _handler(tmp_path)
    assert handler.handle_command("1", "/status") == "No active reminder."
    scheduler.create("1", "urgent", ReminderPayload(message="urgent"))
    reply = handler.handle_command("1", "/status")
    assert "Active reminder for \"urgent\"" in reply
    assert "Sent 0/6" in reply


def test_personal_keyword_listing_and_edits(tmp_path) -> None:
    handler, _, registry = _handler(tmp_path)
    assert handler.handle_command("1", "/keywords") == "\n".join(
        ["Global keywords: urgent", "Your keywords: cake", "Your groups: none"]
    )
    assert handler.handle_command("1", "/addmykeyword birthday party") == "Added \"birthday party\"."
    assert handler.handle_command("1", "/addmykeyword Cake") == "\"Cake\" is already one of your keywords."
    assert registry.personal_keywords("1") == ["cake", "birthday party"]
    assert handler.handle_command("1", "/mykeywords") == "Your keywords: cake, birthday party"
    assert handler.handle_command("1", "/removemykeyword cake") == "Removed \"cake\"."
    assert handler.handle_command("1", "/removemykeyword cake") == "\"cake\" is not one of your keywords."
    assert handler.handle_command("1", "/addmykeyword") == "Usage: /addmykeyword &lt;word or phrase&gt;"
    assert registry.global_keywords() == ["urgent"]


def test_global_keywords_are_admin_only(tmp_path) -> None:
    handler, _, registry = _handler(tmp_path)
    assert handler.handle_command("1", "/addkeyword meeting") == ADMIN_ONLY
    assert handler.handle_command("9", "/addkeyword meeting") == "Added global keyword \"meeting\"."
    assert handler.handle_command("9", "/addkeyword Meeting") == "\"Meeting\" is already a global keyword."
    assert handler.handle_command("9", "/removekeyword urgent") == "Removed global keyword \"urgent\"."
    assert handler.handle_command("9", "/removekeyword urgent") == "\"urgent\" is not a global keyword."
    assert registry.global_keywords() == ["meeting"]
    assert registry.personal_keywords("9") == []


def test_start_files_an_access_request_and_tells_the_admins(tmp_path) -> None:
    handler, _, registry = _handler(tmp_path)
    reply = handler.handle_command("5", "/start", "Alice")
    assert reply.splitlines() == ["Your access request was sent to the admins.", "Request id: 5", "Name: Alice"]
    assert registry.pending_users() == {"5": "Alice"}
    notices = handler.drain_notices()
    assert notices == [("9", "Access request from Alice (5).\n/approve 5 or /reject 5")]
    assert handler.drain_notices() == []

    handler.handle_command("5", "/start", "Alice")
    assert handler.drain_notices() == []
    assert handler.handle_command("1", "/start") == "You are authorized. Send /help to see the commands."


def test_admin_approves_and_rejects_requests(tmp_path) -> None:
    handler, _, registry = _handler(tmp_path)
    handler.handle_command("5", "/start", "Alice")
    handler.handle_command("6", "/start", "Bob")
    handler.drain_notices()

    assert handler.handle_command("1", "/pending") == ADMIN_ONLY
    assert handler.handle_command("9", "/pending") == "\n".join(
        ["Pending access requests:", "5 - Alice", "6 - Bob"]
    )
    assert handler.handle_command("9", "/approve 5") == "Approved user 5 (Alice)."
    assert handler.handle_command("9", "/approve 5") == "User 5 is already authorized."
    assert handler.handle_command("9", "/reject 6") == "Rejected user 6."
    assert handler.handle_command("9", "/reject 6") == "No pending request from user 6."
    assert handler.handle_command("9", "/approve alice") == "Usage: /approve &lt;user id&gt;"
    assert handler.drain_notices() == [
        ("5", "Your access request was approved. Send /help to see the commands."),
        ("6", "Your access request was rejected."),
    ]
    assert registry.is_authorized("5")
    assert not registry.is_authorized("6")
    assert handler.handle_command("9", "/pending") == "No pending access requests."
    assert handler.handle_command("5", "/ok") == "<b>No active reminders to acknowledge</b>"


def test_user_and_admin_listings(tmp_path) -> None:
    handler, _, registry = _handler(tmp_path)
    assert handler.handle_command("9", "/users") == "\n".join(["Authorized users (2):", "1 (user)", "9 (admin)"])
    assert handler.handle_command("9", "/admins") == "\n".join(["Admins (1):", "9"])
    assert handler.handle_command("1", "/makeadmin 1") == ADMIN_ONLY
    assert handler.handle_command("9", "/makeadmin 1") == "User 1 is now an admin."
    assert handler.handle_command("9", "/makeadmin 1") == "User 1 is already an admin."
    assert registry.admins() == ["9", "1"]
    assert handler.drain_notices() == [("1", "You are now an admin. Send /help to see the admin commands.")]


def test_start_without_admins_still_records_the_request(tmp_path, caplog) -> None:
    handler, _, registry = _handler(tmp_path, admins=())
    with caplog.at_level(logging.WARNING):
        handler.handle_command("5", "/start")
    assert registry.pending_users() == {"5": ""}
    assert handler.drain_notices() == []
    assert "No admins" in caplog.text


def test_subscriptions(tmp_path) -> None:
    handler, _, registry = _handler(tmp_path)
    assert handler.handle_command("1", "/subscribe @Family") == "Subscribed to @family."
    assert handler.handle_command("1", "/subscribe @family") == "Already subscribed to @family."
    assert registry.subscribers("@family") == ["1"]
    assert handler.handle_command("1", "/subscribe @work") == "@work is not a monitored group."
    assert handler.handle_command("1", "/subscribe family").startswith("Usage: /subscribe")
    assert handler.handle_command("1", "/unsubscribe @family") == "Unsubscribed from @family."
    assert handler.handle_command("1", "/unsubscribe @family") == "Not subscribed to @family."


def test_subscribe_accepts_any_form_of_a_monitored_chat_id(tmp_path) -> None:
    handler, _, registry = _handler(tmp_path)
    assert handler.handle_command("1", "/subscribe chat_id:1234567890") == "Subscribed to chat_id:-1001234567890."
    assert registry.subscriptions_for("1") == ["chat_id:-1001234567890"]
    assert registry.subscribers("chat_id:1234567890") == ["1"]


def test_help_depends_on_role(tmp_path) -> None:
    handler, _, _ = _handler(tmp_path, mode="markdown")
    assert handler.parse_mode == "md"
    assert handler.handle_command("1", "/help") == HELP_TEXT
    assert handler.handle_command("9", "/help") == f"{HELP_TEXT}\n\nAdmin commands:\n{ADMIN_HELP_TEXT}"


def test_custom_authorization(tmp_path) -> None:
    handler, _, _ = _handler(tmp_path, authorize=lambda user_id: user_id == "99")
    assert handler.handle_command("99", "/status") == "No active reminder."
    assert handler.handle_command("1", "/help") == NOT_AUTHORIZED
