"""Bot command surface.

Parsing and replies live in `CommandHandler.handle_command` so they can be
tested without Telegram; `register` wires the handler into a Telethon client.
Messages for other people (admins hearing about an access request, a user
hearing about the decision) are queued and sent by the registered handler.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Tuple

from telethon import events

from adapters.json_registry import JsonKeywordRegistry
from adapters.notification_formatting import escape_text, format_acknowledgment
from core.scheduler import ReminderScheduler
from core.source_keys import expand_source_key_variants, parse_source_key

LOGGER = logging.getLogger(__name__)

HELP_TEXT = "\n".join(
    [
        "/ok - acknowledge and stop reminders",
        "/status - show the pending reminder",
        "/keywords - list global keywords, your keywords and groups",
        "/mykeywords - list your personal keywords",
        "/addmykeyword <word or phrase> - add a personal keyword",
        "/removemykeyword <word or phrase> - remove a personal keyword",
        "/subscribe <@group or chat_id:...> - get personal keyword alerts from a group",
        "/unsubscribe <@group or chat_id:...> - stop personal keyword alerts from a group",
    ]
)

ADMIN_HELP_TEXT = "\n".join(
    [
        "/addkeyword <word or phrase> - add a global keyword",
        "/removekeyword <word or phrase> - remove a global keyword",
        "/pending - show access requests",
        "/approve <user id> - grant access",
        "/reject <user id> - decline an access request",
        "/users - list authorized users",
        "/admins - list admins",
        "/makeadmin <user id> - promote a user to admin",
    ]
)

NOT_AUTHORIZED = "You are not authorized to use this bot. Send /start to request access."
ADMIN_ONLY = "Admin access required."

# Who may run a command.
USER = "user"
ADMIN = "admin"

Notice = Tuple[str, str]


def _user_id_argument(argument: str) -> Optional[str]:
    value = argument.strip()
    return value if value.isdigit() else None


class CommandHandler:
    """Answer bot commands; keyword and access management is admin-only."""

    def __init__(
        self,
        scheduler: ReminderScheduler,
        registry: JsonKeywordRegistry,
        monitored_sources: set[str],
        mode: str = "html",
        authorize: Optional[Callable[[str], bool]] = None,
        is_admin: Optional[Callable[[str], bool]] = None,
    ) -> None:
        self._scheduler = scheduler
        self._registry = registry
        self._monitored_sources = monitored_sources
        self._mode = mode
        self._authorize = authorize or registry.is_authorized
        self._is_admin = is_admin or registry.is_admin
        self._notices: List[Notice] = []
        self._commands: Dict[str, Tuple[Callable[[str, str], str], str]] = {
            "help": (self._help, USER),
            "ok": (self._ok, USER),
            "status": (self._status, USER),
            "keywords": (self._keywords, USER),
            "mykeywords": (self._my_keywords, USER),
            "addmykeyword": (self._add_my_keyword, USER),
            "removemykeyword": (self._remove_my_keyword, USER),
            "subscribe": (self._subscribe, USER),
            "unsubscribe": (self._unsubscribe, USER),
            "addkeyword": (self._add_global_keyword, ADMIN),
            "removekeyword": (self._remove_global_keyword, ADMIN),
            "pending": (self._pending, ADMIN),
            "approve": (self._approve, ADMIN),
            "reject": (self._reject, ADMIN),
            "users": (self._users, ADMIN),
            "admins": (self._admins, ADMIN),
            "makeadmin": (self._make_admin, ADMIN),
        }

    @property
    def parse_mode(self) -> str:
        return "html" if self._mode == "html" else "md"

    def handle_command(self, user_id: str, text: str, sender_name: str = "") -> Optional[str]:
        """Return the reply for one command message, or None to stay silent."""

        if not text or not text.startswith("/"):
            return None
        head, _, argument = text.strip().partition(" ")
        # Group chats address bots as /command@botname.
        name = head[1:].split("@", 1)[0].lower()
        if name == "start":
            return self._start(user_id, sender_name)
        entry = self._commands.get(name)
        if entry is None:
            return None
        command, access = entry
        if not self._authorize(user_id):
            LOGGER.warning("Ignoring /%s from unauthorized user %s", name, user_id)
            return NOT_AUTHORIZED
        if access == ADMIN and not self._is_admin(user_id):
            LOGGER.warning("Refusing admin command /%s from user %s", name, user_id)
            return ADMIN_ONLY
        return command(user_id, argument.strip())

    def drain_notices(self) -> List[Notice]:
        """Hand over queued (user id, text) messages for other people."""

        notices, self._notices = self._notices, []
        return notices

    def register(self, client, *, chats=None, outgoing: Optional[bool] = None) -> None:
        """Attach the handler to a Telethon client."""

        event_filter = events.NewMessage(pattern=r"^/", chats=chats, outgoing=outgoing)

        async def on_command(event) -> None:
            try:
                sender = await event.get_sender()
                name = getattr(sender, "first_name", None) or getattr(sender, "username", None) or ""
                reply = self.handle_command(str(event.sender_id), event.raw_text or "", name)
                if reply:
                    await event.reply(reply, parse_mode=self.parse_mode)
            except Exception:
                LOGGER.exception("Command handling failed for %r", event.raw_text)
            for recipient, text in self.drain_notices():
                try:
                    await client.send_message(int(recipient), text, parse_mode=self.parse_mode)
                except Exception:
                    LOGGER.exception("Could not send a notice to user %s", recipient)

        client.add_event_handler(on_command, event_filter)

    def _esc(self, value: str) -> str:
        return escape_text(value, self._mode)

    def _notify(self, user_id: str, text: str) -> None:
        self._notices.append((str(user_id), text))

    # -- everyone ---------------------------------------------------------

    def _start(self, user_id: str, sender_name: str) -> str:
        if self._authorize(user_id):
            return "You are authorized. Send /help to see the commands."
        label = sender_name or "unknown"
        if self._registry.add_pending(user_id, sender_name):
            LOGGER.info("Access request from user %s (%s)", user_id, label)
            admins = self._registry.admins()
            if not admins:
                LOGGER.warning("No admins in keywords.json; request from %s waits for a manual edit", user_id)
            for admin in admins:
                self._notify(
                    admin,
                    f"Access request from {self._esc(label)} ({user_id}).\n/approve {user_id} or /reject {user_id}",
                )
        return "\n".join(
            [
                "Your access request was sent to the admins.",
                f"Request id: {user_id}",
                f"Name: {self._esc(label)}",
            ]
        )

    # -- authorized users -------------------------------------------------

    def _help(self, user_id: str, _argument: str) -> str:
        text = HELP_TEXT
        if self._is_admin(user_id):
            text = f"{HELP_TEXT}\n\nAdmin commands:\n{ADMIN_HELP_TEXT}"
        return self._esc(text)

    def _ok(self, user_id: str, _argument: str) -> str:
        result = self._scheduler.acknowledge(user_id)
        return format_acknowledgment(result, self._mode)

    def _status(self, user_id: str, _argument: str) -> str:
        reminder = self._scheduler.active_for(user_id)
        if reminder is None:
            return "No active reminder."
        total = reminder.max_fires - 1
        next_at = reminder.next_fire_at.astimezone().strftime("%H:%M:%S")
        return "\n".join(
            [
                f"Active reminder for \"{self._esc(reminder.keyword)}\"",
                f"Sent {reminder.fire_count}/{total}, next at {next_at}.",
                "Reply /ok to acknowledge.",
            ]
        )

    def _keywords(self, user_id: str, _argument: str) -> str:
        global_keywords = self._registry.global_keywords()
        personal = self._registry.personal_keywords(user_id)
        groups = self._registry.subscriptions_for(user_id)
        lines = ["Global keywords: " + (self._esc(", ".join(global_keywords)) or "none")]
        lines.append("Your keywords: " + (self._esc(", ".join(personal)) or "none"))
        lines.append("Your groups: " + (self._esc(", ".join(groups)) or "none"))
        return "\n".join(lines)

    def _my_keywords(self, user_id: str, _argument: str) -> str:
        personal = self._registry.personal_keywords(user_id)
        if not personal:
            return self._esc("You have no personal keywords. Add one with /addmykeyword <word or phrase>.")
        return "Your keywords: " + self._esc(", ".join(personal))

    def _add_my_keyword(self, user_id: str, argument: str) -> str:
        if not argument:
            return self._esc("Usage: /addmykeyword <word or phrase>")
        if self._registry.add_personal_keyword(user_id, argument):
            LOGGER.info("User %s added personal keyword %r", user_id, argument)
            return f"Added \"{self._esc(argument)}\"."
        return f"\"{self._esc(argument)}\" is already one of your keywords."

    def _remove_my_keyword(self, user_id: str, argument: str) -> str:
        if not argument:
            return self._esc("Usage: /removemykeyword <word or phrase>")
        if self._registry.remove_personal_keyword(user_id, argument):
            LOGGER.info("User %s removed personal keyword %r", user_id, argument)
            return f"Removed \"{self._esc(argument)}\"."
        return f"\"{self._esc(argument)}\" is not one of your keywords."

    def _monitored_key(self, source_key: str) -> Optional[str]:
        """The configured form of a group key, matching any chat_id variant."""

        if not self._monitored_sources:
            return source_key
        for variant in sorted(expand_source_key_variants(source_key)):
            if variant in self._monitored_sources:
                return variant
        return None

    def _subscribe(self, user_id: str, argument: str) -> str:
        info = parse_source_key(argument)
        if info.normalized is None:
            return self._esc(f"Usage: /subscribe <@group or chat_id:...> ({info.error})")
        group = self._monitored_key(info.normalized)
        if group is None:
            return f"{self._esc(info.normalized)} is not a monitored group."
        if self._registry.subscribe(user_id, group):
            LOGGER.info("User %s subscribed to %s", user_id, group)
            return f"Subscribed to {self._esc(group)}."
        return f"Already subscribed to {self._esc(group)}."

    def _unsubscribe(self, user_id: str, argument: str) -> str:
        info = parse_source_key(argument)
        if info.normalized is None:
            return self._esc(f"Usage: /unsubscribe <@group or chat_id:...> ({info.error})")
        if self._registry.unsubscribe(user_id, info.normalized):
            LOGGER.info("User %s unsubscribed from %s", user_id, info.normalized)
            return f"Unsubscribed from {self._esc(info.normalized)}."
        return f"Not subscribed to {self._esc(info.normalized)}."

    # -- admins -----------------------------------------------------------

    def _add_global_keyword(self, user_id: str, argument: str) -> str:
        if not argument:
            return self._esc("Usage: /addkeyword <word or phrase>")
        if self._registry.add_global_keyword(argument):
            LOGGER.info("Admin %s added global keyword %r", user_id, argument)
            return f"Added global keyword \"{self._esc(argument)}\"."
        return f"\"{self._esc(argument)}\" is already a global keyword."

    def _remove_global_keyword(self, user_id: str, argument: str) -> str:
        if not argument:
            return self._esc("Usage: /removekeyword <word or phrase>")
        if self._registry.remove_global_keyword(argument):
            LOGGER.info("Admin %s removed global keyword %r", user_id, argument)
            return f"Removed global keyword \"{self._esc(argument)}\"."
        return f"\"{self._esc(argument)}\" is not a global keyword."

    def _pending(self, _user_id: str, _argument: str) -> str:
        pending = self._registry.pending_users()
        if not pending:
            return "No pending access requests."
        lines = ["Pending access requests:"]
        lines.extend(f"{request_id} - {self._esc(name or 'unknown')}" for request_id, name in pending.items())
        return "\n".join(lines)

    def _approve(self, user_id: str, argument: str) -> str:
        target = _user_id_argument(argument)
        if target is None:
            return self._esc("Usage: /approve <user id>")
        name = self._registry.pending_users().get(target) or "unknown"
        if not self._registry.approve(target):
            return f"User {target} is already authorized."
        LOGGER.info("Admin %s approved user %s", user_id, target)
        self._notify(target, "Your access request was approved. Send /help to see the commands.")
        return f"Approved user {target} ({self._esc(name)})."

    def _reject(self, user_id: str, argument: str) -> str:
        target = _user_id_argument(argument)
        if target is None:
            return self._esc("Usage: /reject <user id>")
        if not self._registry.reject(target):
            return f"No pending request from user {target}."
        LOGGER.info("Admin %s rejected user %s", user_id, target)
        self._notify(target, "Your access request was rejected.")
        return f"Rejected user {target}."

    def _users(self, _user_id: str, _argument: str) -> str:
        users = self._registry.authorized_users()
        if not users:
            return "No authorized users."
        lines = [f"Authorized users ({len(users)}):"]
        lines.extend(f"{user} ({'admin' if self._registry.is_admin(user) else 'user'})" for user in users)
        return "\n".join(lines)

    def _admins(self, _user_id: str, _argument: str) -> str:
        admins = self._registry.admins()
        if not admins:
            return "No admins."
        return "\n".join([f"Admins ({len(admins)}):", *admins])

    def _make_admin(self, user_id: str, argument: str) -> str:
        target = _user_id_argument(argument)
        if target is None:
            return self._esc("Usage: /makeadmin <user id>")
        if not self._registry.make_admin(target):
            return f"User {target} is already an admin."
        LOGGER.info("Admin %s promoted user %s", user_id, target)
        self._notify(target, "You are now an admin. Send /help to see the admin commands.")
        return f"User {target} is now an admin."
