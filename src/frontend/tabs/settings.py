"""Settings tab: every config.json section except sources."""

from __future__ import annotations

from typing import Any, Iterator

from textual import on
from textual.containers import Container, Horizontal, ScrollableContainer, Vertical
from textual.widget import Widget
from textual.widgets import ContentSwitcher, DataTable, Input, Select, Static, Switch, TextArea

from core.config import DEFAULT_INTERVAL_MINUTES

from ..validators import format_denylist, parse_denylist, parse_intervals, parse_lines

# Widget id -> (section, key path, default). The defaults mirror what the
# watcher assumes when a key is missing.
SWITCH_FIELDS: dict[str, tuple[str, tuple[str, ...], bool]] = {
    "matching-fuzzy": ("matching", ("fuzzy_matching",), True),
    "matching-diacritics": ("matching", ("normalize_diacritics",), True),
    "matching-emojis": ("matching", ("remove_emojis",), True),
    "matching-leetspeak": ("matching", ("handle_leetspeak",), True),
    "matching-abbreviations": ("matching", ("expand_abbreviations",), True),
    "matching-stop-words": ("matching", ("remove_stop_words",), True),
    "matching-plurals": ("matching", ("handle_plurals",), True),
    "matching-phrases": ("matching", ("multi_word_keywords",), True),
    "logging-enabled": ("logging", ("enabled",), False),
    "logging-console": ("logging", ("console",), True),
    "logging-file-enabled": ("logging", ("file", "enabled"), False),
    "logging-redact-enabled": ("logging", ("redact", "enabled"), False),
    "catch-up-enabled": ("catch_up", ("enabled",), False),
}

INT_FIELDS: dict[str, tuple[str, tuple[str, ...], int]] = {
    "matching-threshold-short": ("matching", ("fuzzy_threshold", "short"), 1),
    "matching-threshold-medium": ("matching", ("fuzzy_threshold", "medium"), 2),
    "matching-threshold-long": ("matching", ("fuzzy_threshold", "long"), 3),
    "reminders-race-window": ("reminders", ("race_window_seconds",), 2),
    "reminders-retention": ("reminders", ("history_retention_days",), 7),
    "reminders-purge": ("reminders", ("purge_interval_hours",), 168),
    "notifications-snippet": ("notifications", ("snippet_chars",), 400),
    "notifications-retries": ("notifications", ("retry_attempts",), 3),
    "logging-file-max-bytes": ("logging", ("file", "max_bytes"), 5 * 1024 * 1024),
    "logging-file-backup": ("logging", ("file", "backup_count"), 5),
    "catch-up-messages": ("catch_up", ("messages_per_source",), 50),
    "storage-retention": ("storage", ("detection_retention_days",), 90),
}

SELECT_FIELDS: dict[str, tuple[str, tuple[str, ...], list[str]]] = {
    "notifications-method": ("notifications", ("notification_method",), ["saved_messages", "bot"]),
    "logging-level": ("logging", ("level",), ["DEBUG", "INFO", "WARNING", "ERROR"]),
}

SECTIONS = [
    ("matching", "Matching", "Normalization and fuzzy thresholds"),
    ("reminders", "Reminders", "Escalation schedule and windows"),
    ("notifications", "Notifications", "Delivery method and retries"),
    ("logging", "Logging", "Console/file logging and redaction"),
    ("catch_up", "Catch-up", "Startup backfill scan"),
    ("storage", "Storage", "Detection log retention"),
]


def _section_id(section: str) -> str:
    return section.replace("_", "-")


def _lookup(data: dict[str, Any], path: tuple[str, ...], default: Any) -> Any:
    node: Any = data
    for key in path:
        if not isinstance(node, dict) or key not in node:
            return default
        node = node[key]
    return node


def _labelled(label: str, widget: Widget) -> Iterator[Widget]:
    yield Static(label, classes="form-label")
    yield widget


class SettingsTab(Container):
    """Section list on the left, the selected section's form on the right."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._filling = False
        self._ready = False

    def compose(self):
        with Vertical(id="settings-panel"):
            with Horizontal(id="settings-body"):
                with Container(id="settings-left"):
                    yield DataTable(id="settings-table", cursor_type="row")
                with Container(id="settings-right"):
                    with ContentSwitcher(id="settings-forms", initial="settings-matching"):
                        with ScrollableContainer(id="settings-matching"):
                            yield from self._matching_form()
                        with ScrollableContainer(id="settings-reminders"):
                            yield from self._reminders_form()
                        with ScrollableContainer(id="settings-notifications"):
                            yield from self._notifications_form()
                        with ScrollableContainer(id="settings-logging"):
                            yield from self._logging_form()
                        with ScrollableContainer(id="settings-catch-up"):
                            yield Static("Catch-up", classes="settings-title")
                            yield from _labelled("enabled", Switch(id="catch-up-enabled"))
                            yield from _labelled("messages_per_source", Input(placeholder="50", id="catch-up-messages"))
                            yield Static("", id="catch-up-error", classes="settings-error")
                        with ScrollableContainer(id="settings-storage"):
                            yield Static("Storage", classes="settings-title")
                            yield from _labelled(
                                "detection_retention_days (0 keeps everything)",
                                Input(placeholder="90", id="storage-retention"),
                            )
                            yield Static("", id="storage-error", classes="settings-error")

    def _matching_form(self) -> Iterator[Widget]:
        yield Static("Matching", classes="settings-title")
        for switch_id, (_, path, _) in SWITCH_FIELDS.items():
            if switch_id.startswith("matching-"):
                yield from _labelled(path[-1], Switch(value=True, id=switch_id))
        yield from _labelled(
            "fuzzy_threshold.short (keywords under 5 chars)", Input(placeholder="1", id="matching-threshold-short")
        )
        yield from _labelled("fuzzy_threshold.medium (5-8 chars)", Input(placeholder="2", id="matching-threshold-medium"))
        yield from _labelled("fuzzy_threshold.long (9+ chars)", Input(placeholder="3", id="matching-threshold-long"))
        yield from _labelled("denylist (extra words per keyword, keyword: word, word)", TextArea(id="matching-denylist"))
        yield Static("", id="matching-error", classes="settings-error")

    def _reminders_form(self) -> Iterator[Widget]:
        yield Static("Reminders", classes="settings-title")
        yield from _labelled(
            "intervals_minutes (the last one repeats)",
            Input(placeholder="1, 2, 5, 15, 60, 90", id="reminders-intervals"),
        )
        yield from _labelled("race_window_seconds", Input(placeholder="2", id="reminders-race-window"))
        yield from _labelled("history_retention_days", Input(placeholder="7", id="reminders-retention"))
        yield from _labelled("purge_interval_hours", Input(placeholder="168", id="reminders-purge"))
        yield Static("", id="reminders-error", classes="settings-error")

    def _notifications_form(self) -> Iterator[Widget]:
        yield Static("Notifications", classes="settings-title")
        methods = SELECT_FIELDS["notifications-method"][2]
        yield from _labelled(
            "notification_method",
            Select([(method, method) for method in methods], id="notifications-method", allow_blank=False),
        )
        yield from _labelled("snippet_chars", Input(placeholder="400", id="notifications-snippet"))
        yield from _labelled("retry_attempts (bot only)", Input(placeholder="3", id="notifications-retries"))
        yield Static("", id="notifications-error", classes="settings-error")

    def _logging_form(self) -> Iterator[Widget]:
        yield Static("Logging", classes="settings-title")
        levels = SELECT_FIELDS["logging-level"][2]
        yield from _labelled("enabled", Switch(id="logging-enabled"))
        yield from _labelled(
            "level", Select([(level, level) for level in levels], id="logging-level", allow_blank=False)
        )
        yield from _labelled("console", Switch(id="logging-console"))
        yield from _labelled("file.enabled", Switch(id="logging-file-enabled"))
        yield from _labelled("file.path", Input(placeholder="logs/nagwatch.log", id="logging-file-path"))
        yield from _labelled("file.max_bytes", Input(placeholder="5242880", id="logging-file-max-bytes"))
        yield from _labelled("file.backup_count", Input(placeholder="5", id="logging-file-backup"))
        yield from _labelled("redact.enabled", Switch(id="logging-redact-enabled"))
        yield from _labelled("redact.patterns (env var names, one per line)", TextArea(id="logging-redact-patterns"))
        yield Static("", id="logging-error", classes="settings-error")

    def on_mount(self) -> None:
        table = self.query_one("#settings-table", DataTable)
        table.add_column("section", key="section", width=16)
        table.add_column("description", key="description", width=36)
        for key, label, description in SECTIONS:
            table.add_row(label, description, key=key)
        table.zebra_stripes = True
        self._ready = True
        self.reload_from_config()

    # -- config access --------------------------------------------------

    def _config(self) -> dict[str, Any]:
        return self.app.config_state.data or {}

    def _value(self, section: str, path: tuple[str, ...], default: Any) -> Any:
        return _lookup(self._config().get(section) or {}, path, default)

    def _store(self, section: str, path: tuple[str, ...], value: Any) -> None:
        """Write one nested value; unchanged values leave the document clean."""

        current = self._config().get(section)
        data = dict(current) if isinstance(current, dict) else {}
        if _lookup(data, path, object()) == value:
            return
        node = data
        for key in path[:-1]:
            child = node.get(key)
            node[key] = dict(child) if isinstance(child, dict) else {}
            node = node[key]
        node[path[-1]] = value
        self.app.update_config_section(section, data)

    # -- form filling ---------------------------------------------------

    def reload_from_config(self) -> None:
        if not self._ready:
            return
        self._filling = True
        for section, _, _ in SECTIONS:
            self._show_error(section, "")
        for switch_id, (section, path, default) in SWITCH_FIELDS.items():
            self.query_one(f"#{switch_id}", Switch).value = bool(self._value(section, path, default))
        for input_id, (section, path, default) in INT_FIELDS.items():
            self.query_one(f"#{input_id}", Input).value = str(self._value(section, path, default))
        for select_id, (section, path, allowed) in SELECT_FIELDS.items():
            self._fill_select(select_id, section, self._value(section, path, allowed[0]), allowed)

        intervals = self._value("reminders", ("intervals_minutes",), None) or list(DEFAULT_INTERVAL_MINUTES)
        self.query_one("#reminders-intervals", Input).value = ", ".join(str(value) for value in intervals)
        self.query_one("#logging-file-path", Input).value = str(
            self._value("logging", ("file", "path"), "logs/nagwatch.log")
        )
        self.query_one("#logging-redact-patterns", TextArea).text = "\n".join(
            self._value("logging", ("redact", "patterns"), [])
        )
        denylist = self._value("matching", ("denylist",), {})
        self.query_one("#matching-denylist", TextArea).text = format_denylist(denylist if isinstance(denylist, dict) else {})
        self._filling = False

        self._apply_enabled_state()

    def _fill_select(self, select_id: str, section: str, value: Any, allowed: list[str]) -> None:
        select = self.query_one(f"#{select_id}", Select)
        if value in allowed:
            select.value = value
            self._show_error(section, "")
        else:
            select.value = allowed[0]
            self._show_error(section, f"Invalid value: {value}")

    def _apply_enabled_state(self) -> None:
        file_enabled = bool(self._value("logging", ("file", "enabled"), False))
        for input_id in ("#logging-file-path", "#logging-file-max-bytes", "#logging-file-backup"):
            self.query_one(input_id, Input).disabled = not file_enabled
        redact_enabled = bool(self._value("logging", ("redact", "enabled"), False))
        self.query_one("#logging-redact-patterns", TextArea).disabled = not redact_enabled
        method = self._value("notifications", ("notification_method",), "saved_messages")
        self.query_one("#notifications-retries", Input).disabled = method != "bot"

    def _show_error(self, section: str, message: str) -> None:
        self.query_one(f"#{_section_id(section)}-error", Static).update(message)

    # -- events ---------------------------------------------------------

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        switcher = self.query_one("#settings-forms", ContentSwitcher)
        switcher.current = f"settings-{_section_id(str(event.row_key.value))}"

    @on(Switch.Changed)
    def _on_switch(self, event: Switch.Changed) -> None:
        field = SWITCH_FIELDS.get(event.switch.id or "")
        if self._filling or field is None:
            return
        section, path, _ = field
        self._store(section, path, bool(event.value))
        self._apply_enabled_state()

    @on(Select.Changed)
    def _on_select(self, event: Select.Changed) -> None:
        field = SELECT_FIELDS.get(event.select.id or "")
        if self._filling or field is None or event.value is Select.BLANK:
            return
        section, path, _ = field
        self._store(section, path, event.value)
        self._apply_enabled_state()

    @on(Input.Changed)
    def _on_input(self, event: Input.Changed) -> None:
        if self._filling:
            return
        input_id = event.input.id or ""
        if input_id in INT_FIELDS:
            section, path, _ = INT_FIELDS[input_id]
            value = event.value.strip()
            if not value.isdigit():
                self._show_error(section, "Enter a non-negative integer" if value else "")
                return
            self._show_error(section, "")
            self._store(section, path, int(value))
        elif input_id == "reminders-intervals":
            minutes, error = parse_intervals(event.value)
            self._show_error("reminders", error or "")
            if minutes is not None:
                self._store("reminders", ("intervals_minutes",), minutes)
        elif input_id == "logging-file-path":
            self._store("logging", ("file", "path"), event.value.strip())

    @on(TextArea.Changed, "#logging-redact-patterns")
    def _on_redact_patterns(self, event: TextArea.Changed) -> None:
        if not self._filling:
            self._store("logging", ("redact", "patterns"), parse_lines(event.text_area.text))

    @on(TextArea.Changed, "#matching-denylist")
    def _on_denylist(self, event: TextArea.Changed) -> None:
        if self._filling:
            return
        denylist, error = parse_denylist(event.text_area.text)
        self._show_error("matching", error or "")
        if denylist is not None:
            self._store("matching", ("denylist",), denylist)
