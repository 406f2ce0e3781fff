"""Monitored groups: the ``sources`` list of config.json."""

from __future__ import annotations

from typing import Any, Optional

from textual import on
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Button, DataTable, Input, Static, Switch
from textual.widgets.data_table import RowDoesNotExist

from adapters.json_registry import KeywordRegistryView
from core.source_keys import parse_source_key

from ..modals import AddSourceScreen, DeleteConfirmScreen


def _yes_no(value: bool) -> str:
    return "yes" if value else "no"


class SourcesTab(Container):
    """Table of groups with an edit form; subscriber counts come from keywords.json."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._selected: Optional[int] = None
        self._filling = False
        self._ready = False

    def compose(self):
        with Vertical(id="sources-panel"):
            with Horizontal(id="sources-body"):
                with Container(id="sources-left"):
                    yield DataTable(id="sources-table", cursor_type="row")
                with Container(id="sources-right"):
                    yield Static("Group details", id="sources-title")
                    yield Static("source_key", classes="form-label")
                    yield Input(placeholder="@group or chat_id:-1001234567890", id="source-key-input")
                    yield Static("", id="source-key-error", classes="form-error")
                    yield Static("alias", classes="form-label")
                    yield Input(placeholder="Shown in alerts instead of the key", id="alias-input")
                    yield Static("enabled", classes="form-label")
                    yield Switch(value=False, id="enabled-toggle")
                    yield Static("", id="source-type", classes="subtle")
                    yield Static("", id="source-subscribers", classes="subtle")
            with Horizontal(id="sources-actions"):
                yield Button("Add group", id="add-source", variant="success")
                yield Button("Remove", id="delete-source", variant="error")

    def on_mount(self) -> None:
        table = self.query_one("#sources-table", DataTable)
        for label, width in (("on", 4), ("source_key", 30), ("alias", 20), ("kind", 10), ("subs", 6)):
            table.add_column(label, key=label, width=width)
        table.zebra_stripes = True
        self._ready = True
        self.reload_from_config()

    # -- data access ----------------------------------------------------

    def _sources(self) -> list[dict[str, Any]]:
        sources = (self.app.config_state.data or {}).get("sources")
        return sources if isinstance(sources, list) else []

    def _selected_source(self) -> Optional[dict[str, Any]]:
        sources = self._sources()
        if self._selected is None or self._selected >= len(sources):
            return None
        return sources[self._selected]

    def _commit(self, sources: list[dict[str, Any]]) -> None:
        self.app.update_config_section("sources", sources)

    def _subscribers(self, source_key: Optional[str]) -> list[str]:
        if not source_key:
            return []
        try:
            registry = KeywordRegistryView(self.app.keywords_state.data)
        except ValueError:
            return []
        return registry.subscribers(source_key)

    # -- rendering ------------------------------------------------------

    def reload_from_config(self) -> None:
        if not self._ready:
            return
        table = self.query_one("#sources-table", DataTable)
        table.clear()
        for index, source in enumerate(self._sources()):
            key = str(source.get("source_key", ""))
            info = parse_source_key(key)
            table.add_row(
                _yes_no(source.get("enabled", True)),
                key,
                source.get("alias", ""),
                info.kind,
                str(len(self._subscribers(info.normalized))),
                key=str(index),
            )
        self._fill_form()

    def _set_cell(self, column: str, value: str) -> None:
        table = self.query_one("#sources-table", DataTable)
        try:
            table.update_cell(str(self._selected), column, value)
        except RowDoesNotExist:
            self.reload_from_config()

    def _fill_form(self) -> None:
        source = self._selected_source()
        key_input = self.query_one("#source-key-input", Input)
        alias_input = self.query_one("#alias-input", Input)
        toggle = self.query_one("#enabled-toggle", Switch)

        self._filling = True
        for widget in (key_input, alias_input, toggle):
            widget.disabled = source is None
        key_input.value = str(source.get("source_key", "")) if source else ""
        alias_input.value = source.get("alias", "") if source else ""
        toggle.value = bool(source.get("enabled", True)) if source else False
        self._filling = False

        self._show_error("")
        self._show_key_details(parse_source_key(key_input.value) if source else None)
        self.query_one("#delete-source", Button).disabled = source is None

    def _show_key_details(self, info) -> None:
        kind = self.query_one("#source-type", Static)
        subscribers = self.query_one("#source-subscribers", Static)
        if info is None:
            kind.update("")
            subscribers.update("")
            return
        kind.update(f"kind: {info.kind}")
        users = self._subscribers(info.normalized)
        subscribers.update("subscribers: " + (", ".join(users) or "none"))

    def _show_error(self, message: str) -> None:
        self.query_one("#source-key-error", Static).update(message)

    # -- events ---------------------------------------------------------

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        self._selected = int(event.row_key.value)
        self._fill_form()

    @on(Input.Changed, "#source-key-input")
    def _on_key_typing(self) -> None:
        if not self._filling:
            self._show_error("")

    @on(Input.Submitted, "#source-key-input")
    def _on_key_submitted(self, event: Input.Submitted) -> None:
        source = self._selected_source()
        if self._filling or source is None:
            return
        info = parse_source_key(event.value)
        if info.normalized is None:
            self._show_error(info.error or "invalid source_key")
            return
        source["source_key"] = info.normalized
        self._commit(self._sources())
        self._set_cell("source_key", info.normalized)
        self._set_cell("kind", info.kind)
        self._set_cell("subs", str(len(self._subscribers(info.normalized))))
        self._filling = True
        event.input.value = info.normalized
        self._filling = False
        self._show_key_details(info)

    @on(Input.Changed, "#alias-input")
    def _on_alias_changed(self, event: Input.Changed) -> None:
        source = self._selected_source()
        if self._filling or source is None:
            return
        alias = event.value.strip()
        if alias == source.get("alias", ""):
            return
        if alias:
            source["alias"] = alias
        else:
            source.pop("alias", None)
        self._commit(self._sources())
        self._set_cell("alias", alias)

    @on(Switch.Changed, "#enabled-toggle")
    def _on_enabled_changed(self, event: Switch.Changed) -> None:
        source = self._selected_source()
        if self._filling or source is None or bool(event.value) == bool(source.get("enabled", True)):
            return
        source["enabled"] = bool(event.value)
        self._commit(self._sources())
        self._set_cell("on", _yes_no(event.value))

    @on(Button.Pressed, "#add-source")
    def _on_add(self) -> None:
        self.app.push_screen(AddSourceScreen(), self._add_source)

    @on(Button.Pressed, "#delete-source")
    def _on_delete(self) -> None:
        source = self._selected_source()
        if source is not None:
            subject = str(source.get("source_key", ""))
            self.app.push_screen(DeleteConfirmScreen("Remove group?", subject), self._remove_selected)

    def _add_source(self, payload: dict[str, Any] | None) -> None:
        if not payload:
            return
        sources = self._sources()
        if any(source.get("source_key") == payload["source_key"] for source in sources):
            self.app.notify(f"{payload['source_key']} is already listed", severity="warning")
            return
        self._commit(sources + [payload])
        self.reload_from_config()

    def _remove_selected(self, confirmed: bool | None) -> None:
        if not confirmed or self._selected_source() is None:
            return
        sources = self._sources()
        del sources[self._selected]
        self._commit(sources)
        self._selected = None
        self.reload_from_config()
