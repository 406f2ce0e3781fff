"""Main Textual app for the nagwatch config panel."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Center, Container, Horizontal, Vertical
from textual.css.query import NoMatches
from textual.widgets import Button, ContentSwitcher, Footer, Static, Tab, Tabs

from adapters.json_registry import empty_registry

from .constants import CONFIG_PATH, DEFAULT_KEYWORDS_PATH, PROJECT_ROOT, TELEGRAM_BLUE
from .modals import ReloadConfirmScreen, UnsavedChangesScreen
from .state import ConfigState, load_document, save_document
from .tabs.history import HistoryTab
from .tabs.keywords import KeywordsTab
from .tabs.people import PeopleTab
from .tabs.settings import SettingsTab
from .tabs.sources import SourcesTab


class ConfigPanelApp(App):
    """Config panel editing config.json and keywords.json side by side."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.config_state = ConfigState()
        self.keywords_state = ConfigState()

    BINDINGS = [
        ("ctrl+s", "save_config", "Save"),
        ("ctrl+r", "reload_config", "Reload"),
        ("q", "request_quit", "Quit"),
        ("ctrl+c", "request_quit", "Quit"),
    ]

    CSS_PATH = "app.tcss"

    def compose(self) -> ComposeResult:
        with Container(id="header"):
            with Horizontal(id="header-row"):
                with Vertical(id="header-left"):
                    yield Static(self._title_text(), id="title")
                    yield Static("keyword alerts that nag until /ok", classes="subtle")
                with Vertical(id="header-right"):
                    yield Static("db: nagwatch.db", classes="subtle")
                    yield Static("", id="header-status")
                    yield Horizontal(
                        Button("Save", id="save-btn"),
                        Button("Reload", id="reload-btn"),
                        id="header-actions",
                    )

        with Container(id="tabs-bar"):
            with Center(id="tabs-center"):
                yield Tabs(
                    Tab("Sources", id="sources"),
                    Tab("Keywords", id="keywords"),
                    Tab("People", id="people"),
                    Tab("Settings", id="settings"),
                    Tab("History", id="history"),
                    id="tabs",
                )

        with ContentSwitcher(id="content"):
            yield SourcesTab(id="sources")
            yield KeywordsTab(id="keywords")
            yield PeopleTab(id="people")
            yield SettingsTab(id="settings")
            yield HistoryTab(id="history")
        yield Footer()

    def on_mount(self) -> None:
        self._load_config()
        self._set_active_tab("sources")

    @property
    def dirty(self) -> bool:
        return self.config_state.dirty or self.keywords_state.dirty

    @property
    def keywords_path(self) -> Path:
        data = self.config_state.data or {}
        configured = data.get("keywords_path")
        if not configured:
            return DEFAULT_KEYWORDS_PATH
        path = Path(configured)
        return path if path.is_absolute() else PROJECT_ROOT / path

    def on_tabs_tab_activated(self, event: Tabs.TabActivated) -> None:
        if event.tab.id:
            self._set_active_tab(event.tab.id)

    def _set_active_tab(self, tab_id: str) -> None:
        switcher = self.query_one("#content", ContentSwitcher)
        switcher.current = tab_id

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "save-btn":
            self.action_save_config()
        elif event.button.id == "reload-btn":
            self.action_reload_config()

    def action_save_config(self) -> None:
        self._save_config()

    def action_reload_config(self) -> None:
        if self.dirty:
            self.push_screen(ReloadConfirmScreen(), self._handle_reload_choice)
        else:
            self._load_config()

    def action_request_quit(self) -> None:
        if self.dirty:
            self.push_screen(UnsavedChangesScreen(), self._handle_exit_choice)
        else:
            self.exit()

    def _handle_exit_choice(self, choice: str | None) -> None:
        if choice == "discard" or (choice == "save" and self._save_config()):
            self.exit()

    def _handle_reload_choice(self, choice: str | None) -> None:
        if choice == "reload" or (choice == "save" and self._save_config()):
            self._load_config()

    def _documents(self) -> tuple[tuple[str, ConfigState, Path], ...]:
        return (
            ("config.json", self.config_state, CONFIG_PATH),
            ("keywords.json", self.keywords_state, self.keywords_path),
        )

    def _load_config(self) -> None:
        # keywords_path comes from config.json, so config loads first.
        for label, state, path in self._documents():
            load_document(state, path, label)
        if self.keywords_state.data is None and not self.keywords_path.exists():
            # Saving creates the file.
            self.keywords_state.data = empty_registry()
            self.keywords_state.error = None
        self._refresh_header()
        self._refresh_tabs()

    def _save_config(self) -> bool:
        results = [save_document(state, path) for _, state, path in self._documents() if state.dirty]
        self._refresh_header()
        if results and all(results):
            self.notify("Saved. The watcher picks up keywords.json on the next message.")
        return all(results)

    def _refresh_header(self) -> None:
        status = self.query_one("#header-status", Static)
        status.remove_class("status-loaded", "status-modified", "status-error")
        errors = [state.error for _, state, _ in self._documents() if state.error]
        modified = [label for label, state, _ in self._documents() if state.dirty]
        if errors:
            status.update("error: " + "; ".join(errors))
            status.add_class("status-error")
        elif modified:
            status.update("modified: " + ", ".join(modified))
            status.add_class("status-modified")
        else:
            status.update("loaded")
            status.add_class("status-loaded")
        self.query_one("#save-btn", Button).disabled = not modified

    def _refresh_tabs(self) -> None:
        for tab_type in (SourcesTab, KeywordsTab, PeopleTab, SettingsTab):
            try:
                self.query_one(tab_type).reload_from_config()
            except NoMatches:
                continue

    def _update_section(self, state: ConfigState, section: str, value: Any) -> None:
        if state.data is None:
            state.data = {}
        state.data[section] = value
        state.dirty = True
        self._refresh_header()

    def update_config_section(self, section: str, value: Any) -> None:
        """Replace one top-level section of config.json in memory."""
        self._update_section(self.config_state, section, value)

    def update_keywords_section(self, section: str, value: Any) -> None:
        """Replace one top-level section of keywords.json in memory."""
        self._update_section(self.keywords_state, section, value)

    @staticmethod
    def _title_text() -> Text:
        return Text.assemble(
            ("NAG", TELEGRAM_BLUE),
            ("WATCH > Config Panel", "bold"),
        )
