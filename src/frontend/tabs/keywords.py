"""Keywords tab implementation."""

from __future__ import annotations

from typing import Any, Optional

from textual import on
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Button, DataTable, Input, Static, TextArea

from adapters.json_registry import KeywordRegistryView
from core.config import build_matcher_config
from core.detector import KeywordDetector
from core.matcher import MatchEngine
from core.source_keys import parse_source_key

from ..modals import AddKeywordScreen, DeleteConfirmScreen
from ..validators import parse_keyword


class KeywordsTab(Container):
    """Global keyword editor plus a tester running the live matching pipeline."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._loading_form = False
        self._current_row_key: Optional[str] = None
        self._table_ready = False

    def compose(self):
        with Vertical(id="keywords-panel"):
            with Horizontal(id="keywords-body"):
                with Container(id="keywords-left"):
                    yield DataTable(id="keywords-table", cursor_type="row")
                with Container(id="keywords-right"):
                    yield Static("Keyword editor", id="keywords-title")
                    yield Static("word or phrase (enter to apply)", classes="form-label")
                    yield Input(placeholder="urgent", id="keyword-input")
                    yield Static("", id="keyword-error")
                    yield Static("normalized", classes="form-label")
                    yield Static("", id="keyword-normalized")
                    yield Static("Keyword tester", id="keywords-test-title")
                    yield TextArea(id="keyword-test-text", placeholder="Paste a message to test")
                    yield Static("group (optional, adds subscribers' personal keywords)", classes="form-label")
                    yield Input(placeholder="@group or chat_id:-100123", id="keyword-test-group")
                    with Horizontal(id="keywords-test-actions"):
                        yield Button("Test", id="keyword-test", variant="primary")
                    yield Static("", id="keyword-test-result")
            with Horizontal(id="keywords-actions"):
                yield Button("Add keyword", id="add-keyword-btn", variant="success")
                yield Button("Delete keyword", id="delete-keyword", variant="error")

    def on_mount(self) -> None:
        table = self.query_one("#keywords-table", DataTable)
        table.add_column("keyword", key="keyword", width=28)
        table.add_column("kind", key="kind", width=8)
        table.add_column("normalized", key="normalized", width=28)
        table.zebra_stripes = True
        self.query_one("#keywords-test-actions").styles.height = 3
        self._table_ready = True
        self.reload_from_config()
        self._set_form_state(None)

    def reload_from_config(self) -> None:
        if not self._table_ready:
            return
        table = self.query_one("#keywords-table", DataTable)
        table.clear()
        engine = self._engine()
        for index, keyword in enumerate(self._get_keywords()):
            normalized = engine.normalize(keyword)
            table.add_row(keyword, self._kind(normalized), normalized, key=str(index))
        self._update_action_state()

    def _engine(self) -> MatchEngine:
        data = self.app.config_state.data or {}
        matching = data.get("matching")
        return MatchEngine(build_matcher_config(matching if isinstance(matching, dict) else {}))

    @staticmethod
    def _kind(normalized: str) -> str:
        return "phrase" if len(normalized.split()) > 1 else "word"

    def _get_keywords(self) -> list[str]:
        data = self.app.keywords_state.data or {}
        keywords = data.get("global")
        if isinstance(keywords, list):
            return keywords
        return []

    def _set_keywords(self, keywords: list[str]) -> None:
        self.app.update_keywords_section("global", keywords)

    def _update_action_state(self) -> None:
        self.query_one("#delete-keyword", Button).disabled = self._current_row_key is None

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        self._current_row_key = self._coerce_row_key(event.row_key)
        self._set_form_state(self._current_row_key)
        self._update_action_state()

    @on(Input.Changed, "#keyword-input")
    def _on_keyword_changed(self) -> None:
        if self._loading_form:
            return
        self.query_one("#keyword-error", Static).update("")

    @on(Input.Submitted, "#keyword-input")
    def _on_keyword_submitted(self, event: Input.Submitted) -> None:
        if self._loading_form:
            return
        index = self._current_index()
        keywords = self._get_keywords()
        if index is None or index >= len(keywords):
            return
        keyword, error = parse_keyword(event.value)
        if keyword is None:
            self.query_one("#keyword-error", Static).update(error or "invalid keyword")
            return
        keywords[index] = keyword
        self._set_keywords(keywords)
        self.reload_from_config()
        self._set_form_state(str(index))

    @on(Button.Pressed, "#add-keyword-btn")
    def _on_add_keyword(self) -> None:
        self.app.push_screen(AddKeywordScreen(), self._handle_add_keyword)

    @on(Button.Pressed, "#delete-keyword")
    def _on_delete_keyword(self) -> None:
        index = self._current_index()
        keywords = self._get_keywords()
        if index is None or index >= len(keywords):
            return
        self.app.push_screen(DeleteConfirmScreen("Delete keyword?", keywords[index]), self._handle_delete_keyword)

    def _handle_add_keyword(self, keyword: str | None) -> None:
        if not keyword:
            return
        keywords = self._get_keywords()
        if keyword.lower() in (existing.lower() for existing in keywords):
            self.app.notify(f"\"{keyword}\" is already a global keyword", severity="warning")
            return
        keywords.append(keyword)
        self._set_keywords(keywords)
        self.reload_from_config()

    def _handle_delete_keyword(self, confirmed: bool | None) -> None:
        if not confirmed:
            return
        index = self._current_index()
        keywords = self._get_keywords()
        if index is None or index >= len(keywords):
            return
        keywords.pop(index)
        self._set_keywords(keywords)
        self._current_row_key = None
        self.reload_from_config()
        self._set_form_state(None)

    @on(Button.Pressed, "#keyword-test")
    def _on_test_keywords(self) -> None:
        text = self.query_one("#keyword-test-text", TextArea).text
        group_value = self.query_one("#keyword-test-group", Input).value.strip()
        result = self.query_one("#keyword-test-result", Static)
        if not text.strip():
            result.update("Add test text to run.")
            return
        group = None
        if group_value:
            info = parse_source_key(group_value)
            if info.normalized is None:
                result.update(info.error or "invalid group")
                return
            group = info.normalized
        registry = KeywordRegistryView(self.app.keywords_state.data or {})
        detector = KeywordDetector(self._engine(), registry)
        matches = detector.detect_keywords(text, group)
        if not matches:
            result.update("No keywords detected.")
            return
        lines = [f"Detected {len(matches)} keyword(s):"]
        for match in matches:
            owner = f" ({match.user_id})" if match.user_id else ""
            lines.append(
                f"- {match.keyword}: {match.match_type.value} on \"{match.matched_token}\", "
                f"{match.scope.value}{owner}"
            )
        result.update("\n".join(lines))

    def _set_form_state(self, row_key: Optional[str]) -> None:
        self._loading_form = True
        keyword_input = self.query_one("#keyword-input", Input)
        normalized_display = self.query_one("#keyword-normalized", Static)
        self.query_one("#keyword-error", Static).update("")
        keywords = self._get_keywords()
        if row_key is None or int(row_key) >= len(keywords):
            keyword_input.value = ""
            keyword_input.disabled = True
            normalized_display.update("")
        else:
            keyword = keywords[int(row_key)]
            keyword_input.value = keyword
            keyword_input.disabled = False
            normalized_display.update(self._engine().normalize(keyword))
        self._loading_form = False

    def _current_index(self) -> Optional[int]:
        if self._current_row_key is None:
            return None
        try:
            return int(self._current_row_key)
        except ValueError:
            return None

    @staticmethod
    def _coerce_row_key(value: Any) -> str:
        if hasattr(value, "value"):
            return str(value.value)
        return str(value)
