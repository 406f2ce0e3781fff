"""Modal dialogs for the Textual config panel."""

from __future__ import annotations

from typing import Any, Callable, Optional, TypeVar

from textual import on
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Static, Switch

from core.source_keys import parse_source_key

from .validators import parse_keyword, parse_user_id

ResultT = TypeVar("ResultT")


class ChoiceScreen(ModalScreen[ResultT]):
    """Title, one line of text and a row of buttons; dismisses with the pressed button's value.

    Escape dismisses with ``cancel_value``.
    """

    BINDINGS = [Binding("escape", "cancel", "Cancel", show=False)]

    title_text = ""
    body_text = ""
    # (label, dismiss value, button variant)
    choices: tuple[tuple[str, Any, str], ...] = ()
    cancel_value: Any = None

    def compose(self) -> ComposeResult:
        buttons = [
            Button(label, id=f"choice-{index}", variant=variant)
            for index, (label, _, variant) in enumerate(self.choices)
        ]
        yield Container(
            Static(self.title_text, classes="modal-title"),
            Static(self.body_text, classes="modal-body"),
            Horizontal(*buttons, classes="modal-actions"),
            classes="modal-dialog modal-dialog--confirm",
        )

    @on(Button.Pressed)
    def _on_choice(self, event: Button.Pressed) -> None:
        index = int((event.button.id or "choice-0").rsplit("-", 1)[1])
        self.dismiss(self.choices[index][1])

    def action_cancel(self) -> None:
        self.dismiss(self.cancel_value)


class UnsavedChangesScreen(ChoiceScreen[str]):
    title_text = "Unsaved changes"
    body_text = "Save changes before exit?"
    choices = (("Save", "save", "success"), ("Discard", "discard", "error"), ("Cancel", "cancel", "default"))
    cancel_value = "cancel"


class ReloadConfirmScreen(ChoiceScreen[str]):
    title_text = "Reload files?"
    body_text = "Unsaved changes to config.json and keywords.json will be lost."
    choices = (("Save first", "save", "default"), ("Reload", "reload", "warning"), ("Cancel", "cancel", "default"))
    cancel_value = "cancel"


class DeleteConfirmScreen(ChoiceScreen[bool]):
    """Confirm removal of a source, keyword or user."""

    choices = (("Delete", True, "error"), ("Cancel", False, "default"))
    cancel_value = False

    def __init__(self, title: str, subject: str) -> None:
        super().__init__()
        self.title_text = title
        self.body_text = subject or "(empty)"


class SingleFieldScreen(ModalScreen[Optional[str]]):
    """One validated text field; Enter or Add submits, Escape cancels."""

    BINDINGS = [Binding("escape", "cancel", "Cancel", show=False)]

    heading = ""
    label = ""
    placeholder = ""
    parser: Callable[[str], tuple[str | None, str | None]]

    def compose(self) -> ComposeResult:
        yield Container(
            Static(self.heading, classes="modal-title"),
            Static("", id="field-error", classes="modal-error"),
            Static(self.label, classes="form-label"),
            Input(placeholder=self.placeholder, id="field-input"),
            Horizontal(
                Button("Add", id="field-confirm", variant="success"),
                Button("Cancel", id="field-cancel"),
                classes="modal-actions",
            ),
            classes="modal-dialog modal-dialog--form",
        )

    @on(Button.Pressed, "#field-confirm")
    @on(Input.Submitted, "#field-input")
    def _submit(self) -> None:
        value, error = type(self).parser(self.query_one("#field-input", Input).value)
        if value is None:
            self.query_one("#field-error", Static).update(error or "invalid value")
            return
        self.dismiss(value)

    @on(Button.Pressed, "#field-cancel")
    def action_cancel(self) -> None:
        self.dismiss(None)


class AddKeywordScreen(SingleFieldScreen):
    heading = "Add keyword"
    label = "word or phrase"
    placeholder = "urgent"
    parser = staticmethod(parse_keyword)


class AddUserScreen(SingleFieldScreen):
    heading = "Authorize user"
    label = "Telegram user id (get_session.py prints yours)"
    placeholder = "123456789"
    parser = staticmethod(parse_user_id)


class AddSourceScreen(ModalScreen[dict[str, Any] | None]):
    """Form for adding a monitored group."""

    BINDINGS = [Binding("escape", "cancel", "Cancel", show=False)]

    def compose(self) -> ComposeResult:
        yield Container(
            Static("Add group", classes="modal-title"),
            Static("", id="source-error", classes="modal-error"),
            Static("source_key", classes="form-label"),
            Input(placeholder="@group or chat_id:-1001234567890", id="new-source-key"),
            Static("alias (optional)", classes="form-label"),
            Input(placeholder="Family", id="new-source-alias"),
            Static("enabled", classes="form-label"),
            Switch(value=True, id="new-source-enabled"),
            Horizontal(
                Button("Add", id="source-confirm", variant="success"),
                Button("Cancel", id="source-cancel"),
                classes="modal-actions",
            ),
            classes="modal-dialog modal-dialog--form",
        )

    @on(Button.Pressed, "#source-confirm")
    @on(Input.Submitted)
    def _submit(self) -> None:
        info = parse_source_key(self.query_one("#new-source-key", Input).value)
        if info.normalized is None:
            self.query_one("#source-error", Static).update(info.error or "invalid source_key")
            return
        payload: dict[str, Any] = {
            "source_key": info.normalized,
            "enabled": self.query_one("#new-source-enabled", Switch).value,
        }
        alias = self.query_one("#new-source-alias", Input).value.strip()
        if alias:
            payload["alias"] = alias
        self.dismiss(payload)

    @on(Button.Pressed, "#source-cancel")
    def action_cancel(self) -> None:
        self.dismiss(None)
