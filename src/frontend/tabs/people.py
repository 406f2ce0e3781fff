"""People tab: authorized users, their role, personal keywords and subscriptions."""

from __future__ import annotations

from typing import Any, Optional

from textual import on
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Button, DataTable, Static, Switch, TextArea

from core.source_keys import parse_source_key

from ..modals import AddUserScreen, DeleteConfirmScreen
from ..validators import parse_lines


class PeopleTab(Container):
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._loading_form = False
        self._current_user: Optional[str] = None
        self._table_ready = False

    def compose(self):
        with Vertical(id="people-panel"):
            with Horizontal(id="people-body"):
                with Container(id="people-left"):
                    yield DataTable(id="people-table", cursor_type="row")
                with Container(id="people-right"):
                    yield Static("User", id="people-title")
                    yield Static("", id="people-user")
                    yield Static("admin (may approve users and edit global keywords)", classes="form-label")
                    yield Switch(value=False, id="people-admin")
                    yield Static("personal keywords (one per line)", classes="form-label")
                    yield TextArea(id="people-keywords")
                    yield Static("subscribed groups (one source_key per line)", classes="form-label")
                    yield TextArea(id="people-groups")
                    yield Static("", id="people-error")
            with Horizontal(id="people-actions"):
                yield Button("Authorize user", id="add-user", variant="success")
                yield Button("Remove user", id="delete-user", variant="error")

    def on_mount(self) -> None:
        table = self.query_one("#people-table", DataTable)
        table.add_column("user id", key="user_id", width=16)
        table.add_column("role", key="role", width=6)
        table.add_column("keywords", key="keywords", width=10)
        table.add_column("groups", key="groups", width=8)
        table.zebra_stripes = True
        self._table_ready = True
        self.reload_from_config()
        self._set_form_state(None)

    def reload_from_config(self) -> None:
        if not self._table_ready:
            return
        table = self.query_one("#people-table", DataTable)
        table.clear()
        for user_id in self._users():
            table.add_row(
                user_id,
                self._role(user_id),
                str(len(self._keywords_for(user_id))),
                str(len(self._groups_for(user_id))),
                key=user_id,
            )
        if self._current_user not in self._users():
            self._current_user = None
            self._set_form_state(None)
        self._update_action_state()

    def _section(self, key: str, kind: type) -> Any:
        data = self.app.keywords_state.data or {}
        value = data.get(key)
        if isinstance(value, kind):
            return value
        return kind()

    def _users(self) -> list[str]:
        users = list(self._section("authorized_users", list))
        users.extend(admin for admin in self._section("admins", list) if admin not in users)
        return users

    def _role(self, user_id: str) -> str:
        return "admin" if user_id in self._section("admins", list) else "user"

    def _keywords_for(self, user_id: str) -> list[str]:
        return list(self._section("personal", dict).get(user_id, []) or [])

    def _groups_for(self, user_id: str) -> list[str]:
        subscriptions = self._section("subscriptions", dict)
        return [group for group, users in subscriptions.items() if user_id in (users or [])]

    def _update_action_state(self) -> None:
        self.query_one("#delete-user", Button).disabled = self._current_user is None

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        row_key = event.row_key
        self._current_user = str(row_key.value) if hasattr(row_key, "value") else str(row_key)
        self._set_form_state(self._current_user)
        self._update_action_state()

    @on(Switch.Changed, "#people-admin")
    def _on_admin_changed(self, event: Switch.Changed) -> None:
        if self._loading_form or self._current_user is None:
            return
        current = self._section("admins", list)
        if (self._current_user in current) == bool(event.value):
            return
        admins = [admin for admin in current if admin != self._current_user]
        if event.value:
            admins.append(self._current_user)
        self.app.update_keywords_section("admins", admins)
        self._update_table_cell(self._current_user, "role", self._role(self._current_user))

    @on(TextArea.Changed, "#people-keywords")
    def _on_keywords_changed(self, event: TextArea.Changed) -> None:
        if self._loading_form or self._current_user is None:
            return
        personal = self._section("personal", dict)
        keywords = parse_lines(event.text_area.text)
        if keywords == personal.get(self._current_user, []):
            return
        if keywords:
            personal[self._current_user] = keywords
        else:
            personal.pop(self._current_user, None)
        self.app.update_keywords_section("personal", personal)
        self._update_table_cell(self._current_user, "keywords", str(len(keywords)))

    @on(TextArea.Changed, "#people-groups")
    def _on_groups_changed(self, event: TextArea.Changed) -> None:
        if self._loading_form or self._current_user is None:
            return
        groups: list[str] = []
        errors: list[str] = []
        for line in parse_lines(event.text_area.text):
            info = parse_source_key(line)
            if info.normalized is None:
                errors.append(f"{line}: {info.error}")
            elif info.normalized not in groups:
                groups.append(info.normalized)
        self.query_one("#people-error", Static).update("\n".join(errors))
        if errors:
            return
        subscriptions = self._section("subscriptions", dict)
        current = [group for group, users in subscriptions.items() if self._current_user in (users or [])]
        if sorted(current) == sorted(groups):
            return
        self._set_subscriptions(self._current_user, groups)
        self._update_table_cell(self._current_user, "groups", str(len(groups)))

    def _set_subscriptions(self, user_id: str, groups: list[str]) -> None:
        subscriptions = self._section("subscriptions", dict)
        for group in list(subscriptions):
            users = [user for user in subscriptions[group] or [] if user != user_id]
            if group in groups:
                users.append(user_id)
            if users:
                subscriptions[group] = users
            else:
                del subscriptions[group]
        for group in groups:
            subscriptions.setdefault(group, [user_id])
        self.app.update_keywords_section("subscriptions", subscriptions)

    @on(Button.Pressed, "#add-user")
    def _on_add_user(self) -> None:
        self.app.push_screen(AddUserScreen(), self._handle_add_user)

    @on(Button.Pressed, "#delete-user")
    def _on_delete_user(self) -> None:
        if self._current_user is None:
            return
        self.app.push_screen(
            DeleteConfirmScreen("Remove user and their keywords?", self._current_user),
            self._handle_delete_user,
        )

    def _handle_add_user(self, user_id: str | None) -> None:
        if not user_id:
            return
        users = self._section("authorized_users", list)
        if user_id in users:
            self.app.notify(f"{user_id} is already authorized", severity="warning")
            return
        users.append(user_id)
        self.app.update_keywords_section("authorized_users", users)
        self.reload_from_config()

    def _handle_delete_user(self, confirmed: bool | None) -> None:
        if not confirmed or self._current_user is None:
            return
        user_id = self._current_user
        users = [user for user in self._section("authorized_users", list) if user != user_id]
        self.app.update_keywords_section("authorized_users", users)
        admins = [admin for admin in self._section("admins", list) if admin != user_id]
        self.app.update_keywords_section("admins", admins)
        personal = self._section("personal", dict)
        personal.pop(user_id, None)
        self.app.update_keywords_section("personal", personal)
        self._set_subscriptions(user_id, [])
        self._current_user = None
        self.reload_from_config()

    def _update_table_cell(self, user_id: str, column_key: str, value: Any) -> None:
        table = self.query_one("#people-table", DataTable)
        try:
            table.get_row(user_id)
        except Exception:
            self.reload_from_config()
            return
        table.update_cell(user_id, column_key, value)

    def _set_form_state(self, user_id: Optional[str]) -> None:
        self._loading_form = True
        user_display = self.query_one("#people-user", Static)
        keywords_input = self.query_one("#people-keywords", TextArea)
        admin_switch = self.query_one("#people-admin", Switch)
        groups_input = self.query_one("#people-groups", TextArea)
        self.query_one("#people-error", Static).update("")
        if user_id is None:
            user_display.update("Select a user")
            admin_switch.value = False
            admin_switch.disabled = True
            keywords_input.text = ""
            keywords_input.disabled = True
            groups_input.text = ""
            groups_input.disabled = True
        else:
            user_display.update(user_id)
            admin_switch.value = user_id in self._section("admins", list)
            admin_switch.disabled = False
            keywords_input.text = "\n".join(self._keywords_for(user_id))
            keywords_input.disabled = False
            groups_input.text = "\n".join(self._groups_for(user_id))
            groups_input.disabled = False
        self._loading_form = False
