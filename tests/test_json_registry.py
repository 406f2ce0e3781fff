from __future__ import annotations

import json
import logging
import os

import pytest

from adapters.json_registry import FALLBACK_KEYWORDS, JsonKeywordRegistry, KeywordRegistryView, parse_registry


def _write(path, data) -> None:
    path.write_text(json.dumps(data), encoding="utf-8")


def test_missing_file_falls_back_to_builtin_keywords(tmp_path, caplog) -> None:
    with caplog.at_level(logging.WARNING):
        registry = JsonKeywordRegistry(str(tmp_path / "keywords.json"))
    assert registry.global_keywords() == list(FALLBACK_KEYWORDS)
    assert registry.authorized_users() == []
    assert "not found" in caplog.text


def test_broken_file_falls_back_and_logs(tmp_path, caplog) -> None:
    path = tmp_path / "keywords.json"
    path.write_text("{not json", encoding="utf-8")
    with caplog.at_level(logging.ERROR):
        registry = JsonKeywordRegistry(str(path))
    assert registry.global_keywords() == list(FALLBACK_KEYWORDS)
    assert "Failed to load keyword file" in caplog.text


def test_parse_registry_cleans_values() -> None:
    parsed = parse_registry(
        {
            "global": [" urgent ", "urgent", "", 911],
            "personal": {"1": ["cake"], " ": ["ignored"]},
            "subscriptions": "nope",
            "authorized_users": [1, "2"],
        }
    )
    assert parsed == {
        "global": ["urgent", "911"],
        "personal": {"1": ["cake"]},
        "subscriptions": {},
        "authorized_users": ["1", "2"],
        "admins": [],
        "pending_users": {},
    }
    with pytest.raises(ValueError):
        parse_registry(["urgent"])


def test_subscribers_follow_chat_id_variants(tmp_path) -> None:
    path = tmp_path / "keywords.json"
    _write(path, {"subscriptions": {"chat_id:-1001234567890": ["1"], "@family": ["2"]}})
    registry = JsonKeywordRegistry(str(path))
    assert registry.subscribers("chat_id:1234567890") == ["1"]
    assert registry.subscribers("chat_id:-1001234567890") == ["1"]
    assert registry.subscribers("@family") == ["2"]
    assert registry.subscribers("@work") == []
    assert registry.subscriptions_for("1") == ["chat_id:-1001234567890"]


def test_personal_keyword_edits_are_saved(tmp_path) -> None:
    path = tmp_path / "keywords.json"
    _write(path, {"authorized_users": ["1"]})
    registry = JsonKeywordRegistry(str(path))

    assert registry.add_personal_keyword("1", "Birthday Party")
    assert not registry.add_personal_keyword("1", "birthday party")
    assert not registry.add_personal_keyword("1", "   ")
    assert json.loads(path.read_text(encoding="utf-8"))["personal"] == {"1": ["Birthday Party"]}

    assert registry.remove_personal_keyword("1", "BIRTHDAY PARTY")
    assert not registry.remove_personal_keyword("1", "cake")
    assert json.loads(path.read_text(encoding="utf-8"))["personal"] == {}


def test_subscribe_and_unsubscribe(tmp_path) -> None:
    path = tmp_path / "keywords.json"
    _write(path, {})
    registry = JsonKeywordRegistry(str(path))
    assert registry.subscribe("1", "chat_id:-1001234567890")
    assert not registry.subscribe("1", "chat_id:-1001234567890")
    assert registry.subscribers("chat_id:-1001234567890") == ["1"]
    assert registry.unsubscribe("1", "chat_id:1234567890")
    assert not registry.unsubscribe("1", "chat_id:1234567890")
    assert json.loads(path.read_text(encoding="utf-8"))["subscriptions"] == {}


def test_reload_if_changed_picks_up_external_edits(tmp_path) -> None:
    path = tmp_path / "keywords.json"
    _write(path, {"global": ["urgent"]})
    registry = JsonKeywordRegistry(str(path))
    assert not registry.reload_if_changed()

    _write(path, {"global": ["urgent", "meeting"]})
    stat = os.stat(path)
    os.utime(path, (stat.st_atime, stat.st_mtime + 5))
    assert registry.reload_if_changed()
    assert registry.global_keywords() == ["urgent", "meeting"]


def test_authorization() -> None:
    view = KeywordRegistryView({"authorized_users": ["1"]})
    assert view.is_authorized("1")
    assert view.is_authorized(1)  # type: ignore[arg-type]
    assert not view.is_authorized("2")
    assert KeywordRegistryView().global_keywords() == []


def test_admins_count_as_authorized_users() -> None:
    view = KeywordRegistryView({"authorized_users": ["1"], "admins": ["9"]})
    assert view.is_admin("9")
    assert not view.is_admin("1")
    assert view.is_authorized("9")
    assert view.authorized_users() == ["1", "9"]


def test_access_requests_are_approved_or_rejected(tmp_path) -> None:
    path = tmp_path / "keywords.json"
    _write(path, {"authorized_users": ["1"], "admins": ["1"]})
    registry = JsonKeywordRegistry(str(path))

    assert registry.add_pending("2", "Alice")
    assert not registry.add_pending("2", "Alice")
    assert not registry.add_pending("1", "Admin")
    assert registry.add_pending("3", "Bob")
    assert registry.pending_users() == {"2": "Alice", "3": "Bob"}

    assert registry.approve("2")
    assert not registry.approve("2")
    assert registry.reject("3")
    assert not registry.reject("3")

    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved["authorized_users"] == ["1", "2"]
    assert saved["pending_users"] == {}


def test_make_admin_authorizes_and_clears_the_request(tmp_path) -> None:
    path = tmp_path / "keywords.json"
    _write(path, {"pending_users": {"5": "Eve"}})
    registry = JsonKeywordRegistry(str(path))
    assert registry.make_admin("5")
    assert not registry.make_admin("5")
    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved["admins"] == ["5"]
    assert saved["authorized_users"] == ["5"]
    assert saved["pending_users"] == {}


def test_global_keyword_edits_are_saved(tmp_path) -> None:
    path = tmp_path / "keywords.json"
    _write(path, {"global": ["urgent"]})
    registry = JsonKeywordRegistry(str(path))
    assert registry.add_global_keyword("Meeting")
    assert not registry.add_global_keyword("meeting")
    assert registry.remove_global_keyword("URGENT")
    assert not registry.remove_global_keyword("urgent")
    assert json.loads(path.read_text(encoding="utf-8"))["global"] == ["Meeting"]
