"""JSON keyword registry adapter.

Implements the core KeywordRegistryPort on top of ``keywords.json``:

    {
      "global": ["urgent", "emergency"],
      "personal": {"123456": ["cake", "birthday party"]},
      "subscriptions": {"chat_id:-1001234567890": ["123456"]},
      "authorized_users": ["123456"],
      "admins": ["123456"],
      "pending_users": {"987654": "Alice"}
    }

Subscriptions are keyed by source key, the same key the sources list in
config.json uses, so a subscription follows the group through its chat_id
variants. Admins are authorized as well; pending users asked for access
with /start and wait for an admin to /approve or /reject them.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Optional

from core.source_keys import expand_source_key_variants

LOGGER = logging.getLogger(__name__)

FALLBACK_KEYWORDS = ("urgent", "emergency", "important")


def empty_registry() -> Dict[str, Any]:
    return {
        "global": [],
        "personal": {},
        "subscriptions": {},
        "authorized_users": [],
        "admins": [],
        "pending_users": {},
    }


def _clean_list(values: Any) -> List[str]:
    if not isinstance(values, list):
        return []
    cleaned: List[str] = []
    for value in values:
        text = str(value).strip()
        if text and text not in cleaned:
            cleaned.append(text)
    return cleaned


def _clean_mapping(values: Any) -> Dict[str, List[str]]:
    if not isinstance(values, dict):
        return {}
    return {str(key).strip(): _clean_list(items) for key, items in values.items() if str(key).strip()}


def _clean_names(values: Any) -> Dict[str, str]:
    if not isinstance(values, dict):
        return {}
    return {str(key).strip(): str(name or "").strip() for key, name in values.items() if str(key).strip()}


def parse_registry(raw: Any) -> Dict[str, Any]:
    """Coerce a decoded keywords.json into the canonical shape."""

    if not isinstance(raw, dict):
        raise ValueError("keywords.json must contain a JSON object")
    return {
        "global": _clean_list(raw.get("global", [])),
        "personal": _clean_mapping(raw.get("personal", {})),
        "subscriptions": _clean_mapping(raw.get("subscriptions", {})),
        "authorized_users": _clean_list(raw.get("authorized_users", [])),
        "admins": _clean_list(raw.get("admins", [])),
        "pending_users": _clean_names(raw.get("pending_users", {})),
    }


class KeywordRegistryView:
    """Read-only registry over already-parsed keywords.json data."""

    def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
        self._data = parse_registry(data) if data is not None else empty_registry()

    def global_keywords(self) -> List[str]:
        return list(self._data["global"])

    def personal_keywords(self, user_id: str) -> List[str]:
        return list(self._data["personal"].get(str(user_id), []))

    def subscribers(self, group: str) -> List[str]:
        users: List[str] = []
        for key in expand_source_key_variants(group):
            for user_id in self._data["subscriptions"].get(key, []):
                if user_id not in users:
                    users.append(user_id)
        return users

    def subscriptions_for(self, user_id: str) -> List[str]:
        user_id = str(user_id)
        return [group for group, users in self._data["subscriptions"].items() if user_id in users]

    def authorized_users(self) -> List[str]:
        users = list(self._data["authorized_users"])
        users.extend(admin for admin in self._data["admins"] if admin not in users)
        return users

    def is_authorized(self, user_id: str) -> bool:
        return str(user_id) in self._data["authorized_users"] or self.is_admin(user_id)

    def admins(self) -> List[str]:
        return list(self._data["admins"])

    def is_admin(self, user_id: str) -> bool:
        return str(user_id) in self._data["admins"]

    def pending_users(self) -> Dict[str, str]:
        return dict(self._data["pending_users"])


class JsonKeywordRegistry(KeywordRegistryView):
    """Keyword, subscription and authorization data backed by one JSON file."""

    def __init__(self, path: str) -> None:
        super().__init__()
        self._path = path
        self._mtime: Optional[float] = None
        self.reload()

    @property
    def path(self) -> str:
        return self._path

    def reload(self) -> None:
        """Re-read the file; a missing or broken file falls back to built-ins."""

        self._mtime = self._current_mtime()
        try:
            with open(self._path, "r", encoding="utf-8") as handle:
                self._data = parse_registry(json.load(handle))
        except FileNotFoundError:
            LOGGER.warning("Keyword file %s not found; using built-in keywords", self._path)
            self._data = empty_registry()
            self._data["global"] = list(FALLBACK_KEYWORDS)
            return
        except (OSError, ValueError):
            LOGGER.exception("Failed to load keyword file %s; using built-in keywords", self._path)
            self._data = empty_registry()
            self._data["global"] = list(FALLBACK_KEYWORDS)
            return
        LOGGER.info(
            "Loaded %s global keyword(s), personal keywords for %s user(s)",
            len(self._data["global"]),
            len(self._data["personal"]),
        )

    def _current_mtime(self) -> Optional[float]:
        try:
            return os.path.getmtime(self._path)
        except OSError:
            return None

    def reload_if_changed(self) -> bool:
        """Reload when the file was edited outside this process (e.g. the config panel)."""

        if self._current_mtime() == self._mtime:
            return False
        self.reload()
        return True

    def save(self) -> None:
        directory = os.path.dirname(self._path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as handle:
            json.dump(self._data, handle, indent=2, ensure_ascii=False)
            handle.write("\n")
        self._mtime = self._current_mtime()

    def add_personal_keyword(self, user_id: str, keyword: str) -> bool:
        keyword = keyword.strip()
        keywords = self._data["personal"].get(str(user_id), [])
        if not keyword or keyword.lower() in (k.lower() for k in keywords):
            return False
        self._data["personal"][str(user_id)] = keywords + [keyword]
        self.save()
        return True

    def remove_personal_keyword(self, user_id: str, keyword: str) -> bool:
        keywords = self._data["personal"].get(str(user_id), [])
        for existing in keywords:
            if existing.lower() == keyword.strip().lower():
                keywords.remove(existing)
                if not keywords:
                    del self._data["personal"][str(user_id)]
                self.save()
                return True
        return False

    def subscribe(self, user_id: str, group: str) -> bool:
        users = self._data["subscriptions"].setdefault(group, [])
        if str(user_id) in users:
            return False
        users.append(str(user_id))
        self.save()
        return True

    def unsubscribe(self, user_id: str, group: str) -> bool:
        removed = False
        for key in expand_source_key_variants(group):
            users = self._data["subscriptions"].get(key)
            if users and str(user_id) in users:
                users.remove(str(user_id))
                if not users:
                    del self._data["subscriptions"][key]
                removed = True
        if removed:
            self.save()
        return removed


    def add_global_keyword(self, keyword: str) -> bool:
        keyword = keyword.strip()
        keywords = self._data["global"]
        if not keyword or keyword.lower() in (k.lower() for k in keywords):
            return False
        keywords.append(keyword)
        self.save()
        return True

    def remove_global_keyword(self, keyword: str) -> bool:
        keywords = self._data["global"]
        for existing in keywords:
            if existing.lower() == keyword.strip().lower():
                keywords.remove(existing)
                self.save()
                return True
        return False

    def add_pending(self, user_id: str, name: str = "") -> bool:
        """Record an access request; False when the user needs no approval or already asked."""

        user_id = str(user_id)
        pending = self._data["pending_users"]
        if self.is_authorized(user_id) or user_id in pending:
            return False
        pending[user_id] = name.strip()
        self.save()
        return True

    def approve(self, user_id: str) -> bool:
        user_id = str(user_id)
        approved = not self.is_authorized(user_id)
        if approved:
            self._data["authorized_users"].append(user_id)
        dropped = self._data["pending_users"].pop(user_id, None) is not None
        if approved or dropped:
            self.save()
        return approved

    def reject(self, user_id: str) -> bool:
        if self._data["pending_users"].pop(str(user_id), None) is None:
            return False
        self.save()
        return True

    def make_admin(self, user_id: str) -> bool:
        user_id = str(user_id)
        if self.is_admin(user_id):
            return False
        if user_id not in self._data["authorized_users"]:
            self._data["authorized_users"].append(user_id)
        self._data["admins"].append(user_id)
        self._data["pending_users"].pop(user_id, None)
        self.save()
        return True
