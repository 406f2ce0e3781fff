"""Validation helpers for config editing."""

from __future__ import annotations


def parse_user_id(raw_value: str) -> tuple[str | None, str | None]:
    """Telegram user ids are positive integers; keep them as strings."""

    value = raw_value.strip()
    if not value:
        return None, "user id is required"
    if not value.isdigit() or int(value) == 0:
        return None, "user id must be a positive number"
    return str(int(value)), None


def parse_keyword(raw_value: str) -> tuple[str | None, str | None]:
    value = " ".join(raw_value.split())
    if not value:
        return None, "keyword is required"
    if value.startswith("/"):
        return None, "keyword must not start with /"
    return value, None


def parse_lines(text: str) -> list[str]:
    """Split a TextArea body into unique, non-empty lines."""

    lines: list[str] = []
    for line in text.splitlines():
        value = " ".join(line.split())
        if value and value not in lines:
            lines.append(value)
    return lines


def parse_intervals(raw_value: str) -> tuple[list[float] | None, str | None]:
    """Parse a comma separated list of positive minute values."""

    parts = [part.strip() for part in raw_value.split(",") if part.strip()]
    if not parts:
        return None, "at least one interval is required"
    minutes: list[float] = []
    for part in parts:
        try:
            value = float(part)
        except ValueError:
            return None, f"not a number: {part}"
        if value <= 0:
            return None, "intervals must be positive"
        minutes.append(int(value) if value.is_integer() else value)
    return minutes, None


def parse_denylist(text: str) -> tuple[dict[str, list[str]] | None, str | None]:
    """Parse ``keyword: word, word`` lines into the config denylist mapping."""

    denylist: dict[str, list[str]] = {}
    for line in parse_lines(text):
        keyword, sep, words = line.partition(":")
        keyword = keyword.strip().lower()
        if not sep or not keyword:
            return None, f"expected 'keyword: word, word' in: {line}"
        values = [word.strip().lower() for word in words.split(",") if word.strip()]
        if not values:
            return None, f"no words listed for {keyword}"
        denylist[keyword] = values
    return denylist, None


def format_denylist(denylist: dict[str, list[str]]) -> str:
    return "\n".join(f"{keyword}: {', '.join(words)}" for keyword, words in denylist.items())
