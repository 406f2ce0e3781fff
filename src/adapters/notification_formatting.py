"""Shared notification formatting helpers.

Keeping formatting here prevents drift between adapters and keeps messages
consistent regardless of delivery channel.
"""

from __future__ import annotations

import html
from typing import Callable, Optional

from core.models import AcknowledgeResult, Attachment, Match, MessageContext, Reminder

DIVIDER = "──────────────"


def format_source_label(source_key: Optional[str], group: Optional[str], source_aliases: dict[str, str]) -> str:
    """Return a human-friendly source label, using configured aliases."""

    if not source_key:
        return group or "unknown group"
    alias = source_aliases.get(source_key) or group
    if not alias:
        return source_key
    return f"{alias} ({source_key})"


def describe_attachment(attachment: Optional[Attachment]) -> Optional[str]:
    if attachment is None:
        return None
    label = attachment.filename or attachment.kind
    if attachment.size:
        return f"{label} ({attachment.size // 1024} KB)" if attachment.size >= 1024 else f"{label} ({attachment.size} B)"
    return label


def _escape_md(value: str) -> str:
    for ch in r"*[`":
        value = value.replace(ch, f"\\{ch}")
    return value


def _bold(mode: str) -> Callable[[str], str]:
    if mode == "markdown":
        return lambda label: f"**{label}**"
    return lambda label: f"<b>{label}</b>"


def _escaper(mode: str) -> Callable[[str], str]:
    if mode == "markdown":
        return _escape_md
    if mode == "html":
        return html.escape
    raise ValueError(f"Unsupported notification format: {mode}")


def escape_text(value: str, mode: str) -> str:
    return _escaper(mode)(value)


def _link(mode: str, url: str) -> str:
    if mode == "html":
        safe = html.escape(url)
        return f'<a href="{safe}">{safe}</a>'
    return url


def format_alert(
    match: Match,
    context: MessageContext,
    snippet: str,
    source_aliases: dict[str, str],
    mode: str,
) -> str:
    """First alert for a detection, sent before any reminder is scheduled."""

    esc = _escaper(mode)
    bold = _bold(mode)
    timestamp = esc(context.date.astimezone().strftime("%H:%M:%S %d-%m-%Y").strip())
    heading = "Personal keyword detected" if match.scope.value == "personal" else "Keyword detected"

    lines = [
        f"[{timestamp}] {bold(heading)}",
        f"{bold('Keyword:')} {esc(match.keyword)}",
        f"{bold('Match:')} {esc(match.match_type.value)} ({esc(match.matched_token)})",
        f"{bold('Group:')} {esc(format_source_label(context.source_key, context.group, source_aliases))}",
    ]
    if context.sender:
        lines.append(f"{bold('From:')} {esc(context.sender)}")
    attachment = describe_attachment(context.attachment)
    if attachment:
        lines.append(f"{bold('File:')} {esc(attachment)}")
    lines.extend([DIVIDER, "", esc(snippet), ""])
    if context.permalink:
        lines.extend([bold("Link:"), _link(mode, context.permalink), ""])
    lines.extend(["Reply /ok to acknowledge.", DIVIDER])
    return "\n".join(lines)


def format_reminder(
    reminder: Reminder,
    snippet_chars: int,
    source_aliases: dict[str, str],
    mode: str,
) -> str:
    """Escalation message re-delivering the original alert."""

    esc = _escaper(mode)
    bold = _bold(mode)
    payload = reminder.payload
    elapsed = int(reminder.next_fire_at.timestamp() - reminder.first_detected_at.timestamp()) // 60
    total = reminder.max_fires - 1

    lines = [
        f"{bold(f'Reminder {reminder.fire_count}/{total}')}",
        f"{bold('Keyword:')} {esc(reminder.keyword)}",
        f"{bold('Group:')} {esc(format_source_label(payload.channel_id, payload.group, source_aliases))}",
    ]
    if payload.sender:
        lines.append(f"{bold('From:')} {esc(payload.sender)}")
    attachment = describe_attachment(payload.attachment)
    if attachment:
        lines.append(f"{bold('File:')} {esc(attachment)}")
    lines.extend([DIVIDER, "", esc(payload.message[:snippet_chars].strip()), ""])
    if payload.permalink:
        lines.extend([bold("Link:"), _link(mode, payload.permalink), ""])
    if elapsed > 0:
        lines.append(f"Unacknowledged for about {elapsed} min.")
    lines.extend(["Reply /ok to acknowledge and stop.", DIVIDER])
    return "\n".join(lines)


def format_acknowledgment(result: AcknowledgeResult, mode: str) -> str:
    """Render an acknowledgment summary with per-category keyword lists."""

    esc = _escaper(mode)
    bold = _bold(mode)
    if not (result.stopped or result.overridden or result.expired):
        return bold(esc(result.summary))

    def quoted(keywords) -> str:
        return ", ".join(f'"{esc(keyword)}"' for keyword in keywords)

    lines = [bold("Reminder acknowledged and stopped."), ""]
    if result.stopped:
        lines.append(f"{bold('Active reminders stopped:')} {quoted(result.stopped)}")
    if result.overridden:
        lines.append(f"{bold('Overridden reminders (cancelled early):')} {quoted(result.overridden)}")
    if result.expired:
        lines.append(f"{bold('Expired reminders (schedule completed without /ok):')} {quoted(result.expired)}")
    return "\n".join(lines)
