"""State containers for document loading and dirty tracking."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any


@dataclass
class ConfigState:
    data: dict[str, Any] | None = None
    dirty: bool = False
    error: str | None = None


def load_document(state: ConfigState, path: Path, label: str) -> None:
    """Read a JSON object from ``path`` into ``state``, recording any error."""

    try:
        loaded = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(loaded, dict):
            raise ValueError(f"{label} root must be an object")
        state.data = loaded
        state.error = None
    except FileNotFoundError:
        state.data = None
        state.error = f"{label} missing"
    except json.JSONDecodeError as exc:
        state.data = None
        state.error = f"{label} error: {exc.msg}"
    except ValueError as exc:
        state.data = None
        state.error = str(exc)
    state.dirty = False


def save_document(state: ConfigState, path: Path) -> bool:
    if state.data is None:
        state.error = "Nothing to save"
        return False
    try:
        path.write_text(
            json.dumps(state.data, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
    except OSError as exc:
        state.error = f"save failed: {exc.strerror or exc}"
        return False
    state.dirty = False
    state.error = None
    return True
