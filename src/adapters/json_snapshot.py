"""Write-only JSON snapshot of the reminder scheduler state.

The file is for people debugging a running instance. Timers cannot survive a
restart, so a snapshot left over from a previous run is deleted, never loaded.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Mapping

LOGGER = logging.getLogger(__name__)


class JsonReminderSnapshot:
    """SnapshotPort adapter that rewrites one JSON file atomically."""

    def __init__(self, path: str) -> None:
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def discard_stale(self) -> bool:
        """Remove a snapshot from a previous run; return True if one existed."""

        if not os.path.exists(self._path):
            return False
        try:
            with open(self._path, "r", encoding="utf-8") as handle:
                stale = json.load(handle)
            LOGGER.info(
                "Discarding reminder snapshot with %s record(s); timers do not survive restarts",
                len(stale) if isinstance(stale, dict) else 0,
            )
        except (OSError, ValueError):
            LOGGER.warning("Reminder snapshot %s is unreadable; removing it", self._path, exc_info=True)
        try:
            os.remove(self._path)
        except FileNotFoundError:
            return False
        return True

    def write(self, snapshot: Mapping[str, Mapping[str, Any]]) -> None:
        directory = os.path.dirname(self._path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self._path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as handle:
            json.dump(snapshot, handle, indent=2, ensure_ascii=False)
        os.replace(tmp_path, self._path)
