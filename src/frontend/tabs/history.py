"""History tab for browsing and exporting the detection log."""

from __future__ import annotations

import csv
import json
import sqlite3
from datetime import datetime
from typing import Any

from textual import on
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Button, DataTable, Static

from adapters.sqlite_storage import SQLiteStorage

from ..constants import DB_PATH, PROJECT_ROOT

HISTORY_LIMIT = 500


class HistoryTab(Container):
    """Recent detections, newest first, with JSON/CSV export."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._rows: list[dict[str, Any]] = []
        self._table_ready = False

    def compose(self):
        with Vertical(id="history-panel"):
            yield Static("Detections", id="history-title")
            yield DataTable(id="history-table", cursor_type="row")
            with Horizontal(id="history-actions"):
                yield Button("Refresh", id="history-refresh")
                yield Button("Export JSON", id="export-json", variant="success")
                yield Button("Export CSV", id="export-csv")
            yield Static("", id="history-output")

    def on_mount(self) -> None:
        table = self.query_one("#history-table", DataTable)
        table.add_column("date", key="date", width=18)
        table.add_column("source", key="source_key", width=20)
        table.add_column("keyword", key="keyword", width=18)
        table.add_column("match", key="match_type", width=12)
        table.add_column("scope", key="scope", width=18)
        table.add_column("snippet", key="text_snippet", width=42)
        table.zebra_stripes = True
        table.styles.height = "1fr"
        self.query_one("#history-actions").styles.height = 3
        self._table_ready = True
        self._load_detections()

    @on(Button.Pressed, "#history-refresh")
    def _on_refresh(self) -> None:
        self._load_detections()

    @on(Button.Pressed, "#export-json")
    def _on_export_json(self) -> None:
        self._export_rows("json")

    @on(Button.Pressed, "#export-csv")
    def _on_export_csv(self) -> None:
        self._export_rows("csv")

    def _load_detections(self) -> None:
        if not self._table_ready:
            return
        table = self.query_one("#history-table", DataTable)
        table.clear()
        if not DB_PATH.exists():
            self._rows = []
            self._set_output(f"db not found: {DB_PATH}")
            return
        try:
            rows = SQLiteStorage(str(DB_PATH)).recent_detections(HISTORY_LIMIT)
        except sqlite3.Error as exc:
            self._rows = []
            self._set_output(f"db error: {exc}")
            return

        self._rows = [dict(row) for row in rows]
        for row in rows:
            scope = row["scope"] or ""
            if row["user_id"]:
                scope = f"{scope} ({row['user_id']})"
            table.add_row(
                self._format_date_display(row["date"]),
                row["group_title"] or row["source_key"] or "",
                row["keyword"] or "",
                row["match_type"] or "",
                scope,
                self._clip_text(row["text_snippet"] or ""),
                key=str(row["id"]),
            )
        self._set_output(f"loaded {len(rows)} detections from {DB_PATH}")

    def _export_rows(self, fmt: str) -> None:
        if not self._rows:
            self._set_output("No detections to export.")
            return
        exports_dir = PROJECT_ROOT / "exports"
        exports_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        path = exports_dir / f"detections-{timestamp}.{fmt}"
        try:
            if fmt == "json":
                path.write_text(json.dumps(self._rows, indent=2, ensure_ascii=False), encoding="utf-8")
            else:
                with path.open("w", encoding="utf-8", newline="") as handle:
                    writer = csv.DictWriter(handle, fieldnames=list(self._rows[0].keys()))
                    writer.writeheader()
                    writer.writerows(self._rows)
            self._set_output(f"exported {len(self._rows)} detections to {path}")
        except OSError as exc:
            self._set_output(f"export failed: {exc.strerror or exc}")

    def _set_output(self, message: str) -> None:
        self.query_one("#history-output", Static).update(message)

    @staticmethod
    def _clip_text(value: str, limit: int = 64) -> str:
        value = " ".join(value.split())
        if len(value) <= limit:
            return value
        return value[: limit - 3] + "..."

    @staticmethod
    def _format_date_display(value: str) -> str:
        if not value:
            return ""
        return value.replace("T", " ")[:19]
