"""Operational utilities for the PlayZone console."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional


class HealthMonitor:
    """Aggregate poll and API health for the status endpoint."""

    def __init__(self) -> None:
        self.api_online = True
        self.last_success: Dict[str, datetime] = {}
        self.consecutive_failures: Dict[str, int] = {}
        self.last_error: Dict[str, str] = {}
        self.row_counts: Dict[str, int] = {}

    def record_poll_success(self, name: str, rows: int) -> None:
        self.api_online = True
        self.last_success[name] = datetime.now(timezone.utc)
        self.consecutive_failures[name] = 0
        self.last_error.pop(name, None)
        self.row_counts[name] = rows

    def record_poll_failure(self, name: str, message: str) -> None:
        self.consecutive_failures[name] = self.consecutive_failures.get(name, 0) + 1
        self.last_error[name] = message
        self.api_online = False

    def status(self) -> dict:
        return {
            "api": "ok" if self.api_online else "down",
            "pollers": {
                name: {
                    "last_success_age_seconds": self.success_age_seconds(name),
                    "consecutive_failures": self.consecutive_failures.get(name, 0),
                    "last_error": self.last_error.get(name),
                    "rows": self.row_counts.get(name),
                }
                for name in sorted(set(self.last_success) | set(self.consecutive_failures))
            },
        }

    def success_age_seconds(self, name: str) -> Optional[int]:
        timestamp = self.last_success.get(name)
        if not timestamp:
            return None
        return int((datetime.now(timezone.utc) - timestamp).total_seconds())


class StructuredLogger:
    """Write JSON lines log entries for operator inspection."""

    def __init__(self, *, path: Path | None = None, max_entries: int = 1000) -> None:
        self.path = path
        self.max_entries = max_entries
        self._entries: list[dict] = []

    def log(self, event_type: str, **fields: object) -> dict:
        entry = {"timestamp": datetime.now(timezone.utc).isoformat(), "event": event_type, **fields}
        self._entries.append(entry)
        if len(self._entries) > self.max_entries:
            del self._entries[: len(self._entries) - self.max_entries]
        if self.path:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(entry, default=str) + "\n")
        return entry

    def tail(self, limit: int = 50) -> tuple[dict, ...]:
        return tuple(self._entries[-limit:])

    def events(self, event_type: str) -> tuple[dict, ...]:
        return tuple(entry for entry in self._entries if entry["event"] == event_type)


__all__ = ["HealthMonitor", "StructuredLogger"]
