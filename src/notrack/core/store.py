"""Key-value persistence for detection snapshots, tracker config and scan state."""

from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path
from typing import Any, Protocol

# Keys owned by the core
DETECTED_TOOLS = "detected_tools"
LAST_SCAN_TIME = "last_scan_time"
TRACKER_CONFIG = "tracker_config"
CUSTOM_TRIGGERS = "custom_triggers"
NEXT_SCAN_TIME = "next_scan_time"
SCAN_LOCK = "scan_lock"


class KeyValueStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...

    def add(self, key: str, value: Any) -> bool:
        """Set ``key`` only if absent. Returns True if the value was stored."""
        ...


class MemoryStore:
    """In-process store, values round-tripped through JSON like the sqlite store."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        raw = self._data.get(key)
        return default if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def add(self, key: str, value: Any) -> bool:
        with self._lock:
            if key in self._data:
                return False
            self._data[key] = json.dumps(value)
            return True


class SqliteStore:
    """Durable store backed by a single sqlite table of JSON-encoded values."""

    def __init__(self, path: Path) -> None:
        self.path = path
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    "CREATE TABLE IF NOT EXISTS options "
                    "(name TEXT PRIMARY KEY, value TEXT NOT NULL)"
                )
        finally:
            conn.close()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.path, timeout=10)

    def get(self, key: str, default: Any = None) -> Any:
        conn = self._connect()
        try:
            row = conn.execute("SELECT value FROM options WHERE name = ?", (key,)).fetchone()
        finally:
            conn.close()
        if row is None:
            return default
        try:
            return json.loads(row[0])
        except json.JSONDecodeError:
            return default

    def set(self, key: str, value: Any) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    "INSERT INTO options (name, value) VALUES (?, ?) "
                    "ON CONFLICT(name) DO UPDATE SET value = excluded.value",
                    (key, json.dumps(value)),
                )
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute("DELETE FROM options WHERE name = ?", (key,))
        finally:
            conn.close()

    def add(self, key: str, value: Any) -> bool:
        conn = self._connect()
        try:
            with conn:
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO options (name, value) VALUES (?, ?)",
                    (key, json.dumps(value)),
                )
                return cursor.rowcount == 1
        finally:
            conn.close()
