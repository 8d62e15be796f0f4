"""
Key-value storage backends for the Leitner engine.

The engine only ever talks to a StorageBackend: opaque string blobs stored
under string keys. Which medium holds them is the host's choice.

Backends:
- MemoryStorage: in-process dict, optional byte quota (tests, ephemeral hosts)
- JsonFileStorage: a single JSON document on disk (CLI default)
- SqliteStorage: a key/value table in SQLite (~/.leitner/storage.db)
"""

from __future__ import annotations

import json
import os
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path

from loguru import logger

from .errors import StorageError, StorageQuotaError

# =============================================================================
# Storage Keys
# =============================================================================

PROGRESS_KEY = "leitner-progress"
SETTINGS_KEY = "leitner-settings"
SESSION_KEY = "leitner-current-session"
SUBMISSIONS_KEY = "leitner-submission-states"
ACTIVITY_KEY = "leitner-daily-attempts"
SCHEMA_VERSION_KEY = "storage-schema-version"


# =============================================================================
# Backend Interface
# =============================================================================


class StorageBackend(ABC):
    """
    Abstract key/value boundary exposed to the host.

    Subclasses must implement load/save/remove/keys. Writes raise
    StorageError (or StorageQuotaError) on failure; reads of a missing key
    return None.
    """

    @abstractmethod
    def load(self, key: str) -> str | None:
        """Return the blob stored under key, or None."""
        pass

    @abstractmethod
    def save(self, key: str, blob: str) -> None:
        """Store blob under key, replacing any previous value."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete key if present."""
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """List all stored keys."""
        pass

    def close(self) -> None:
        """Release any held resources."""
        return None


class MemoryStorage(StorageBackend):
    """Dict-backed storage with an optional total size quota."""

    def __init__(self, initial: dict[str, str] | None = None, quota_bytes: int | None = None):
        self._data: dict[str, str] = dict(initial or {})
        self.quota_bytes = quota_bytes
        self.save_count = 0

    def load(self, key: str) -> str | None:
        return self._data.get(key)

    def save(self, key: str, blob: str) -> None:
        if self.quota_bytes is not None:
            used = sum(len(v) for k, v in self._data.items() if k != key)
            if used + len(blob) > self.quota_bytes:
                raise StorageQuotaError(
                    f"Writing {len(blob)} bytes to {key!r} exceeds quota of {self.quota_bytes}"
                )
        self._data[key] = blob
        self.save_count += 1

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStorage(StorageBackend):
    """
    All keys kept in one JSON object on disk.

    The file is re-read on every load so that several processes (or CLI
    invocations) observe each other's writes. Writes go through a temp file
    and os.replace so a crash never leaves a half-written document.
    """

    DEFAULT_PATH = Path.home() / ".leitner" / "storage.json"

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path).expanduser() if path else self.DEFAULT_PATH
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Unreadable storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Storage file {self.path} does not hold an object, ignoring it")
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: dict[str, str]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            raise StorageError(f"Failed to write {self.path}: {e}") from e

    def load(self, key: str) -> str | None:
        return self._read_all().get(key)

    def save(self, key: str, blob: str) -> None:
        data = self._read_all()
        data[key] = blob
        self._write_all(data)

    def remove(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)

    def keys(self) -> list[str]:
        return list(self._read_all())


class SqliteStorage(StorageBackend):
    """SQLite-backed key/value table."""

    DEFAULT_DB_PATH = Path.home() / ".leitner" / "storage.db"

    def __init__(self, db_path: Path | str | None = None):
        """
        Initialize the SQLite backend.

        Args:
            db_path: Custom database path (defaults to ~/.leitner/storage.db).
                     ":memory:" keeps everything in process.
        """
        if db_path == ":memory:":
            self.db_path: Path | None = None
        else:
            self.db_path = Path(db_path).expanduser() if db_path else self.DEFAULT_DB_PATH
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._init_schema()

        logger.debug(f"SqliteStorage initialized at {self.db_path or ':memory:'}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            target = str(self.db_path) if self.db_path else ":memory:"
            self._conn = sqlite3.connect(target)
        return self._conn

    def _init_schema(self) -> None:
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)
        self.conn.commit()

    def load(self, key: str) -> str | None:
        row = self.conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def save(self, key: str, blob: str) -> None:
        try:
            self.conn.execute(
                """
                INSERT INTO kv_store (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, blob),
            )
            self.conn.commit()
        except sqlite3.OperationalError as e:
            if "full" in str(e).lower():
                raise StorageQuotaError(str(e)) from e
            raise StorageError(str(e)) from e

    def remove(self, key: str) -> None:
        self.conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        self.conn.commit()

    def keys(self) -> list[str]:
        return [row[0] for row in self.conn.execute("SELECT key FROM kv_store ORDER BY key")]

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
