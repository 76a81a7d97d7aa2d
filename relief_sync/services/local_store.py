"""
local_store.py - SQLite key/value store for the offline queue

Holds the serialized queue and the last-sync record so both survive
process restarts. Writes are best effort: save() reports failures in a
SaveResult instead of raising into caller code.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

from .errors import StoreUnavailableError
from .models import LastSyncInfo, QueueItem

logger = logging.getLogger("LocalStore")

# Versioned keys so format changes never collide with old data
QUEUE_KEY = "offlineQueue:v1"
LAST_SYNC_KEY = "offlineQueue:lastSync"


@dataclass(frozen=True)
class SaveResult:
    """Outcome of a best-effort write."""
    ok: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class RawQueueEntry:
    """A stored entry this build cannot read. Written back unchanged on save."""
    data: Any

    @property
    def entry_id(self) -> Optional[str]:
        return str(self.data.get("id")) if isinstance(self.data, dict) else None


QueueEntry = Union[QueueItem, RawQueueEntry]


class LocalStore:
    """SQLite-backed persistence for queued items."""

    def __init__(self, db_path):
        self.db_path = str(db_path)
        self._memory_conn: Optional[sqlite3.Connection] = None
        self._reported_raw = set()
        try:
            self._ensure_data_dir()
            self._init_db()
        except (OSError, sqlite3.Error) as e:
            logger.warning(f"Cannot open queue database at {self.db_path} ({e}); "
                           f"falling back to in-memory storage for this process")
            self._memory_conn = sqlite3.connect(":memory:", check_same_thread=False)
            self._init_db()

    @property
    def is_persistent(self) -> bool:
        return self._memory_conn is None

    def _ensure_data_dir(self):
        """Create the parent directory of the database file if needed."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _connection(self):
        if self._memory_conn is not None:
            yield self._memory_conn
            return
        conn = sqlite3.connect(self.db_path, timeout=5)
        try:
            yield conn
        finally:
            conn.close()

    def _init_db(self):
        """Initialize schema if the table doesn't exist."""
        with self._connection() as conn:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            ''')
            conn.commit()
        logger.info(f"Queue store initialized at: {self.db_path if self.is_persistent else ':memory:'}")

    # ==================== Raw Key/Value ====================

    def _read(self, key: str) -> Optional[str]:
        try:
            with self._connection() as conn:
                row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Cannot read {key}: {e}") from e
        return row[0] if row else None

    def _write(self, key: str, value: str) -> SaveResult:
        try:
            with self._connection() as conn:
                # Single statement inside one transaction: readers see old or new, never partial
                with conn:
                    conn.execute('''
                        INSERT OR REPLACE INTO kv_store (key, value, updated_at)
                        VALUES (?, ?, CURRENT_TIMESTAMP)
                    ''', (key, value))
            return SaveResult(ok=True)
        except sqlite3.Error as e:
            logger.error(f"Failed to persist {key}: {e}")
            return SaveResult(ok=False, error=str(e))

    # ==================== Queue ====================

    def load_entries(self) -> List[QueueEntry]:
        """
        Load every stored entry in insertion order.

        Entries that cannot be decoded come back as RawQueueEntry so a
        read-modify-write keeps them instead of deleting them.

        Raises:
            StoreUnavailableError: if the database cannot be read at all
        """
        raw = self._read(QUEUE_KEY)
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Stored queue is not valid JSON, treating as empty: {e}")
            return []
        if not isinstance(parsed, list):
            logger.warning("Stored queue is not a list, treating as empty")
            return []

        entries: List[QueueEntry] = []
        for position, entry in enumerate(parsed):
            try:
                entries.append(QueueItem.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                kept = RawQueueEntry(entry)
                key = kept.entry_id or f"#{position}"
                if key not in self._reported_raw:
                    self._reported_raw.add(key)
                    logger.warning(f"Keeping unreadable queue entry {key} as stored: {e}")
                entries.append(kept)
        return entries

    def load(self) -> List[QueueItem]:
        """
        Load the readable queued items in insertion order.

        Raises:
            StoreUnavailableError: if the database cannot be read at all
        """
        return [e for e in self.load_entries() if isinstance(e, QueueItem)]

    def save(self, entries: Iterable[QueueEntry]) -> SaveResult:
        """Replace the whole stored queue. RawQueueEntry values are written back verbatim."""
        try:
            raw = json.dumps([
                e.data if isinstance(e, RawQueueEntry) else e.to_dict()
                for e in entries
            ])
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize queue: {e}")
            return SaveResult(ok=False, error=str(e))
        return self._write(QUEUE_KEY, raw)

    # ==================== Last Sync ====================

    def load_last_sync(self) -> Optional[LastSyncInfo]:
        raw = self._read(LAST_SYNC_KEY)
        if not raw:
            return None
        try:
            return LastSyncInfo.from_dict(json.loads(raw))
        except ValueError:
            logger.warning("Stored last-sync record is not valid JSON")
            return None

    def save_last_sync(self, info: LastSyncInfo) -> SaveResult:
        return self._write(LAST_SYNC_KEY, json.dumps(info.to_dict()))
