"""
queue_manager.py - Owner of the offline submission queue

All reads and writes of the local store go through QueueManager, which
serializes every read-modify-write cycle behind one lock so that the
bridge, the status API and the sync loop cannot lose each other's updates.
"""

import logging
import threading
from typing import List, Optional

from .errors import StoreUnavailableError
from .local_store import LocalStore, SaveResult
from .models import LastSyncInfo, QueueItem

logger = logging.getLogger("QueueManager")


class QueueManager:
    """Enqueue, inspect and settle queued submissions."""

    def __init__(self, store: LocalStore):
        self.store = store
        self._lock = threading.RLock()

    def enqueue(self, item_type, payload) -> str:
        """
        Validate and persist a new submission.

        Args:
            item_type: QueueItemType or its string value
            payload: payload dataclass or a dict of its fields

        Returns:
            The new item's id. The id is returned even when the write fails;
            the failure is logged.

        Raises:
            PayloadValidationError: if the payload is invalid
        """
        item = QueueItem.create(item_type, payload)
        with self._lock:
            try:
                entries = self.store.load_entries()
            except StoreUnavailableError as e:
                logger.error(f"Could not persist {item.type.value} {item.id}: {e}")
                return item.id
            entries.append(item)
            result = self.store.save(entries)

        if result.ok:
            logger.info(f"Queued {item.type.value} {item.id} (depth: {len(entries)})")
        else:
            logger.error(f"Queued {item.type.value} {item.id} but persisting failed: {result.error}")
        return item.id

    def peek_all(self) -> List[QueueItem]:
        """Snapshot of the queue, oldest first."""
        with self._lock:
            return list(self.store.load())

    def remove_by_id(self, item_id: str) -> SaveResult:
        """Delete an item. Removing an absent id is a no-op."""
        with self._lock:
            # Unreadable entries pass through untouched
            entries = self.store.load_entries()
            remaining = [e for e in entries if not (isinstance(e, QueueItem) and e.id == item_id)]
            if len(remaining) == len(entries):
                return SaveResult(ok=True)
            result = self.store.save(remaining)

        if not result.ok:
            logger.error(f"Failed to remove {item_id}: {result.error}")
        return result

    def bump_attempts(self, item_id: str) -> SaveResult:
        """Increment an item's attempt count. No-op if absent."""
        with self._lock:
            entries = self.store.load_entries()
            for index, entry in enumerate(entries):
                if isinstance(entry, QueueItem) and entry.id == item_id:
                    entries[index] = entry.with_attempt()
                    break
            else:
                return SaveResult(ok=True)
            result = self.store.save(entries)

        if not result.ok:
            logger.error(f"Failed to record attempt for {item_id}: {result.error}")
        return result

    def count(self) -> int:
        with self._lock:
            return len(self.store.load())

    # ==================== Last Sync Record ====================

    def record_sync(self, info: LastSyncInfo) -> SaveResult:
        with self._lock:
            result = self.store.save_last_sync(info)
        if not result.ok:
            logger.error(f"Failed to record sync summary: {result.error}")
        return result

    def last_sync(self) -> Optional[LastSyncInfo]:
        with self._lock:
            return self.store.load_last_sync()


# Process-wide instance
_queue_manager_instance: Optional[QueueManager] = None
_instance_lock = threading.Lock()


def init_queue_manager(db_path) -> QueueManager:
    """Create the process-wide QueueManager. Later calls return the same instance."""
    global _queue_manager_instance
    with _instance_lock:
        if _queue_manager_instance is None:
            _queue_manager_instance = QueueManager(LocalStore(db_path))
        return _queue_manager_instance


def get_queue_manager() -> QueueManager:
    """Get the process-wide QueueManager."""
    if _queue_manager_instance is None:
        raise RuntimeError("QueueManager not initialized; call init_queue_manager() first")
    return _queue_manager_instance


def reset_queue_manager():
    """Drop the process-wide instance (used on shutdown and in tests)."""
    global _queue_manager_instance
    with _instance_lock:
        _queue_manager_instance = None
