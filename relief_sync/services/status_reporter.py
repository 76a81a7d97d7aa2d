"""
status_reporter.py - Read-only view of queue depth and last sync

Never mutates the queue and never triggers retries.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Optional

from .errors import StoreUnavailableError
from .models import LastSyncInfo, QueueItemType

logger = logging.getLogger("StatusReporter")


@dataclass(frozen=True)
class QueueStatus:
    queue_depth: int
    last_sync: Optional[LastSyncInfo]
    stalled_count: int = 0
    available: bool = True
    by_type: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        last = self.last_sync.to_dict() if self.last_sync else None
        if last:
            last["iso_timestamp"] = datetime.fromtimestamp(self.last_sync.timestamp / 1000).isoformat()
        return {
            "queue_depth": self.queue_depth,
            "last_sync": last,
            "stalled_count": self.stalled_count,
            "available": self.available,
            "by_type": dict(self.by_type),
        }


class StatusReporter:
    """Exposes queue depth and the last sync summary for display."""

    def __init__(self, queue_manager, stalled_attempts: int = 5):
        self.queue = queue_manager
        self.stalled_attempts = stalled_attempts
        self.latest: Optional[QueueStatus] = None
        self._listeners = []

    def snapshot(self) -> QueueStatus:
        """Current status; store failures are logged and reported as unavailable."""
        try:
            items = self.queue.peek_all()
            last_sync = self.queue.last_sync()
        except StoreUnavailableError as e:
            logger.error(f"Status unavailable: {e}")
            self.latest = QueueStatus(queue_depth=0, last_sync=None, available=False)
            return self.latest

        # Items past the threshold are surfaced, never dropped
        stalled = sum(1 for i in items if i.attempts >= self.stalled_attempts)
        by_type = {t.value: sum(1 for i in items if i.type is t) for t in QueueItemType}
        self.latest = QueueStatus(queue_depth=len(items), last_sync=last_sync,
                                  stalled_count=stalled, by_type=by_type)
        return self.latest

    def on_update(self, callback: Callable):
        """Callback signature: (status: QueueStatus)"""
        self._listeners.append(callback)

    def refresh(self) -> QueueStatus:
        status = self.snapshot()
        for callback in self._listeners:
            try:
                callback(status)
            except Exception as e:
                logger.error(f"Status listener error: {e}")
        return status

    def notify_sync_completed(self, summary=None) -> QueueStatus:
        """Sync-completed signal: refresh right away instead of waiting for the next poll."""
        return self.refresh()

    async def run_polling(self, interval: float = 5):
        """Refresh every `interval` seconds until cancelled."""
        while True:
            self.refresh()
            await asyncio.sleep(interval)
