"""
sync_manager.py - Store-and-Forward Sync Manager

Drains the offline queue when connectivity is restored, on a periodic
timer, or on an explicit wake message. Items are submitted one at a time
in queue order; one item's failure never aborts the cycle.
"""

import asyncio
import logging
from dataclasses import dataclass, asdict
from typing import Callable, List, Optional

from .errors import StoreUnavailableError
from .models import LastSyncInfo, QueueItem, now_ms

logger = logging.getLogger("SyncManager")


@dataclass(frozen=True)
class SyncSummary:
    """Result of one drain request."""
    status: str  # "success", "skipped" or "error"
    processed: int = 0
    errors: int = 0
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


class SyncManager:
    """
    Manages synchronization of queued submissions to the backend.

    Only one drain runs at a time; triggers that arrive while a drain is in
    flight are dropped instead of starting a second pass over the same items.
    """

    def __init__(self, queue_manager, registry, connectivity, backend,
                 submit_timeout: float = 30, sync_interval: float = 60):
        self.queue = queue_manager
        self.registry = registry
        self.connectivity = connectivity
        self.backend = backend
        self.submit_timeout = submit_timeout
        self.sync_interval = sync_interval

        self.is_syncing = False
        self.running = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks = set()
        self._on_complete_callbacks: List[Callable] = []

        connectivity.on_reconnect(self._on_reconnect)
        logger.info(f"SyncManager initialized (interval: {sync_interval}s, timeout: {submit_timeout}s)")

    # ==================== Triggers ====================

    def _on_reconnect(self):
        """Callback triggered when connection is restored."""
        logger.info("Reconnect detected - triggering sync")
        self._schedule("reconnect")

    def wake(self, reason: str = "wake"):
        """External 'try now' signal; treated like a timer tick."""
        logger.info(f"Wake signal received ({reason})")
        return self._schedule(reason)

    def _schedule(self, trigger: str):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            task = loop.create_task(self.drain(trigger))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return task

        # Called from a worker thread: hand the drain to the sync loop
        if self._loop is not None and self._loop.is_running():
            return asyncio.run_coroutine_threadsafe(self.drain(trigger), self._loop)

        logger.warning(f"No running event loop, ignoring {trigger} trigger")
        return None

    async def run_periodic(self, probe: bool = True):
        """Drain every sync_interval seconds until stop() is called."""
        self.running = True
        self._loop = asyncio.get_running_loop()
        logger.info(f"Periodic sync started (every {self.sync_interval}s)")

        while self.running:
            try:
                if probe:
                    await self.connectivity.probe(self.backend)
                await self.drain("timer")
            except Exception as e:
                logger.error(f"Periodic sync error: {e}", exc_info=True)
            await asyncio.sleep(self.sync_interval)

        logger.info("Periodic sync stopped")

    def stop(self):
        self.running = False
        for task in list(self._tasks):
            task.cancel()

    def on_sync_complete(self, callback: Callable):
        """
        Register a callback for finished drain cycles.

        Callback signature: (summary: SyncSummary)
        """
        self._on_complete_callbacks.append(callback)

    # ==================== Drain ====================

    async def drain(self, trigger: str = "manual") -> SyncSummary:
        """
        Submit every queued item once, oldest first.

        Returns:
            SyncSummary with processed/error counts
        """
        if self.is_syncing:
            logger.warning(f"Sync already in progress, skipping {trigger} trigger")
            return SyncSummary(status="skipped", reason="sync_in_progress")

        if not self.backend.is_configured():
            logger.debug("Backend not configured, nothing to do")
            return SyncSummary(status="skipped", reason="backend_not_configured")

        if not self.connectivity.is_online():
            logger.debug(f"Network {self.connectivity.get_state().value}, skipping sync")
            return SyncSummary(status="skipped", reason="offline")

        self.is_syncing = True
        try:
            return await self._drain_snapshot(trigger)
        finally:
            self.is_syncing = False

    async def _drain_snapshot(self, trigger: str) -> SyncSummary:
        try:
            items = self.queue.peek_all()
        except StoreUnavailableError as e:
            logger.error(f"Cannot read offline queue, aborting sync: {e}")
            return SyncSummary(status="error", reason=str(e))

        if items:
            logger.info(f"Syncing {len(items)} queued item(s) (trigger: {trigger})")

        processed = 0
        errors = 0
        try:
            for item in items:
                if await self._submit_item(item):
                    processed += 1
                    removed = self.queue.remove_by_id(item.id)
                    if not removed.ok:
                        # Still queued, so the next cycle submits it again
                        logger.warning(f"{item.type.value} {item.id} submitted but not removed from queue, "
                                       f"expect a duplicate submission: {removed.error}")
                else:
                    errors += 1
                    bumped = self.queue.bump_attempts(item.id)
                    if not bumped.ok:
                        logger.warning(f"Attempt count for {item.id} not saved: {bumped.error}")
        except StoreUnavailableError as e:
            logger.error(f"Offline queue became unreadable mid-sync, aborting: {e}")
            return SyncSummary(status="error", processed=processed, errors=errors, reason=str(e))

        self.queue.record_sync(LastSyncInfo(timestamp=now_ms(), processed=processed, errors=errors))
        summary = SyncSummary(status="success", processed=processed, errors=errors)

        if processed:
            logger.info(f"Synced {processed} offline item(s), {errors} failed")
        elif errors:
            logger.warning(f"Sync finished with {errors} failed item(s)")

        for callback in self._on_complete_callbacks:
            try:
                callback(summary)
            except Exception as e:
                logger.error(f"Sync complete callback error: {e}")

        return summary

    async def _submit_item(self, item: QueueItem) -> bool:
        driver = self.registry.get_driver(item.type)
        if driver is None:
            logger.error(f"No driver for {item.type.value}, leaving {item.id} queued")
            return False

        try:
            result = await asyncio.wait_for(driver.submit(item.payload), timeout=self.submit_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Submission of {item.type.value} {item.id} timed out after {self.submit_timeout}s")
            return False
        except Exception as e:
            logger.error(f"Unexpected error submitting {item.type.value} {item.id}: {e}", exc_info=True)
            return False

        if not result.ok:
            logger.warning(f"Offline queue sync failed for {item.type.value} {item.id} "
                           f"(attempt {item.attempts + 1}): {result.error}")
        return result.ok

    def get_sync_status(self) -> dict:
        """Get current sync status."""
        return {
            "is_syncing": self.is_syncing,
            "network": self.connectivity.get_state().value,
            "backend_configured": self.backend.is_configured(),
        }

