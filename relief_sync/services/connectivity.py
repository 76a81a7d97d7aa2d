"""
connectivity.py - Online/offline signal for the sync orchestrator

Tracks whether the backend is reachable, based on explicit signals from
the host application and on periodic health probes, and notifies
listeners when connectivity is restored.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

logger = logging.getLogger("Connectivity")


class NetworkState(Enum):
    """Connectivity states."""
    UNKNOWN = "unknown"    # No signal received yet
    ONLINE = "online"
    OFFLINE = "offline"


class ConnectivityMonitor:
    """
    Online/offline state machine.

    Any transition into ONLINE fires the reconnect callbacks, including the
    first one after start-up, so queued items are attempted on load.
    """

    def __init__(self, max_failures_before_offline: int = 3):
        self.state: NetworkState = NetworkState.UNKNOWN
        self.last_probe_success: Optional[datetime] = None
        self.consecutive_failures: int = 0
        self.max_failures_before_offline = max_failures_before_offline

        self._on_state_change_callbacks: List[Callable] = []
        self._on_reconnect_callbacks: List[Callable] = []

    # ==================== State ====================

    def get_state(self) -> NetworkState:
        return self.state

    def is_online(self) -> bool:
        return self.state == NetworkState.ONLINE

    def is_offline(self) -> bool:
        return self.state == NetworkState.OFFLINE

    def _set_state(self, new_state: NetworkState, reason: str = ""):
        if new_state == self.state:
            return

        old_state = self.state
        self.state = new_state
        logger.info(f"Network state: {old_state.value} -> {new_state.value} | Reason: {reason}")

        for callback in self._on_state_change_callbacks:
            try:
                callback(old_state, new_state, reason)
            except Exception as e:
                logger.error(f"State change callback error: {e}")

        if new_state == NetworkState.ONLINE:
            for callback in self._on_reconnect_callbacks:
                try:
                    callback()
                except Exception as e:
                    logger.error(f"Reconnect callback error: {e}")

    # ==================== Signals ====================

    def mark_online(self, reason: str = "online event"):
        """Explicit online signal from the host runtime."""
        self.consecutive_failures = 0
        self.last_probe_success = datetime.now()
        self._set_state(NetworkState.ONLINE, reason)

    def mark_offline(self, reason: str = "offline event"):
        """Explicit offline signal from the host runtime."""
        self.consecutive_failures = self.max_failures_before_offline
        self._set_state(NetworkState.OFFLINE, reason)

    def on_probe_success(self):
        self.mark_online("Backend reachable")

    def on_probe_failure(self, error: str = ""):
        self.consecutive_failures += 1
        logger.warning(
            f"Connectivity probe failed ({self.consecutive_failures}/{self.max_failures_before_offline}): {error}"
        )
        if self.consecutive_failures >= self.max_failures_before_offline:
            self._set_state(NetworkState.OFFLINE, f"Unreachable after {self.consecutive_failures} probes")

    async def probe(self, backend) -> bool:
        """Ask the backend whether it is reachable and update the state."""
        reachable = await backend.health_check()
        if reachable:
            self.on_probe_success()
        else:
            self.on_probe_failure("health check failed")
        return reachable

    # ==================== Callbacks ====================

    def on_state_change(self, callback: Callable):
        """Callback signature: (old: NetworkState, new: NetworkState, reason: str)"""
        self._on_state_change_callbacks.append(callback)

    def on_reconnect(self, callback: Callable):
        """Callback signature: ()"""
        self._on_reconnect_callbacks.append(callback)

    def get_status(self) -> dict:
        return {
            "state": self.state.value,
            "is_online": self.is_online(),
            "last_probe_success": self.last_probe_success.isoformat() if self.last_probe_success else None,
            "consecutive_failures": self.consecutive_failures,
        }
