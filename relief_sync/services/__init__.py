"""
Services module for relief-sync.

Provides the offline submission queue, its local store, connectivity
tracking, the backend client and the sync orchestrator.
"""

from .backend_client import BackendClient
from .connectivity import ConnectivityMonitor, NetworkState
from .local_store import LocalStore, RawQueueEntry, SaveResult
from .models import IncidentPayload, LastSyncInfo, PledgePayload, QueueItem, QueueItemType
from .queue_manager import QueueManager, init_queue_manager, get_queue_manager, reset_queue_manager
from .status_reporter import QueueStatus, StatusReporter
from .sync_manager import SyncManager, SyncSummary

__all__ = [
    'BackendClient',
    'ConnectivityMonitor',
    'NetworkState',
    'LocalStore',
    'RawQueueEntry',
    'SaveResult',
    'IncidentPayload',
    'LastSyncInfo',
    'PledgePayload',
    'QueueItem',
    'QueueItemType',
    'QueueManager',
    'init_queue_manager',
    'get_queue_manager',
    'reset_queue_manager',
    'QueueStatus',
    'StatusReporter',
    'SyncManager',
    'SyncSummary',
]
