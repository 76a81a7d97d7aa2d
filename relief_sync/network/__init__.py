"""
Network module: local WebSocket bridge for UI clients.
"""

from .ws_local import LocalBridge

__all__ = ['LocalBridge']
