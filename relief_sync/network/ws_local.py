"""
ws_local.py - Local WebSocket Bridge for UI clients

Lets local UI components queue submissions, report connectivity changes,
send wake ("offline-queue-sync") messages and receive queue status
broadcasts after every sync cycle.
"""

import asyncio
import json
import logging
from typing import Set

import websockets

from ..services.errors import PayloadValidationError

logger = logging.getLogger("LocalBridge")

WAKE_MESSAGE = "offline-queue-sync"


class LocalBridge:
    """WebSocket endpoint in front of the queue, sync manager and status reporter."""

    def __init__(self, queue_manager, sync_manager, reporter, connectivity):
        self.queue = queue_manager
        self.sync = sync_manager
        self.reporter = reporter
        self.connectivity = connectivity
        self.clients: Set = set()
        self._tasks: Set = set()

    def _status_message(self) -> dict:
        status = self.reporter.snapshot().to_dict()
        status["online"] = self.connectivity.is_online()
        status["network"] = self.connectivity.get_state().value
        status["is_syncing"] = self.sync.is_syncing
        return {"type": "status", "data": status}

    async def broadcast_status(self):
        """Broadcast current status to all connected clients."""
        if not self.clients:
            return
        status_msg = json.dumps(self._status_message())
        await asyncio.gather(
            *[client.send(status_msg) for client in list(self.clients)],
            return_exceptions=True
        )

    def handle_message(self, data: dict) -> dict:
        """Handle one decoded client message and return the reply."""
        msg_type = data.get("type")
        logger.info(f"Received: {msg_type}")

        # ==================== Enqueue ====================
        if msg_type == "enqueue":
            try:
                item_id = self.queue.enqueue(data.get("item_type"), data.get("payload"))
            except PayloadValidationError as e:
                return {"type": "enqueue_error", "error": str(e), "code": "INVALID_PAYLOAD"}

            if self.connectivity.is_online():
                self.sync.wake("enqueue")
            return {
                "type": "enqueue_ack",
                "status": "saved_offline",
                "id": item_id,
                "message": "Saved offline. Will sync when online.",
            }

        # ==================== Wake ====================
        elif msg_type == WAKE_MESSAGE:
            self.sync.wake("bridge message")
            return {"type": "sync_ack", "is_syncing": self.sync.is_syncing}

        # ==================== Connectivity ====================
        elif msg_type == "connectivity":
            if data.get("online"):
                self.connectivity.mark_online("client online event")
            else:
                self.connectivity.mark_offline("client offline event")
            return self._status_message()

        # ==================== Status ====================
        elif msg_type == "get_status":
            return self._status_message()

        elif msg_type == "get_pending":
            return {"type": "pending_info", "count": self.reporter.snapshot().queue_depth}

        # ==================== Ping/Pong ====================
        elif msg_type == "ping":
            return {"type": "pong", "timestamp": data.get("timestamp")}

        logger.warning(f"Unknown message type: {msg_type}")
        return {"type": "error", "error": f"Unknown message type: {msg_type}"}

    async def handler(self, websocket):
        """Handle one UI client connection."""
        logger.info(f"Client connected: {websocket.remote_address}")
        self.clients.add(websocket)

        try:
            await websocket.send(json.dumps(self._status_message()))

            async for message in websocket:
                try:
                    data = json.loads(message)
                except json.JSONDecodeError:
                    logger.error("Invalid JSON received")
                    await websocket.send(json.dumps({"type": "error", "error": "Invalid JSON format"}))
                    continue
                if not isinstance(data, dict):
                    await websocket.send(json.dumps({"type": "error", "error": "Expected a JSON object"}))
                    continue

                reply = self.handle_message(data)
                await websocket.send(json.dumps(reply))
                if reply.get("type") == "enqueue_ack":
                    await self.broadcast_status()

        except websockets.exceptions.ConnectionClosed:
            logger.info("Client disconnected")
        finally:
            self.clients.discard(websocket)

    def _spawn_broadcast(self, loop: asyncio.AbstractEventLoop) -> asyncio.Task:
        task = loop.create_task(self.broadcast_status())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def serve(self, host: str = "0.0.0.0", port: int = 8002):
        """Run the bridge until cancelled."""
        loop = asyncio.get_running_loop()
        self.sync.on_sync_complete(lambda summary: self._spawn_broadcast(loop))

        async with websockets.serve(self.handler, host, port):
            logger.info(f"Local WebSocket Bridge started on ws://{host}:{port}")
            await loop.create_future()
