"""
Status API - HTTP surface for queue status and wake signals

Serves queue depth and the last sync summary for UI polling, accepts
submissions to queue, and exposes the wake trigger over HTTP.
"""

import logging
from typing import Any, Dict

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from ..services.errors import PayloadValidationError

logger = logging.getLogger("StatusAPI")


class EnqueueRequest(BaseModel):
    item_type: str
    payload: Dict[str, Any]


def create_app(queue_manager, sync_manager, reporter, connectivity) -> FastAPI:
    app = FastAPI(title="Relief Sync Status")

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok", "network": connectivity.get_state().value}

    @app.get("/api/status")
    async def get_status():
        """Queue depth and last sync summary."""
        status = reporter.snapshot().to_dict()
        status.update(sync_manager.get_sync_status())
        return status

    @app.get("/api/queue")
    async def list_queue():
        """Queued items without their media bodies."""
        items = queue_manager.peek_all()
        return {
            "count": len(items),
            "items": [
                {
                    "id": item.id,
                    "type": item.type.value,
                    "created_at": item.created_at,
                    "attempts": item.attempts,
                }
                for item in items
            ],
        }

    @app.post("/api/queue", status_code=202)
    async def enqueue(request: EnqueueRequest):
        try:
            item_id = queue_manager.enqueue(request.item_type, request.payload)
        except PayloadValidationError as e:
            logger.warning(f"Rejected {request.item_type} submission: {e}")
            raise HTTPException(status_code=422, detail=str(e))

        if connectivity.is_online():
            sync_manager.wake("api enqueue")
        return {"status": "saved_offline", "id": item_id}

    @app.post("/api/sync", status_code=202)
    async def wake():
        """External wake signal."""
        sync_manager.wake("api")
        return {"status": "accepted", "is_syncing": sync_manager.is_syncing}

    return app
