"""WebSocket endpoint streaming notifications to the host app."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from sosrelay.core.deps import get_pipeline
from sosrelay.services.pipeline import Pipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/_relay")


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, pipeline: Pipeline = Depends(get_pipeline)):
    """
    Server pushes {"event": "notification", "data": {...}} for queued and
    sent SOS alerts and for push alerts.
    """
    connections = pipeline.connections
    await connections.connect(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            # Echo pong for heartbeat
            if data == "ping":
                await websocket.send_text('{"event":"pong"}')
    except WebSocketDisconnect:
        pass
    finally:
        connections.disconnect(websocket)
