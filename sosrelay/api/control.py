"""Control channel - messages from the host application."""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from sosrelay.core.deps import get_pipeline
from sosrelay.core.errors import LifecycleError, PersistenceError
from sosrelay.schemas.control import ControlAck, ControlMessage
from sosrelay.services.pipeline import Pipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/_relay", tags=["control"])


@router.post("/control", response_model=ControlAck, status_code=status.HTTP_202_ACCEPTED)
async def control(
    message: ControlMessage,
    background_tasks: BackgroundTasks,
    pipeline: Pipeline = Depends(get_pipeline),
):
    """Accept SKIP_WAITING or QUEUE_SOS."""
    logger.info("Control message received: %s", message.type)
    if message.type == "SKIP_WAITING":
        try:
            pipeline.lifecycle.skip_waiting()
        except (LifecycleError, PersistenceError) as exc:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    else:
        # Runs after the response is sent; the server awaits it before finishing the request
        background_tasks.add_task(pipeline.sync_engine.drain)
    return ControlAck(type=message.type)
