"""Offline queue inspection and on-demand sync."""

from fastapi import APIRouter, Depends, HTTPException, status

from sosrelay.core.deps import get_pipeline
from sosrelay.core.errors import PersistenceError
from sosrelay.schemas.queue import QueueEntry, SyncReport
from sosrelay.services.pipeline import Pipeline

router = APIRouter(prefix="/_relay", tags=["queue"])


@router.get("/queue", response_model=list[QueueEntry])
def list_queue(pipeline: Pipeline = Depends(get_pipeline)):
    """Pending SOS entries, oldest first."""
    try:
        queue = pipeline.sync_engine.queue()
        return queue.list() if queue is not None else []
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.post("/sync", response_model=SyncReport)
async def sync_now(pipeline: Pipeline = Depends(get_pipeline)):
    """Run a drain now and report what happened."""
    return await pipeline.sync_engine.drain()
