"""Install/activate entry points for cache generations."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from sosrelay.core.deps import get_pipeline
from sosrelay.core.errors import AssetFetchError, LifecycleError, PersistenceError
from sosrelay.schemas.lifecycle import LifecycleStatus
from sosrelay.services.pipeline import Pipeline

router = APIRouter(prefix="/_relay/lifecycle", tags=["lifecycle"])


@router.get("", response_model=LifecycleStatus)
def get_status(pipeline: Pipeline = Depends(get_pipeline)):
    """Active and waiting generations plus the tiers on disk."""
    try:
        return pipeline.lifecycle.status()
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.post("/install", response_model=LifecycleStatus)
async def install(pipeline: Pipeline = Depends(get_pipeline)):
    """Install the configured generation. Activates it too unless it has to wait."""
    try:
        await pipeline.lifecycle.install()
        return pipeline.lifecycle.status()
    except AssetFetchError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.post("/activate", response_model=LifecycleStatus)
def activate(pipeline: Pipeline = Depends(get_pipeline)):
    """Promote the waiting generation and collect stale tiers."""
    try:
        pipeline.lifecycle.activate()
        return pipeline.lifecycle.status()
    except LifecycleError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
