"""Connectivity reports and push-originated alerts from the host."""

from fastapi import APIRouter, BackgroundTasks, Depends

from sosrelay.core.cache_policies import TAG_PUSH_DEFAULT
from sosrelay.core.deps import get_pipeline
from sosrelay.schemas.control import ConnectivityReport, ConnectivityResponse, PushMessage
from sosrelay.services.pipeline import Pipeline

router = APIRouter(prefix="/_relay", tags=["connectivity"])


@router.post("/connectivity", response_model=ConnectivityResponse)
async def report_connectivity(
    data: ConnectivityReport,
    background_tasks: BackgroundTasks,
    pipeline: Pipeline = Depends(get_pipeline),
):
    """Host reports online/offline; going online drains the queue."""
    triggered = pipeline.connectivity.report(data.online)
    if triggered:
        background_tasks.add_task(pipeline.sync_engine.drain)
    return ConnectivityResponse(online=data.online, drain_triggered=triggered)


@router.post("/push")
async def push_alert(
    data: PushMessage,
    pipeline: Pipeline = Depends(get_pipeline),
):
    """Surface a push-originated safety alert as a notification."""
    pipeline.notifier.notify(
        data.title or pipeline.settings.app_name,
        data.body or "New safety alert",
        data.tag or TAG_PUSH_DEFAULT,
        data=data.data,
    )
    return {"status": "notified"}
