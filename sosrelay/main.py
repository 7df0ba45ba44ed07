"""sosrelay FastAPI application."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from sosrelay.api import connectivity, control, health, lifecycle, proxy, queue, ws
from sosrelay.core.config import settings
from sosrelay.core.ws_manager import ConnectionManager
from sosrelay.db.base import Base
from sosrelay.db.session import SessionLocal, engine
from sosrelay.models import CacheTier, CachedEntry, LifecycleRecord  # noqa: F401 - register for create_all
from sosrelay.services.notifier import WebSocketNotifier
from sosrelay.services.pipeline import build_pipeline
from sosrelay.services.sync_engine import run_periodic

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    http = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    connections = ConnectionManager()
    pipeline = build_pipeline(
        settings,
        SessionLocal,
        http,
        WebSocketNotifier(connections),
        connections=connections,
    )
    app.state.pipeline = pipeline

    periodic: asyncio.Task | None = None
    if settings.sync_interval_seconds > 0:
        periodic = asyncio.create_task(run_periodic(pipeline.sync_engine, settings.sync_interval_seconds))
        logger.info("Periodic SOS sync every %ss", settings.sync_interval_seconds)

    try:
        yield
    finally:
        if periodic is not None:
            periodic.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await periodic
        await http.aclose()


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(control.router)
app.include_router(queue.router)
app.include_router(lifecycle.router)
app.include_router(connectivity.router)
app.include_router(ws.router)
# Must stay last: it matches every path
app.include_router(proxy.router)
