"""Wiring for one alerting pipeline instance.

Everything a component needs is passed in explicitly, so separate
pipelines (one per test, say) never share state.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from sqlalchemy.orm import sessionmaker

from sosrelay.core.config import Settings
from sosrelay.core.ws_manager import ConnectionManager
from sosrelay.services.cache_storage import CacheStorage
from sosrelay.services.connectivity import ConnectivityMonitor
from sosrelay.services.lifecycle import LifecycleController
from sosrelay.services.notifier import Notifier
from sosrelay.services.request_router import RequestRouter
from sosrelay.services.sync_engine import SyncEngine


@dataclass
class Pipeline:
    settings: Settings
    storage: CacheStorage
    lifecycle: LifecycleController
    router: RequestRouter
    sync_engine: SyncEngine
    connectivity: ConnectivityMonitor
    notifier: Notifier
    connections: ConnectionManager


def build_pipeline(
    settings: Settings,
    session_factory: sessionmaker,
    http: httpx.AsyncClient,
    notifier: Notifier,
    connections: ConnectionManager | None = None,
) -> Pipeline:
    storage = CacheStorage(session_factory)
    lifecycle = LifecycleController(session_factory, storage, settings, http)
    return Pipeline(
        settings=settings,
        storage=storage,
        lifecycle=lifecycle,
        router=RequestRouter(lifecycle, storage, settings, http, notifier),
        sync_engine=SyncEngine(lifecycle, storage, settings, http, notifier),
        connectivity=ConnectivityMonitor(),
        notifier=notifier,
        connections=connections if connections is not None else ConnectionManager(),
    )
