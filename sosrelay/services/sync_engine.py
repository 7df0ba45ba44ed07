"""Synchronization Engine - drains the offline queue against the emergency endpoint.

Entries are delivered oldest first. The first failure stops the drain so
nothing is ever delivered out of order; the failed entry and everything
after it wait for the next trigger. Delivery is at-least-once: an entry
whose acknowledgment was received but whose removal could not be persisted
is sent again next time.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from sosrelay.core.cache_policies import TAG_SOS_SENT
from sosrelay.core.config import Settings
from sosrelay.core.errors import PersistenceError, RemoteRejectionError, TransientNetworkError
from sosrelay.schemas.queue import QueueEntry, SyncReport, SyncResult
from sosrelay.services.cache_storage import CacheStorage
from sosrelay.services.lifecycle import LifecycleController
from sosrelay.services.notifier import Notifier
from sosrelay.services.offline_queue import OfflineQueue

logger = logging.getLogger(__name__)


class SyncEngine:
    def __init__(
        self,
        lifecycle: LifecycleController,
        storage: CacheStorage,
        settings: Settings,
        http: httpx.AsyncClient,
        notifier: Notifier,
    ) -> None:
        self._lifecycle = lifecycle
        self._storage = storage
        self._settings = settings
        self._http = http
        self._notifier = notifier
        self._lock = asyncio.Lock()

    @property
    def draining(self) -> bool:
        return self._lock.locked()

    @property
    def endpoint(self) -> str:
        return self._settings.remote_base_url.rstrip("/") + self._settings.critical_path

    def queue(self) -> OfflineQueue | None:
        """Queue of the active generation, or None before the first activation."""
        generation = self._lifecycle.active_generation()
        if generation is None:
            return None
        manager = self._lifecycle.tier_manager(generation)
        return OfflineQueue(self._storage, manager.dynamic_tier, generation)

    async def drain(self) -> SyncReport:
        """Run one drain. A trigger arriving mid-drain is a no-op."""
        if self._lock.locked():
            logger.info("Drain already in progress; trigger ignored")
            return SyncReport(skipped=True)
        async with self._lock:
            return await self._drain()

    async def _drain(self) -> SyncReport:
        try:
            queue = self.queue()
            entries = queue.list() if queue is not None else []
        except PersistenceError as exc:
            logger.error("SOS sync failed, queue unavailable: %s", exc)
            return SyncReport()

        if not entries:
            return SyncReport()

        logger.info("Syncing %s SOS requests...", len(entries))
        results: list[SyncResult] = []
        delivered: list[int] = []
        stopped_at: int | None = None

        for entry in entries:
            try:
                await self._deliver(entry)
            except (TransientNetworkError, RemoteRejectionError) as exc:
                logger.warning("Failed to sync SOS request %s: %s", entry.id, exc)
                results.append(SyncResult(id=entry.id, delivered=False, error=str(exc)))
                stopped_at = entry.id
                break
            logger.info("SOS request synced: %s", entry.id)
            delivered.append(entry.id)
            results.append(SyncResult(id=entry.id, delivered=True))
            self._notifier.notify(
                f"{self._settings.app_name} - SOS Sent",
                "Emergency alert successfully transmitted to authorities.",
                TAG_SOS_SENT,
                data={"id": entry.id},
            )

        remaining = len(entries)
        try:
            # Activation may have moved the queue into a new tier while delivering
            current = self.queue() or queue
            if delivered:
                current.remove_by_ids(delivered)
            remaining = len(current.list())
        except PersistenceError as exc:
            logger.error("Delivered entries %s stay queued and will be re-sent: %s", delivered, exc)

        return SyncReport(
            results=results,
            delivered_ids=delivered,
            remaining=remaining,
            stopped_at=stopped_at,
        )

    async def _deliver(self, entry: QueueEntry) -> None:
        try:
            response = await self._http.post(self.endpoint, json=entry.payload)
        except httpx.HTTPError as exc:
            raise TransientNetworkError(f"POST {self.endpoint} failed: {exc}") from exc
        if not response.is_success:
            raise RemoteRejectionError(response.status_code)


async def run_periodic(engine: SyncEngine, interval_seconds: float) -> None:
    """Scheduled signal: drain every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await engine.drain()
        except Exception:  # noqa: BLE001 - keep the loop alive
            logger.exception("Periodic SOS sync failed")
