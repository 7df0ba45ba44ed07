"""Request Router - cache-first for static assets, network-first for the API."""

from __future__ import annotations

import json
import logging

import httpx

from sosrelay.core.cache_policies import CACHEABLE_STATUS, TAG_SOS_QUEUED
from sosrelay.core.config import Settings
from sosrelay.core.errors import PersistenceError, TransientNetworkError
from sosrelay.schemas.relay import OutboundRequest, RelayResponse, request_identity
from sosrelay.services.cache_storage import CacheStorage
from sosrelay.services.lifecycle import LifecycleController
from sosrelay.services.notifier import Notifier
from sosrelay.services.offline_queue import OfflineQueue
from sosrelay.services.tier_manager import CacheTierManager

logger = logging.getLogger(__name__)

OFFLINE_MESSAGE = "Request queued for when connection is restored"
SOS_QUEUED_MESSAGE = "SOS queued for transmission"


class RequestRouter:
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

    def is_api(self, request: OutboundRequest) -> bool:
        return request.path.startswith(self._settings.api_prefix)

    def is_critical(self, request: OutboundRequest) -> bool:
        return request.path == self._settings.critical_path

    async def handle(self, request: OutboundRequest) -> RelayResponse:
        """Answer one outbound request.

        Raises TransientNetworkError only for static-class requests that are
        neither cached nor covered by the offline placeholder.
        """
        generation = self._lifecycle.active_generation()
        if generation is None:
            # Nothing activated yet: traffic is not intercepted
            return RelayResponse.from_httpx(await self._fetch(request))

        manager = self._lifecycle.tier_manager(generation)
        if self.is_api(request):
            return await self._network_first(request, manager)
        return await self._cache_first(request, manager)

    async def _fetch(self, request: OutboundRequest) -> httpx.Response:
        try:
            return await self._http.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body or None,
            )
        except httpx.HTTPError as exc:
            raise TransientNetworkError(f"{request.method} {request.url} failed: {exc}") from exc

    async def _cache_first(self, request: OutboundRequest, manager: CacheTierManager) -> RelayResponse:
        if request.method.upper() == "GET":
            cached = self._lookup(manager, request.identity)
            if cached is not None:
                return cached

        try:
            response = await self._fetch(request)
        except TransientNetworkError:
            if request.expects_document():
                fallback_url = manager.resolve(self._settings.offline_fallback_path)
                fallback = self._lookup(manager, request_identity("GET", fallback_url))
                if fallback is not None:
                    logger.info("Offline: serving %s for %s", self._settings.offline_fallback_path, request.url)
                    return fallback
            raise

        relay = RelayResponse.from_httpx(response)
        if self._is_cacheable(request, relay, manager):
            try:
                manager.put(request.identity, relay)
            except PersistenceError:
                logger.warning("Could not cache %s; serving it uncached", request.identity)
        return relay

    def _lookup(self, manager: CacheTierManager, identity: str) -> RelayResponse | None:
        try:
            return manager.get(identity)
        except PersistenceError:
            logger.warning("Cache lookup failed for %s; treating as a miss", identity)
            return None

    def _is_cacheable(self, request: OutboundRequest, response: RelayResponse, manager: CacheTierManager) -> bool:
        return (
            request.method.upper() == "GET"
            and response.status_code == CACHEABLE_STATUS
            and manager.is_cacheable_origin(request.url)
        )

    async def _network_first(self, request: OutboundRequest, manager: CacheTierManager) -> RelayResponse:
        try:
            response = await self._fetch(request)
            return RelayResponse.from_httpx(response)
        except TransientNetworkError as exc:
            logger.info("API request failed, handling offline: %s", exc)

        if self.is_critical(request):
            return self._queue_sos(request, manager.generation)

        return RelayResponse.json_response(
            202,
            {"error": "Offline", "message": OFFLINE_MESSAGE, "queued": False},
        )

    def _queue_sos(self, request: OutboundRequest, routed_generation: str) -> RelayResponse:
        try:
            payload = json.loads(request.body)
            # Activation may have run while the fetch was pending
            generation = self._lifecycle.active_generation() or routed_generation
            manager = self._lifecycle.tier_manager(generation)
            queue = OfflineQueue(self._storage, manager.dynamic_tier, generation)
            entry_id = queue.enqueue(payload)
        except (ValueError, PersistenceError) as exc:
            logger.error("Failed to handle offline SOS: %s", exc)
            return RelayResponse.json_response(
                500,
                {"error": "Failed to queue SOS", "message": str(exc)},
            )

        self._notifier.notify(
            f"{self._settings.app_name} - SOS Queued",
            "Emergency alert queued. Will be sent when connection is restored.",
            TAG_SOS_QUEUED,
            require_interaction=True,
            data={"id": entry_id},
        )
        return RelayResponse.json_response(
            202,
            {"success": True, "message": SOS_QUEUED_MESSAGE, "queued": True, "id": entry_id},
        )
