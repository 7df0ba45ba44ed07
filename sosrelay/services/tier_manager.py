"""Cache Tier Manager - static and dynamic tiers of one generation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from urllib.parse import urljoin, urlsplit

import httpx

from sosrelay.core.cache_policies import TIER_DYNAMIC, TIER_STATIC, tier_name
from sosrelay.core.config import Settings
from sosrelay.core.errors import AssetFetchError, PersistenceError
from sosrelay.schemas.relay import RelayResponse, origin_of, request_identity
from sosrelay.services.cache_storage import CacheStorage

logger = logging.getLogger(__name__)


class CacheTierManager:
    """Owns the static and dynamic tier of a single generation."""

    def __init__(self, storage: CacheStorage, settings: Settings, generation: str) -> None:
        self._storage = storage
        self._settings = settings
        self.generation = generation

    @property
    def static_tier(self) -> str:
        return tier_name(self._settings.cache_prefix, TIER_STATIC, self.generation)

    @property
    def dynamic_tier(self) -> str:
        return tier_name(self._settings.cache_prefix, TIER_DYNAMIC, self.generation)

    @property
    def current_tiers(self) -> set[str]:
        return {self.static_tier, self.dynamic_tier}

    def resolve(self, url: str) -> str:
        """Relative asset paths resolve against the remote origin."""
        if urlsplit(url).scheme:
            return url
        return urljoin(self._settings.remote_base_url.rstrip("/") + "/", url.lstrip("/"))

    def is_cacheable_origin(self, url: str) -> bool:
        origin = origin_of(url)
        if origin == origin_of(self._settings.remote_base_url):
            return True
        return origin in {o.rstrip("/").lower() for o in self._settings.cache_allowed_origins}

    async def populate_static(self, http: httpx.AsyncClient, assets: Iterable[str]) -> int:
        """Fetch every asset, then commit them to the static tier in one transaction.

        Raises AssetFetchError if any asset fails; nothing is stored in that case.
        """
        urls = [self.resolve(a) for a in assets]
        logger.info("Caching %s static assets into %s", len(urls), self.static_tier)
        fetched = await asyncio.gather(*(self._fetch_asset(http, url) for url in urls))
        self._storage.put_many(self.static_tier, TIER_STATIC, self.generation, fetched)
        self._storage.open(self.dynamic_tier, TIER_DYNAMIC, self.generation)
        logger.info("Static assets cached into %s", self.static_tier)
        return len(fetched)

    async def _fetch_asset(self, http: httpx.AsyncClient, url: str) -> tuple[str, RelayResponse]:
        try:
            response = await http.get(url)
        except httpx.HTTPError as exc:
            raise AssetFetchError(url, str(exc) or exc.__class__.__name__) from exc
        if not response.is_success:
            raise AssetFetchError(url, f"status {response.status_code}")
        return request_identity("GET", url), RelayResponse.from_httpx(response)

    def get(self, identity: str) -> RelayResponse | None:
        """Tier-agnostic lookup."""
        return self._storage.match(identity)

    def put(self, identity: str, response: RelayResponse) -> None:
        """Store into the existing dynamic tier; the static tier is write-once at install."""
        self._storage.put(self.dynamic_tier, TIER_DYNAMIC, self.generation, identity, response, create=False)

    def collect_garbage(self, current: set[str]) -> list[str]:
        """Delete every tier not in ``current``. Best-effort per tier."""
        deleted: list[str] = []
        for name in self._storage.names():
            if name in current:
                continue
            logger.info("Deleting old cache tier: %s", name)
            try:
                if self._storage.delete(name):
                    deleted.append(name)
            except PersistenceError:
                logger.warning("Could not delete cache tier %s; will retry next activation", name)
        return deleted
