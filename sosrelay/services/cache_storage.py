"""Durable, tier-scoped response storage backed by SQLAlchemy.

Every public call opens its own session and commits before returning, so
nothing depends on state held in memory between calls.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from sosrelay.core.errors import PersistenceError
from sosrelay.models.cache_tier import CacheTier
from sosrelay.models.cached_entry import CachedEntry
from sosrelay.schemas.relay import RelayResponse

logger = logging.getLogger(__name__)


def _to_response(entry: CachedEntry) -> RelayResponse:
    return RelayResponse(
        status_code=entry.status_code,
        headers=json.loads(entry.headers or "{}"),
        body=entry.body,
        from_cache=True,
    )


class CacheStorage:
    """Named tiers of cached responses."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def names(self) -> list[str]:
        """Tier names in creation order."""
        try:
            with self._session_factory() as db:
                result = db.execute(select(CacheTier.name).order_by(CacheTier.id))
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.error("Failed to list cache tiers: %s", exc)
            raise PersistenceError(f"Failed to list cache tiers: {exc}") from exc

    def open(self, name: str, kind: str, generation: str) -> None:
        """Create the tier if it does not exist yet."""
        try:
            with self._session_factory() as db:
                self._ensure_tier(db, name, kind, generation)
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to open cache tier %s: %s", name, exc)
            raise PersistenceError(f"Failed to open cache tier {name}: {exc}") from exc

    def delete(self, name: str) -> bool:
        """Delete a tier and all of its entries. Returns False if it did not exist."""
        try:
            with self._session_factory() as db:
                db.execute(delete(CachedEntry).where(CachedEntry.tier_name == name))
                result = db.execute(delete(CacheTier).where(CacheTier.name == name))
                db.commit()
                return result.rowcount > 0
        except SQLAlchemyError as exc:
            logger.error("Failed to delete cache tier %s: %s", name, exc)
            raise PersistenceError(f"Failed to delete cache tier {name}: {exc}") from exc

    def match(self, key: str) -> RelayResponse | None:
        """Look up a key across every tier, oldest tier first."""
        try:
            with self._session_factory() as db:
                stmt = (
                    select(CachedEntry)
                    .join(CacheTier, CacheTier.name == CachedEntry.tier_name)
                    .where(CachedEntry.request_key == key)
                    .order_by(CacheTier.id)
                    .limit(1)
                )
                entry = db.execute(stmt).scalar_one_or_none()
                return _to_response(entry) if entry else None
        except SQLAlchemyError as exc:
            logger.error("Cache lookup failed for %s: %s", key, exc)
            raise PersistenceError(f"Cache lookup failed for {key}: {exc}") from exc

    def match_in(self, name: str, key: str) -> RelayResponse | None:
        try:
            with self._session_factory() as db:
                entry = self._get_entry(db, name, key)
                return _to_response(entry) if entry else None
        except SQLAlchemyError as exc:
            logger.error("Cache lookup failed for %s in %s: %s", key, name, exc)
            raise PersistenceError(f"Cache lookup failed for {key} in {name}: {exc}") from exc

    def put(
        self,
        name: str,
        kind: str,
        generation: str,
        key: str,
        response: RelayResponse,
        create: bool = True,
    ) -> None:
        self.put_many(name, kind, generation, [(key, response)], create=create)

    def put_many(
        self,
        name: str,
        kind: str,
        generation: str,
        items: Iterable[tuple[str, RelayResponse]],
        create: bool = True,
    ) -> None:
        """Store every item in one transaction: all of them land or none do.

        With ``create=False`` a missing tier is not recreated and
        PersistenceError is raised instead.
        """
        try:
            with self._session_factory() as db:
                if create:
                    self._ensure_tier(db, name, kind, generation)
                elif not self._tier_exists(db, name):
                    logger.error("Refusing to write into missing cache tier %s", name)
                    raise PersistenceError(f"Cache tier {name} does not exist")
                now = datetime.now(timezone.utc)
                for key, response in items:
                    entry = self._get_entry(db, name, key)
                    if entry is None:
                        entry = CachedEntry(tier_name=name, request_key=key)
                        db.add(entry)
                    entry.status_code = response.status_code
                    entry.headers = json.dumps(response.headers)
                    entry.body = response.body
                    entry.stored_at = now
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to write cache tier %s: %s", name, exc)
            raise PersistenceError(f"Failed to write cache tier {name}: {exc}") from exc

    @staticmethod
    def _ensure_tier(db: Session, name: str, kind: str, generation: str) -> None:
        existing = db.execute(select(CacheTier).where(CacheTier.name == name)).scalar_one_or_none()
        if existing is None:
            db.add(CacheTier(name=name, kind=kind, generation=generation))
            db.flush()

    @staticmethod
    def _tier_exists(db: Session, name: str) -> bool:
        return db.execute(select(CacheTier.id).where(CacheTier.name == name)).first() is not None

    @staticmethod
    def _get_entry(db: Session, name: str, key: str) -> CachedEntry | None:
        stmt = select(CachedEntry).where(
            CachedEntry.tier_name == name,
            CachedEntry.request_key == key,
        )
        return db.execute(stmt).scalar_one_or_none()
