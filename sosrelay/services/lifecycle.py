"""Process Lifecycle Controller - install/activate of cache generations.

Which generation is installed, waiting or active lives in lifecycle_records,
never in memory, so a restarted gateway resumes exactly where it stopped.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import httpx
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from sosrelay.core.cache_policies import (
    STATUS_ACTIVE,
    STATUS_INSTALLED,
    STATUS_INSTALLING,
    STATUS_REDUNDANT,
)
from sosrelay.core.config import Settings
from sosrelay.core.errors import AssetFetchError, LifecycleError, PersistenceError
from sosrelay.models.lifecycle_record import LifecycleRecord
from sosrelay.schemas.lifecycle import LifecycleRecordResponse, LifecycleStatus
from sosrelay.services.cache_storage import CacheStorage
from sosrelay.services.offline_queue import OfflineQueue
from sosrelay.services.tier_manager import CacheTierManager

logger = logging.getLogger(__name__)


class LifecycleController:
    def __init__(
        self,
        session_factory: sessionmaker,
        storage: CacheStorage,
        settings: Settings,
        http: httpx.AsyncClient,
    ) -> None:
        self._session_factory = session_factory
        self._storage = storage
        self._settings = settings
        self._http = http

    def tier_manager(self, generation: str) -> CacheTierManager:
        return CacheTierManager(self._storage, self._settings, generation)

    def active_generation(self) -> str | None:
        return self._generation_with_status(STATUS_ACTIVE)

    def waiting_generation(self) -> str | None:
        return self._generation_with_status(STATUS_INSTALLED)

    async def install(self, generation: str | None = None) -> str:
        """Populate the static tier for ``generation`` and mark it installed.

        Returns the resulting status. On AssetFetchError nothing is promoted and
        the previously active generation keeps serving.
        """
        gen = generation or self._settings.cache_version
        manager = self.tier_manager(gen)
        logger.info("Installing generation %s", gen)

        if gen == self.active_generation():
            # Same generation already live: refresh its static tier in place
            await manager.populate_static(self._http, self._settings.static_assets)
            return STATUS_ACTIVE

        previous = self._get_status(gen)
        self._set_status(gen, STATUS_INSTALLING)
        try:
            await manager.populate_static(self._http, self._settings.static_assets)
        except AssetFetchError as exc:
            logger.error("Failed to cache static files for %s: %s", gen, exc)
            self._restore_status(gen, previous)
            raise
        self._set_status(gen, STATUS_INSTALLED, installed_at=datetime.now(timezone.utc))
        self._supersede_waiting(gen)
        logger.info("Generation %s installed", gen)

        if self._settings.skip_waiting_on_install or self.active_generation() is None:
            self.activate()
            return STATUS_ACTIVE
        logger.info("Generation %s waiting for SKIP_WAITING", gen)
        return STATUS_INSTALLED

    def activate(self) -> list[str]:
        """Promote the waiting generation and collect every stale tier.

        Returns the names of deleted tiers.
        """
        gen = self.waiting_generation()
        if gen is None:
            raise LifecycleError("No installed generation is waiting to activate")

        logger.info("Activating generation %s", gen)
        manager = self.tier_manager(gen)
        current = manager.current_tiers
        queue = OfflineQueue(self._storage, manager.dynamic_tier, gen)

        # Queued alerts must survive the old dynamic tier being deleted
        stale = [name for name in self._storage.names() if name not in current]
        queue.carry_forward(stale)

        self._promote(gen)
        deleted = manager.collect_garbage(current)
        logger.info("Generation %s activated (deleted %s stale tiers)", gen, len(deleted))
        return deleted

    def skip_waiting(self) -> bool:
        """Activate immediately if a generation is waiting. Returns True if one was promoted."""
        if self.waiting_generation() is None:
            logger.info("SKIP_WAITING received with nothing waiting")
            return False
        self.activate()
        return True

    def status(self) -> LifecycleStatus:
        try:
            with self._session_factory() as db:
                records = list(
                    db.execute(select(LifecycleRecord).order_by(LifecycleRecord.generation)).scalars().all()
                )
                rows = [LifecycleRecordResponse.model_validate(r) for r in records]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read lifecycle records: {exc}") from exc
        active = next((r.generation for r in rows if r.status == STATUS_ACTIVE), None)
        waiting = next((r.generation for r in rows if r.status == STATUS_INSTALLED), None)
        return LifecycleStatus(
            active_generation=active,
            waiting_generation=waiting,
            tiers=self._storage.names(),
            records=rows,
        )

    # ---------- persistence helpers ----------

    def _generation_with_status(self, status: str) -> str | None:
        try:
            with self._session_factory() as db:
                stmt = (
                    select(LifecycleRecord.generation)
                    .where(LifecycleRecord.status == status)
                    .order_by(LifecycleRecord.updated_at.desc())
                    .limit(1)
                )
                return db.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.error("Failed to read lifecycle records: %s", exc)
            raise PersistenceError(f"Failed to read lifecycle records: {exc}") from exc

    def _get_status(self, generation: str) -> str | None:
        try:
            with self._session_factory() as db:
                record = db.get(LifecycleRecord, generation)
                return record.status if record else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read lifecycle record {generation}: {exc}") from exc

    def _set_status(self, generation: str, status: str, installed_at: datetime | None = None) -> None:
        try:
            with self._session_factory() as db:
                record = db.get(LifecycleRecord, generation)
                if record is None:
                    record = LifecycleRecord(generation=generation, status=status)
                    db.add(record)
                record.status = status
                if installed_at is not None:
                    record.installed_at = installed_at
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to record %s as %s: %s", generation, status, exc)
            raise PersistenceError(f"Failed to record {generation} as {status}: {exc}") from exc

    def _restore_status(self, generation: str, previous: str | None) -> None:
        try:
            with self._session_factory() as db:
                record = db.get(LifecycleRecord, generation)
                if record is None:
                    return
                if previous is None:
                    db.delete(record)
                else:
                    record.status = previous
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to roll back lifecycle record %s: %s", generation, exc)
            raise PersistenceError(f"Failed to roll back lifecycle record {generation}: {exc}") from exc

    def _supersede_waiting(self, generation: str) -> None:
        """A newer installed generation replaces any older one still waiting."""
        try:
            with self._session_factory() as db:
                stmt = select(LifecycleRecord).where(
                    LifecycleRecord.status == STATUS_INSTALLED,
                    LifecycleRecord.generation != generation,
                )
                for old in db.execute(stmt).scalars().all():
                    logger.info("Generation %s superseded by %s", old.generation, generation)
                    old.status = STATUS_REDUNDANT
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to supersede waiting generations: %s", exc)
            raise PersistenceError(f"Failed to supersede waiting generations: {exc}") from exc

    def _promote(self, generation: str) -> None:
        """Mark ``generation`` active and every other live record redundant, atomically."""
        try:
            with self._session_factory() as db:
                stmt = select(LifecycleRecord).where(
                    LifecycleRecord.status.in_([STATUS_ACTIVE, STATUS_INSTALLED, STATUS_INSTALLING])
                )
                for old in db.execute(stmt).scalars().all():
                    if old.generation != generation:
                        old.status = STATUS_REDUNDANT
                record = db.get(LifecycleRecord, generation)
                record.status = STATUS_ACTIVE
                record.activated_at = datetime.now(timezone.utc)
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to promote generation %s: %s", generation, exc)
            raise PersistenceError(f"Failed to promote generation {generation}: {exc}") from exc
