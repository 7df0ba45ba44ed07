"""Offline queue of undelivered critical events.

The queue is a single JSON record inside the dynamic tier. Every mutation
loads the whole sequence, changes it and stores it back in one committed
transaction before returning.

Known limitation: the load-mutate-store cycle takes no lock. Within one
process it has no await point, so the event loop cannot interleave two
enqueues. Two gateway processes sharing one database can still interleave,
and then the later write wins and one entry is lost.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any

from sosrelay.core.cache_policies import QUEUE_RECORD_KEY, TIER_DYNAMIC
from sosrelay.core.errors import PersistenceError
from sosrelay.schemas.queue import QueueEntry
from sosrelay.schemas.relay import RelayResponse
from sosrelay.services.cache_storage import CacheStorage

logger = logging.getLogger(__name__)


class OfflineQueue:
    def __init__(
        self,
        storage: CacheStorage,
        tier: str,
        generation: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage
        self._tier = tier
        self._generation = generation
        self._clock = clock

    @property
    def tier(self) -> str:
        return self._tier

    def list(self) -> list[QueueEntry]:
        """Current durable content, oldest first. Empty if nothing was ever queued."""
        return self._load(self._tier)

    def enqueue(self, payload: Any) -> int:
        """Append payload and persist the queue. Returns the new entry id."""
        entries = self._load(self._tier)
        now = self._clock()
        # Wall-clock ms, bumped past the newest id so ids stay unique and increasing
        entry_id = int(now * 1000)
        if entries:
            entry_id = max(entry_id, max(e.id for e in entries) + 1)
        entry = QueueEntry(
            id=entry_id,
            payload=payload,
            enqueued_at=datetime.fromtimestamp(now, tz=timezone.utc),
        )
        entries.append(entry)
        self._store(entries)
        logger.info("SOS queued: id=%s (queue length=%s)", entry_id, len(entries))
        return entry_id

    def remove_by_ids(self, ids: Iterable[int]) -> int:
        """Drop entries whose id is in ``ids``; the rest keep their order. Returns how many went."""
        wanted = set(ids)
        entries = self._load(self._tier)
        kept = [e for e in entries if e.id not in wanted]
        removed = len(entries) - len(kept)
        if removed:
            self._store(kept)
            logger.info("Removed %s delivered entries (queue length=%s)", removed, len(kept))
        return removed

    def carry_forward(self, from_tiers: Iterable[str]) -> int:
        """Merge queue records left in superseded tiers into this queue.

        Ordered by id; ids already present are not duplicated.
        """
        merged = {e.id: e for e in self._load(self._tier)}
        added = 0
        for tier in from_tiers:
            if tier == self._tier:
                continue
            for entry in self._load(tier):
                if entry.id not in merged:
                    merged[entry.id] = entry
                    added += 1
        if added:
            self._store(sorted(merged.values(), key=lambda e: e.id))
            logger.info("Carried %s queued entries forward into %s", added, self._tier)
        return added

    def _load(self, tier: str) -> list[QueueEntry]:
        record = self._storage.match_in(tier, QUEUE_RECORD_KEY)
        if record is None:
            return []
        try:
            raw = json.loads(record.body.decode("utf-8"))
            return [QueueEntry.model_validate(item) for item in raw]
        except (ValueError, TypeError) as exc:
            logger.error("Unreadable SOS queue record in %s: %s", tier, exc)
            raise PersistenceError(f"Unreadable SOS queue record in {tier}: {exc}") from exc

    def _store(self, entries: list[QueueEntry]) -> None:
        body = json.dumps([e.model_dump(mode="json") for e in entries]).encode("utf-8")
        record = RelayResponse(
            status_code=200,
            headers={"content-type": "application/json"},
            body=body,
        )
        # A superseded tier may already be collected; never resurrect it
        self._storage.put(self._tier, TIER_DYNAMIC, self._generation, QUEUE_RECORD_KEY, record, create=False)
