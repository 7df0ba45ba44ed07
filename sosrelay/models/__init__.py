"""SQLAlchemy models."""

from __future__ import annotations

from sosrelay.models.cache_tier import CacheTier
from sosrelay.models.cached_entry import CachedEntry
from sosrelay.models.lifecycle_record import LifecycleRecord

__all__ = [
    "CacheTier",
    "CachedEntry",
    "LifecycleRecord",
]
