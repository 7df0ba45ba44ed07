"""Offline queue and sync schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class QueueEntry(BaseModel):
    """One undelivered critical event. Position in the queue is its delivery priority."""

    id: int
    payload: Any
    enqueued_at: datetime


class SyncResult(BaseModel):
    id: int
    delivered: bool
    error: str | None = None


class SyncReport(BaseModel):
    """Outcome of one drain."""

    skipped: bool = Field(default=False, description="True when a drain was already in flight")
    results: list[SyncResult] = []
    delivered_ids: list[int] = []
    remaining: int = 0
    stopped_at: int | None = Field(default=None, description="Id of the entry whose delivery failed")
