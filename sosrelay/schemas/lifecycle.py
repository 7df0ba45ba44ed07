"""Lifecycle schemas."""

from datetime import datetime

from pydantic import BaseModel


class LifecycleRecordResponse(BaseModel):
    generation: str
    status: str
    installed_at: datetime | None
    activated_at: datetime | None

    model_config = {"from_attributes": True}


class LifecycleStatus(BaseModel):
    active_generation: str | None
    waiting_generation: str | None
    tiers: list[str]
    records: list[LifecycleRecordResponse] = []
