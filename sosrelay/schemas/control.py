"""Control channel, connectivity and push schemas."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class ControlMessage(BaseModel):
    type: Literal["SKIP_WAITING", "QUEUE_SOS"]


class ControlAck(BaseModel):
    accepted: bool = True
    type: str


class ConnectivityReport(BaseModel):
    online: bool


class ConnectivityResponse(BaseModel):
    online: bool
    drain_triggered: bool


class PushMessage(BaseModel):
    """Push-originated alert forwarded by the host."""

    title: str | None = None
    body: str | None = None
    tag: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class NotificationPayload(BaseModel):
    title: str
    body: str
    tag: str
    require_interaction: bool = False
    data: dict[str, Any] = Field(default_factory=dict)
