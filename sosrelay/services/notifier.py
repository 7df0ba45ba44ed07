"""Notification collaborator.

Notifications are fire-and-forget: callers never wait on delivery and
never see a failure.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from sosrelay.core.ws_manager import ConnectionManager
from sosrelay.schemas.control import NotificationPayload

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(
        self,
        title: str,
        body: str,
        tag: str,
        require_interaction: bool = False,
        data: dict[str, Any] | None = None,
    ) -> None: ...


class WebSocketNotifier:
    """Pushes notifications to every connected host client."""

    def __init__(self, manager: ConnectionManager) -> None:
        self._manager = manager

    def notify(
        self,
        title: str,
        body: str,
        tag: str,
        require_interaction: bool = False,
        data: dict[str, Any] | None = None,
    ) -> None:
        payload = NotificationPayload(
            title=title,
            body=body,
            tag=tag,
            require_interaction=require_interaction,
            data=data or {},
        )
        logger.info("Notification [%s] %s: %s", tag, title, body)
        try:
            loop = asyncio.get_running_loop()
            loop.create_task(self._manager.broadcast("notification", payload.model_dump(mode="json")))
        except RuntimeError:
            pass  # no event loop (e.g. in tests)
