"""Connectivity monitor - turns host online/offline reports into drain triggers."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    """Remembers the last reported state; only a transition to online triggers a drain.

    The state is process-local. Losing it on restart only means the first
    "online" report after a restart counts as an edge.
    """

    def __init__(self) -> None:
        self._online: bool | None = None

    @property
    def online(self) -> bool | None:
        return self._online

    def report(self, online: bool) -> bool:
        """Record the state. Returns True when a drain should be triggered."""
        triggered = online and self._online is not True
        if online != self._online:
            logger.info("Network is %s", "online" if online else "offline")
        self._online = online
        return triggered
