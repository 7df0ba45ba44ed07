"""Error taxonomy for the alerting pipeline.

None of these terminate the process. Everything except an install failure
degrades to "try again on the next trigger".
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for pipeline errors."""


class TransientNetworkError(RelayError):
    """No connectivity or the remote could not be reached."""


class RemoteRejectionError(RelayError):
    """Remote answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str | None = None) -> None:
        self.status_code = status_code
        super().__init__(message or f"Remote rejected request with status {status_code}")


class PersistenceError(RelayError):
    """Durable store unavailable or holding an unreadable record."""


class AssetFetchError(RelayError):
    """A static asset could not be fetched during install."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        super().__init__(f"Failed to fetch asset {url}: {reason}")


class LifecycleError(RelayError):
    """Invalid install/activate transition."""
