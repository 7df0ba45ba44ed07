"""Cache tier and queue policy constants."""

from __future__ import annotations

TIER_STATIC = "static"
TIER_DYNAMIC = "dynamic"

# Well-known record holding the offline SOS queue inside the dynamic tier
QUEUE_RECORD_KEY = "GET /sos-queue"

# Only responses with this status are cached
CACHEABLE_STATUS = 200

# Lifecycle record states
STATUS_INSTALLING = "installing"
STATUS_INSTALLED = "installed"
STATUS_ACTIVE = "active"
STATUS_REDUNDANT = "redundant"

# Notification tags
TAG_SOS_QUEUED = "sos-queued"
TAG_SOS_SENT = "sos-sent"
TAG_PUSH_DEFAULT = "general"


def tier_name(prefix: str, kind: str, generation: str) -> str:
    """Tier names embed their generation, e.g. sosrelay-static-v1.0.0."""
    return f"{prefix}-{kind}-{generation}"
