"""Cached response entry, keyed by request identity within a tier."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, LargeBinary, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from sosrelay.db.base import Base


class CachedEntry(Base):
    """Response bytes stored under a normalized request identity."""

    __tablename__ = "cache_entries"
    __table_args__ = (UniqueConstraint("tier_name", "request_key", name="uq_cache_entries_tier_key"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tier_name: Mapped[str] = mapped_column(
        ForeignKey("cache_tiers.name", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    request_key: Mapped[str] = mapped_column(String(2048), nullable=False)  # "GET https://host/path"
    status_code: Mapped[int] = mapped_column(Integer, nullable=False, default=200)
    headers: Mapped[str] = mapped_column(Text, nullable=False, default="{}")  # JSON object
    body: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    stored_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
