"""Cache tier model - a named, versioned cache scope."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from sosrelay.db.base import Base


class CacheTier(Base):
    """A static or dynamic tier belonging to one generation."""

    __tablename__ = "cache_tiers"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)  # creation order
    name: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)  # static | dynamic
    generation: Mapped[str] = mapped_column(String(60), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
