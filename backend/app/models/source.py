from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.base import Base, CreatedAtMixin, IdentityPrimaryKeyMixin


class Source(IdentityPrimaryKeyMixin, CreatedAtMixin, Base):
    """A polled upstream (e.g. an RSS feed) and its poll bookkeeping.

    Configuration columns (type, vertical, name, url, interval, enabled) are managed
    outside the core. Bookkeeping columns (etag, last_modified, last_polled_at,
    last_error) are written only by the poll-report operation, so the external
    crawler can issue conditional fetches across process boundaries.
    """

    __tablename__ = "sources"

    type: Mapped[str] = mapped_column(String(32), nullable=False, default="rss")
    vertical: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    poll_interval_min: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())

    # Conditional fetch state
    etag: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_modified: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Operational
    last_polled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("type", "url", name="uq_sources_type_url"),
        Index("ix_sources_due", "type", "enabled", "last_polled_at"),
    )

    def __repr__(self) -> str:
        return f"<Source(id={self.id}, type={self.type}, name={self.name})>"


class SourceSeenKey(CreatedAtMixin, Base):
    """Set membership: feed entry `item_key` already observed for `source_id`. Append-only."""

    __tablename__ = "source_seen"

    source_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("sources.id", name="fk_source_seen_source_id", ondelete="CASCADE"),
        primary_key=True,
    )
    item_key: Mapped[str] = mapped_column(Text, primary_key=True)
