"""RawItem model.

Rationale:
RawItems are submitted candidate references awaiting enrichment. A row is created
once per content address (url_hash) and never deleted. Attribution recorded by the
first producer is authoritative; later duplicate submissions may only enrich the
open `metadata` document.

Status transitions:
- new -> processing: only through the claim queue (atomic, SKIP LOCKED).
- processing -> processed | error: only through the enrichment pipeline.
- processed is terminal; a late failure never regresses it to error.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.base import Base, CreatedAtMixin, IdentityPrimaryKeyMixin


class Vertical(str, Enum):
    REE = "ree"
    COAL = "coal"
    POLICY = "policy"


DEFAULT_VERTICAL = Vertical.REE


class RawItemStatus(str, Enum):
    NEW = "new"
    PROCESSING = "processing"
    PROCESSED = "processed"
    ERROR = "error"


class RawItem(IdentityPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "raw_items"

    vertical: Mapped[str] = mapped_column(String(32), nullable=False, default=DEFAULT_VERTICAL.value)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    # Hex SHA-256 of the trimmed url.
    url_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    # Attribution (first insert wins)
    source: Mapped[str] = mapped_column(Text, nullable=False, default="discord")
    source_channel_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source_message_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    author_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    author_username: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    metadata_: Mapped[dict] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        server_default=text("'{}'::jsonb"),
    )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=RawItemStatus.NEW.value,
        server_default=RawItemStatus.NEW.value,
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status in ('new', 'processing', 'processed', 'error')",
            name="ck_raw_items_status",
        ),
        CheckConstraint(
            "vertical in ('ree', 'coal', 'policy')",
            name="ck_raw_items_vertical",
        ),
        Index("ux_raw_items_url_hash", "url_hash", unique=True),
        # Claim scans only the 'new' backlog in FIFO order.
        Index(
            "ix_raw_items_new_created_at",
            "created_at",
            "id",
            postgresql_where=text("status = 'new'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<RawItem(id={self.id}, status={self.status}, vertical={self.vertical})>"
