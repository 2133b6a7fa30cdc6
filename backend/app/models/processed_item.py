"""SQLAlchemy model for ProcessedItem.

- RawItem = submitted reference, mutable status only
- ProcessedItem = normalized, model-enriched record derived from exactly one RawItem
- Unique raw_item_id is the storage-level "process at most once" enforcement point,
  independent of the application-level status guard.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    SmallInteger,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.base import Base, CreatedAtMixin, IdentityPrimaryKeyMixin


class Visibility(str, Enum):
    PUBLIC = "public"
    PRO = "pro"
    INTERNAL = "internal"


class ProcessedItem(IdentityPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "processed_items"

    raw_item_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("raw_items.id", name="fk_processed_items_raw_item_id", ondelete="RESTRICT"),
        nullable=False,
    )
    vertical: Mapped[str] = mapped_column(String(32), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)

    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Column keeps the name the brief collaborator reads.
    summary: Mapped[str] = mapped_column("summary_1", Text, nullable=False)
    bullets: Mapped[list[str]] = mapped_column(JSONB, nullable=False)
    why_it_matters: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSONB, nullable=False, server_default=text("'[\"Other\"]'::jsonb"))
    entities: Mapped[Union[dict[str, Any], list[Any]]] = mapped_column(
        JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )
    relevance_score: Mapped[int] = mapped_column(SmallInteger, nullable=False, server_default="0")
    visibility: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=Visibility.PUBLIC.value
    )
    model: Mapped[str] = mapped_column(Text, nullable=False)

    posted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ux_processed_items_raw_item_id", "raw_item_id", unique=True),
        CheckConstraint(
            "relevance_score between 0 and 100",
            name="ck_processed_items_relevance_score",
        ),
        CheckConstraint(
            "visibility in ('public', 'pro', 'internal')",
            name="ck_processed_items_visibility",
        ),
        CheckConstraint(
            "jsonb_array_length(bullets) = 5",
            name="ck_processed_items_bullets_len",
        ),
        # Brief listing: vertical + unposted, newest first.
        Index(
            "ix_processed_items_unposted",
            "vertical",
            "created_at",
            postgresql_where=text("posted_at IS NULL"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ProcessedItem(id={self.id}, raw_item_id={self.raw_item_id}, "
            f"visibility={self.visibility}, score={self.relevance_score})>"
        )
