"""SQLAlchemy declarative base and shared mixins.

Rationale:
- Integer identity primary keys: producers and the brief collaborator address
  rows by small numeric handles (mark-posted takes a list of ids).
- Explicit UTC-only, timezone-aware timestamps, stamped by the database so that
  FIFO claim order does not depend on application clocks.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Identity, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class IdentityPrimaryKeyMixin:
    """Bigint identity primary key mixin (database-generated)."""

    id: Mapped[int] = mapped_column(
        BigInteger,
        Identity(always=False),
        primary_key=True,
    )


class CreatedAtMixin:
    """Created-at timestamp mixin (UTC timestamptz, server-generated)."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
