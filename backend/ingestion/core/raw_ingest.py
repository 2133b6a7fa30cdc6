"""Raw ingestion (content-addressed dedup store).

This module is the ONLY entry point for new candidate items into the system.

Core principles:
- Content address = SHA-256 of the trimmed url; one row per address, ever.
- Insert-or-merge is a single atomic statement: a duplicate submission never
  creates a second row and never overwrites the first producer's attribution
  (source, channel, message, author). It only merges `metadata` (shallow key
  union, incoming wins on collision), so a short chat mention can later be
  enriched by the RSS crawler without losing who originated it.
- Storage failures surface as PersistenceError; nothing is partially applied.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import literal_column
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from app.models.raw_item import DEFAULT_VERTICAL, RawItem, RawItemStatus, Vertical
from ingestion.core.errors import PersistenceError, ValidationError, reject_nul, truncate_message


logger = logging.getLogger("cockpit.ingestion.raw")

MAX_URL_LENGTH = 2048
DEFAULT_SOURCE = "discord"
_TEXT_FIELDS = (
    "url",
    "vertical",
    "source",
    "source_channel_id",
    "source_message_id",
    "author_id",
    "author_username",
)


@dataclass(frozen=True, slots=True)
class IngestInput:
    """Payload for one ingestion call. Only `url` is mandatory at this layer."""

    url: str
    vertical: Optional[str] = None
    source: Optional[str] = None
    source_channel_id: Optional[str] = None
    source_message_id: Optional[str] = None
    author_id: Optional[str] = None
    author_username: Optional[str] = None
    metadata: Optional[Mapping[str, Any]] = None
    posted_at: Optional[str] = None


@dataclass(frozen=True, slots=True)
class IngestOutput:
    inserted: bool
    id: int
    url_hash: str = field(default="")


def compute_url_hash(url: str) -> str:
    """Deterministic content address for a url (hex SHA-256 of the trimmed url)."""
    return hashlib.sha256((url or "").strip().encode("utf-8")).hexdigest()


def normalize_vertical(value: Any) -> str:
    """Map any input onto the closed vertical enum; unrecognized -> default."""
    s = str(value if value is not None else "").strip().lower()
    try:
        return Vertical(s).value
    except ValueError:
        return DEFAULT_VERTICAL.value


def build_metadata(metadata: Any, posted_at: Optional[str] = None) -> dict[str, Any]:
    """Shallow copy of the caller mapping; non-mappings are ignored.

    A top-level `posted_at` is folded in only when provided, so a later duplicate
    without it does not null out the value recorded earlier.
    """
    meta: dict[str, Any] = dict(metadata) if isinstance(metadata, Mapping) else {}
    if posted_at is not None:
        meta["posted_at"] = posted_at
    return meta


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def ingest_item(db: Session, data: IngestInput) -> IngestOutput:
    """Insert a new raw item, or merge metadata into the existing one.

    Returns IngestOutput(inserted=True, id) for a new row and
    IngestOutput(inserted=False, id=<existing id>) for a duplicate url.
    """
    url = (data.url or "").strip()
    if not url:
        raise ValidationError("url is required")
    if len(url) > MAX_URL_LENGTH:
        raise ValidationError(f"url exceeds {MAX_URL_LENGTH} characters")
    for name in _TEXT_FIELDS:
        reject_nul(getattr(data, name), name)

    url_hash = compute_url_hash(url)
    metadata = build_metadata(data.metadata, data.posted_at)
    reject_nul(metadata, "metadata")

    table = RawItem.__table__
    stmt = pg_insert(table).values(
        vertical=normalize_vertical(data.vertical),
        url=url,
        url_hash=url_hash,
        source=_optional_text(data.source) or DEFAULT_SOURCE,
        source_channel_id=_optional_text(data.source_channel_id),
        source_message_id=_optional_text(data.source_message_id),
        author_id=_optional_text(data.author_id),
        author_username=_optional_text(data.author_username),
        metadata=metadata,
        status=RawItemStatus.NEW.value,
    )
    # Only `metadata` is in the SET list: attribution of the first insert is kept.
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.url_hash],
        set_={
            "metadata": func.coalesce(
                table.c["metadata"], literal_column("'{}'::jsonb", type_=JSONB)
            ).op("||", return_type=JSONB)(stmt.excluded["metadata"]),
        },
    ).returning(
        table.c.id,
        # xmax is 0 only for a freshly inserted tuple.
        literal_column("(xmax = 0)").label("inserted"),
    )

    try:
        row = db.execute(stmt).one()
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("raw ingest failed url_hash=%s: %s", url_hash, type(e).__name__)
        raise PersistenceError(truncate_message(f"ingest failed: {e}", 400)) from e

    inserted = bool(row.inserted)
    logger.info("raw ingest id=%s inserted=%s url_hash=%s", row.id, inserted, url_hash[:12])
    return IngestOutput(inserted=inserted, id=int(row.id), url_hash=url_hash)
