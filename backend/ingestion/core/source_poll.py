"""Source poll bookkeeping for the external crawler.

- `due_sources` picks enabled sources whose interval has elapsed. Never-polled
  sources come first, then the longest-waiting, tie-broken by id, so a source with
  a short interval cannot starve the others and new sources are serviced promptly.
- `report_poll` is ONE transaction: the cursor update and the seen-key insert commit
  together or not at all. Recording a poll timestamp while losing its seen-keys
  would let the crawler skip entries it never marked as seen.
- `lookup_seen` is a pure read.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.source import Source, SourceSeenKey
from ingestion.core.errors import PersistenceError, ValidationError, reject_nul, truncate_message


logger = logging.getLogger("cockpit.ingestion.poll")

MAX_SEEN_KEYS = 200
DEFAULT_DUE_LIMIT = 100
MAX_DUE_LIMIT = 500


@dataclass(frozen=True, slots=True)
class DueSource:
    """Snapshot of a source handed to the crawler (includes conditional-fetch cursors)."""

    id: int
    vertical: str
    name: str
    url: str
    poll_interval_min: int
    etag: Optional[str]
    last_modified: Optional[str]


@dataclass(frozen=True, slots=True)
class PollReport:
    source_id: int
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    last_error: Optional[str] = None
    seen_keys: tuple[str, ...] = ()


def clamp_limit(value: Any, default: int, ceiling: int) -> int:
    """Coerce a caller-supplied limit into [1, ceiling]; junk or <= 0 -> default."""
    try:
        n = float(value)
    except (TypeError, ValueError):
        return default
    if n != n or n in (float("inf"), float("-inf")) or n <= 0:
        return default
    return max(1, min(ceiling, int(n)))


def clean_keys(keys: Optional[Iterable[Any]], limit: int = MAX_SEEN_KEYS) -> list[str]:
    """Stringify, drop empties, dedupe (keeping first occurrence), cap at `limit`.

    A key holding NUL cannot be stored or matched and raises ValidationError.
    """
    out: list[str] = []
    seen: set[str] = set()
    for k in keys or ():
        if k is None:
            continue
        s = str(k)
        reject_nul(s, "seen key")
        if not s or s in seen:
            continue
        seen.add(s)
        out.append(s)
        if len(out) >= limit:
            break
    return out


def _validate_source_id(source_id: Any) -> int:
    try:
        sid = int(source_id)
    except (TypeError, ValueError) as e:
        raise ValidationError("Bad source_id") from e
    if sid <= 0:
        raise ValidationError("Bad source_id")
    return sid


def due_sources(db: Session, source_type: str = "rss", limit: Any = DEFAULT_DUE_LIMIT) -> list[DueSource]:
    n = clamp_limit(limit, DEFAULT_DUE_LIMIT, MAX_DUE_LIMIT)
    interval = func.make_interval(0, 0, 0, 0, 0, Source.poll_interval_min)
    stmt = (
        select(Source)
        .where(
            Source.enabled.is_(True),
            Source.type == source_type,
            or_(
                Source.last_polled_at.is_(None),
                Source.last_polled_at <= func.now() - interval,
            ),
        )
        .order_by(Source.last_polled_at.asc().nulls_first(), Source.id.asc())
        .limit(n)
    )
    try:
        rows = db.execute(stmt).scalars().all()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(truncate_message(f"due sources query failed: {e}", 400)) from e

    return [
        DueSource(
            id=s.id,
            vertical=s.vertical,
            name=s.name,
            url=s.url,
            poll_interval_min=s.poll_interval_min,
            etag=s.etag,
            last_modified=s.last_modified,
        )
        for s in rows
    ]


def report_poll(db: Session, report: PollReport) -> int:
    """Record a poll outcome and its seen-keys atomically.

    Returns the number of seen-keys newly recorded by this call.
    """
    source_id = _validate_source_id(report.source_id)
    for name in ("etag", "last_modified", "last_error"):
        reject_nul(getattr(report, name), name)
    keys = clean_keys(report.seen_keys)

    try:
        updated = db.execute(
            update(Source)
            .where(Source.id == source_id)
            .values(
                last_polled_at=func.now(),
                etag=report.etag,
                last_modified=report.last_modified,
                last_error=truncate_message(report.last_error) if report.last_error else None,
            )
        ).rowcount
        if not updated:
            db.rollback()
            raise ValidationError(f"Unknown source_id {source_id}")

        inserted = 0
        if keys:
            seen = SourceSeenKey.__table__
            stmt = (
                pg_insert(seen)
                .values([{"source_id": source_id, "item_key": k} for k in keys])
                .on_conflict_do_nothing(index_elements=["source_id", "item_key"])
                .returning(seen.c.item_key)
            )
            inserted = len(db.execute(stmt).all())

        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("poll report failed source_id=%s: %s", source_id, type(e).__name__)
        raise PersistenceError(truncate_message(f"poll report failed: {e}", 400)) from e

    logger.info(
        "poll report source_id=%s keys=%d new=%d error=%s",
        source_id,
        len(keys),
        inserted,
        bool(report.last_error),
    )
    return inserted


def lookup_seen(db: Session, source_id: Any, keys: Optional[Iterable[Any]]) -> list[str]:
    """Return the subset of `keys` already recorded as seen for the source."""
    sid = _validate_source_id(source_id)
    wanted = clean_keys(keys)
    if not wanted:
        return []
    stmt = select(SourceSeenKey.item_key).where(
        SourceSeenKey.source_id == sid,
        SourceSeenKey.item_key.in_(wanted),
    )
    try:
        found = set(db.execute(stmt).scalars().all())
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(truncate_message(f"seen lookup failed: {e}", 400)) from e
    # Keep the caller's ordering.
    return [k for k in wanted if k in found]
