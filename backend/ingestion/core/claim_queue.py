"""Claim queue: atomic leasing of a batch of raw items to one caller.

Concurrency contract:
- Ownership of a raw item is established ONLY by a committed new->processing
  transition, never by application memory. No in-process lock is used.
- Selection uses `FOR UPDATE SKIP LOCKED`: concurrent claimers skip rows another
  in-flight claim is examining instead of waiting on them, so calls never return
  overlapping items and never block each other for long.
- Select + transition + commit is one transaction. If any step fails the whole
  transaction rolls back: no rows are returned and none stay `processing`.
- FIFO (created_at, id) bounds the worst-case staleness of any single item.
- `error` rows are never re-selected; retry is an operator reset to `new`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.raw_item import RawItem, RawItemStatus
from ingestion.core.errors import PersistenceError, truncate_message
from ingestion.core.source_poll import clamp_limit


logger = logging.getLogger("cockpit.ingestion.claim")

DEFAULT_CLAIM_LIMIT = 20
MAX_CLAIM_LIMIT = 50


@dataclass(frozen=True, slots=True)
class ClaimedItem:
    """Detached snapshot of a leased raw item."""

    id: int
    vertical: str
    url: str
    created_at: datetime


def claim_batch(db: Session, limit: Any = DEFAULT_CLAIM_LIMIT) -> list[ClaimedItem]:
    """Lease up to `limit` oldest `new` items to the caller, oldest first."""
    n = clamp_limit(limit, DEFAULT_CLAIM_LIMIT, MAX_CLAIM_LIMIT)

    pick = (
        select(RawItem.id, RawItem.vertical, RawItem.url, RawItem.created_at)
        .where(RawItem.status == RawItemStatus.NEW.value)
        .order_by(RawItem.created_at.asc(), RawItem.id.asc())
        .limit(n)
        .with_for_update(skip_locked=True)
    )

    try:
        rows = db.execute(pick).all()
        if not rows:
            db.commit()
            return []

        ids = [r.id for r in rows]
        # Rows are locked by this transaction.
        result = db.execute(
            update(RawItem)
            .where(RawItem.id.in_(ids), RawItem.status == RawItemStatus.NEW.value)
            .values(status=RawItemStatus.PROCESSING.value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(ids):
            raise PersistenceError(
                f"claim transition mismatch: selected {len(ids)}, updated {result.rowcount}"
            )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("claim failed: %s", type(e).__name__)
        raise PersistenceError(truncate_message(f"claim failed: {e}", 400)) from e
    except PersistenceError:
        db.rollback()
        raise

    claimed = [
        ClaimedItem(
            id=int(r.id),
            vertical=str(r.vertical or ""),
            url=str(r.url or ""),
            created_at=r.created_at,
        )
        for r in rows
    ]
    logger.info("claimed %d raw items (limit=%d)", len(claimed), n)
    return claimed
