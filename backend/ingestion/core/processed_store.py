"""Processed item store and raw-item outcome transitions.

- `save_processed` is an idempotent insert keyed by raw_item_id: if a record
  already exists (concurrent or retried run) the new write is discarded, first
  successful write wins. The unique index is the storage-level guarantee.
- `mark_raw_error` is a conditional update: processed is terminal, so a late
  failure from a superseded attempt never reverts a success.

These helpers do not commit; the pipeline groups them into transactions.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.orm import Session

from app.models.processed_item import ProcessedItem
from app.models.raw_item import RawItem, RawItemStatus
from ingestion.core.errors import truncate_message
from ingestion.core.normalize import EnrichmentResult


def save_processed(
    db: Session,
    *,
    raw_item_id: int,
    vertical: str,
    url: str,
    result: EnrichmentResult,
    model: str,
) -> bool:
    """Insert the ProcessedItem unless one exists; returns True if this call inserted it."""
    table = ProcessedItem.__table__
    stmt = (
        pg_insert(table)
        .values(
            raw_item_id=raw_item_id,
            vertical=vertical,
            url=url,
            title=result.title,
            summary_1=result.summary,
            bullets=list(result.bullets),
            why_it_matters=result.why_it_matters,
            tags=list(result.tags),
            entities=result.entities,
            relevance_score=result.relevance_score,
            visibility=result.visibility.value,
            model=model,
        )
        .on_conflict_do_nothing(index_elements=[table.c.raw_item_id])
        .returning(table.c.id)
    )
    return db.execute(stmt).first() is not None


def mark_raw_processed(db: Session, raw_item_id: int) -> None:
    db.execute(
        update(RawItem)
        .where(RawItem.id == raw_item_id)
        .values(
            status=RawItemStatus.PROCESSED.value,
            processed_at=func.now(),
            last_error=None,
        )
        .execution_options(synchronize_session=False)
    )


def mark_raw_error(db: Session, raw_item_id: int, message: Optional[str]) -> bool:
    """Record a failure unless the item already reached processed. Returns True if updated."""
    result = db.execute(
        update(RawItem)
        .where(
            RawItem.id == raw_item_id,
            RawItem.status != RawItemStatus.PROCESSED.value,
        )
        .values(
            status=RawItemStatus.ERROR.value,
            last_error=truncate_message(message or "unknown error"),
        )
        .execution_options(synchronize_session=False)
    )
    return bool(result.rowcount)
