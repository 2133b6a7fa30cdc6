"""Brief service: the only write the digest poster performs.

`mark_posted` stamps posted_at on the given processed items so the next
unposted listing skips them. Re-marking an already posted item refreshes
the timestamp to the latest post.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.processed_item import ProcessedItem
from ingestion.core.errors import PersistenceError, truncate_message


logger = logging.getLogger("cockpit.brief")

MAX_MARK_IDS = 200


def clean_ids(ids: Iterable[Any] | None) -> list[int]:
    """Positive integer ids, deduped in order; bools, junk and <= 0 are dropped."""
    out: list[int] = []
    for raw in ids or ():
        if isinstance(raw, bool):
            continue
        try:
            n = int(raw)
        except (TypeError, ValueError):
            continue
        if n > 0 and n not in out:
            out.append(n)
        if len(out) >= MAX_MARK_IDS:
            break
    return out


def mark_posted(db: Session, ids: Iterable[Any] | None) -> int:
    wanted = clean_ids(ids)
    if not wanted:
        return 0
    try:
        updated = db.execute(
            update(ProcessedItem)
            .where(ProcessedItem.id.in_(wanted))
            .values(posted_at=func.now())
            .execution_options(synchronize_session=False)
        ).rowcount
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(truncate_message(f"mark posted failed: {e}", 400)) from e
    logger.info("marked %d/%d processed items posted", updated, len(wanted))
    return int(updated or 0)
