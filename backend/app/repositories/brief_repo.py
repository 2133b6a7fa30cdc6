"""Brief repository (read-only): processed items not yet posted to the digest."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence, Union

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.processed_item import ProcessedItem, Visibility
from app.repositories.base import BaseRepository
from ingestion.core.errors import PersistenceError, truncate_message
from ingestion.core.raw_ingest import normalize_vertical
from ingestion.core.source_poll import clamp_limit


DEFAULT_BRIEF_LIMIT = 5
MAX_BRIEF_LIMIT = 20


@dataclass(frozen=True, slots=True)
class BriefItemDTO:
    id: int
    raw_item_id: int
    vertical: str
    url: str
    title: Optional[str]
    summary_1: str
    bullets: list[str]
    why_it_matters: Optional[str]
    tags: list[str]
    entities: Union[dict[str, Any], list[Any]]
    relevance_score: int
    visibility: str
    model: str
    created_at: datetime


class BriefRepository(BaseRepository[ProcessedItem]):
    def list_unposted(self, *, vertical: str, limit: int) -> Sequence[BriefItemDTO]:
        """Newest-first public items of one vertical with posted_at unset."""
        stmt: Select = (
            select(ProcessedItem)
            .where(
                ProcessedItem.vertical == vertical,
                ProcessedItem.visibility == Visibility.PUBLIC.value,
                ProcessedItem.posted_at.is_(None),
            )
            .order_by(ProcessedItem.created_at.desc(), ProcessedItem.id.desc())
            .limit(limit)
        )
        rows = self._execute(stmt).scalars().all()
        return [
            BriefItemDTO(
                id=r.id,
                raw_item_id=r.raw_item_id,
                vertical=r.vertical,
                url=r.url,
                title=r.title,
                summary_1=r.summary,
                bullets=list(r.bullets or []),
                why_it_matters=r.why_it_matters,
                tags=list(r.tags or []),
                entities=r.entities if r.entities is not None else {},
                relevance_score=r.relevance_score,
                visibility=r.visibility,
                model=r.model,
                created_at=r.created_at,
            )
            for r in rows
        ]


def list_unposted(db: Session, vertical: Any = None, limit: Any = DEFAULT_BRIEF_LIMIT) -> tuple[str, int, Sequence[BriefItemDTO]]:
    """Normalize inputs and list; returns (vertical, limit, items) as applied."""
    v = normalize_vertical(vertical)
    n = clamp_limit(limit, DEFAULT_BRIEF_LIMIT, MAX_BRIEF_LIMIT)
    try:
        items = BriefRepository(db).list_unposted(vertical=v, limit=n)
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(truncate_message(f"brief query failed: {e}", 400)) from e
    return v, n, items
