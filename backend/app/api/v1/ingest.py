"""Raw ingestion endpoint (producer-facing)."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db_session
from app.schemas.ingest import IngestRequest, IngestResponse
from app.security.auth import require_ingest_secret
from ingestion.core.raw_ingest import IngestInput, ingest_item


router = APIRouter(dependencies=[Depends(require_ingest_secret)])


@router.post("/ingest", response_model=IngestResponse)
def ingest(body: IngestRequest, db: Session = Depends(get_db_session)) -> IngestResponse:
    out = ingest_item(
        db,
        IngestInput(
            url=body.url or "",
            vertical=body.vertical,
            source=body.source,
            source_channel_id=body.source_channel_id,
            source_message_id=body.source_message_id,
            author_id=body.author_id,
            author_username=body.author_username,
            metadata=body.metadata,
            posted_at=body.posted_at,
        ),
    )
    return IngestResponse(inserted=out.inserted, id=out.id)
