"""Crawler-facing source endpoints: due list, poll report, seen lookup."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db_session
from app.schemas.sources import (
    DueSourceOut,
    DueSourcesResponse,
    PollReportRequest,
    PollReportResponse,
    SeenLookupRequest,
    SeenLookupResponse,
)
from app.security.auth import require_process_secret
from ingestion.core.source_poll import DEFAULT_DUE_LIMIT, PollReport, due_sources, lookup_seen, report_poll


router = APIRouter(dependencies=[Depends(require_process_secret)])


@router.get("/rss", response_model=DueSourcesResponse)
def list_due_rss_sources(limit: str | None = None, db: Session = Depends(get_db_session)) -> DueSourcesResponse:
    rows = due_sources(db, "rss", limit if limit is not None else DEFAULT_DUE_LIMIT)
    return DueSourcesResponse(
        sources=[
            DueSourceOut(
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
    )


@router.post("/rss/report", response_model=PollReportResponse)
def report_rss_poll(body: PollReportRequest, db: Session = Depends(get_db_session)) -> PollReportResponse:
    seen = report_poll(
        db,
        PollReport(
            source_id=body.source_id,
            etag=body.etag,
            last_modified=body.last_modified,
            last_error=body.last_error,
            seen_keys=tuple(body.seen_keys),
        ),
    )
    return PollReportResponse(seen=seen)


@router.post("/rss/seen", response_model=SeenLookupResponse)
def lookup_rss_seen(body: SeenLookupRequest, db: Session = Depends(get_db_session)) -> SeenLookupResponse:
    return SeenLookupResponse(seen=lookup_seen(db, body.source_id, body.keys))
