"""Brief collaborator endpoints (daily digest poster)."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db_session
from app.repositories.brief_repo import list_unposted
from app.schemas.brief import BriefItem, MarkPostedRequest, MarkPostedResponse, UnpostedResponse
from app.security.auth import require_process_secret
from app.services.brief_service import mark_posted


router = APIRouter(dependencies=[Depends(require_process_secret)])


@router.get("/unposted", response_model=UnpostedResponse)
def get_unposted(
    vertical: Optional[str] = None,
    limit: Optional[str] = None,
    db: Session = Depends(get_db_session),
) -> UnpostedResponse:
    v, n, items = list_unposted(db, vertical, limit)
    return UnpostedResponse(
        vertical=v,
        limit=n,
        items=[BriefItem.model_validate(i, from_attributes=True) for i in items],
    )


@router.post("/mark-posted", response_model=MarkPostedResponse)
def post_mark_posted(body: MarkPostedRequest, db: Session = Depends(get_db_session)) -> MarkPostedResponse:
    return MarkPostedResponse(updated=mark_posted(db, body.ids))
