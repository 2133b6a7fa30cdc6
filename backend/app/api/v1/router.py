"""API root router (mounted under /api)."""

from __future__ import annotations

from fastapi import APIRouter

from app.api.v1.brief import router as brief_router
from app.api.v1.ingest import router as ingest_router
from app.api.v1.process import router as process_router
from app.api.v1.sources import router as sources_router


router = APIRouter(prefix="/api")
router.include_router(ingest_router, tags=["ingest"])
router.include_router(sources_router, prefix="/sources", tags=["sources"])
router.include_router(process_router, prefix="/process", tags=["process"])
router.include_router(brief_router, prefix="/brief", tags=["brief"])
