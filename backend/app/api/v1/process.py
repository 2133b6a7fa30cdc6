"""Enrichment trigger endpoints.

POST is the manual/operator trigger; GET is the cron trigger, which may carry
the secret in the query string. Both run one claim + enrich batch inline and
report per-item outcomes. A claim failure aborts with 503; item failures never
do.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends

from app.api.deps import get_pipeline
from app.schemas.process import ItemResult, ProcessMode, ProcessRequest, ProcessResponse
from app.security.auth import require_cron_secret, require_process_secret
from ingestion.core.claim_queue import DEFAULT_CLAIM_LIMIT
from ingestion.core.pipeline import EnrichmentPipeline


router = APIRouter()


def _run(pipeline: EnrichmentPipeline, limit: Any, mode: ProcessMode) -> ProcessResponse:
    batch = pipeline.process_batch(DEFAULT_CLAIM_LIMIT if limit is None else limit)
    return ProcessResponse(
        mode=mode,
        limit=batch.limit,
        picked=batch.picked,
        processed=batch.processed,
        results=[ItemResult(**r.as_dict()) for r in batch.results],
    )


@router.post("", response_model=ProcessResponse, dependencies=[Depends(require_process_secret)])
def process_manual(
    body: Optional[ProcessRequest] = Body(None),
    pipeline: EnrichmentPipeline = Depends(get_pipeline),
) -> ProcessResponse:
    return _run(pipeline, body.limit if body else None, "manual_post")


@router.get("", response_model=ProcessResponse, dependencies=[Depends(require_cron_secret)])
def process_cron(
    limit: Optional[str] = None,
    pipeline: EnrichmentPipeline = Depends(get_pipeline),
) -> ProcessResponse:
    return _run(pipeline, limit, "cron_get")
