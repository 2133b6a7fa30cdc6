"""Enrichment pipeline: claim -> fetch -> model -> validate -> persist.

Architecture:
- Ownership comes only from `claim_batch` (atomic new->processing).
- Each claimed item is processed independently with its own session; one item's
  failure never stops the others. Items run sequentially or on a small thread
  pool; nothing requires ordering among them beyond the FIFO claim.
- Every external call has its own timeout; a timeout is an ordinary item failure.
- Failures are recorded on the raw item (status=error, truncated last_error)
  through the status-downgrade guard. No automatic retry: error items wait for
  an operator reset to `new`.
- A storage failure while recording an outcome means storage is gone; it aborts
  the batch as PersistenceError.

Execution Flow:
    process_batch(limit)
    ├── claim_batch()                     (one transaction)
    └── for each item (independent)
        ├── fetcher.fetch(url)            FetchError
        ├── summarizer.analyze(...)       ExternalServiceError
        ├── normalize_model_output(...)   ValidationError
        └── save_processed + mark_raw_processed   (one transaction)
            or mark_raw_error             (guarded, one transaction)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.db import SessionLocal
from ingestion.core.ai_summarizer import ResponsesSummarizer
from ingestion.core.claim_queue import DEFAULT_CLAIM_LIMIT, MAX_CLAIM_LIMIT, ClaimedItem, claim_batch
from ingestion.core.content_fetcher import ContentFetcher
from ingestion.core.errors import IngestionError, PersistenceError, truncate_message
from ingestion.core.normalize import EnrichmentResult, normalize_model_output
from ingestion.core.processed_store import mark_raw_error, mark_raw_processed, save_processed
from ingestion.core.source_poll import clamp_limit


logger = logging.getLogger("cockpit.ingestion.pipeline")


class Fetcher(Protocol):
    def fetch(self, url: str) -> str: ...


class Summarizer(Protocol):
    model_name: str

    def analyze(self, content: str, url: str, vertical: str) -> dict[str, Any]: ...


@dataclass(frozen=True, slots=True)
class ItemOutcome:
    id: int
    ok: bool
    error: Optional[str] = None
    error_type: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "ok": self.ok}
        if not self.ok:
            out["error"] = self.error
            out["error_type"] = self.error_type
        return out


@dataclass(slots=True)
class BatchResult:
    limit: int
    picked: int
    results: list[ItemOutcome] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)


class EnrichmentPipeline:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        fetcher: Fetcher,
        summarizer: Summarizer,
        *,
        max_workers: int = 1,
    ) -> None:
        self._session_factory = session_factory
        self.fetcher = fetcher
        self.summarizer = summarizer
        self.max_workers = max(1, int(max_workers))

    def process_batch(self, limit: Any = DEFAULT_CLAIM_LIMIT) -> BatchResult:
        with self._session_factory() as db:
            items = claim_batch(db, limit)

        batch = BatchResult(limit=clamp_limit(limit, DEFAULT_CLAIM_LIMIT, MAX_CLAIM_LIMIT), picked=len(items))
        if not items:
            logger.info("no new raw items to process")
            return batch

        if self.max_workers == 1 or len(items) == 1:
            batch.results = [self.process_item(item) for item in items]
        else:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(items))) as pool:
                # map() keeps claim (FIFO) order in the results.
                batch.results = list(pool.map(self.process_item, items))

        logger.info(
            "batch done picked=%d ok=%d failed=%d",
            batch.picked,
            batch.succeeded,
            batch.processed - batch.succeeded,
        )
        return batch

    def enrich(self, item: ClaimedItem) -> EnrichmentResult:
        """Steps 1-3 for one item; raises typed IngestionErrors."""
        content = self.fetcher.fetch(item.url)
        raw = self.summarizer.analyze(content, item.url, item.vertical)
        return normalize_model_output(raw)

    def process_item(self, item: ClaimedItem) -> ItemOutcome:
        try:
            result = self.enrich(item)
            self._persist_success(item, result)
        except (IngestionError, SQLAlchemyError) as e:
            return self._record_failure(item, e)
        except Exception as e:  # noqa: BLE001
            # Unknown bugs are still per-item failures; the batch continues.
            logger.exception("unexpected error processing raw item %s", item.id)
            return self._record_failure(item, e, error_type="InternalError")

        logger.info("raw item %s processed", item.id)
        return ItemOutcome(id=item.id, ok=True)

    def _persist_success(self, item: ClaimedItem, result: EnrichmentResult) -> None:
        with self._session_factory() as db:
            try:
                inserted = save_processed(
                    db,
                    raw_item_id=item.id,
                    vertical=item.vertical,
                    url=item.url,
                    result=result,
                    model=self.summarizer.model_name,
                )
                mark_raw_processed(db, item.id)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise PersistenceError(truncate_message(f"persist failed: {e}", 400)) from e
        if not inserted:
            logger.info("raw item %s already had a processed record; kept the first write", item.id)

    def _record_failure(
        self,
        item: ClaimedItem,
        exc: BaseException,
        *,
        error_type: Optional[str] = None,
    ) -> ItemOutcome:
        error_type = error_type or type(exc).__name__
        message = truncate_message(str(exc) or error_type)
        with self._session_factory() as db:
            try:
                updated = mark_raw_error(db, item.id, message)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("could not record failure for raw item %s: %s", item.id, type(e).__name__)
                raise PersistenceError(truncate_message(f"failed to record item error: {e}", 400)) from e

        if updated:
            logger.warning("raw item %s failed (%s): %s", item.id, error_type, truncate_message(message, 200))
        else:
            logger.info("raw item %s failure (%s) ignored: already processed", item.id, error_type)
        return ItemOutcome(id=item.id, ok=False, error=message, error_type=error_type)


def build_pipeline(settings: Settings) -> EnrichmentPipeline:
    """Production wiring: process-wide session factory, httpx fetcher and summarizer."""
    return EnrichmentPipeline(
        SessionLocal,
        ContentFetcher(timeout_seconds=settings.fetch_timeout_seconds),
        ResponsesSummarizer.from_settings(settings),
        max_workers=settings.enrich_workers,
    )
