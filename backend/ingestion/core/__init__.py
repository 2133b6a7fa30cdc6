"""Ingestion core primitives.

Storage-facing operations (each owns its transaction):
- raw_ingest: content-addressed insert-or-merge of candidate urls
- source_poll: due sources, atomic poll report, seen-key lookup
- claim_queue: exclusive new -> processing claim
- pipeline: fetch -> model -> validate -> persist, per item
"""

from ingestion.core.claim_queue import ClaimedItem, claim_batch
from ingestion.core.errors import (
    AuthError,
    ConfigError,
    ExternalServiceError,
    FetchError,
    IngestionError,
    PersistenceError,
    ValidationError,
)
from ingestion.core.raw_ingest import IngestInput, IngestOutput, compute_url_hash, ingest_item
from ingestion.core.source_poll import DueSource, PollReport, due_sources, lookup_seen, report_poll

__all__ = [
    "AuthError",
    "ClaimedItem",
    "ConfigError",
    "DueSource",
    "ExternalServiceError",
    "FetchError",
    "IngestInput",
    "IngestOutput",
    "IngestionError",
    "PersistenceError",
    "PollReport",
    "ValidationError",
    "claim_batch",
    "compute_url_hash",
    "due_sources",
    "ingest_item",
    "lookup_seen",
    "report_poll",
]
