"""Error taxonomy for ingestion and enrichment.

Handling intent:
- AuthError / ConfigError are fatal to a request and raised before any store work.
- ValidationError / FetchError / ExternalServiceError are recovered per item during
  enrichment: recorded on the raw item, the batch continues.
- PersistenceError aborts the transactional operation that raised it (claim, report,
  ingest); nothing is left half-applied.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


MAX_ERROR_CHARS = 1000


def truncate_message(message: object, limit: int = MAX_ERROR_CHARS) -> str:
    text = str(message)
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 3)] + "..."


def has_nul(value: Any) -> bool:
    """True if a string anywhere in `value` (mapping keys included) holds a NUL."""
    if isinstance(value, str):
        return "\x00" in value
    if isinstance(value, Mapping):
        return any(has_nul(k) or has_nul(v) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return any(has_nul(v) for v in value)
    return False


def reject_nul(value: Any, field: str) -> None:
    # PostgreSQL text and jsonb cannot store NUL.
    if has_nul(value):
        raise ValidationError(f"{field} contains a NUL character")


class IngestionError(RuntimeError):
    """Base error for the ingestion core."""


class AuthError(IngestionError):
    """Raised when the caller's shared secret does not match."""


class ConfigError(IngestionError):
    """Raised when required configuration (env var) is missing."""


class ValidationError(IngestionError):
    """Raised on malformed caller input or malformed model output."""


class FetchError(IngestionError):
    """Raised when content retrieval fails (HTTP status, transport, timeout)."""


class ExternalServiceError(IngestionError):
    """Raised when the summarization call fails or its result cannot be parsed."""


class PersistenceError(IngestionError):
    """Raised when storage is unavailable or a transaction fails."""
