"""Authentication (shared-secret, per route family).

Design:
- Producers (chat bot) use COCKPIT_INGEST_SECRET; cron, crawler and the brief
  poster use COCKPIT_PROCESS_SECRET.
- The secret travels in the `x-cockpit-secret` header. The cron GET trigger may
  pass it as `?secret=` instead, since schedulers often cannot set headers.
- Default deny. The check runs before any session is opened.
- A missing server-side secret is a configuration error, never an open door.
"""

from __future__ import annotations

import hmac
from typing import Callable

from fastapi import Request

from app.core.config import INGEST_SECRET_ENV, PROCESS_SECRET_ENV, require_env
from ingestion.core.errors import AuthError


SECRET_HEADER = "x-cockpit-secret"


def secrets_match(provided: str | None, expected: str) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def require_secret(env_name: str, *, allow_query: bool = False) -> Callable[[Request], None]:
    """FastAPI dependency factory: compare the caller's secret with env `env_name`."""

    def _dep(request: Request) -> None:
        expected = require_env(env_name)
        provided = request.headers.get(SECRET_HEADER)
        if not provided and allow_query:
            provided = request.query_params.get("secret")
        if not secrets_match(provided, expected):
            raise AuthError("Unauthorized")

    return _dep


require_ingest_secret = require_secret(INGEST_SECRET_ENV)
require_process_secret = require_secret(PROCESS_SECRET_ENV)
require_cron_secret = require_secret(PROCESS_SECRET_ENV, allow_query=True)
