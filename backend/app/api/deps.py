"""API dependencies.

- One session per request, always closed.
- Core operations own their commit/rollback; the request scope never commits.
"""

from __future__ import annotations

from collections.abc import Generator

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.db import SessionLocal
from ingestion.core.pipeline import EnrichmentPipeline, build_pipeline


def get_db_session() -> Generator[Session, None, None]:
    """Provide a database session for request scope."""
    session: Session = SessionLocal()
    try:
        session.autoflush = False
        yield session
    finally:
        session.close()


def get_pipeline() -> EnrichmentPipeline:
    # Settings are read per request so a rotated key is picked up without restart.
    return build_pipeline(get_settings())
