from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Generator

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker


ROOT = Path(__file__).resolve().parents[2]

# Ensure `backend/app` is importable as top-level `app` for tests.
BACKEND_DIR = ROOT / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from app.core.config import load_env_if_present  # noqa: E402


TABLES = ("processed_items", "raw_items", "source_seen", "sources")


def _db_url() -> str | None:
    load_env_if_present()
    return os.environ.get("DATABASE_URL")


def _alembic_config(db_url: str) -> Config:
    cfg = Config(str(ROOT / "backend" / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "backend" / "alembic"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


@pytest.fixture(scope="session")
def engine() -> Engine:
    url = _db_url()
    if not url:
        pytest.skip("DATABASE_URL not set; skipping DB integration tests.")
    return create_engine(url, future=True, pool_size=10)


@pytest.fixture(scope="session")
def migrate_db(engine: Engine) -> Generator[None, None, None]:
    """Ensure schema is upgraded to head for the test session."""
    url = _db_url()
    assert url is not None
    command.upgrade(_alembic_config(url), "head")
    yield


def _truncate(engine: Engine) -> None:
    with engine.begin() as conn:
        conn.execute(text(f"TRUNCATE {', '.join(TABLES)} RESTART IDENTITY CASCADE"))


@pytest.fixture()
def session_factory(engine: Engine, migrate_db: None) -> Generator[sessionmaker[Session], None, None]:
    """Clean tables around each test; core operations commit their own work."""
    _truncate(engine)
    yield sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False)
    _truncate(engine)


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


def valid_model_output(**overrides: Any) -> dict[str, Any]:
    """A model result that passes normalization."""
    data: dict[str, Any] = {
        "title": "Lynas expands Malaysian separation capacity",
        "summary_1": "Lynas will expand separation output by 30 percent in 2027.",
        "bullets": [
            "Capacity rises to 12ktpa NdPr",
            "Funding from existing cash",
            "Commissioning in Q3 2027",
            "Feed from Mt Weld concentrate",
            "Offtake talks with magnet makers",
        ],
        "why_it_matters": "Adds non-Chinese separation capacity.",
        "tags": ["Separation", "Mining"],
        "entities": {"companies": ["Lynas"]},
        "relevance_score": 82,
        "visibility": "public",
    }
    data.update(overrides)
    return data


def fail_nth_execute(monkeypatch: pytest.MonkeyPatch, session: Session, n: int) -> None:
    """Make the session's n-th `execute` call raise OperationalError (1-based)."""
    real = session.execute
    calls = {"count": 0}

    def execute(*args: Any, **kwargs: Any):
        calls["count"] += 1
        if calls["count"] == n:
            raise OperationalError("forced", {}, Exception("connection lost"))
        return real(*args, **kwargs)

    monkeypatch.setattr(session, "execute", execute)
