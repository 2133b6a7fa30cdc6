"""Runtime configuration (environment variables only).

`.env` files are loaded into the process environment if present, without
overriding variables that are already set. No external dependency required.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Final

from pydantic import BaseModel, ConfigDict

from ingestion.core.errors import ConfigError


DATABASE_URL_ENV: Final[str] = "DATABASE_URL"
INGEST_SECRET_ENV: Final[str] = "COCKPIT_INGEST_SECRET"
PROCESS_SECRET_ENV: Final[str] = "COCKPIT_PROCESS_SECRET"
OPENAI_API_KEY_ENV: Final[str] = "OPENAI_API_KEY"

DEFAULT_MODEL: Final[str] = "gpt-4.1-mini"
DEFAULT_OPENAI_BASE_URL: Final[str] = "https://api.openai.com/v1"

# backend/app/core/config.py -> backend/app/core -> backend/app -> backend -> repo root
BACKEND_DIR = Path(__file__).resolve().parents[2]
REPO_ROOT = BACKEND_DIR.parent


def _parse_env_line(line: str) -> tuple[str, str] | None:
    line = line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, value = line.split("=", 1)
    key = key.strip()
    value = value.strip()
    if not key:
        return None
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        value = value[1:-1]
    return key, value


def load_env_if_present(*, override: bool = False) -> None:
    """Load repo-root `.env` then `backend/.env` into os.environ."""
    for p in (REPO_ROOT / ".env", BACKEND_DIR / ".env"):
        if not p.is_file():
            continue
        try:
            content = p.read_text(encoding="utf-8")
        except OSError:
            continue
        for raw in content.splitlines():
            parsed = _parse_env_line(raw)
            if not parsed:
                continue
            k, v = parsed
            if not override and k in os.environ:
                continue
            os.environ[k] = v


def require_env(name: str) -> str:
    """Return a required env var or raise ConfigError (fatal to the request)."""
    load_env_if_present()
    value = os.environ.get(name)
    if not value:
        raise ConfigError(f"Missing env var: {name}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid float for env var {name}: {raw!r}") from e
    return value if value > 0 else default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid integer for env var {name}: {raw!r}") from e
    return value if value > 0 else default


class Settings(BaseModel):
    """Enrichment-side settings. Secrets for the HTTP surface are read per request."""

    openai_api_key: str
    openai_model: str = DEFAULT_MODEL
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL
    fetch_timeout_seconds: float = 20.0
    model_timeout_seconds: float = 30.0
    enrich_workers: int = 1

    model_config = ConfigDict(frozen=True)


def get_settings() -> Settings:
    """Build Settings from the environment; raises ConfigError if the API key is missing."""
    load_env_if_present()
    return Settings(
        openai_api_key=require_env(OPENAI_API_KEY_ENV),
        openai_model=os.environ.get("OPENAI_MODEL") or DEFAULT_MODEL,
        openai_base_url=(os.environ.get("OPENAI_BASE_URL") or DEFAULT_OPENAI_BASE_URL).rstrip("/"),
        fetch_timeout_seconds=_env_float("COCKPIT_FETCH_TIMEOUT_SECONDS", 20.0),
        model_timeout_seconds=_env_float("COCKPIT_MODEL_TIMEOUT_SECONDS", 30.0),
        enrich_workers=_env_int("COCKPIT_ENRICH_WORKERS", 1),
    )
