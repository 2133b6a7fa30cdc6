"""Source registry: YAML file -> `sources` rows.

Operator intent:
- Sources are switched on/off and re-pointed without code changes.
- Sync only owns configuration columns. Poll bookkeeping (etag, last_modified,
  last_polled_at, last_error) belongs to the crawler report and is never touched,
  so re-running a sync cannot make the crawler refetch or forget its cursors.
- A source removed from the file is left as-is; disable it explicitly instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.source import Source
from ingestion.core.errors import ConfigError, PersistenceError, truncate_message
from ingestion.core.raw_ingest import normalize_vertical


logger = logging.getLogger("cockpit.ingestion.registry")

DEFAULT_POLL_INTERVAL_MIN = 60


@dataclass(frozen=True, slots=True)
class SourceConfig:
    key: str
    type: str
    url: str
    name: str
    vertical: str
    poll_interval_min: int = DEFAULT_POLL_INTERVAL_MIN
    enabled: bool = True


@dataclass(frozen=True, slots=True)
class SourceRegistry:
    sources: list[SourceConfig]

    def enabled_sources(self) -> list[SourceConfig]:
        return sorted((s for s in self.sources if s.enabled), key=lambda s: s.key)


def _interval(value: Any) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return DEFAULT_POLL_INTERVAL_MIN
    return n if n > 0 else DEFAULT_POLL_INTERVAL_MIN


def parse_registry(raw: Any) -> SourceRegistry:
    if not isinstance(raw, dict) or not isinstance(raw.get("sources"), dict):
        raise ConfigError("Invalid sources.yaml: expected top-level mapping with 'sources'.")

    sources: list[SourceConfig] = []
    for key, cfg in raw["sources"].items():
        if not isinstance(cfg, dict):
            continue
        url = str(cfg.get("url") or "").strip()
        if not url:
            logger.warning("registry entry %s has no url; skipped", key)
            continue
        sources.append(
            SourceConfig(
                key=str(key),
                type=str(cfg.get("type") or "rss").strip().lower(),
                url=url,
                name=str(cfg.get("name") or key),
                vertical=normalize_vertical(cfg.get("vertical")),
                poll_interval_min=_interval(cfg.get("poll_interval_min")),
                enabled=bool(cfg.get("enabled", True)),
            )
        )
    return SourceRegistry(sources=sources)


def load_sources_yaml(path: Path) -> SourceRegistry:
    try:
        raw = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read sources file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(truncate_message(f"Invalid sources.yaml: {e}", 400)) from e
    return parse_registry(raw)


def sync_sources(db: Session, registry: SourceRegistry) -> int:
    """Upsert every registry entry on (type, url) in one transaction. Returns rows written."""
    if not registry.sources:
        return 0

    table = Source.__table__
    # Last entry wins when the file repeats a (type, url) pair.
    rows = {
        (s.type, s.url): {
            "type": s.type,
            "url": s.url,
            "name": s.name,
            "vertical": s.vertical,
            "poll_interval_min": s.poll_interval_min,
            "enabled": s.enabled,
        }
        for s in registry.sources
    }
    stmt = pg_insert(table).values(list(rows.values()))
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.type, table.c.url],
        set_={
            "name": stmt.excluded.name,
            "vertical": stmt.excluded.vertical,
            "poll_interval_min": stmt.excluded.poll_interval_min,
            "enabled": stmt.excluded.enabled,
        },
    )
    try:
        db.execute(stmt)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(truncate_message(f"source sync failed: {e}", 400)) from e

    logger.info("synced %d sources", len(rows))
    return len(rows)
