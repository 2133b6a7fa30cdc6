"""Source registry sync: upsert `sources` rows from the YAML registry.

Run:
  python ingestion/jobs/sync_sources.py [--file path/to/sources.yaml]
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

# Ensure `backend/` is on sys.path so `import app...` works when run from repo root.
BASE_DIR = Path(__file__).resolve().parents[2]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from app.core.config import load_env_if_present  # noqa: E402
from app.core.db import session_scope  # noqa: E402
from ingestion.core.errors import ConfigError, PersistenceError  # noqa: E402
from ingestion.core.source_registry import load_sources_yaml, sync_sources  # noqa: E402


logger = logging.getLogger("cockpit.jobs.sync_sources")

DEFAULT_SOURCES_YAML = BASE_DIR / "ingestion" / "config" / "sources.yaml"


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    parser = argparse.ArgumentParser(description="Sync the YAML source registry into the database.")
    parser.add_argument("--file", default=None, help="Registry file (default: COCKPIT_SOURCES_YAML)")
    args = parser.parse_args(argv)
    load_env_if_present()

    cfg_path = Path(args.file or os.environ.get("COCKPIT_SOURCES_YAML") or DEFAULT_SOURCES_YAML)
    try:
        registry = load_sources_yaml(cfg_path)
        with session_scope() as db:
            written = sync_sources(db, registry)
    except ConfigError as e:
        logger.error("config error: %s", e)
        return 2
    except PersistenceError as e:
        logger.error("sync failed: %s", e)
        return 1

    logger.info("registry %s: %d sources (%d enabled) synced", cfg_path, written, len(registry.enabled_sources()))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
