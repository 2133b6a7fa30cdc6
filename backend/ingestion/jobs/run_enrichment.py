"""Enrichment job: one claim + enrich batch, for cron or manual runs.

Exits non-zero only when the batch could not run at all (config or storage);
per-item failures are recorded on the raw items and reported in the summary.

Run:
  python ingestion/jobs/run_enrichment.py --limit 20
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Ensure `backend/` is on sys.path so `import app...` works when run from repo root.
BASE_DIR = Path(__file__).resolve().parents[2]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from app.core.config import get_settings, load_env_if_present  # noqa: E402
from ingestion.core.claim_queue import DEFAULT_CLAIM_LIMIT  # noqa: E402
from ingestion.core.errors import ConfigError, PersistenceError  # noqa: E402
from ingestion.core.pipeline import build_pipeline  # noqa: E402


logger = logging.getLogger("cockpit.jobs.enrichment")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Claim new raw items and enrich them.")
    parser.add_argument("--limit", type=int, default=DEFAULT_CLAIM_LIMIT, help="Items to claim (1-50)")
    parser.add_argument("--workers", type=int, default=None, help="Override COCKPIT_ENRICH_WORKERS")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    args = parse_args(argv)
    load_env_if_present()

    try:
        settings = get_settings()
        if args.workers:
            settings = settings.model_copy(update={"enrich_workers": max(1, args.workers)})
        batch = build_pipeline(settings).process_batch(args.limit)
    except ConfigError as e:
        logger.error("config error: %s", e)
        return 2
    except PersistenceError as e:
        logger.error("batch aborted: %s", e)
        return 1

    logger.info(
        json.dumps(
            {
                "event": "enrichment_batch",
                "limit": batch.limit,
                "picked": batch.picked,
                "succeeded": batch.succeeded,
                "failed": batch.processed - batch.succeeded,
            }
        )
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
