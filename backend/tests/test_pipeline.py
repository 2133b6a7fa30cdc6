from __future__ import annotations

import threading
from typing import Any

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, sessionmaker

from app.models.processed_item import ProcessedItem
from app.models.raw_item import RawItem
from conftest import valid_model_output
from ingestion.core.claim_queue import claim_batch
from ingestion.core.errors import FetchError
from ingestion.core.pipeline import EnrichmentPipeline
from ingestion.core.processed_store import mark_raw_error
from ingestion.core.raw_ingest import IngestInput, ingest_item


class FakeFetcher:
    def __init__(self, failures: dict[str, Exception] | None = None) -> None:
        self.failures = failures or {}
        self.calls: list[str] = []

    def fetch(self, url: str) -> str:
        self.calls.append(url)
        if url in self.failures:
            raise self.failures[url]
        return f"article text for {url}"


class FakeSummarizer:
    model_name = "gpt-test"

    def __init__(self, result: Any = None, by_url: dict[str, Any] | None = None) -> None:
        self.result = result if result is not None else valid_model_output()
        self.by_url = by_url or {}

    def analyze(self, content: str, url: str, vertical: str) -> dict[str, Any]:
        value = self.by_url.get(url, self.result)
        if isinstance(value, Exception):
            raise value
        return value


def _pipeline(factory: sessionmaker[Session], summarizer: Any = None, fetcher: Any = None, **kw) -> EnrichmentPipeline:
    return EnrichmentPipeline(factory, fetcher or FakeFetcher(), summarizer or FakeSummarizer(), **kw)


def _count_processed(db: Session, raw_item_id: int) -> int:
    return db.scalar(select(func.count()).select_from(ProcessedItem).where(ProcessedItem.raw_item_id == raw_item_id))


def test_end_to_end_scenario(session_factory: sessionmaker[Session]):
    with session_factory() as db:
        first = ingest_item(db, IngestInput(url="https://x.example/a", vertical="ree"))
        again = ingest_item(db, IngestInput(url="https://x.example/a", metadata={"extra": 1}))
    assert (first.inserted, first.id) == (True, 1)
    assert (again.inserted, again.id) == (False, 1)

    # Empty summary: item fails, nothing is persisted.
    batch = _pipeline(session_factory, FakeSummarizer(valid_model_output(summary_1=""))).process_batch(10)
    assert (batch.picked, batch.processed, batch.succeeded) == (1, 1, 0)
    assert batch.results[0].as_dict() == {
        "id": 1,
        "ok": False,
        "error": "Model output missing summary_1",
        "error_type": "ValidationError",
    }
    with session_factory() as db:
        row = db.get(RawItem, 1)
        assert row.status == "error"
        assert row.last_error == "Model output missing summary_1"
        assert _count_processed(db, 1) == 0

        # Operator reset.
        db.execute(update(RawItem).where(RawItem.id == 1).values(status="new"))
        db.commit()

    batch = _pipeline(session_factory).process_batch(10)
    assert [r.as_dict() for r in batch.results] == [{"id": 1, "ok": True}]
    with session_factory() as db:
        row = db.get(RawItem, 1)
        assert row.status == "processed"
        assert row.processed_at is not None
        assert row.last_error is None
        item = db.scalars(select(ProcessedItem).where(ProcessedItem.raw_item_id == 1)).one()
        assert item.summary.startswith("Lynas")
        assert len(item.bullets) == 5
        assert item.model == "gpt-test"
        assert item.tags == ["Separation", "Mining"]
        assert item.relevance_score == 82


def test_item_failures_do_not_stop_the_batch(session_factory: sessionmaker[Session]):
    with session_factory() as db:
        ids = [ingest_item(db, IngestInput(url=f"https://x.example/{i}")).id for i in range(4)]

    fetcher = FakeFetcher({"https://x.example/1": FetchError("Fetch failed 404")})
    summarizer = FakeSummarizer(
        by_url={
            "https://x.example/2": valid_model_output(bullets=["a", "b", "c", "d"]),
            "https://x.example/3": RuntimeError("boom"),
        }
    )
    batch = _pipeline(session_factory, summarizer, fetcher).process_batch(10)

    outcomes = {r.id: r for r in batch.results}
    assert outcomes[ids[0]].ok
    assert outcomes[ids[1]].error_type == "FetchError"
    assert outcomes[ids[1]].error == "Fetch failed 404"
    assert outcomes[ids[2]].error_type == "ValidationError"
    assert outcomes[ids[3]].error_type == "InternalError"

    with session_factory() as db:
        statuses = dict(db.execute(select(RawItem.id, RawItem.status)).all())
        assert statuses == {ids[0]: "processed", ids[1]: "error", ids[2]: "error", ids[3]: "error"}
        # Four-bullet result is never persisted.
        assert _count_processed(db, ids[2]) == 0
        assert db.scalar(select(func.count()).select_from(ProcessedItem)) == 1


def test_thread_pool_keeps_claim_order(session_factory: sessionmaker[Session]):
    with session_factory() as db:
        ids = [ingest_item(db, IngestInput(url=f"https://x.example/{i}")).id for i in range(6)]

    batch = _pipeline(session_factory, max_workers=3).process_batch(10)
    assert [r.id for r in batch.results] == ids
    assert batch.succeeded == 6


def test_processed_is_never_downgraded(session_factory: sessionmaker[Session]):
    with session_factory() as db:
        rid = ingest_item(db, IngestInput(url="https://x.example/a")).id
    _pipeline(session_factory).process_batch(1)

    with session_factory() as db:
        assert mark_raw_error(db, rid, "late failure") is False
        db.commit()
        row = db.get(RawItem, rid)
        assert row.status == "processed"
        assert row.last_error is None


def test_racing_runs_persist_exactly_once(session_factory: sessionmaker[Session]):
    with session_factory() as db:
        rid = ingest_item(db, IngestInput(url="https://x.example/a")).id
        (item,) = claim_batch(db, 1)
    assert item.id == rid

    # A superseded attempt fails after the winning attempt has already committed.
    pipelines = [
        _pipeline(session_factory),
        _pipeline(session_factory),
        _pipeline(session_factory, fetcher=FakeFetcher({item.url: FetchError("Fetch failed 500")})),
    ]
    barrier = threading.Barrier(2)
    outcomes = []

    def run(p: EnrichmentPipeline) -> None:
        barrier.wait()
        outcomes.append(p.process_item(item))

    threads = [threading.Thread(target=run, args=(p,)) for p in pipelines[:2]]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    outcomes.append(pipelines[2].process_item(item))

    assert [o.ok for o in outcomes].count(True) == 2
    with session_factory() as db:
        assert _count_processed(db, rid) == 1
        assert db.get(RawItem, rid).status == "processed"


def test_empty_queue(session_factory: sessionmaker[Session]):
    batch = _pipeline(session_factory).process_batch("junk")
    assert (batch.limit, batch.picked, batch.results) == (20, 0, [])


@pytest.mark.parametrize("limit, expected", [(None, 20), (0, 20), (7, 7), (99, 50)])
def test_batch_reports_clamped_limit(session_factory: sessionmaker[Session], limit, expected):
    assert _pipeline(session_factory).process_batch(limit).limit == expected
