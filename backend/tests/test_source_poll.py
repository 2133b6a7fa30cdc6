from __future__ import annotations

import pytest
from sqlalchemy import select, text, update
from sqlalchemy.orm import Session

from app.models.source import Source, SourceSeenKey
from conftest import fail_nth_execute
from ingestion.core.errors import PersistenceError, ValidationError
from ingestion.core.source_poll import (
    PollReport,
    clamp_limit,
    clean_keys,
    due_sources,
    lookup_seen,
    report_poll,
)


def _source(db: Session, url: str, **kw) -> int:
    s = Source(type=kw.pop("type", "rss"), vertical=kw.pop("vertical", "ree"), name=url, url=url, **kw)
    db.add(s)
    db.commit()
    return s.id


@pytest.mark.parametrize(
    "value, expected",
    [(None, 100), ("abc", 100), (0, 100), (-3, 100), (7, 7), ("12", 12), (9999, 500), (2.9, 2)],
)
def test_clamp_limit(value, expected):
    assert clamp_limit(value, 100, 500) == expected


def test_clean_keys_dedupes_and_caps():
    assert clean_keys(["a", "", None, "b", "a", 3]) == ["a", "b", "3"]
    assert len(clean_keys([str(i) for i in range(500)])) == 200


def test_due_sources_order_and_filters(db_session: Session):
    never = _source(db_session, "https://feeds.example/never")
    stale = _source(db_session, "https://feeds.example/stale", poll_interval_min=30)
    fresh = _source(db_session, "https://feeds.example/fresh", poll_interval_min=60)
    _source(db_session, "https://feeds.example/off", enabled=False)
    _source(db_session, "https://feeds.example/other", type="sitemap")

    db_session.execute(
        update(Source).where(Source.id == stale).values(last_polled_at=text("now() - interval '2 hours'"))
    )
    db_session.execute(
        update(Source).where(Source.id == fresh).values(last_polled_at=text("now() - interval '5 minutes'"))
    )
    db_session.commit()

    rows = due_sources(db_session, "rss", 10)
    assert [r.id for r in rows] == [never, stale]

    assert [r.id for r in due_sources(db_session, "rss", 1)] == [never]


def test_report_records_union_of_seen_keys_once(db_session: Session):
    sid = _source(db_session, "https://feeds.example/a")

    assert report_poll(db_session, PollReport(source_id=sid, etag='"v1"', seen_keys=("k1", "k2"))) == 2
    assert report_poll(db_session, PollReport(source_id=sid, etag='"v2"', seen_keys=("k2", "k3", "k3"))) == 1

    keys = db_session.scalars(select(SourceSeenKey.item_key).where(SourceSeenKey.source_id == sid)).all()
    assert sorted(keys) == ["k1", "k2", "k3"]

    src = db_session.get(Source, sid)
    assert src is not None
    assert src.etag == '"v2"'
    assert src.last_polled_at is not None
    assert src.last_error is None


def test_report_truncates_last_error(db_session: Session):
    sid = _source(db_session, "https://feeds.example/a")
    report_poll(db_session, PollReport(source_id=sid, last_error="e" * 5000))
    src = db_session.get(Source, sid)
    assert src is not None
    assert len(src.last_error) == 1000


def test_report_unknown_or_bad_source(db_session: Session):
    with pytest.raises(ValidationError):
        report_poll(db_session, PollReport(source_id=999))
    with pytest.raises(ValidationError):
        report_poll(db_session, PollReport(source_id="abc"))  # type: ignore[arg-type]
    with pytest.raises(ValidationError):
        report_poll(db_session, PollReport(source_id=0))


def test_report_is_atomic_when_key_insert_fails(db_session: Session, monkeypatch: pytest.MonkeyPatch):
    sid = _source(db_session, "https://feeds.example/a")
    # Call 1 is the cursor update, call 2 the seen-key insert.
    fail_nth_execute(monkeypatch, db_session, 2)
    with pytest.raises(PersistenceError):
        report_poll(db_session, PollReport(source_id=sid, etag="new", seen_keys=("k1", "k2")))
    monkeypatch.undo()

    db_session.expire_all()
    src = db_session.get(Source, sid)
    assert src is not None
    assert src.last_polled_at is None
    assert src.etag is None
    assert db_session.scalars(select(SourceSeenKey).where(SourceSeenKey.source_id == sid)).all() == []


def test_report_keeps_no_keys_when_bookkeeping_fails(db_session: Session, monkeypatch: pytest.MonkeyPatch):
    sid = _source(db_session, "https://feeds.example/a")
    report_poll(db_session, PollReport(source_id=sid, etag='"v1"', seen_keys=("k1",)))

    fail_nth_execute(monkeypatch, db_session, 1)
    with pytest.raises(PersistenceError):
        report_poll(db_session, PollReport(source_id=sid, etag='"v2"', seen_keys=("k2", "k3")))
    monkeypatch.undo()

    db_session.expire_all()
    src = db_session.get(Source, sid)
    assert src is not None
    assert src.etag == '"v1"'
    keys = db_session.scalars(select(SourceSeenKey.item_key).where(SourceSeenKey.source_id == sid)).all()
    assert keys == ["k1"]


@pytest.mark.parametrize(
    "report",
    [
        PollReport(source_id=1, etag="bad\x00etag"),
        PollReport(source_id=1, last_modified="Mon\x00"),
        PollReport(source_id=1, last_error="boom\x00"),
        PollReport(source_id=1, seen_keys=("ok", "bad\x00key")),
    ],
)
def test_report_rejects_nul_before_touching_storage(report: PollReport):
    # No session: the input is refused before any statement runs.
    with pytest.raises(ValidationError):
        report_poll(None, report)  # type: ignore[arg-type]


def test_lookup_seen_rejects_nul_key():
    with pytest.raises(ValidationError):
        lookup_seen(None, 1, ["k\x00"])  # type: ignore[arg-type]


def test_lookup_seen_preserves_caller_order(db_session: Session):
    sid = _source(db_session, "https://feeds.example/a")
    report_poll(db_session, PollReport(source_id=sid, seen_keys=("k1", "k3")))

    assert lookup_seen(db_session, sid, ["k3", "k2", "k1"]) == ["k3", "k1"]
    assert lookup_seen(db_session, sid, []) == []
    with pytest.raises(ValidationError):
        lookup_seen(db_session, -1, ["k1"])
