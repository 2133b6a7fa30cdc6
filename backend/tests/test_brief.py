from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.models.processed_item import ProcessedItem
from app.repositories.brief_repo import list_unposted
from app.services.brief_service import clean_ids, mark_posted
from conftest import valid_model_output
from ingestion.core.normalize import normalize_model_output
from ingestion.core.processed_store import save_processed
from ingestion.core.raw_ingest import IngestInput, ingest_item


def _processed(db: Session, url: str, vertical: str = "ree", visibility: str = "public") -> int:
    raw = ingest_item(db, IngestInput(url=url, vertical=vertical))
    result = normalize_model_output(valid_model_output(title=url, visibility=visibility))
    save_processed(db, raw_item_id=raw.id, vertical=vertical, url=url, result=result, model="gpt-test")
    db.commit()
    return db.scalar(select(ProcessedItem.id).where(ProcessedItem.raw_item_id == raw.id))


def test_clean_ids():
    assert clean_ids([3, "4", 0, -1, "x", None, True, 3, 2.0]) == [3, 4, 2]
    assert clean_ids(None) == []


def test_mark_posted_empty_touches_nothing():
    # No session needed: nothing valid to update.
    assert mark_posted(None, []) == 0  # type: ignore[arg-type]
    assert mark_posted(None, [0, -5, "nope"]) == 0  # type: ignore[arg-type]


def test_list_unposted_filters_and_orders(db_session: Session):
    older = _processed(db_session, "https://x.example/older")
    newer = _processed(db_session, "https://x.example/newer")
    _processed(db_session, "https://x.example/pro", visibility="pro")
    _processed(db_session, "https://x.example/coal", vertical="coal")
    posted = _processed(db_session, "https://x.example/posted")
    assert mark_posted(db_session, [posted]) == 1

    vertical, limit, items = list_unposted(db_session, "REE", None)
    assert (vertical, limit) == ("ree", 5)
    assert [i.id for i in items] == [newer, older]
    assert items[0].summary_1.startswith("Lynas")
    assert items[0].visibility == "public"

    vertical, _, items = list_unposted(db_session, "gold", 1)
    assert vertical == "ree"
    assert [i.id for i in items] == [newer]

    _, _, coal = list_unposted(db_session, "coal", 100)
    assert len(coal) == 1


def test_list_unposted_clamps_limit(db_session: Session):
    assert list_unposted(db_session, "ree", 500)[1] == 20
    assert list_unposted(db_session, "ree", "abc")[1] == 5


def test_mark_posted_updates_existing_ids_only(db_session: Session):
    a = _processed(db_session, "https://x.example/a")
    b = _processed(db_session, "https://x.example/b")

    assert mark_posted(db_session, [a, str(b), 999, -1]) == 2
    _, _, items = list_unposted(db_session, "ree", 20)
    assert items == []

    db_session.execute(update(ProcessedItem).values(posted_at=None))
    db_session.commit()
    assert len(list_unposted(db_session, "ree", 20)[2]) == 2
