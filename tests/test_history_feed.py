"""
Tests for the two-tier history feed: PRIMARY paging, the one-way switch to
FALLBACK, placeholders and their reconciliation.
"""

import pytest

from conftest import FakeClassifier, FakeRemoteStore, MemoryBlobStore, make_items, make_record
from core.history_feed import (
    DETECTION_PENDING,
    FeedMode,
    FeedSession,
    PlaceholderEntry,
    entry_key,
    entry_to_dict,
)
from core.live_monitoring import LiveMonitoringPipeline
from storage.interfaces import IngestionRecord

SUBJECT = "vineyard-7"


@pytest.fixture
def build(record_store):
    pipelines = []

    def _build(folders=None):
        remote = FakeRemoteStore(folders or {})
        pipeline = LiveMonitoringPipeline(
            remote, FakeClassifier(), MemoryBlobStore(), record_store, {"HISTORY_PAGE_SIZE": 10}
        )
        pipelines.append(pipeline)
        return pipeline

    yield _build
    for pipeline in pipelines:
        pipeline.shutdown()


def _seed_records(record_store, count, prefix="r"):
    for i in range(count):
        record_store.insert(make_record(SUBJECT, f"{prefix}-{i}"))


def _keys(entries):
    return [entry_key(e) for e in entries]


# ---------------------------------------------------------------------------
# PRIMARY
# ---------------------------------------------------------------------------


def test_fifteen_records_page_then_switch_to_fallback(build, record_store):
    _seed_records(record_store, 15)
    pipeline = build()
    session = pipeline.open_feed(SUBJECT)

    first = pipeline.next_page(session, 10)
    assert len(first.entries) == 10
    assert first.has_more is True
    assert first.mode is FeedMode.PRIMARY
    assert session.state.primary_offset == 10

    second = pipeline.next_page(session, 10)
    assert len(second.entries) == 5
    assert second.has_more is False
    assert second.mode is FeedMode.PRIMARY

    third = pipeline.next_page(session, 10)
    assert third.mode is FeedMode.FALLBACK
    assert third.entries == []
    assert third.has_more is False


def test_primary_pages_are_newest_first(build, record_store):
    _seed_records(record_store, 3)
    pipeline = build()
    page = pipeline.next_page(pipeline.open_feed(SUBJECT), 10)
    assert _keys(page.entries) == ["r-2", "r-1", "r-0"]


def test_camera_filter_restricts_primary_tier(build, record_store):
    record_store.insert(make_record(SUBJECT, "c1-a", camera_tag="1"))
    record_store.insert(make_record(SUBJECT, "c2-a", camera_tag="2"))
    record_store.insert(make_record(SUBJECT, "c1-b", camera_tag="1"))
    pipeline = build()
    session = pipeline.open_feed(SUBJECT, camera_tag="1")

    page = pipeline.next_page(session, 10)

    assert _keys(page.entries) == ["c1-b", "c1-a"]
    assert page.has_more is False


def test_new_session_restarts_at_primary(build, record_store):
    _seed_records(record_store, 2)
    pipeline = build()
    exhausted = pipeline.open_feed(SUBJECT)
    pipeline.next_page(exhausted, 10)
    pipeline.next_page(exhausted, 10)
    assert exhausted.mode is FeedMode.FALLBACK

    fresh = pipeline.open_feed(SUBJECT)
    page = pipeline.next_page(fresh, 10)
    assert page.mode is FeedMode.PRIMARY
    assert len(page.entries) == 2


# ---------------------------------------------------------------------------
# FALLBACK
# ---------------------------------------------------------------------------


def test_empty_store_serves_placeholders_immediately(build, record_store):
    pipeline = build({"2024-06-12": [make_items("a", 3)]})
    session = pipeline.open_feed(SUBJECT)

    page = pipeline.next_page(session, 10)

    assert page.mode is FeedMode.FALLBACK
    assert len(page.entries) == 3
    for entry in page.entries:
        assert isinstance(entry, PlaceholderEntry)
        assert entry.detection == DETECTION_PENDING
        assert entry.original_url == f"/drive/file/{entry.remote_id}"
    assert page.has_more is False

    page.ingestion.result(timeout=5)
    reconciled = session.entries()
    assert all(isinstance(e, IngestionRecord) for e in reconciled)
    assert _keys(reconciled) == ["a-0", "a-1", "a-2"]
    assert session.pending_count() == 0
    assert record_store.query_processed_ids(SUBJECT) == {"a-0", "a-1", "a-2"}


def test_no_duplicates_across_mode_transition(build, record_store):
    # a-0 and a-1 were ingested before; the archive still lists them.
    record_store.insert(make_record(SUBJECT, "a-0"))
    record_store.insert(make_record(SUBJECT, "a-1"))
    pipeline = build({"2024-06-12": [make_items("a", 5)]})
    session = pipeline.open_feed(SUBJECT)

    first = pipeline.next_page(session, 2)
    assert first.has_more is False
    second = pipeline.next_page(session, 10)
    assert second.mode is FeedMode.FALLBACK
    if second.ingestion:
        second.ingestion.result(timeout=5)

    keys = _keys(session.entries())
    assert sorted(keys) == ["a-0", "a-1", "a-2", "a-3", "a-4"]
    assert len(keys) == len(set(keys))


def test_fallback_pages_continue_the_same_scan(build):
    pipeline = build({"2024-06-12": [make_items("a", 3)], "2024-06-11": [make_items("b", 3)]})
    session = pipeline.open_feed(SUBJECT)

    first = pipeline.next_page(session, 4)
    second = pipeline.next_page(session, 4)

    assert _keys(first.entries) == ["a-0", "a-1", "a-2", "b-0"]
    assert first.has_more is True
    assert _keys(second.entries) == ["b-1", "b-2"]
    assert second.has_more is False


def test_fallback_listing_error_keeps_has_more(build):
    pipeline = build({"2024-06-12": [make_items("a", 1)]})
    pipeline.remote_store.fail_pages.add(("2024-06-12", None))
    session = pipeline.open_feed(SUBJECT)

    page = pipeline.next_page(session, 10)

    assert page.mode is FeedMode.FALLBACK
    assert page.entries == []
    assert page.has_more is True
    assert page.error


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


def test_reconcile_replaces_placeholder_in_place():
    session = FeedSession(SUBJECT)
    session.extend(
        [
            PlaceholderEntry(remote_id="x", original_url="/drive/file/x"),
            PlaceholderEntry(remote_id="y", original_url="/drive/file/y"),
        ]
    )
    record = make_record(SUBJECT, "y")

    assert session.reconcile(record) is True
    assert session.entries()[1] is record
    assert isinstance(session.entries()[0], PlaceholderEntry)
    assert session.reconcile(make_record(SUBJECT, "unknown")) is False


def test_placeholders_ingested_elsewhere_are_resolved_from_store(build, record_store):
    pipeline = build()
    session = pipeline.open_feed(SUBJECT)
    session.extend([PlaceholderEntry(remote_id="x", original_url="/drive/file/x")])

    # Another session ingested x in the meantime.
    record_store.insert(make_record(SUBJECT, "x"))
    pipeline.ledger_for(SUBJECT).add("x")

    assert pipeline.feed.resolve_pending(session) == 1
    assert entry_key(session.entries()[0]) == "x"
    assert session.pending_count() == 0


def test_entry_to_dict_marks_placeholders():
    placeholder = entry_to_dict(PlaceholderEntry(remote_id="x", original_url="/drive/file/x"))
    assert placeholder["placeholder"] is True
    assert placeholder["detection"] == DETECTION_PENDING

    record = entry_to_dict(make_record(SUBJECT, "y"))
    assert record["placeholder"] is False
    assert record["key"] == "y"
