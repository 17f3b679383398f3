"""Tests for DedupLedger semantics and thread safety."""

import threading

from core.dedup_ledger import DedupLedger


def test_add_is_idempotent():
    once = DedupLedger("s")
    once.add("x")
    twice = DedupLedger("s")
    twice.add("x")
    twice.add("x")

    assert once.snapshot() == twice.snapshot() == frozenset({"x"})
    assert len(twice) == 1


def test_seed_is_a_union_and_marks_seeded():
    ledger = DedupLedger("s")
    assert not ledger.is_seeded

    ledger.add("a")
    ledger.seed(["b", "c", ""])
    ledger.seed(["c"])

    assert ledger.is_seeded
    assert ledger.snapshot() == frozenset({"a", "b", "c"})
    assert "b" in ledger
    assert ledger.contains("a")
    assert not ledger.contains("z")


def test_empty_ids_are_ignored():
    ledger = DedupLedger()
    ledger.add("")
    assert len(ledger) == 0


def test_reset_clears_ids_and_seed_flag():
    ledger = DedupLedger("s")
    ledger.seed(["a"])
    ledger.reset()
    assert len(ledger) == 0
    assert not ledger.is_seeded


def test_concurrent_adds_do_not_lose_ids():
    ledger = DedupLedger("s")

    def _worker(offset):
        for i in range(200):
            ledger.add(f"id-{offset + i}")

    threads = [threading.Thread(target=_worker, args=(n * 100,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    # Ranges overlap: ids 0..899
    assert len(ledger) == 900
