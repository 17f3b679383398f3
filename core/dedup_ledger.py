"""
Dedup Ledger.

Set of remote IDs that have been durably ingested for one subject. Workers
add an ID only after the record write has committed, so membership is the
single source of truth for "do not reprocess".
"""

import threading
from collections.abc import Iterable

from logging_config import get_logger

logger = get_logger(__name__)


class DedupLedger:
    def __init__(self, subject_id: str = ""):
        self.subject_id = subject_id
        self._ids: set[str] = set()
        self._lock = threading.Lock()
        self._seeded = False

    def __contains__(self, remote_id: object) -> bool:
        with self._lock:
            return remote_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)

    @property
    def is_seeded(self) -> bool:
        return self._seeded

    def contains(self, remote_id: str) -> bool:
        return remote_id in self

    def add(self, remote_id: str) -> None:
        """Adds an ID. Adding an ID that is already present is a no-op."""
        if not remote_id:
            return
        with self._lock:
            self._ids.add(remote_id)

    def seed(self, remote_ids: Iterable[str]) -> None:
        """Unions IDs from the persisted store into the ledger."""
        ids = {rid for rid in remote_ids if rid}
        with self._lock:
            before = len(self._ids)
            self._ids |= ids
            self._seeded = True
            added = len(self._ids) - before
        logger.debug(f"Ledger for '{self.subject_id}' seeded with {added} new IDs")

    def snapshot(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._ids)

    def reset(self) -> None:
        """Manual reset: forget every ID and require a new seed."""
        with self._lock:
            self._ids.clear()
            self._seeded = False
        logger.info(f"Ledger for '{self.subject_id}' reset")
