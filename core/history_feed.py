"""
History Feed - two-tier pagination over persisted and live data.

A feed session first pages through persisted IngestionRecords (PRIMARY).
Once the persisted history is exhausted it switches, once and for good, to
scanning the remote archive (FALLBACK): scanned items are shown right away
as placeholders and ingested in the background, and every placeholder is
replaced in place when its record has been written.

Within one session no remote ID or record ID is ever shown twice, across
both tiers.
"""

import threading
import uuid
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum

from archive.interfaces import RemoteStoreInterface
from archive.scanner import ArchiveScanner, MediaDescriptor, ScanCursor
from core.dedup_ledger import DedupLedger
from core.ingestion_pool import IngestionWorkerPool, RecordCallback
from logging_config import get_logger
from storage.interfaces import IngestionRecord, RecordStoreInterface

logger = get_logger(__name__)

DETECTION_PENDING = "PENDING"
DETECTION_READY = "READY"


class FeedMode(Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


@dataclass
class HistoryPageState:
    """
    Pagination state of one feed session.

    Attributes:
        mode: PRIMARY until the persisted history is exhausted, then FALLBACK.
        primary_offset: Offset of the next persisted page.
        fallback_cursor: Archive scan position used in FALLBACK.
        shown_ids: Every source remote ID (or record key) already rendered.
    """

    mode: FeedMode = FeedMode.PRIMARY
    primary_offset: int = 0
    fallback_cursor: ScanCursor = field(default_factory=ScanCursor)
    shown_ids: set[str] = field(default_factory=set)


@dataclass
class PlaceholderEntry:
    """Provisional feed row for a scanned item whose record does not exist yet."""

    remote_id: str
    original_url: str
    camera_tag: str = ""
    file_name: str = ""
    created_at: str = ""
    detection: str = DETECTION_PENDING

    @classmethod
    def from_descriptor(cls, descriptor: MediaDescriptor, original_url: str) -> "PlaceholderEntry":
        return cls(
            remote_id=descriptor.remote_id,
            original_url=original_url,
            camera_tag=descriptor.camera_tag,
            file_name=descriptor.file_name,
            created_at=descriptor.created_at,
        )


FeedEntry = IngestionRecord | PlaceholderEntry


def entry_key(entry: FeedEntry) -> str:
    """Identity used for de-duplication inside a session."""
    if isinstance(entry, PlaceholderEntry):
        return entry.remote_id
    return entry.source_remote_id or f"record:{entry.id}"


def entry_to_dict(entry: FeedEntry) -> dict:
    if isinstance(entry, PlaceholderEntry):
        return {
            "key": entry.remote_id,
            "placeholder": True,
            "detection": entry.detection,
            "source_remote_id": entry.remote_id,
            "original_url": entry.original_url,
            "visualization_url": None,
            "camera_tag": entry.camera_tag,
            "source_file_name": entry.file_name,
            "source_created_at": entry.created_at,
        }
    data = entry.to_dict()
    data.update({"key": entry_key(entry), "placeholder": False, "detection": DETECTION_READY})
    return data


@dataclass
class FeedPage:
    entries: list[FeedEntry]
    state: HistoryPageState
    has_more: bool
    error: str | None = None
    ingestion: Future | None = None

    @property
    def mode(self) -> FeedMode:
        return self.state.mode


class FeedSession:
    """
    A feed session: pagination state plus the rendered entry list.

    reconcile() is called from worker threads; all access to entries goes
    through the session lock.
    """

    def __init__(
        self, subject_id: str, session_id: str | None = None, camera_tag: str | None = None
    ):
        self.id = session_id or uuid.uuid4().hex
        self.subject_id = subject_id
        self.camera_tag = camera_tag
        self.state = HistoryPageState()
        self._entries: list[FeedEntry] = []
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def mode(self) -> FeedMode:
        return self.state.mode

    def entries(self) -> list[FeedEntry]:
        with self._lock:
            return list(self._entries)

    def extend(self, entries: list[FeedEntry]) -> None:
        with self._lock:
            self._entries.extend(entries)

    def pending_count(self) -> int:
        with self._lock:
            return sum(1 for e in self._entries if isinstance(e, PlaceholderEntry))

    def pending_ids(self) -> list[str]:
        with self._lock:
            return [e.remote_id for e in self._entries if isinstance(e, PlaceholderEntry)]

    def reconcile(self, record: IngestionRecord) -> bool:
        """Replaces the placeholder for record.source_remote_id in place."""
        with self._lock:
            for index, entry in enumerate(self._entries):
                if isinstance(entry, PlaceholderEntry) and entry.remote_id == record.source_remote_id:
                    self._entries[index] = record
                    return True
        return False


class HistoryFeed:
    def __init__(
        self,
        record_store: RecordStoreInterface,
        scanner: ArchiveScanner,
        pool: IngestionWorkerPool,
        remote_store: RemoteStoreInterface,
        ledger_provider: Callable[[str], DedupLedger],
    ):
        self._records = record_store
        self._scanner = scanner
        self._pool = pool
        self._remote = remote_store
        self._ledger_for = ledger_provider

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def page(
        self,
        subject_id: str,
        page_size: int,
        state: HistoryPageState,
        on_record: RecordCallback | None = None,
        camera_tag: str | None = None,
    ) -> FeedPage:
        """
        Serves the next page for state and advances it in place.

        Args:
            subject_id: Subject whose history is paged.
            page_size: Records (PRIMARY) or scanned items (FALLBACK) per page.
            state: Session state, mutated.
            on_record: Called for each record ingested from a fallback page.
            camera_tag: Restricts the persisted tier to one camera. Archive
                pages are not filtered.
        """
        page_size = max(1, int(page_size))
        if state.mode is FeedMode.PRIMARY:
            records, total = self._records.query_page(
                subject_id, state.primary_offset, page_size, camera_tag
            )
            first_page_empty = state.primary_offset == 0 and total == 0
            if state.primary_offset < total and not first_page_empty:
                return self._primary_page(state, records, total, page_size)

            logger.info(
                f"Feed for '{subject_id}' switching to archive scan "
                f"(offset={state.primary_offset}, total={total})"
            )
            state.mode = FeedMode.FALLBACK

        return self._fallback_page(subject_id, page_size, state, on_record)

    def _primary_page(
        self,
        state: HistoryPageState,
        records: list[IngestionRecord],
        total: int,
        page_size: int,
    ) -> FeedPage:
        entries: list[FeedEntry] = []
        for record in records:
            key = entry_key(record)
            if key in state.shown_ids:
                continue
            state.shown_ids.add(key)
            entries.append(record)

        state.primary_offset += page_size
        return FeedPage(entries=entries, state=state, has_more=state.primary_offset < total)

    def _fallback_page(
        self,
        subject_id: str,
        page_size: int,
        state: HistoryPageState,
        on_record: RecordCallback | None,
    ) -> FeedPage:
        # Only IDs shown in this session are excluded; already ingested
        # archive items may appear again here.
        result = self._scanner.next(state.fallback_cursor, state.shown_ids, page_size)
        state.fallback_cursor = result.cursor

        entries: list[FeedEntry] = []
        descriptors: list[MediaDescriptor] = []
        for descriptor in result.descriptors:
            if descriptor.remote_id in state.shown_ids:
                continue
            state.shown_ids.add(descriptor.remote_id)
            descriptors.append(descriptor)
            entries.append(
                PlaceholderEntry.from_descriptor(
                    descriptor, self._remote.build_download_url(descriptor.remote_id)
                )
            )

        future = None
        if descriptors:
            future = self._pool.submit_batch(
                subject_id, descriptors, self._ledger_for(subject_id), on_record
            )

        return FeedPage(
            entries=entries,
            state=state,
            has_more=not result.exhausted,
            error=result.error,
            ingestion=future,
        )

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def open_session(self, subject_id: str, camera_tag: str | None = None) -> FeedSession:
        return FeedSession(subject_id, camera_tag=camera_tag)

    def next_page(self, session: FeedSession, page_size: int) -> FeedPage:
        """Serves the next page of a session and appends it to its entry list."""
        with session.lock:
            page = self.page(
                session.subject_id,
                page_size,
                session.state,
                session.reconcile,
                session.camera_tag,
            )
            session.extend(page.entries)

        if page.ingestion is not None:
            page.ingestion.add_done_callback(lambda _f: self.resolve_pending(session))
        return page

    def resolve_pending(self, session: FeedSession) -> int:
        """
        Resolves placeholders whose item was ingested outside this session.

        The worker pool skips items already in the ledger, so their
        placeholders are filled from the persisted store instead.
        """
        ledger = self._ledger_for(session.subject_id)
        resolved = 0
        for remote_id in session.pending_ids():
            if remote_id not in ledger:
                continue
            record = self._records.find_by_source_remote_id(session.subject_id, remote_id)
            if record is not None and session.reconcile(record):
                resolved += 1
        if resolved:
            logger.debug(f"Feed session {session.id}: resolved {resolved} placeholders from store")
        return resolved
