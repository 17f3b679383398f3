"""
Live Monitoring Pipeline.

Composition root for one process: owns the per-subject dedup ledgers, the
archive scanner, the worker pool, the history feed and the monitor
scheduler. All pipeline state lives on the instance.
"""

import threading
from pathlib import Path

from archive.drive_client import DriveClient
from archive.interfaces import RemoteStoreInterface
from archive.scanner import ArchiveScanner, MediaDescriptor, ScanCursor
from core.dedup_ledger import DedupLedger
from core.history_feed import FeedPage, FeedSession, HistoryFeed
from core.ingestion_pool import IngestionWorkerPool
from core.monitor_scheduler import MonitorScheduler
from detectors.inference_client import InferenceClient
from detectors.interfaces.classification import ClassificationInterface
from detectors.services.classification_service import ClassificationService
from logging_config import get_logger
from storage.blob_store import LocalBlobStore
from storage.interfaces import BlobStoreInterface, IngestionRecord, RecordStoreInterface
from storage.record_store import SqliteRecordStore

logger = get_logger(__name__)


class LiveMonitoringPipeline:
    def __init__(
        self,
        remote_store: RemoteStoreInterface,
        classifier: ClassificationInterface,
        blob_store: BlobStoreInterface,
        record_store: RecordStoreInterface,
        config: dict | None = None,
    ):
        config = config or {}
        self.remote_store = remote_store
        self.classifier = classifier
        self.blob_store = blob_store
        self.record_store = record_store

        self.batch_size = int(config.get("INGEST_BATCH_SIZE", 5))
        self.page_size = int(config.get("HISTORY_PAGE_SIZE", 10))
        self.monitor_interval = float(config.get("MONITOR_INTERVAL_SECONDS", 30))

        self.scanner = ArchiveScanner(
            remote_store,
            page_size=int(config.get("DRIVE_PAGE_SIZE", 100)),
            camera_tags=tuple(config.get("CAMERA_TAGS", ("1", "2"))),
        )
        self.pool = IngestionWorkerPool(
            remote_store,
            classifier,
            blob_store,
            record_store,
            max_workers=int(config.get("INGEST_MAX_WORKERS", 5)),
            classify_timeout=config.get("INFERENCE_PREDICT_TIMEOUT"),
        )
        self.feed = HistoryFeed(record_store, self.scanner, self.pool, remote_store, self.ledger_for)
        self.scheduler = MonitorScheduler(self.process_latest)

        self._ledgers: dict[str, DedupLedger] = {}
        self._ledgers_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: dict) -> "LiveMonitoringPipeline":
        """Wires the concrete adapters described by the configuration."""
        remote_store = DriveClient.from_config(config)
        classifier = ClassificationService(
            InferenceClient.from_config(config),
            connect_timeout=config["INFERENCE_CONNECT_TIMEOUT"],
        )
        blob_store = LocalBlobStore.from_config(config)
        record_store = SqliteRecordStore(Path(config["OUTPUT_DIR"]) / "live_monitoring.db")
        return cls(remote_store, classifier, blob_store, record_store, config)

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def ledger_for(self, subject_id: str) -> DedupLedger:
        """Returns the subject's ledger, seeding it from the store on first use."""
        with self._ledgers_lock:
            ledger = self._ledgers.get(subject_id)
            if ledger is None:
                ledger = DedupLedger(subject_id)
                self._ledgers[subject_id] = ledger
        if not ledger.is_seeded:
            ledger.seed(self.record_store.query_processed_ids(subject_id))
        return ledger

    def reset_ledger(self, subject_id: str) -> None:
        self.ledger_for(subject_id).reset()

    # ------------------------------------------------------------------
    # Discovery & ingestion
    # ------------------------------------------------------------------

    def get_unprocessed(self, subject_id: str, limit: int | None = None) -> list[MediaDescriptor]:
        """Newest archive items not yet in the subject's ledger."""
        ledger = self.ledger_for(subject_id)
        result = self.scanner.next(ScanCursor(), ledger, limit or self.batch_size)
        if result.error:
            logger.warning(f"Archive scan for '{subject_id}' was partial: {result.error}")
        return result.descriptors

    def has_unprocessed(self, subject_id: str) -> bool:
        return bool(self.get_unprocessed(subject_id, limit=1))

    def process_latest(self, subject_id: str, limit: int | None = None) -> list[IngestionRecord]:
        """Ingests the newest unseen items (one monitoring cycle)."""
        descriptors = self.get_unprocessed(subject_id, limit)
        if not descriptors:
            logger.debug(f"No unprocessed archive items for '{subject_id}'")
            return []
        return self.pool.process_batch(subject_id, descriptors, self.ledger_for(subject_id))

    def process_strict_latest(
        self, subject_id: str, limit: int | None = None
    ) -> list[IngestionRecord]:
        """
        Looks only at the newest N archive items and ingests those not yet
        processed, without digging into older backlog.
        """
        ledger = self.ledger_for(subject_id)
        result = self.scanner.next(ScanCursor(), frozenset(), limit or self.batch_size)
        fresh = [d for d in result.descriptors if d.remote_id not in ledger]
        logger.info(
            f"Strict latest for '{subject_id}': {len(fresh)}/{len(result.descriptors)} new"
        )
        if not fresh:
            return []
        return self.pool.process_batch(subject_id, fresh, ledger)

    def latest_per_camera(self, subject_id: str) -> dict[str, IngestionRecord]:
        return self.record_store.latest_per_camera(subject_id)

    def delete_record(self, subject_id: str, record_id: str) -> bool:
        """
        Removes a record from the history. The remote ID stays in the ledger,
        so the archive item is not ingested again.
        """
        self.ledger_for(subject_id)
        return self.record_store.delete(subject_id, record_id)

    # ------------------------------------------------------------------
    # Feed
    # ------------------------------------------------------------------

    def open_feed(self, subject_id: str, camera_tag: str | None = None) -> FeedSession:
        return self.feed.open_session(subject_id, camera_tag)

    def next_page(self, session: FeedSession, page_size: int | None = None) -> FeedPage:
        return self.feed.next_page(session, page_size or self.page_size)

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    def start_monitoring(self, subject_id: str, interval_seconds: float | None = None) -> None:
        self.ledger_for(subject_id)
        self.scheduler.start(subject_id, interval_seconds or self.monitor_interval)

    def stop_monitoring(self) -> None:
        self.scheduler.stop()

    def remote_status(self) -> dict:
        return self.remote_store.test_connection()

    def shutdown(self) -> None:
        self.scheduler.stop()
        self.pool.shutdown(wait=False)
