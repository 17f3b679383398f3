"""
Ingestion Worker Pool.

Runs fetch -> classify -> upload -> persist -> ledger for a batch of
MediaDescriptors with bounded parallelism. Every item is isolated: a failure
is logged, the item is left out of the results and out of the ledger, so it
is picked up again on the next cycle.
"""

import logging
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import replace

from archive.interfaces import RemoteStoreInterface
from archive.scanner import MediaDescriptor
from core.dedup_ledger import DedupLedger
from core.exceptions import (
    InferenceError,
    InferenceTimeout,
    PersistenceError,
    TransientFetchError,
)
from detectors.interfaces.classification import (
    ClassificationInterface,
    ClassificationResult,
)
from storage.blob_store import blob_path_hint
from storage.interfaces import (
    BlobStoreInterface,
    IngestionRecord,
    RecordStoreInterface,
)

logger = logging.getLogger(__name__)

RecordCallback = Callable[[IngestionRecord], None]

JPEG_CONTENT_TYPE = "image/jpeg"


class IngestionWorkerPool:
    def __init__(
        self,
        remote_store: RemoteStoreInterface,
        classifier: ClassificationInterface,
        blob_store: BlobStoreInterface,
        record_store: RecordStoreInterface,
        max_workers: int = 5,
        classify_timeout: float | None = None,
    ):
        self._remote = remote_store
        self._classifier = classifier
        self._blobs = blob_store
        self._records = record_store
        self.max_workers = max(1, int(max_workers))
        self.classify_timeout = classify_timeout

        # Background executor for submit_batch (feed fallback pages).
        self._background: ThreadPoolExecutor | None = None
        self._background_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Batch API
    # ------------------------------------------------------------------

    def process_batch(
        self,
        subject_id: str,
        descriptors: Iterable[MediaDescriptor],
        ledger: DedupLedger,
        on_record: RecordCallback | None = None,
    ) -> list[IngestionRecord]:
        """
        Ingests a batch and blocks until every item has settled.

        Args:
            subject_id: Subject the records belong to.
            descriptors: Items to ingest. Items already in the ledger are skipped.
            ledger: Ledger updated after each successful record write.
            on_record: Called with every persisted record, from worker threads.

        Returns:
            Successfully persisted records, in completion order.
        """
        pending: list[MediaDescriptor] = []
        seen: set[str] = set()
        for descriptor in descriptors:
            if descriptor.remote_id in seen or descriptor.remote_id in ledger:
                continue
            seen.add(descriptor.remote_id)
            pending.append(descriptor)

        if not pending:
            return []

        records: list[IngestionRecord] = []
        workers = min(self.max_workers, len(pending))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="Ingest") as executor:
            futures = {
                executor.submit(self._ingest_one, subject_id, d, ledger, on_record): d
                for d in pending
            }
            for future in as_completed(futures):
                record = future.result()
                if record is not None:
                    records.append(record)

        logger.info(
            f"Batch for '{subject_id}': {len(records)}/{len(pending)} items ingested"
        )
        return records

    def submit_batch(
        self,
        subject_id: str,
        descriptors: Iterable[MediaDescriptor],
        ledger: DedupLedger,
        on_record: RecordCallback | None = None,
    ) -> Future:
        """Runs process_batch in the background and returns its Future."""
        with self._background_lock:
            if self._background is None:
                self._background = ThreadPoolExecutor(
                    max_workers=2, thread_name_prefix="IngestBatch"
                )
            executor = self._background
        return executor.submit(
            self.process_batch, subject_id, list(descriptors), ledger, on_record
        )

    def shutdown(self, wait: bool = True) -> None:
        with self._background_lock:
            executor, self._background = self._background, None
        if executor is not None:
            executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Per-item pipeline
    # ------------------------------------------------------------------

    def _ingest_one(
        self,
        subject_id: str,
        descriptor: MediaDescriptor,
        ledger: DedupLedger,
        on_record: RecordCallback | None,
    ) -> IngestionRecord | None:
        remote_id = descriptor.remote_id
        try:
            image_bytes = self._remote.fetch_bytes(remote_id, descriptor.thumbnail_url)
            result = self._classify(image_bytes, descriptor)
            record = self._persist(subject_id, descriptor, image_bytes, result)
        except TransientFetchError as e:
            logger.warning(f"Fetch failed for {descriptor.file_name} ({remote_id}): {e}")
            return None
        except PersistenceError as e:
            logger.warning(f"Persist failed for {descriptor.file_name} ({remote_id}): {e}")
            return None
        except Exception as e:
            logger.error(
                f"Unexpected error ingesting {descriptor.file_name} ({remote_id}): {e}",
                exc_info=True,
            )
            return None

        # Ledger write strictly after the record is committed.
        ledger.add(remote_id)

        if on_record is not None:
            try:
                on_record(record)
            except Exception as e:
                logger.error(f"on_record callback failed for {remote_id}: {e}", exc_info=True)
        return record

    def _classify(self, image_bytes: bytes, descriptor: MediaDescriptor) -> ClassificationResult:
        try:
            return self._classifier.classify(image_bytes, timeout=self.classify_timeout)
        except InferenceTimeout:
            logger.warning(f"Inference timed out for {descriptor.file_name}, using local fallback")
        except InferenceError as e:
            logger.warning(f"Inference failed for {descriptor.file_name}: {e}, using local fallback")
        return self._classifier.fallback_classify(image_bytes)

    def _persist(
        self,
        subject_id: str,
        descriptor: MediaDescriptor,
        image_bytes: bytes,
        result: ClassificationResult,
    ) -> IngestionRecord:
        draft = IngestionRecord(
            subject_id=subject_id,
            camera_tag=descriptor.camera_tag,
            original_url="",
            visualization_url="",
            label=result.label,
            confidence=result.confidence,
            severity=result.severity,
            region_count=result.region_count,
            source_remote_id=descriptor.remote_id,
            source_file_name=descriptor.file_name,
            source_created_at=descriptor.created_at,
            model_type=result.model_id,
        )

        original_url = self._blobs.put(
            image_bytes,
            JPEG_CONTENT_TYPE,
            blob_path_hint(subject_id, draft.id, "original.jpg"),
        )
        visualization = result.visualization or image_bytes
        visualization_url = self._blobs.put(
            visualization,
            JPEG_CONTENT_TYPE,
            blob_path_hint(subject_id, draft.id, "visualization.jpg"),
        )

        record = replace(draft, original_url=original_url, visualization_url=visualization_url)
        self._records.insert(record)
        logger.debug(
            f"Ingested {descriptor.file_name} as {record.id}: {record.label} "
            f"({record.confidence:.0f}%)"
        )
        return record
