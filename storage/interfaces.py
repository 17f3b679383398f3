"""
Storage Interfaces - Blob and Record Persistence.

Defines the contracts for storing image artifacts and the durable
IngestionRecord produced for every classified camera image.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class IngestionRecord:
    """
    Durable result of ingesting one remote camera image.

    Records are immutable once written; a correction is a new record.
    source_remote_id links back to the remote item and is the key used for
    deduplication.
    """

    subject_id: str
    camera_tag: str
    original_url: str
    visualization_url: str
    label: str
    confidence: float
    severity: str
    region_count: int
    source_remote_id: str
    source_file_name: str = ""
    source_created_at: str = ""
    model_type: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    ingested_at: str = field(default_factory=utc_now_iso)

    @property
    def source_meta(self) -> dict:
        return {
            "sourceRemoteID": self.source_remote_id,
            "sourceFileName": self.source_file_name,
            "sourceCreatedAt": self.source_created_at,
        }

    def to_dict(self) -> dict:
        return asdict(self)


class BlobStoreInterface(ABC):
    """Stores image bytes and returns a URL the UI can load."""

    @abstractmethod
    def put(self, data: bytes, content_type: str, path_hint: str) -> str:
        """
        Stores a blob.

        Args:
            data: Raw bytes.
            content_type: MIME type (e.g. "image/jpeg").
            path_hint: Relative path suggestion, e.g. "live-monitoring/<subject>/<id>/original.jpg".

        Returns:
            Public URL of the stored blob.

        Raises:
            PersistenceError: If the blob could not be written.
        """
        pass


class RecordStoreInterface(ABC):
    """
    Interface for the persisted ingestion history.

    Implementations should:
    - Order queries newest first
    - Report exact totals for pagination
    - Raise PersistenceError on write failures
    """

    @abstractmethod
    def insert(self, record: IngestionRecord) -> None:
        pass

    @abstractmethod
    def query_page(
        self, subject_id: str, offset: int, limit: int, camera_tag: str | None = None
    ) -> tuple[list[IngestionRecord], int]:
        """Returns (records, total_count) for the subject, newest first."""
        pass

    @abstractmethod
    def query_processed_ids(self, subject_id: str) -> set[str]:
        """Returns the distinct source remote IDs already ingested for a subject."""
        pass

    @abstractmethod
    def find_by_source_remote_id(
        self, subject_id: str, remote_id: str
    ) -> IngestionRecord | None:
        pass

    @abstractmethod
    def latest_per_camera(self, subject_id: str) -> dict[str, IngestionRecord]:
        pass

    @abstractmethod
    def delete(self, subject_id: str, record_id: str) -> bool:
        pass
