"""
Shared fakes and fixtures for the live ingestion tests.
"""

import threading

import cv2
import numpy as np
import pytest

from archive.interfaces import ListingPage, RemoteFolder, RemoteItem, RemoteStoreInterface
from core.exceptions import (
    InferenceError,
    InferenceTimeout,
    ListingError,
    PersistenceError,
    TransientFetchError,
)
from detectors.interfaces.classification import (
    ClassificationInterface,
    ClassificationResult,
)
from storage.interfaces import BlobStoreInterface, IngestionRecord
from storage.record_store import SqliteRecordStore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_items(prefix: str, count: int, tag: str = "1") -> list[RemoteItem]:
    """Camera-style items, newest first: <prefix>-0 is the newest."""
    return [
        RemoteItem(
            id=f"{prefix}-{i}",
            name=f"20240612-08{59 - i:02d}00_{tag}.jpg",
            created_at=f"2024-06-12T08:{59 - i:02d}:00Z",
        )
        for i in range(count)
    ]


def make_record(subject_id: str, remote_id: str, **overrides) -> IngestionRecord:
    data = {
        "subject_id": subject_id,
        "camera_tag": "1",
        "original_url": f"/blobs/{remote_id}/original.jpg",
        "visualization_url": f"/blobs/{remote_id}/visualization.jpg",
        "label": "Healthy",
        "confidence": 95.0,
        "severity": "None",
        "region_count": 0,
        "source_remote_id": remote_id,
        "source_file_name": f"{remote_id}_1.jpg",
    }
    data.update(overrides)
    return IngestionRecord(**data)


def encode_test_jpeg(bgr=(40, 160, 40), size=(60, 80)) -> bytes:
    image = np.full((size[0], size[1], 3), bgr, dtype=np.uint8)
    ok, buf = cv2.imencode(".jpg", image)
    assert ok
    return buf.tobytes()


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeRemoteStore(RemoteStoreInterface):
    """
    In-memory archive. `folders` maps folder name -> list of pages, in
    newest-first order. Page tokens are the stringified page index.
    """

    def __init__(self, folders: dict[str, list[list[RemoteItem]]], payload: bytes = b""):
        self.pages = folders
        self.payload = payload or encode_test_jpeg()
        self.fail_pages: set[tuple[str, str | None]] = set()
        self.fail_fetch: set[str] = set()
        self.folder_calls = 0
        self.list_calls: list[tuple[str, str | None]] = []
        self.fetch_calls: list[str] = []
        self.reachable = True
        self._lock = threading.Lock()

    def list_folders(self):
        self.folder_calls += 1
        return [RemoteFolder(id=name, name=name) for name in self.pages]

    def list_page(self, folder_id, page_token=None, page_size=100):
        self.list_calls.append((folder_id, page_token))
        if (folder_id, page_token) in self.fail_pages:
            raise ListingError(f"listing {folder_id}/{page_token} failed")
        pages = self.pages[folder_id]
        index = int(page_token) if page_token else 0
        if not pages:
            return ListingPage(items=[], next_page_token=None)
        next_token = str(index + 1) if index + 1 < len(pages) else None
        return ListingPage(items=list(pages[index]), next_page_token=next_token)

    def fetch_bytes(self, item_id, thumbnail_url=None):
        with self._lock:
            self.fetch_calls.append(item_id)
        if item_id in self.fail_fetch:
            raise TransientFetchError(f"{item_id} unreachable")
        return self.payload

    def build_download_url(self, item_id):
        return f"/drive/file/{item_id}"

    def test_connection(self):
        return {"success": self.reachable}


class FakeClassifier(ClassificationInterface):
    def __init__(self, mode: str = "ok"):
        self.mode = mode
        self.calls = 0
        self.fallback_calls = 0
        self._lock = threading.Lock()

    def classify(self, image_bytes, timeout=None):
        with self._lock:
            self.calls += 1
        if self.mode == "timeout":
            raise InferenceTimeout("too slow")
        if self.mode == "error":
            raise InferenceError("service down")
        if self.mode == "crash":
            raise RuntimeError("unexpected")
        return ClassificationResult(
            label="Bhuri (Powdery Mildew)",
            confidence=87.0,
            severity="Medium",
            region_count=1,
            visualization=b"remote-visualization",
            model_id="fake-model",
        )

    def fallback_classify(self, image_bytes):
        with self._lock:
            self.fallback_calls += 1
        return ClassificationResult(
            label="Healthy",
            confidence=60.0,
            severity="None",
            region_count=0,
            visualization=b"local-visualization",
            model_id="color-heuristic",
            fallback=True,
        )

    def get_model_id(self):
        return "fake-model"

    def is_ready(self):
        return True


class MemoryBlobStore(BlobStoreInterface):
    def __init__(self):
        self.blobs: dict[str, bytes] = {}
        self.fail_hints: set[str] = set()
        self._lock = threading.Lock()

    def put(self, data, content_type, path_hint):
        if any(marker in path_hint for marker in self.fail_hints):
            raise PersistenceError(f"cannot store {path_hint}")
        with self._lock:
            self.blobs[path_hint] = data
        return f"mem://{path_hint}"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def jpeg_bytes():
    return encode_test_jpeg()


@pytest.fixture
def record_store(tmp_path):
    return SqliteRecordStore(tmp_path / "live_monitoring.db")


@pytest.fixture
def blob_store():
    return MemoryBlobStore()


@pytest.fixture
def classifier():
    return FakeClassifier()
