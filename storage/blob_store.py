"""
Blob Store - local filesystem storage for ingestion artifacts.

Directory structure:
    <OUTPUT_DIR>/blobs/
    └── live-monitoring/
        └── <subject_id>/
            └── <record_id>/
                ├── original.jpg
                └── visualization.jpg

Blobs are served by the web layer under BLOB_PUBLIC_BASE_URL.
"""

import mimetypes
import os
import tempfile
from pathlib import Path, PurePosixPath
from urllib.parse import quote

from core.exceptions import PersistenceError
from logging_config import get_logger
from storage.interfaces import BlobStoreInterface

logger = get_logger(__name__)


def blob_path_hint(subject_id: str, record_id: str, name: str) -> str:
    return f"live-monitoring/{subject_id}/{record_id}/{name}"


class LocalBlobStore(BlobStoreInterface):
    def __init__(self, base_dir: str | Path, public_base_url: str = "/blobs"):
        self.base_dir = Path(base_dir)
        self.public_base_url = public_base_url.rstrip("/")

    @classmethod
    def from_config(cls, config: dict) -> "LocalBlobStore":
        return cls(Path(config["OUTPUT_DIR"]) / "blobs", config["BLOB_PUBLIC_BASE_URL"])

    def resolve(self, path_hint: str) -> Path:
        """Maps a relative hint to a path inside base_dir, rejecting escapes."""
        parts = PurePosixPath(path_hint.lstrip("/")).parts
        if not parts or any(p in ("..", "") for p in parts):
            raise PersistenceError(f"Invalid blob path: {path_hint!r}")
        return self.base_dir.joinpath(*parts)

    def put(self, data: bytes, content_type: str, path_hint: str) -> str:
        target = self.resolve(path_hint)
        if not target.suffix:
            ext = mimetypes.guess_extension(content_type or "") or ".bin"
            target = target.with_suffix(ext)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(f"Failed to store blob {path_hint}: {e}") from e

        relative = target.relative_to(self.base_dir).as_posix()
        logger.debug(f"Stored blob {relative} ({len(data)} bytes)")
        return f"{self.public_base_url}/{quote(relative)}"
