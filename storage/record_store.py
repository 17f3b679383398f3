"""
Record Store - SQLite-backed ingestion history.

Implements RecordStoreInterface on top of utils.db. Every operation opens
its own short-lived connection, so worker threads never share one.
"""

import json
import sqlite3
from pathlib import Path

from core.exceptions import PersistenceError
from logging_config import get_logger
from storage.interfaces import IngestionRecord, RecordStoreInterface
from utils.db import (
    closing_connection,
    count_live_detections,
    delete_live_detection,
    fetch_by_source_remote_id,
    fetch_latest_per_camera,
    fetch_live_detections_page,
    fetch_processed_remote_ids,
    insert_live_detection,
)

logger = get_logger(__name__)


def _row_to_record(row: sqlite3.Row) -> IngestionRecord:
    try:
        meta = json.loads(row["source_meta_json"] or "{}")
    except (TypeError, ValueError):
        meta = {}
    return IngestionRecord(
        id=row["id"],
        subject_id=row["subject_id"],
        camera_tag=row["camera_tag"] or "",
        original_url=row["original_url"] or "",
        visualization_url=row["visualization_url"] or "",
        label=row["label"] or "",
        confidence=row["confidence"] if row["confidence"] is not None else 0.0,
        severity=row["severity"] or "",
        region_count=row["region_count"] or 0,
        model_type=row["model_type"] or "",
        source_remote_id=meta.get("sourceRemoteID") or "",
        source_file_name=meta.get("sourceFileName") or "",
        source_created_at=meta.get("sourceCreatedAt") or "",
        ingested_at=row["created_at"],
    )


class SqliteRecordStore(RecordStoreInterface):
    """
    Persisted history of live detections.

    Uniqueness of source_remote_id is not enforced; concurrent sessions may
    occasionally ingest the same remote item twice.
    """

    def __init__(self, db_path: str | Path | None = None):
        """
        Args:
            db_path: SQLite file. Uses OUTPUT_DIR/live_monitoring.db if not provided.
        """
        self._db_path = db_path

    def insert(self, record: IngestionRecord) -> None:
        row = record.to_dict()
        row["source_meta"] = record.source_meta
        row["created_at"] = record.ingested_at
        try:
            with closing_connection(self._db_path) as conn:
                insert_live_detection(conn, row)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to insert record {record.id}: {e}") from e

    def query_page(
        self, subject_id: str, offset: int, limit: int, camera_tag: str | None = None
    ) -> tuple[list[IngestionRecord], int]:
        try:
            with closing_connection(self._db_path) as conn:
                total = count_live_detections(conn, subject_id, camera_tag)
                rows = fetch_live_detections_page(conn, subject_id, offset, limit, camera_tag)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to query history of '{subject_id}': {e}") from e
        return [_row_to_record(r) for r in rows], total

    def query_processed_ids(self, subject_id: str) -> set[str]:
        try:
            with closing_connection(self._db_path) as conn:
                return fetch_processed_remote_ids(conn, subject_id)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to load processed IDs of '{subject_id}': {e}") from e

    def find_by_source_remote_id(
        self, subject_id: str, remote_id: str
    ) -> IngestionRecord | None:
        try:
            with closing_connection(self._db_path) as conn:
                row = fetch_by_source_remote_id(conn, subject_id, remote_id)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to look up remote item {remote_id}: {e}") from e
        return _row_to_record(row) if row else None

    def latest_per_camera(self, subject_id: str) -> dict[str, IngestionRecord]:
        try:
            with closing_connection(self._db_path) as conn:
                rows = fetch_latest_per_camera(conn, subject_id)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to load latest records of '{subject_id}': {e}") from e
        return {r["camera_tag"]: _row_to_record(r) for r in rows}

    def delete(self, subject_id: str, record_id: str) -> bool:
        try:
            with closing_connection(self._db_path) as conn:
                deleted = delete_live_detection(conn, subject_id, record_id)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to delete record {record_id}: {e}") from e
        if deleted:
            logger.info(f"Deleted live detection {record_id} for '{subject_id}'")
        return deleted
