"""
Live Monitoring Database Module.

This package provides SQLite access for the ingestion history.
Functions are re-exported here so callers can import from utils.db directly.

Usage:
    from utils.db import closing_connection, insert_live_detection
    # or
    from utils.db.live_detections import insert_live_detection
"""

# Connection and Schema
from utils.db.connection import (
    DB_FILENAME,
    closing_connection,
    get_connection,
)

# Live Detection Operations
from utils.db.live_detections import (
    count_live_detections,
    delete_live_detection,
    fetch_by_source_remote_id,
    fetch_latest_per_camera,
    fetch_live_detections_page,
    fetch_processed_remote_ids,
    insert_live_detection,
)

__all__ = [
    # Connection
    "DB_FILENAME",
    "closing_connection",
    "get_connection",
    # Live Detections
    "insert_live_detection",
    "fetch_live_detections_page",
    "count_live_detections",
    "fetch_processed_remote_ids",
    "fetch_by_source_remote_id",
    "fetch_latest_per_camera",
    "delete_live_detection",
]
