"""
Database Connection and Schema Management.

This module handles SQLite connection creation and schema initialization.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path

from config import get_config

DB_FILENAME = "live_monitoring.db"

# Module-level cache: initialize schema once per database path.
# Tests point at temp paths, so schema init must be keyed by db path (not process-global).
_schema_initialized_paths: set[Path] = set()


def _get_db_path() -> Path:
    cfg = get_config()
    output_dir = Path(cfg["OUTPUT_DIR"])
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir / DB_FILENAME


def get_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    db_path = Path(db_path) if db_path else _get_db_path()
    conn = sqlite3.connect(db_path, check_same_thread=False, timeout=10.0)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    if db_path not in _schema_initialized_paths:
        _init_schema(conn)
        _schema_initialized_paths.add(db_path)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def closing_connection(db_path: str | Path | None = None):
    """Context manager that creates a DB connection and guarantees it is closed.

    IMPORTANT: `with sqlite3.Connection as conn:` only manages transactions
    (commit/rollback); it does NOT call conn.close(). This context manager
    ensures the file descriptor is released when the block exits.

    Usage:
        with closing_connection() as conn:
            conn.execute("SELECT ...")
    """
    conn = get_connection(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _init_schema(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS live_detections (
            id TEXT PRIMARY KEY,
            subject_id TEXT NOT NULL,
            camera_tag TEXT,
            original_url TEXT,
            visualization_url TEXT,
            label TEXT,
            confidence REAL,
            severity TEXT,
            region_count INTEGER DEFAULT 0,
            model_type TEXT,
            source_meta_json TEXT,
            created_at TEXT NOT NULL
        );
        """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_live_detections_subject_created "
        "ON live_detections(subject_id, created_at DESC);"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_live_detections_source_remote_id "
        "ON live_detections(subject_id, json_extract(source_meta_json, '$.sourceRemoteID'));"
    )

    conn.commit()

