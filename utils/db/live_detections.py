"""
Live Detection CRUD Operations.

Provenance of each record (remote ID, file name, remote creation time) is
kept in the JSON side-channel column `source_meta_json`; dedup queries read
it through json_extract.
"""

import json
import sqlite3
from typing import Any

_CAMERA_FILTER = " AND camera_tag = ?"


def insert_live_detection(conn: sqlite3.Connection, row: dict[str, Any]) -> None:
    conn.execute(
        """
        INSERT INTO live_detections (
            id,
            subject_id,
            camera_tag,
            original_url,
            visualization_url,
            label,
            confidence,
            severity,
            region_count,
            model_type,
            source_meta_json,
            created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
        """,
        (
            row.get("id"),
            row.get("subject_id"),
            row.get("camera_tag"),
            row.get("original_url"),
            row.get("visualization_url"),
            row.get("label"),
            row.get("confidence"),
            row.get("severity"),
            row.get("region_count", 0),
            row.get("model_type", ""),
            json.dumps(row.get("source_meta") or {}, sort_keys=True),
            row.get("created_at"),
        ),
    )
    conn.commit()


def fetch_live_detections_page(
    conn: sqlite3.Connection,
    subject_id: str,
    offset: int,
    limit: int,
    camera_tag: str | None = None,
) -> list[sqlite3.Row]:
    query = "SELECT * FROM live_detections WHERE subject_id = ?"
    params: list[Any] = [subject_id]
    if camera_tag:
        query += _CAMERA_FILTER
        params.append(camera_tag)
    query += " ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?"
    params.extend([limit, offset])
    return conn.execute(query, params).fetchall()


def count_live_detections(
    conn: sqlite3.Connection, subject_id: str, camera_tag: str | None = None
) -> int:
    query = "SELECT COUNT(*) FROM live_detections WHERE subject_id = ?"
    params: list[Any] = [subject_id]
    if camera_tag:
        query += _CAMERA_FILTER
        params.append(camera_tag)
    return conn.execute(query, params).fetchone()[0]


def fetch_processed_remote_ids(conn: sqlite3.Connection, subject_id: str) -> set[str]:
    rows = conn.execute(
        """
        SELECT DISTINCT json_extract(source_meta_json, '$.sourceRemoteID')
        FROM live_detections
        WHERE subject_id = ?
          AND json_extract(source_meta_json, '$.sourceRemoteID') IS NOT NULL;
        """,
        (subject_id,),
    ).fetchall()
    return {row[0] for row in rows if row[0]}


def fetch_by_source_remote_id(
    conn: sqlite3.Connection, subject_id: str, remote_id: str
) -> sqlite3.Row | None:
    return conn.execute(
        """
        SELECT * FROM live_detections
        WHERE subject_id = ?
          AND json_extract(source_meta_json, '$.sourceRemoteID') = ?
        ORDER BY created_at ASC, rowid ASC
        LIMIT 1;
        """,
        (subject_id, remote_id),
    ).fetchone()


def fetch_latest_per_camera(conn: sqlite3.Connection, subject_id: str) -> list[sqlite3.Row]:
    """Newest record for every camera tag of the subject."""
    return conn.execute(
        """
        SELECT * FROM (
            SELECT *,
                   ROW_NUMBER() OVER (
                       PARTITION BY camera_tag ORDER BY created_at DESC, rowid DESC
                   ) AS rn
            FROM live_detections
            WHERE subject_id = ?
        )
        WHERE rn = 1
        ORDER BY camera_tag;
        """,
        (subject_id,),
    ).fetchall()


def delete_live_detection(conn: sqlite3.Connection, subject_id: str, record_id: str) -> bool:
    cur = conn.execute(
        "DELETE FROM live_detections WHERE id = ? AND subject_id = ?",
        (record_id, subject_id),
    )
    conn.commit()
    return cur.rowcount > 0
