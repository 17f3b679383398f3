"""
Live Monitoring Blueprint.

Handles all live ingestion routes:
- GET /api/live/history - Next page of a history feed session (optional camera filter)
- GET /api/live/history/<session_id> - Current (reconciled) entries of a session
- DELETE /api/live/history/<session_id> - Close a feed session
- POST /api/live/process - Ingest the latest unseen archive items
- POST /api/live/fetch-latest - Ingest the newest items, ignoring older backlog
- GET /api/live/has-more - Whether unprocessed archive items exist
- GET /api/live/cameras/latest - Newest record per camera
- DELETE /api/live/records/<record_id> - Remove a record from the history
- POST /api/live/monitor/start - Start periodic monitoring
- POST /api/live/monitor/stop - Stop periodic monitoring
- GET /api/live/monitor - Monitoring status
- GET /drive/file/<item_id> - Same-origin byte proxy for archive images
- GET /blobs/<path> - Locally stored ingestion artifacts
"""

from flask import Blueprint, Response, abort, jsonify, request, send_from_directory

from core.exceptions import TransientFetchError
from logging_config import get_logger
from utils.settings import update_settings_yaml
from web.services.feed_service import (
    FeedSessionRegistry,
    serialize_page,
    serialize_session,
)

logger = get_logger(__name__)

live_bp = Blueprint("live", __name__)

MAX_PAGE_SIZE = 50
MAX_BATCH_SIZE = 50


def _pipeline():
    return live_bp.pipeline


def _subject_from_request() -> str | None:
    data = request.get_json(silent=True) or {}
    subject = request.args.get("subject") or data.get("subject")
    return subject.strip() if isinstance(subject, str) and subject.strip() else None


def _missing_subject():
    return jsonify({"status": "error", "message": "subject is required"}), 400


def _bounded_int(raw, default: int, upper: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return max(1, min(value, upper))


def _records_payload(records) -> list[dict]:
    return [r.to_dict() for r in records]


# =============================================================================
# History Feed
# =============================================================================


@live_bp.route("/api/live/history", methods=["GET"])
def history_page():
    """
    Serves the next feed page. Without a known session ID a fresh session
    is opened, starting again at the persisted history.
    """
    subject = _subject_from_request()
    if not subject:
        return _missing_subject()

    pipeline = _pipeline()
    sessions: FeedSessionRegistry = live_bp.sessions
    page_size = _bounded_int(request.args.get("page_size"), pipeline.page_size, MAX_PAGE_SIZE)

    session = sessions.get(request.args.get("session"), subject)
    if session is None:
        camera = (request.args.get("camera") or "").strip() or None
        session = sessions.add(pipeline.open_feed(subject, camera))

    try:
        page = pipeline.next_page(session, page_size)
    except Exception as e:
        logger.error(f"History page failed for '{subject}': {e}", exc_info=True)
        return jsonify({"status": "error", "message": str(e), "session": session.id}), 500

    return jsonify({"status": "success", **serialize_page(session, page)})


@live_bp.route("/api/live/history/<session_id>", methods=["GET"])
def history_session(session_id: str):
    session = live_bp.sessions.get(session_id)
    if session is None:
        return jsonify({"status": "error", "message": "Unknown session"}), 404
    return jsonify({"status": "success", **serialize_session(session)})


@live_bp.route("/api/live/history/<session_id>", methods=["DELETE"])
def close_history_session(session_id: str):
    if not live_bp.sessions.drop(session_id):
        return jsonify({"status": "error", "message": "Unknown session"}), 404
    return jsonify({"status": "success", "session": session_id})


# =============================================================================
# Ingestion
# =============================================================================


@live_bp.route("/api/live/process", methods=["POST"])
def process_latest():
    """Accepts: { subject, limit? }"""
    subject = _subject_from_request()
    if not subject:
        return _missing_subject()

    pipeline = _pipeline()
    data = request.get_json(silent=True) or {}
    limit = _bounded_int(data.get("limit"), pipeline.batch_size, MAX_BATCH_SIZE)
    try:
        records = pipeline.process_latest(subject, limit)
    except Exception as e:
        logger.error(f"Processing latest failed for '{subject}': {e}", exc_info=True)
        return jsonify({"status": "error", "message": str(e)}), 500

    return jsonify(
        {"status": "success", "processed": len(records), "records": _records_payload(records)}
    )


@live_bp.route("/api/live/fetch-latest", methods=["POST"])
def fetch_latest():
    """Accepts: { subject, limit? }"""
    subject = _subject_from_request()
    if not subject:
        return _missing_subject()

    pipeline = _pipeline()
    data = request.get_json(silent=True) or {}
    limit = _bounded_int(data.get("limit"), pipeline.batch_size, MAX_BATCH_SIZE)
    try:
        records = pipeline.process_strict_latest(subject, limit)
    except Exception as e:
        logger.error(f"Fetch latest failed for '{subject}': {e}", exc_info=True)
        return jsonify({"status": "error", "message": str(e)}), 500

    return jsonify(
        {"status": "success", "processed": len(records), "records": _records_payload(records)}
    )


@live_bp.route("/api/live/has-more", methods=["GET"])
def has_more():
    subject = _subject_from_request()
    if not subject:
        return _missing_subject()
    try:
        available = _pipeline().has_unprocessed(subject)
    except Exception as e:
        logger.error(f"Unprocessed probe failed for '{subject}': {e}")
        return jsonify({"status": "error", "message": str(e)}), 500
    return jsonify({"status": "success", "has_more": available})


@live_bp.route("/api/live/cameras/latest", methods=["GET"])
def cameras_latest():
    subject = _subject_from_request()
    if not subject:
        return _missing_subject()
    latest = _pipeline().latest_per_camera(subject)
    return jsonify(
        {
            "status": "success",
            "cameras": {tag: record.to_dict() for tag, record in latest.items()},
        }
    )


@live_bp.route("/api/live/records/<record_id>", methods=["DELETE"])
def delete_record(record_id: str):
    """Removes a record from the history; its archive item stays processed."""
    subject = _subject_from_request()
    if not subject:
        return _missing_subject()
    if not _pipeline().delete_record(subject, record_id):
        return jsonify({"status": "error", "message": "Record not found"}), 404
    return jsonify({"status": "success", "deleted": record_id})


# =============================================================================
# Monitoring
# =============================================================================


@live_bp.route("/api/live/monitor/start", methods=["POST"])
def monitor_start():
    """Accepts: { subject, interval_seconds? }"""
    subject = _subject_from_request()
    if not subject:
        return _missing_subject()

    pipeline = _pipeline()
    data = request.get_json(silent=True) or {}
    interval = data.get("interval_seconds", pipeline.monitor_interval)
    try:
        interval = float(interval)
    except (TypeError, ValueError):
        return jsonify({"status": "error", "message": "interval_seconds must be a number"}), 400
    if interval <= 0:
        return jsonify({"status": "error", "message": "interval_seconds must be positive"}), 400

    pipeline.start_monitoring(subject, interval)

    if live_bp.output_dir and interval != pipeline.monitor_interval:
        try:
            update_settings_yaml({"MONITOR_INTERVAL_SECONDS": interval}, live_bp.output_dir)
            pipeline.monitor_interval = interval
        except OSError as e:
            logger.warning(f"Could not persist monitor interval: {e}")

    return jsonify({"status": "success", "monitor": pipeline.scheduler.status()})


@live_bp.route("/api/live/monitor/stop", methods=["POST"])
def monitor_stop():
    pipeline = _pipeline()
    pipeline.stop_monitoring()
    return jsonify({"status": "success", "monitor": pipeline.scheduler.status()})


@live_bp.route("/api/live/monitor", methods=["GET"])
def monitor_status():
    return jsonify({"status": "success", "monitor": _pipeline().scheduler.status()})


# =============================================================================
# Media
# =============================================================================


@live_bp.route("/drive/file/<item_id>", methods=["GET"])
def drive_file(item_id: str):
    """Streams archive bytes from this origin so the UI can draw them on a canvas."""
    try:
        data = _pipeline().remote_store.fetch_bytes(item_id)
    except TransientFetchError as e:
        logger.warning(f"Proxy fetch failed for {item_id}: {e}")
        return jsonify({"status": "error", "message": str(e)}), 502

    response = Response(data, mimetype="image/jpeg")
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Cache-Control"] = "public, max-age=3600"
    return response


@live_bp.route("/blobs/<path:blob_path>", methods=["GET"])
def blob_file(blob_path: str):
    base_dir = getattr(_pipeline().blob_store, "base_dir", None)
    if base_dir is None:
        abort(404)
    return send_from_directory(base_dir, blob_path)


def register_live_api(app, pipeline, output_dir: str | None = None):
    """
    Register the live monitoring blueprint with the Flask app.

    Args:
        app: Flask application instance
        pipeline: LiveMonitoringPipeline serving the routes
        output_dir: Where runtime settings are persisted (None disables it)
    """
    live_bp.pipeline = pipeline
    live_bp.sessions = FeedSessionRegistry()
    live_bp.output_dir = output_dir

    app.register_blueprint(live_bp)

    logger.info("Live monitoring blueprint registered")
