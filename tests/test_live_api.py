"""Tests for the live monitoring HTTP API."""

from unittest.mock import MagicMock

import pytest
import yaml

from archive.drive_client import DriveClient
from conftest import FakeClassifier, FakeRemoteStore, make_items, make_record
from core.live_monitoring import LiveMonitoringPipeline
from storage.blob_store import LocalBlobStore
from web.web_interface import create_web_interface

SUBJECT = "vineyard-7"


@pytest.fixture
def pipeline(tmp_path, record_store):
    remote = FakeRemoteStore({"2024-06-12": [make_items("a", 4)]})
    pipeline = LiveMonitoringPipeline(
        remote,
        FakeClassifier(),
        LocalBlobStore(tmp_path / "blobs"),
        record_store,
        {"INGEST_BATCH_SIZE": 2, "HISTORY_PAGE_SIZE": 10},
    )
    yield pipeline
    pipeline.shutdown()


@pytest.fixture
def client(pipeline, tmp_path):
    app = create_web_interface(pipeline, {"OUTPUT_DIR": str(tmp_path)})["server"]
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


def test_subject_is_required(client):
    response = client.get("/api/live/history")
    assert response.status_code == 400
    assert response.get_json()["status"] == "error"


def test_history_opens_session_and_pages(client, record_store):
    for i in range(3):
        record_store.insert(make_record(SUBJECT, f"r-{i}"))

    first = client.get(f"/api/live/history?subject={SUBJECT}&page_size=2").get_json()
    assert first["mode"] == "primary"
    assert len(first["entries"]) == 2
    assert first["has_more"] is True

    session_id = first["session"]
    second = client.get(
        f"/api/live/history?subject={SUBJECT}&session={session_id}&page_size=2"
    ).get_json()
    assert second["session"] == session_id
    assert [e["key"] for e in second["entries"]] == ["r-0"]
    assert second["has_more"] is False

    snapshot = client.get(f"/api/live/history/{session_id}").get_json()
    assert [e["key"] for e in snapshot["entries"]] == ["r-2", "r-1", "r-0"]


def test_history_fallback_returns_placeholders(client):
    data = client.get(f"/api/live/history?subject={SUBJECT}").get_json()
    assert data["mode"] == "fallback"
    assert len(data["entries"]) == 4
    assert all(e["placeholder"] for e in data["entries"])
    assert {e["detection"] for e in data["entries"]} == {"PENDING"}


def test_unknown_session_snapshot_is_404(client):
    assert client.get("/api/live/history/nope").status_code == 404


def test_process_and_fetch_latest(client):
    processed = client.post("/api/live/process", json={"subject": SUBJECT}).get_json()
    assert processed["processed"] == 2
    assert processed["records"][0]["original_url"].startswith("/blobs/live-monitoring/")

    latest = client.post("/api/live/fetch-latest", json={"subject": SUBJECT, "limit": 4})
    assert latest.get_json()["processed"] == 2

    has_more = client.get(f"/api/live/has-more?subject={SUBJECT}").get_json()
    assert has_more["has_more"] is False

    cameras = client.get(f"/api/live/cameras/latest?subject={SUBJECT}").get_json()
    assert list(cameras["cameras"]) == ["1"]


def test_blob_is_served(client):
    record = client.post("/api/live/process", json={"subject": SUBJECT}).get_json()["records"][0]
    response = client.get(record["visualization_url"])
    assert response.status_code == 200
    assert response.data == b"remote-visualization"


def test_drive_proxy(client, pipeline):
    response = client.get("/drive/file/a-0")
    assert response.status_code == 200
    assert response.data == pipeline.remote_store.payload
    assert response.headers["Access-Control-Allow-Origin"] == "*"

    pipeline.remote_store.fail_fetch.add("a-1")
    assert client.get("/drive/file/a-1").status_code == 502


def test_monitor_start_status_stop(client, tmp_path):
    bad = client.post("/api/live/monitor/start", json={"subject": SUBJECT, "interval_seconds": 0})
    assert bad.status_code == 400

    started = client.post(
        "/api/live/monitor/start", json={"subject": SUBJECT, "interval_seconds": 60}
    ).get_json()
    assert started["monitor"]["running"] is True
    assert started["monitor"]["interval_seconds"] == 60

    settings = yaml.safe_load((tmp_path / "settings.yaml").read_text())
    assert settings["MONITOR_INTERVAL_SECONDS"] == 60

    status = client.get("/api/live/monitor").get_json()
    assert status["monitor"]["subject"] == SUBJECT

    stopped = client.post("/api/live/monitor/stop").get_json()
    assert stopped["monitor"]["running"] is False


def test_health(client):
    data = client.get("/api/live/health").get_json()
    assert data["inference_ready"] is True
    assert data["monitoring"] is False
    assert data["archive"] == {"success": True}


def test_drive_proxy_ignores_caller_supplied_urls(tmp_path, record_store):
    session = MagicMock()
    not_found = MagicMock(ok=False, status_code=404, content=b"")
    metadata = MagicMock(ok=True, status_code=200, content=b"SECRET-METADATA")
    session.get.side_effect = [not_found, metadata]
    drive = DriveClient(
        api_key="KEY",
        root_folder_id="ROOT",
        api_base="https://drive.test/v3",
        proxy_base_url="http://localhost:8050",
        session=session,
    )
    pipeline = LiveMonitoringPipeline(
        drive, FakeClassifier(), LocalBlobStore(tmp_path / "blobs"), record_store
    )
    app = create_web_interface(pipeline)["server"]

    try:
        response = app.test_client().get(
            "/drive/file/bogus?thumb=http://169.254.169.254/latest/meta-data/"
        )
    finally:
        pipeline.shutdown()

    assert response.status_code == 502
    assert b"SECRET-METADATA" not in response.data
    fetched = [c.args[0] for c in session.get.call_args_list]
    assert fetched == ["https://drive.test/v3/files/bogus?alt=media&supportsAllDrives=true&key=KEY"]


def test_history_camera_filter(client, record_store):
    record_store.insert(make_record(SUBJECT, "c1", camera_tag="1"))
    record_store.insert(make_record(SUBJECT, "c2", camera_tag="2"))

    data = client.get(f"/api/live/history?subject={SUBJECT}&camera=2").get_json()

    assert data["mode"] == "primary"
    assert [e["key"] for e in data["entries"]] == ["c2"]


def test_close_history_session(client):
    session_id = client.get(f"/api/live/history?subject={SUBJECT}").get_json()["session"]

    assert client.delete(f"/api/live/history/{session_id}").status_code == 200
    assert client.get(f"/api/live/history/{session_id}").status_code == 404
    assert client.delete(f"/api/live/history/{session_id}").status_code == 404


def test_delete_record_keeps_item_processed(client, pipeline, record_store):
    record = client.post("/api/live/process", json={"subject": SUBJECT}).get_json()["records"][0]

    missing_subject = client.delete(f"/api/live/records/{record['id']}")
    assert missing_subject.status_code == 400

    response = client.delete(f"/api/live/records/{record['id']}?subject={SUBJECT}")
    assert response.get_json()["deleted"] == record["id"]
    assert record_store.find_by_source_remote_id(SUBJECT, record["source_remote_id"]) is None
    assert record["source_remote_id"] in pipeline.ledger_for(SUBJECT)

    again = client.delete(f"/api/live/records/{record['id']}?subject={SUBJECT}")
    assert again.status_code == 404


def test_health_reports_unreachable_archive(client, pipeline):
    pipeline.remote_store.reachable = False
    assert client.get("/api/live/health").get_json()["archive"] == {"success": False}
