import json
import logging
from logging.handlers import TimedRotatingFileHandler

import pytest
from starlette.testclient import TestClient

LOGGER_NAMES = ("support_inbox", "uvicorn.access")


def _clear_handlers() -> None:
    for name in LOGGER_NAMES:
        logging.getLogger(name).handlers.clear()


def _read_lines(path):
    for name in LOGGER_NAMES:
        for handler in logging.getLogger(name).handlers:
            handler.flush()
    return [line for line in path.read_text().splitlines() if line.strip()]


def _access_entries(log_dir):
    return [
        json.loads(line.split(": ", 1)[1])
        for line in _read_lines(log_dir / "access.log")
    ]


@pytest.fixture(autouse=True)
def clean_handlers():
    _clear_handlers()
    yield
    _clear_handlers()


def test_handlers_rotate_at_midnight(tmp_path, monkeypatch, app_factory):
    monkeypatch.setenv("LOG_RETENTION_DAYS", "3")
    app_factory(tmp_path)

    for name in LOGGER_NAMES:
        handler = next(
            h
            for h in logging.getLogger(name).handlers
            if isinstance(h, TimedRotatingFileHandler)
        )
        assert handler.when == "MIDNIGHT"
        assert handler.backupCount == 3


def test_message_bodies_are_scrubbed(tmp_path, app_factory):
    app = app_factory(tmp_path, log_request_bodies=True)

    with TestClient(app) as client:
        inbound = client.post(
            "/api/conversations/inbound",
            json={"customer_id": "U1", "content": "my loan is blocked"},
            headers={"Authorization": "Bearer secret"},
        )
        reply = client.post(
            "/api/conversations/c-1/reply", json={"content": "On it"}
        )
    assert inbound.status_code == 200 and reply.status_code == 200

    entries = _access_entries(tmp_path)

    assert [e["path"] for e in entries] == [
        "/api/conversations/inbound",
        "/api/conversations/c-1/reply",
    ]
    assert entries[0]["body"] == {"customer_id": "U1", "content": "***"}
    assert entries[0]["headers"]["authorization"] == "***"
    assert entries[1]["body"] == {"content": "***"}
    assert "my loan is blocked" not in (tmp_path / "access.log").read_text()


def test_stream_and_health_are_not_access_logged(tmp_path, app_factory):
    app = app_factory(tmp_path)

    with TestClient(app) as client:
        client.get("/api/stream")
        client.get("/api/health")
        client.post("/api/conversations/inbound", json={"customer_id": "U1", "content": "hi"})

    entries = _access_entries(tmp_path)

    assert [e["path"] for e in entries] == ["/api/conversations/inbound"]
    assert "body" not in entries[0]


def test_module_loggers_write_json_to_app_log(tmp_path, app_factory):
    app_factory(tmp_path, log_json=True)

    logging.getLogger("support_inbox.ingestion.driver").warning("scored %d", 85)

    (line,) = _read_lines(tmp_path / "app.log")
    record = json.loads(line)
    assert record["logger"] == "support_inbox.ingestion.driver"
    assert record["level"] == "WARNING"
    assert record["message"] == "scored 85"
