import os
import pathlib
import sys
import tempfile
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI, Request
from sqlalchemy.orm import Session, sessionmaker

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

# Importing support_inbox.main configures file logging; keep it out of the repo.
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="support-inbox-logs-"))

from support_inbox.app_logging import init_logging
from support_inbox.config import reset_settings_cache
from support_inbox.ingestion.records import MessageRecord
from support_inbox.models.session import dispose_engines, get_sessionmaker, init_db

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_record(customer_id: str, hours: float, content: str) -> MessageRecord:
    """Build a record ``hours`` after :data:`T0`."""
    return MessageRecord(
        customer_id=customer_id,
        timestamp=T0 + timedelta(hours=hours),
        content=content,
    )


@pytest.fixture
def database_url(monkeypatch, tmp_path) -> str:
    """Point the application at a fresh SQLite database with the schema applied."""
    url = f"sqlite+pysqlite:///{tmp_path / 'inbox.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setenv("REPLY_RATE_LIMIT", "1000/minute")
    reset_settings_cache()
    init_db(url)
    yield url
    dispose_engines()
    reset_settings_cache()


@pytest.fixture
def session_factory(database_url) -> sessionmaker[Session]:
    return get_sessionmaker(database_url)


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session
        session.rollback()


@pytest.fixture
def client(database_url):
    from fastapi.testclient import TestClient

    from support_inbox.main import app

    return TestClient(app)


@pytest.fixture
def app_factory(monkeypatch):
    def _create_app(log_dir, log_request_bodies: bool = False, log_json: bool = False):
        """Create an app exposing the inbox paths with logging initialised."""
        monkeypatch.setenv("LOG_DIR", str(log_dir))
        monkeypatch.setenv("LOG_REQUEST_BODIES", str(log_request_bodies).lower())
        monkeypatch.setenv("LOG_JSON", str(log_json).lower())
        app = FastAPI()

        @app.post("/api/conversations/inbound")
        async def inbound(request: Request):
            return await request.json()

        @app.post("/api/conversations/{conversation_id}/reply")
        async def reply(conversation_id: str, request: Request):
            return await request.json()

        @app.get("/api/stream")
        async def stream():
            return {"type": "CONNECTED"}

        @app.get("/api/health")
        async def health():
            return {"status": "ok"}

        init_logging(app)
        return app

    return _create_app
