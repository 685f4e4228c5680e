"""Tests for the application-level endpoints and helpers in support_inbox.main."""

from unittest.mock import MagicMock

from fastapi import Request

from support_inbox.__version__ import __build_date__, __commit_sha__, __version__
from support_inbox.rate_limit import get_client_ip


class TestHealthEndpoint:
    """Tests for /api/health endpoint."""

    def test_health_returns_ok_status(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["timestamp"].endswith("+00:00")

    def test_health_is_not_access_logged(self, client, caplog):
        with caplog.at_level("INFO", logger="uvicorn.access"):
            client.get("/api/health")
        assert not [r for r in caplog.records if r.name == "uvicorn.access"]


class TestVersionEndpoint:
    """Tests for /api/version endpoint."""

    def test_version_matches_package_version(self, client):
        resp = client.get("/api/version")
        assert resp.status_code == 200
        data = resp.json()
        assert data["version"] == __version__
        assert data["build_date"] == __build_date__
        assert data["commit_sha"] == __commit_sha__


class TestMetricsEndpoint:
    def test_metrics_are_exposed(self, client):
        client.get("/api/version")
        resp = client.get("/api/metrics")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/plain")
        assert "http_requests_total" in resp.text


class TestRequestId:
    def test_request_id_is_echoed(self, client):
        resp = client.get("/api/conversations", headers={"X-Request-Id": "req-1"})
        assert resp.status_code == 200
        assert resp.headers["X-Request-Id"] == "req-1"


class TestGetClientIp:
    """Tests for get_client_ip helper function."""

    def test_get_client_ip_from_forwarded_header(self):
        mock_request = MagicMock(spec=Request)
        mock_request.headers.get.return_value = "192.168.1.1, 10.0.0.1"
        mock_request.client.host = "127.0.0.1"

        assert get_client_ip(mock_request) == "192.168.1.1"

    def test_get_client_ip_from_client(self):
        mock_request = MagicMock(spec=Request)
        mock_request.headers.get.return_value = None
        mock_request.client.host = "127.0.0.1"

        assert get_client_ip(mock_request) == "127.0.0.1"

    def test_get_client_ip_without_client(self):
        mock_request = MagicMock(spec=Request)
        mock_request.headers.get.return_value = None
        mock_request.client = None

        assert get_client_ip(mock_request) == "unknown"
