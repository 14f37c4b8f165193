"""Tests for /health and / endpoints."""

from studydrive.services.trash_service import TrashService

from tests.conftest import ALICE


class TestHealth:

    def test_health_returns_200(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] in ("healthy", "degraded")
        assert "db" in data
        assert "uptime_seconds" in data
        assert "version" in data
        assert data["file_count"] == 0

    def test_file_count_ignores_trash(self, client, upload, db):
        upload(name="a.txt", data=b"a")
        gone = upload(name="b.txt", data=b"b")
        TrashService(db).soft_delete_file(ALICE, gone.id)
        assert client.get("/health").json()["file_count"] == 1

    def test_root_returns_api_info(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json()["name"] == "StudyDrive API"


class TestResponseHeaders:

    def test_response_includes_middleware_headers(self, client):
        resp = client.get("/health")
        assert "x-request-id" in resp.headers
        assert "x-response-time" in resp.headers

    def test_request_id_is_echoed(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "abc123"})
        assert resp.headers["x-request-id"] == "abc123"
