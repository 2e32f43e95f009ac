"""Tests for health check endpoints."""

from collections import namedtuple
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from auditflow.api.routers import health


Usage = namedtuple("Usage", "total used free percent")
Memory = namedtuple("Memory", "total available percent")

GB = 1024 ** 3


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_basic_health_check(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == client.app.version
        assert "timestamp" in data

    def test_liveness_probe(self, client: TestClient):
        response = client.get("/health/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_readiness_probe(self, client: TestClient):
        response = client.get("/health/ready")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["checks"]["database"]["dialect"] == "sqlite"

    def test_readiness_probe_database_down(self, client: TestClient):
        with patch.object(health, "check_database", return_value={"status": "unhealthy", "error": "down"}):
            response = client.get("/health/ready")
        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "not_ready"
        assert data["failed"] == ["database"]

    def test_health_detailed(self, client: TestClient):
        with patch.object(health.psutil, "disk_usage", return_value=Usage(100 * GB, 40 * GB, 60 * GB, 40.0)), \
                patch.object(health.psutil, "virtual_memory", return_value=Memory(16 * GB, 8 * GB, 50.0)):
            response = client.get("/health/detailed")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert set(data["checks"]) == {"database", "disk", "memory"}
        assert data["checks"]["disk"]["free_gb"] == 60.0

    def test_health_detailed_degraded(self, client: TestClient):
        with patch.object(health.psutil, "disk_usage", return_value=Usage(100 * GB, 90 * GB, 10 * GB, 90.0)), \
                patch.object(health.psutil, "virtual_memory", return_value=Memory(16 * GB, 8 * GB, 50.0)):
            response = client.get("/health/detailed")
        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_health_detailed_critical_memory(self, client: TestClient):
        with patch.object(health.psutil, "disk_usage", return_value=Usage(100 * GB, 40 * GB, 60 * GB, 40.0)), \
                patch.object(health.psutil, "virtual_memory", return_value=Memory(16 * GB, 0.2 * GB, 98.7)):
            response = client.get("/health/detailed")
        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "unhealthy"
        assert data["checks"]["memory"]["status"] == "critical"


class TestChecks:

    def test_check_database_reports_error(self):
        db = MagicMock()
        db.execute.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))
        result = health.check_database(db)
        assert result["status"] == "unhealthy"
        assert "connection refused" in result["error"]

    def test_check_database_sqlite(self, db_session):
        result = health.check_database(db_session)
        assert result["status"] == "healthy"
        assert result["version"] != "unknown"

    def test_check_disk_unavailable(self):
        with patch.object(health.psutil, "disk_usage", side_effect=OSError("no such mount")):
            assert health.check_disk()["status"] == "unknown"

    def test_rollup(self):
        assert health._rollup({"a": {"status": "healthy"}}) == ("healthy", 200)
        assert health._rollup({"a": {"status": "healthy"}, "b": {"status": "warning"}}) == ("degraded", 200)
        assert health._rollup({"a": {"status": "warning"}, "b": {"status": "unhealthy"}}) == ("unhealthy", 503)
        assert health._rollup({"a": {"status": "unknown"}}) == ("healthy", 200)

    def test_threshold_status(self):
        assert health._threshold_status(10, 85, 95) == "healthy"
        assert health._threshold_status(85, 85, 95) == "warning"
        assert health._threshold_status(95, 85, 95) == "critical"
