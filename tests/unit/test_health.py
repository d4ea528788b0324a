"""
Tests for health check endpoints.
"""

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)


def test_healthz_endpoint():
    """Test the basic health check endpoint."""
    response = client.get("/healthz")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"


def test_readyz_endpoint_all_services_healthy():
    """Test readiness endpoint when the database is healthy."""
    db_health = {
        "healthy": True,
        "connection_time_ms": 1.2,
        "pool_stats": {"pool_size": 3, "pool_available": 2, "pool_utilization_percent": 33.3},
    }
    with patch("app.routes.health.db_health_check", AsyncMock(return_value=db_health)):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is True
    checks = data["checks"]
    assert checks["database"]["ok"] is True
    assert checks["database"]["pool_size"] == 3
    assert isinstance(checks["database"]["latency_ms"], (int, float))
    assert checks["engagement_scheduler"]["ok"] is True
    assert checks["configuration"]["ok"] is True


def test_readyz_endpoint_database_unhealthy():
    """Test readiness endpoint when the database is down."""
    db_health = {"healthy": False, "error": "Connection failed", "error_type": "OperationalError"}
    with patch("app.routes.health.db_health_check", AsyncMock(return_value=db_health)):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["database"]["ok"] is False
    assert data["checks"]["database"]["error"] == "Connection failed"


def test_readyz_endpoint_database_check_raises():
    with patch("app.routes.health.db_health_check", AsyncMock(side_effect=RuntimeError("pool closed"))):
        response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert "RuntimeError" in data["checks"]["database"]["error"]


def test_engagement_health_reports_queue_metrics():
    metrics = {
        "timestamp": "2024-06-01T12:00:00+00:00",
        "jobs_by_status": {"pending": 4, "failed": 1},
        "pending": {"due_now": 2, "oldest_pending_age_seconds": 75.0, "stuck_claims": 0},
        "failures": {"failed_last_24h": 1},
    }
    with patch(
        "app.routes.health.engagement_queue_monitor.get_metrics", AsyncMock(return_value=metrics)
    ):
        response = client.get("/health/engagement")

    data = response.json()
    assert data["healthy"] is True
    assert data["jobs_by_status"]["pending"] == 4


def test_engagement_health_flags_stuck_claims():
    metrics = {
        "pending": {"due_now": 0, "oldest_pending_age_seconds": None, "stuck_claims": 2},
    }
    with patch(
        "app.routes.health.engagement_queue_monitor.get_metrics", AsyncMock(return_value=metrics)
    ):
        response = client.get("/health/engagement")

    assert response.json()["healthy"] is False


def test_engagement_health_handles_monitor_errors():
    with patch(
        "app.routes.health.engagement_queue_monitor.get_metrics",
        AsyncMock(side_effect=RuntimeError("db down")),
    ):
        response = client.get("/health/engagement")

    data = response.json()
    assert data["healthy"] is False
    assert data["error_type"] == "RuntimeError"
