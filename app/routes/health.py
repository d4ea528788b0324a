# app/routes/health.py
"""
Health check endpoints with database pool and engagement queue monitoring.
"""

import time

from fastapi import APIRouter, Request

from app.config import settings
from app.db.pool import db_health_check
from app.features.profile_engagement.services import engagement_queue_monitor
from app.infrastructure.observability.logging import log_health_check

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "profile-engagement"}


@router.get("/readyz")
async def readyz(request: Request):
    """
    Readiness check covering the database pool and the engagement scheduler.
    """
    checks = {}
    overall_ok = True

    # 1) Database pool
    t0 = time.time()
    try:
        db_health = await db_health_check()
        is_healthy = db_health.get("healthy", False)
        latency_ms = round((time.time() - t0) * 1000, 1)

        checks["database"] = {"ok": is_healthy, "latency_ms": latency_ms}

        if "pool_stats" in db_health:
            pool_stats = db_health["pool_stats"]
            checks["database"].update(
                {
                    "pool_size": pool_stats.get("pool_size", 0),
                    "pool_available": pool_stats.get("pool_available", 0),
                    "pool_utilization_percent": pool_stats.get("pool_utilization_percent", 0),
                    "connection_time_ms": db_health.get("connection_time_ms", 0),
                }
            )

        if "warnings" in db_health:
            checks["database"]["warnings"] = db_health["warnings"]

        if not is_healthy:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")
            if "error_type" in db_health:
                checks["database"]["error_type"] = db_health["error_type"]

        log_health_check("database", is_healthy, latency_ms, db_health.get("error"))
        overall_ok = overall_ok and is_healthy

    except Exception as e:
        checks["database"] = {
            "ok": False,
            "error": f"{type(e).__name__}: {e}",
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = False

    # 2) Engagement scheduler (absent or idle is fine in test environments)
    scheduler = getattr(request.app.state, "engagement_scheduler", None)
    scheduler_running = bool(scheduler and scheduler.is_running)
    checks["engagement_scheduler"] = {
        "ok": scheduler_running or settings.is_test_environment,
        "running": scheduler_running,
        "worker_id": scheduler.worker_id if scheduler else None,
    }
    overall_ok = overall_ok and checks["engagement_scheduler"]["ok"]

    # 3) Configuration
    config_issues = []
    if not settings.DATABASE_URL:
        config_issues.append("DATABASE_URL not set")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
    }
    overall_ok = overall_ok and not config_issues

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}


@router.get("/health/database")
async def database_health():
    """Detailed database pool health information."""
    return await db_health_check()


@router.get("/health/engagement")
async def engagement_health():
    """Engagement queue depth, stuck claims and recent failures."""
    try:
        metrics = await engagement_queue_monitor.get_metrics()
    except Exception as e:
        return {"healthy": False, "error": str(e), "error_type": type(e).__name__}

    healthy = metrics["pending"]["stuck_claims"] == 0
    return {"healthy": healthy, **metrics}
