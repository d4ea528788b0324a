# app/main.py
"""
FastAPI application with database pool and engagement scheduler lifecycle.

The lifespan is the composition root: it opens the pool, owns the
engagement scheduler, and tears both down in reverse order.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from app.config import settings
from app.db.pool import db_pool
from app.features.profile_engagement.jobs.scheduler import EngagementScheduler
from app.infrastructure.observability.logging import get_logger, setup_logging
from app.routes import health

# Setup logging before creating the app
setup_logging(log_level=settings.log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""

    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    try:
        logger.info("Initializing database pool")
        await db_pool.initialize()
    except Exception as e:
        logger.error("Failed to initialize services", error=str(e))
        raise

    scheduler = EngagementScheduler(logger=get_logger("app.engagement.scheduler"))
    app.state.engagement_scheduler = scheduler
    started = scheduler.start()
    logger.info(
        "All services initialized successfully",
        services=["database_pool"] + (["engagement_scheduler"] if started else []),
    )

    yield

    logger.info("Application shutting down")

    shutdown_errors = []

    try:
        await scheduler.stop()
    except Exception as e:
        logger.error("Error stopping engagement scheduler", error=str(e))
        shutdown_errors.append(f"Scheduler: {e}")

    # Close database pool last (the scheduler may still hold connections)
    try:
        logger.info("Closing database pool")
        await db_pool.close()
    except Exception as e:
        logger.error("Error closing database pool", error=str(e))
        shutdown_errors.append(f"Database: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="Profile Engagement Service",
    description="Engagement recompute pipeline, trust scoring and targeting analytics",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
