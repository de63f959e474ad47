"""Daily Metrics — FastAPI Application Entry Point.

Serves on-demand aggregation runs and read access to the metric tables,
and hosts the daily scheduler for the lifetime of the process.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from daily_metrics.config import settings
from daily_metrics.database import dispose_engine, test_connection
from daily_metrics.scheduler.jobs import start_scheduler, stop_scheduler
from daily_metrics.api.metrics_routes import router as metrics_router
from daily_metrics.core.logging import get_logger

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("🚀 Daily Metrics starting up...")
    missing = settings.missing_settings()
    if missing:
        logger.error(f"❌ Missing required environment variables: {', '.join(missing)}")
    elif not test_connection():
        logger.error("❌ Database NOT connected — endpoints will fail")
    if settings.scheduler_enabled and not missing:
        start_scheduler()
    else:
        logger.info("Scheduler disabled")
    yield
    stop_scheduler()
    dispose_engine()
    logger.info("Daily Metrics shut down")


app = FastAPI(
    title="Daily Metrics",
    description="Daily aggregate statistics for events, participants and bookings.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(metrics_router)


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "daily-metrics",
        "version": "1.0.0",
    }
