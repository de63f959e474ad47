"""Daily Metrics — Scheduler Jobs.

APScheduler cron job that runs the aggregation pipeline for yesterday's data
at the configured hour, or every minute in test mode.
"""

from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from sqlmodel import Session

from daily_metrics.config import settings
from daily_metrics.database import get_engine
from daily_metrics.aggregator.pipeline import run_all
from daily_metrics.models.metric_models import RunResult
from daily_metrics.core.logging import get_logger

logger = get_logger("scheduler")

scheduler: Optional[BaseScheduler] = None


def daily_metrics_job() -> RunResult:
    """Run the full aggregation pipeline for yesterday's data."""
    logger.info("Scheduled metrics processing started")
    with Session(get_engine()) as session:
        result = run_all(session)
    if result:
        logger.info(
            f"Daily metrics processing completed successfully ({result.total_metrics} metrics)"
        )
    else:
        logger.error(f"Daily metrics processing failed: {result.error}")
    return result


def build_scheduler(test_mode: bool = False, blocking: bool = False) -> BaseScheduler:
    """Create a scheduler with the daily (or every-minute) job registered."""
    scheduler_cls = BlockingScheduler if blocking else BackgroundScheduler
    new_scheduler = scheduler_cls(timezone=settings.scheduler_timezone)

    if test_mode:
        new_scheduler.add_job(
            daily_metrics_job,
            "cron",
            minute="*",
            id="daily_metrics_test",
            replace_existing=True,
            max_instances=1,
        )
    else:
        new_scheduler.add_job(
            daily_metrics_job,
            "cron",
            hour=settings.metrics_hour,
            minute=settings.metrics_minute,
            id="daily_metrics",
            replace_existing=True,
            misfire_grace_time=3600,
        )
    return new_scheduler


def start_scheduler(test_mode: bool = False, blocking: bool = False) -> None:
    """Configure and start the scheduler. Blocks when ``blocking`` is set."""
    global scheduler
    scheduler = build_scheduler(test_mode=test_mode, blocking=blocking)
    if test_mode:
        logger.info("🧪 TEST MODE: Scheduled metrics processing every minute")
    else:
        logger.info(
            f"Scheduled daily metrics processing at "
            f"{settings.metrics_hour:02d}:{settings.metrics_minute:02d} {settings.scheduler_timezone}"
        )
    scheduler.start()


def stop_scheduler() -> None:
    """Shutdown the scheduler gracefully."""
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
