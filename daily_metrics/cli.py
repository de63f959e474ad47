"""Daily Metrics — Command Line Runner.

Usage:
    # Run on schedule (daily at 02:00 UTC)
    daily-metrics

    # Aggregate yesterday once and exit
    daily-metrics --once

    # Aggregate a specific date once
    daily-metrics --once --date 2026-01-29

    # Test mode: run every minute
    daily-metrics --test

Exit code is 0 on success and 1 on any failure or missing configuration.
"""

import argparse
import signal
import sys
from datetime import date
from typing import List, Optional

from sqlmodel import Session

from daily_metrics.config import settings
from daily_metrics.database import dispose_engine, get_engine
from daily_metrics.aggregator.pipeline import parse_date, run_all
from daily_metrics.scheduler.jobs import start_scheduler, stop_scheduler
from daily_metrics.core.logging import get_logger

logger = get_logger("cli")

ENV_EXAMPLE = """DB_HOST=your_host
DB_PORT=3306
DB_NAME=your_database
DB_USER=your_username
DB_PASSWORD=your_password"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Aggregate daily metrics")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        action="store_true",
        help="Run the aggregation once and exit",
    )
    mode.add_argument(
        "--test",
        action="store_true",
        help="Test mode: run the aggregation every minute",
    )
    parser.add_argument(
        "--date",
        type=str,
        help="Date to aggregate (YYYY-MM-DD) with --once. Defaults to yesterday.",
    )
    return parser


def validate_config() -> bool:
    """Log the missing settings and an example .env when configuration is incomplete."""
    missing = settings.missing_settings()
    if not missing:
        return True
    logger.error(f"Missing required environment variables: {', '.join(missing)}")
    logger.error(f"Please create a .env file with the following variables:\n{ENV_EXAMPLE}")
    return False


def run_once(target_date: Optional[date] = None) -> bool:
    """Run the pipeline once against a fresh session."""
    logger.info("Running metrics processing once...")
    with Session(get_engine()) as session:
        result = run_all(session, target_date)
    if result:
        logger.info("Daily metrics processing completed successfully")
    else:
        logger.error(f"Daily metrics processing failed: {result.error}")
    return bool(result)


def _handle_stop(signum, frame) -> None:
    logger.info(f"Metrics runner stopped by signal {signal.Signals(signum).name}")
    stop_scheduler()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.date and not args.once:
        parser.error("--date can only be used with --once")
    try:
        target_date = parse_date(args.date)
    except ValueError:
        parser.error(f"--date must be YYYY-MM-DD, got {args.date!r}")

    logger.info("Daily Metrics Runner starting...")
    if not validate_config():
        return 1

    try:
        if args.once:
            return 0 if run_once(target_date) else 1

        signal.signal(signal.SIGTERM, _handle_stop)
        signal.signal(signal.SIGINT, _handle_stop)
        if args.test:
            logger.info("Starting TEST MODE - running metrics every minute...")
        else:
            logger.info("Starting scheduled metrics runner...")
        start_scheduler(test_mode=args.test, blocking=True)
        return 0
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1
    finally:
        dispose_engine()


if __name__ == "__main__":
    sys.exit(main())
