"""Daily Metrics — Aggregation Pipeline Orchestrator.

Runs the full data flow for one aggregation date:
  global → event → participant → batched upserts → RunResult

The aggregation date is resolved once here and passed to every stage.
"""

import threading
import time
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlmodel import Session

from daily_metrics.aggregator.common import RunCancelled, check_cancelled
from daily_metrics.aggregator.event_engine import compute_events
from daily_metrics.aggregator.global_engine import compute_global
from daily_metrics.aggregator.participant_engine import compute_participants
from daily_metrics.aggregator.persistence import persist
from daily_metrics.models.metric_models import RunResult
from daily_metrics.core.logging import get_logger

logger = get_logger("aggregator.pipeline")


def previous_day(now: Optional[datetime] = None) -> date:
    """The calendar day before ``now`` (UTC)."""
    now = now or datetime.now(timezone.utc)
    return now.date() - timedelta(days=1)


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse YYYY-MM-DD; None passes through."""
    if not value:
        return None
    return datetime.strptime(value, "%Y-%m-%d").date()


def run_all(
    session: Session,
    target_date: Optional[date] = None,
    cancel_event: Optional[threading.Event] = None,
) -> RunResult:
    """Compute and persist every metric for ``target_date``.

    Never raises: failures, including cancellation, are returned as an
    unsuccessful RunResult with the cause in ``error``.
    """
    target_date = target_date or previous_day()
    started = time.perf_counter()
    result = RunResult(success=False, aggregation_date=target_date)
    log_extra = {"aggregation_date": target_date.isoformat()}
    logger.info(f"Starting daily metrics processing for {target_date}", extra=log_extra)

    try:
        check_cancelled(cancel_event)
        global_metrics = compute_global(session, target_date)

        check_cancelled(cancel_event)
        event_metrics = compute_events(session, target_date, cancel_event=cancel_event)

        check_cancelled(cancel_event)
        participant_metrics = compute_participants(
            session, target_date, cancel_event=cancel_event
        )

        check_cancelled(cancel_event)
        persist(session, global_metrics, event_metrics, participant_metrics)

        result.global_metrics = len(global_metrics)
        result.event_metrics = len(event_metrics)
        result.participant_metrics = len(participant_metrics)
        result.success = True
    except RunCancelled as e:
        session.rollback()
        result.error = str(e)
        logger.warning(f"Metrics processing cancelled for {target_date}", extra=log_extra)
    except Exception as e:
        session.rollback()
        result.error = f"{type(e).__name__}: {e}"
        logger.exception(f"Error processing metrics: {e}", extra=log_extra)

    result.duration_ms = int((time.perf_counter() - started) * 1000)
    if result.success:
        logger.info(
            f"Successfully processed {result.total_metrics} total metrics",
            extra={
                **log_extra,
                "metric_count": result.total_metrics,
                "duration_ms": result.duration_ms,
            },
        )
    return result
