"""Daily Metrics — Global Engine.

Computes process-wide metrics for one aggregation date:
participant totals, meetings by state, newsletter and dashboard opt-in rates.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlmodel import Session, select

from daily_metrics.aggregator.common import (
    bookings_by_state,
    count_when,
    percentage_of,
)
from daily_metrics.core.metric_registry import (
    DASHBOARD_OPT_IN,
    DASHBOARD_OPT_OUT,
    ONLINE_STATE,
    REGISTERED_STATE,
    category_of,
    meetings_metric,
    percentage_for,
)
from daily_metrics.database import timed_query
from daily_metrics.models.metric_models import DailyMetric
from daily_metrics.models.source_models import (
    Administrator,
    Booking,
    Event,
    Participant,
    User,
)
from daily_metrics.core.logging import get_logger

logger = get_logger("aggregator.global")


def day_bounds(target_date: date) -> Tuple[datetime, datetime]:
    """UTC half-open range [start, end) covering ``target_date``."""
    start = datetime.combine(target_date, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def _metric(
    target_date: date,
    name: str,
    value: int,
    percentage: Optional[str] = None,
) -> DailyMetric:
    return DailyMetric(
        aggregation_date=target_date,
        metric_name=name,
        metric_value=value,
        metric_percentage=percentage_for(name, percentage),
        metric_category=category_of(name),
    )


def _count_online_participants(session: Session, query_name: str, *criteria) -> int:
    """Count participants whose owning event is online."""
    stmt = (
        select(func.count(Participant.id))
        .join(Event, Participant.settings_id == Event.id)
        .where(Event.state == ONLINE_STATE, *criteria)
    )
    with timed_query(query_name):
        return int(session.exec(stmt).one())


def _count_online_bookings(session: Session) -> int:
    stmt = (
        select(func.count(Booking.id))
        .join(Event, Booking.settings_id == Event.id)
        .where(Event.state == ONLINE_STATE)
    )
    with timed_query("Total meetings query"):
        return int(session.exec(stmt).one())


def _opt_in_metrics(
    session: Session,
    target_date: date,
    query_name: str,
    total_column,
    opted_in,
    opted_out,
    prefix: str,
) -> List[DailyMetric]:
    """Opted-in / opted-out counts with percentages of the table total."""
    stmt = select(
        func.count(total_column).label("total"),
        count_when(opted_in).label("opted_in"),
        count_when(opted_out).label("opted_out"),
    )
    with timed_query(query_name):
        row = session.exec(stmt).one()

    total = int(row.total or 0)
    opted_in_count = int(row.opted_in or 0)
    opted_out_count = int(row.opted_out or 0)
    return [
        _metric(
            target_date,
            f"{prefix}_opted_in",
            opted_in_count,
            percentage_of(opted_in_count, total),
        ),
        _metric(
            target_date,
            f"{prefix}_opted_out",
            opted_out_count,
            percentage_of(opted_out_count, total),
        ),
    ]


def compute_global(session: Session, target_date: date) -> List[DailyMetric]:
    """Compute all global metrics stamped with ``target_date``."""
    logger.info("Calculating global metrics...", extra={"stage": "global"})
    metrics: List[DailyMetric] = []

    # ── Participants ──
    total = _count_online_participants(session, "Total participants query")
    metrics.append(_metric(target_date, "total_participants", total))

    day_start, day_end = day_bounds(target_date)
    new = _count_online_participants(
        session,
        "New participants query",
        Participant.created_at >= day_start,
        Participant.created_at < day_end,
    )
    metrics.append(_metric(target_date, "new_participants", new))

    registered = _count_online_participants(
        session,
        "Registered participants query",
        Participant.state == REGISTERED_STATE,
    )
    metrics.append(_metric(target_date, "registered_participants", registered))

    # ── Meetings ──
    by_state = bookings_by_state(session, "Meetings by state query", online_only=True)
    for state, count in by_state.items():
        metrics.append(_metric(target_date, meetings_metric(state), count))

    metrics.append(
        _metric(target_date, "total_meetings", _count_online_bookings(session))
    )

    # ── Newsletter ──
    metrics.extend(
        _opt_in_metrics(
            session,
            target_date,
            "Newsletter metrics query",
            User.id,
            User.newsletter_opted_in_at.is_not(None),
            User.newsletter_opted_out_at.is_not(None),
            prefix="newsletter",
        )
    )

    # ── Dashboard ──
    metrics.extend(
        _opt_in_metrics(
            session,
            target_date,
            "Dashboard metrics query",
            Administrator.id,
            Administrator.dashboard_opt_in == DASHBOARD_OPT_IN,
            Administrator.dashboard_opt_in == DASHBOARD_OPT_OUT,
            prefix="dashboard",
        )
    )

    logger.info(
        f"Calculated {len(metrics)} global metrics",
        extra={"stage": "global", "metric_count": len(metrics)},
    )
    return metrics
