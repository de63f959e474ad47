"""Daily Metrics — Event Engine.

Per online event: participant count, meetings by state and the meeting
acceptance rate. Rows carry the event's workspace id for filtering.
"""

import logging
import threading
from datetime import date
from typing import List, NamedTuple, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from daily_metrics.aggregator.common import (
    bookings_by_state,
    count_when,
    map_entities,
    percentage_of,
)
from daily_metrics.config import settings
from daily_metrics.core.metric_registry import (
    ACCEPTED_STATE,
    ONLINE_STATE,
    category_of,
    meetings_metric,
    percentage_for,
)
from daily_metrics.database import timed_query
from daily_metrics.models.metric_models import EventMetric
from daily_metrics.models.source_models import Booking, Event, Participant
from daily_metrics.core.logging import get_logger

logger = get_logger("aggregator.event")


class OnlineEvent(NamedTuple):
    id: int
    workspace_id: int


def online_events(session: Session) -> List[OnlineEvent]:
    """All events currently in the online state."""
    stmt = (
        select(Event.id, Event.workspace_id)
        .where(Event.state == ONLINE_STATE)
        .order_by(Event.id)
    )
    with timed_query("Events query"):
        return [OnlineEvent(row.id, row.workspace_id) for row in session.exec(stmt)]


def _event_metrics(
    session: Session, event: OnlineEvent, target_date: date
) -> List[EventMetric]:
    """All metric rows for a single event."""

    def _metric(name: str, value: int, percentage: Optional[str] = None):
        return EventMetric(
            snapshot_date=target_date,
            event_id=event.id,
            workspace_id=event.workspace_id,
            metric_name=name,
            metric_value=value,
            metric_percentage=percentage_for(name, percentage),
            metric_category=category_of(name),
        )

    metrics: List[EventMetric] = []

    stmt = select(func.count(Participant.id)).where(Participant.settings_id == event.id)
    with timed_query(f"Participant count query (event {event.id})", logging.DEBUG):
        participant_count = int(session.exec(stmt).one())
    metrics.append(_metric("participant_count", participant_count))

    by_state = bookings_by_state(
        session,
        f"Meetings by state query (event {event.id})",
        Booking.settings_id == event.id,
        level=logging.DEBUG,
    )
    for state, count in by_state.items():
        metrics.append(_metric(meetings_metric(state), count))

    stmt = select(
        func.count(Booking.id).label("total"),
        count_when(Booking.state == ACCEPTED_STATE).label("accepted"),
    ).where(Booking.settings_id == event.id)
    with timed_query(f"Acceptance query (event {event.id})", logging.DEBUG):
        row = session.exec(stmt).one()
    total = int(row.total or 0)
    accepted = int(row.accepted or 0)
    metrics.append(
        _metric("meeting_acceptance_rate", accepted, percentage_of(accepted, total))
    )
    return metrics


def compute_events(
    session: Session,
    target_date: date,
    workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> List[EventMetric]:
    """Compute metrics for every online event, stamped with ``target_date``."""
    logger.info("Calculating event metrics...", extra={"stage": "event"})
    events = online_events(session)

    metrics = map_entities(
        session,
        events,
        lambda s, event: _event_metrics(s, event, target_date),
        workers=workers or settings.aggregation_workers,
        cancel_event=cancel_event,
    )

    logger.info(
        f"Calculated {len(metrics)} event metrics for {len(events)} events",
        extra={"stage": "event", "metric_count": len(metrics)},
    )
    return metrics
