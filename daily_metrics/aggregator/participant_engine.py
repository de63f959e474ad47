"""Daily Metrics — Participant Engine.

Per participant of an online event: meetings by state, counting bookings
where the participant is the host and where they are the guest, plus a
total. Host and guest counts for the same state are added together.
"""

import logging
import threading
from datetime import date
from typing import List, NamedTuple, Optional

from sqlmodel import Session, select

from daily_metrics.aggregator.common import (
    bookings_by_state,
    map_entities,
    merge_state_counts,
)
from daily_metrics.config import settings
from daily_metrics.core.metric_registry import ONLINE_STATE, meetings_metric
from daily_metrics.database import timed_query
from daily_metrics.models.metric_models import ParticipantMetric
from daily_metrics.models.source_models import Booking, Event, Participant
from daily_metrics.core.logging import get_logger

logger = get_logger("aggregator.participant")


class OnlineParticipant(NamedTuple):
    participant_id: int
    event_id: int


def online_participants(session: Session) -> List[OnlineParticipant]:
    """Participants whose owning event is online."""
    stmt = (
        select(Participant.id, Participant.settings_id)
        .join(Event, Participant.settings_id == Event.id)
        .where(Event.state == ONLINE_STATE)
        .order_by(Participant.id)
    )
    with timed_query("Participants query"):
        return [OnlineParticipant(row.id, row.settings_id) for row in session.exec(stmt)]


def _participant_metrics(
    session: Session, participant: OnlineParticipant, target_date: date
) -> List[ParticipantMetric]:
    as_host = bookings_by_state(
        session,
        f"Host meetings query (participant {participant.participant_id})",
        Booking.host_id == participant.participant_id,
        Booking.settings_id == participant.event_id,
        level=logging.DEBUG,
    )
    as_guest = bookings_by_state(
        session,
        f"Guest meetings query (participant {participant.participant_id})",
        Booking.guest_id == participant.participant_id,
        Booking.settings_id == participant.event_id,
        level=logging.DEBUG,
    )
    meeting_counts = merge_state_counts(as_host, as_guest)

    names = [meetings_metric(state) for state in meeting_counts]
    values = list(meeting_counts.values())
    names.append("total_meetings")
    values.append(sum(meeting_counts.values()))

    return [
        ParticipantMetric(
            snapshot_date=target_date,
            participant_id=participant.participant_id,
            event_id=participant.event_id,
            metric_name=name,
            metric_value=value,
        )
        for name, value in zip(names, values)
    ]


def compute_participants(
    session: Session,
    target_date: date,
    workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> List[ParticipantMetric]:
    """Compute metrics for every online-event participant."""
    logger.info("Calculating participant metrics...", extra={"stage": "participant"})
    participants = online_participants(session)

    metrics = map_entities(
        session,
        participants,
        lambda s, participant: _participant_metrics(s, participant, target_date),
        workers=workers or settings.aggregation_workers,
        cancel_event=cancel_event,
    )

    logger.info(
        f"Calculated {len(metrics)} participant metrics for {len(participants)} participants",
        extra={"stage": "participant", "metric_count": len(metrics)},
    )
    return metrics
