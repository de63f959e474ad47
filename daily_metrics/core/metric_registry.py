"""Daily Metrics — Unified Metric Registry.

Defines the canonical set of metric names and their categories. Per-state
meeting metrics are open-ended (``meetings_<state>``) because booking states
are free-form strings; they resolve to the meetings category by prefix.
"""

from decimal import Decimal
from enum import Enum
from typing import Dict, Optional


class MetricCategory(str, Enum):
    """How a metric is grouped for reporting."""

    PARTICIPANTS = "participants"
    MEETINGS = "meetings"
    NEWSLETTER = "newsletter"
    APP_USAGE = "app_usage"


class MetricDefinition:
    """Describes a single metric."""

    def __init__(
        self,
        name: str,
        category: MetricCategory,
        has_percentage: bool = False,
    ):
        self.name = name
        self.category = category
        self.has_percentage = has_percentage

    def __repr__(self) -> str:
        return f"<Metric {self.name} ({self.category.value})>"


MEETINGS_PREFIX = "meetings_"

# Booking/participant states the aggregators match on
ONLINE_STATE = "online"
REGISTERED_STATE = "registered"
ACCEPTED_STATE = "accepted"
UNKNOWN_STATE = "unknown"

# Administrator dashboard flag values
DASHBOARD_OPT_IN = "1"
DASHBOARD_OPT_OUT = "0"


# ─────────────────────────────────────────────
# GLOBAL METRICS — daily_metrics
# ─────────────────────────────────────────────

GLOBAL_METRICS: Dict[str, MetricDefinition] = {
    # Participants of online events; new_participants is limited to the aggregation date
    "total_participants": MetricDefinition("total_participants", MetricCategory.PARTICIPANTS),
    "new_participants": MetricDefinition("new_participants", MetricCategory.PARTICIPANTS),
    "registered_participants": MetricDefinition(
        "registered_participants", MetricCategory.PARTICIPANTS
    ),
    "total_meetings": MetricDefinition("total_meetings", MetricCategory.MEETINGS),
    "newsletter_opted_in": MetricDefinition(
        "newsletter_opted_in", MetricCategory.NEWSLETTER, has_percentage=True
    ),
    "newsletter_opted_out": MetricDefinition(
        "newsletter_opted_out", MetricCategory.NEWSLETTER, has_percentage=True
    ),
    "dashboard_opted_in": MetricDefinition(
        "dashboard_opted_in", MetricCategory.APP_USAGE, has_percentage=True
    ),
    "dashboard_opted_out": MetricDefinition(
        "dashboard_opted_out", MetricCategory.APP_USAGE, has_percentage=True
    ),
}


# ─────────────────────────────────────────────
# EVENT METRICS — event_metrics
# ─────────────────────────────────────────────

EVENT_METRICS: Dict[str, MetricDefinition] = {
    "participant_count": MetricDefinition(
        "participant_count", MetricCategory.PARTICIPANTS
    ),
    # Accepted bookings out of all bookings of the event
    "meeting_acceptance_rate": MetricDefinition(
        "meeting_acceptance_rate", MetricCategory.MEETINGS, has_percentage=True
    ),
}


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────

ALL_METRICS = {**GLOBAL_METRICS, **EVENT_METRICS}


def meetings_metric(state: Optional[str]) -> str:
    """Metric name for a booking state, NULL mapping to ``unknown``."""
    return f"{MEETINGS_PREFIX}{state if state is not None else UNKNOWN_STATE}"


def get_metric(name: str) -> MetricDefinition | None:
    """Look up a metric by name, including per-state meeting metrics."""
    if name in ALL_METRICS:
        return ALL_METRICS[name]
    if name.startswith(MEETINGS_PREFIX):
        return MetricDefinition(name, MetricCategory.MEETINGS)
    return None


def category_of(name: str) -> str:
    """Category value stored alongside a metric row."""
    metric = get_metric(name)
    if metric is None:
        raise KeyError(f"Unregistered metric: {name}")
    return metric.category.value


def percentage_for(name: str, percentage: Optional[str]) -> Optional[Decimal]:
    """Stored percentage for a metric row.

    Only metrics registered with ``has_percentage`` carry one; passing a
    percentage for any other metric, or omitting it for one of them, is an
    error.
    """
    metric = get_metric(name)
    if metric is None:
        raise KeyError(f"Unregistered metric: {name}")
    if metric.has_percentage != (percentage is not None):
        raise ValueError(
            f"Metric {name} {'requires' if metric.has_percentage else 'does not take'} a percentage"
        )
    return Decimal(percentage) if percentage is not None else None
