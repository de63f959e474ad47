"""Daily Metrics — Metric Models (Written by the aggregators).

Each table carries a composite unique constraint on its natural key so the
persistence layer can upsert: re-running a day overwrites values in place
instead of duplicating rows.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel
from sqlmodel import SQLModel, Field, UniqueConstraint


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ─────────────────────────────────────────────
# DATABASE MODELS — one row per (key, metric_name)
# ─────────────────────────────────────────────


class DailyMetric(SQLModel, table=True):
    """Global metric for one aggregation date."""

    __tablename__ = "daily_metrics"
    __table_args__ = (
        UniqueConstraint("aggregation_date", "metric_name", name="unique_daily_metric"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    aggregation_date: date = Field(index=True)
    metric_name: str = Field(max_length=100)
    metric_value: int
    metric_percentage: Optional[Decimal] = Field(
        default=None, max_digits=5, decimal_places=2
    )
    metric_category: str = Field(max_length=50)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class EventMetric(SQLModel, table=True):
    """Metric scoped to a single event on a snapshot date."""

    __tablename__ = "event_metrics"
    __table_args__ = (
        UniqueConstraint(
            "snapshot_date", "event_id", "metric_name", name="unique_event_metric"
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    snapshot_date: date = Field(index=True)
    event_id: int = Field(index=True)
    workspace_id: int = Field(description="Denormalized from the event")
    metric_name: str = Field(max_length=100)
    metric_value: int
    metric_percentage: Optional[Decimal] = Field(
        default=None, max_digits=5, decimal_places=2
    )
    metric_category: str = Field(max_length=50)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class ParticipantMetric(SQLModel, table=True):
    """Metric scoped to a participant within an event. Counts only."""

    __tablename__ = "participant_metrics"
    __table_args__ = (
        UniqueConstraint(
            "snapshot_date",
            "participant_id",
            "event_id",
            "metric_name",
            name="unique_participant_metric",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    snapshot_date: date = Field(index=True)
    participant_id: int = Field(index=True)
    event_id: int
    metric_name: str = Field(max_length=100)
    metric_value: int
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


# ─────────────────────────────────────────────
# PYDANTIC SCHEMAS — run outcome
# ─────────────────────────────────────────────


class RunResult(BaseModel):
    """Outcome of one aggregation run. Truthy when the run succeeded."""

    success: bool
    aggregation_date: date
    global_metrics: int = 0
    event_metrics: int = 0
    participant_metrics: int = 0
    error: Optional[str] = None
    duration_ms: int = 0

    @property
    def total_metrics(self) -> int:
        return self.global_metrics + self.event_metrics + self.participant_metrics

    def __bool__(self) -> bool:
        return self.success
