"""Daily Metrics — Metrics API Routes."""

from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session, SQLModel, select

from daily_metrics.database import get_session
from daily_metrics.aggregator.common import format_percentage
from daily_metrics.aggregator.pipeline import parse_date, previous_day, run_all
from daily_metrics.models.metric_models import (
    DailyMetric,
    EventMetric,
    ParticipantMetric,
    RunResult,
)
from daily_metrics.core.logging import get_logger

logger = get_logger("api.metrics")

router = APIRouter(tags=["Metrics"])


# ── Request / Response Models ──


class RunMetricsRequest(BaseModel):
    """Request body for POST /run-metrics."""

    date: Optional[str] = None
    """Aggregation date in YYYY-MM-DD format. Defaults to yesterday (UTC)."""

    model_config = {
        "json_schema_extra": {
            "examples": [{"date": None}, {"date": "2026-02-18"}],
        }
    }


class RunMetricsResponse(BaseModel):
    """Response for POST /run-metrics."""

    status: str = "success"
    result: RunResult


def _resolve_date(value: Optional[str]) -> date:
    try:
        return parse_date(value) or previous_day()
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid date: {value!r}")


def _serialize(metric: SQLModel) -> Dict[str, Any]:
    """Row as JSON-ready dict; percentages render as ``percentage_of`` does."""
    data = metric.model_dump(exclude={"id", "created_at", "updated_at"})
    if data.get("metric_percentage") is not None:
        data["metric_percentage"] = format_percentage(data["metric_percentage"])
    return data


# ── Endpoints ──


@router.post("/run-metrics", response_model=RunMetricsResponse)
def trigger_metrics(
    request: RunMetricsRequest,
    session: Session = Depends(get_session),
):
    """Run the aggregation pipeline on demand for one date."""
    target_date = _resolve_date(request.date)
    result = run_all(session, target_date)
    if not result:
        logger.error(f"On-demand metrics run failed: {result.error}")
        raise HTTPException(
            status_code=500, detail=f"Metrics processing failed: {result.error}"
        )
    return RunMetricsResponse(status="success", result=result)


@router.get("/metrics/daily")
def get_daily_metrics(
    date: Optional[str] = Query(None, description="Aggregation date (YYYY-MM-DD)"),
    session: Session = Depends(get_session),
):
    """Global metrics for a date."""
    target_date = _resolve_date(date)
    rows = session.exec(
        select(DailyMetric)
        .where(DailyMetric.aggregation_date == target_date)
        .order_by(DailyMetric.metric_name)
    ).all()
    return {
        "status": "success",
        "date": target_date.isoformat(),
        "count": len(rows),
        "metrics": [_serialize(r) for r in rows],
    }


@router.get("/metrics/events/{event_id}")
def get_event_metrics(
    event_id: int,
    date: Optional[str] = Query(None, description="Snapshot date (YYYY-MM-DD)"),
    session: Session = Depends(get_session),
):
    """Metrics of a single event for a date."""
    target_date = _resolve_date(date)
    rows = session.exec(
        select(EventMetric)
        .where(
            EventMetric.snapshot_date == target_date,
            EventMetric.event_id == event_id,
        )
        .order_by(EventMetric.metric_name)
    ).all()
    return {
        "status": "success",
        "date": target_date.isoformat(),
        "event_id": event_id,
        "count": len(rows),
        "metrics": [_serialize(r) for r in rows],
    }


@router.get("/metrics/participants/{participant_id}")
def get_participant_metrics(
    participant_id: int,
    date: Optional[str] = Query(None, description="Snapshot date (YYYY-MM-DD)"),
    session: Session = Depends(get_session),
):
    """Metrics of a single participant for a date."""
    target_date = _resolve_date(date)
    rows = session.exec(
        select(ParticipantMetric)
        .where(
            ParticipantMetric.snapshot_date == target_date,
            ParticipantMetric.participant_id == participant_id,
        )
        .order_by(ParticipantMetric.metric_name)
    ).all()
    return {
        "status": "success",
        "date": target_date.isoformat(),
        "participant_id": participant_id,
        "count": len(rows),
        "metrics": [_serialize(r) for r in rows],
    }
