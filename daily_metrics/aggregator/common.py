"""Daily Metrics — Shared Aggregation Helpers.

Percentage rounding, state grouping and the per-entity worker pool used by
the event and participant engines.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from sqlalchemy import case, func, literal_column
from sqlmodel import Session, select

from daily_metrics.core.metric_registry import ONLINE_STATE, UNKNOWN_STATE
from daily_metrics.database import timed_query
from daily_metrics.models.source_models import Booking, Event

T = TypeVar("T")
R = TypeVar("R")

HUNDREDTHS = Decimal("0.01")

# Rendered inline so SELECT and GROUP BY carry the identical expression.
BOOKING_STATE = func.coalesce(Booking.state, literal_column(f"'{UNKNOWN_STATE}'"))


class RunCancelled(Exception):
    """Raised when a run's cancel event is set mid-aggregation."""


def check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise RunCancelled("Run cancelled")


def format_percentage(value: Decimal) -> str:
    """Render a percentage without trailing zeros ("40", "12.5", "66.67")."""
    return format(value.normalize(), "f")


def percentage_of(numerator: int, denominator: int) -> str:
    """``numerator / denominator * 100`` rounded half-up to 2 places.

    Returns "0" when the denominator is zero. Trailing zeros are dropped,
    so 4 of 10 is "40" and 1 of 3 is "33.33".
    """
    if not denominator:
        return "0"
    pct = (Decimal(numerator) * 100 / Decimal(denominator)).quantize(
        HUNDREDTHS, rounding=ROUND_HALF_UP
    )
    return format_percentage(pct)


def count_when(condition):
    """SUM(CASE WHEN condition THEN 1 ELSE 0 END)."""
    return func.sum(case((condition, 1), else_=0))


def bookings_by_state(
    session: Session,
    query_name: str,
    *criteria,
    online_only: bool = False,
    level: int = logging.INFO,
) -> Dict[str, int]:
    """Count bookings matching ``criteria`` grouped by state (NULL → unknown)."""
    stmt = select(
        BOOKING_STATE.label("booking_state"),
        func.count(Booking.id).label("state_count"),
    )
    if online_only:
        stmt = stmt.join(Event, Booking.settings_id == Event.id).where(
            Event.state == ONLINE_STATE
        )
    stmt = stmt.where(*criteria).group_by(BOOKING_STATE)
    with timed_query(query_name, level):
        rows = session.exec(stmt).all()
    return {row.booking_state: int(row.state_count) for row in rows}


def merge_state_counts(*groupings: Dict[str, int]) -> Dict[str, int]:
    """Sum several state → count mappings per state."""
    merged: Dict[str, int] = {}
    for grouping in groupings:
        for state, count in grouping.items():
            merged[state] = merged.get(state, 0) + count
    return merged


def map_entities(
    session: Session,
    entities: Iterable[T],
    work: Callable[[Session, T], List[R]],
    workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
) -> List[R]:
    """Run ``work`` for every entity and concatenate the rows it returns.

    With one worker everything runs on ``session``. With more, each unit
    gets its own session on the same engine and the per-unit results are
    merged once all units have finished.
    """
    rows: List[R] = []
    if workers <= 1:
        for entity in entities:
            check_cancelled(cancel_event)
            rows.extend(work(session, entity))
        return rows

    engine = session.get_bind()

    def _unit(entity: T) -> List[R]:
        check_cancelled(cancel_event)
        with Session(engine) as unit_session:
            return work(unit_session, entity)

    pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="metrics_worker")
    try:
        futures = [pool.submit(_unit, entity) for entity in entities]
        for future in futures:
            rows.extend(future.result())
    finally:
        pool.shutdown(wait=True, cancel_futures=True)
    return rows
