"""Daily Metrics — Metric Persistence.

Idempotent batched upserts into the three metric tables. Each table is its
own unit of work and is committed independently: a failure in a later table
leaves earlier tables committed. Callers that need all-or-nothing must wrap
the call in their own transaction.
"""

from typing import Dict, List, Optional, Sequence, Type

from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import Session, SQLModel

from daily_metrics.config import settings
from daily_metrics.database import timed_query
from daily_metrics.models.metric_models import (
    DailyMetric,
    EventMetric,
    ParticipantMetric,
)
from daily_metrics.core.logging import get_logger

logger = get_logger("aggregator.persistence")

# Natural key → columns overwritten on conflict
UPSERT_KEYS: Dict[Type[SQLModel], tuple] = {
    DailyMetric: ("aggregation_date", "metric_name"),
    EventMetric: ("snapshot_date", "event_id", "metric_name"),
    ParticipantMetric: ("snapshot_date", "participant_id", "event_id", "metric_name"),
}
UPSERT_FIELDS: Dict[Type[SQLModel], tuple] = {
    DailyMetric: ("metric_value", "metric_percentage", "updated_at"),
    EventMetric: ("metric_value", "metric_percentage", "updated_at"),
    ParticipantMetric: ("metric_value", "updated_at"),
}


class MetricsPersistenceError(Exception):
    """Raised when a metric table's upsert fails."""

    def __init__(self, table: str, committed: List[str], cause: Exception):
        self.table = table
        self.committed = list(committed)
        self.cause = cause
        already = ", ".join(self.committed) or "none"
        super().__init__(
            f"Upsert into {table} failed ({cause}); already committed: {already}"
        )


def _upsert_statement(session: Session, model: Type[SQLModel], rows: List[dict]):
    """Dialect-specific INSERT ... ON CONFLICT / ON DUPLICATE KEY UPDATE."""
    table = model.__table__
    update_fields = UPSERT_FIELDS[model]
    dialect = session.get_bind().dialect.name

    if dialect in ("mysql", "mariadb"):
        stmt = mysql_insert(table).values(rows)
        return stmt.on_duplicate_key_update(
            {field: stmt.inserted[field] for field in update_fields}
        )

    if dialect == "postgresql":
        stmt = pg_insert(table).values(rows)
    elif dialect == "sqlite":
        stmt = sqlite_insert(table).values(rows)
    else:
        raise ValueError(f"Upsert not supported for dialect: {dialect}")

    return stmt.on_conflict_do_update(
        index_elements=list(UPSERT_KEYS[model]),
        set_={field: stmt.excluded[field] for field in update_fields},
    )


def upsert_metrics(
    session: Session,
    model: Type[SQLModel],
    metrics: Sequence[SQLModel],
    batch_size: Optional[int] = None,
) -> int:
    """Upsert ``metrics`` into ``model``'s table in chunks and commit.

    An empty sequence touches nothing. Returns the number of rows sent.
    """
    if not metrics:
        return 0

    batch_size = batch_size or settings.upsert_batch_size
    rows = [metric.model_dump(exclude={"id"}) for metric in metrics]
    table_name = model.__tablename__

    with timed_query(f"Upsert {table_name}"):
        for start in range(0, len(rows), batch_size):
            chunk = rows[start : start + batch_size]
            session.connection().execute(_upsert_statement(session, model, chunk))
        session.commit()
    return len(rows)


def persist(
    session: Session,
    global_metrics: Sequence[DailyMetric],
    event_metrics: Sequence[EventMetric],
    participant_metrics: Sequence[ParticipantMetric],
    batch_size: Optional[int] = None,
) -> Dict[str, int]:
    """Upsert all three metric batches; returns rows written per table."""
    written: Dict[str, int] = {}
    batches = [
        (DailyMetric, global_metrics),
        (EventMetric, event_metrics),
        (ParticipantMetric, participant_metrics),
    ]

    for model, metrics in batches:
        table_name = model.__tablename__
        try:
            count = upsert_metrics(session, model, metrics, batch_size)
        except Exception as e:
            session.rollback()
            logger.error(
                f"Persisting {table_name} failed after committing {list(written)}: {e}"
            )
            raise MetricsPersistenceError(table_name, list(written), e) from e
        if count:
            written[table_name] = count
            logger.info(
                f"Inserted {count} metrics into {table_name}",
                extra={"metric_count": count},
            )

    return written
