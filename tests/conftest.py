"""
Pytest configuration and fixtures

Every test gets a fresh in-memory SQLite database with the source and metric
tables created, plus a ``seed`` helper for inserting source rows.
"""
from datetime import date, datetime, timezone

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine, select

from daily_metrics.models.metric_models import (
    DailyMetric,
    EventMetric,
    ParticipantMetric,
)
from daily_metrics.models.source_models import (
    Administrator,
    Booking,
    Event,
    Participant,
    User,
)

TARGET_DATE = date(2026, 3, 14)
JOINED_AT = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)
OPTED_IN_AT = datetime(2026, 1, 1, tzinfo=timezone.utc)
OPTED_OUT_AT = datetime(2026, 2, 1, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


class Seeder:
    """Inserts source rows and returns them with ids assigned."""

    def __init__(self, session: Session):
        self.session = session

    def _save(self, obj):
        self.session.add(obj)
        self.session.commit()
        self.session.refresh(obj)
        return obj

    def event(self, state="online", workspace_id=10):
        return self._save(Event(workspace_id=workspace_id, state=state))

    def participant(self, event, state="registered", created_at=None):
        return self._save(
            Participant(
                settings_id=event.id,
                state=state,
                created_at=created_at or JOINED_AT,
            )
        )

    def booking(self, event, host, guest=None, state="accepted"):
        return self._save(
            Booking(
                settings_id=event.id,
                host_id=host.id,
                guest_id=guest.id if guest is not None else None,
                state=state,
            )
        )

    def users(self, total, opted_in=0, opted_out=0):
        for i in range(total):
            self.session.add(
                User(
                    newsletter_opted_in_at=OPTED_IN_AT if i < opted_in else None,
                    newsletter_opted_out_at=OPTED_OUT_AT if total - i <= opted_out else None,
                )
            )
        self.session.commit()

    def admins(self, *flags):
        for flag in flags:
            self.session.add(Administrator(dashboard_opt_in=flag))
        self.session.commit()


@pytest.fixture
def seed(session):
    return Seeder(session)


def values_by_name(metrics):
    return {m.metric_name: m.metric_value for m in metrics}


def percentages_by_name(metrics):
    return {
        m.metric_name: (str(m.metric_percentage) if m.metric_percentage is not None else None)
        for m in metrics
    }


def stored_rows(session, model):
    """All rows of a metric table as comparable tuples, timestamps excluded."""
    session.expire_all()
    rows = session.exec(select(model)).all()
    dumps = [r.model_dump(exclude={"id", "created_at", "updated_at"}) for r in rows]
    # DB-loaded instances dump keys in load order; use declared field order.
    return sorted(
        tuple((k, d[k]) for k in model.model_fields if k in d)
        for d in dumps
    )

