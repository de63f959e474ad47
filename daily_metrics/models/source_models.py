"""Daily Metrics — Source Models (Read-Only).

Operational tables owned by the booking platform. The aggregators only
read them; nothing in this project writes to these tables.
"""

from datetime import datetime, timezone
from typing import Optional
from sqlmodel import SQLModel, Field


class Event(SQLModel, table=True):
    """A configured event. Stored in the platform's ``settings`` table."""

    __tablename__ = "settings"

    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_id: int = Field(index=True)
    published_at: Optional[datetime] = None
    state: Optional[str] = Field(
        default=None, max_length=50, description="Only 'online' events are counted"
    )
    payments_enabled: int = Field(default=0)
    addons: Optional[str] = Field(default=None, max_length=1000)


class Participant(SQLModel, table=True):
    """A person registered for an event."""

    __tablename__ = "participants"

    id: Optional[int] = Field(default=None, primary_key=True)
    settings_id: int = Field(index=True, description="Owning event id")
    state: Optional[str] = Field(default=None, max_length=50)
    utm_source: Optional[str] = Field(
        default=None, max_length=100, description="Acquisition channel"
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Booking(SQLModel, table=True):
    """A meeting between a host participant and an optional guest."""

    __tablename__ = "bookings"

    id: Optional[int] = Field(default=None, primary_key=True)
    settings_id: int = Field(index=True, description="Owning event id")
    host_id: int = Field(index=True)
    guest_id: Optional[int] = Field(default=None, index=True)
    state: Optional[str] = Field(
        default=None, max_length=50, description="Free-form; NULL counts as 'unknown'"
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    newsletter_opted_in_at: Optional[datetime] = None
    newsletter_opted_out_at: Optional[datetime] = None


class Administrator(SQLModel, table=True):
    __tablename__ = "administrators"

    id: Optional[int] = Field(default=None, primary_key=True)
    dashboard_opt_in: Optional[str] = Field(
        default=None, max_length=1, description="'1' opted in, '0' opted out"
    )
